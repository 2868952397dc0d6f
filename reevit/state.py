"""Checkout state machine.

A pure reducer over CheckoutStatus, shared by every checkout front end.
Actions are accepted from any state; the machine only sequences what the
UI displays and never rejects out-of-order events.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import Enum
from typing import ClassVar, Union

from pydantic import BaseModel, ConfigDict

from reevit.types import (
    CheckoutStatus,
    PaymentError,
    PaymentIntent,
    PaymentMethod,
    PaymentResult,
)

logger = logging.getLogger("reevit")


class CheckoutState(BaseModel):
    """Checkout state snapshot.

    ``status`` is authoritative; the other fields are payload slots whose
    meaning depends on it (``error`` only matters when failed, and so on).
    """

    model_config = ConfigDict(frozen=True)

    status: CheckoutStatus = CheckoutStatus.IDLE
    payment_intent: PaymentIntent | None = None
    selected_method: PaymentMethod | str | None = None
    error: PaymentError | None = None
    result: PaymentResult | None = None


class ActionType(str, Enum):
    INIT_START = "INIT_START"
    INIT_SUCCESS = "INIT_SUCCESS"
    INIT_ERROR = "INIT_ERROR"
    SELECT_METHOD = "SELECT_METHOD"
    PROCESS_START = "PROCESS_START"
    PROCESS_SUCCESS = "PROCESS_SUCCESS"
    PROCESS_ERROR = "PROCESS_ERROR"
    RESET = "RESET"
    CLOSE = "CLOSE"


@dataclass(frozen=True)
class InitStart:
    type: ClassVar[ActionType] = ActionType.INIT_START


@dataclass(frozen=True)
class InitSuccess:
    payload: PaymentIntent
    type: ClassVar[ActionType] = ActionType.INIT_SUCCESS


@dataclass(frozen=True)
class InitError:
    payload: PaymentError
    type: ClassVar[ActionType] = ActionType.INIT_ERROR


@dataclass(frozen=True)
class SelectMethod:
    payload: PaymentMethod | str
    type: ClassVar[ActionType] = ActionType.SELECT_METHOD


@dataclass(frozen=True)
class ProcessStart:
    type: ClassVar[ActionType] = ActionType.PROCESS_START


@dataclass(frozen=True)
class ProcessSuccess:
    payload: PaymentResult
    type: ClassVar[ActionType] = ActionType.PROCESS_SUCCESS


@dataclass(frozen=True)
class ProcessError:
    payload: PaymentError
    type: ClassVar[ActionType] = ActionType.PROCESS_ERROR


@dataclass(frozen=True)
class Reset:
    type: ClassVar[ActionType] = ActionType.RESET


@dataclass(frozen=True)
class Close:
    type: ClassVar[ActionType] = ActionType.CLOSE


CheckoutAction = Union[
    InitStart,
    InitSuccess,
    InitError,
    SelectMethod,
    ProcessStart,
    ProcessSuccess,
    ProcessError,
    Reset,
    Close,
]


def create_initial_state() -> CheckoutState:
    """Create the idle state a checkout starts in."""
    return CheckoutState()


def reduce(state: CheckoutState, action: CheckoutAction) -> CheckoutState:
    """Return the state that follows ``action``.

    Never raises. Unknown actions return ``state`` itself.
    """
    action_type = getattr(action, "type", None)

    if action_type is ActionType.INIT_START:
        return state.model_copy(update={"status": CheckoutStatus.LOADING, "error": None})

    if action_type is ActionType.INIT_SUCCESS:
        intent: PaymentIntent = action.payload
        update: dict = {"status": CheckoutStatus.READY, "payment_intent": intent}
        # Nothing to choose between when the intent offers a single method
        if len(intent.available_methods) == 1:
            update["selected_method"] = intent.available_methods[0]
        return state.model_copy(update=update)

    if action_type is ActionType.INIT_ERROR:
        return state.model_copy(update={"status": CheckoutStatus.FAILED, "error": action.payload})

    if action_type is ActionType.SELECT_METHOD:
        return state.model_copy(
            update={"status": CheckoutStatus.METHOD_SELECTED, "selected_method": action.payload}
        )

    if action_type is ActionType.PROCESS_START:
        return state.model_copy(update={"status": CheckoutStatus.PROCESSING, "error": None})

    if action_type is ActionType.PROCESS_SUCCESS:
        return state.model_copy(update={"status": CheckoutStatus.SUCCESS, "result": action.payload})

    if action_type is ActionType.PROCESS_ERROR:
        return state.model_copy(update={"status": CheckoutStatus.FAILED, "error": action.payload})

    if action_type is ActionType.RESET:
        return CheckoutState(status=CheckoutStatus.READY, payment_intent=state.payment_intent)

    if action_type is ActionType.CLOSE:
        return state.model_copy(update={"status": CheckoutStatus.CLOSED})

    logger.debug("Ignoring unknown checkout action %r", action)
    return state
