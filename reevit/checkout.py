"""Checkout session - drives one checkout through the state machine."""

from __future__ import annotations

import asyncio
import logging
from typing import TYPE_CHECKING

from reevit.errors import ReevitError
from reevit.intent import (
    IntentCache,
    IntentIdentity,
    IntentIdentityOptions,
    cache_promise,
    cache_response,
    clear_cache_entry,
    get_cache_entry,
    resolve_intent_identity,
)
from reevit.state import (
    CheckoutAction,
    CheckoutState,
    Close,
    InitError,
    InitStart,
    InitSuccess,
    ProcessError,
    ProcessStart,
    ProcessSuccess,
    Reset,
    SelectMethod,
    create_initial_state,
    reduce,
)
from reevit.types import (
    CheckoutCallbacks,
    CheckoutConfig,
    ConfirmPaymentRequest,
    PaymentDetailResponse,
    PaymentError,
    PaymentIntent,
    PaymentIntentResponse,
    PaymentMethod,
    PaymentResult,
)
from reevit.utils import detect_country_from_currency

if TYPE_CHECKING:
    from reevit.client import ReevitClient

logger = logging.getLogger("reevit")

_SUCCEEDED_STATUSES = {"succeeded", "success", "completed"}
_FAILED_STATUSES = {"failed", "canceled", "cancelled"}


def _retrieve_outcome(task: asyncio.Future) -> None:
    # Every waiter may be cancelled before the shared creation finishes
    if task.cancelled():
        return
    exc = task.exception()
    if exc is not None:
        logger.debug("Intent creation task failed: %r", exc)


class CheckoutSession:
    """One checkout attempt.

    Owns the checkout state and feeds it actions derived from API results.
    Intent creation goes through the intent cache, so concurrent or
    repeated ``initialize()`` calls for the same checkout share a single
    network request.

    Example:
        async with ReevitClient(public_key="pk_test_xxx") as client:
            session = CheckoutSession(client, CheckoutConfig(amount=1000, currency="GHS"))
            await session.initialize()
            session.select_method(PaymentMethod.MOBILE_MONEY)
            result = await session.confirm()
    """

    def __init__(
        self,
        client: ReevitClient,
        config: CheckoutConfig,
        *,
        callbacks: CheckoutCallbacks | None = None,
        cache: IntentCache | None = None,
    ) -> None:
        """Initialize CheckoutSession.

        Args:
            client: Open ReevitClient used for API calls
            config: Checkout configuration
            callbacks: Optional integrator hooks
            cache: Intent cache; the process-wide cache if omitted
        """
        self._client = client
        self._config = config
        self._callbacks = callbacks or CheckoutCallbacks()
        self._cache = cache
        self._state = create_initial_state()
        self._identity: IntentIdentity | None = None

    @property
    def state(self) -> CheckoutState:
        """Current checkout state."""
        return self._state

    @property
    def config(self) -> CheckoutConfig:
        return self._config

    @property
    def identity(self) -> IntentIdentity | None:
        """Idempotency key and reference of the last initialize() call."""
        return self._identity

    def dispatch(self, action: CheckoutAction) -> CheckoutState:
        """Apply an action and notify on_state_change when the status moves."""
        previous = self._state.status
        self._state = reduce(self._state, action)
        if self._state.status != previous and self._callbacks.on_state_change:
            self._callbacks.on_state_change(self._state.status)
        return self._state

    # Intent lifecycle

    async def initialize(
        self,
        method: PaymentMethod | str | None = None,
        *,
        country: str | None = None,
        preferred_provider: str | None = None,
        allowed_providers: list[str] | None = None,
    ) -> PaymentIntent | None:
        """Create (or reuse) the payment intent for this checkout.

        Cancelling the caller does not cancel the creation request, which
        other sessions may be sharing. It still runs to completion and
        caches its response, or clears its cache entry on failure.

        Returns:
            The PaymentIntent, or None if creation failed (the failure is
            recorded in ``state.error``).
        """
        if self._config.initial_payment_intent is not None:
            self.dispatch(InitSuccess(self._config.initial_payment_intent))
            return self._config.initial_payment_intent

        self.dispatch(InitStart())
        identity = resolve_intent_identity(
            IntentIdentityOptions(
                config=self._config,
                method=method,
                preferred_provider=preferred_provider,
                allowed_providers=allowed_providers,
                public_key=self._client.public_key,
            ),
            cache=self._cache,
        )
        self._identity = identity

        try:
            response = await self._obtain_intent(
                identity,
                method=method,
                country=country or detect_country_from_currency(self._config.currency),
                preferred_provider=preferred_provider,
                allowed_providers=allowed_providers,
            )
        except ReevitError as exc:
            logger.warning("Payment intent creation failed: %s (%s)", exc.message, exc.code)
            self._fail(InitError, exc.to_payment_error())
            return None

        intent = response.to_payment_intent(
            available_methods=list(self._config.payment_methods) if self._config.payment_methods else None,
            metadata=self._config.metadata,
        )
        if intent.reference is None:
            intent = intent.model_copy(update={"reference": identity.reference})
        self.dispatch(InitSuccess(intent))
        return intent

    async def _obtain_intent(
        self,
        identity: IntentIdentity,
        *,
        method: PaymentMethod | str | None,
        country: str,
        preferred_provider: str | None,
        allowed_providers: list[str] | None,
    ) -> PaymentIntentResponse:
        key = identity.idempotency_key
        entry = get_cache_entry(key, cache=self._cache)
        if entry is not None and entry.response is not None:
            logger.debug("Intent cache hit for %s", key)
            return entry.response
        if entry is not None and entry.promise is not None:
            logger.debug("Joining in-flight intent creation for %s", key)
            return await asyncio.shield(entry.promise)

        task = asyncio.ensure_future(
            self._create_intent(
                key,
                reference=identity.reference,
                method=method,
                country=country,
                preferred_providers=[preferred_provider] if preferred_provider else None,
                allowed_providers=allowed_providers,
            )
        )
        task.add_done_callback(_retrieve_outcome)
        cache_promise(key, task, cache=self._cache)
        return await asyncio.shield(task)

    async def _create_intent(
        self,
        key: str,
        *,
        reference: str,
        method: PaymentMethod | str | None,
        country: str,
        preferred_providers: list[str] | None,
        allowed_providers: list[str] | None,
    ) -> PaymentIntentResponse:
        try:
            response = await self._client.create_payment_intent(
                self._config,
                method,
                country,
                preferred_providers=preferred_providers,
                allowed_providers=allowed_providers,
                reference=reference,
                idempotency_key=key,
            )
        except BaseException:
            # A dead promise must not be replayed to the next caller
            entry = get_cache_entry(key, cache=self._cache)
            if entry is not None and entry.promise is asyncio.current_task():
                clear_cache_entry(key, cache=self._cache)
            raise
        cache_response(key, response, cache=self._cache)
        return response

    # Payment processing

    def select_method(self, method: PaymentMethod | str) -> CheckoutState:
        return self.dispatch(SelectMethod(method))

    async def confirm(self, provider_ref_id: str | None = None) -> PaymentResult | None:
        """Confirm the payment intent and record the outcome.

        Args:
            provider_ref_id: PSP reference from the provider callback. When
                given, the payment is confirmed against it; otherwise the
                intent is confirmed with its client secret.

        Returns:
            PaymentResult on success or pending, None on failure.

        Raises:
            RuntimeError: If called before an intent exists
        """
        intent = self._require_intent()
        self.dispatch(ProcessStart())
        try:
            if provider_ref_id:
                detail = await self._client.confirm_payment(
                    intent.id, ConfirmPaymentRequest(provider_ref_id=provider_ref_id)
                )
            else:
                detail = await self._client.confirm_payment_intent(intent.id, intent.client_secret)
        except ReevitError as exc:
            self._fail(ProcessError, exc.to_payment_error())
            return None

        if detail.status.lower() in _FAILED_STATUSES:
            self._fail(
                ProcessError,
                PaymentError(
                    code="payment_failed",
                    message=f"Payment {detail.status}",
                    recoverable=True,
                    details={"payment_id": detail.id, "status": detail.status},
                ),
            )
            return None

        result = self._build_result(intent, detail)
        self.dispatch(ProcessSuccess(result))
        if self._callbacks.on_success:
            self._callbacks.on_success(result)
        return result

    async def cancel(self) -> None:
        """Cancel the intent on the backend and close the checkout.

        The cached intent is dropped so a new checkout creates a fresh one.
        """
        intent = self._require_intent()
        await self._client.cancel_payment_intent(intent.id)
        if self._identity is not None:
            clear_cache_entry(self._identity.idempotency_key, cache=self._cache)
        self.close()

    def reset(self) -> CheckoutState:
        """Go back to method selection, keeping the intent."""
        return self.dispatch(Reset())

    def close(self) -> CheckoutState:
        state = self.dispatch(Close())
        if self._callbacks.on_close:
            self._callbacks.on_close()
        return state

    # Helpers

    def _require_intent(self) -> PaymentIntent:
        intent = self._state.payment_intent
        if intent is None:
            raise RuntimeError("Checkout not initialized. Call initialize() first.")
        return intent

    def _fail(self, action_cls: type[InitError] | type[ProcessError], error: PaymentError) -> None:
        self.dispatch(action_cls(error))
        if self._callbacks.on_error:
            self._callbacks.on_error(error)

    def _build_result(self, intent: PaymentIntent, detail: PaymentDetailResponse) -> PaymentResult:
        status = "success" if detail.status.lower() in _SUCCEEDED_STATUSES else "pending"
        return PaymentResult(
            payment_id=detail.id,
            reference=intent.reference or (self._identity.reference if self._identity else ""),
            amount=detail.amount,
            currency=detail.currency,
            payment_method=self._state.selected_method or detail.method,
            psp=detail.provider,
            psp_reference=detail.provider_ref_id or "",
            status=status,
            metadata=detail.metadata,
            source=detail.source,
            source_id=detail.source_id,
            source_description=detail.source_description,
        )
