"""Reevit Python SDK.

A Python client for the Reevit payment-orchestration API: idempotent
payment intents, checkout state, and regional helpers.
"""

from importlib.metadata import PackageNotFoundError, version as _pkg_version

from reevit.checkout import CheckoutSession
from reevit.client import ReevitClient
from reevit.config import ReevitSettings
from reevit.errors import (
    ConflictError,
    ForbiddenError,
    NetworkError,
    NotFoundError,
    PaymentDeclinedError,
    ProviderError,
    RateLimitedError,
    ReevitError,
    RequestTimeoutError,
    UnauthorizedError,
    ValidationError,
)
from reevit.intent import (
    IntentCache,
    IntentCacheEntry,
    IntentIdentity,
    IntentIdentityOptions,
    cache_promise,
    cache_response,
    clear_cache_entry,
    default_intent_cache,
    generate_idempotency_key,
    get_cache_entry,
    resolve_intent_identity,
)
from reevit.state import (
    ActionType,
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
    CheckoutProviderOption,
    CheckoutStatus,
    ConfirmPaymentRequest,
    HubtelSessionResponse,
    MobileMoneyNetwork,
    PaymentDetailResponse,
    PaymentError,
    PaymentIntent,
    PaymentIntentResponse,
    PaymentMethod,
    PaymentResult,
    PaymentSource,
    PSPType,
    ReevitTheme,
)
from reevit.utils import (
    cn,
    create_theme_variables,
    detect_country_from_currency,
    detect_network,
    format_amount,
    format_phone,
    generate_reference,
    validate_phone,
)

__all__ = [
    # Client
    "ReevitClient",
    "ReevitSettings",
    "CheckoutSession",
    # Intent identity and cache
    "IntentCache",
    "IntentCacheEntry",
    "IntentIdentity",
    "IntentIdentityOptions",
    "default_intent_cache",
    "generate_idempotency_key",
    "resolve_intent_identity",
    "get_cache_entry",
    "cache_promise",
    "cache_response",
    "clear_cache_entry",
    # State machine
    "ActionType",
    "CheckoutAction",
    "CheckoutState",
    "InitStart",
    "InitSuccess",
    "InitError",
    "SelectMethod",
    "ProcessStart",
    "ProcessSuccess",
    "ProcessError",
    "Reset",
    "Close",
    "create_initial_state",
    "reduce",
    # Types
    "CheckoutCallbacks",
    "CheckoutConfig",
    "CheckoutProviderOption",
    "CheckoutStatus",
    "ConfirmPaymentRequest",
    "HubtelSessionResponse",
    "MobileMoneyNetwork",
    "PaymentDetailResponse",
    "PaymentError",
    "PaymentIntent",
    "PaymentIntentResponse",
    "PaymentMethod",
    "PaymentResult",
    "PaymentSource",
    "PSPType",
    "ReevitTheme",
    # Utilities
    "cn",
    "create_theme_variables",
    "detect_country_from_currency",
    "detect_network",
    "format_amount",
    "format_phone",
    "generate_reference",
    "validate_phone",
    # Errors
    "ReevitError",
    "ValidationError",
    "UnauthorizedError",
    "PaymentDeclinedError",
    "ForbiddenError",
    "NotFoundError",
    "ConflictError",
    "RateLimitedError",
    "ProviderError",
    "RequestTimeoutError",
    "NetworkError",
]

try:
    __version__ = _pkg_version("reevit-sdk")
except PackageNotFoundError:
    __version__ = "unknown"
