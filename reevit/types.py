"""Type definitions for Reevit SDK.

Pydantic models for request/response serialization and checkout values.
"""

from __future__ import annotations

from collections.abc import Callable
from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field


class PaymentMethod(str, Enum):
    """Payment methods a checkout can offer."""

    CARD = "card"
    MOBILE_MONEY = "mobile_money"
    BANK_TRANSFER = "bank_transfer"
    APPLE_PAY = "apple_pay"
    GOOGLE_PAY = "google_pay"


class MobileMoneyNetwork(str, Enum):
    """Ghanaian mobile money networks."""

    MTN = "mtn"
    TELECEL = "telecel"
    AIRTELTIGO = "airteltigo"


class PSPType(str, Enum):
    """Payment service providers the backend routes to."""

    PAYSTACK = "paystack"
    HUBTEL = "hubtel"
    FLUTTERWAVE = "flutterwave"
    STRIPE = "stripe"
    MONNIFY = "monnify"
    MPESA = "mpesa"


class PaymentSource(str, Enum):
    """Where a payment originated from."""

    PAYMENT_LINK = "payment_link"
    API = "api"
    SUBSCRIPTION = "subscription"


class CheckoutStatus(str, Enum):
    """Checkout status enum."""

    IDLE = "idle"  # Nothing started yet
    LOADING = "loading"  # Payment intent is being created
    READY = "ready"  # Intent available, waiting for a method
    METHOD_SELECTED = "method_selected"
    PROCESSING = "processing"  # Payment submitted to the PSP
    SUCCESS = "success"
    FAILED = "failed"
    CLOSED = "closed"  # Checkout dismissed by the user


class PaymentError(BaseModel):
    """Error value carried through the checkout state machine.

    Attributes:
        code: Stable error code (e.g. "network_error")
        message: Human-readable message
        recoverable: Whether the user can retry
        original_error: Raw error from the PSP if available
        details: Additional error details
    """

    model_config = ConfigDict(frozen=True)

    code: str
    message: str
    recoverable: bool | None = None
    original_error: Any = None
    details: dict[str, Any] | None = None


class PaymentResult(BaseModel):
    """Outcome of a completed payment."""

    model_config = ConfigDict(frozen=True)

    payment_id: str
    reference: str
    amount: int
    currency: str
    payment_method: PaymentMethod | str
    psp: str
    psp_reference: str
    status: str  # "success" or "pending"
    metadata: dict[str, Any] | None = None
    source: PaymentSource | None = None
    source_id: str | None = None
    source_description: str | None = None


class ReevitTheme(BaseModel):
    """Checkout branding."""

    primary_color: str | None = None
    primary_foreground_color: str | None = None
    button_background_color: str | None = None
    button_text_color: str | None = None
    background_color: str | None = None
    border_color: str | None = None
    surface_color: str | None = None
    text_color: str | None = None
    muted_text_color: str | None = None
    border_radius: str | None = None
    font_family: str | None = None
    dark_mode: bool | None = None
    logo_url: str | None = None
    company_name: str | None = None
    psp_selector_bg_color: str | None = None
    psp_selector_text_color: str | None = None
    psp_selector_border_color: str | None = None
    psp_selector_use_border: bool | None = None
    selected_background_color: str | None = None
    selected_text_color: str | None = None
    selected_description_color: str | None = None
    selected_border_color: str | None = None


class CheckoutProviderOption(BaseModel):
    """A PSP offered for the current checkout session."""

    provider: str
    name: str
    methods: list[str]
    countries: list[str] | None = None


class PaymentIntent(BaseModel):
    """Backend-issued payment intent.

    Treated as an opaque value once received; the SDK passes it through
    without recomputing any field.
    """

    model_config = ConfigDict(frozen=True)

    id: str
    client_secret: str
    amount: int
    currency: str
    status: str
    recommended_psp: str
    available_methods: list[PaymentMethod | str] = Field(default_factory=list)
    psp_public_key: str | None = None
    psp_credentials: dict[str, Any] | None = None
    reference: str | None = None
    org_id: str | None = None
    connection_id: str | None = None
    provider: str | None = None
    fee_amount: int | None = None
    fee_currency: str | None = None
    net_amount: int | None = None
    metadata: dict[str, Any] | None = None
    available_providers: list[CheckoutProviderOption] | None = None
    branding: ReevitTheme | None = None


class CheckoutConfig(BaseModel):
    """Checkout configuration supplied by the integrator.

    Attributes:
        public_key: Reevit public key (omit for payment links)
        amount: Amount in the smallest currency unit (e.g. pesewas for GHS)
        currency: Currency code (e.g. "GHS")
        reference: Unique reference for this transaction
        idempotency_key: Overrides the derived idempotency key
        payment_link_code: Payment link code for public checkout flows
        payment_methods: Payment methods to display
        initial_payment_intent: Pre-created intent to use instead of creating one
    """

    public_key: str | None = None
    amount: int
    currency: str
    email: str | None = None
    phone: str | None = None
    customer_name: str | None = None
    reference: str | None = None
    idempotency_key: str | None = None
    metadata: dict[str, Any] | None = None
    custom_fields: dict[str, Any] | None = None
    payment_link_code: str | None = None
    payment_methods: list[PaymentMethod] | None = None
    initial_payment_intent: PaymentIntent | None = None


class CheckoutCallbacks(BaseModel):
    """Integrator hooks fired by CheckoutSession."""

    on_success: Callable[[PaymentResult], None] | None = None
    on_error: Callable[[PaymentError], None] | None = None
    on_close: Callable[[], None] | None = None
    on_state_change: Callable[[CheckoutStatus], None] | None = None


class AvailablePSP(BaseModel):
    """PSP entry as returned by the payment intent endpoint."""

    provider: str
    name: str
    methods: list[str]
    countries: list[str] | None = None


class PaymentIntentResponse(BaseModel):
    """Payment intent payload from POST /v1/payments/intents."""

    id: str
    org_id: str | None = None
    connection_id: str
    provider: str
    status: str
    client_secret: str
    psp_public_key: str = ""
    psp_credentials: dict[str, Any] | None = None
    amount: int
    currency: str
    fee_amount: int = 0
    fee_currency: str = ""
    net_amount: int = 0
    reference: str | None = None
    available_psps: list[AvailablePSP] | None = None
    branding: dict[str, Any] | None = None

    def to_payment_intent(
        self,
        *,
        available_methods: list[PaymentMethod | str] | None = None,
        metadata: dict[str, Any] | None = None,
    ) -> PaymentIntent:
        """Build the checkout-facing PaymentIntent from this response.

        Args:
            available_methods: Methods to offer. Defaults to the union of
                methods advertised by the available PSPs.
            metadata: Metadata to attach to the intent
        """
        providers = [
            CheckoutProviderOption.model_validate(psp.model_dump())
            for psp in self.available_psps or []
        ]
        if available_methods is None:
            available_methods = []
            for option in providers:
                for method in option.methods:
                    if method not in available_methods:
                        available_methods.append(method)

        return PaymentIntent(
            id=self.id,
            client_secret=self.client_secret,
            psp_public_key=self.psp_public_key or None,
            psp_credentials=self.psp_credentials,
            amount=self.amount,
            currency=self.currency,
            status=self.status,
            recommended_psp=self.provider,
            available_methods=list(available_methods),
            reference=self.reference,
            org_id=self.org_id,
            connection_id=self.connection_id,
            provider=self.provider,
            fee_amount=self.fee_amount,
            fee_currency=self.fee_currency or None,
            net_amount=self.net_amount,
            metadata=metadata,
            available_providers=providers or None,
            branding=_branding_to_theme(self.branding),
        )


class PaymentDetailResponse(BaseModel):
    """Payment details from GET /v1/payments/{id} and confirm endpoints."""

    id: str
    connection_id: str
    provider: str
    method: str
    status: str
    amount: int
    currency: str
    fee_amount: int = 0
    fee_currency: str = ""
    net_amount: int = 0
    customer_id: str | None = None
    client_secret: str = ""
    provider_ref_id: str | None = None
    metadata: dict[str, Any] | None = None
    created_at: str
    updated_at: str
    source: PaymentSource | None = None
    source_id: str | None = None
    source_description: str | None = None


class HubtelSessionResponse(BaseModel):
    """Short-lived Hubtel session token.

    Credentials stay on the backend; the client only sees the token.
    """

    token: str
    merchant_account: str | int = Field(alias="merchantAccount")
    basic_auth: str | None = Field(default=None, alias="basicAuth")
    expires_in_seconds: int = Field(alias="expiresInSeconds")
    expires_at: int = Field(alias="expiresAt")

    model_config = ConfigDict(populate_by_name=True)


class ConfirmPaymentRequest(BaseModel):
    """Confirm payment request body."""

    provider_ref_id: str
    provider_data: dict[str, Any] | None = None


# Internal request models (not exported)


class _IntentPolicy(BaseModel):
    """Internal: Routing policy attached to intent creation."""

    prefer: list[str] | None = None
    allowed_providers: list[str] | None = None
    max_amount: int | None = None
    blocked_bins: list[str] | None = None
    allowed_bins: list[str] | None = None
    velocity_max_per_minute: int | None = None


class _CreatePaymentIntentRequest(BaseModel):
    """Internal: Create payment intent request body."""

    amount: int
    currency: str
    method: str | None = None
    country: str = "GH"
    customer_id: str | None = None
    metadata: dict[str, Any] | None = None
    description: str | None = None
    reference: str | None = None
    policy: _IntentPolicy | None = None


_BRANDING_KEYS = {
    "primaryColor": "primary_color",
    "primaryForegroundColor": "primary_foreground_color",
    "buttonBackgroundColor": "button_background_color",
    "buttonTextColor": "button_text_color",
    "backgroundColor": "background_color",
    "borderColor": "border_color",
    "surfaceColor": "surface_color",
    "textColor": "text_color",
    "mutedTextColor": "muted_text_color",
    "borderRadius": "border_radius",
    "fontFamily": "font_family",
    "darkMode": "dark_mode",
    "logoUrl": "logo_url",
    "companyName": "company_name",
}


def _branding_to_theme(branding: dict[str, Any] | None) -> ReevitTheme | None:
    if not branding:
        return None
    fields = {
        _BRANDING_KEYS.get(key, key): value
        for key, value in branding.items()
        if _BRANDING_KEYS.get(key, key) in ReevitTheme.model_fields
    }
    return ReevitTheme.model_validate(fields)
