"""ReevitClient - main entry point for the Reevit SDK."""

from __future__ import annotations

from types import TracebackType
from typing import Any

from reevit._http import HTTPClient
from reevit.config import ReevitSettings, resolve_base_url
from reevit.types import (
    CheckoutConfig,
    ConfirmPaymentRequest,
    HubtelSessionResponse,
    PaymentDetailResponse,
    PaymentIntentResponse,
    PaymentMethod,
    _CreatePaymentIntentRequest,
    _IntentPolicy,
)

# SDK method -> backend method
_METHOD_MAP = {
    PaymentMethod.CARD: "card",
    PaymentMethod.MOBILE_MONEY: "mobile_money",
    PaymentMethod.BANK_TRANSFER: "bank_transfer",
}


class ReevitClient:
    """Main client for the Reevit API.

    Use as an async context manager to ensure proper cleanup.

    Example:
        async with ReevitClient(public_key="pk_test_xxx") as client:
            intent = await client.create_payment_intent(config, PaymentMethod.CARD)
            detail = await client.confirm_payment_intent(intent.id, intent.client_secret)
    """

    def __init__(
        self,
        public_key: str | None = None,
        *,
        base_url: str | None = None,
        timeout: float | None = None,
        max_retries: int | None = None,
        settings: ReevitSettings | None = None,
    ) -> None:
        """Initialize Reevit client.

        Args:
            public_key: Reevit public key. Falls back to REEVIT_PUBLIC_KEY.
            base_url: API base URL. Falls back to REEVIT_BASE_URL, then to the
                sandbox or production URL depending on the key.
            timeout: Default request timeout in seconds. Falls back to REEVIT_TIMEOUT.
            max_retries: Maximum retry attempts. Falls back to REEVIT_MAX_RETRIES.
            settings: Preloaded settings (read from the environment if omitted)

        Raises:
            ValueError: If no public key is provided and none is in the environment.
        """
        settings = settings or ReevitSettings()

        self._public_key = public_key or settings.public_key
        if not self._public_key:
            raise ValueError("public_key required (or set REEVIT_PUBLIC_KEY env var)")

        self._base_url = resolve_base_url(self._public_key, base_url or settings.base_url)
        self._timeout = timeout if timeout is not None else settings.timeout
        self._max_retries = max_retries if max_retries is not None else settings.max_retries
        self._http: HTTPClient | None = None

    @property
    def public_key(self) -> str:
        return self._public_key

    @property
    def base_url(self) -> str:
        return self._base_url

    async def __aenter__(self) -> ReevitClient:
        """Enter async context, initializing HTTP client."""
        self._http = HTTPClient(
            base_url=self._base_url,
            public_key=self._public_key,
            timeout=self._timeout,
            max_retries=self._max_retries,
        )
        await self._http.__aenter__()
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: TracebackType | None,
    ) -> None:
        """Exit async context, closing HTTP client."""
        if self._http:
            await self._http.__aexit__(exc_type, exc_val, exc_tb)
            self._http = None

    @property
    def http(self) -> HTTPClient:
        """Get the HTTP client."""
        if self._http is None:
            raise RuntimeError("ReevitClient not initialized. Use 'async with' context.")
        return self._http

    # Payment intent operations

    async def create_payment_intent(
        self,
        config: CheckoutConfig,
        method: PaymentMethod | str | None = None,
        country: str = "GH",
        *,
        preferred_providers: list[str] | None = None,
        allowed_providers: list[str] | None = None,
        reference: str | None = None,
        idempotency_key: str | None = None,
    ) -> PaymentIntentResponse:
        """Create a payment intent.

        Args:
            config: Checkout configuration (amount, currency, customer, metadata)
            method: Payment method the customer picked, if any
            country: ISO country code used for routing
            preferred_providers: PSPs to try first
            allowed_providers: Restrict routing to these PSPs
            reference: Client reference; defaults to ``config.reference``
            idempotency_key: Deterministic key for safe retries

        Returns:
            PaymentIntentResponse for the created intent
        """
        metadata: dict[str, Any] = dict(config.metadata or {})
        if config.email:
            metadata["customer_email"] = config.email
        if config.phone:
            metadata["customer_phone"] = config.phone

        policy = None
        if preferred_providers or allowed_providers:
            policy = _IntentPolicy(
                prefer=preferred_providers or None,
                allowed_providers=allowed_providers or None,
            )

        body = _CreatePaymentIntentRequest(
            amount=config.amount,
            currency=config.currency,
            method=self.map_payment_method(method) if method else None,
            country=country,
            customer_id=config.email or (config.metadata or {}).get("customerId"),
            metadata=metadata,
            reference=reference or config.reference,
            policy=policy,
        ).model_dump(exclude_none=True)

        response = await self.http.post(
            "/v1/payments/intents",
            json=body,
            idempotency_key=idempotency_key,
        )
        return PaymentIntentResponse.model_validate(response)

    async def get_payment_intent(self, payment_id: str) -> PaymentDetailResponse:
        """Retrieve a payment by ID.

        Raises:
            NotFoundError: If the payment doesn't exist
        """
        response = await self.http.get(f"/v1/payments/{payment_id}")
        return PaymentDetailResponse.model_validate(response)

    async def confirm_payment(
        self,
        payment_id: str,
        request: ConfirmPaymentRequest | None = None,
    ) -> PaymentDetailResponse:
        """Confirm a payment after the PSP callback."""
        response = await self.http.post(
            f"/v1/payments/{payment_id}/confirm",
            json=request.model_dump(exclude_none=True) if request else None,
        )
        return PaymentDetailResponse.model_validate(response)

    async def confirm_payment_intent(
        self,
        payment_id: str,
        client_secret: str,
    ) -> PaymentDetailResponse:
        """Confirm a payment intent using its client secret (public endpoint)."""
        response = await self.http.post(
            f"/v1/payments/{payment_id}/confirm-intent",
            params={"client_secret": client_secret},
        )
        return PaymentDetailResponse.model_validate(response)

    async def cancel_payment_intent(self, payment_id: str) -> PaymentDetailResponse:
        """Cancel a payment intent."""
        response = await self.http.post(f"/v1/payments/{payment_id}/cancel")
        return PaymentDetailResponse.model_validate(response)

    async def create_hubtel_session(
        self,
        payment_id: str,
        client_secret: str | None = None,
    ) -> HubtelSessionResponse:
        """Create a short-lived Hubtel session token.

        Hubtel credentials never reach the client; only the token does.
        """
        response = await self.http.post(
            f"/v1/payments/hubtel/sessions/{payment_id}",
            params={"client_secret": client_secret},
        )
        return HubtelSessionResponse.model_validate(response)

    @staticmethod
    def map_payment_method(method: PaymentMethod | str) -> str:
        """Map an SDK payment method to the backend's method name."""
        try:
            return _METHOD_MAP[PaymentMethod(method)]
        except (KeyError, ValueError):
            return method.value if isinstance(method, PaymentMethod) else str(method)
