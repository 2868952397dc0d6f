"""Reevit SDK error types.

Error codes are stable strings for programmatic handling and match the
codes returned by the Reevit API.
"""

from __future__ import annotations

from typing import Any

from reevit.types import PaymentError


class ReevitError(Exception):
    """Base error for all Reevit SDK exceptions."""

    code: str = "api_error"
    message: str = "An unexpected error occurred"
    status_code: int | None = 500
    recoverable: bool = False

    def __init__(
        self,
        message: str | None = None,
        details: dict[str, Any] | None = None,
        *,
        code: str | None = None,
    ) -> None:
        self.message = message or self.__class__.message
        self.details = details or {}
        if code is not None:
            self.code = code
        super().__init__(self.message)

    def to_payment_error(self) -> PaymentError:
        """Convert to the PaymentError value used by the state machine."""
        return PaymentError(
            code=self.code,
            message=self.message,
            recoverable=self.recoverable,
            details=self.details or None,
        )


class ValidationError(ReevitError):
    """Request validation error (400)."""

    code = "validation_error"
    message = "The payment request is invalid"
    status_code = 400


class UnauthorizedError(ReevitError):
    """Invalid or missing public key (401)."""

    code = "unauthorized"
    message = "Authentication required"
    status_code = 401


class PaymentDeclinedError(ReevitError):
    """Payment declined by the provider (402)."""

    code = "payment_declined"
    message = "The payment was declined"
    status_code = 402


class ForbiddenError(ReevitError):
    """Permission denied (403)."""

    code = "forbidden"
    message = "Permission denied"
    status_code = 403


class NotFoundError(ReevitError):
    """Payment or intent not found (404)."""

    code = "not_found"
    message = "Resource not found"
    status_code = 404


class ConflictError(ReevitError):
    """Idempotency key reused with a different payload, or state conflict (409)."""

    code = "conflict"
    message = "Conflict"
    status_code = 409


class RateLimitedError(ReevitError):
    """Too many requests (429)."""

    code = "rate_limited"
    message = "Too many requests. Please try again shortly."
    status_code = 429
    recoverable = True


class ProviderError(ReevitError):
    """Upstream PSP failure (502)."""

    code = "psp_error"
    message = "The payment provider returned an error"
    status_code = 502
    recoverable = True


class RequestTimeoutError(ReevitError):
    """Request timed out before the API answered.

    Note: Named to avoid shadowing Python's builtin TimeoutError.
    """

    code = "request_timeout"
    message = "The request timed out. Please try again."
    status_code = None
    recoverable = True


class NetworkError(ReevitError):
    """Could not reach the Reevit API."""

    code = "network_error"
    message = "Unable to connect to Reevit. Please check your internet connection."
    status_code = None
    recoverable = True


# Error code to exception class mapping
ERROR_CODE_MAP: dict[str, type[ReevitError]] = {
    "validation_error": ValidationError,
    "unauthorized": UnauthorizedError,
    "payment_declined": PaymentDeclinedError,
    "forbidden": ForbiddenError,
    "not_found": NotFoundError,
    "conflict": ConflictError,
    "rate_limited": RateLimitedError,
    "psp_error": ProviderError,
    "request_timeout": RequestTimeoutError,
    "network_error": NetworkError,
}

# Fallback when the body carries no recognised code
STATUS_CODE_MAP: dict[int, type[ReevitError]] = {
    400: ValidationError,
    401: UnauthorizedError,
    402: PaymentDeclinedError,
    403: ForbiddenError,
    404: NotFoundError,
    409: ConflictError,
    429: RateLimitedError,
    502: ProviderError,
}


def raise_for_error_response(
    status_code: int,
    response_body: dict[str, Any],
) -> None:
    """Raise appropriate ReevitError based on API error response.

    The API may nest the error under ``"error"`` or return it at the top
    level. The HTTP status is always recorded in ``details["http_status"]``.

    Args:
        status_code: HTTP status code
        response_body: Parsed JSON response body

    Raises:
        ReevitError: Appropriate subclass based on error code
    """
    error_data = response_body.get("error")
    if not isinstance(error_data, dict):
        error_data = response_body
    code = error_data.get("code")
    message = error_data.get("message")
    details = {"http_status": status_code, **(error_data.get("details") or {})}

    error_class = ERROR_CODE_MAP.get(code) or STATUS_CODE_MAP.get(status_code)
    if error_class is None:
        error = ReevitError(message=message, details=details, code=code or "api_error")
        error.status_code = status_code
        error.recoverable = status_code >= 500
        raise error
    raise error_class(message=message, details=details, code=code)
