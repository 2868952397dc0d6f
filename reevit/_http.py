"""HTTP client wrapper for the Reevit API.

Handles connection pooling, error mapping, and request/response serialization.
"""

from __future__ import annotations

import asyncio
import logging
import secrets
import time
from importlib.metadata import PackageNotFoundError, version as _pkg_version
from types import TracebackType
from typing import Any

import httpx

from reevit.errors import NetworkError, RequestTimeoutError, raise_for_error_response

logger = logging.getLogger("reevit")

CLIENT_NAME = "reevit-python"

try:
    CLIENT_VERSION = _pkg_version("reevit-sdk")
except PackageNotFoundError:
    CLIENT_VERSION = "unknown"


def _random_idempotency_key() -> str:
    return f"{int(time.time() * 1000)}-{secrets.token_hex(6)}"


class HTTPClient:
    """Async HTTP client for the Reevit API.

    Wraps httpx.AsyncClient with:
    - Connection pooling
    - Public-key authentication headers
    - Automatic error response mapping to ReevitError
    - Idempotency-Key header support
    - Request/response logging
    """

    def __init__(
        self,
        base_url: str,
        public_key: str | None,
        timeout: float = 30.0,
        max_retries: int = 3,
    ) -> None:
        """Initialize HTTP client.

        Args:
            base_url: Reevit API base URL (e.g., "https://api.reevit.io")
            public_key: Reevit public key sent as X-Reevit-Key
            timeout: Default request timeout in seconds
            max_retries: Maximum retry attempts for transient errors
        """
        self._base_url = base_url.rstrip("/")
        self._public_key = public_key
        self._timeout = timeout
        self._max_retries = max_retries
        self._client: httpx.AsyncClient | None = None

    @staticmethod
    def _is_retryable_method(method: str, *, has_idempotency_key: bool) -> bool:
        method_upper = method.upper()
        if method_upper in {"GET", "PUT", "DELETE"}:
            return True
        return method_upper == "POST" and has_idempotency_key

    @staticmethod
    def _is_retryable_status(status_code: int) -> bool:
        return status_code == 429 or 500 <= status_code <= 599

    @staticmethod
    def _retry_delay_seconds(attempt: int) -> float:
        # attempt is zero-based retry attempt index
        return min(0.2 * (2**attempt), 1.5)

    @staticmethod
    def _parse_json_or_error_payload(response: httpx.Response) -> dict[str, Any]:
        try:
            payload = response.json()
            if isinstance(payload, dict):
                return payload
            return {"data": payload}
        except ValueError:
            if response.status_code >= 400:
                raw_text = response.text or ""
                snippet_limit = 500
                snippet = raw_text[:snippet_limit]
                return {
                    "error": {
                        "message": f"HTTP {response.status_code} returned non-JSON error response",
                        "details": {
                            "raw_response_snippet": snippet,
                            "raw_response_truncated": len(raw_text) > snippet_limit,
                        },
                    }
                }
            return {}

    async def __aenter__(self) -> HTTPClient:
        """Enter async context, creating HTTP client."""
        headers = {
            "X-Reevit-Client": CLIENT_NAME,
            "X-Reevit-Client-Version": CLIENT_VERSION,
        }
        if self._public_key:
            headers["X-Reevit-Key"] = self._public_key

        self._client = httpx.AsyncClient(
            base_url=self._base_url,
            timeout=httpx.Timeout(self._timeout),
            headers=headers,
        )
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: TracebackType | None,
    ) -> None:
        """Exit async context, closing HTTP client."""
        if self._client:
            await self._client.aclose()
            self._client = None

    @property
    def client(self) -> httpx.AsyncClient:
        """Get the underlying httpx client."""
        if self._client is None:
            raise RuntimeError("HTTPClient not initialized. Use 'async with' context.")
        return self._client

    async def request(
        self,
        method: str,
        path: str,
        *,
        json: dict[str, Any] | None = None,
        params: dict[str, Any] | None = None,
        idempotency_key: str | None = None,
        timeout: float | None = None,
    ) -> dict[str, Any]:
        """Make an HTTP request to the Reevit API.

        Writes without a caller-supplied idempotency key still get a random
        Idempotency-Key header, but are never retried: only a stable key
        makes a replayed POST safe.

        Args:
            method: HTTP method (GET, POST, PUT, DELETE, etc.)
            path: API path (e.g., "/v1/payments/intents")
            json: Request body as dict (will be serialized)
            params: Query parameters
            idempotency_key: Optional deterministic idempotency key
            timeout: Override default timeout for this request

        Returns:
            Parsed JSON response body

        Raises:
            ReevitError: On API error responses
            RequestTimeoutError: If the request timed out on every attempt
            NetworkError: If the API could not be reached on every attempt
        """
        method = method.upper()
        headers: dict[str, str] = {}
        has_idempotency_key = idempotency_key is not None
        if idempotency_key:
            headers["Idempotency-Key"] = idempotency_key
        elif method in {"POST", "PATCH", "PUT"}:
            headers["Idempotency-Key"] = _random_idempotency_key()

        if json is not None:
            headers["Content-Type"] = "application/json"

        # Filter None values from params
        if params:
            params = {k: v for k, v in params.items() if v is not None}

        logger.debug("Request: %s %s", method, path)

        retryable_method = self._is_retryable_method(
            method,
            has_idempotency_key=has_idempotency_key,
        )
        max_attempts = self._max_retries + 1 if retryable_method else 1

        for attempt in range(max_attempts):
            try:
                response = await self.client.request(
                    method,
                    path,
                    json=json,
                    params=params,
                    headers=headers,
                    timeout=timeout if timeout is not None else httpx.USE_CLIENT_DEFAULT,
                )
            except httpx.TimeoutException as exc:
                if retryable_method and attempt < max_attempts - 1:
                    logger.debug("Retrying %s %s after timeout (attempt %d)", method, path, attempt + 1)
                    await asyncio.sleep(self._retry_delay_seconds(attempt))
                    continue
                raise RequestTimeoutError(details={"path": path}) from exc
            except httpx.TransportError as exc:
                if retryable_method and attempt < max_attempts - 1:
                    logger.debug(
                        "Retrying %s %s after transport error %r (attempt %d)",
                        method,
                        path,
                        exc,
                        attempt + 1,
                    )
                    await asyncio.sleep(self._retry_delay_seconds(attempt))
                    continue
                raise NetworkError(details={"path": path, "reason": str(exc)}) from exc

            logger.debug("Response: %s %s", response.status_code, path)

            if response.status_code == 204:
                return {}

            # Retry on transient HTTP status for retryable methods.
            if (
                retryable_method
                and attempt < max_attempts - 1
                and self._is_retryable_status(response.status_code)
            ):
                logger.debug(
                    "Retrying %s %s after HTTP %s (attempt %d)",
                    method,
                    path,
                    response.status_code,
                    attempt + 1,
                )
                await asyncio.sleep(self._retry_delay_seconds(attempt))
                continue

            body = self._parse_json_or_error_payload(response)
            if response.status_code >= 400:
                raise_for_error_response(response.status_code, body)
            return body

        # Unreachable: the loop always returns or raises
        raise RuntimeError("HTTP request attempt loop exhausted unexpectedly")

    async def get(
        self,
        path: str,
        *,
        params: dict[str, Any] | None = None,
        timeout: float | None = None,
    ) -> dict[str, Any]:
        """Make a GET request."""
        return await self.request("GET", path, params=params, timeout=timeout)

    async def post(
        self,
        path: str,
        *,
        json: dict[str, Any] | None = None,
        params: dict[str, Any] | None = None,
        idempotency_key: str | None = None,
        timeout: float | None = None,
    ) -> dict[str, Any]:
        """Make a POST request."""
        return await self.request(
            "POST",
            path,
            json=json,
            params=params,
            idempotency_key=idempotency_key,
            timeout=timeout,
        )
