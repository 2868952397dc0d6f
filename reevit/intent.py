"""Intent identity and intent cache.

Derives a deterministic idempotency key for a checkout and keeps a
process-wide cache of in-flight and completed intent creations, so one
logical checkout attempt never issues two intent-creation requests.
"""

from __future__ import annotations

import asyncio
import hashlib
import json
import logging
import time
from collections.abc import Callable, Mapping
from dataclasses import dataclass, replace
from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from typing import Any
from uuid import UUID

from pydantic import BaseModel

from reevit.config import get_settings
from reevit.types import CheckoutConfig, PaymentIntentResponse, PaymentMethod
from reevit.utils import generate_reference

logger = logging.getLogger("reevit")

INTENT_CACHE_TTL_SECONDS = 10 * 60

_MISSING = object()


@dataclass(frozen=True)
class IntentCacheEntry:
    """Cached state for one idempotency key.

    Holds at most one of ``promise`` (creation still in flight) and
    ``response`` (creation finished).
    """

    expires_at: float
    reference: str | None = None
    promise: asyncio.Future[PaymentIntentResponse] | None = None
    response: PaymentIntentResponse | None = None


class IntentCache:
    """In-memory intent cache with lazy TTL expiry.

    Every write pushes ``expires_at`` to ``now + ttl``; expired entries are
    dropped when read or pruned. There is no background sweep.

    With ``ttl_seconds=None`` the TTL is read from ``REEVIT_INTENT_CACHE_TTL``
    (via ``get_settings()``) on first use rather than at construction.
    """

    def __init__(
        self,
        ttl_seconds: float | None = INTENT_CACHE_TTL_SECONDS,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._ttl = ttl_seconds
        self._clock = clock
        self._entries: dict[str, IntentCacheEntry] = {}

    @property
    def ttl(self) -> float:
        if self._ttl is None:
            return get_settings().intent_cache_ttl
        return self._ttl

    def now(self) -> float:
        return self._clock()

    def get(self, key: str) -> IntentCacheEntry | None:
        """Return the live entry for key, evicting it if expired."""
        entry = self._entries.get(key)
        if entry is None:
            return None
        if entry.expires_at <= self.now():
            del self._entries[key]
            return None
        return entry

    def upsert(
        self,
        key: str,
        *,
        reference: Any = _MISSING,
        promise: Any = _MISSING,
        response: Any = _MISSING,
    ) -> IntentCacheEntry:
        """Merge the given fields into the entry for key and refresh its TTL.

        Fields left out keep their current value. Passing a response always
        clears the in-flight promise.
        """
        updates: dict[str, Any] = {}
        if reference is not _MISSING:
            updates["reference"] = reference
        if promise is not _MISSING:
            updates["promise"] = promise
        if response is not _MISSING:
            updates["response"] = response
            updates["promise"] = None

        expires_at = self.now() + self.ttl
        existing = self.get(key)
        if existing is None:
            entry = IntentCacheEntry(expires_at=expires_at, **updates)
        else:
            entry = replace(existing, expires_at=expires_at, **updates)
        self._entries[key] = entry
        return entry

    def remove(self, key: str) -> None:
        self._entries.pop(key, None)

    def prune(self, now: float | None = None) -> int:
        """Remove every entry with expires_at <= now. Returns the count removed."""
        if now is None:
            now = self.now()
        expired = [key for key, entry in self._entries.items() if entry.expires_at <= now]
        for key in expired:
            del self._entries[key]
        return len(expired)

    def clear(self) -> None:
        self._entries.clear()

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, key: object) -> bool:
        return isinstance(key, str) and self.get(key) is not None


# Process-wide cache shared by every CheckoutSession unless one is injected
default_intent_cache = IntentCache(ttl_seconds=None)


def _cache_or_default(cache: IntentCache | None) -> IntentCache:
    return cache if cache is not None else default_intent_cache


@dataclass
class IntentIdentityOptions:
    """Inputs that identify one logical intent creation."""

    config: CheckoutConfig
    method: PaymentMethod | str | None = None
    preferred_provider: str | None = None
    allowed_providers: list[str] | None = None
    public_key: str | None = None


@dataclass(frozen=True)
class IntentIdentity:
    idempotency_key: str
    reference: str
    cache_entry: IntentCacheEntry | None = None


def _canonical(value: Any) -> Any:
    """Convert a JSON-like value into plain types json can serialise stably.

    Dates, decimals and UUIDs become their string form. Other non-JSON
    objects are left as-is and rejected by json.dumps.
    """
    if isinstance(value, Enum):
        return _canonical(value.value)
    if isinstance(value, BaseModel):
        return _canonical(value.model_dump(mode="json"))
    if isinstance(value, Mapping):
        return {str(k): _canonical(v) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [_canonical(v) for v in value]
    if isinstance(value, (set, frozenset)):
        return sorted((_canonical(v) for v in value), key=_canonical_text)
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    if isinstance(value, (Decimal, UUID)):
        return str(value)
    return value


def _canonical_text(value: Any) -> str:
    return json.dumps(
        _canonical(value),
        sort_keys=True,
        separators=(",", ":"),
        ensure_ascii=False,
    )


def generate_idempotency_key(params: Mapping[str, Any]) -> str:
    """Derive a deterministic idempotency key from request parameters.

    Mapping key order does not affect the result; list order does.

    Raises:
        TypeError: If params holds a value with no JSON form
    """
    digest = hashlib.sha256(_canonical_text(params).encode("utf-8")).hexdigest()
    return f"reevit_{digest[:32]}"


def build_idempotency_payload(options: IntentIdentityOptions) -> dict[str, Any]:
    config = options.config
    methods = _canonical(config.payment_methods or [])
    payload: dict[str, Any] = {
        "amount": config.amount,
        "currency": config.currency,
        "email": config.email or "",
        "phone": config.phone or "",
        "customerName": config.customer_name or "",
        "paymentLinkCode": config.payment_link_code or "",
        "paymentMethods": sorted(methods),
        "metadata": config.metadata or {},
        "customFields": config.custom_fields or {},
        "method": _canonical(options.method) or "",
        "preferredProvider": options.preferred_provider or "",
        "allowedProviders": options.allowed_providers or [],
        "publicKey": options.public_key or config.public_key or "",
    }
    if config.reference:
        payload["reference"] = config.reference
    return payload


def resolve_intent_identity(
    options: IntentIdentityOptions,
    *,
    cache: IntentCache | None = None,
) -> IntentIdentity:
    """Resolve the (idempotency key, reference) pair for a checkout.

    Repeated calls for the same logical payload return the same key and,
    once a reference has been recorded, the same reference.
    """
    store = _cache_or_default(cache)
    store.prune()

    idempotency_key = options.config.idempotency_key or generate_idempotency_key(
        build_idempotency_payload(options)
    )
    existing = store.get(idempotency_key)
    reference = (
        options.config.reference
        or (existing.reference if existing is not None else None)
        or generate_reference()
    )
    logger.debug(
        "Resolved intent identity %s (cached=%s)",
        idempotency_key,
        existing is not None,
    )

    cache_entry = store.upsert(idempotency_key, reference=reference)
    return IntentIdentity(
        idempotency_key=idempotency_key,
        reference=reference,
        cache_entry=cache_entry,
    )


def get_cache_entry(
    idempotency_key: str,
    *,
    cache: IntentCache | None = None,
) -> IntentCacheEntry | None:
    store = _cache_or_default(cache)
    store.prune()
    return store.get(idempotency_key)


def cache_promise(
    idempotency_key: str,
    promise: asyncio.Future[PaymentIntentResponse],
    *,
    cache: IntentCache | None = None,
) -> IntentCacheEntry:
    return _cache_or_default(cache).upsert(idempotency_key, promise=promise)


def cache_response(
    idempotency_key: str,
    response: PaymentIntentResponse,
    *,
    cache: IntentCache | None = None,
) -> IntentCacheEntry:
    return _cache_or_default(cache).upsert(idempotency_key, response=response)


def clear_cache_entry(
    idempotency_key: str,
    *,
    cache: IntentCache | None = None,
) -> None:
    _cache_or_default(cache).remove(idempotency_key)
