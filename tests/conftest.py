"""Shared fixtures for Reevit SDK tests."""

from __future__ import annotations

import pytest

from reevit.config import get_settings
from reevit.intent import IntentCache, default_intent_cache


class FakeClock:
    """Manually advanced clock for TTL tests."""

    def __init__(self, start: float = 1_000.0) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture(autouse=True)
def _isolate_environment(monkeypatch):
    """Keep real REEVIT_* variables and the shared cache out of tests."""
    for name in (
        "REEVIT_PUBLIC_KEY",
        "REEVIT_BASE_URL",
        "REEVIT_TIMEOUT",
        "REEVIT_MAX_RETRIES",
        "REEVIT_INTENT_CACHE_TTL",
    ):
        monkeypatch.delenv(name, raising=False)
    get_settings.cache_clear()
    default_intent_cache.clear()
    yield
    default_intent_cache.clear()
    get_settings.cache_clear()


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def intent_cache(clock):
    return IntentCache(clock=clock)


@pytest.fixture
def intent_response_payload():
    """Sample payment intent response."""
    return {
        "id": "pi_123",
        "org_id": "org_1",
        "connection_id": "conn_1",
        "provider": "paystack",
        "status": "pending",
        "client_secret": "cs_abc",
        "psp_public_key": "pk_psp_1",
        "amount": 1000,
        "currency": "GHS",
        "fee_amount": 20,
        "fee_currency": "GHS",
        "net_amount": 980,
        "reference": "order_42",
        "available_psps": [
            {"provider": "paystack", "name": "Paystack", "methods": ["card", "mobile_money"]},
        ],
    }


@pytest.fixture
def payment_detail_payload():
    """Sample payment detail response."""
    return {
        "id": "pi_123",
        "connection_id": "conn_1",
        "provider": "paystack",
        "method": "mobile_money",
        "status": "succeeded",
        "amount": 1000,
        "currency": "GHS",
        "fee_amount": 20,
        "fee_currency": "GHS",
        "net_amount": 980,
        "customer_id": "ama@example.com",
        "client_secret": "cs_abc",
        "provider_ref_id": "psp_ref_9",
        "metadata": {"order_id": "42"},
        "created_at": "2026-02-06T00:00:00Z",
        "updated_at": "2026-02-06T00:01:00Z",
        "source": "api",
    }
