"""Tests for CheckoutSession."""

from __future__ import annotations

import asyncio
import gc
import json

import httpx
import pytest

from reevit import (
    CheckoutCallbacks,
    CheckoutConfig,
    CheckoutSession,
    CheckoutStatus,
    PaymentIntent,
    PaymentMethod,
    ReevitClient,
)

BASE_URL = "https://sandbox-api.reevit.io"
INTENTS_URL = f"{BASE_URL}/v1/payments/intents"


def _config(**overrides) -> CheckoutConfig:
    fields = {"amount": 1000, "currency": "GHS", "phone": "0241234567"}
    fields.update(overrides)
    return CheckoutConfig(**fields)


class _Recorder:
    """Collects callback invocations."""

    def __init__(self) -> None:
        self.statuses: list[CheckoutStatus] = []
        self.errors = []
        self.results = []
        self.closed = 0

    def callbacks(self) -> CheckoutCallbacks:
        return CheckoutCallbacks(
            on_state_change=self.statuses.append,
            on_error=self.errors.append,
            on_success=self.results.append,
            on_close=self._on_close,
        )

    def _on_close(self) -> None:
        self.closed += 1


class TestInitialize:
    """Tests for intent creation through the session."""

    @pytest.mark.asyncio
    async def test_initialize_creates_intent(self, httpx_mock, intent_cache, intent_response_payload):
        httpx_mock.add_response(method="POST", url=INTENTS_URL, json=intent_response_payload, status_code=201)
        recorder = _Recorder()

        async with ReevitClient("pk_test_123") as client:
            session = CheckoutSession(client, _config(), callbacks=recorder.callbacks(), cache=intent_cache)
            intent = await session.initialize()

        assert intent.id == "pi_123"
        assert intent.available_methods == ["card", "mobile_money"]
        assert session.state.status == CheckoutStatus.READY
        assert session.state.payment_intent == intent
        assert recorder.statuses == [CheckoutStatus.LOADING, CheckoutStatus.READY]

        request = httpx_mock.get_request()
        assert request.headers["Idempotency-Key"] == session.identity.idempotency_key
        assert json.loads(request.content)["reference"] == session.identity.reference
        # The in-flight promise was replaced by the response
        entry = intent_cache.get(session.identity.idempotency_key)
        assert entry.promise is None
        assert entry.response.id == "pi_123"

    @pytest.mark.asyncio
    async def test_configured_methods_single_method_auto_selected(
        self, httpx_mock, intent_cache, intent_response_payload
    ):
        httpx_mock.add_response(method="POST", url=INTENTS_URL, json=intent_response_payload, status_code=201)

        async with ReevitClient("pk_test_123") as client:
            session = CheckoutSession(
                client,
                _config(payment_methods=[PaymentMethod.MOBILE_MONEY]),
                cache=intent_cache,
            )
            await session.initialize()

        assert session.state.selected_method == PaymentMethod.MOBILE_MONEY

    @pytest.mark.asyncio
    async def test_concurrent_sessions_share_one_request(
        self, httpx_mock, intent_cache, intent_response_payload
    ):
        """Two checkouts for the same payload issue a single POST."""
        httpx_mock.add_response(method="POST", url=INTENTS_URL, json=intent_response_payload, status_code=201)

        async with ReevitClient("pk_test_123") as client:
            first = CheckoutSession(client, _config(), cache=intent_cache)
            second = CheckoutSession(client, _config(), cache=intent_cache)
            intents = await asyncio.gather(first.initialize(), second.initialize())

        assert intents[0].id == intents[1].id == "pi_123"
        assert first.identity.idempotency_key == second.identity.idempotency_key
        assert first.identity.reference == second.identity.reference
        assert len(httpx_mock.get_requests()) == 1

    @pytest.mark.asyncio
    async def test_cached_response_is_reused(self, httpx_mock, intent_cache, intent_response_payload):
        httpx_mock.add_response(method="POST", url=INTENTS_URL, json=intent_response_payload, status_code=201)

        async with ReevitClient("pk_test_123") as client:
            await CheckoutSession(client, _config(), cache=intent_cache).initialize()
            again = CheckoutSession(client, _config(), cache=intent_cache)
            intent = await again.initialize()

        assert intent.id == "pi_123"
        assert again.state.status == CheckoutStatus.READY
        assert len(httpx_mock.get_requests()) == 1

    @pytest.mark.asyncio
    async def test_different_payload_creates_new_intent(
        self, httpx_mock, intent_cache, intent_response_payload
    ):
        httpx_mock.add_response(method="POST", url=INTENTS_URL, json=intent_response_payload, status_code=201)
        httpx_mock.add_response(
            method="POST",
            url=INTENTS_URL,
            json={**intent_response_payload, "id": "pi_456", "amount": 2000},
            status_code=201,
        )

        async with ReevitClient("pk_test_123") as client:
            first = await CheckoutSession(client, _config(), cache=intent_cache).initialize()
            second = await CheckoutSession(client, _config(amount=2000), cache=intent_cache).initialize()

        assert first.id == "pi_123"
        assert second.id == "pi_456"
        keys = {r.headers["Idempotency-Key"] for r in httpx_mock.get_requests()}
        assert len(keys) == 2

    @pytest.mark.asyncio
    async def test_failure_clears_cache_and_allows_retry(
        self, httpx_mock, intent_cache, intent_response_payload
    ):
        httpx_mock.add_response(
            method="POST",
            url=INTENTS_URL,
            status_code=401,
            json={"error": {"code": "unauthorized", "message": "Invalid public key"}},
        )
        httpx_mock.add_response(method="POST", url=INTENTS_URL, json=intent_response_payload, status_code=201)
        recorder = _Recorder()

        async with ReevitClient("pk_test_123") as client:
            session = CheckoutSession(client, _config(), callbacks=recorder.callbacks(), cache=intent_cache)
            assert await session.initialize() is None

            assert session.state.status == CheckoutStatus.FAILED
            assert session.state.error.code == "unauthorized"
            assert recorder.errors[0].message == "Invalid public key"
            assert intent_cache.get(session.identity.idempotency_key) is None

            intent = await session.initialize()

        assert intent.id == "pi_123"
        assert session.state.status == CheckoutStatus.READY
        assert session.state.error is None
        assert len(httpx_mock.get_requests()) == 2

    @pytest.mark.asyncio
    async def test_initial_payment_intent_skips_network(self, intent_cache):
        intent = PaymentIntent(
            id="pi_pre",
            client_secret="cs_pre",
            amount=1000,
            currency="GHS",
            status="pending",
            recommended_psp="hubtel",
            available_methods=["mobile_money"],
        )

        async with ReevitClient("pk_test_123") as client:
            session = CheckoutSession(client, _config(initial_payment_intent=intent), cache=intent_cache)
            result = await session.initialize()

        assert result is intent
        assert session.state.status == CheckoutStatus.READY
        assert session.state.selected_method == "mobile_money"
        assert len(intent_cache) == 0


class TestProcessing:
    """Tests for confirm, cancel, reset and close."""

    @pytest.mark.asyncio
    async def test_confirm_success(
        self, httpx_mock, intent_cache, intent_response_payload, payment_detail_payload
    ):
        httpx_mock.add_response(method="POST", url=INTENTS_URL, json=intent_response_payload, status_code=201)
        httpx_mock.add_response(
            method="POST",
            url=f"{BASE_URL}/v1/payments/pi_123/confirm-intent?client_secret=cs_abc",
            json=payment_detail_payload,
        )
        recorder = _Recorder()

        async with ReevitClient("pk_test_123") as client:
            session = CheckoutSession(client, _config(), callbacks=recorder.callbacks(), cache=intent_cache)
            await session.initialize()
            session.select_method(PaymentMethod.MOBILE_MONEY)
            result = await session.confirm()

        assert result.status == "success"
        assert result.payment_id == "pi_123"
        assert result.reference == "order_42"
        assert result.psp == "paystack"
        assert result.psp_reference == "psp_ref_9"
        assert result.payment_method == PaymentMethod.MOBILE_MONEY
        assert session.state.status == CheckoutStatus.SUCCESS
        assert recorder.results == [result]
        assert recorder.statuses == [
            CheckoutStatus.LOADING,
            CheckoutStatus.READY,
            CheckoutStatus.METHOD_SELECTED,
            CheckoutStatus.PROCESSING,
            CheckoutStatus.SUCCESS,
        ]

    @pytest.mark.asyncio
    async def test_confirm_with_provider_reference(
        self, httpx_mock, intent_cache, intent_response_payload, payment_detail_payload
    ):
        """A PSP reference routes confirmation through the confirm endpoint."""
        httpx_mock.add_response(method="POST", url=INTENTS_URL, json=intent_response_payload, status_code=201)
        httpx_mock.add_response(
            method="POST",
            url=f"{BASE_URL}/v1/payments/pi_123/confirm",
            json=payment_detail_payload,
        )

        async with ReevitClient("pk_test_123") as client:
            session = CheckoutSession(client, _config(), cache=intent_cache)
            await session.initialize()
            result = await session.confirm("psp_ref_9")

        assert result.status == "success"
        confirm_request = httpx_mock.get_requests()[-1]
        assert json.loads(confirm_request.content) == {"provider_ref_id": "psp_ref_9"}

    @pytest.mark.asyncio
    async def test_confirm_pending(
        self, httpx_mock, intent_cache, intent_response_payload, payment_detail_payload
    ):
        httpx_mock.add_response(method="POST", url=INTENTS_URL, json=intent_response_payload, status_code=201)
        httpx_mock.add_response(
            method="POST",
            url=f"{BASE_URL}/v1/payments/pi_123/confirm-intent?client_secret=cs_abc",
            json={**payment_detail_payload, "status": "processing"},
        )

        async with ReevitClient("pk_test_123") as client:
            session = CheckoutSession(client, _config(), cache=intent_cache)
            await session.initialize()
            result = await session.confirm()

        assert result.status == "pending"
        assert result.payment_method == "mobile_money"

    @pytest.mark.asyncio
    async def test_confirm_failed_payment(
        self, httpx_mock, intent_cache, intent_response_payload, payment_detail_payload
    ):
        httpx_mock.add_response(method="POST", url=INTENTS_URL, json=intent_response_payload, status_code=201)
        httpx_mock.add_response(
            method="POST",
            url=f"{BASE_URL}/v1/payments/pi_123/confirm-intent?client_secret=cs_abc",
            json={**payment_detail_payload, "status": "failed"},
        )
        recorder = _Recorder()

        async with ReevitClient("pk_test_123") as client:
            session = CheckoutSession(client, _config(), callbacks=recorder.callbacks(), cache=intent_cache)
            await session.initialize()
            assert await session.confirm() is None

        assert session.state.status == CheckoutStatus.FAILED
        assert session.state.error.code == "payment_failed"
        assert recorder.errors[0].recoverable is True
        assert recorder.results == []

    @pytest.mark.asyncio
    async def test_confirm_api_error(self, httpx_mock, intent_cache, intent_response_payload):
        httpx_mock.add_response(method="POST", url=INTENTS_URL, json=intent_response_payload, status_code=201)
        httpx_mock.add_response(
            method="POST",
            url=f"{BASE_URL}/v1/payments/pi_123/confirm-intent?client_secret=cs_abc",
            status_code=402,
            json={"error": {"code": "payment_declined", "message": "Insufficient funds"}},
        )

        async with ReevitClient("pk_test_123") as client:
            session = CheckoutSession(client, _config(), cache=intent_cache)
            await session.initialize()
            await session.confirm()

        assert session.state.status == CheckoutStatus.FAILED
        assert session.state.error.code == "payment_declined"
        assert session.state.error.details["http_status"] == 402

    @pytest.mark.asyncio
    async def test_confirm_requires_intent(self, intent_cache):
        async with ReevitClient("pk_test_123") as client:
            session = CheckoutSession(client, _config(), cache=intent_cache)
            with pytest.raises(RuntimeError, match="initialize"):
                await session.confirm()

    @pytest.mark.asyncio
    async def test_reset_keeps_intent(self, httpx_mock, intent_cache, intent_response_payload):
        httpx_mock.add_response(method="POST", url=INTENTS_URL, json=intent_response_payload, status_code=201)

        async with ReevitClient("pk_test_123") as client:
            session = CheckoutSession(client, _config(), cache=intent_cache)
            intent = await session.initialize()
            session.select_method(PaymentMethod.CARD)
            state = session.reset()

        assert state.status == CheckoutStatus.READY
        assert state.payment_intent == intent
        assert state.selected_method is None

    @pytest.mark.asyncio
    async def test_cancel_clears_cache_and_closes(
        self, httpx_mock, intent_cache, intent_response_payload, payment_detail_payload
    ):
        httpx_mock.add_response(method="POST", url=INTENTS_URL, json=intent_response_payload, status_code=201)
        httpx_mock.add_response(
            method="POST",
            url=f"{BASE_URL}/v1/payments/pi_123/cancel",
            json={**payment_detail_payload, "status": "canceled"},
        )
        recorder = _Recorder()

        async with ReevitClient("pk_test_123") as client:
            session = CheckoutSession(client, _config(), callbacks=recorder.callbacks(), cache=intent_cache)
            await session.initialize()
            await session.cancel()

        assert session.state.status == CheckoutStatus.CLOSED
        assert recorder.closed == 1
        assert len(intent_cache) == 0

    @pytest.mark.asyncio
    async def test_close_without_intent(self, intent_cache):
        recorder = _Recorder()
        async with ReevitClient("pk_test_123") as client:
            session = CheckoutSession(client, _config(), callbacks=recorder.callbacks(), cache=intent_cache)
            session.close()

        assert session.state.status == CheckoutStatus.CLOSED
        assert recorder.closed == 1
        assert recorder.statuses == [CheckoutStatus.CLOSED]


class _GatedResponse:
    """Holds the intent response until released."""

    def __init__(self, status_code: int, payload: dict) -> None:
        self.status_code = status_code
        self.payload = payload
        self.started = asyncio.Event()
        self.release = asyncio.Event()

    async def respond(self, request: httpx.Request) -> httpx.Response:
        self.started.set()
        await self.release.wait()
        return httpx.Response(self.status_code, json=self.payload)


class TestCancellation:
    """Tests for cancelling initialize() while creation is in flight."""

    @pytest.mark.asyncio
    async def test_cancelled_waiter_does_not_affect_other_session(
        self, httpx_mock, intent_cache, intent_response_payload
    ):
        gate = _GatedResponse(201, intent_response_payload)
        httpx_mock.add_callback(gate.respond, method="POST", url=INTENTS_URL)

        async with ReevitClient("pk_test_123") as client:
            first = CheckoutSession(client, _config(), cache=intent_cache)
            second = CheckoutSession(client, _config(), cache=intent_cache)
            first_call = asyncio.create_task(first.initialize())
            second_call = asyncio.create_task(second.initialize())
            await gate.started.wait()

            first_call.cancel()
            gate.release.set()
            intent = await second_call
            with pytest.raises(asyncio.CancelledError):
                await first_call

        assert intent.id == "pi_123"
        assert second.state.status == CheckoutStatus.READY
        assert len(httpx_mock.get_requests()) == 1
        assert intent_cache.get(second.identity.idempotency_key).response.id == "pi_123"

    @pytest.mark.asyncio
    async def test_cancelled_initiator_still_caches_response(
        self, httpx_mock, intent_cache, intent_response_payload
    ):
        gate = _GatedResponse(201, intent_response_payload)
        httpx_mock.add_callback(gate.respond, method="POST", url=INTENTS_URL)

        async with ReevitClient("pk_test_123") as client:
            session = CheckoutSession(client, _config(), cache=intent_cache)
            call = asyncio.create_task(session.initialize())
            await gate.started.wait()
            creation = intent_cache.get(session.identity.idempotency_key).promise

            call.cancel()
            gate.release.set()
            await asyncio.wait([creation])

            # A fresh initialize() reuses the finished creation
            intent = await session.initialize()

        assert intent.id == "pi_123"
        assert len(httpx_mock.get_requests()) == 1

    @pytest.mark.asyncio
    async def test_failure_after_cancel_is_not_reported_as_unretrieved(self, httpx_mock, intent_cache):
        gate = _GatedResponse(401, {"error": {"code": "unauthorized", "message": "Invalid public key"}})
        httpx_mock.add_callback(gate.respond, method="POST", url=INTENTS_URL)
        loop = asyncio.get_running_loop()
        reported = []
        loop.set_exception_handler(lambda _loop, context: reported.append(context["message"]))

        try:
            async with ReevitClient("pk_test_123") as client:
                session = CheckoutSession(client, _config(), cache=intent_cache)
                call = asyncio.create_task(session.initialize())
                await gate.started.wait()
                key = session.identity.idempotency_key
                creation = intent_cache.get(key).promise

                call.cancel()
                gate.release.set()
                await asyncio.wait([creation])

            assert intent_cache.get(key) is None
            del creation, call
            gc.collect()
            assert reported == []
        finally:
            loop.set_exception_handler(None)
