# -*- coding: utf-8 -*-
"""
backend/tests/modules/payments/test_webhook_reconciler.py

Tests del WebhookReconciler contra la base real (SQLite en memoria):
- Verificación de firma y secreto faltante
- Deduplicación por event.id y por payment id
- Despacho a ledger y a la máquina de reintentos

Autor: Clarity
Fecha: 2026-09-14
"""

import asyncio
import hashlib
import hmac
import json
import logging
import time
from unittest.mock import AsyncMock, MagicMock

import pytest
from sqlalchemy import select

from app.modules.credits.enums import CreditSource
from app.modules.credits.models import CreditBatch
from app.modules.payments.enums import RetryStatus
from app.modules.payments.errors import (
    WebhookConfigurationError,
    WebhookPayloadError,
    WebhookSignatureError,
)
from app.modules.payments.models import WebhookEvent
from app.modules.payments.services.retry_service import PaymentRetryService
from app.modules.payments.webhooks import WebhookReconciler
from app.shared.utils.datetime_helpers import ensure_utc


def _checkout_session(**metadata_overrides):
    metadata = {"user_id": "u1", "package_id": "pkg_starter", "credits": "10"}
    metadata.update(metadata_overrides)
    return {
        "id": "cs_test_1",
        "object": "checkout.session",
        "payment_intent": "pi_checkout_1",
        "metadata": metadata,
    }


def _failed_intent(intent_id="pi_1", user_id="u1", message="Your card was declined."):
    intent = {
        "id": intent_id,
        "object": "payment_intent",
        "metadata": {"package_id": "pkg_starter"},
        "last_payment_error": {"message": message},
    }
    if user_id:
        intent["metadata"]["user_id"] = user_id
    return intent


@pytest.fixture
def retries(session_factory, clock):
    provider = MagicMock()
    provider.confirm_payment_intent = AsyncMock()
    return PaymentRetryService(session_factory, provider, clock=clock)


@pytest.fixture
def reconciler(session_factory, ledger, retries, clock):
    return WebhookReconciler(
        session_factory,
        ledger,
        retries,
        webhook_secret=WEBHOOK_SECRET,
        clock=clock,
    )


WEBHOOK_SECRET = "whsec_test_secret"


def stripe_event(event_type, obj, event_id="evt_1"):
    return json.dumps(
        {"id": event_id, "object": "event", "type": event_type, "data": {"object": obj}}
    ).encode("utf-8")


def sign_stripe_payload(payload, secret=WEBHOOK_SECRET, timestamp=None):
    ts = timestamp if timestamp is not None else int(time.time())
    signature = hmac.new(
        secret.encode("utf-8"), f"{ts}.".encode("utf-8") + payload, hashlib.sha256
    ).hexdigest()
    return f"t={ts},v1={signature}"


def _signed(event_type, obj, event_id="evt_1"):
    payload = stripe_event(event_type, obj, event_id)
    return payload, sign_stripe_payload(payload)


class TestVerification:

    def test_missing_secret_is_configuration_error(self, session_factory, ledger, retries):
        reconciler = WebhookReconciler(session_factory, ledger, retries, webhook_secret=None)
        payload, header = _signed("checkout.session.completed", _checkout_session())

        with pytest.raises(WebhookConfigurationError):
            reconciler.verify_event(payload, header)

    def test_missing_header(self, reconciler):
        payload, _ = _signed("checkout.session.completed", _checkout_session())
        with pytest.raises(WebhookSignatureError):
            reconciler.verify_event(payload, None)

    def test_wrong_secret(self, reconciler):
        payload = stripe_event("checkout.session.completed", _checkout_session())
        header = sign_stripe_payload(payload, secret="whsec_other")
        with pytest.raises(WebhookSignatureError):
            reconciler.verify_event(payload, header)

    def test_tampered_payload(self, reconciler):
        payload, header = _signed("checkout.session.completed", _checkout_session())
        tampered = payload.replace(b'"10"', b'"1000"')
        with pytest.raises(WebhookSignatureError):
            reconciler.verify_event(tampered, header)

    def test_stale_timestamp(self, reconciler):
        payload = stripe_event("checkout.session.completed", _checkout_session())
        header = sign_stripe_payload(payload, timestamp=1_000_000)
        with pytest.raises(WebhookSignatureError):
            reconciler.verify_event(payload, header)

    def test_valid_signature_returns_event(self, reconciler):
        payload, header = _signed("checkout.session.completed", _checkout_session(), "evt_9")
        event = reconciler.verify_event(payload, header)
        assert event["id"] == "evt_9"


class TestCheckoutCompleted:

    @pytest.mark.asyncio
    async def test_adds_purchased_credits_with_twelve_month_expiry(
        self, reconciler, ledger, session_factory, clock
    ):
        result = await reconciler.handle(*_signed("checkout.session.completed", _checkout_session()))

        assert result.status == "processed"
        assert await ledger.get_balance("u1") == 10

        async with session_factory() as session:
            batches = list((await session.execute(select(CreditBatch))).scalars().all())
        assert len(batches) == 1
        assert batches[0].source == CreditSource.PURCHASE
        assert ensure_utc(batches[0].expires_at) == clock().replace(year=clock().year + 1)

    @pytest.mark.asyncio
    async def test_redelivered_event_is_duplicate(self, reconciler, ledger):
        signed = _signed("checkout.session.completed", _checkout_session(), "evt_1")

        first = await reconciler.handle(*signed)
        second = await reconciler.handle(*signed)

        assert first.status == "processed"
        assert second.status == "duplicate"
        assert await ledger.get_balance("u1") == 10

    @pytest.mark.asyncio
    async def test_distinct_events_same_payment_credit_once(self, reconciler, ledger):
        await reconciler.handle(*_signed("checkout.session.completed", _checkout_session(), "evt_1"))
        await reconciler.handle(*_signed("checkout.session.completed", _checkout_session(), "evt_2"))

        assert await ledger.get_balance("u1") == 10

    @pytest.mark.asyncio
    async def test_missing_user_raises_and_is_not_recorded(self, reconciler, ledger):
        session = _checkout_session()
        del session["metadata"]["user_id"]
        signed = _signed("checkout.session.completed", session, "evt_bad")

        with pytest.raises(WebhookPayloadError):
            await reconciler.handle(*signed)

        # Sin registro: la reentrega vuelve a intentarse
        with pytest.raises(WebhookPayloadError):
            await reconciler.handle(*signed)

    @pytest.mark.asyncio
    async def test_invalid_credits_raises(self, reconciler):
        with pytest.raises(WebhookPayloadError):
            await reconciler.handle(
                *_signed("checkout.session.completed", _checkout_session(credits="zero"))
            )

    @pytest.mark.asyncio
    async def test_session_id_used_when_no_payment_intent(self, reconciler, ledger):
        session = _checkout_session()
        del session["payment_intent"]

        await reconciler.handle(*_signed("checkout.session.completed", session))

        page = await ledger.list_history("u1")
        assert [t.reference_id for t in page.transactions] == ["cs_test_1"]


class TestPaymentIntentEvents:

    @pytest.mark.asyncio
    async def test_payment_failed_creates_retry(self, reconciler, retries):
        result = await reconciler.handle(*_signed("payment_intent.payment_failed", _failed_intent()))

        assert result.status == "processed"
        retry = await retries.get_retry("pi_1")
        assert retry.status == RetryStatus.PENDING
        assert retry.package_id == "pkg_starter"
        assert retry.error_message == "Your card was declined."

    @pytest.mark.asyncio
    async def test_payment_failed_without_user_is_noop(self, reconciler, retries):
        result = await reconciler.handle(
            *_signed("payment_intent.payment_failed", _failed_intent(user_id=None))
        )

        assert result.status == "processed"
        assert await retries.get_retry("pi_1") is None

    @pytest.mark.asyncio
    async def test_payment_failed_default_message(self, reconciler, retries):
        intent = _failed_intent()
        del intent["last_payment_error"]

        await reconciler.handle(*_signed("payment_intent.payment_failed", intent))

        assert (await retries.get_retry("pi_1")).error_message == "Payment failed"

    @pytest.mark.asyncio
    async def test_payment_succeeded_closes_retry(self, reconciler, retries):
        await reconciler.handle(*_signed("payment_intent.payment_failed", _failed_intent(), "evt_1"))
        await reconciler.handle(
            *_signed("payment_intent.succeeded", {"id": "pi_1", "object": "payment_intent"}, "evt_2")
        )

        retry = await retries.get_retry("pi_1")
        assert retry.status == RetryStatus.SUCCEEDED
        assert retry.next_retry_at is None

    @pytest.mark.asyncio
    async def test_unknown_type_is_ignored(self, reconciler):
        result = await reconciler.handle(*_signed("customer.created", {"id": "cus_1"}))
        assert result.status == "ignored"


class TestPaymentFailedRedelivery:
    """Una falla reentregada nunca consume dos intentos."""

    @pytest.mark.asyncio
    async def test_concurrent_deliveries_count_one_attempt(self, reconciler, retries):
        await reconciler.handle(*_signed("payment_intent.payment_failed", _failed_intent(), "evt_1"))
        signed = _signed("payment_intent.payment_failed", _failed_intent(), "evt_2")

        results = await asyncio.gather(reconciler.handle(*signed), reconciler.handle(*signed))

        assert sorted(r.status for r in results) == ["duplicate", "processed"]
        retry = await retries.get_retry("pi_1")
        assert retry.attempts == 1

    @pytest.mark.asyncio
    async def test_event_recorded_with_retry_row(self, reconciler, retries, session_factory):
        signed = _signed("payment_intent.payment_failed", _failed_intent(), "evt_1")
        await reconciler.handle(*signed)

        # Otra instancia que no alcanzó a ver el registro previo
        reconciler._already_processed = AsyncMock(return_value=False)
        await reconciler.handle(*signed)

        retry = await retries.get_retry("pi_1")
        assert retry.attempts == 0
        async with session_factory() as session:
            rows = (
                await session.execute(select(WebhookEvent).where(WebhookEvent.event_id == "evt_1"))
            ).scalars().all()
        assert len(rows) == 1
        assert rows[0].event_type == "payment_intent.payment_failed"

    @pytest.mark.asyncio
    async def test_failure_is_logged_with_event_type(self, reconciler, caplog):
        session = _checkout_session()
        del session["metadata"]["user_id"]

        with caplog.at_level(logging.ERROR, logger="app.modules.payments.webhooks.reconciler"):
            with pytest.raises(WebhookPayloadError):
                await reconciler.handle(*_signed("checkout.session.completed", session, "evt_bad"))

        assert "stripe_webhook_failed id=evt_bad type=checkout.session.completed" in caplog.text
