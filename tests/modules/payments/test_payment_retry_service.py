# -*- coding: utf-8 -*-
"""
backend/tests/modules/payments/test_payment_retry_service.py

Tests de la máquina de estados de reintentos (PaymentRetryService):
- Backoff fijo +1h / +6h / +24h y failed al tercer intento consumido
- El sweep nunca toca filas con next_retry_at en el futuro
- Reclamo atómico antes de llamar al proveedor
- Convergencia webhook + sweep sobre la misma fila

Autor: Clarity
Fecha: 2026-09-14
"""

from datetime import timedelta
from unittest.mock import AsyncMock, MagicMock

import pytest

from app.modules.payments.enums import RetryOutcome, RetryStatus
from app.modules.payments.errors import ProviderPermanentError, ProviderTransientError
from app.modules.payments.providers.stripe_provider import PaymentIntentResult
from app.modules.payments.services.retry_service import (
    MAX_ATTEMPTS,
    RETRY_SCHEDULE,
    PaymentRetryService,
)
from app.shared.utils.datetime_helpers import ensure_utc


def _succeeded(intent_id: str) -> PaymentIntentResult:
    return PaymentIntentResult(payment_intent_id=intent_id, status="succeeded")


@pytest.fixture
def provider():
    provider = MagicMock()
    provider.confirm_payment_intent = AsyncMock()
    return provider


@pytest.fixture
def notifier():
    notifier = MagicMock()
    notifier.notify_payment_failed = AsyncMock()
    return notifier


@pytest.fixture
def service(session_factory, provider, notifier, clock) -> PaymentRetryService:
    return PaymentRetryService(
        session_factory,
        provider,
        notifier=notifier,
        claim_lease=timedelta(minutes=10),
        clock=clock,
    )


class TestHandlePaymentFailure:

    def test_schedule_constants(self):
        assert RETRY_SCHEDULE == (timedelta(hours=1), timedelta(hours=6), timedelta(hours=24))
        assert MAX_ATTEMPTS == 3

    @pytest.mark.asyncio
    async def test_first_failure_creates_pending_row_due_in_one_hour(self, service, clock):
        status = await service.handle_payment_failure("u1", "pi_1", "pkg_starter", "card declined")

        retry = await service.get_retry("pi_1")
        assert status == RetryStatus.PENDING
        assert retry.attempts == 0
        assert retry.status == RetryStatus.PENDING
        assert retry.package_id == "pkg_starter"
        assert retry.error_message == "card declined"
        assert ensure_utc(retry.next_retry_at) == clock() + timedelta(hours=1)

    @pytest.mark.asyncio
    async def test_repeated_failures_follow_backoff_then_fail(self, service, notifier, clock):
        await service.handle_payment_failure("u1", "pi_1", None, "e0")

        clock.advance(minutes=5)
        await service.handle_payment_failure("u1", "pi_1", None, "e1")
        retry = await service.get_retry("pi_1")
        assert retry.attempts == 1
        assert ensure_utc(retry.next_retry_at) == clock() + timedelta(hours=6)

        clock.advance(minutes=5)
        await service.handle_payment_failure("u1", "pi_1", None, "e2")
        retry = await service.get_retry("pi_1")
        assert retry.attempts == 2
        assert ensure_utc(retry.next_retry_at) == clock() + timedelta(hours=24)
        notifier.notify_payment_failed.assert_not_called()

        clock.advance(minutes=5)
        status = await service.handle_payment_failure("u1", "pi_1", None, "e3")
        await service.notifications.drain()

        retry = await service.get_retry("pi_1")
        assert status == RetryStatus.FAILED
        assert retry.attempts == 3
        assert retry.status == RetryStatus.FAILED
        assert retry.next_retry_at is None
        notifier.notify_payment_failed.assert_awaited_once_with(
            user_id="u1",
            payment_intent_id="pi_1",
            package_id=None,
            error_message="e3",
        )

    @pytest.mark.asyncio
    async def test_terminal_row_is_not_modified(self, service):
        await service.handle_payment_failure("u1", "pi_1", None, "e0")
        await service.mark_retry_succeeded("pi_1")

        status = await service.handle_payment_failure("u1", "pi_1", None, "late failure")

        retry = await service.get_retry("pi_1")
        assert status == RetryStatus.SUCCEEDED
        assert retry.attempts == 0
        assert retry.error_message is None

    @pytest.mark.asyncio
    async def test_notification_failure_does_not_break_state_change(self, service, notifier):
        notifier.notify_payment_failed.side_effect = RuntimeError("smtp down")
        for i in range(MAX_ATTEMPTS + 1):
            await service.handle_payment_failure("u1", "pi_1", None, f"e{i}")
        await service.notifications.drain()

        retry = await service.get_retry("pi_1")
        assert retry.status == RetryStatus.FAILED

    @pytest.mark.asyncio
    async def test_same_event_applies_once(self, service, clock):
        await service.handle_payment_failure("u1", "pi_1", None, "e0", event_id="evt_1")
        clock.advance(minutes=5)
        await service.handle_payment_failure("u1", "pi_1", None, "e1", event_id="evt_2")

        clock.advance(minutes=5)
        status = await service.handle_payment_failure("u1", "pi_1", None, "e1 again", event_id="evt_2")

        retry = await service.get_retry("pi_1")
        assert status == RetryStatus.PENDING
        assert retry.attempts == 1
        assert retry.error_message == "e1"


class TestMarkRetrySucceeded:

    @pytest.mark.asyncio
    async def test_is_idempotent(self, service):
        await service.handle_payment_failure("u1", "pi_1", None, "e0")

        assert await service.mark_retry_succeeded("pi_1") is True
        assert await service.mark_retry_succeeded("pi_1") is False

        retry = await service.get_retry("pi_1")
        assert retry.status == RetryStatus.SUCCEEDED
        assert retry.next_retry_at is None

    @pytest.mark.asyncio
    async def test_unknown_intent_is_noop(self, service):
        assert await service.mark_retry_succeeded("pi_unknown") is False
        assert await service.get_retry("pi_unknown") is None


class TestSweep:

    @pytest.mark.asyncio
    async def test_never_processes_rows_not_yet_due(self, service, provider, clock):
        await service.handle_payment_failure("u1", "pi_1", None, "e0")
        clock.advance(minutes=59)

        result = await service.process_all_pending_retries()

        assert result.to_dict() == {"processed": 0, "succeeded": 0, "failed": 0, "pending": 0}
        provider.confirm_payment_intent.assert_not_called()

    @pytest.mark.asyncio
    async def test_due_row_succeeds(self, service, provider, clock):
        await service.handle_payment_failure("u1", "pi_1", None, "e0")
        clock.advance(hours=1)
        provider.confirm_payment_intent.return_value = _succeeded("pi_1")

        result = await service.process_all_pending_retries()

        provider.confirm_payment_intent.assert_awaited_once_with("pi_1")
        assert result.to_dict() == {"processed": 1, "succeeded": 1, "failed": 0, "pending": 0}
        retry = await service.get_retry("pi_1")
        assert retry.status == RetryStatus.SUCCEEDED
        assert retry.next_retry_at is None
        assert retry.attempts == 0

    @pytest.mark.asyncio
    async def test_permanent_error_consumes_attempt_and_reschedules(self, service, provider, clock):
        await service.handle_payment_failure("u1", "pi_1", None, "e0")
        clock.advance(hours=1)
        provider.confirm_payment_intent.side_effect = ProviderPermanentError(
            "Your card was declined.", code="card_declined", http_status=402
        )

        result = await service.process_all_pending_retries()

        assert result.pending == 1
        retry = await service.get_retry("pi_1")
        assert retry.status == RetryStatus.PENDING
        assert retry.attempts == 1
        assert retry.error_message == "Your card was declined."
        assert ensure_utc(retry.next_retry_at) == clock() + timedelta(hours=6)

    @pytest.mark.asyncio
    async def test_transient_error_also_consumes_attempt(self, service, provider, clock):
        await service.handle_payment_failure("u1", "pi_1", None, "e0")
        clock.advance(hours=2)
        provider.confirm_payment_intent.side_effect = ProviderTransientError("timeout")

        outcome = await service.process_retry(await service.get_retry("pi_1"))

        assert outcome == RetryOutcome.PENDING
        assert (await service.get_retry("pi_1")).attempts == 1

    @pytest.mark.asyncio
    async def test_non_succeeded_status_counts_as_failure(self, service, provider, clock):
        await service.handle_payment_failure("u1", "pi_1", None, "e0")
        clock.advance(hours=1)
        provider.confirm_payment_intent.return_value = PaymentIntentResult(
            payment_intent_id="pi_1",
            status="requires_payment_method",
            error_message="Insufficient funds",
        )

        outcome = await service.process_retry(await service.get_retry("pi_1"))

        assert outcome == RetryOutcome.PENDING
        retry = await service.get_retry("pi_1")
        assert retry.error_message == "Insufficient funds"

    @pytest.mark.asyncio
    async def test_unexpected_exception_counts_as_failure(self, service, provider, clock):
        await service.handle_payment_failure("u1", "pi_1", None, "e0")
        clock.advance(hours=1)
        provider.confirm_payment_intent.side_effect = RuntimeError("boom")

        outcome = await service.process_retry(await service.get_retry("pi_1"))

        assert outcome == RetryOutcome.PENDING
        assert (await service.get_retry("pi_1")).error_message == "boom"

    @pytest.mark.asyncio
    async def test_last_attempt_fails_and_notifies(self, service, provider, notifier, clock):
        for i in range(MAX_ATTEMPTS):
            await service.handle_payment_failure("u1", "pi_1", "pkg_pro", f"e{i}")
        assert (await service.get_retry("pi_1")).attempts == 2
        clock.advance(hours=25)
        provider.confirm_payment_intent.side_effect = ProviderPermanentError("declined")

        result = await service.process_all_pending_retries()
        await service.notifications.drain()

        assert result.failed == 1
        retry = await service.get_retry("pi_1")
        assert retry.status == RetryStatus.FAILED
        assert retry.next_retry_at is None
        notifier.notify_payment_failed.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_stale_snapshot_is_skipped(self, service, provider, clock):
        await service.handle_payment_failure("u1", "pi_1", None, "e0")
        snapshot = await service.get_retry("pi_1")
        # Otra ruta movió la fila después de la lectura
        await service.handle_payment_failure("u1", "pi_1", None, "e1")
        clock.advance(hours=7)

        outcome = await service.process_retry(snapshot)

        assert outcome == RetryOutcome.SKIPPED
        provider.confirm_payment_intent.assert_not_called()

    @pytest.mark.asyncio
    async def test_claimed_row_leaves_sweep_window(self, service, provider, clock):
        await service.handle_payment_failure("u1", "pi_1", None, "e0")
        clock.advance(hours=1)
        snapshot = await service.get_retry("pi_1")

        async def confirm_while_second_sweep_runs(intent_id):
            # Un segundo sweep concurrente no ve la fila reclamada
            second = await service.process_all_pending_retries()
            assert second.processed == 0
            return _succeeded(intent_id)

        provider.confirm_payment_intent.side_effect = confirm_while_second_sweep_runs

        assert await service.process_retry(snapshot) == RetryOutcome.SUCCEEDED
        provider.confirm_payment_intent.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_failure_webhook_during_retry_only_records_error(self, service, provider, clock):
        await service.handle_payment_failure("u1", "pi_1", None, "e0")
        clock.advance(hours=1)

        async def confirm_with_webhook_race(intent_id):
            status = await service.handle_payment_failure("u1", intent_id, None, "declined again")
            assert status == RetryStatus.RETRYING
            raise ProviderPermanentError("declined again")

        provider.confirm_payment_intent.side_effect = confirm_with_webhook_race

        outcome = await service.process_retry(await service.get_retry("pi_1"))

        retry = await service.get_retry("pi_1")
        assert outcome == RetryOutcome.PENDING
        # Un solo intento consumido pese a las dos rutas
        assert retry.attempts == 1

    @pytest.mark.asyncio
    async def test_success_webhook_during_retry_wins(self, service, provider, clock):
        await service.handle_payment_failure("u1", "pi_1", None, "e0")
        clock.advance(hours=1)

        async def confirm_after_webhook(intent_id):
            await service.mark_retry_succeeded(intent_id)
            return _succeeded(intent_id)

        provider.confirm_payment_intent.side_effect = confirm_after_webhook

        outcome = await service.process_retry(await service.get_retry("pi_1"))

        assert outcome == RetryOutcome.SUCCEEDED
        assert (await service.get_retry("pi_1")).status == RetryStatus.SUCCEEDED

    @pytest.mark.asyncio
    async def test_list_user_retries_excludes_terminal(self, service):
        await service.handle_payment_failure("u1", "pi_1", None, "e0")
        await service.handle_payment_failure("u1", "pi_2", None, "e0")
        await service.mark_retry_succeeded("pi_2")

        retries = await service.list_user_retries("u1")

        assert [r.payment_intent_id for r in retries] == ["pi_1"]
