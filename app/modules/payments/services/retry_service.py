# -*- coding: utf-8 -*-
"""
backend/app/modules/payments/services/retry_service.py

Servicio de reintentos de pagos fallidos (PaymentRetryService).

Máquina de estados por payment_intent_id:

    (none) --falla--> pending --vence--> retrying --confirm ok--> succeeded
                         ^                   |
                         +--- falla, attempts < 3
    attempts == 3 en una falla ----------------------------------> failed

Backoff fijo (no exponencial): +1h, +6h, +24h. Máximo 3 intentos.

Concurrencia:
- El webhook (handle_payment_failure / mark_retry_succeeded) y el sweep
  (process_retry) pueden tocar la misma fila a la vez. Toda transición es
  un UPDATE condicional sobre (status, attempts).
- El sweep reclama la fila (pending → retrying) ANTES de llamar a Stripe y
  la deja fuera de la ventana del sweep durante un lease; si el proceso
  muere a mitad, la fila vuelve a ser elegible al vencer el lease.
- Mientras una fila está en retrying el intento pertenece al sweep: un
  payment_failed que llegue en ese lapso solo actualiza error_message.
- Una falla que llega por webhook registra su event.id en la misma
  transacción que la fila, así la reentrega no cuenta dos veces.

Autor: Clarity
Fecha: 2026-09-09
"""

from __future__ import annotations

import logging
from dataclasses import asdict, dataclass
from datetime import datetime, timedelta
from typing import Callable, List, Optional, Tuple

from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from app.shared.metrics import PAYMENT_RETRY_OUTCOMES_TOTAL
from app.shared.utils.datetime_helpers import utcnow
from ..enums import RetryOutcome, RetryStatus, StripeEventType
from ..errors import PaymentProviderError
from ..models import PaymentRetry
from ..providers.stripe_provider import StripeProvider
from ..repositories import ACTIVE_STATUSES, PaymentRetryRepository, WebhookEventRepository
from .notifications import (
    BackgroundNotificationDispatcher,
    LoggingPaymentFailureNotifier,
    PaymentFailureNotifier,
)

logger = logging.getLogger(__name__)

# Retraso antes del intento N (índice = attempts ya consumidos)
RETRY_SCHEDULE: Tuple[timedelta, ...] = (
    timedelta(hours=1),
    timedelta(hours=6),
    timedelta(hours=24),
)
MAX_ATTEMPTS = 3

# Reintentos internos ante compare-and-swap perdido
_CAS_MAX_TRIES = 3


class _RetryConflict(Exception):
    """La fila cambió entre la lectura y el UPDATE condicional."""


@dataclass
class RetrySweepResult:
    processed: int = 0
    succeeded: int = 0
    failed: int = 0
    pending: int = 0

    def record(self, outcome: RetryOutcome) -> None:
        if outcome == RetryOutcome.SKIPPED:
            return
        self.processed += 1
        if outcome == RetryOutcome.SUCCEEDED:
            self.succeeded += 1
        elif outcome == RetryOutcome.FAILED:
            self.failed += 1
        else:
            self.pending += 1

    def to_dict(self) -> dict:
        return asdict(self)


def next_retry_state(attempts: int, now: datetime) -> Tuple[RetryStatus, Optional[datetime]]:
    """
    Estado y próxima fecha tras registrar `attempts` intentos fallidos.

    >>> from datetime import timezone
    >>> t0 = datetime(2026, 1, 1, tzinfo=timezone.utc)
    >>> next_retry_state(1, t0)[1] - t0 == timedelta(hours=6)
    True
    >>> next_retry_state(3, t0)
    (<RetryStatus.FAILED: 'failed'>, None)
    """
    if attempts >= MAX_ATTEMPTS:
        return RetryStatus.FAILED, None
    return RetryStatus.PENDING, now + RETRY_SCHEDULE[attempts]


class PaymentRetryService:
    """
    Reintentos de pagos fallidos.

    Args:
        session_factory: una transacción corta por transición de estado
        provider: StripeProvider inyectado (mismo cliente en todo el proceso)
        notifier: aviso al usuario cuando el pago queda en failed
        claim_lease: cuánto tiempo queda fuera del sweep una fila reclamada
        clock: fuente de "ahora" (inyectable en pruebas)
    """

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        provider: StripeProvider,
        *,
        notifier: Optional[PaymentFailureNotifier] = None,
        claim_lease: timedelta = timedelta(minutes=10),
        sweep_batch_size: int = 100,
        clock: Optional[Callable[[], datetime]] = None,
    ) -> None:
        self._session_factory = session_factory
        self._provider = provider
        self._notifications = BackgroundNotificationDispatcher(
            notifier or LoggingPaymentFailureNotifier()
        )
        self._claim_lease = claim_lease
        self._sweep_batch_size = sweep_batch_size
        self._clock = clock or utcnow
        self.retries = PaymentRetryRepository()
        self.webhook_events = WebhookEventRepository()

    @property
    def notifications(self) -> BackgroundNotificationDispatcher:
        return self._notifications

    # ------------------------------------------------------------------
    # Lectura
    # ------------------------------------------------------------------

    async def get_retry(self, payment_intent_id: str) -> Optional[PaymentRetry]:
        async with self._session_factory() as session:
            return await self.retries.get_by_intent(session, payment_intent_id)

    async def list_user_retries(self, user_id: str) -> List[PaymentRetry]:
        """Reintentos no terminales del usuario."""
        async with self._session_factory() as session:
            return await self.retries.list_active_by_user(session, user_id)

    # ------------------------------------------------------------------
    # Ruta webhook
    # ------------------------------------------------------------------

    async def handle_payment_failure(
        self,
        user_id: str,
        payment_intent_id: str,
        package_id: Optional[str],
        error_message: Optional[str],
        *,
        event_id: Optional[str] = None,
    ) -> RetryStatus:
        """
        Registra una falla reportada por el proveedor.

        - Sin fila: crea una con attempts=0, pending, next_retry_at=+1h.
        - Con fila pending: attempts+1 y backoff, o failed al llegar a 3.
        - Con fila retrying: solo guarda error_message (el sweep es dueño).
        - Con fila terminal: no hace nada.

        Con `event_id` (ruta webhook) el evento se registra en la misma
        transacción que la fila: una reentrega del mismo evento, aunque
        llegue en paralelo o después de un fallo posterior al commit, no
        consume otro intento.

        Returns:
            Estado de la fila tras aplicar la falla.
        """
        for _ in range(_CAS_MAX_TRIES):
            try:
                status, became_failed = await self._apply_failure(
                    user_id, payment_intent_id, package_id, error_message, event_id
                )
            except (IntegrityError, _RetryConflict):
                # Otra ruta creó o movió la fila (o registró el evento); se relee
                logger.info("payment_retry_conflict intent=%s (re-reading)", payment_intent_id)
                continue

            if became_failed:
                self._notify_failed(user_id, payment_intent_id, package_id, error_message)
            return status

        raise RuntimeError(f"Could not record payment failure for {payment_intent_id}")

    async def _apply_failure(
        self,
        user_id: str,
        payment_intent_id: str,
        package_id: Optional[str],
        error_message: Optional[str],
        event_id: Optional[str],
    ) -> Tuple[RetryStatus, bool]:
        now = self._clock()
        async with self._session_factory() as session, session.begin():
            if event_id:
                if await self.webhook_events.exists(session, event_id):
                    retry = await self.retries.get_by_intent(session, payment_intent_id)
                    logger.info(
                        "payment_failure_event_already_applied intent=%s event=%s",
                        payment_intent_id, event_id,
                    )
                    return (retry.status if retry is not None else RetryStatus.PENDING), False
                await self.webhook_events.record(
                    session,
                    event_id=event_id,
                    event_type=StripeEventType.PAYMENT_INTENT_FAILED.value,
                )

            retry = await self.retries.get_by_intent(session, payment_intent_id)

            if retry is None:
                await self.retries.create(
                    session,
                    user_id=user_id,
                    payment_intent_id=payment_intent_id,
                    package_id=package_id,
                    error_message=error_message,
                    next_retry_at=now + RETRY_SCHEDULE[0],
                    now=now,
                )
                logger.info(
                    "payment_retry_created user=%s intent=%s next_in=%s",
                    user_id, payment_intent_id, RETRY_SCHEDULE[0],
                )
                return RetryStatus.PENDING, False

            if retry.status.is_terminal:
                logger.info(
                    "payment_failure_ignored intent=%s status=%s",
                    payment_intent_id, retry.status.value,
                )
                return retry.status, False

            if retry.status == RetryStatus.RETRYING:
                ok = await self.retries.transition(
                    session,
                    retry.id,
                    expected_statuses=(RetryStatus.RETRYING,),
                    expected_attempts=retry.attempts,
                    error_message=error_message,
                    updated_at=now,
                )
                if not ok:
                    raise _RetryConflict(payment_intent_id)
                logger.info("payment_failure_during_retry intent=%s", payment_intent_id)
                return RetryStatus.RETRYING, False

            attempts = retry.attempts + 1
            status, next_at = next_retry_state(attempts, now)
            ok = await self.retries.transition(
                session,
                retry.id,
                expected_statuses=(RetryStatus.PENDING,),
                expected_attempts=retry.attempts,
                attempts=attempts,
                status=status,
                next_retry_at=next_at,
                last_attempt_at=now,
                error_message=error_message,
                updated_at=now,
            )
            if not ok:
                raise _RetryConflict(payment_intent_id)

        self._log_transition(payment_intent_id, attempts, status, next_at)
        return status, status == RetryStatus.FAILED

    async def mark_retry_succeeded(self, payment_intent_id: str) -> bool:
        """
        El proveedor reportó éxito fuera del sweep (p.ej. el usuario reintentó).

        Idempotente: solo mueve filas no terminales.

        Returns:
            True si la fila cambió a succeeded en esta llamada.
        """
        now = self._clock()
        async with self._session_factory() as session, session.begin():
            changed = await self.retries.mark_succeeded(session, payment_intent_id, now)

        if changed:
            logger.info("payment_retry_succeeded intent=%s source=webhook", payment_intent_id)
        else:
            logger.debug("payment_retry_succeeded_noop intent=%s", payment_intent_id)
        return changed

    # ------------------------------------------------------------------
    # Ruta sweep
    # ------------------------------------------------------------------

    async def process_retry(self, retry: PaymentRetry) -> RetryOutcome:
        """
        Reclama la fila, confirma el intent con Stripe y registra el resultado.

        Returns:
            SKIPPED si no se pudo reclamar (ya no vencida, otra ruta la movió).
        """
        claimed_at = self._clock()
        seen_attempts = retry.attempts

        async with self._session_factory() as session, session.begin():
            claimed = await self.retries.transition(
                session,
                retry.id,
                expected_statuses=ACTIVE_STATUSES,
                expected_attempts=seen_attempts,
                due_before=claimed_at,
                status=RetryStatus.RETRYING,
                last_attempt_at=claimed_at,
                next_retry_at=claimed_at + self._claim_lease,
                updated_at=claimed_at,
            )

        if not claimed:
            logger.info("payment_retry_claim_lost intent=%s", retry.payment_intent_id)
            PAYMENT_RETRY_OUTCOMES_TOTAL.labels(outcome=RetryOutcome.SKIPPED.value).inc()
            return RetryOutcome.SKIPPED

        error_message = await self._confirm(retry.payment_intent_id)
        outcome = await self._finalize(retry, seen_attempts, error_message)
        PAYMENT_RETRY_OUTCOMES_TOTAL.labels(outcome=outcome.value).inc()
        return outcome

    async def _confirm(self, payment_intent_id: str) -> Optional[str]:
        """Devuelve None si el pago quedó confirmado, o el mensaje de error."""
        try:
            result = await self._provider.confirm_payment_intent(payment_intent_id)
        except PaymentProviderError as e:
            logger.info(
                "payment_retry_attempt_failed intent=%s transient=%s code=%s",
                payment_intent_id, e.transient, e.code,
            )
            return e.message
        except Exception as e:
            logger.exception("payment_retry_unexpected_error intent=%s", payment_intent_id)
            return str(e) or e.__class__.__name__

        if result.succeeded:
            return None
        return result.error_message or f"Payment intent status: {result.status}"

    async def _finalize(
        self,
        retry: PaymentRetry,
        seen_attempts: int,
        error_message: Optional[str],
    ) -> RetryOutcome:
        now = self._clock()

        if error_message is None:
            async with self._session_factory() as session, session.begin():
                ok = await self.retries.transition(
                    session,
                    retry.id,
                    expected_statuses=(RetryStatus.RETRYING,),
                    expected_attempts=seen_attempts,
                    status=RetryStatus.SUCCEEDED,
                    next_retry_at=None,
                    error_message=None,
                    updated_at=now,
                )
            if ok:
                logger.info("payment_retry_succeeded intent=%s source=sweep", retry.payment_intent_id)
            else:
                # El webhook payment_intent.succeeded llegó primero
                logger.info("payment_retry_already_final intent=%s", retry.payment_intent_id)
            return RetryOutcome.SUCCEEDED

        attempts = seen_attempts + 1
        status, next_at = next_retry_state(attempts, now)
        async with self._session_factory() as session, session.begin():
            ok = await self.retries.transition(
                session,
                retry.id,
                expected_statuses=(RetryStatus.RETRYING,),
                expected_attempts=seen_attempts,
                attempts=attempts,
                status=status,
                next_retry_at=next_at,
                error_message=error_message,
                updated_at=now,
            )

        if not ok:
            logger.warning("payment_retry_finalize_lost intent=%s", retry.payment_intent_id)
            return RetryOutcome.SKIPPED

        self._log_transition(retry.payment_intent_id, attempts, status, next_at)
        if status == RetryStatus.FAILED:
            self._notify_failed(retry.user_id, retry.payment_intent_id, retry.package_id, error_message)
            return RetryOutcome.FAILED
        return RetryOutcome.PENDING

    async def process_all_pending_retries(self) -> RetrySweepResult:
        """
        Entrada del sweep: procesa las filas activas vencidas una por una.
        """
        now = self._clock()
        async with self._session_factory() as session:
            due = await self.retries.list_due(session, now, limit=self._sweep_batch_size)

        result = RetrySweepResult()
        for retry in due:
            result.record(await self.process_retry(retry))

        logger.info(
            "payment_retry_sweep due=%d processed=%d succeeded=%d failed=%d pending=%d",
            len(due), result.processed, result.succeeded, result.failed, result.pending,
        )
        return result

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _log_transition(
        self,
        payment_intent_id: str,
        attempts: int,
        status: RetryStatus,
        next_at: Optional[datetime],
    ) -> None:
        if status == RetryStatus.FAILED:
            logger.warning(
                "payment_retry_exhausted intent=%s attempts=%d",
                payment_intent_id, attempts,
            )
        else:
            logger.info(
                "payment_retry_rescheduled intent=%s attempts=%d next_retry_at=%s",
                payment_intent_id, attempts, next_at.isoformat() if next_at else None,
            )

    def _notify_failed(
        self,
        user_id: str,
        payment_intent_id: str,
        package_id: Optional[str],
        error_message: Optional[str],
    ) -> None:
        self._notifications.dispatch(
            user_id=user_id,
            payment_intent_id=payment_intent_id,
            package_id=package_id,
            error_message=error_message,
        )


__all__ = [
    "PaymentRetryService",
    "RetrySweepResult",
    "RETRY_SCHEDULE",
    "MAX_ATTEMPTS",
    "next_retry_state",
]
