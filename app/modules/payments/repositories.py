# -*- coding: utf-8 -*-
"""
backend/app/modules/payments/repositories.py

Repositorios del módulo de pagos.

Las transiciones de PaymentRetry son UPDATE condicionales (compare-and-swap
sobre status + attempts): si otra ruta (sweep o webhook) movió la fila
primero, rowcount es 0 y el llamador decide qué hacer.

Autor: Clarity
Fecha: 2026-09-08
"""

from __future__ import annotations

import logging
from datetime import datetime
from typing import Any, Iterable, List, Optional

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from .enums import RetryStatus
from .models import PaymentRetry, WebhookEvent

logger = logging.getLogger(__name__)

ACTIVE_STATUSES = (RetryStatus.PENDING, RetryStatus.RETRYING)


class PaymentRetryRepository:
    """Repositorio de reintentos de pago."""

    async def get_by_intent(
        self,
        session: AsyncSession,
        payment_intent_id: str,
    ) -> Optional[PaymentRetry]:
        stmt = select(PaymentRetry).where(PaymentRetry.payment_intent_id == payment_intent_id)
        result = await session.execute(stmt)
        return result.scalar_one_or_none()

    async def create(
        self,
        session: AsyncSession,
        *,
        user_id: str,
        payment_intent_id: str,
        package_id: Optional[str],
        error_message: Optional[str],
        next_retry_at: datetime,
        now: datetime,
    ) -> PaymentRetry:
        retry = PaymentRetry(
            user_id=user_id,
            payment_intent_id=payment_intent_id,
            package_id=package_id,
            attempts=0,
            status=RetryStatus.PENDING,
            last_attempt_at=now,
            next_retry_at=next_retry_at,
            error_message=error_message,
        )
        session.add(retry)
        await session.flush()
        return retry

    async def list_due(
        self,
        session: AsyncSession,
        now: datetime,
        *,
        limit: int = 100,
    ) -> List[PaymentRetry]:
        """Filas activas cuyo next_retry_at ya pasó, las más atrasadas primero."""
        stmt = (
            select(PaymentRetry)
            .where(
                PaymentRetry.status.in_(ACTIVE_STATUSES),
                PaymentRetry.next_retry_at.is_not(None),
                PaymentRetry.next_retry_at <= now,
            )
            .order_by(PaymentRetry.next_retry_at.asc(), PaymentRetry.id.asc())
            .limit(limit)
        )
        result = await session.execute(stmt)
        return list(result.scalars().all())

    async def list_active_by_user(self, session: AsyncSession, user_id: str) -> List[PaymentRetry]:
        stmt = (
            select(PaymentRetry)
            .where(
                PaymentRetry.user_id == user_id,
                PaymentRetry.status.in_(ACTIVE_STATUSES),
            )
            .order_by(PaymentRetry.created_at.desc(), PaymentRetry.id.desc())
        )
        result = await session.execute(stmt)
        return list(result.scalars().all())

    async def transition(
        self,
        session: AsyncSession,
        retry_id: int,
        *,
        expected_statuses: Iterable[RetryStatus],
        expected_attempts: Optional[int] = None,
        due_before: Optional[datetime] = None,
        **values: Any,
    ) -> bool:
        """
        UPDATE condicional de una fila.

        Args:
            expected_statuses: la fila debe estar en alguno de estos estados
            expected_attempts: si se indica, attempts debe coincidir
            due_before: si se indica, next_retry_at <= due_before
            **values: columnas a escribir

        Returns:
            True si se actualizó exactamente una fila.
        """
        conditions = [
            PaymentRetry.id == retry_id,
            PaymentRetry.status.in_(tuple(expected_statuses)),
        ]
        if expected_attempts is not None:
            conditions.append(PaymentRetry.attempts == expected_attempts)
        if due_before is not None:
            conditions.append(PaymentRetry.next_retry_at <= due_before)

        stmt = (
            update(PaymentRetry)
            .where(*conditions)
            .values(**values)
            .execution_options(synchronize_session=False)
        )
        result = await session.execute(stmt)
        return result.rowcount == 1

    async def mark_succeeded(self, session: AsyncSession, payment_intent_id: str, now: datetime) -> bool:
        """Pasa a succeeded si la fila no es terminal. True si cambió algo."""
        stmt = (
            update(PaymentRetry)
            .where(
                PaymentRetry.payment_intent_id == payment_intent_id,
                PaymentRetry.status.in_(ACTIVE_STATUSES),
            )
            .values(
                status=RetryStatus.SUCCEEDED,
                next_retry_at=None,
                error_message=None,
                updated_at=now,
            )
            .execution_options(synchronize_session=False)
        )
        result = await session.execute(stmt)
        return result.rowcount == 1


class WebhookEventRepository:
    """Registro de eventos de webhook ya procesados."""

    async def exists(self, session: AsyncSession, event_id: str) -> bool:
        stmt = select(WebhookEvent.id).where(WebhookEvent.event_id == event_id)
        result = await session.execute(stmt)
        return result.scalar_one_or_none() is not None

    async def record(self, session: AsyncSession, *, event_id: str, event_type: str) -> WebhookEvent:
        event = WebhookEvent(event_id=event_id, event_type=event_type)
        session.add(event)
        await session.flush()
        return event


__all__ = ["PaymentRetryRepository", "WebhookEventRepository", "ACTIVE_STATUSES"]
