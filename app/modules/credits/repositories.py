# -*- coding: utf-8 -*-
"""
backend/app/modules/credits/repositories.py

Repositorios del ledger de créditos.

Todos los métodos reciben la sesión explícitamente: la frontera
transaccional la define el servicio, nunca el repositorio.

Autor: Clarity
Fecha: 2026-09-05
"""

from __future__ import annotations

import logging
from datetime import datetime
from typing import List, Optional

from sqlalchemy import func, or_, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from .enums import CreditSource, CreditTxType
from .models import CreditBatch, CreditTransaction

logger = logging.getLogger(__name__)


def _not_expired(now: datetime):
    return or_(CreditBatch.expires_at.is_(None), CreditBatch.expires_at > now)


class CreditBatchRepository:
    """Repositorio de lotes de créditos."""

    async def create(
        self,
        session: AsyncSession,
        *,
        user_id: str,
        amount: int,
        source: CreditSource,
        expires_at: Optional[datetime] = None,
    ) -> CreditBatch:
        if amount <= 0:
            raise ValueError("batch amount must be positive")

        batch = CreditBatch(
            user_id=user_id,
            amount_total=amount,
            amount_remaining=amount,
            source=source,
            expires_at=expires_at,
        )
        session.add(batch)
        await session.flush()
        return batch

    async def list_spendable(
        self,
        session: AsyncSession,
        user_id: str,
        now: datetime,
        *,
        for_update: bool = False,
    ) -> List[CreditBatch]:
        """
        Lotes vigentes con saldo, en orden de consumo:
        expiración ascendente (sin expiración al final), luego antigüedad.
        """
        stmt = (
            select(CreditBatch)
            .where(
                CreditBatch.user_id == user_id,
                CreditBatch.amount_remaining > 0,
                _not_expired(now),
            )
            .order_by(
                CreditBatch.expires_at.asc().nulls_last(),
                CreditBatch.created_at.asc(),
                CreditBatch.id.asc(),
            )
        )
        if for_update:
            stmt = stmt.with_for_update()

        result = await session.execute(stmt)
        return list(result.scalars().all())

    async def decrement(
        self,
        session: AsyncSession,
        batch_id: int,
        take: int,
        now: datetime,
    ) -> bool:
        """
        Descuenta `take` de un lote con compare-and-swap.

        El WHERE repite las condiciones de elegibilidad: si otro proceso
        consumió el lote o expiró entre la lectura y este UPDATE, no se
        afecta ninguna fila y se devuelve False.
        """
        stmt = (
            update(CreditBatch)
            .where(
                CreditBatch.id == batch_id,
                CreditBatch.amount_remaining >= take,
                _not_expired(now),
            )
            .values(amount_remaining=CreditBatch.amount_remaining - take)
            .execution_options(synchronize_session=False)
        )
        result = await session.execute(stmt)
        return result.rowcount == 1

    async def sum_spendable(self, session: AsyncSession, user_id: str, now: datetime) -> int:
        stmt = select(func.coalesce(func.sum(CreditBatch.amount_remaining), 0)).where(
            CreditBatch.user_id == user_id,
            _not_expired(now),
        )
        return int((await session.execute(stmt)).scalar_one())

    async def sum_remaining(self, session: AsyncSession, user_id: str) -> int:
        """Saldo remanente de todos los lotes, vencidos incluidos."""
        stmt = select(func.coalesce(func.sum(CreditBatch.amount_remaining), 0)).where(
            CreditBatch.user_id == user_id,
        )
        return int((await session.execute(stmt)).scalar_one())

    async def list_by_user(self, session: AsyncSession, user_id: str) -> List[CreditBatch]:
        stmt = (
            select(CreditBatch)
            .where(CreditBatch.user_id == user_id)
            .order_by(CreditBatch.id.asc())
        )
        result = await session.execute(stmt)
        return list(result.scalars().all())


class CreditTransactionRepository:
    """Repositorio de la bitácora de créditos (append-only)."""

    async def create(
        self,
        session: AsyncSession,
        *,
        user_id: str,
        tx_type: CreditTxType,
        amount: int,
        reference_id: Optional[str],
        description: Optional[str] = None,
        batch_id: Optional[int] = None,
    ) -> CreditTransaction:
        """
        Crea una transacción en el ledger.

        Validaciones:
        - amount != 0
        - el signo coincide con el tipo (usage negativo, resto positivo)
        """
        if amount == 0:
            raise ValueError("amount cannot be zero")
        if (tx_type == CreditTxType.USAGE) != (amount < 0):
            raise ValueError(f"amount sign does not match tx_type={tx_type.value}")

        tx = CreditTransaction(
            user_id=user_id,
            tx_type=tx_type,
            amount=amount,
            reference_id=reference_id,
            description=description,
            batch_id=batch_id,
        )
        session.add(tx)
        await session.flush()

        logger.debug(
            "credit_tx_created user=%s type=%s amount=%+d ref=%s",
            user_id, tx_type.value, amount, reference_id,
        )
        return tx

    async def get_by_reference(
        self,
        session: AsyncSession,
        user_id: str,
        tx_type: CreditTxType,
        reference_id: str,
    ) -> Optional[CreditTransaction]:
        stmt = select(CreditTransaction).where(
            CreditTransaction.user_id == user_id,
            CreditTransaction.tx_type == tx_type,
            CreditTransaction.reference_id == reference_id,
        )
        result = await session.execute(stmt)
        return result.scalar_one_or_none()

    async def sum_amounts(self, session: AsyncSession, user_id: str) -> int:
        stmt = select(func.coalesce(func.sum(CreditTransaction.amount), 0)).where(
            CreditTransaction.user_id == user_id,
        )
        return int((await session.execute(stmt)).scalar_one())

    async def count_by_user(self, session: AsyncSession, user_id: str) -> int:
        stmt = select(func.count()).select_from(CreditTransaction).where(
            CreditTransaction.user_id == user_id,
        )
        return int((await session.execute(stmt)).scalar_one())

    async def list_by_user(
        self,
        session: AsyncSession,
        user_id: str,
        *,
        limit: int = 20,
        offset: int = 0,
    ) -> List[CreditTransaction]:
        """Transacciones del usuario, más recientes primero."""
        stmt = (
            select(CreditTransaction)
            .where(CreditTransaction.user_id == user_id)
            .order_by(CreditTransaction.created_at.desc(), CreditTransaction.id.desc())
            .limit(limit)
            .offset(offset)
        )
        result = await session.execute(stmt)
        return list(result.scalars().all())


__all__ = ["CreditBatchRepository", "CreditTransactionRepository"]
