# -*- coding: utf-8 -*-
"""
backend/app/modules/credits/services.py

Servicio del ledger de créditos (CreditLedgerService).

Cada operación abre su propia transacción sobre el session factory
inyectado, de modo que es atómica por sí misma y no depende del ciclo
de vida del request que la invoca (p.ej. un stream SSE ya cerrado).

Reglas:
- deduct_credits: consume lotes vigentes por expiración ascendente con
  compare-and-swap por lote; False = saldo insuficiente (no es error).
- refund_credits / add_credits: idempotentes por reference_id gracias al
  UNIQUE (user_id, tx_type, reference_id); un duplicado se absorbe.
- Errores de almacenamiento en add/refund se propagan.

Autor: Clarity
Fecha: 2026-09-05
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Callable, List, Optional

from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from app.shared.metrics import CREDIT_OPERATIONS_TOTAL
from app.shared.utils.datetime_helpers import utcnow
from .enums import CreditSource, CreditTxType
from .models import CreditTransaction
from .repositories import CreditBatchRepository, CreditTransactionRepository

logger = logging.getLogger(__name__)

# Reintentos ante una carrera perdida en el compare-and-swap de lotes
DEDUCT_MAX_ATTEMPTS = 3


class _DeductionConflict(Exception):
    """Un lote cambió entre la lectura y el UPDATE condicional."""


@dataclass(frozen=True)
class LedgerAudit:
    """Resultado de reconstruir el saldo desde la bitácora."""
    user_id: str
    ledger_total: int
    batch_total: int
    balance: int

    @property
    def consistent(self) -> bool:
        return self.ledger_total == self.batch_total


@dataclass(frozen=True)
class CreditHistoryPage:
    transactions: List[CreditTransaction]
    total: int
    page: int
    page_size: int

    @property
    def has_more(self) -> bool:
        return self.page * self.page_size < self.total


class CreditLedgerService:
    """
    Ledger de créditos prepagados por usuario.

    Args:
        session_factory: async_sessionmaker del que sale una sesión por operación
        clock: fuente de "ahora" (inyectable en pruebas)
    """

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        *,
        clock: Optional[Callable[[], datetime]] = None,
    ) -> None:
        self._session_factory = session_factory
        self._clock = clock or utcnow
        self.batches = CreditBatchRepository()
        self.transactions = CreditTransactionRepository()

    # ------------------------------------------------------------------
    # Lectura
    # ------------------------------------------------------------------

    async def get_balance(self, user_id: str) -> int:
        """Suma de amount_remaining de los lotes no vencidos."""
        async with self._session_factory() as session:
            return await self.batches.sum_spendable(session, user_id, self._clock())

    async def has_credits(self, user_id: str, amount: int = 1) -> bool:
        return await self.get_balance(user_id) >= amount

    async def audit(self, user_id: str) -> LedgerAudit:
        """
        Reconstruye el saldo sumando la bitácora y lo compara contra los lotes.

        batch_total incluye lotes vencidos: la expiración no genera
        transacción, así que la bitácora solo cuadra contra el remanente total.
        """
        async with self._session_factory() as session:
            ledger_total = await self.transactions.sum_amounts(session, user_id)
            batch_total = await self.batches.sum_remaining(session, user_id)
            balance = await self.batches.sum_spendable(session, user_id, self._clock())

        audit = LedgerAudit(
            user_id=user_id,
            ledger_total=ledger_total,
            batch_total=batch_total,
            balance=balance,
        )
        if not audit.consistent:
            logger.error(
                "credit_ledger_mismatch user=%s ledger_total=%d batch_total=%d",
                user_id, ledger_total, batch_total,
            )
        return audit

    async def list_history(self, user_id: str, page: int = 1, page_size: int = 20) -> CreditHistoryPage:
        page = max(page, 1)
        async with self._session_factory() as session:
            total = await self.transactions.count_by_user(session, user_id)
            items = await self.transactions.list_by_user(
                session,
                user_id,
                limit=page_size,
                offset=(page - 1) * page_size,
            )
        return CreditHistoryPage(transactions=items, total=total, page=page, page_size=page_size)

    # ------------------------------------------------------------------
    # Consumo
    # ------------------------------------------------------------------

    async def deduct_credits(
        self,
        user_id: str,
        amount: int,
        reference_id: str,
        description: Optional[str] = None,
    ) -> bool:
        """
        Descuenta `amount` créditos en una sola transacción.

        Returns:
            True si se descontó (o ya existía el consumo para reference_id),
            False si el saldo vigente no alcanza. Nunca deja un descuento parcial.
        """
        if amount <= 0:
            raise ValueError("amount must be positive")

        for attempt in range(1, DEDUCT_MAX_ATTEMPTS + 1):
            try:
                applied = await self._deduct_once(user_id, amount, reference_id, description)
            except _DeductionConflict as e:
                logger.warning(
                    "credit_deduct_conflict user=%s ref=%s attempt=%d batch=%s",
                    user_id, reference_id, attempt, e,
                )
                continue
            except IntegrityError:
                # Otro proceso registró el mismo consumo entre la verificación y el INSERT
                if await self._transaction_exists(user_id, CreditTxType.USAGE, reference_id):
                    logger.info("credit_deduct_duplicate user=%s ref=%s", user_id, reference_id)
                    CREDIT_OPERATIONS_TOTAL.labels(operation="deduct", outcome="duplicate").inc()
                    return True
                raise

            CREDIT_OPERATIONS_TOTAL.labels(
                operation="deduct",
                outcome="applied" if applied else "insufficient",
            ).inc()
            return applied

        logger.warning(
            "credit_deduct_gave_up user=%s ref=%s attempts=%d",
            user_id, reference_id, DEDUCT_MAX_ATTEMPTS,
        )
        CREDIT_OPERATIONS_TOTAL.labels(operation="deduct", outcome="conflict").inc()
        return False

    async def _deduct_once(
        self,
        user_id: str,
        amount: int,
        reference_id: str,
        description: Optional[str],
    ) -> bool:
        now = self._clock()
        async with self._session_factory() as session, session.begin():
            existing = await self.transactions.get_by_reference(
                session, user_id, CreditTxType.USAGE, reference_id
            )
            if existing is not None:
                logger.info("credit_deduct_duplicate user=%s ref=%s", user_id, reference_id)
                return True

            batches = await self.batches.list_spendable(session, user_id, now, for_update=True)
            available = sum(b.amount_remaining for b in batches)
            if available < amount:
                logger.info(
                    "credit_deduct_insufficient user=%s requested=%d available=%d",
                    user_id, amount, available,
                )
                return False

            pending = amount
            for batch in batches:
                if pending == 0:
                    break
                take = min(batch.amount_remaining, pending)
                if not await self.batches.decrement(session, batch.id, take, now):
                    # Rollback de todo lo descontado en esta transacción
                    raise _DeductionConflict(batch.id)
                pending -= take

            await self.transactions.create(
                session,
                user_id=user_id,
                tx_type=CreditTxType.USAGE,
                amount=-amount,
                reference_id=reference_id,
                description=description,
            )

        logger.info("credit_deducted user=%s amount=%d ref=%s", user_id, amount, reference_id)
        return True

    # ------------------------------------------------------------------
    # Altas
    # ------------------------------------------------------------------

    async def refund_credits(
        self,
        user_id: str,
        amount: int,
        reference_id: str,
        reason: str,
    ) -> bool:
        """
        Devuelve créditos como un lote nuevo sin expiración.

        Idempotente por reference_id: si ya existe un refund con esa
        referencia no hace nada.

        Returns:
            True si se aplicó ahora, False si ya estaba aplicado.
        """
        applied = await self._create_batch_with_tx(
            user_id=user_id,
            amount=amount,
            source=CreditSource.REFUND,
            tx_type=CreditTxType.REFUND,
            reference_id=reference_id,
            description=reason,
            expires_at=None,
        )
        if applied:
            logger.info(
                "credit_refunded user=%s amount=%d ref=%s reason=%s",
                user_id, amount, reference_id, reason,
            )
        CREDIT_OPERATIONS_TOTAL.labels(
            operation="refund",
            outcome="applied" if applied else "duplicate",
        ).inc()
        return applied

    async def add_credits(
        self,
        user_id: str,
        amount: int,
        source: CreditSource,
        payment_id: str,
        expires_at: Optional[datetime],
    ) -> bool:
        """
        Alta de créditos comprados: un lote + una transacción purchase.

        Idempotente por payment_id (reentregas del webhook no duplican).

        Returns:
            True si se aplicó ahora, False si ya estaba aplicado.
        """
        applied = await self._create_batch_with_tx(
            user_id=user_id,
            amount=amount,
            source=source,
            tx_type=CreditTxType.PURCHASE,
            reference_id=payment_id,
            description=f"Purchased {amount} credits",
            expires_at=expires_at,
        )
        if applied:
            logger.info(
                "credit_added user=%s amount=%d payment=%s source=%s",
                user_id, amount, payment_id, source.value,
            )
        CREDIT_OPERATIONS_TOTAL.labels(
            operation="add",
            outcome="applied" if applied else "duplicate",
        ).inc()
        return applied

    async def _create_batch_with_tx(
        self,
        *,
        user_id: str,
        amount: int,
        source: CreditSource,
        tx_type: CreditTxType,
        reference_id: str,
        description: Optional[str],
        expires_at: Optional[datetime],
    ) -> bool:
        if amount <= 0:
            raise ValueError("amount must be positive")
        if not reference_id:
            raise ValueError("reference_id is required")

        try:
            async with self._session_factory() as session, session.begin():
                existing = await self.transactions.get_by_reference(
                    session, user_id, tx_type, reference_id
                )
                if existing is not None:
                    logger.info(
                        "credit_%s_duplicate user=%s ref=%s",
                        tx_type.value, user_id, reference_id,
                    )
                    return False

                batch = await self.batches.create(
                    session,
                    user_id=user_id,
                    amount=amount,
                    source=source,
                    expires_at=expires_at,
                )
                await self.transactions.create(
                    session,
                    user_id=user_id,
                    tx_type=tx_type,
                    amount=amount,
                    reference_id=reference_id,
                    description=description,
                    batch_id=batch.id,
                )
        except IntegrityError:
            # Carrera: otro proceso insertó la misma referencia primero
            if await self._transaction_exists(user_id, tx_type, reference_id):
                logger.info(
                    "credit_%s_duplicate user=%s ref=%s (concurrent)",
                    tx_type.value, user_id, reference_id,
                )
                return False
            raise
        return True

    async def _transaction_exists(self, user_id: str, tx_type: CreditTxType, reference_id: str) -> bool:
        async with self._session_factory() as session:
            tx = await self.transactions.get_by_reference(session, user_id, tx_type, reference_id)
            return tx is not None


__all__ = [
    "CreditLedgerService",
    "CreditHistoryPage",
    "LedgerAudit",
    "DEDUCT_MAX_ATTEMPTS",
]
