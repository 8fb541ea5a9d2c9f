# -*- coding: utf-8 -*-
"""
backend/app/modules/credits/models.py

Modelos ORM del ledger de créditos.

- CreditBatch: lote de créditos con vigencia; se consume por fecha de
  expiración ascendente y nunca se borra (solo se agota o expira).
- CreditTransaction: bitácora inmutable, una fila por mutación del ledger.
  La suma de `amount` reconstruye el saldo independientemente de los lotes.

Autor: Clarity
Fecha: 2026-09-05
"""

from __future__ import annotations

from datetime import datetime
from typing import Optional

from sqlalchemy import (
    CheckConstraint,
    DateTime,
    Index,
    Integer,
    String,
    Text,
    UniqueConstraint,
    func,
)
from sqlalchemy.orm import Mapped, mapped_column

from app.shared.database.base import Base, BigIntPK, str_enum
from .enums import CreditSource, CreditTxType


class CreditBatch(Base):
    """
    Lote de créditos de un usuario.

    Tabla: credit_batches

    Constraints:
    - ck_credit_batches_remaining_bounds: 0 <= amount_remaining <= amount_total
    - ck_credit_batches_total_positive: amount_total > 0
    """

    __tablename__ = "credit_batches"

    id: Mapped[int] = mapped_column(BigIntPK, primary_key=True, autoincrement=True)

    user_id: Mapped[str] = mapped_column(String(64), nullable=False, index=True)

    amount_total: Mapped[int] = mapped_column(Integer, nullable=False)

    amount_remaining: Mapped[int] = mapped_column(Integer, nullable=False)

    source: Mapped[CreditSource] = mapped_column(
        str_enum(CreditSource, name="credit_source"),
        nullable=False,
    )

    # NULL = no expira (p.ej. reembolsos)
    expires_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True),
        nullable=True,
    )

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        server_default=func.now(),
    )

    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        server_default=func.now(),
        onupdate=func.now(),
    )

    __table_args__ = (
        CheckConstraint(
            "amount_remaining >= 0 AND amount_remaining <= amount_total",
            name="remaining_bounds",
        ),
        CheckConstraint("amount_total > 0", name="total_positive"),
        Index("ix_credit_batches_user_expiry", "user_id", "expires_at"),
    )

    def __repr__(self) -> str:
        return (
            f"<CreditBatch id={self.id} user={self.user_id} "
            f"remaining={self.amount_remaining}/{self.amount_total} "
            f"source={self.source.value if self.source else None}>"
        )


class CreditTransaction(Base):
    """
    Ledger inmutable de movimientos de créditos.

    Tabla: credit_transactions

    El UNIQUE (user_id, tx_type, reference_id) es lo que impide aplicar dos
    veces el mismo pago, el mismo consumo de un job o el mismo reembolso,
    aun con webhooks duplicados o carreras entre procesos.
    """

    __tablename__ = "credit_transactions"

    id: Mapped[int] = mapped_column(BigIntPK, primary_key=True, autoincrement=True)

    user_id: Mapped[str] = mapped_column(String(64), nullable=False, index=True)

    tx_type: Mapped[CreditTxType] = mapped_column(
        str_enum(CreditTxType, name="credit_tx_type"),
        nullable=False,
    )

    # Con signo: usage < 0, purchase/refund > 0
    amount: Mapped[int] = mapped_column(Integer, nullable=False)

    # job_id (usage/refund) o payment id (purchase)
    reference_id: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)

    description: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    # Lote creado por esta transacción (purchase/refund)
    batch_id: Mapped[Optional[int]] = mapped_column(BigIntPK, nullable=True)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        server_default=func.now(),
        index=True,
    )

    __table_args__ = (
        UniqueConstraint("user_id", "tx_type", "reference_id", name="uq_credit_transactions_reference"),
        CheckConstraint("amount <> 0", name="amount_non_zero"),
    )

    def __repr__(self) -> str:
        return (
            f"<CreditTransaction id={self.id} user={self.user_id} "
            f"type={self.tx_type.value if self.tx_type else None} "
            f"amount={self.amount:+d} ref={self.reference_id}>"
        )


__all__ = ["CreditBatch", "CreditTransaction"]
