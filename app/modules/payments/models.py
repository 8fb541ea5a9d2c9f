# -*- coding: utf-8 -*-
"""
backend/app/modules/payments/models.py

Modelos ORM de pagos.

- PaymentRetry: una fila por payment intent fallido; máquina de estados
  de reintentos con backoff fijo.
- WebhookEvent: ids de eventos de Stripe ya procesados (deduplicación de
  reentregas).

Autor: Clarity
Fecha: 2026-09-08
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
    func,
)
from sqlalchemy.orm import Mapped, mapped_column

from app.shared.database.base import Base, BigIntPK, str_enum
from .enums import RetryStatus


class PaymentRetry(Base):
    """
    Reintento de un payment intent fallido.

    Tabla: payment_retries

    Invariantes:
    - payment_intent_id único
    - 0 <= attempts <= 3
    - next_retry_at es NULL cuando status es terminal
    """

    __tablename__ = "payment_retries"

    id: Mapped[int] = mapped_column(BigIntPK, primary_key=True, autoincrement=True)

    user_id: Mapped[str] = mapped_column(String(64), nullable=False, index=True)

    payment_intent_id: Mapped[str] = mapped_column(String(255), nullable=False, unique=True)

    package_id: Mapped[Optional[str]] = mapped_column(String(64), nullable=True)

    attempts: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    status: Mapped[RetryStatus] = mapped_column(
        str_enum(RetryStatus, name="payment_retry_status"),
        nullable=False,
        default=RetryStatus.PENDING,
    )

    last_attempt_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)

    next_retry_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)

    error_message: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

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
        CheckConstraint("attempts >= 0 AND attempts <= 3", name="attempts_range"),
        Index("ix_payment_retries_due", "status", "next_retry_at"),
    )

    def __repr__(self) -> str:
        return (
            f"<PaymentRetry id={self.id} intent={self.payment_intent_id} "
            f"status={self.status.value if self.status else None} attempts={self.attempts}>"
        )


class WebhookEvent(Base):
    """
    Evento de webhook procesado con éxito.

    Tabla: payment_webhook_events
    """

    __tablename__ = "payment_webhook_events"

    id: Mapped[int] = mapped_column(BigIntPK, primary_key=True, autoincrement=True)

    event_id: Mapped[str] = mapped_column(String(255), nullable=False, unique=True)

    event_type: Mapped[str] = mapped_column(String(100), nullable=False)

    processed_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        server_default=func.now(),
    )

    def __repr__(self) -> str:
        return f"<WebhookEvent event_id={self.event_id} type={self.event_type}>"


__all__ = ["PaymentRetry", "WebhookEvent"]
