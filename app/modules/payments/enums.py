# -*- coding: utf-8 -*-
"""
backend/app/modules/payments/enums.py

Enums del módulo de pagos.

Autor: Clarity
Fecha: 2026-09-08
"""

from enum import Enum


class RetryStatus(str, Enum):
    """
    Estado de un reintento de pago.

    pending → retrying → succeeded (terminal)
       ^          |
       +----------+  (falla con attempts < 3)
    failed (terminal) al llegar a 3 intentos
    """
    PENDING = "pending"
    RETRYING = "retrying"
    SUCCEEDED = "succeeded"
    FAILED = "failed"

    @property
    def is_terminal(self) -> bool:
        return self in (RetryStatus.SUCCEEDED, RetryStatus.FAILED)


class RetryOutcome(str, Enum):
    """Resultado de procesar un reintento en el sweep."""
    SUCCEEDED = "succeeded"
    PENDING = "pending"
    FAILED = "failed"
    SKIPPED = "skipped"  # otro proceso lo reclamó o ya no estaba vencido


class StripeEventType(str, Enum):
    """Eventos de Stripe que el reconciliador sabe despachar."""
    CHECKOUT_SESSION_COMPLETED = "checkout.session.completed"
    PAYMENT_INTENT_FAILED = "payment_intent.payment_failed"
    PAYMENT_INTENT_SUCCEEDED = "payment_intent.succeeded"


__all__ = ["RetryStatus", "RetryOutcome", "StripeEventType"]
