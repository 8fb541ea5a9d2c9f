# -*- coding: utf-8 -*-
"""
backend/app/modules/payments/schemas.py

Esquemas Pydantic del módulo de pagos: checkout y reintentos.

Autor: Clarity
Fecha: 2026-09-10
"""

from __future__ import annotations

from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field

from .enums import RetryStatus


class CheckoutRequest(BaseModel):
    """
    Solo se acepta package_id: créditos y precio se resuelven en backend
    desde el catálogo de paquetes.
    """
    package_id: str = Field(min_length=1, description="ID del paquete (e.g. 'pkg_standard').")


class CheckoutResponse(BaseModel):
    session_id: str
    url: str


class PaymentRetryOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    payment_intent_id: str
    package_id: Optional[str] = None
    attempts: int
    status: RetryStatus
    next_retry_at: Optional[datetime] = None
    last_attempt_at: Optional[datetime] = None
    error_message: Optional[str] = None


class PaymentRetriesResponse(BaseModel):
    retries: List[PaymentRetryOut]


class RetrySweepResponse(BaseModel):
    processed: int
    succeeded: int
    failed: int
    pending: int


class WebhookAck(BaseModel):
    received: bool = True


__all__ = [
    "CheckoutRequest",
    "CheckoutResponse",
    "PaymentRetryOut",
    "PaymentRetriesResponse",
    "RetrySweepResponse",
    "WebhookAck",
]
