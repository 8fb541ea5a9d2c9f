# -*- coding: utf-8 -*-
"""
backend/app/modules/credits/schemas.py

Schemas Pydantic de respuesta del módulo de créditos.

Autor: Clarity
Fecha: 2026-09-06
"""

from __future__ import annotations

from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, ConfigDict

from .enums import CreditTxType
from .packages import CreditPackage


class CreditBalanceResponse(BaseModel):
    balance: int


class CreditPackagesResponse(BaseModel):
    packages: List[CreditPackage]


class CreditTransactionOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    tx_type: CreditTxType
    amount: int
    reference_id: Optional[str] = None
    description: Optional[str] = None
    created_at: datetime


class CreditHistoryResponse(BaseModel):
    transactions: List[CreditTransactionOut]
    total: int
    page: int
    page_size: int
    has_more: bool


__all__ = [
    "CreditBalanceResponse",
    "CreditPackagesResponse",
    "CreditTransactionOut",
    "CreditHistoryResponse",
]
