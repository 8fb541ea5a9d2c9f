# -*- coding: utf-8 -*-
"""
backend/app/modules/credits/__init__.py

Módulo de créditos: ledger por lotes con expiración, bitácora
inmutable y catálogo de paquetes.

Autor: Clarity
Fecha: 2026-09-06
"""

from .enums import CreditSource, CreditTxType
from .models import CreditBatch, CreditTransaction
from .services import CreditLedgerService, LedgerAudit

__all__ = [
    "CreditSource",
    "CreditTxType",
    "CreditBatch",
    "CreditTransaction",
    "CreditLedgerService",
    "LedgerAudit",
]
