# -*- coding: utf-8 -*-
"""
backend/app/modules/credits/enums.py

Enums del ledger de créditos.

Autor: Clarity
Fecha: 2026-09-05
"""

from enum import Enum


class CreditSource(str, Enum):
    """Origen de un lote (batch) de créditos."""
    PURCHASE = "purchase"
    BONUS = "bonus"
    REFUND = "refund"


class CreditTxType(str, Enum):
    """
    Tipo de movimiento en el ledger.

    - purchase: alta de créditos por pago (amount > 0)
    - usage: consumo por un job (amount < 0)
    - refund: devolución de un consumo (amount > 0)
    """
    PURCHASE = "purchase"
    USAGE = "usage"
    REFUND = "refund"


__all__ = ["CreditSource", "CreditTxType"]
