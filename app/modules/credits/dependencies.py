# -*- coding: utf-8 -*-
"""
backend/app/modules/credits/dependencies.py

Dependencias FastAPI del módulo de créditos.

El ledger se construye una sola vez en el lifespan y vive en app.state;
las pruebas lo reemplazan vía app.dependency_overrides.

Autor: Clarity
Fecha: 2026-09-06
"""

from __future__ import annotations

from fastapi import Request

from .services import CreditLedgerService


def get_credit_ledger(request: Request) -> CreditLedgerService:
    return request.app.state.credit_ledger


__all__ = ["get_credit_ledger"]
