# -*- coding: utf-8 -*-
"""
backend/app/modules/credits/routes.py

Rutas de lectura del ledger de créditos.

Endpoints:
- GET /api/credits/balance (auth requerido)
- GET /api/credits/packages (público)
- GET /api/credits/history?page=N (auth requerido)

Autor: Clarity
Fecha: 2026-09-06
"""

from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, Query

from app.modules.auth.dependencies import get_current_user_id

from .dependencies import get_credit_ledger
from .packages import get_credit_packages
from .schemas import (
    CreditBalanceResponse,
    CreditHistoryResponse,
    CreditPackagesResponse,
    CreditTransactionOut,
)
from .services import CreditLedgerService

logger = logging.getLogger(__name__)

# Tamaño fijo de página del historial
PAGE_SIZE = 20

router = APIRouter(
    prefix="/credits",
    tags=["credits"],
)


@router.get(
    "/balance",
    response_model=CreditBalanceResponse,
    summary="Saldo de créditos vigente",
)
async def get_balance(
    user_id: str = Depends(get_current_user_id),
    ledger: CreditLedgerService = Depends(get_credit_ledger),
) -> CreditBalanceResponse:
    balance = await ledger.get_balance(user_id)
    return CreditBalanceResponse(balance=balance)


@router.get(
    "/packages",
    response_model=CreditPackagesResponse,
    summary="Listar paquetes de créditos",
)
async def list_packages() -> CreditPackagesResponse:
    """Endpoint público: solo expone precios y cantidades."""
    return CreditPackagesResponse(packages=get_credit_packages())


@router.get(
    "/history",
    response_model=CreditHistoryResponse,
    summary="Historial paginado de movimientos",
)
async def get_history(
    page: int = Query(default=1, ge=1),
    user_id: str = Depends(get_current_user_id),
    ledger: CreditLedgerService = Depends(get_credit_ledger),
) -> CreditHistoryResponse:
    history = await ledger.list_history(user_id, page=page, page_size=PAGE_SIZE)
    return CreditHistoryResponse(
        transactions=[CreditTransactionOut.model_validate(tx) for tx in history.transactions],
        total=history.total,
        page=history.page,
        page_size=history.page_size,
        has_more=history.has_more,
    )


__all__ = ["router", "PAGE_SIZE"]
