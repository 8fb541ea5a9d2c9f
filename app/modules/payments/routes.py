# -*- coding: utf-8 -*-
"""
backend/app/modules/payments/routes.py

Rutas de pagos.

Endpoints:
- POST /api/payments/checkout        (auth) crea Stripe Checkout Session
- GET  /api/payments/retries         (auth) reintentos activos del usuario
- POST /api/payments/retries/sweep   (servicio interno) ejecuta el sweep

Autor: Clarity
Fecha: 2026-09-10
"""

from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, HTTPException, status

from app.modules.auth.dependencies import get_current_user_id
from app.modules.credits.packages import get_package_by_id
from app.shared.config.settings_payments import get_payments_settings
from app.shared.internal_auth import InternalServiceAuth

from .dependencies import get_retry_service, get_stripe_provider
from .errors import PaymentProviderError
from .providers.stripe_provider import StripeProvider
from .schemas import (
    CheckoutRequest,
    CheckoutResponse,
    PaymentRetriesResponse,
    PaymentRetryOut,
    RetrySweepResponse,
)
from .services.retry_service import PaymentRetryService

logger = logging.getLogger(__name__)

router = APIRouter(
    prefix="/payments",
    tags=["payments"],
)


@router.post(
    "/checkout",
    response_model=CheckoutResponse,
    summary="Iniciar compra de un paquete de créditos",
)
async def start_checkout(
    body: CheckoutRequest,
    user_id: str = Depends(get_current_user_id),
    provider: StripeProvider = Depends(get_stripe_provider),
) -> CheckoutResponse:
    package = get_package_by_id(body.package_id)
    if package is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail={
                "error": "package_not_found",
                "message": f"Unknown credit package: {body.package_id}",
            },
        )

    frontend_url = get_payments_settings().frontend_url.rstrip("/")
    try:
        result = await provider.create_checkout_session(
            user_id=user_id,
            package_id=package.id,
            package_name=package.name,
            credits_amount=package.credits,
            price_pence=package.price_pence,
            currency=package.currency,
            success_url=f"{frontend_url}/credits/success?session_id={{CHECKOUT_SESSION_ID}}",
            cancel_url=f"{frontend_url}/credits/cancel",
        )
    except PaymentProviderError as e:
        raise HTTPException(
            status_code=status.HTTP_502_BAD_GATEWAY,
            detail={
                "error": "payment_provider_error",
                "message": e.message,
            },
        ) from e

    return CheckoutResponse(session_id=result.session_id, url=result.checkout_url)


@router.get(
    "/retries",
    response_model=PaymentRetriesResponse,
    summary="Reintentos de pago activos del usuario",
)
async def list_retries(
    user_id: str = Depends(get_current_user_id),
    service: PaymentRetryService = Depends(get_retry_service),
) -> PaymentRetriesResponse:
    retries = await service.list_user_retries(user_id)
    return PaymentRetriesResponse(
        retries=[PaymentRetryOut.model_validate(r) for r in retries]
    )


@router.post(
    "/retries/sweep",
    response_model=RetrySweepResponse,
    summary="Ejecutar el sweep de reintentos (servicio interno)",
)
async def run_sweep(
    _auth: InternalServiceAuth,
    service: PaymentRetryService = Depends(get_retry_service),
) -> RetrySweepResponse:
    result = await service.process_all_pending_retries()
    return RetrySweepResponse(**result.to_dict())


__all__ = ["router"]
