# -*- coding: utf-8 -*-
"""
backend/app/modules/payments/webhook_routes.py

Rutas de webhooks de Stripe.

Endpoint:
- POST /api/payments/webhooks/stripe

Respuestas:
- 400: firma ausente/inválida o secreto no configurado (sin efectos)
- 200 {"received": true}: despachado, duplicado o tipo no reconocido
- 500: fallo del handler; Stripe reentrega el evento más tarde

Autor: Clarity
Fecha: 2026-09-10
"""

from __future__ import annotations

import logging
from typing import Any, Dict

from fastapi import APIRouter, Depends, HTTPException, Request, status

from .dependencies import get_webhook_reconciler
from .errors import WebhookConfigurationError, WebhookSignatureError
from .webhooks.reconciler import WebhookReconciler

logger = logging.getLogger(__name__)

router = APIRouter(
    prefix="/payments/webhooks",
    tags=["payments:webhooks"],
)


@router.post(
    "/stripe",
    status_code=status.HTTP_200_OK,
)
async def stripe_webhook(
    request: Request,
    reconciler: WebhookReconciler = Depends(get_webhook_reconciler),
) -> Dict[str, Any]:
    """
    Webhook de Stripe. Requiere header Stripe-Signature.
    """
    raw_body = await request.body()
    sig_header = request.headers.get("Stripe-Signature")

    try:
        await reconciler.handle(raw_body, sig_header)
    except WebhookConfigurationError as e:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail={"error": "webhook_not_configured", "message": str(e)},
        )
    except WebhookSignatureError as e:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail={"error": "invalid_signature", "message": str(e)},
        )
    except Exception:
        # El reconciliador ya registró la excepción con el tipo de evento
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail={"error": "webhook_processing_error", "message": "Webhook processing failed"},
        )

    return {"received": True}


__all__ = ["router"]
