# -*- coding: utf-8 -*-
"""
backend/app/modules/payments/dependencies.py

Dependencias FastAPI del módulo de pagos. Los servicios viven en app.state
(construidos en el lifespan) y las pruebas los reemplazan con
app.dependency_overrides.

Autor: Clarity
Fecha: 2026-09-10
"""

from __future__ import annotations

from fastapi import Request

from .providers.stripe_provider import StripeProvider
from .services.retry_service import PaymentRetryService
from .webhooks.reconciler import WebhookReconciler


def get_stripe_provider(request: Request) -> StripeProvider:
    return request.app.state.stripe_provider


def get_retry_service(request: Request) -> PaymentRetryService:
    return request.app.state.payment_retries


def get_webhook_reconciler(request: Request) -> WebhookReconciler:
    return request.app.state.webhook_reconciler


__all__ = ["get_stripe_provider", "get_retry_service", "get_webhook_reconciler"]
