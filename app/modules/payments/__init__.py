# -*- coding: utf-8 -*-
"""
backend/app/modules/payments/__init__.py

Módulo de pagos: checkout de créditos, reintentos de pagos fallidos y
reconciliación de webhooks de Stripe.

Autor: Clarity
Fecha: 2026-09-08
"""

from .routes import router
from .webhook_routes import router as webhook_router

__all__ = ["router", "webhook_router"]
