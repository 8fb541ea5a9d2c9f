# -*- coding: utf-8 -*-
"""
backend/app/routes/__init__.py

Ensamblador principal de ruteadores.

- /health y /metrics sin prefijo
- Módulos de negocio bajo /api:
    /api/credits/*
    /api/payments/*            (checkout, reintentos)
    /api/payments/webhooks/*   (Stripe)
    /api/generation/*

Autor: Clarity
Fecha: 2026-09-13
"""

import logging

from fastapi import APIRouter

from app.modules.credits.routes import router as credits_router
from app.modules.generation.routes import router as generation_router
from app.modules.payments.routes import router as payments_router
from app.modules.payments.webhook_routes import router as payments_webhook_router

from .health_routes import router as health_router

logger = logging.getLogger(__name__)

api = APIRouter(prefix="/api")
api.include_router(credits_router)
api.include_router(payments_router)
api.include_router(payments_webhook_router)
api.include_router(generation_router)

router = APIRouter()

# Health check sin prefijo adicional
router.include_router(health_router)
router.include_router(api)

__all__ = ["router", "api"]

# Fin del archivo backend/app/routes/__init__.py
