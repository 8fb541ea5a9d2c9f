# -*- coding: utf-8 -*-
"""
backend/app/routes/health_routes.py

Health check y exposición de métricas Prometheus.

Autor: Clarity
Fecha: 2026-09-13
"""

from fastapi import APIRouter, Request, Response

from app.shared.config import get_settings
from app.shared.database import check_database_health
from app.shared.metrics import render_latest
from app.shared.utils.datetime_helpers import to_iso, utcnow

router = APIRouter()


@router.get(
    "/health",
    summary="Health check del backend",
)
async def health_check(request: Request) -> dict:
    """
    Estado básico del servicio.

    status es "ok" con la base alcanzable y "degraded" si no responde.
    """
    settings = get_settings()

    engine = getattr(request.app.state, "engine", None)
    db_ok = await check_database_health(engine, timeout_s=2.0) if engine is not None else False

    return {
        "status": "ok" if db_ok else "degraded",
        "timestamp": to_iso(utcnow()),
        "environment": settings.python_env,
        "database": {
            "reachable": db_ok,
        },
        "service": {
            "name": settings.app_name,
            "version": settings.app_version,
        },
    }


@router.get("/metrics", include_in_schema=False)
async def metrics() -> Response:
    payload, content_type = render_latest()
    return Response(content=payload, media_type=content_type)

# Fin del archivo backend/app/routes/health_routes.py
