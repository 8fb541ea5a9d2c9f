# -*- coding: utf-8 -*-
"""
backend/app/shared/utils/__init__.py

Utilidades comunes: fechas en UTC y registry de tasks asíncronas.

Autor: Clarity
Fecha: 2026-09-03
"""

from .async_job_registry import AsyncJobRegistry
from .datetime_helpers import add_months, ensure_utc, to_iso, utcnow

__all__ = [
    "AsyncJobRegistry",
    "add_months",
    "ensure_utc",
    "to_iso",
    "utcnow",
]
