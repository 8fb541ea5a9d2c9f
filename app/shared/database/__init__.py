# -*- coding: utf-8 -*-
"""
backend/app/shared/database/__init__.py

Re-exporta utilidades comunes de base de datos.

Autor: Clarity
Fecha: 2026-09-03
"""

from __future__ import annotations

from .base import Base, BigIntPK, NAMING_CONVENTION, str_enum
from .database import (
    build_engine,
    build_session_factory,
    get_engine,
    get_session_factory,
    get_async_session,
    session_scope,
    check_database_health,
    dispose_engine,
)

__all__ = [
    "Base",
    "BigIntPK",
    "NAMING_CONVENTION",
    "str_enum",
    "build_engine",
    "build_session_factory",
    "get_engine",
    "get_session_factory",
    "get_async_session",
    "session_scope",
    "check_database_health",
    "dispose_engine",
]

# Fin del archivo backend/app/shared/database/__init__.py
