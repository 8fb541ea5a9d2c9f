# -*- coding: utf-8 -*-
"""
backend/app/shared/database/database.py

SQLAlchemy async (asyncpg en producción, aiosqlite en pruebas).

Provee:
- build_engine / build_session_factory (construcción explícita)
- get_engine / get_session_factory (singletons perezosos desde settings)
- Dependencia FastAPI: get_async_session
- context manager: session_scope()
- check_database_health() / dispose_engine()

Notas:
- El engine NO se crea al importar; se construye en el lifespan de la app
  o la primera vez que alguien lo pide.
- Los servicios del ledger y de reintentos reciben el session factory y
  abren su propia transacción por operación.
"""

from __future__ import annotations

import asyncio
import logging
from contextlib import asynccontextmanager
from typing import AsyncGenerator, Optional

from fastapi import Request
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.pool import StaticPool

from app.shared.config import get_settings

logger = logging.getLogger(__name__)

_engine: Optional[AsyncEngine] = None
_session_factory: Optional[async_sessionmaker[AsyncSession]] = None


def build_engine(url: str, *, echo: bool = False, pool_size: int = 5,
                 max_overflow: int = 5, pool_pre_ping: bool = True) -> AsyncEngine:
    """
    Crea un AsyncEngine para la URL dada.

    - SQLite en memoria usa StaticPool (una sola conexión compartida),
      de lo contrario cada sesión vería una base vacía.
    - PostgreSQL usa el pool por defecto con los límites de settings.
    """
    if url.startswith("sqlite"):
        kwargs: dict = {"connect_args": {"check_same_thread": False}}
        if ":memory:" in url or url.rstrip("/").endswith("sqlite+aiosqlite:"):
            kwargs["poolclass"] = StaticPool
        return create_async_engine(url, echo=echo, **kwargs)

    return create_async_engine(
        url,
        echo=echo,
        pool_size=pool_size,
        max_overflow=max_overflow,
        pool_pre_ping=pool_pre_ping,
    )


def build_session_factory(engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    return async_sessionmaker(
        bind=engine,
        expire_on_commit=False,
        class_=AsyncSession,
        autoflush=False,
    )


def get_engine() -> AsyncEngine:
    """Engine global construido desde settings (perezoso)."""
    global _engine
    if _engine is None:
        settings = get_settings()
        _engine = build_engine(
            settings.database_url,
            echo=settings.db_echo_sql,
            pool_size=settings.db_pool_size,
            max_overflow=settings.db_max_overflow,
            pool_pre_ping=settings.db_pool_pre_ping,
        )
        logger.info("db_engine_created dialect=%s", _engine.dialect.name)
    return _engine


def get_session_factory() -> async_sessionmaker[AsyncSession]:
    global _session_factory
    if _session_factory is None:
        _session_factory = build_session_factory(get_engine())
    return _session_factory


# ── Dependencias FastAPI
async def get_async_session(request: Request) -> AsyncGenerator[AsyncSession, None]:
    """
    Sesión de lectura por request.

    Usa el session factory que el lifespan dejó en app.state; si no existe
    (scripts, pruebas sin lifespan) cae al singleton global.
    """
    factory = getattr(request.app.state, "session_factory", None) or get_session_factory()
    async with factory() as session:
        try:
            yield session
        except SQLAlchemyError:
            await session.rollback()
            raise


# ── Context manager reutilizable en scripts/jobs
@asynccontextmanager
async def session_scope() -> AsyncGenerator[AsyncSession, None]:
    async with get_session_factory()() as session:
        async with session.begin():
            yield session


# ── Health check
async def check_database_health(engine: AsyncEngine, timeout_s: float = 3.0) -> bool:
    """
    Verifica conectividad a la base de datos.

    Returns:
        True si la conexión es exitosa, False en caso contrario
    """
    try:
        async with asyncio.timeout(timeout_s):
            async with engine.connect() as conn:
                await conn.execute(text("SELECT 1"))
        return True
    except (SQLAlchemyError, OSError, TimeoutError) as e:
        logger.warning("db_health_check_failed error=%s", e)
        return False


async def dispose_engine() -> None:
    """Cierra el engine global (shutdown)."""
    global _engine, _session_factory
    if _engine is not None:
        await _engine.dispose()
        logger.info("db_engine_disposed")
    _engine = None
    _session_factory = None


__all__ = [
    "build_engine",
    "build_session_factory",
    "get_engine",
    "get_session_factory",
    "get_async_session",
    "session_scope",
    "check_database_health",
    "dispose_engine",
]
# Fin del archivo backend/app/shared/database/database.py
