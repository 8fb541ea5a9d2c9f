# -*- coding: utf-8 -*-
"""
backend/tests/conftest.py

Config global de tests para Clarity.

- PYTHON_ENV=test ANTES de importar la app (settings cacheados)
- SQLite en memoria (aiosqlite + StaticPool) con create_all por test
- Reloj falso inyectable en los servicios
- App FastAPI con ciclo de vida real vía asgi-lifespan
- Helpers de JWT y de firma de webhooks Stripe (t=...,v1=...)
"""

import hashlib
import hmac
import json
import os
import time
from collections.abc import AsyncIterator
from datetime import datetime, timedelta, timezone
from typing import Any, Callable, Dict, Optional

# -----------------------------------------------------------------------------
# 0) Entorno de pruebas (debe ir antes de cualquier import de app.*)
# -----------------------------------------------------------------------------
os.environ["PYTHON_ENV"] = "test"
os.environ["STRIPE_WEBHOOK_SECRET"] = "whsec_test_secret"
os.environ.pop("STRIPE_SECRET_KEY", None)
os.environ.pop("CREDIT_PACKAGES_JSON", None)

import pytest
from asgi_lifespan import LifespanManager
from httpx import ASGITransport, AsyncClient

from app.modules.auth.security import create_access_token
from app.modules.credits.services import CreditLedgerService
from app.shared.config.settings_payments import reset_payments_settings
from app.shared.database import Base, build_engine, build_session_factory

# Registro de modelos en Base.metadata
import app.modules.credits.models  # noqa: F401,E402
import app.modules.payments.models  # noqa: F401,E402

WEBHOOK_SECRET = "whsec_test_secret"


class FakeClock:
    """Reloj controlable: clock() devuelve `now`; advance() lo mueve."""

    def __init__(self, start: datetime) -> None:
        self.now = start

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs: Any) -> datetime:
        self.now = self.now + timedelta(**kwargs)
        return self.now


# -----------------------------------------------------------------------------
# 1) Persistencia
# -----------------------------------------------------------------------------
@pytest.fixture
def clock() -> FakeClock:
    return FakeClock(datetime(2026, 3, 10, 12, 0, 0, tzinfo=timezone.utc))


@pytest.fixture
async def engine():
    engine = build_engine("sqlite+aiosqlite:///:memory:")
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(engine):
    return build_session_factory(engine)


@pytest.fixture
def ledger(session_factory, clock) -> CreditLedgerService:
    return CreditLedgerService(session_factory, clock=clock)


# -----------------------------------------------------------------------------
# 2) App FastAPI y cliente httpx (con ciclo de vida)
# -----------------------------------------------------------------------------
@pytest.fixture
async def app():
    """
    App nueva por test; el lifespan construye engine, servicios y registry
    sobre SQLite en memoria.
    """
    from app.main import create_app

    reset_payments_settings()
    fastapi_app = create_app()
    async with LifespanManager(fastapi_app):
        yield fastapi_app
    fastapi_app.dependency_overrides.clear()
    reset_payments_settings()


@pytest.fixture
async def async_client(app) -> AsyncIterator[AsyncClient]:
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://testserver") as client:
        yield client


# -----------------------------------------------------------------------------
# 3) Helpers
# -----------------------------------------------------------------------------
@pytest.fixture
def auth_headers() -> Callable[[str], Dict[str, str]]:
    def _make(user_id: str = "user-1") -> Dict[str, str]:
        return {"Authorization": f"Bearer {create_access_token(user_id)}"}

    return _make


def sign_stripe_payload(
    payload: bytes,
    secret: str = WEBHOOK_SECRET,
    timestamp: Optional[int] = None,
) -> str:
    """Header Stripe-Signature válido para `payload`."""
    ts = timestamp if timestamp is not None else int(time.time())
    signed = f"{ts}.".encode("utf-8") + payload
    signature = hmac.new(secret.encode("utf-8"), signed, hashlib.sha256).hexdigest()
    return f"t={ts},v1={signature}"


def stripe_event(event_type: str, obj: Dict[str, Any], event_id: str = "evt_1") -> bytes:
    return json.dumps(
        {
            "id": event_id,
            "object": "event",
            "type": event_type,
            "data": {"object": obj},
        }
    ).encode("utf-8")


@pytest.fixture
def signed_event() -> Callable[..., tuple[bytes, str]]:
    """Factory: (payload, header) firmados con el secreto de pruebas."""

    def _make(event_type: str, obj: Dict[str, Any], event_id: str = "evt_1") -> tuple[bytes, str]:
        payload = stripe_event(event_type, obj, event_id)
        return payload, sign_stripe_payload(payload)

    return _make

