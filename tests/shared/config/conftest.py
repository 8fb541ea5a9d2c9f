# -*- coding: utf-8 -*-
"""
backend/tests/shared/config/conftest.py

Aísla variables de entorno y limpia los singletons de configuración en
cada test de este directorio.

Autor: Clarity
Fecha: 2026-09-16
"""

import os

import pytest

from app.shared.config.config_loader import get_settings
from app.shared.config.settings_payments import reset_payments_settings

_ISOLATED_PREFIXES = (
    "DB_", "JWT_", "STRIPE_", "CORS_", "APP_", "PAYMENT_", "PAYMENTS_",
    "GENERATION_", "QUALITY_", "FRONTEND_", "LOG_", "SCHEDULER_",
)


@pytest.fixture(autouse=True)
def _isolate_env_and_cache(monkeypatch):
    # No heredar PYTHON_ENV ni secretos del shell del dev
    for key in list(os.environ.keys()):
        if key.startswith(_ISOLATED_PREFIXES):
            monkeypatch.delenv(key, raising=False)
    monkeypatch.setenv("PYTHON_ENV", "development")

    get_settings.cache_clear()
    reset_payments_settings()

    yield

    get_settings.cache_clear()
    reset_payments_settings()
# Fin del archivo backend/tests/shared/config/conftest.py
