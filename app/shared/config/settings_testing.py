# -*- coding: utf-8 -*-
"""
backend/app/shared/config/settings_testing.py

Overrides para entorno de PRUEBAS (test) usando Pydantic v2.
Busca ser determinista: logging moderado, SQLite en memoria,
scheduler apagado y secretos dummy.

Autor: Clarity
Fecha: 2026-09-02
"""

from typing import Literal, Optional

from pydantic import SecretStr
from pydantic_settings import SettingsConfigDict

from .settings_base import BaseAppSettings


class EnvTestingSettings(BaseAppSettings):
    # --- Identidad de entorno ---
    python_env: Literal["development", "test", "production"] = "test"

    # --- Logging en test: menos ruido ---
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = "WARNING"
    log_format: Literal["json", "pretty", "plain"] = "pretty"

    # --- Base de datos aislada ---
    db_url: Optional[str] = "sqlite+aiosqlite:///:memory:"
    db_create_tables: bool = True

    # --- Sin jobs en segundo plano durante tests ---
    scheduler_enabled: bool = False

    # --- Secretos dummy ---
    jwt_secret_key: SecretStr = SecretStr("test-secret-key-with-enough-length-0123")
    internal_service_token: Optional[SecretStr] = SecretStr("test-service-token")

    model_config = SettingsConfigDict(
        env_file=".env.test",
        env_file_encoding="utf-8",
        extra="ignore",
    )


__all__ = ["EnvTestingSettings"]
# Fin del archivo backend/app/shared/config/settings_testing.py
