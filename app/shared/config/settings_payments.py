# -*- coding: utf-8 -*-
"""
backend/app/shared/config/settings_payments.py

Configuración de pagos, reintentos y créditos para Clarity.

Descripción:
    Centraliza claves de Stripe, tolerancia de webhooks, URLs de
    checkout, intervalo del sweep de reintentos y vigencia de créditos.

Autor: Clarity
Fecha: 2026-09-02
"""

from __future__ import annotations

from typing import Optional
from pydantic import AliasChoices, Field, SecretStr
from pydantic_settings import BaseSettings, SettingsConfigDict


class PaymentsSettings(BaseSettings):
    """Configuración del sistema de pagos."""

    # =========================================================================
    # STRIPE
    # =========================================================================

    stripe_secret_key: Optional[SecretStr] = Field(
        default=None,
        validation_alias="STRIPE_SECRET_KEY",
        description="Stripe secret key (sk_live_... o sk_test_...)",
    )

    stripe_webhook_secret: Optional[SecretStr] = Field(
        default=None,
        validation_alias="STRIPE_WEBHOOK_SECRET",
        description="Stripe webhook signing secret (whsec_...)",
    )

    stripe_webhook_tolerance_seconds: int = Field(
        default=300,
        validation_alias="STRIPE_WEBHOOK_TOLERANCE_SECONDS",
        description="Tolerancia para validación de timestamp de webhooks Stripe (5 minutos)",
    )

    currency: str = Field(
        default="gbp",
        validation_alias="PAYMENTS_CURRENCY",
        description="Moneda única de los paquetes de créditos",
    )

    # =========================================================================
    # FRONTEND URL (redirects de checkout)
    # =========================================================================

    frontend_url: str = Field(
        default="http://localhost:3000",
        validation_alias=AliasChoices("FRONTEND_URL", "FRONTEND_BASE_URL"),
        description="URL base del frontend para redirects de checkout",
    )

    # =========================================================================
    # REINTENTOS DE PAGO
    # =========================================================================

    retry_sweep_interval_minutes: int = Field(
        default=15,
        ge=1,
        validation_alias="PAYMENT_RETRY_SWEEP_MINUTES",
        description="Cada cuántos minutos corre el sweep de reintentos",
    )

    retry_claim_lease_minutes: int = Field(
        default=10,
        ge=1,
        validation_alias="PAYMENT_RETRY_CLAIM_LEASE_MINUTES",
        description="Tiempo que un reintento reclamado queda fuera del sweep",
    )

    # =========================================================================
    # CRÉDITOS
    # =========================================================================

    purchased_credit_months: int = Field(
        default=12,
        ge=1,
        validation_alias="PURCHASED_CREDIT_MONTHS",
        description="Vigencia en meses de los créditos comprados",
    )

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    def webhook_secret_value(self) -> Optional[str]:
        """Devuelve el secreto de webhook como str, o None si no está configurado."""
        if self.stripe_webhook_secret is None:
            return None
        return self.stripe_webhook_secret.get_secret_value() or None

    def secret_key_value(self) -> Optional[str]:
        if self.stripe_secret_key is None:
            return None
        return self.stripe_secret_key.get_secret_value() or None


# Singleton global
_payments_settings: Optional[PaymentsSettings] = None


def get_payments_settings() -> PaymentsSettings:
    """
    Obtiene la instancia global de configuración de pagos.

    Returns:
        PaymentsSettings: Configuración de pagos
    """
    global _payments_settings
    if _payments_settings is None:
        _payments_settings = PaymentsSettings()
    return _payments_settings


def reset_payments_settings() -> None:
    """Descarta el singleton (útil en tests que cambian variables de entorno)."""
    global _payments_settings
    _payments_settings = None


__all__ = [
    "PaymentsSettings",
    "get_payments_settings",
    "reset_payments_settings",
]
# Fin del archivo backend/app/shared/config/settings_payments.py
