# -*- coding: utf-8 -*-
"""
backend/tests/shared/config/test_settings_payments.py

Tests de configuración de pagos.

Autor: Clarity
Fecha: 2026-09-16
"""

from app.shared.config.settings_payments import (
    PaymentsSettings,
    get_payments_settings,
    reset_payments_settings,
)


def test_payments_settings_defaults():
    """Defaults sin .env: Stripe sin configurar, sweep cada 15 min."""
    settings = PaymentsSettings(_env_file=None)

    assert settings.secret_key_value() is None
    assert settings.webhook_secret_value() is None
    assert settings.stripe_webhook_tolerance_seconds == 300
    assert settings.currency == "gbp"
    assert settings.retry_sweep_interval_minutes == 15
    assert settings.retry_claim_lease_minutes == 10
    assert settings.purchased_credit_months == 12


def test_empty_webhook_secret_counts_as_missing(monkeypatch):
    monkeypatch.setenv("STRIPE_WEBHOOK_SECRET", "")
    assert PaymentsSettings(_env_file=None).webhook_secret_value() is None


def test_frontend_url_alias(monkeypatch):
    monkeypatch.setenv("FRONTEND_BASE_URL", "https://app.example")
    assert PaymentsSettings(_env_file=None).frontend_url == "https://app.example"


def test_get_payments_settings_singleton_and_reset(monkeypatch):
    first = get_payments_settings()
    assert get_payments_settings() is first

    monkeypatch.setenv("PAYMENT_RETRY_SWEEP_MINUTES", "5")
    reset_payments_settings()

    second = get_payments_settings()
    assert second is not first
    assert second.retry_sweep_interval_minutes == 5
# Fin del archivo backend/tests/shared/config/test_settings_payments.py
