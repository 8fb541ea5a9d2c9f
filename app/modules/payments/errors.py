# -*- coding: utf-8 -*-
"""
backend/app/modules/payments/errors.py

Excepciones de dominio del módulo de pagos.

Proveedor:
- ProviderTransientError: red, rate limit, 5xx (esperar puede ayudar)
- ProviderPermanentError: tarjeta rechazada, request inválido (esperar no ayuda)
Ambas consumen un intento de reintento; solo cambian cómo se registran.

Webhooks:
- WebhookConfigurationError / WebhookSignatureError → 400, sin efectos
- WebhookPayloadError → 500, para que Stripe reentregue

Autor: Clarity
Fecha: 2026-09-08
"""

from __future__ import annotations

from typing import Optional


class PaymentProviderError(Exception):
    """Error al invocar al proveedor de pagos."""

    transient: bool = False

    def __init__(
        self,
        message: str,
        *,
        code: Optional[str] = None,
        http_status: Optional[int] = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.code = code
        self.http_status = http_status


class ProviderTransientError(PaymentProviderError):
    transient = True


class ProviderPermanentError(PaymentProviderError):
    transient = False


class WebhookError(Exception):
    """Base de errores del pipeline de webhooks."""


class WebhookConfigurationError(WebhookError):
    """Falta el secreto de firma en configuración."""


class WebhookSignatureError(WebhookError):
    """Firma ausente, inválida o fuera de tolerancia."""


class WebhookPayloadError(WebhookError):
    """Evento firmado pero con metadata faltante o inválida."""


__all__ = [
    "PaymentProviderError",
    "ProviderTransientError",
    "ProviderPermanentError",
    "WebhookError",
    "WebhookConfigurationError",
    "WebhookSignatureError",
    "WebhookPayloadError",
]
