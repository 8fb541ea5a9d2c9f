# -*- coding: utf-8 -*-
"""
backend/app/modules/payments/providers/__init__.py

Proveedores de pago (solo Stripe).
"""

from .stripe_provider import (
    PaymentIntentResult,
    StripeProvider,
    StripeSessionResult,
    classify_stripe_error,
)

__all__ = [
    "PaymentIntentResult",
    "StripeProvider",
    "StripeSessionResult",
    "classify_stripe_error",
]
