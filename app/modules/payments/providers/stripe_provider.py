# -*- coding: utf-8 -*-
"""
backend/app/modules/payments/providers/stripe_provider.py

Proveedor Stripe: confirmación de payment intents (reintentos) y
creación de Checkout Sessions (compra de créditos).

El cliente `stripe.StripeClient` se construye una sola vez en el
lifespan de la app y se inyecta; no se usa `stripe.api_key` global.
Las llamadas del SDK son bloqueantes y se ejecutan en threadpool.

Autor: Clarity
Fecha: 2026-09-08
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Optional

import stripe
from fastapi.concurrency import run_in_threadpool

from app.shared.metrics import PAYMENT_PROVIDER_ERRORS_TOTAL
from ..errors import PaymentProviderError, ProviderPermanentError, ProviderTransientError

logger = logging.getLogger(__name__)

# Errores de Stripe donde esperar y reintentar puede funcionar
_TRANSIENT_STRIPE_ERRORS = (
    stripe.APIConnectionError,
    stripe.RateLimitError,
    stripe.APIError,
)


@dataclass
class PaymentIntentResult:
    """Resultado de confirmar un payment intent."""
    payment_intent_id: str
    status: str
    error_message: Optional[str] = None

    @property
    def succeeded(self) -> bool:
        return self.status == "succeeded"


@dataclass
class StripeSessionResult:
    """Resultado de crear una sesión de checkout en Stripe."""
    checkout_url: str
    session_id: str
    provider: str = "stripe"


def classify_stripe_error(exc: stripe.StripeError) -> PaymentProviderError:
    """
    Traduce un error del SDK a transitorio o permanente.

    Transitorio: conexión, rate limit, APIError o cualquier HTTP >= 500.
    Permanente: el resto (CardError, InvalidRequestError, auth...).
    """
    http_status = getattr(exc, "http_status", None)
    code = getattr(exc, "code", None)
    message = getattr(exc, "user_message", None) or str(exc) or exc.__class__.__name__

    if isinstance(exc, _TRANSIENT_STRIPE_ERRORS) or (http_status is not None and http_status >= 500):
        return ProviderTransientError(message, code=code, http_status=http_status)
    return ProviderPermanentError(message, code=code, http_status=http_status)


class StripeProvider:
    """
    Proveedor de pagos Stripe.

    Args:
        client: StripeClient ya construido, o None si Stripe no está
                configurado (todas las llamadas fallan como permanentes).
    """

    def __init__(self, client: Optional[stripe.StripeClient]) -> None:
        self._client = client

    @classmethod
    def from_secret_key(cls, secret_key: Optional[str]) -> "StripeProvider":
        if not secret_key:
            logger.warning("stripe_not_configured: STRIPE_SECRET_KEY missing")
            return cls(None)
        return cls(stripe.StripeClient(secret_key))

    @property
    def is_configured(self) -> bool:
        return self._client is not None

    def _require_client(self) -> stripe.StripeClient:
        if self._client is None:
            raise ProviderPermanentError("Stripe is not configured", code="not_configured")
        return self._client

    async def _call(self, operation: str, func: Any, *args: Any, **kwargs: Any) -> Any:
        try:
            return await run_in_threadpool(func, *args, **kwargs)
        except stripe.StripeError as e:
            error = classify_stripe_error(e)
            kind = "transient" if error.transient else "permanent"
            PAYMENT_PROVIDER_ERRORS_TOTAL.labels(kind=kind).inc()
            if error.transient:
                logger.warning(
                    "stripe_transient_error op=%s status=%s code=%s msg=%s",
                    operation, error.http_status, error.code, error.message,
                )
            else:
                logger.error(
                    "stripe_permanent_error op=%s status=%s code=%s msg=%s",
                    operation, error.http_status, error.code, error.message,
                )
            raise error from e

    async def confirm_payment_intent(self, payment_intent_id: str) -> PaymentIntentResult:
        """
        Confirma un payment intent existente.

        Raises:
            ProviderTransientError / ProviderPermanentError
        """
        client = self._require_client()
        intent = await self._call(
            "confirm_payment_intent",
            client.payment_intents.confirm,
            payment_intent_id,
        )

        last_error = getattr(intent, "last_payment_error", None)
        error_message = getattr(last_error, "message", None) if last_error else None

        logger.info(
            "stripe_intent_confirmed intent=%s status=%s",
            payment_intent_id, intent.status,
        )
        return PaymentIntentResult(
            payment_intent_id=payment_intent_id,
            status=intent.status,
            error_message=error_message,
        )

    async def create_checkout_session(
        self,
        *,
        user_id: str,
        package_id: str,
        package_name: str,
        credits_amount: int,
        price_pence: int,
        currency: str,
        success_url: str,
        cancel_url: str,
    ) -> StripeSessionResult:
        """
        Crea una Stripe Checkout Session para compra de créditos.

        La metadata se replica en payment_intent_data para que los eventos
        payment_intent.* (fallos, éxitos) también traigan user_id.
        """
        client = self._require_client()

        metadata = {
            "user_id": user_id,
            "package_id": package_id,
            "credits": str(credits_amount),
        }
        params = {
            "mode": "payment",
            "payment_method_types": ["card"],
            "line_items": [
                {
                    "price_data": {
                        "currency": currency.lower(),
                        "unit_amount": price_pence,
                        "product_data": {
                            "name": f"{package_name} - {credits_amount} Credits",
                            "description": f"Purchase {credits_amount} credits for Clarity",
                        },
                    },
                    "quantity": 1,
                }
            ],
            "success_url": success_url,
            "cancel_url": cancel_url,
            "metadata": metadata,
            "payment_intent_data": {"metadata": dict(metadata)},
        }

        session = await self._call(
            "create_checkout_session",
            client.checkout.sessions.create,
            params=params,
        )

        logger.info(
            "stripe_checkout_created session=%s user=%s package=%s",
            session.id, user_id, package_id,
        )
        return StripeSessionResult(checkout_url=session.url, session_id=session.id)


__all__ = [
    "StripeProvider",
    "PaymentIntentResult",
    "StripeSessionResult",
    "classify_stripe_error",
]
