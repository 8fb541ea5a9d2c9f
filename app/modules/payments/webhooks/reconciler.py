# -*- coding: utf-8 -*-
"""
backend/app/modules/payments/webhooks/reconciler.py

Reconciliador de webhooks de Stripe.

Flujo:
1. verify_event: firma HMAC (Stripe-Signature) contra el secreto compartido.
   Sin secreto o firma inválida → excepción 4xx, sin efectos.
2. Deduplicación por event.id (payment_webhook_events).
3. dispatch por tipo:
   - checkout.session.completed   → ledger.add_credits (12 meses)
   - payment_intent.payment_failed → retries.handle_payment_failure
   - payment_intent.succeeded      → retries.mark_retry_succeeded
   - otro                          → log y ACK
4. Solo si el handler terminó bien se registra el event.id; si falla, la
   excepción sube y la ruta responde 500 para que Stripe reentregue.
   payment_failed no es idempotente por sí mismo: su event.id se registra
   en la misma transacción que la fila de reintento.

Autor: Clarity
Fecha: 2026-09-10
"""

from __future__ import annotations

import asyncio
import json
import logging
import weakref
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Callable, Dict, Optional

import stripe
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from app.modules.credits.enums import CreditSource
from app.modules.credits.services import CreditLedgerService
from app.shared.metrics import WEBHOOKS_OUTCOME_TOTAL
from app.shared.utils.datetime_helpers import add_months, utcnow
from ..enums import StripeEventType
from ..errors import (
    WebhookConfigurationError,
    WebhookPayloadError,
    WebhookSignatureError,
)
from ..repositories import WebhookEventRepository
from ..services.retry_service import PaymentRetryService

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class WebhookResult:
    event_id: Optional[str]
    event_type: str
    status: str  # processed | ignored | duplicate


def _require_positive_int(value: Any, field: str) -> int:
    try:
        parsed = int(value)
    except (TypeError, ValueError):
        raise WebhookPayloadError(f"Invalid metadata.{field}: {value!r}")
    if parsed <= 0:
        raise WebhookPayloadError(f"Invalid metadata.{field}: {value!r}")
    return parsed


def _require_str(metadata: Dict[str, Any], field: str) -> str:
    value = metadata.get(field)
    if not isinstance(value, str) or not value.strip():
        raise WebhookPayloadError(f"Missing metadata.{field}")
    return value.strip()


class WebhookReconciler:
    """
    Verifica y despacha eventos de Stripe de forma idempotente.

    Args:
        session_factory: para el registro de eventos procesados
        ledger: alta de créditos comprados
        retries: máquina de estados de reintentos
        webhook_secret: whsec_... (None = no configurado → 400)
        tolerance_seconds: antigüedad máxima del timestamp firmado
        purchased_credit_months: vigencia de los créditos comprados
    """

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        ledger: CreditLedgerService,
        retries: PaymentRetryService,
        *,
        webhook_secret: Optional[str],
        tolerance_seconds: int = 300,
        purchased_credit_months: int = 12,
        clock: Optional[Callable[[], datetime]] = None,
    ) -> None:
        self._session_factory = session_factory
        self._ledger = ledger
        self._retries = retries
        self._webhook_secret = webhook_secret
        self._tolerance_seconds = tolerance_seconds
        self._purchased_credit_months = purchased_credit_months
        self._clock = clock or utcnow
        self.events = WebhookEventRepository()
        self._event_locks: weakref.WeakValueDictionary = weakref.WeakValueDictionary()

    # ------------------------------------------------------------------
    # Verificación
    # ------------------------------------------------------------------

    def verify_event(self, payload: bytes, signature: Optional[str]) -> Dict[str, Any]:
        """
        Verifica la firma y devuelve el evento decodificado.

        Raises:
            WebhookConfigurationError: no hay secreto configurado
            WebhookSignatureError: header ausente, firma inválida o expirada
        """
        if not self._webhook_secret:
            logger.error("stripe_webhook_secret_missing")
            raise WebhookConfigurationError("Stripe webhook secret is not configured")
        if not signature:
            raise WebhookSignatureError("Missing Stripe-Signature header")

        try:
            text = payload.decode("utf-8")
            stripe.WebhookSignature.verify_header(
                text,
                signature,
                self._webhook_secret,
                self._tolerance_seconds,
            )
        except UnicodeDecodeError:
            raise WebhookSignatureError("Payload is not valid UTF-8")
        except stripe.SignatureVerificationError as e:
            logger.warning("stripe_webhook_signature_invalid msg=%s", e)
            raise WebhookSignatureError("Invalid Stripe signature") from e

        try:
            event = json.loads(text)
        except json.JSONDecodeError as e:
            raise WebhookSignatureError("Signed payload is not valid JSON") from e
        if not isinstance(event, dict):
            raise WebhookSignatureError("Signed payload is not an event object")
        return event

    # ------------------------------------------------------------------
    # Entrada principal
    # ------------------------------------------------------------------

    async def handle(self, payload: bytes, signature: Optional[str]) -> WebhookResult:
        """
        Verifica, deduplica, despacha y registra un evento.

        Los fallos de procesamiento se registran aquí con el tipo de evento
        y se re-lanzan para que la ruta responda 500.
        """
        event = self.verify_event(payload, signature)
        event_id = event.get("id")
        event_type = str(event.get("type") or "unknown")

        logger.info("stripe_webhook_received id=%s type=%s", event_id, event_type)

        try:
            if not event_id:
                return await self._process(event, None, event_type)
            # Entregas simultáneas del mismo evento en este proceso, una a la vez
            async with self._event_lock(event_id):
                return await self._process(event, event_id, event_type)
        except Exception:
            logger.exception("stripe_webhook_failed id=%s type=%s", event_id, event_type)
            WEBHOOKS_OUTCOME_TOTAL.labels(event_type=event_type, outcome="failed").inc()
            raise

    async def _process(
        self,
        event: Dict[str, Any],
        event_id: Optional[str],
        event_type: str,
    ) -> WebhookResult:
        if event_id and await self._already_processed(event_id):
            logger.info("stripe_webhook_duplicate id=%s type=%s", event_id, event_type)
            WEBHOOKS_OUTCOME_TOTAL.labels(event_type=event_type, outcome="duplicate").inc()
            return WebhookResult(event_id, event_type, "duplicate")

        handled = await self.dispatch(event)

        # payment_failed registra el evento dentro de su propia transacción
        if event_id and event_type != StripeEventType.PAYMENT_INTENT_FAILED.value:
            await self._record_processed(event_id, event_type)

        status = "processed" if handled else "ignored"
        WEBHOOKS_OUTCOME_TOTAL.labels(event_type=event_type, outcome=status).inc()
        return WebhookResult(event_id, event_type, status)

    def _event_lock(self, event_id: str) -> asyncio.Lock:
        lock = self._event_locks.get(event_id)
        if lock is None:
            lock = asyncio.Lock()
            self._event_locks[event_id] = lock
        return lock

    async def dispatch(self, event: Dict[str, Any]) -> bool:
        """
        Despacha por tipo de evento.

        Returns:
            False si el tipo no se reconoce (ACK sin acción).
        """
        event_type = event.get("type")
        obj = (event.get("data") or {}).get("object") or {}

        if event_type == StripeEventType.CHECKOUT_SESSION_COMPLETED.value:
            await self._on_checkout_completed(obj)
        elif event_type == StripeEventType.PAYMENT_INTENT_FAILED.value:
            await self._on_payment_failed(obj, event.get("id"))
        elif event_type == StripeEventType.PAYMENT_INTENT_SUCCEEDED.value:
            await self._on_payment_succeeded(obj)
        else:
            logger.info("stripe_webhook_ignored type=%s", event_type)
            return False
        return True

    # ------------------------------------------------------------------
    # Handlers
    # ------------------------------------------------------------------

    async def _on_checkout_completed(self, session: Dict[str, Any]) -> None:
        metadata = session.get("metadata") or {}
        user_id = _require_str(metadata, "user_id")
        package_id = _require_str(metadata, "package_id")
        credits = _require_positive_int(metadata.get("credits"), "credits")

        payment_id = session.get("payment_intent") or session.get("id")
        if not payment_id:
            raise WebhookPayloadError("Checkout session without id")

        expires_at = add_months(self._clock(), self._purchased_credit_months)
        applied = await self._ledger.add_credits(
            user_id,
            credits,
            CreditSource.PURCHASE,
            payment_id,
            expires_at,
        )
        logger.info(
            "checkout_completed user=%s package=%s credits=%d payment=%s applied=%s",
            user_id, package_id, credits, payment_id, applied,
        )

    async def _on_payment_failed(self, intent: Dict[str, Any], event_id: Optional[str] = None) -> None:
        metadata = intent.get("metadata") or {}
        user_id = metadata.get("user_id")
        payment_intent_id = intent.get("id")

        if not user_id:
            logger.warning("payment_failed_without_user intent=%s", payment_intent_id)
            return
        if not payment_intent_id:
            raise WebhookPayloadError("payment_intent.payment_failed without id")

        last_error = intent.get("last_payment_error") or {}
        error_message = last_error.get("message") or "Payment failed"

        await self._retries.handle_payment_failure(
            user_id,
            payment_intent_id,
            metadata.get("package_id"),
            error_message,
            event_id=event_id,
        )

    async def _on_payment_succeeded(self, intent: Dict[str, Any]) -> None:
        payment_intent_id = intent.get("id")
        if not payment_intent_id:
            raise WebhookPayloadError("payment_intent.succeeded without id")
        await self._retries.mark_retry_succeeded(payment_intent_id)

    # ------------------------------------------------------------------
    # Deduplicación
    # ------------------------------------------------------------------

    async def _already_processed(self, event_id: str) -> bool:
        async with self._session_factory() as session:
            return await self.events.exists(session, event_id)

    async def _record_processed(self, event_id: str, event_type: str) -> None:
        try:
            async with self._session_factory() as session, session.begin():
                await self.events.record(session, event_id=event_id, event_type=event_type)
        except IntegrityError:
            # Entrega concurrente del mismo evento; los handlers son idempotentes
            logger.info("stripe_webhook_record_race id=%s", event_id)


__all__ = ["WebhookReconciler", "WebhookResult"]
