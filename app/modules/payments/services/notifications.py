# -*- coding: utf-8 -*-
"""
backend/app/modules/payments/services/notifications.py

Notificación al usuario cuando un pago agota sus reintentos.

Best-effort: se despacha en segundo plano y un fallo aquí nunca revierte
ni bloquea la transición de estado del reintento.

Autor: Clarity
Fecha: 2026-09-09
"""

from __future__ import annotations

import asyncio
import logging
from typing import Optional, Protocol, Set

logger = logging.getLogger(__name__)


class PaymentFailureNotifier(Protocol):
    async def notify_payment_failed(
        self,
        *,
        user_id: str,
        payment_intent_id: str,
        package_id: Optional[str],
        error_message: Optional[str],
    ) -> None:
        ...


class LoggingPaymentFailureNotifier:
    """Notificador por defecto: deja constancia estructurada en logs."""

    async def notify_payment_failed(
        self,
        *,
        user_id: str,
        payment_intent_id: str,
        package_id: Optional[str],
        error_message: Optional[str],
    ) -> None:
        logger.warning(
            "payment_failed_notification user=%s intent=%s package=%s error=%s",
            user_id, payment_intent_id, package_id, error_message,
        )


class BackgroundNotificationDispatcher:
    """
    Lanza notificaciones como tasks sin esperar su resultado.

    Guarda referencia a cada task hasta que termina (evita que el GC
    la recolecte) y registra en log cualquier excepción.
    """

    def __init__(self, notifier: PaymentFailureNotifier) -> None:
        self._notifier = notifier
        self._tasks: Set[asyncio.Task] = set()

    def dispatch(
        self,
        *,
        user_id: str,
        payment_intent_id: str,
        package_id: Optional[str],
        error_message: Optional[str],
    ) -> asyncio.Task:
        task = asyncio.create_task(
            self._notifier.notify_payment_failed(
                user_id=user_id,
                payment_intent_id=payment_intent_id,
                package_id=package_id,
                error_message=error_message,
            )
        )
        self._tasks.add(task)
        task.add_done_callback(self._on_done)
        return task

    def _on_done(self, task: asyncio.Task) -> None:
        self._tasks.discard(task)
        if task.cancelled():
            return
        exc = task.exception()
        if exc is not None:
            logger.error("payment_failed_notification_error error=%r", exc)

    async def drain(self) -> None:
        """Espera las notificaciones en vuelo (shutdown y pruebas)."""
        if self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)


__all__ = [
    "PaymentFailureNotifier",
    "LoggingPaymentFailureNotifier",
    "BackgroundNotificationDispatcher",
]
