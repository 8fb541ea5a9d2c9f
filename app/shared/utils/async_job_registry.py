# -*- coding: utf-8 -*-
"""
backend/app/shared/utils/async_job_registry.py

Registry para mantener referencias de asyncio.Task activos (jobs de
generación, notificaciones en segundo plano).

- Evita que el GC recolecte tasks lanzadas con create_task.
- Permite cancelación ordenada durante shutdown: al cancelar, cada job
  corre su propio bloque de compensación (p.ej. reembolso de créditos).

Autor: Clarity
Fecha: 2026-09-03
"""

from __future__ import annotations

import asyncio
import logging
from typing import Dict, Optional

logger = logging.getLogger(__name__)


class AsyncJobRegistry:
    """Registry de asyncio.Task activos indexados por job_id."""

    def __init__(self) -> None:
        self._active_tasks: Dict[str, asyncio.Task] = {}

    def register_task(self, job_id: str, task: asyncio.Task) -> None:
        """Registra una task y la desregistra sola al terminar."""
        self._active_tasks[job_id] = task
        task.add_done_callback(lambda _t: self.unregister_task(job_id))
        logger.debug("task_registered job_id=%s", job_id)

    def unregister_task(self, job_id: str) -> None:
        if self._active_tasks.pop(job_id, None) is not None:
            logger.debug("task_unregistered job_id=%s", job_id)

    def get_task(self, job_id: str) -> Optional[asyncio.Task]:
        return self._active_tasks.get(job_id)

    def get_active_count(self) -> int:
        return len([t for t in self._active_tasks.values() if not t.done()])

    async def cancel_all_tasks(self, timeout: float = 30.0) -> None:
        """
        Cancela todas las tasks activas y espera a que terminen.

        Args:
            timeout: Tiempo máximo de espera en segundos
        """
        active_tasks = [t for t in self._active_tasks.values() if not t.done()]

        if not active_tasks:
            logger.info("job_registry_idle: no active tasks to cancel")
            return

        logger.info("job_registry_cancelling count=%d", len(active_tasks))
        for task in active_tasks:
            task.cancel()

        try:
            await asyncio.wait_for(
                asyncio.gather(*active_tasks, return_exceptions=True),
                timeout=timeout,
            )
            logger.info("job_registry_cancelled count=%d", len(active_tasks))
        except asyncio.TimeoutError:
            logger.warning("job_registry_cancel_timeout timeout=%ss", timeout)

        self._active_tasks.clear()


__all__ = ["AsyncJobRegistry"]
