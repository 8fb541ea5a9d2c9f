# -*- coding: utf-8 -*-
"""
backend/app/shared/scheduler/scheduler_service.py

Servicio de programación de tareas periódicas usando APScheduler.
Lo usa el sweep de reintentos de pago (payments_retry_sweep).

Autor: Clarity
Fecha: 2026-09-04
"""

import logging
from typing import Any, Awaitable, Callable, Optional
from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.interval import IntervalTrigger
from apscheduler.jobstores.base import JobLookupError
from apscheduler.jobstores.memory import MemoryJobStore
from apscheduler.executors.asyncio import AsyncIOExecutor

logger = logging.getLogger(__name__)


class SchedulerService:
    """
    Envoltura mínima sobre AsyncIOScheduler.

    - Jobs en memoria, ejecutados en el event loop de la app
    - Una instancia por job (max_instances=1): un sweep lento no se solapa
      con el siguiente
    - Ejecuciones perdidas se combinan (coalesce)
    """

    def __init__(self) -> None:
        self._scheduler = AsyncIOScheduler(
            jobstores={"default": MemoryJobStore()},
            executors={"default": AsyncIOExecutor()},
            job_defaults={
                "coalesce": True,
                "max_instances": 1,
                "misfire_grace_time": 30,
            },
            timezone="UTC",
        )
        self._started = False

    def start(self) -> None:
        """Inicia el scheduler (requiere event loop activo)."""
        if not self._started:
            self._scheduler.start()
            self._started = True
            logger.info("scheduler_started")

    def shutdown(self, wait: bool = False) -> None:
        if self._started:
            self._scheduler.shutdown(wait=wait)
            self._started = False
            logger.info("scheduler_stopped")

    def add_interval_job(
        self,
        func: Callable[..., Awaitable[Any]],
        job_id: str,
        hours: int = 0,
        minutes: int = 0,
        seconds: int = 0,
        **kwargs: Any,
    ) -> str:
        """
        Agrega (o reemplaza) un job que se ejecuta a intervalos regulares.

        Args:
            func: Corrutina a ejecutar
            job_id: ID único del job
            hours / minutes / seconds: Intervalo
            **kwargs: Argumentos para func

        Returns:
            ID del job agregado
        """
        trigger = IntervalTrigger(hours=hours, minutes=minutes, seconds=seconds)
        self._scheduler.add_job(
            func=func,
            trigger=trigger,
            id=job_id,
            name=job_id,
            replace_existing=True,
            kwargs=kwargs,
        )
        logger.info("scheduler_job_added id=%s every=%dh%dm%ds", job_id, hours, minutes, seconds)
        return job_id

    def remove_job(self, job_id: str) -> bool:
        """
        Elimina un job programado.

        Returns:
            True si se eliminó, False si no existía
        """
        try:
            self._scheduler.remove_job(job_id)
        except JobLookupError:
            logger.debug("scheduler_job_missing id=%s", job_id)
            return False
        logger.info("scheduler_job_removed id=%s", job_id)
        return True

    def get_job_status(self, job_id: str) -> Optional[dict]:
        """Dict con id, next_run y trigger del job, o None si no existe."""
        job = self._scheduler.get_job(job_id)
        if job is None:
            return None
        return {
            "id": job.id,
            "name": job.name,
            "next_run": getattr(job, "next_run_time", None),
            "trigger": str(job.trigger),
        }

    @property
    def is_running(self) -> bool:
        """Retorna True si el scheduler está activo."""
        return self._started and self._scheduler.running


# Singleton global del scheduler
_scheduler_instance: Optional[SchedulerService] = None


def get_scheduler() -> SchedulerService:
    """Obtiene la instancia global del scheduler (singleton)."""
    global _scheduler_instance
    if _scheduler_instance is None:
        _scheduler_instance = SchedulerService()
    return _scheduler_instance


# Fin del archivo backend/app/shared/scheduler/scheduler_service.py
