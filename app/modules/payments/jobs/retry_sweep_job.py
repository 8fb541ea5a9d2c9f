# -*- coding: utf-8 -*-
"""
backend/app/modules/payments/jobs/retry_sweep_job.py

Job programado: sweep de reintentos de pago vencidos.

Corre cada RETRY_SWEEP_INTERVAL_MINUTES (15 por defecto). El scheduler
usa max_instances=1, así que un sweep lento nunca se solapa consigo mismo;
aun así cada fila se reclama con UPDATE condicional por si hay varias
réplicas de la app.

Autor: Clarity
Fecha: 2026-09-10
"""

from __future__ import annotations

import logging
from typing import Any, Dict, Optional

from app.shared.scheduler import SchedulerService, get_scheduler
from ..services.retry_service import PaymentRetryService

logger = logging.getLogger(__name__)

# ID del job para referencia
RETRY_SWEEP_JOB_ID = "payments_retry_sweep"

DEFAULT_INTERVAL_MINUTES = 15


async def run_retry_sweep(service: PaymentRetryService) -> Optional[Dict[str, Any]]:
    """
    Ejecuta un sweep completo.

    Un fallo del sweep (p.ej. base caída) se registra y se deja para la
    siguiente ejecución; las filas no reclamadas siguen vencidas.

    Returns:
        Conteos del sweep, o None si falló
    """
    try:
        result = await service.process_all_pending_retries()
    except Exception:
        logger.exception("payment_retry_sweep_failed")
        return None
    return result.to_dict()


def register_retry_sweep_job(
    service: PaymentRetryService,
    interval_minutes: int = DEFAULT_INTERVAL_MINUTES,
    scheduler: Optional[SchedulerService] = None,
) -> str:
    """
    Registra el sweep en el scheduler (global por defecto).

    Returns:
        ID del job registrado
    """
    scheduler = scheduler or get_scheduler()

    job_id = scheduler.add_interval_job(
        func=run_retry_sweep,
        job_id=RETRY_SWEEP_JOB_ID,
        minutes=interval_minutes,
        service=service,
    )

    logger.info(
        "payment_retry_sweep_registered id=%s interval=%d min",
        job_id,
        interval_minutes,
    )
    return job_id


__all__ = [
    "run_retry_sweep",
    "register_retry_sweep_job",
    "RETRY_SWEEP_JOB_ID",
]
