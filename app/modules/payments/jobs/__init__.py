# -*- coding: utf-8 -*-
"""
backend/app/modules/payments/jobs/__init__.py

Jobs programados para el módulo de pagos.

Autor: Clarity
Fecha: 2026-09-10
"""

from .retry_sweep_job import (
    RETRY_SWEEP_JOB_ID,
    register_retry_sweep_job,
    run_retry_sweep,
)

__all__ = [
    "run_retry_sweep",
    "register_retry_sweep_job",
    "RETRY_SWEEP_JOB_ID",
]
