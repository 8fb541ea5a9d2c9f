# -*- coding: utf-8 -*-
"""
backend/app/shared/metrics.py

Métricas Prometheus de Clarity (ledger, reintentos, webhooks, generación).
Registry propio para no mezclar con el default del proceso.

Autor: Clarity
Fecha: 2026-09-05
"""

from prometheus_client import (
    CollectorRegistry,
    Counter,
    Histogram,
    generate_latest,
    CONTENT_TYPE_LATEST,
)

# --------------------------------------------------------------------------
# Registro global de Prometheus
# --------------------------------------------------------------------------
registry = CollectorRegistry()

# --------------------------------------------------------------------------
# Ledger de créditos
# --------------------------------------------------------------------------
CREDIT_OPERATIONS_TOTAL = Counter(
    "credits_operations_total",
    "Operaciones del ledger por tipo y resultado",
    ["operation", "outcome"],  # operation: deduct/refund/add
    registry=registry,
)

# --------------------------------------------------------------------------
# Reintentos de pago
# --------------------------------------------------------------------------
PAYMENT_RETRY_OUTCOMES_TOTAL = Counter(
    "payments_retry_outcomes_total",
    "Resultados de intentos de reintento (succeeded/pending/failed/skipped)",
    ["outcome"],
    registry=registry,
)
PAYMENT_PROVIDER_ERRORS_TOTAL = Counter(
    "payments_provider_errors_total",
    "Errores del proveedor de pagos por clase (transient/permanent)",
    ["kind"],
    registry=registry,
)

# --------------------------------------------------------------------------
# Webhooks
# --------------------------------------------------------------------------
WEBHOOKS_OUTCOME_TOTAL = Counter(
    "payments_webhook_outcome_total",
    "Webhooks por tipo de evento y outcome (processed/ignored/duplicate/failed)",
    ["event_type", "outcome"],
    registry=registry,
)

# --------------------------------------------------------------------------
# Generación
# --------------------------------------------------------------------------
GENERATION_JOBS_TOTAL = Counter(
    "generation_jobs_total",
    "Jobs de generación por resultado terminal",
    ["outcome"],  # complete/refunded/error/cancelled/rejected
    registry=registry,
)
GENERATION_STAGE_SECONDS = Histogram(
    "generation_stage_seconds",
    "Duración de cada etapa de generación (segundos)",
    ["stage"],
    registry=registry,
)


def render_latest() -> tuple[bytes, str]:
    """Payload de exposición y su content-type."""
    return generate_latest(registry), CONTENT_TYPE_LATEST


__all__ = [
    "registry",
    "CREDIT_OPERATIONS_TOTAL",
    "PAYMENT_RETRY_OUTCOMES_TOTAL",
    "PAYMENT_PROVIDER_ERRORS_TOTAL",
    "WEBHOOKS_OUTCOME_TOTAL",
    "GENERATION_JOBS_TOTAL",
    "GENERATION_STAGE_SECONDS",
    "render_latest",
]
