# -*- coding: utf-8 -*-
"""
backend/app/main.py

Punto de entrada principal del backend Clarity.

Ciclo de vida (lifespan):
- STARTUP: logging → engine/session factory → StripeProvider (un solo
  StripeClient por proceso) → ledger, reintentos, reconciliador de
  webhooks y orquestador de generación en app.state → scheduler con el
  sweep de reintentos.
- SHUTDOWN: scheduler → cancelación de jobs de generación en curso (cada
  uno reembolsa su crédito antes de terminar) → notificaciones pendientes
  → cliente HTTP de agentes → engine.

Autor: Clarity
Fecha: 2026-09-13
"""

import logging
from contextlib import asynccontextmanager
from datetime import timedelta

import httpx
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from app.modules.credits.services import CreditLedgerService
from app.modules.generation.agents import build_default_stages
from app.modules.generation.orchestrator import GenerationOrchestrator
from app.modules.payments.jobs import RETRY_SWEEP_JOB_ID, register_retry_sweep_job
from app.modules.payments.providers import StripeProvider
from app.modules.payments.services import PaymentRetryService
from app.modules.payments.webhooks import WebhookReconciler
from app.routes import router as main_router
from app.shared.config import get_payments_settings, get_settings, setup_logging
from app.shared.database import Base, build_engine, build_session_factory
from app.shared.scheduler import get_scheduler
from app.shared.utils.async_job_registry import AsyncJobRegistry

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    # ────────── STARTUP ──────────
    settings = get_settings()
    payments_settings = get_payments_settings()
    setup_logging(settings.log_level, settings.log_format)

    engine = build_engine(
        settings.database_url,
        echo=settings.db_echo_sql,
        pool_size=settings.db_pool_size,
        max_overflow=settings.db_max_overflow,
        pool_pre_ping=settings.db_pool_pre_ping,
    )
    if settings.db_create_tables:
        # Registra los modelos en Base.metadata antes de create_all
        import app.modules.credits.models as _credit_models  # noqa: F401
        import app.modules.payments.models as _payment_models  # noqa: F401

        async with engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)
        logger.info("db_tables_ensured")

    session_factory = build_session_factory(engine)

    provider = StripeProvider.from_secret_key(payments_settings.secret_key_value())
    ledger = CreditLedgerService(session_factory)
    retries = PaymentRetryService(
        session_factory,
        provider,
        claim_lease=timedelta(minutes=payments_settings.retry_claim_lease_minutes),
    )
    reconciler = WebhookReconciler(
        session_factory,
        ledger,
        retries,
        webhook_secret=payments_settings.webhook_secret_value(),
        tolerance_seconds=payments_settings.stripe_webhook_tolerance_seconds,
        purchased_credit_months=payments_settings.purchased_credit_months,
    )

    agents_client = httpx.AsyncClient(timeout=settings.generation_agent_timeout_s)
    orchestrator = GenerationOrchestrator(
        ledger,
        build_default_stages(settings.generation_agents_url, agents_client),
        quality_threshold=settings.quality_gate_threshold,
        deadline_s=settings.generation_job_deadline_s,
    )
    job_registry = AsyncJobRegistry()

    app.state.engine = engine
    app.state.session_factory = session_factory
    app.state.stripe_provider = provider
    app.state.credit_ledger = ledger
    app.state.payment_retries = retries
    app.state.webhook_reconciler = reconciler
    app.state.generation_orchestrator = orchestrator
    app.state.job_registry = job_registry

    scheduler = get_scheduler()
    if settings.scheduler_enabled:
        register_retry_sweep_job(
            retries,
            interval_minutes=payments_settings.retry_sweep_interval_minutes,
            scheduler=scheduler,
        )
        scheduler.start()

    logger.info("app_started env=%s version=%s", settings.python_env, settings.app_version)

    try:
        yield
    finally:
        # ────────── SHUTDOWN ──────────
        logger.info("app_shutdown_started")

        if scheduler.is_running:
            scheduler.remove_job(RETRY_SWEEP_JOB_ID)
            scheduler.shutdown(wait=False)

        await job_registry.cancel_all_tasks(timeout=30.0)
        await retries.notifications.drain()
        await agents_client.aclose()
        await engine.dispose()

        logger.info("app_shutdown_complete")


def create_app() -> FastAPI:
    settings = get_settings()

    app = FastAPI(
        title=f"{settings.app_name} API",
        description="Créditos, pagos con reintentos y generación por etapas",
        version=settings.app_version,
        lifespan=lifespan,
    )

    origins = settings.get_cors_origins()
    wildcard = origins == ["*"]
    app.add_middleware(
        CORSMiddleware,
        allow_origins=origins,
        # "*" con credenciales es inválido en navegadores
        allow_credentials=not wildcard,
        allow_methods=["GET", "POST", "OPTIONS"],
        allow_headers=["*"],
        max_age=600,
    )

    app.include_router(main_router)
    return app


app = create_app()

# Fin del archivo backend/app/main.py
