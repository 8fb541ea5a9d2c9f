# -*- coding: utf-8 -*-
"""
backend/app/modules/generation/orchestrator.py

Orquestador de jobs de generación con cobro por crédito.

Secuencia:
1. start(): consentimiento → has_credits → deduct_credits(1, job_id).
   Un job que arrancó tiene exactamente una transacción usage.
2. run(): etapas en orden, una a la vez, emitiendo eventos antes y después
   de cada una; luego quality gate.
   - score < umbral → refund "Quality gate failed", complete(creditRefunded=true)
   - excepción en una etapa o deadline → refund "Generation failed", error(...)
   - cancelación (cliente, shutdown) → refund y se re-lanza CancelledError
   Todo reembolso corre protegido con shield: si el task se cancela a
   mitad, se espera a que el reembolso termine y se emite el evento error
   antes de propagar la cancelación.
   refund_credits es idempotente por job_id, así que un doble intento
   de reembolso es inofensivo.

Autor: Clarity
Fecha: 2026-09-12
"""

from __future__ import annotations

import asyncio
import logging
import time
import uuid
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Callable, Dict, List, Optional, Sequence

from app.modules.credits.services import CreditLedgerService
from app.shared.metrics import GENERATION_JOBS_TOTAL, GENERATION_STAGE_SECONDS
from app.shared.utils.datetime_helpers import utcnow
from .agents import StageAgent, StageContext
from .enums import AgentState, ProgressEventType, StartStatus
from .events import EventChannel
from .quality_gate import DEFAULT_QUALITY_THRESHOLD, evaluate_quality, extract_quality_score

logger = logging.getLogger(__name__)

JOB_COST_CREDITS = 1

REFUND_REASON_QUALITY = "Quality gate failed"
REFUND_REASON_FAILED = "Generation failed"
REFUND_REASON_CANCELLED = "Generation cancelled"


@dataclass
class AgentStatus:
    name: str
    state: AgentState = AgentState.PENDING
    started_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None


@dataclass
class GenerationJob:
    """
    Job en memoria: vive lo que dura el request. Sus únicos efectos
    durables son las transacciones del ledger con reference_id = job_id.

    credit_refunded pasa a True una sola vez; un segundo intento de
    marcarlo es un error de programación.
    """

    job_id: str
    user_id: str
    params: Dict[str, Any]
    agents: List[AgentStatus] = field(default_factory=list)
    current_stage: Optional[str] = None
    quality_score: Optional[float] = None
    _credit_refunded: bool = field(default=False, init=False, repr=False)

    @property
    def credit_refunded(self) -> bool:
        return self._credit_refunded

    def mark_credit_refunded(self) -> None:
        if self._credit_refunded:
            raise RuntimeError(f"Credit already refunded for job {self.job_id}")
        self._credit_refunded = True


@dataclass(frozen=True)
class StartResult:
    status: StartStatus
    job: Optional[GenerationJob] = None

    @property
    def started(self) -> bool:
        return self.status == StartStatus.STARTED


@dataclass(frozen=True)
class JobOutcome:
    job_id: str
    quality_score: Optional[float]
    credit_refunded: bool
    error: Optional[str] = None


def _new_job_id() -> str:
    return str(uuid.uuid4())


class GenerationOrchestrator:
    """
    Args:
        ledger: CreditLedgerService
        stages: agentes en el orden de ejecución
        quality_threshold: umbral del quality gate (0-10)
        deadline_s: límite total opcional del pipeline de etapas
        job_id_factory: generador de ids (inyectable en pruebas)
        clock: fuente de "ahora" para los tiempos de cada etapa
    """

    def __init__(
        self,
        ledger: CreditLedgerService,
        stages: Sequence[StageAgent],
        *,
        quality_threshold: float = DEFAULT_QUALITY_THRESHOLD,
        deadline_s: Optional[float] = None,
        job_id_factory: Optional[Callable[[], str]] = None,
        clock: Optional[Callable[[], datetime]] = None,
    ) -> None:
        self._ledger = ledger
        self._stages = list(stages)
        self._quality_threshold = quality_threshold
        self._deadline_s = deadline_s
        self._job_id_factory = job_id_factory or _new_job_id
        self._clock = clock or utcnow

    @property
    def stage_names(self) -> list[str]:
        return [stage.name for stage in self._stages]

    # ------------------------------------------------------------------
    # Arranque
    # ------------------------------------------------------------------

    async def start(self, user_id: str, params: Dict[str, Any], *, consent: bool) -> StartResult:
        """
        Valida y cobra el job. Nada se ejecuta todavía.

        Returns:
            StartResult con el job, o el motivo del rechazo.
        """
        if not consent:
            logger.info("generation_rejected_consent user=%s", user_id)
            GENERATION_JOBS_TOTAL.labels(outcome="rejected").inc()
            return StartResult(StartStatus.CONSENT_REQUIRED)

        if not await self._ledger.has_credits(user_id, JOB_COST_CREDITS):
            logger.info("generation_rejected_insufficient_credits user=%s", user_id)
            GENERATION_JOBS_TOTAL.labels(outcome="rejected").inc()
            return StartResult(StartStatus.INSUFFICIENT_CREDITS)

        job_id = self._job_id_factory()
        target = params.get("target_entity")
        description = f"Generation job: {target}" if target else "Generation job"

        deducted = await self._ledger.deduct_credits(user_id, JOB_COST_CREDITS, job_id, description)
        if not deducted:
            # Otro job consumió el último crédito entre la verificación y el descuento
            logger.info("generation_rejected_insufficient_credits user=%s stage=deduct", user_id)
            GENERATION_JOBS_TOTAL.labels(outcome="rejected").inc()
            return StartResult(StartStatus.INSUFFICIENT_CREDITS)

        job = GenerationJob(
            job_id,
            user_id,
            dict(params),
            agents=[AgentStatus(name) for name in self.stage_names],
        )
        logger.info("generation_job_started job=%s user=%s", job_id, user_id)
        return StartResult(StartStatus.STARTED, job)

    # ------------------------------------------------------------------
    # Ejecución
    # ------------------------------------------------------------------

    async def run(self, job: GenerationJob, channel: EventChannel) -> JobOutcome:
        """
        Ejecuta las etapas y deja el ledger reconciliado pase lo que pase.

        El canal siempre queda cerrado al salir.
        """
        if not job.agents:
            job.agents = [AgentStatus(name) for name in self.stage_names]

        channel.emit(ProgressEventType.STARTED, investigationId=job.job_id)
        try:
            outputs = await self._run_with_deadline(job, channel)

            decision = evaluate_quality(extract_quality_score(outputs), self._quality_threshold)
            job.quality_score = decision.score
            if decision.refund_required:
                logger.info(
                    "generation_quality_gate_failed job=%s score=%.2f threshold=%.2f",
                    job.job_id, decision.score, decision.threshold,
                )
                await self._refund_shielded(job, REFUND_REASON_QUALITY)

            channel.emit(
                ProgressEventType.COMPLETE,
                investigationId=job.job_id,
                qualityScore=decision.score,
                creditRefunded=job.credit_refunded,
            )
            GENERATION_JOBS_TOTAL.labels(outcome="refunded" if job.credit_refunded else "complete").inc()
            logger.info(
                "generation_job_complete job=%s score=%.2f tier=%s refunded=%s",
                job.job_id, decision.score, decision.tier.value, job.credit_refunded,
            )
            return JobOutcome(job.job_id, decision.score, job.credit_refunded)

        except asyncio.CancelledError:
            logger.warning("generation_job_cancelled job=%s stage=%s", job.job_id, job.current_stage)
            try:
                await self._refund_shielded(job, REFUND_REASON_CANCELLED)
            finally:
                channel.emit(
                    ProgressEventType.ERROR,
                    message=REFUND_REASON_CANCELLED,
                    creditRefunded=job.credit_refunded,
                )
                GENERATION_JOBS_TOTAL.labels(outcome="cancelled").inc()
            raise

        except TimeoutError:
            message = "Generation deadline exceeded"
            logger.warning("generation_job_timeout job=%s deadline_s=%s", job.job_id, self._deadline_s)
            return await self._fail(job, channel, message)

        except Exception as e:
            logger.exception("generation_job_failed job=%s stage=%s", job.job_id, job.current_stage)
            return await self._fail(job, channel, str(e) or REFUND_REASON_FAILED)

        finally:
            channel.close()

    async def _run_with_deadline(self, job: GenerationJob, channel: EventChannel) -> Dict[str, Any]:
        if self._deadline_s is None:
            return await self._run_stages(job, channel)
        async with asyncio.timeout(self._deadline_s):
            return await self._run_stages(job, channel)

    async def _run_stages(self, job: GenerationJob, channel: EventChannel) -> Dict[str, Any]:
        outputs: Dict[str, Any] = {}
        for stage, status in zip(self._stages, job.agents):
            job.current_stage = stage.name
            channel.emit(ProgressEventType.STAGE_CHANGED, stage=stage.name)

            status.state = AgentState.RUNNING
            status.started_at = self._clock()
            channel.emit(ProgressEventType.AGENT_STARTED, agent=stage.name)

            started = time.perf_counter()
            context = StageContext(
                job_id=job.job_id,
                user_id=job.user_id,
                params=job.params,
                outputs=dict(outputs),
            )
            try:
                outputs[stage.name] = await stage.run(context)
            except (Exception, asyncio.CancelledError):
                status.state = AgentState.FAILED
                status.completed_at = self._clock()
                raise
            elapsed = time.perf_counter() - started

            status.state = AgentState.COMPLETED
            status.completed_at = self._clock()
            GENERATION_STAGE_SECONDS.labels(stage=stage.name).observe(elapsed)
            # duration en milisegundos
            channel.emit(
                ProgressEventType.AGENT_COMPLETED,
                agent=stage.name,
                duration=int(elapsed * 1000),
            )
        return outputs

    async def _fail(self, job: GenerationJob, channel: EventChannel, message: str) -> JobOutcome:
        try:
            await self._refund_shielded(job, REFUND_REASON_FAILED)
        finally:
            # También si el job se cancela mientras se reembolsa
            channel.emit(ProgressEventType.ERROR, message=message, creditRefunded=job.credit_refunded)
            GENERATION_JOBS_TOTAL.labels(outcome="error").inc()
        return JobOutcome(job.job_id, None, job.credit_refunded, error=message)

    async def _refund_shielded(self, job: GenerationJob, reason: str) -> bool:
        """
        Reembolso que sobrevive a la cancelación del task del job.

        Si el task se cancela mientras el reembolso está en curso, se espera
        a que termine y después se re-lanza CancelledError.
        """
        refund = asyncio.ensure_future(self._refund(job, reason))
        try:
            return await asyncio.shield(refund)
        except asyncio.CancelledError:
            await asyncio.shield(refund)
            raise

    async def _refund(self, job: GenerationJob, reason: str) -> bool:
        """
        Reembolsa el crédito del job.

        Returns:
            True si el reembolso quedó aplicado (ahora o antes), False si falló.
        """
        if job.credit_refunded:
            return True
        try:
            await self._ledger.refund_credits(job.user_id, JOB_COST_CREDITS, job.job_id, reason)
        except Exception:
            logger.exception("generation_refund_failed job=%s reason=%s", job.job_id, reason)
            return False
        job.mark_credit_refunded()
        return True


__all__ = [
    "GenerationOrchestrator",
    "GenerationJob",
    "AgentStatus",
    "StartResult",
    "JobOutcome",
    "JOB_COST_CREDITS",
]
