# -*- coding: utf-8 -*-
"""
backend/app/modules/generation/__init__.py

Módulo de generación: orquestación de etapas con cobro por crédito,
quality gate y progreso por SSE.

Autor: Clarity
Fecha: 2026-09-11
"""

from .agents import HttpStageAgent, StageAgent, StageContext, build_default_stages
from .events import EventChannel, ProgressEvent
from .orchestrator import AgentStatus, GenerationJob, GenerationOrchestrator, JobOutcome, StartResult
from .quality_gate import QualityGateDecision, evaluate_quality
from .routes import router

__all__ = [
    "HttpStageAgent",
    "StageAgent",
    "StageContext",
    "build_default_stages",
    "EventChannel",
    "ProgressEvent",
    "AgentStatus",
    "GenerationJob",
    "GenerationOrchestrator",
    "JobOutcome",
    "StartResult",
    "QualityGateDecision",
    "evaluate_quality",
    "router",
]
