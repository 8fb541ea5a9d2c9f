# -*- coding: utf-8 -*-
"""
backend/app/modules/generation/enums.py

Enums del módulo de generación.

Autor: Clarity
Fecha: 2026-09-11
"""

from enum import Enum


class GenerationStage(str, Enum):
    """Etapas del pipeline, en el orden en que se ejecutan."""
    CLASSIFICATION = "classification"
    PROFILE_RESEARCH = "profile_research"
    DOMAIN_ANALYSIS = "domain_analysis"
    OUTPUT_GENERATION = "output_generation"
    QUALITY_CHECK = "quality_check"


STAGE_ORDER = tuple(GenerationStage)


class ProgressEventType(str, Enum):
    """Nombres de evento SSE."""
    STARTED = "started"
    STAGE_CHANGED = "stage_changed"
    AGENT_STARTED = "agent_started"
    AGENT_COMPLETED = "agent_completed"
    COMPLETE = "complete"
    ERROR = "error"

    @property
    def is_terminal(self) -> bool:
        return self in (ProgressEventType.COMPLETE, ProgressEventType.ERROR)


class AgentState(str, Enum):
    """Estado de una etapa dentro de un job."""
    PENDING = "pending"
    RUNNING = "running"
    COMPLETED = "completed"
    FAILED = "failed"


class QualityTier(str, Enum):
    HIGH = "high"
    ACCEPTABLE = "acceptable"
    FAILED = "failed"


class StartStatus(str, Enum):
    """Resultado de intentar arrancar un job."""
    STARTED = "started"
    CONSENT_REQUIRED = "consent_required"
    INSUFFICIENT_CREDITS = "insufficient_credits"


__all__ = [
    "GenerationStage",
    "STAGE_ORDER",
    "ProgressEventType",
    "AgentState",
    "QualityTier",
    "StartStatus",
]
