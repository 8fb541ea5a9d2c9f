# -*- coding: utf-8 -*-
"""
backend/app/modules/generation/quality_gate.py

Quality gate: decide si el crédito cobrado por un job se conserva o se
reembolsa, a partir del score final (escala 0-10).

Autor: Clarity
Fecha: 2026-09-11
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Any, Mapping, Optional

from .enums import GenerationStage, QualityTier

DEFAULT_QUALITY_THRESHOLD = 6.0
HIGH_QUALITY_SCORE = 8.0


@dataclass(frozen=True)
class QualityGateDecision:
    score: float
    tier: QualityTier
    threshold: float

    @property
    def refund_required(self) -> bool:
        return self.tier == QualityTier.FAILED


def evaluate_quality(
    score: Optional[float],
    threshold: float = DEFAULT_QUALITY_THRESHOLD,
) -> QualityGateDecision:
    """
    Clasifica un score.

    Sin score, o con un score no finito (nan, inf), se trata como 0.0
    (reembolso).

    >>> evaluate_quality(5.5).refund_required
    True
    >>> evaluate_quality(7.5).tier
    <QualityTier.ACCEPTABLE: 'acceptable'>
    >>> evaluate_quality(None).score
    0.0
    >>> evaluate_quality(float("nan")).refund_required
    True
    """
    value = float(score) if score is not None else 0.0
    if not math.isfinite(value):
        value = 0.0

    if value < threshold:
        tier = QualityTier.FAILED
    elif value >= max(HIGH_QUALITY_SCORE, threshold):
        tier = QualityTier.HIGH
    else:
        tier = QualityTier.ACCEPTABLE
    return QualityGateDecision(score=value, tier=tier, threshold=threshold)


def extract_quality_score(outputs: Mapping[str, Any]) -> Optional[float]:
    """Lee quality_score de la salida de quality_check; None si falta o no es finito."""
    quality = outputs.get(GenerationStage.QUALITY_CHECK.value) or {}
    raw = quality.get("quality_score") if isinstance(quality, Mapping) else None
    if raw is None:
        return None
    try:
        value = float(raw)
    except (TypeError, ValueError):
        return None
    return value if math.isfinite(value) else None


__all__ = [
    "QualityGateDecision",
    "evaluate_quality",
    "extract_quality_score",
    "DEFAULT_QUALITY_THRESHOLD",
    "HIGH_QUALITY_SCORE",
]
