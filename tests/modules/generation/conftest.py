# -*- coding: utf-8 -*-
"""
backend/tests/modules/generation/conftest.py

Etapas falsas para el orquestador: salida fija, excepción o bloqueo hasta
que la prueba las libere.

Autor: Clarity
Fecha: 2026-09-15
"""

import asyncio
from typing import Any, Dict, List, Optional

import pytest

from app.modules.generation.agents import StageContext
from app.modules.generation.enums import STAGE_ORDER, GenerationStage


class FakeStage:

    def __init__(
        self,
        name: str,
        output: Optional[Dict[str, Any]] = None,
        *,
        error: Optional[Exception] = None,
        block: bool = False,
    ) -> None:
        self.name = name
        self.output = output if output is not None else {"ok": True}
        self.error = error
        self.block = block
        self.entered = asyncio.Event()
        self.release = asyncio.Event()
        self.contexts: List[StageContext] = []

    async def run(self, context: StageContext) -> Dict[str, Any]:
        self.contexts.append(context)
        self.entered.set()
        if self.block:
            await self.release.wait()
        if self.error is not None:
            raise self.error
        return self.output


def build_fake_stages(quality_score: Optional[float] = 7.5, **overrides: FakeStage) -> List[FakeStage]:
    """Las cinco etapas en orden; quality_check devuelve `quality_score`."""
    stages = []
    for stage in STAGE_ORDER:
        if stage.value in overrides:
            stages.append(overrides[stage.value])
        elif stage == GenerationStage.QUALITY_CHECK:
            stages.append(FakeStage(stage.value, {"quality_score": quality_score}))
        else:
            stages.append(FakeStage(stage.value, {"summary": f"{stage.value} done"}))
    return stages


@pytest.fixture
def fake_stages():
    return build_fake_stages


@pytest.fixture
def fake_stage():
    return FakeStage
