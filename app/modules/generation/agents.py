# -*- coding: utf-8 -*-
"""
backend/app/modules/generation/agents.py

Agentes de etapa del pipeline de generación.

Cada etapa es una operación opaca y potencialmente larga. El orquestador
solo conoce el protocolo StageAgent; la implementación por defecto
delega en un servicio de agentes vía HTTP (httpx, cliente compartido).

Autor: Clarity
Fecha: 2026-09-11
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Protocol

import httpx

from .enums import STAGE_ORDER

logger = logging.getLogger(__name__)


@dataclass
class StageContext:
    """Lo que recibe cada etapa: parámetros del job y salidas previas."""
    job_id: str
    user_id: str
    params: Dict[str, Any]
    outputs: Dict[str, Any] = field(default_factory=dict)

    def to_payload(self) -> Dict[str, Any]:
        return {
            "job_id": self.job_id,
            "user_id": self.user_id,
            "params": self.params,
            "outputs": self.outputs,
        }


class StageAgent(Protocol):
    name: str

    async def run(self, context: StageContext) -> Dict[str, Any]:
        ...


class StageExecutionError(Exception):
    """La etapa no produjo una salida utilizable."""

    def __init__(self, stage: str, message: str) -> None:
        super().__init__(message)
        self.stage = stage


class HttpStageAgent:
    """
    POST {base_url}/{name} con el contexto como JSON; la respuesta debe
    ser un objeto JSON.
    """

    def __init__(self, name: str, base_url: str, client: httpx.AsyncClient) -> None:
        self.name = name
        self._url = f"{base_url.rstrip('/')}/{name}"
        self._client = client

    async def run(self, context: StageContext) -> Dict[str, Any]:
        try:
            response = await self._client.post(self._url, json=context.to_payload())
            response.raise_for_status()
        except httpx.HTTPStatusError as e:
            logger.warning(
                "generation_stage_http_error stage=%s status=%s job=%s",
                self.name, e.response.status_code, context.job_id,
            )
            raise StageExecutionError(
                self.name, f"Stage {self.name} failed with HTTP {e.response.status_code}"
            ) from e
        except httpx.RequestError as e:
            logger.warning(
                "generation_stage_unreachable stage=%s job=%s error=%s",
                self.name, context.job_id, e,
            )
            raise StageExecutionError(self.name, f"Stage {self.name} unreachable") from e

        try:
            body = response.json()
        except ValueError as e:
            raise StageExecutionError(self.name, f"Stage {self.name} returned invalid JSON") from e
        if not isinstance(body, dict):
            raise StageExecutionError(self.name, f"Stage {self.name} returned a non-object body")
        return body


def build_default_stages(base_url: str, client: httpx.AsyncClient) -> List[HttpStageAgent]:
    """Las cinco etapas, en orden."""
    return [HttpStageAgent(stage.value, base_url, client) for stage in STAGE_ORDER]


__all__ = [
    "StageAgent",
    "StageContext",
    "StageExecutionError",
    "HttpStageAgent",
    "build_default_stages",
]
