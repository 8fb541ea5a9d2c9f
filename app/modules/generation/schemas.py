# -*- coding: utf-8 -*-
"""
backend/app/modules/generation/schemas.py

Autor: Clarity
Fecha: 2026-09-12
"""

from __future__ import annotations

from typing import Any, Dict

from pydantic import BaseModel, Field, field_validator


class GenerationJobRequest(BaseModel):
    """Body de POST /api/generation/jobs."""

    target_entity: str = Field(min_length=1, max_length=200)
    ethics_acknowledged: bool = False
    options: Dict[str, Any] = Field(default_factory=dict)

    @field_validator("target_entity")
    @classmethod
    def _strip_target(cls, value: str) -> str:
        value = value.strip()
        if not value:
            raise ValueError("target_entity must not be blank")
        return value

    def to_params(self) -> Dict[str, Any]:
        return {"target_entity": self.target_entity, "options": dict(self.options)}


__all__ = ["GenerationJobRequest"]
