# -*- coding: utf-8 -*-
"""
backend/app/modules/generation/dependencies.py

Autor: Clarity
Fecha: 2026-09-12
"""

from __future__ import annotations

from fastapi import Request

from app.shared.utils.async_job_registry import AsyncJobRegistry
from .orchestrator import GenerationOrchestrator


def get_orchestrator(request: Request) -> GenerationOrchestrator:
    return request.app.state.generation_orchestrator


def get_job_registry(request: Request) -> AsyncJobRegistry:
    return request.app.state.job_registry


__all__ = ["get_orchestrator", "get_job_registry"]
