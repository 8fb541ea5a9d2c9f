# -*- coding: utf-8 -*-
"""
backend/app/modules/generation/routes.py

Arranque de jobs de generación con progreso por Server-Sent Events.

Endpoint:
- POST /api/generation/jobs (auth requerido)
  400 sin consentimiento, 402 sin créditos, 200 text/event-stream

El job corre en su propia asyncio.Task registrada en app.state.job_registry;
la respuesta solo drena su EventChannel. Si el cliente se desconecta el
job sigue y el ledger queda reconciliado igual.

Autor: Clarity
Fecha: 2026-09-12
"""

from __future__ import annotations

import asyncio
import logging
from typing import AsyncIterator

from fastapi import APIRouter, Depends, HTTPException, status
from fastapi.responses import StreamingResponse

from app.modules.auth.dependencies import get_current_user_id
from app.shared.utils.async_job_registry import AsyncJobRegistry

from .dependencies import get_job_registry, get_orchestrator
from .enums import StartStatus
from .events import EventChannel
from .orchestrator import GenerationOrchestrator
from .schemas import GenerationJobRequest

logger = logging.getLogger(__name__)

router = APIRouter(
    prefix="/generation",
    tags=["generation"],
)


async def _drain(channel: EventChannel) -> AsyncIterator[str]:
    async for event in channel.stream():
        yield event.to_sse()


@router.post(
    "/jobs",
    summary="Iniciar un job de generación (stream SSE)",
    responses={
        200: {"content": {"text/event-stream": {}}},
        400: {"description": "Consentimiento ético no otorgado"},
        402: {"description": "Créditos insuficientes"},
    },
)
async def start_generation_job(
    body: GenerationJobRequest,
    user_id: str = Depends(get_current_user_id),
    orchestrator: GenerationOrchestrator = Depends(get_orchestrator),
    registry: AsyncJobRegistry = Depends(get_job_registry),
) -> StreamingResponse:
    result = await orchestrator.start(
        user_id,
        body.to_params(),
        consent=body.ethics_acknowledged,
    )

    if result.status == StartStatus.CONSENT_REQUIRED:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail={
                "error": "ethics_acknowledgment_required",
                "message": "Ethics acknowledgment required",
            },
        )
    if result.status == StartStatus.INSUFFICIENT_CREDITS:
        raise HTTPException(
            status_code=status.HTTP_402_PAYMENT_REQUIRED,
            detail={
                "error": "insufficient_credits",
                "message": "Insufficient credits",
                "redirect_to": "/credits",
            },
        )

    job = result.job
    channel = EventChannel(job.job_id)
    task = asyncio.create_task(
        orchestrator.run(job, channel),
        name=f"generation:{job.job_id}",
    )
    registry.register_task(job.job_id, task)

    return StreamingResponse(
        _drain(channel),
        media_type="text/event-stream",
        headers={
            "Cache-Control": "no-cache",
            "X-Accel-Buffering": "no",
            "X-Job-Id": job.job_id,
        },
    )


__all__ = ["router"]
