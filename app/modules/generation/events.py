# -*- coding: utf-8 -*-
"""
backend/app/modules/generation/events.py

Canal de eventos de progreso de un job de generación.

El orquestador escribe; la capa HTTP drena y serializa a SSE. El canal es
append-only, conserva el orden y acepta a lo sumo un evento terminal
(complete | error). Que nadie lo drene (cliente desconectado) no bloquea
al productor: la cola no tiene límite.

Autor: Clarity
Fecha: 2026-09-11
"""

from __future__ import annotations

import asyncio
import json
import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, AsyncIterator, Callable, Dict, List, Optional

from app.shared.utils.datetime_helpers import to_iso, utcnow
from .enums import ProgressEventType

logger = logging.getLogger(__name__)

_CLOSED = object()


@dataclass(frozen=True)
class ProgressEvent:
    type: ProgressEventType
    data: Dict[str, Any] = field(default_factory=dict)

    def to_sse(self) -> str:
        """Trama SSE: `event: <tipo>` + `data: <json>` + línea en blanco."""
        return f"event: {self.type.value}\ndata: {json.dumps(self.data, default=str)}\n\n"


class EventChannel:
    """
    Cola ordenada de ProgressEvent para un job.

    - emit() después del evento terminal o de close() se descarta (False).
    - close() es idempotente; stream() termina al llegar al cierre.
    """

    def __init__(self, job_id: str, *, clock: Optional[Callable[[], datetime]] = None) -> None:
        self.job_id = job_id
        self._clock = clock or utcnow
        self._queue: asyncio.Queue = asyncio.Queue()
        self._events: List[ProgressEvent] = []
        self._terminal: Optional[ProgressEvent] = None
        self._closed = False

    @property
    def events(self) -> List[ProgressEvent]:
        """Copia de todo lo emitido hasta ahora."""
        return list(self._events)

    @property
    def terminal_event(self) -> Optional[ProgressEvent]:
        return self._terminal

    @property
    def closed(self) -> bool:
        return self._closed

    def emit(self, event_type: ProgressEventType, **data: Any) -> bool:
        if self._closed or self._terminal is not None:
            logger.warning(
                "generation_event_dropped job=%s type=%s (channel finished)",
                self.job_id, event_type.value,
            )
            return False

        payload = dict(data)
        payload.setdefault("timestamp", to_iso(self._clock()))
        event = ProgressEvent(event_type, payload)

        self._events.append(event)
        if event_type.is_terminal:
            self._terminal = event
        self._queue.put_nowait(event)
        return True

    def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        self._queue.put_nowait(_CLOSED)

    async def stream(self) -> AsyncIterator[ProgressEvent]:
        while True:
            item = await self._queue.get()
            if item is _CLOSED:
                return
            yield item


__all__ = ["ProgressEvent", "EventChannel"]
