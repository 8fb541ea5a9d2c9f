# -*- coding: utf-8 -*-
"""
backend/tests/modules/generation/test_http_stage_agent.py

Tests del HttpStageAgent con httpx.MockTransport.

Autor: Clarity
Fecha: 2026-09-15
"""

import json

import httpx
import pytest

from app.modules.generation.agents import (
    HttpStageAgent,
    StageContext,
    StageExecutionError,
    build_default_stages,
)

CONTEXT = StageContext(
    job_id="job-1",
    user_id="u1",
    params={"target_entity": "Acme Ltd"},
    outputs={"classification": {"kind": "company"}},
)


def _client(handler) -> httpx.AsyncClient:
    return httpx.AsyncClient(transport=httpx.MockTransport(handler))


class TestHttpStageAgent:

    @pytest.mark.asyncio
    async def test_posts_context_and_returns_body(self):
        seen = {}

        def handler(request: httpx.Request) -> httpx.Response:
            seen["url"] = str(request.url)
            seen["body"] = json.loads(request.content)
            return httpx.Response(200, json={"quality_score": 7.0})

        async with _client(handler) as client:
            agent = HttpStageAgent("quality_check", "http://agents.local/agents/", client)
            output = await agent.run(CONTEXT)

        assert output == {"quality_score": 7.0}
        assert seen["url"] == "http://agents.local/agents/quality_check"
        assert seen["body"]["job_id"] == "job-1"
        assert seen["body"]["outputs"] == {"classification": {"kind": "company"}}

    @pytest.mark.asyncio
    async def test_http_error_becomes_stage_error(self):
        async with _client(lambda request: httpx.Response(503, text="busy")) as client:
            agent = HttpStageAgent("classification", "http://agents.local", client)
            with pytest.raises(StageExecutionError) as exc_info:
                await agent.run(CONTEXT)

        assert exc_info.value.stage == "classification"
        assert "503" in str(exc_info.value)

    @pytest.mark.asyncio
    async def test_connection_error_becomes_stage_error(self):
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("refused", request=request)

        async with _client(handler) as client:
            agent = HttpStageAgent("classification", "http://agents.local", client)
            with pytest.raises(StageExecutionError, match="unreachable"):
                await agent.run(CONTEXT)

    @pytest.mark.asyncio
    async def test_non_object_body_is_rejected(self):
        async with _client(lambda request: httpx.Response(200, json=[1, 2])) as client:
            agent = HttpStageAgent("classification", "http://agents.local", client)
            with pytest.raises(StageExecutionError, match="non-object"):
                await agent.run(CONTEXT)

    @pytest.mark.asyncio
    async def test_invalid_json_is_rejected(self):
        async with _client(lambda request: httpx.Response(200, text="<html>")) as client:
            agent = HttpStageAgent("classification", "http://agents.local", client)
            with pytest.raises(StageExecutionError, match="invalid JSON"):
                await agent.run(CONTEXT)


class TestBuildDefaultStages:

    @pytest.mark.asyncio
    async def test_five_stages_in_order(self):
        async with httpx.AsyncClient() as client:
            stages = build_default_stages("http://agents.local", client)

        assert [s.name for s in stages] == [
            "classification",
            "profile_research",
            "domain_analysis",
            "output_generation",
            "quality_check",
        ]
