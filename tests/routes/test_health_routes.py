# -*- coding: utf-8 -*-
"""
backend/tests/routes/test_health_routes.py

Autor: Clarity
Fecha: 2026-09-16
"""

import pytest


class TestHealthRoutes:

    @pytest.mark.asyncio
    async def test_health_reports_database(self, async_client):
        response = await async_client.get("/health")

        assert response.status_code == 200
        body = response.json()
        assert body["status"] == "ok"
        assert body["environment"] == "test"
        assert body["database"]["reachable"] is True
        assert body["timestamp"].endswith("Z")

    @pytest.mark.asyncio
    async def test_metrics_exposes_prometheus_text(self, async_client):
        response = await async_client.get("/metrics")

        assert response.status_code == 200
        assert "payments_retry_outcomes_total" in response.text
        assert "generation_stage_seconds" in response.text
