"""
Integration tests for the health and readiness endpoints.

Tests the /api/v1/health and /api/v1/ready response shapes using the test
FastAPI application with an in-memory database and a stubbed Redis.
"""

from __future__ import annotations

import asyncio

import httpx
from httpx import AsyncClient

from truckops.services.email.client import EmailClient


class TestHealthEndpoint:
    """Test the liveness check."""

    async def test_health_endpoint_structure(self, async_client: AsyncClient):
        """GET /api/v1/health should report mongo and redis connectivity."""
        response = await async_client.get("/api/v1/health")

        assert response.status_code == 200
        data = response.json()
        assert data["status"] in ("ok", "degraded")
        assert isinstance(data["mongo"], bool)
        assert data["redis"] is True

    async def test_redis_failure_degrades_status(self, async_client: AsyncClient, mock_redis):
        mock_redis.ping.side_effect = ConnectionError("redis down")

        response = await async_client.get("/api/v1/health")

        assert response.status_code == 200
        assert response.json()["status"] == "degraded"
        assert response.json()["redis"] is False


class TestReadinessEndpoint:
    """Test the detailed readiness check."""

    async def test_readiness_structure(self, async_client: AsyncClient):
        response = await async_client.get("/api/v1/ready")

        assert response.status_code == 200
        data = response.json()
        assert data["status"] in ("ready", "degraded")
        assert data["environment"] in ("development", "staging", "production")
        assert data["redis"]["healthy"] is True
        assert data["redis"]["error"] is None
        assert data["redis"]["latency_ms"] >= 0
        assert "healthy" in data["mongo"]

    async def test_readiness_reports_redis_error(self, async_client: AsyncClient, mock_redis):
        mock_redis.ping.side_effect = ConnectionError("redis down")

        data = (await async_client.get("/api/v1/ready")).json()

        assert data["status"] == "degraded"
        assert data["redis"]["healthy"] is False
        assert data["redis"]["error"] == "redis down"

    async def test_readiness_without_email_function(self, async_client: AsyncClient):
        data = (await async_client.get("/api/v1/ready")).json()

        assert data["email"]["configured"] is False
        assert data["email"]["healthy"] is False
        assert data["running_jobs"] == []

    async def test_readiness_reports_email_function(self, async_client: AsyncClient, test_app):
        http = httpx.AsyncClient(transport=httpx.MockTransport(lambda request: httpx.Response(404)))
        test_app.state.email_client = EmailClient("https://functions.example", http_client=http)

        data = (await async_client.get("/api/v1/ready")).json()

        assert data["email"] == {
            "healthy": True,
            "latency_ms": data["email"]["latency_ms"],
            "error": None,
            "configured": True,
        }

    async def test_readiness_reports_email_server_error(self, async_client: AsyncClient, test_app):
        http = httpx.AsyncClient(transport=httpx.MockTransport(lambda request: httpx.Response(503)))
        test_app.state.email_client = EmailClient("https://functions.example", http_client=http)

        data = (await async_client.get("/api/v1/ready")).json()

        assert data["email"]["healthy"] is False
        assert data["email"]["error"] == "Email service is currently unavailable"

    async def test_readiness_lists_running_jobs(self, async_client: AsyncClient, job_runner):
        release = asyncio.Event()

        async def wait_for_release(job):
            await release.wait()

        job_runner.start("menu-training", wait_for_release)

        data = (await async_client.get("/api/v1/ready")).json()

        assert data["running_jobs"] == ["menu-training"]
        release.set()
