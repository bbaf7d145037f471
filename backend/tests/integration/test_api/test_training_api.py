"""
Integration tests for the simulated training API endpoints.
"""

from __future__ import annotations

from httpx import AsyncClient


class TestTrainingSessions:
    """Test the session lifecycle through /api/v1/training."""

    async def test_start_and_complete(self, async_client: AsyncClient, job_runner):
        response = await async_client.post(
            "/api/v1/training/sessions", json={"model_name": "menu-recommender", "preset": "quick"}
        )

        assert response.status_code == 202
        session = response.json()
        assert session["total_epochs"] == 10
        assert session["status"] in ("pending", "running")

        await job_runner.get(session["job_id"]).wait(timeout=5)
        done = (await async_client.get(f"/api/v1/training/sessions/{session['session_id']}")).json()
        assert done["status"] == "completed"
        assert done["final_metrics"]["epoch"] == done["current_epoch"]

        listed = (await async_client.get("/api/v1/training/sessions")).json()
        assert listed["total"] == 1

    async def test_unknown_preset(self, async_client: AsyncClient):
        response = await async_client.post(
            "/api/v1/training/sessions", json={"model_name": "menu-recommender", "preset": "overnight"}
        )

        assert response.status_code == 422

    async def test_cancel_finished_session(self, async_client: AsyncClient, job_runner):
        session = (
            await async_client.post(
                "/api/v1/training/sessions", json={"model_name": "demand", "preset": "quick"}
            )
        ).json()
        await job_runner.get(session["job_id"]).wait(timeout=5)

        response = await async_client.post(f"/api/v1/training/sessions/{session['session_id']}/cancel")

        assert response.status_code == 422

    async def test_missing_session(self, async_client: AsyncClient):
        response = await async_client.get("/api/v1/training/sessions/nope")

        assert response.status_code == 404
