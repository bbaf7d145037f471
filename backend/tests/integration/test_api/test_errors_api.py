"""
Integration tests for the error tracking API endpoints.
"""

from __future__ import annotations

import pytest
from httpx import AsyncClient


@pytest.fixture
async def seeded_errors(test_db, sample_error_docs):
    await test_db["errors"].insert_many(sample_error_docs)
    return sample_error_docs


class TestListErrors:
    """Test GET /api/v1/errors."""

    async def test_list_with_groups_and_stats(self, async_client: AsyncClient, seeded_errors):
        response = await async_client.get("/api/v1/errors")

        assert response.status_code == 200
        data = response.json()
        assert data["total"] == 3
        assert [g["message"] for g in data["groups"]] == [
            "TypeError: cart is undefined",
            "Payment gateway timeout",
        ]
        assert data["groups"][0]["count"] == 2
        by_category = data["stats"]["by_category"]
        assert {k: v for k, v in by_category.items() if v} == {"javascript": 2, "payment": 1}
        assert by_category["api"] == 0
        assert data["stats"]["affected_users"] == 2

    async def test_filters(self, async_client: AsyncClient, seeded_errors):
        by_category = await async_client.get("/api/v1/errors", params={"category": "payment"})
        by_search = await async_client.get("/api/v1/errors", params={"search": "cart"})
        by_browser = await async_client.get("/api/v1/errors", params={"browser": "safari"})

        assert by_category.json()["total"] == 1
        assert by_search.json()["total"] == 2
        assert [e["error_id"] for e in by_browser.json()["errors"]] == ["err-2"]


class TestReportError:
    """Test POST /api/v1/errors."""

    async def test_report_error(self, async_client: AsyncClient):
        response = await async_client.post(
            "/api/v1/errors",
            json={"message": "Order API returned 500", "category": "api", "url": "/orders"},
            headers={"X-Tenant-ID": "truck-a"},
        )

        assert response.status_code == 201
        data = response.json()
        assert data["tenant_id"] == "truck-a"
        assert data["severity"] == "error"
        listed = await async_client.get("/api/v1/errors", headers={"X-Tenant-ID": "truck-a"})
        assert listed.json()["total"] == 1

    async def test_invalid_category(self, async_client: AsyncClient):
        response = await async_client.post(
            "/api/v1/errors", json={"message": "boom", "category": "cosmic-rays"}
        )

        assert response.status_code == 422
        assert response.json()["error"] == "VALIDATION_ERROR"


class TestResolveAndDelete:
    """Test resolution, bulk resolution, deletion and export."""

    async def test_resolve(self, async_client: AsyncClient, seeded_errors):
        response = await async_client.post("/api/v1/errors/err-1/resolve")

        assert response.status_code == 200
        assert response.json()["resolved"] is True
        assert response.json()["resolved_by"] == "ops-tester"
        open_errors = await async_client.get("/api/v1/errors", params={"resolved": "false"})
        assert open_errors.json()["total"] == 2

    async def test_bulk_resolve(self, async_client: AsyncClient, seeded_errors):
        response = await async_client.post(
            "/api/v1/errors/bulk-resolve", json={"error_ids": ["err-1", "nope"], "actor": "chef"}
        )

        data = response.json()
        assert data["succeeded"] == ["err-1"]
        assert data["failed"][0]["item_id"] == "nope"

    async def test_delete(self, async_client: AsyncClient, seeded_errors):
        first = await async_client.delete("/api/v1/errors/err-3")
        second = await async_client.delete("/api/v1/errors/err-3")

        assert first.status_code == 200
        assert first.json()["error_id"] == "err-3"
        assert second.status_code == 404

    async def test_export(self, async_client: AsyncClient, seeded_errors):
        response = await async_client.get("/api/v1/errors/export", params={"platform": "mobile"})

        data = response.json()
        assert data["filters"] == {"platform": "mobile"}
        assert len(data["errors"]) == 2
        assert data["stats"]["total"] == 2
