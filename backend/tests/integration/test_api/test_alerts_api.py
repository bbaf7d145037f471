"""
Integration tests for the alert API endpoints.

Tests filtered listing with statistics, the lifecycle transitions (single
and bulk), rule evaluation, test alerts, the suppression sweep, export and
incident listing through the /api/v1 routes.
"""

from __future__ import annotations

import pytest
from httpx import AsyncClient


@pytest.fixture
async def seeded_alerts(test_db, sample_alert_docs):
    await test_db["alerts"].insert_many(sample_alert_docs)
    return sample_alert_docs


class TestListAlerts:
    """Test GET /api/v1/alerts."""

    async def test_list_newest_first_with_stats(self, async_client: AsyncClient, seeded_alerts):
        response = await async_client.get("/api/v1/alerts")

        assert response.status_code == 200
        data = response.json()
        assert data["total"] == 4
        assert [a["alert_id"] for a in data["alerts"]] == [
            "alert-critical-active",
            "alert-high-ack",
            "alert-medium-suppressed",
            "alert-low-resolved",
        ]
        assert data["stats"]["total"] == 4
        assert data["stats"]["active"] == 1

    async def test_stats_follow_the_filter(self, async_client: AsyncClient, seeded_alerts):
        response = await async_client.get("/api/v1/alerts", params={"state": "acknowledged"})

        data = response.json()
        assert [a["alert_id"] for a in data["alerts"]] == ["alert-high-ack"]
        assert data["stats"]["total"] == 1
        assert data["stats"]["acknowledged"] == 1
        assert data["stats"]["active"] == 0

    async def test_search(self, async_client: AsyncClient, seeded_alerts):
        response = await async_client.get("/api/v1/alerts", params={"search": "latency"})

        assert [a["alert_id"] for a in response.json()["alerts"]] == ["alert-high-ack"]

    async def test_sort_by_value_with_text_values(self, async_client: AsyncClient, test_db, seeded_alerts):
        template = {k: v for k, v in seeded_alerts[0].items() if k != "_id"}
        await test_db["alerts"].insert_one(
            {**template, "alert_id": "alert-text", "value": "payment failed"}
        )
        await test_db["alerts"].update_one(
            {"alert_id": "alert-high-ack"}, {"$set": {"value": 3200}}
        )

        response = await async_client.get("/api/v1/alerts", params={"sort_by": "value"})

        assert response.status_code == 200
        assert [a["alert_id"] for a in response.json()["alerts"]][:2] == ["alert-text", "alert-high-ack"]

    async def test_unknown_sort_field(self, async_client: AsyncClient, seeded_alerts):
        response = await async_client.get("/api/v1/alerts", params={"sort_by": "history"})

        assert response.status_code == 422
        assert response.json()["error"] == "VALIDATION_ERROR"

    async def test_other_tenant_sees_nothing(self, async_client: AsyncClient, seeded_alerts):
        response = await async_client.get("/api/v1/alerts", headers={"X-Tenant-ID": "truck-b"})

        assert response.json()["total"] == 0

    async def test_stats_endpoint(self, async_client: AsyncClient, seeded_alerts):
        response = await async_client.get("/api/v1/alerts/stats")

        assert response.status_code == 200
        data = response.json()
        assert data["by_severity"]["critical"] == 1
        assert data["resolved"] == 1

    async def test_get_alert(self, async_client: AsyncClient, seeded_alerts):
        found = await async_client.get("/api/v1/alerts/alert-high-ack")
        missing = await async_client.get("/api/v1/alerts/nope")

        assert found.status_code == 200
        assert found.json()["acknowledged_by"] == "ops"
        assert missing.status_code == 404


class TestLifecycle:
    """Test acknowledge, resolve and suppress."""

    async def test_acknowledge_active_alert(self, async_client: AsyncClient, seeded_alerts):
        response = await async_client.post(
            "/api/v1/alerts/alert-critical-active/acknowledge", json={"actor": "chef"}
        )

        assert response.status_code == 200
        data = response.json()
        assert data["state"] == "acknowledged"
        assert data["acknowledged_by"] == "chef"
        assert data["history"][-1]["action"] == "acknowledged"

    async def test_acknowledge_without_body_uses_default_actor(
        self, async_client: AsyncClient, seeded_alerts
    ):
        response = await async_client.post("/api/v1/alerts/alert-critical-active/acknowledge")

        assert response.json()["acknowledged_by"] == "ops-tester"

    async def test_acknowledge_twice_is_a_conflict(self, async_client: AsyncClient, seeded_alerts):
        response = await async_client.post("/api/v1/alerts/alert-high-ack/acknowledge")

        assert response.status_code == 409
        assert response.json()["error"] == "INVALID_TRANSITION"

    async def test_resolve_suppressed_alert(self, async_client: AsyncClient, seeded_alerts):
        response = await async_client.post(
            "/api/v1/alerts/alert-medium-suppressed/resolve",
            json={"resolution": "Uplink replaced"},
        )

        assert response.status_code == 200
        data = response.json()
        assert data["state"] == "resolved"
        assert data["resolution"] == "Uplink replaced"

    async def test_resolve_resolved_alert(self, async_client: AsyncClient, seeded_alerts):
        response = await async_client.post("/api/v1/alerts/alert-low-resolved/resolve")

        assert response.status_code == 409

    async def test_suppress_with_duration(self, async_client: AsyncClient, seeded_alerts):
        response = await async_client.post(
            "/api/v1/alerts/alert-high-ack/suppress", json={"duration_ms": 600_000}
        )

        data = response.json()
        assert data["state"] == "suppressed"
        assert data["suppress_until"] == data["suppressed_at"] + 600_000

    async def test_transition_on_missing_alert(self, async_client: AsyncClient, seeded_alerts):
        response = await async_client.post("/api/v1/alerts/nope/resolve")

        assert response.status_code == 404


class TestBulkAndSweep:
    """Test bulk actions and the suppression sweep."""

    async def test_bulk_resolve_reports_each_item(self, async_client: AsyncClient, seeded_alerts):
        response = await async_client.post(
            "/api/v1/alerts/bulk",
            json={
                "alert_ids": ["alert-critical-active", "alert-low-resolved", "nope"],
                "action": "resolve",
            },
        )

        assert response.status_code == 200
        data = response.json()
        assert data["succeeded"] == ["alert-critical-active"]
        assert sorted(f["item_id"] for f in data["failed"]) == ["alert-low-resolved", "nope"]

    async def test_bulk_unknown_action(self, async_client: AsyncClient, seeded_alerts):
        response = await async_client.post(
            "/api/v1/alerts/bulk", json={"alert_ids": ["alert-critical-active"], "action": "delete"}
        )

        assert response.status_code == 422

    async def test_sweep_reactivates_expired_suppression(
        self, async_client: AsyncClient, seeded_alerts
    ):
        response = await async_client.post("/api/v1/alerts/sweep-suppressions")

        assert response.json()["unsuppressed"] == ["alert-medium-suppressed"]
        alert = (await async_client.get("/api/v1/alerts/alert-medium-suppressed")).json()
        assert alert["state"] == "active"
        assert alert["history"][-1]["action"] == "unsuppressed"


class TestEvaluateAndTest:
    """Test rule evaluation and manual test alerts."""

    async def test_sample_above_threshold_raises_alert(
        self, async_client: AsyncClient, sample_rule, mock_redis
    ):
        await async_client.post("/api/v1/alert-rules", json=sample_rule)

        hot = await async_client.post("/api/v1/alerts/evaluate", json={"metric": "cpu", "value": 95})
        cool = await async_client.post("/api/v1/alerts/evaluate", json={"metric": "cpu", "value": 40})

        assert hot.status_code == 200
        raised = hot.json()["alerts"]
        assert len(raised) == 1
        assert raised[0]["severity"] == "high"
        assert raised[0]["category"] == "performance"
        assert cool.json()["alerts"] == []
        listed = await async_client.get("/api/v1/alerts")
        assert listed.json()["total"] == 1

    async def test_disabled_rule_does_not_fire(self, async_client: AsyncClient, sample_rule):
        rule = (await async_client.post("/api/v1/alert-rules", json=sample_rule)).json()
        await async_client.patch(f"/api/v1/alert-rules/{rule['rule_id']}", json={"enabled": False})

        response = await async_client.post("/api/v1/alerts/evaluate", json={"metric": "cpu", "value": 99})

        assert response.json()["alerts"] == []

    async def test_trigger_test_alert(self, async_client: AsyncClient):
        response = await async_client.post("/api/v1/alerts/test")

        assert response.status_code == 201
        data = response.json()
        assert data["rule_id"] is None
        assert data["source"] == "manual-test"
        assert data["state"] == "active"


class TestExportAndIncidents:
    """Test the JSON export and incident listing."""

    async def test_export_includes_rules_and_stats(
        self, async_client: AsyncClient, seeded_alerts, sample_rule
    ):
        await async_client.post("/api/v1/alert-rules", json=sample_rule)

        response = await async_client.get("/api/v1/alerts/export", params={"severity": "critical"})

        data = response.json()
        assert data["filters"] == {"severity": "critical"}
        assert [a["alert_id"] for a in data["alerts"]] == ["alert-critical-active"]
        assert len(data["rules"]) == 1
        assert data["stats"]["total"] == 1

    async def test_list_incidents(self, async_client: AsyncClient, test_db):
        await test_db["incidents"].insert_many(
            [
                {"incident_id": "inc-1", "tenant_id": "default", "title": "POS outage", "timestamp": 1},
                {"incident_id": "inc-2", "tenant_id": "default", "title": "Fryer offline", "timestamp": 2},
                {"incident_id": "inc-3", "tenant_id": "truck-b", "title": "Other", "timestamp": 3},
            ]
        )

        response = await async_client.get("/api/v1/incidents")

        data = response.json()
        assert data["total"] == 2
        assert [i["incident_id"] for i in data["incidents"]] == ["inc-2", "inc-1"]
