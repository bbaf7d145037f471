"""
Unit tests for the alert rule, alert and incident models.

Validates defaults, enum constraints, derived properties and the
document round trip through MongoBaseModel.
"""

from __future__ import annotations

from datetime import datetime

import pytest
from pydantic import ValidationError

from truckops.core.exceptions import ValidationException
from truckops.models.alert import (
    Alert,
    AlertHistoryEntry,
    AlertRule,
    AlertState,
    Incident,
    SEVERITY_PRIORITY,
)


class TestAlertRule:
    """Test AlertRule construction."""

    def test_defaults(self):
        rule = AlertRule(name="High CPU", metric="cpu", operator="gt", threshold=90)

        assert len(rule.rule_id) == 36
        assert rule.tenant_id == "default"
        assert rule.severity == "medium"
        assert rule.category == "system"
        assert rule.enabled is True
        assert rule.time_window is None
        assert rule.window_ms == 0
        assert rule.trigger_count == 0
        assert rule.channels == []

    def test_enum_values_are_stored_as_strings(self):
        rule = AlertRule(
            name="Slow API",
            metric="responseTime",
            operator="gte",
            threshold=500,
            severity="high",
            time_window="5m",
            channels=["email", "webhook"],
        )

        assert rule.metric == "responseTime"
        assert rule.channels == ["email", "webhook"]
        assert rule.window_ms == 300_000
        assert rule.to_document()["severity"] == "high"

    def test_string_threshold_for_text_operators(self):
        rule = AlertRule(name="Bad log", metric="custom", operator="contains", threshold="timeout")

        assert rule.threshold == "timeout"

    @pytest.mark.parametrize(
        "field, value",
        [
            ("metric", "temperature"),
            ("operator", "between"),
            ("severity", "urgent"),
            ("time_window", "2h"),
            ("channels", ["pigeon"]),
        ],
    )
    def test_invalid_enum_values(self, field, value):
        data = {"name": "Rule", "metric": "cpu", "operator": "gt", "threshold": 1, field: value}

        with pytest.raises(ValidationError):
            AlertRule(**data)

    def test_empty_name_is_rejected(self):
        with pytest.raises(ValidationError):
            AlertRule(name="", metric="cpu", operator="gt", threshold=1)


class TestAlert:
    """Test Alert construction and derived properties."""

    def test_defaults(self):
        alert = Alert(severity="low", category="business", message="Sales dropped")

        assert alert.state == AlertState.ACTIVE
        assert alert.source == "alert-engine"
        assert alert.history == []
        assert alert.is_test is True
        assert alert.resolution_time_ms is None

    def test_resolution_time(self):
        alert = Alert(
            rule_id="rule-1",
            severity="high",
            category="performance",
            message="CPU high",
            timestamp=1_000,
            resolved_at=61_000,
            state="resolved",
        )

        assert alert.is_test is False
        assert alert.resolution_time_ms == 60_000

    def test_history_entries(self):
        alert = Alert(
            severity="critical",
            category="system",
            message="Disk full",
            history=[{"action": "acknowledged", "timestamp": 5, "user": "ops"}],
        )

        assert isinstance(alert.history[0], AlertHistoryEntry)
        assert alert.history[0].resolution is None

    def test_severity_priority_orders_critical_first(self):
        ordered = sorted(SEVERITY_PRIORITY, key=SEVERITY_PRIORITY.get)

        assert ordered == ["critical", "high", "medium", "low"]


class TestDocumentRoundTrip:
    """Test validation at the store boundary."""

    def test_from_document_drops_object_id_and_adds_utc(self):
        doc = {
            "_id": "665f0c",
            "alert_id": "a-1",
            "severity": "medium",
            "category": "network",
            "message": "Packet loss",
            "created_at": datetime(2026, 3, 1, 10, 0),
            "updated_at": datetime(2026, 3, 1, 10, 0),
        }

        alert = Alert.from_document(doc)

        assert alert.alert_id == "a-1"
        assert alert.created_at.tzinfo is not None
        assert "_id" not in alert.to_document()

    def test_malformed_document(self):
        with pytest.raises(ValidationException) as exc_info:
            Alert.from_document({"alert_id": "a-2", "severity": "apocalyptic"})

        locs = {e["loc"] for e in exc_info.value.detail["errors"]}
        assert "severity" in locs

    def test_missing_document(self):
        with pytest.raises(ValidationException):
            Incident.from_document(None)

    def test_parse_many_skips_malformed(self):
        docs = [
            {"title": "POS outage"},
            {"severity": "high"},
            {"title": "Printer offline", "status": "investigating"},
        ]

        incidents = Incident.parse_many(docs)

        assert [i.title for i in incidents] == ["POS outage", "Printer offline"]
        assert incidents[0].status == "open"
