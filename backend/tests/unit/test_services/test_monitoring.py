"""
Unit tests for the system monitoring service.

Tests metric recording, threshold classification, health checks, system
status, retention, export and the collection tick.
"""

from __future__ import annotations

from datetime import datetime, timedelta, timezone
from types import SimpleNamespace

import orjson
import psutil
import pytest

from truckops.core.exceptions import ValidationException
from truckops.models.alert import AlertRule
from truckops.models.monitoring import HealthCheckResult, MetricSample
from truckops.services.alerts.engine import AlertEngine
from truckops.services.monitoring.monitor import MonitoringService, host_metrics, parse_duration

NOW = datetime(2026, 3, 10, 12, 0, tzinfo=timezone.utc)


class TestParseDuration:
    """Test duration strings."""

    @pytest.mark.parametrize(
        ("text", "expected"),
        [("30s", 30_000), ("15m", 900_000), ("1h", 3_600_000), ("7d", 604_800_000)],
    )
    def test_valid(self, text, expected):
        assert parse_duration(text) == expected

    @pytest.mark.parametrize("text", ["", "1w", "h1", "10"])
    def test_invalid(self, text):
        with pytest.raises(ValidationException):
            parse_duration(text)


class TestRecordMetrics:
    """Test metric storage and rule evaluation."""

    async def test_sample_is_stored_and_persisted(self, test_db):
        """Present metrics go to memory and to system_metrics."""
        monitoring = MonitoringService(db=test_db)

        await monitoring.record_metrics(MetricSample(timestamp=NOW, cpu=42.0, memory=61.5))

        assert monitoring.latest("cpu") == 42.0
        assert monitoring.latest("disk") is None
        assert await test_db["system_metrics"].count_documents({}) == 1

    async def test_samples_feed_alert_rules(self, test_db):
        """Recorded metrics are evaluated against the tenant's rules."""
        rule = AlertRule.model_validate(
            {"name": "Memory", "metric": "memory", "operator": "gte", "threshold": 90}
        )
        await test_db["alert_rules"].insert_one(rule.to_document())
        monitoring = MonitoringService(engine=AlertEngine(test_db))

        raised = await monitoring.record_metrics(MetricSample(timestamp=NOW, memory=93.0))

        assert len(raised) == 1
        assert raised[0].rule_id == rule.rule_id

    async def test_history_and_retention(self):
        """History is limited to the duration; old points are pruned."""
        monitoring = MonitoringService(retention_hours=24)
        await monitoring.record_metrics(MetricSample(timestamp=NOW - timedelta(hours=30), cpu=10))
        await monitoring.record_metrics(MetricSample(timestamp=NOW - timedelta(minutes=30), cpu=20))

        assert [p.value for p in monitoring.history("cpu", "1h", now=NOW)] == [20.0]
        assert monitoring.clean_old_metrics(now=NOW) == 1
        assert len(monitoring.metrics["cpu"]) == 1


class TestThresholds:
    """Test classification and monitoring alerts."""

    async def test_critical_and_warning_alerts(self):
        monitoring = MonitoringService()
        await monitoring.record_metrics(MetricSample(cpu=95.0, memory=85.0, disk=10.0))

        raised = monitoring.check_thresholds()

        types = {a.type for a in raised}
        assert types == {"cpu_critical", "memory_warning"}
        cpu_alert = next(a for a in raised if a.type == "cpu_critical")
        assert cpu_alert.message == "CPU usage critical: 95.0%"

    async def test_status_unhealthy_on_critical_metric(self):
        monitoring = MonitoringService()
        await monitoring.record_metrics(MetricSample(cpu=95.0))
        monitoring.check_thresholds()

        status = monitoring.system_status()

        assert status["healthy"] is False
        assert status["metrics"]["cpu"]["status"] == "critical"
        assert status["summary"].startswith("System issues detected")

    def test_status_healthy_without_data(self):
        status = MonitoringService().system_status()

        assert status["healthy"] is True
        assert status["metrics"]["cpu"]["status"] == "unknown"
        assert status["summary"] == "All systems operational"

    def test_acknowledge_alert(self):
        monitoring = MonitoringService()
        alert = monitoring.create_alert("cpu_warning", "warning", {"value": 75.0})

        assert monitoring.acknowledge_alert(alert.alert_id) is True
        assert monitoring.acknowledge_alert("missing") is False

    def test_unknown_alert_type_uses_generic_message(self):
        alert = MonitoringService().create_alert("queue_backlog", "warning", {})

        assert alert.message == "System alert: queue_backlog"


class TestHealthChecks:
    """Test registered health checks."""

    async def test_failing_and_raising_checks(self):
        """Unhealthy and raising checks are recorded and alerted."""
        monitoring = MonitoringService()

        async def ok() -> HealthCheckResult:
            return HealthCheckResult(healthy=True)

        async def degraded() -> dict:
            return {"healthy": False, "message": "replica lag"}

        async def broken() -> HealthCheckResult:
            raise ConnectionError("refused")

        monitoring.register_health_check("mongodb", ok)
        monitoring.register_health_check("redis", degraded)
        monitoring.register_health_check("email", broken)

        results = await monitoring.run_health_checks()

        assert results["mongodb"].healthy is True
        assert results["redis"].message == "replica lag"
        assert results["email"].healthy is False
        assert results["email"].last_run is not None
        status = monitoring.system_status()
        assert status["healthy"] is False
        assert "2 failed health checks" in status["summary"]


class TestExportAndTick:
    """Test export formats and the periodic tick."""

    async def test_export_json_and_csv(self):
        monitoring = MonitoringService()
        await monitoring.record_metrics(MetricSample(timestamp=NOW, cpu=12.5))

        data = orjson.loads(monitoring.export_metrics("json"))
        assert data["metrics"]["cpu"][0]["value"] == 12.5

        lines = monitoring.export_metrics("csv").splitlines()
        assert lines[0] == "Timestamp,Metric,Value"
        assert lines[1].endswith(",cpu,12.5")

    def test_export_rejects_unknown_format(self):
        with pytest.raises(ValidationException):
            MonitoringService().export_metrics("xml")

    async def test_collect_once_records_sample(self):
        async def collector() -> MetricSample:
            return MetricSample(cpu=91.0)

        monitoring = MonitoringService(collector=collector)

        await monitoring.collect_once()

        assert monitoring.latest("cpu") == 91.0
        assert any(a.type == "cpu_critical" for a in monitoring.alerts)

    async def test_collection_failure_raises_monitoring_alert(self):
        async def collector() -> MetricSample:
            raise OSError("no /proc")

        monitoring = MonitoringService(collector=collector)

        await monitoring.collect_once()

        assert monitoring.alerts[-1].type == "metric_collection_failed"
        assert "no /proc" in monitoring.alerts[-1].message


class TestHostMetrics:
    """Test the psutil-backed host collector."""

    async def test_reads_cpu_memory_and_disk(self, monkeypatch):
        monkeypatch.setattr(psutil, "cpu_percent", lambda interval=None: 42.0)
        monkeypatch.setattr(psutil, "virtual_memory", lambda: SimpleNamespace(percent=96.5))
        monkeypatch.setattr(psutil, "disk_usage", lambda path: SimpleNamespace(percent=50.0))

        sample = await host_metrics()

        assert (sample.cpu, sample.memory, sample.disk) == (42.0, 96.5, 50.0)

    async def test_memory_status_comes_from_collector(self, monkeypatch):
        monkeypatch.setattr(psutil, "cpu_percent", lambda interval=None: 10.0)
        monkeypatch.setattr(psutil, "virtual_memory", lambda: SimpleNamespace(percent=96.5))
        monkeypatch.setattr(psutil, "disk_usage", lambda path: SimpleNamespace(percent=20.0))
        monitoring = MonitoringService()

        await monitoring.collect_once()

        status = monitoring.system_status()
        assert status["metrics"]["memory"]["status"] == "critical"
        assert any(a.type == "memory_critical" for a in monitoring.alerts)
