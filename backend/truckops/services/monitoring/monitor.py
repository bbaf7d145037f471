"""
System monitoring service.

Keeps a rolling in-memory history of system metrics, classifies the latest
readings against warning/critical thresholds, runs registered health
checks, and forwards every collected sample to the alert engine so
operator-defined rules see it too.
"""

from __future__ import annotations

import asyncio
import csv
import io
import logging
import re
from datetime import timedelta
from typing import TYPE_CHECKING, Any, Awaitable, Callable, Optional

import orjson
import psutil

from truckops.core.exceptions import ValidationException
from truckops.models.base import ensure_utc, utc_now
from truckops.models.monitoring import (
    HealthCheckResult,
    MetricPoint,
    MetricSample,
    MetricThreshold,
    MonitoringAlert,
)

if TYPE_CHECKING:
    from datetime import datetime

    from motor.motor_asyncio import AsyncIOMotorDatabase

    from truckops.models.alert import Alert
    from truckops.services.alerts.engine import AlertEngine

logger = logging.getLogger(__name__)

METRIC_NAMES: tuple[str, ...] = (
    "cpu",
    "memory",
    "disk",
    "network",
    "responseTime",
    "errorRate",
    "activeUsers",
    "requestsPerMinute",
)

DEFAULT_THRESHOLDS: dict[str, MetricThreshold] = {
    "cpu": MetricThreshold(warning=70, critical=90),
    "memory": MetricThreshold(warning=80, critical=95),
    "disk": MetricThreshold(warning=85, critical=95),
    "responseTime": MetricThreshold(warning=1000, critical=3000),
    "errorRate": MetricThreshold(warning=5, critical=10),
}

_DURATION_UNITS_MS = {"s": 1_000, "m": 60_000, "h": 3_600_000, "d": 86_400_000}
_DURATION_RE = re.compile(r"^(\d+)([smhd])$")

_MAX_ALERTS = 1000

_ALERT_MESSAGES: dict[str, str] = {
    "cpu_critical": "CPU usage critical: {value:.1f}%",
    "cpu_warning": "CPU usage high: {value:.1f}%",
    "memory_critical": "Memory usage critical: {value:.1f}%",
    "memory_warning": "Memory usage high: {value:.1f}%",
    "disk_critical": "Disk space critical: {value:.1f}% used",
    "disk_warning": "Disk space low: {value:.1f}% used",
    "responseTime_critical": "Response time critical: {value:.0f}ms",
    "responseTime_warning": "Response time high: {value:.0f}ms",
    "errorRate_critical": "Error rate critical: {value:.1f}%",
    "errorRate_warning": "Error rate high: {value:.1f}%",
    "metric_collection_failed": "Failed to collect system metrics: {error}",
}

HealthCheck = Callable[[], Awaitable[Any]]
Collector = Callable[[], Awaitable[MetricSample]]


def parse_duration(duration: str) -> int:
    """Convert ``"30s"``, ``"15m"``, ``"1h"`` or ``"7d"`` to milliseconds.

    Raises:
        ValidationException: If *duration* is not ``<int><s|m|h|d>``.
    """
    match = _DURATION_RE.match(duration or "")
    if not match:
        raise ValidationException(
            f"Invalid duration format: {duration}",
            detail={"duration": duration},
        )
    value, unit = match.groups()
    return int(value) * _DURATION_UNITS_MS[unit]


def classify(value: Optional[float], threshold: MetricThreshold) -> str:
    if value is None:
        return "unknown"
    if value >= threshold.critical:
        return "critical"
    if value >= threshold.warning:
        return "warning"
    return "healthy"


def _read_host() -> MetricSample:
    memory = psutil.virtual_memory()
    disk = psutil.disk_usage("/")
    return MetricSample(
        cpu=psutil.cpu_percent(interval=0.1),
        memory=memory.percent,
        disk=disk.percent,
    )


async def host_metrics() -> MetricSample:
    """Read CPU, memory and disk utilisation of the host with psutil."""
    return await asyncio.to_thread(_read_host)


class MonitoringService:
    """In-memory metrics store with threshold and health-check evaluation.

    Args:
        engine: Alert engine fed with every recorded sample.
        collector: Coroutine returning the next sample for the periodic loop.
        retention_hours: How long samples are kept.
        db: Optional database; samples are also persisted to ``system_metrics``.
    """

    def __init__(
        self,
        engine: Optional[AlertEngine] = None,
        collector: Optional[Collector] = None,
        retention_hours: int = 24,
        db: Optional[AsyncIOMotorDatabase] = None,  # type: ignore[type-arg]
    ) -> None:
        self._engine = engine
        self._collector = collector or host_metrics
        self._retention = timedelta(hours=retention_hours)
        self._db = db
        self.thresholds: dict[str, MetricThreshold] = dict(DEFAULT_THRESHOLDS)
        self.metrics: dict[str, list[MetricPoint]] = {name: [] for name in METRIC_NAMES}
        self.alerts: list[MonitoringAlert] = []
        self._health_checks: dict[str, HealthCheck] = {}
        self._health_results: dict[str, HealthCheckResult] = {}

    # ------------------------------------------------------------------
    # Metrics
    # ------------------------------------------------------------------

    async def record_metrics(self, sample: MetricSample) -> list[Alert]:
        """Store a sample and evaluate alert rules against each metric.

        Returns:
            Alerts raised by operator-defined rules for this sample.
        """
        timestamp = ensure_utc(sample.timestamp)
        values = sample.values()
        for name, value in values.items():
            self.metrics.setdefault(name, []).append(MetricPoint(value=value, timestamp=timestamp))

        if self._db is not None:
            await self._db["system_metrics"].insert_one(
                {"tenant_id": sample.tenant_id, "timestamp": timestamp, **values}
            )

        raised: list[Alert] = []
        if self._engine is not None:
            ts_ms = int(timestamp.timestamp() * 1000)
            for name, value in values.items():
                raised.extend(
                    await self._engine.evaluate_sample(sample.tenant_id, name, value, ts_ms)
                )
        return raised

    def latest(self, metric: str) -> Optional[float]:
        points = self.metrics.get(metric)
        if not points:
            return None
        return points[-1].value

    def history(
        self,
        metric: str,
        duration: str = "1h",
        now: Optional[datetime] = None,
    ) -> list[MetricPoint]:
        span_ms = parse_duration(duration)
        start = (now or utc_now()) - timedelta(milliseconds=span_ms)
        return [p for p in self.metrics.get(metric, []) if p.timestamp >= start]

    def clean_old_metrics(self, now: Optional[datetime] = None) -> int:
        """Drop samples older than the retention window; return how many."""
        cutoff = (now or utc_now()) - self._retention
        removed = 0
        for name, points in self.metrics.items():
            kept = [p for p in points if p.timestamp > cutoff]
            removed += len(points) - len(kept)
            self.metrics[name] = kept
        return removed

    # ------------------------------------------------------------------
    # Thresholds and alerts
    # ------------------------------------------------------------------

    def create_alert(self, alert_type: str, severity: str, details: dict[str, Any]) -> MonitoringAlert:
        template = _ALERT_MESSAGES.get(alert_type)
        try:
            message = template.format(**details) if template else f"System alert: {alert_type}"
        except (KeyError, ValueError):
            message = f"System alert: {alert_type}"

        alert = MonitoringAlert(type=alert_type, severity=severity, message=message, details=details)
        self.alerts.append(alert)
        if len(self.alerts) > _MAX_ALERTS:
            self.alerts = self.alerts[-_MAX_ALERTS:]

        log = logger.error if severity in ("critical", "error") else logger.warning
        log(message, extra={"alert_type": alert_type})
        return alert

    def check_thresholds(self) -> list[MonitoringAlert]:
        raised: list[MonitoringAlert] = []
        for metric, threshold in self.thresholds.items():
            value = self.latest(metric)
            level = classify(value, threshold)
            if level not in ("critical", "warning"):
                continue
            raised.append(
                self.create_alert(
                    f"{metric}_{level}",
                    level,
                    {
                        "metric": metric,
                        "value": value,
                        "threshold": getattr(threshold, level),
                    },
                )
            )
        return raised

    def acknowledge_alert(self, alert_id: str) -> bool:
        for alert in self.alerts:
            if alert.alert_id == alert_id:
                alert.acknowledged = True
                return True
        return False

    # ------------------------------------------------------------------
    # Health checks
    # ------------------------------------------------------------------

    def register_health_check(self, name: str, check: HealthCheck) -> None:
        """Register an async check returning a HealthCheckResult or a dict."""
        self._health_checks[name] = check

    async def run_health_checks(self) -> dict[str, HealthCheckResult]:
        for name, check in self._health_checks.items():
            try:
                outcome = await check()
                result = (
                    outcome
                    if isinstance(outcome, HealthCheckResult)
                    else HealthCheckResult.model_validate(outcome)
                )
            except Exception as exc:
                logger.error("Health check %s failed: %s", name, exc)
                result = HealthCheckResult(healthy=False, message=str(exc))
                self.create_alert(
                    f"health_check_{name}_error", "error", {"check": name, "error": str(exc)}
                )
            else:
                if not result.healthy:
                    self.create_alert(
                        f"health_check_{name}",
                        "warning",
                        {"check": name, "message": result.message, "details": result.details},
                    )
            result.last_run = utc_now()
            self._health_results[name] = result
        return dict(self._health_results)

    # ------------------------------------------------------------------
    # Status and export
    # ------------------------------------------------------------------

    def system_status(self) -> dict[str, Any]:
        healthy = True
        metrics: dict[str, Any] = {}
        for metric, threshold in self.thresholds.items():
            value = self.latest(metric)
            status = classify(value, threshold)
            metrics[metric] = {"value": value, "status": status}
            if status == "critical":
                healthy = False

        checks: dict[str, Any] = {}
        for name in self._health_checks:
            result = self._health_results.get(name)
            checks[name] = {
                "last_run": result.last_run if result else None,
                "healthy": result.healthy if result else None,
                "message": result.message if result else None,
            }
            if result is not None and not result.healthy:
                healthy = False

        active = [
            a for a in self.alerts if not a.acknowledged and a.severity in ("critical", "error")
        ]

        if healthy:
            summary = "All systems operational"
        else:
            issues: list[str] = []
            if active:
                issues.append(f"{len(active)} active alerts")
            failed = sum(1 for c in checks.values() if c["healthy"] is False)
            if failed:
                issues.append(f"{failed} failed health checks")
            summary = "System issues detected: " + ", ".join(issues) if issues else "System issues detected"

        return {
            "healthy": healthy,
            "metrics": metrics,
            "health_checks": checks,
            "active_alerts": active,
            "summary": summary,
        }

    def export_metrics(self, fmt: str = "json") -> str:
        """Serialise the metric history as ``json`` or ``csv`` text.

        Raises:
            ValidationException: For any other format.
        """
        if fmt == "json":
            data = {
                "timestamp": utc_now(),
                "metrics": {k: [p.model_dump() for p in v] for k, v in self.metrics.items()},
                "alerts": [a.model_dump() for a in self.alerts],
                "status": self.system_status(),
            }
            return orjson.dumps(
                data,
                option=orjson.OPT_INDENT_2,
                default=lambda o: o.model_dump() if hasattr(o, "model_dump") else str(o),
            ).decode()

        if fmt == "csv":
            buffer = io.StringIO()
            writer = csv.writer(buffer, lineterminator="\n")
            writer.writerow(["Timestamp", "Metric", "Value"])
            for metric, points in self.metrics.items():
                for point in points:
                    writer.writerow([point.timestamp.isoformat(), metric, point.value])
            return buffer.getvalue()

        raise ValidationException(f"Unsupported export format: {fmt}", detail={"format": fmt})

    # ------------------------------------------------------------------
    # Periodic tick
    # ------------------------------------------------------------------

    async def collect_once(self) -> None:
        """One monitoring tick: collect, check health, check thresholds, prune."""
        try:
            sample = await self._collector()
        except Exception as exc:
            logger.error("Failed to collect metrics: %s", exc)
            self.create_alert("metric_collection_failed", "error", {"error": str(exc)})
        else:
            await self.record_metrics(sample)
        await self.run_health_checks()
        self.check_thresholds()
        self.clean_old_metrics()
