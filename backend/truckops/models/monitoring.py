"""
System monitoring models: metric samples, thresholds and health checks.
"""

from __future__ import annotations

from datetime import datetime
from typing import Any, Optional

from pydantic import BaseModel, Field

from truckops.models.base import generate_uuid, utc_now


class MetricSample(BaseModel):
    """One collected reading of the system metrics."""

    tenant_id: str = Field(default="default")
    timestamp: datetime = Field(default_factory=utc_now)
    cpu: Optional[float] = None
    memory: Optional[float] = None
    disk: Optional[float] = None
    network: Optional[float] = None
    responseTime: Optional[float] = None
    errorRate: Optional[float] = None
    activeUsers: Optional[float] = None
    requestsPerMinute: Optional[float] = None

    def values(self) -> dict[str, float]:
        """Return the metrics present in this sample."""
        return {
            name: value
            for name, value in self.model_dump(
                exclude={"tenant_id", "timestamp"}
            ).items()
            if value is not None
        }


class MetricPoint(BaseModel):
    value: float
    timestamp: datetime


class MetricThreshold(BaseModel):
    warning: float
    critical: float


class HealthCheckResult(BaseModel):
    """Outcome of one named health check."""

    healthy: bool
    message: str = ""
    details: dict[str, Any] = Field(default_factory=dict)
    last_run: Optional[datetime] = None


class MonitoringAlert(BaseModel):
    """An in-process alert raised by threshold or health checks."""

    alert_id: str = Field(default_factory=generate_uuid)
    type: str
    severity: str
    message: str
    details: dict[str, Any] = Field(default_factory=dict)
    timestamp: datetime = Field(default_factory=utc_now)
    acknowledged: bool = False
