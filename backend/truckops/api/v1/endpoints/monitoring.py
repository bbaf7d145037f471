"""
System monitoring endpoints.

Accepts pushed metric samples (which also flow through the alert rules),
reports the overall system status, returns metric history and exports
the in-memory history as JSON or CSV.
"""

from __future__ import annotations

import logging
from typing import Any

from fastapi import APIRouter, Depends, Query
from fastapi.responses import Response
from pydantic import BaseModel, Field

from truckops.api.v1.dependencies import get_monitoring_service, get_tenant_id
from truckops.core.exceptions import NotFoundException
from truckops.models.alert import Alert
from truckops.models.monitoring import MetricPoint, MetricSample, MonitoringAlert
from truckops.services.monitoring.monitor import MonitoringService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/monitoring", tags=["monitoring"])

_EXPORT_MEDIA_TYPES = {"json": "application/json", "csv": "text/csv; charset=utf-8"}


# ---------------------------------------------------------------------------
# Schemas
# ---------------------------------------------------------------------------


class RecordMetricsResponse(BaseModel):
    recorded: dict[str, float] = Field(default_factory=dict, description="Metrics stored.")
    alerts: list[Alert] = Field(default_factory=list, description="Alerts raised by rules.")


class MetricHistoryResponse(BaseModel):
    metric: str
    duration: str
    points: list[MetricPoint] = Field(default_factory=list)


# ---------------------------------------------------------------------------
# Endpoints
# ---------------------------------------------------------------------------


@router.post("/metrics", response_model=RecordMetricsResponse, summary="Record a metric sample")
async def record_metrics(
    sample: MetricSample,
    tenant_id: str = Depends(get_tenant_id),
    monitoring: MonitoringService = Depends(get_monitoring_service),
) -> RecordMetricsResponse:
    sample.tenant_id = tenant_id
    alerts = await monitoring.record_metrics(sample)
    return RecordMetricsResponse(recorded=sample.values(), alerts=alerts)


@router.get("/status", summary="Overall system status")
async def system_status(
    monitoring: MonitoringService = Depends(get_monitoring_service),
) -> dict[str, Any]:
    return monitoring.system_status()


@router.get(
    "/metrics/{metric}",
    response_model=MetricHistoryResponse,
    summary="Metric history over a duration",
)
async def metric_history(
    metric: str,
    duration: str = Query(default="1h", description="e.g. 30s, 15m, 1h, 7d."),
    monitoring: MonitoringService = Depends(get_monitoring_service),
) -> MetricHistoryResponse:
    if metric not in monitoring.metrics:
        raise NotFoundException(resource="Metric", identifier=metric)
    return MetricHistoryResponse(
        metric=metric,
        duration=duration,
        points=monitoring.history(metric, duration),
    )


@router.get("/alerts", response_model=list[MonitoringAlert], summary="Monitoring alerts")
async def monitoring_alerts(
    monitoring: MonitoringService = Depends(get_monitoring_service),
) -> list[MonitoringAlert]:
    return list(reversed(monitoring.alerts))


@router.post("/alerts/{alert_id}/acknowledge", summary="Acknowledge a monitoring alert")
async def acknowledge_monitoring_alert(
    alert_id: str,
    monitoring: MonitoringService = Depends(get_monitoring_service),
) -> dict[str, Any]:
    if not monitoring.acknowledge_alert(alert_id):
        raise NotFoundException(resource="Monitoring alert", identifier=alert_id)
    return {"alert_id": alert_id, "acknowledged": True}


@router.get("/export", summary="Export metric history")
async def export_metrics(
    format: str = Query(default="json", description="json or csv."),
    monitoring: MonitoringService = Depends(get_monitoring_service),
) -> Response:
    content = monitoring.export_metrics(format)
    return Response(
        content=content,
        media_type=_EXPORT_MEDIA_TYPES[format],
        headers={"Content-Disposition": f'attachment; filename="metrics.{format}"'},
    )
