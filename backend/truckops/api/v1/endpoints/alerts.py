"""
Alert management endpoints.

Alerts are raised when a metric sample violates an operator-defined rule.
Supports filtered listing with statistics, the acknowledge / resolve /
suppress lifecycle (single and bulk), rule evaluation for incoming
samples, test alerts, the suppression sweep and JSON export.
"""

from __future__ import annotations

import logging
from typing import Any, Optional

from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel, Field

from truckops.api.v1.dependencies import get_alert_service, get_tenant_id
from truckops.models.alert import Alert
from truckops.services.alerts.lifecycle import BulkActionResult
from truckops.services.alerts.service import AlertService
from truckops.services.alerts.statistics import AlertStats

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/alerts", tags=["alerts"])


# ---------------------------------------------------------------------------
# Schemas
# ---------------------------------------------------------------------------


class AlertListResponse(BaseModel):
    """Filtered alerts plus statistics over the same list."""

    alerts: list[Alert] = Field(default_factory=list, description="Matching alerts.")
    total: int = Field(default=0, description="Number of matching alerts.")
    stats: AlertStats = Field(..., description="Statistics over the listed alerts.")


class ActorRequest(BaseModel):
    actor: Optional[str] = Field(default=None, description="Who performs the action.")


class ResolveRequest(ActorRequest):
    resolution: str = Field(default="", max_length=2000, description="Resolution note.")


class SuppressRequest(ActorRequest):
    duration_ms: Optional[int] = Field(
        default=None,
        gt=0,
        description="Suppression length in milliseconds; the configured default when omitted.",
    )


class BulkActionRequest(ActorRequest):
    alert_ids: list[str] = Field(..., min_length=1, description="Alerts to act on.")
    action: str = Field(..., description="acknowledge, resolve or suppress.")
    duration_ms: Optional[int] = Field(default=None, gt=0)


class MetricSampleRequest(BaseModel):
    """One metric reading to evaluate against the tenant's rules."""

    metric: str = Field(..., min_length=1, description="Metric name, e.g. cpu.")
    value: Any = Field(..., description="Observed value.")
    timestamp: Optional[int] = Field(default=None, description="Epoch ms; now when omitted.")


class EvaluateResponse(BaseModel):
    alerts: list[Alert] = Field(default_factory=list, description="Alerts raised by the sample.")


class SweepResponse(BaseModel):
    unsuppressed: list[str] = Field(default_factory=list, description="Alerts returned to active.")


# ---------------------------------------------------------------------------
# Endpoints
# ---------------------------------------------------------------------------


@router.get(
    "",
    response_model=AlertListResponse,
    summary="List alerts",
    description="Filter and sort the tenant's recent alerts. Statistics cover the filtered list.",
)
async def list_alerts(
    state: Optional[str] = Query(default=None),
    severity: Optional[str] = Query(default=None),
    category: Optional[str] = Query(default=None),
    time_range: Optional[str] = Query(default=None, description="1m, 5m, 15m, 30m, 1h, 24h, 7d or 30d."),
    search: Optional[str] = Query(default=None),
    sort_by: str = Query(default="timestamp"),
    descending: bool = Query(default=True),
    tenant_id: str = Depends(get_tenant_id),
    service: AlertService = Depends(get_alert_service),
) -> AlertListResponse:
    result = await service.list_alerts(
        tenant_id,
        state=state,
        severity=severity,
        category=category,
        time_range=time_range,
        search=search,
        sort_by=sort_by,
        descending=descending,
    )
    return AlertListResponse(**result)


@router.get("/stats", response_model=AlertStats, summary="Alert statistics")
async def alert_stats(
    tenant_id: str = Depends(get_tenant_id),
    service: AlertService = Depends(get_alert_service),
) -> AlertStats:
    return await service.stats(tenant_id)


@router.get("/export", summary="Export alerts, rules and statistics as JSON")
async def export_alerts(
    state: Optional[str] = Query(default=None),
    severity: Optional[str] = Query(default=None),
    category: Optional[str] = Query(default=None),
    time_range: Optional[str] = Query(default=None),
    search: Optional[str] = Query(default=None),
    tenant_id: str = Depends(get_tenant_id),
    service: AlertService = Depends(get_alert_service),
) -> dict[str, Any]:
    filters = {
        "state": state,
        "severity": severity,
        "category": category,
        "time_range": time_range,
        "search": search,
    }
    return await service.export_alerts(
        tenant_id, {k: v for k, v in filters.items() if v is not None}
    )


@router.post(
    "/test",
    response_model=Alert,
    status_code=201,
    summary="Raise a test alert",
)
async def trigger_test_alert(
    body: Optional[ActorRequest] = None,
    tenant_id: str = Depends(get_tenant_id),
    service: AlertService = Depends(get_alert_service),
) -> Alert:
    return await service.trigger_test_alert(tenant_id, actor=body.actor if body else None)


@router.post(
    "/evaluate",
    response_model=EvaluateResponse,
    summary="Evaluate a metric sample against the tenant's rules",
)
async def evaluate_sample(
    body: MetricSampleRequest,
    tenant_id: str = Depends(get_tenant_id),
    service: AlertService = Depends(get_alert_service),
) -> EvaluateResponse:
    alerts = await service.evaluate_sample(tenant_id, body.metric, body.value, body.timestamp)
    return EvaluateResponse(alerts=alerts)


@router.post("/bulk", response_model=BulkActionResult, summary="Apply an action to many alerts")
async def bulk_apply(
    body: BulkActionRequest,
    tenant_id: str = Depends(get_tenant_id),
    service: AlertService = Depends(get_alert_service),
) -> BulkActionResult:
    return await service.bulk_apply(
        tenant_id, body.alert_ids, body.action, actor=body.actor, duration_ms=body.duration_ms
    )


@router.post(
    "/sweep-suppressions",
    response_model=SweepResponse,
    summary="Return expired suppressions to active",
)
async def sweep_suppressions(
    tenant_id: str = Depends(get_tenant_id),
    service: AlertService = Depends(get_alert_service),
) -> SweepResponse:
    return SweepResponse(unsuppressed=await service.sweep_suppressions(tenant_id))


@router.get("/{alert_id}", response_model=Alert, summary="Get an alert")
async def get_alert(
    alert_id: str,
    tenant_id: str = Depends(get_tenant_id),
    service: AlertService = Depends(get_alert_service),
) -> Alert:
    return await service.get_alert(tenant_id, alert_id)


@router.post("/{alert_id}/acknowledge", response_model=Alert, summary="Acknowledge an alert")
async def acknowledge_alert(
    alert_id: str,
    body: Optional[ActorRequest] = None,
    tenant_id: str = Depends(get_tenant_id),
    service: AlertService = Depends(get_alert_service),
) -> Alert:
    return await service.acknowledge(tenant_id, alert_id, actor=body.actor if body else None)


@router.post("/{alert_id}/resolve", response_model=Alert, summary="Resolve an alert")
async def resolve_alert(
    alert_id: str,
    body: Optional[ResolveRequest] = None,
    tenant_id: str = Depends(get_tenant_id),
    service: AlertService = Depends(get_alert_service),
) -> Alert:
    body = body or ResolveRequest()
    return await service.resolve(tenant_id, alert_id, resolution=body.resolution, actor=body.actor)


@router.post("/{alert_id}/suppress", response_model=Alert, summary="Suppress an alert")
async def suppress_alert(
    alert_id: str,
    body: Optional[SuppressRequest] = None,
    tenant_id: str = Depends(get_tenant_id),
    service: AlertService = Depends(get_alert_service),
) -> Alert:
    body = body or SuppressRequest()
    return await service.suppress(
        tenant_id, alert_id, duration_ms=body.duration_ms, actor=body.actor
    )
