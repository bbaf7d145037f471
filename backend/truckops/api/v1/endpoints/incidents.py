"""Incident listing endpoint."""

from __future__ import annotations

from fastapi import APIRouter, Depends
from pydantic import BaseModel, Field

from truckops.api.v1.dependencies import get_alert_service, get_tenant_id
from truckops.models.alert import Incident
from truckops.services.alerts.service import AlertService

router = APIRouter(prefix="/incidents", tags=["incidents"])


class IncidentListResponse(BaseModel):
    incidents: list[Incident] = Field(default_factory=list)
    total: int = 0


@router.get("", response_model=IncidentListResponse, summary="List recent incidents")
async def list_incidents(
    tenant_id: str = Depends(get_tenant_id),
    service: AlertService = Depends(get_alert_service),
) -> IncidentListResponse:
    incidents = await service.list_incidents(tenant_id)
    return IncidentListResponse(incidents=incidents, total=len(incidents))
