"""
Error tracking endpoints.

Client applications report errors here; operators list them grouped by
message with statistics, resolve them singly or in bulk, delete them and
export the filtered set as JSON.
"""

from __future__ import annotations

import logging
from typing import Any, Optional

from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel, Field

from truckops.api.v1.dependencies import get_error_service, get_tenant_id
from truckops.models.error_event import ErrorEvent
from truckops.services.alerts.lifecycle import BulkActionResult
from truckops.services.errors.service import ErrorService
from truckops.services.errors.tracking import ErrorGroup, ErrorStats

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/errors", tags=["errors"])


# ---------------------------------------------------------------------------
# Schemas
# ---------------------------------------------------------------------------


class ErrorReportRequest(BaseModel):
    """An error reported by a client application."""

    message: str = Field(default="", max_length=5000)
    stack: Optional[str] = None
    severity: Optional[str] = None
    category: Optional[str] = None
    browser: Optional[str] = None
    platform: Optional[str] = None
    url: Optional[str] = None
    user_id: Optional[str] = None
    timestamp: Optional[int] = Field(default=None, description="Epoch ms; now when omitted.")
    sentry_id: Optional[str] = None


class ErrorListResponse(BaseModel):
    errors: list[ErrorEvent] = Field(default_factory=list)
    groups: list[ErrorGroup] = Field(default_factory=list)
    stats: ErrorStats
    total: int = 0


class ActorRequest(BaseModel):
    actor: Optional[str] = None


class BulkResolveRequest(ActorRequest):
    error_ids: list[str] = Field(..., min_length=1)


class DeleteErrorResponse(BaseModel):
    error_id: str
    message: str


def _filters(
    severity: Optional[str] = Query(default=None),
    category: Optional[str] = Query(default=None),
    browser: Optional[str] = Query(default=None),
    platform: Optional[str] = Query(default=None),
    time_range: Optional[str] = Query(default=None, description="1h, 24h, 7d or 30d."),
    search: Optional[str] = Query(default=None),
    resolved: Optional[bool] = Query(default=None),
) -> dict[str, Any]:
    return {
        "severity": severity,
        "category": category,
        "browser": browser,
        "platform": platform,
        "time_range": time_range,
        "search": search,
        "resolved": resolved,
    }


# ---------------------------------------------------------------------------
# Endpoints
# ---------------------------------------------------------------------------


@router.get("", response_model=ErrorListResponse, summary="List errors with groups and statistics")
async def list_errors(
    filters: dict[str, Any] = Depends(_filters),
    tenant_id: str = Depends(get_tenant_id),
    service: ErrorService = Depends(get_error_service),
) -> ErrorListResponse:
    return ErrorListResponse(**await service.list_errors(tenant_id, **filters))


@router.post("", response_model=ErrorEvent, status_code=201, summary="Report an error")
async def report_error(
    body: ErrorReportRequest,
    tenant_id: str = Depends(get_tenant_id),
    service: ErrorService = Depends(get_error_service),
) -> ErrorEvent:
    return await service.record(tenant_id, body.model_dump(exclude_none=True))


@router.get("/export", summary="Export filtered errors and statistics as JSON")
async def export_errors(
    filters: dict[str, Any] = Depends(_filters),
    tenant_id: str = Depends(get_tenant_id),
    service: ErrorService = Depends(get_error_service),
) -> dict[str, Any]:
    return await service.export(tenant_id, **filters)


@router.post("/bulk-resolve", response_model=BulkActionResult, summary="Resolve many errors")
async def bulk_resolve(
    body: BulkResolveRequest,
    tenant_id: str = Depends(get_tenant_id),
    service: ErrorService = Depends(get_error_service),
) -> BulkActionResult:
    return await service.bulk_resolve(tenant_id, body.error_ids, actor=body.actor)


@router.post("/{error_id}/resolve", response_model=ErrorEvent, summary="Resolve an error")
async def resolve_error(
    error_id: str,
    body: Optional[ActorRequest] = None,
    tenant_id: str = Depends(get_tenant_id),
    service: ErrorService = Depends(get_error_service),
) -> ErrorEvent:
    return await service.resolve(tenant_id, error_id, actor=body.actor if body else None)


@router.delete("/{error_id}", response_model=DeleteErrorResponse, summary="Delete an error")
async def delete_error(
    error_id: str,
    tenant_id: str = Depends(get_tenant_id),
    service: ErrorService = Depends(get_error_service),
) -> DeleteErrorResponse:
    return DeleteErrorResponse(**await service.delete(tenant_id, error_id))
