"""
Report endpoints.

Renders reports from a supplied payload (or from stored data for a report
type and period) as a PDF, Excel, CSV or JSON download, lists generated
reports, and manages scheduled report delivery.
"""

from __future__ import annotations

import logging
from typing import Optional

from fastapi import APIRouter, Depends
from fastapi.responses import Response
from pydantic import BaseModel, Field

from truckops.api.v1.dependencies import (
    get_report_scheduler,
    get_report_service,
    get_tenant_id,
)
from truckops.core.exceptions import ValidationException
from truckops.models.report import (
    DateRange,
    ExportFormat,
    ReportPayload,
    ReportRecord,
    ReportSchedule,
)
from truckops.services.reports.scheduler import ReportScheduler, ScheduleRunResult
from truckops.services.reports.service import RenderedReport, ReportService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/reports", tags=["reports"])


# ---------------------------------------------------------------------------
# Schemas
# ---------------------------------------------------------------------------


class RenderReportRequest(BaseModel):
    """Either a ready payload, or a report type and period to aggregate."""

    format: ExportFormat = Field(default=ExportFormat.PDF)
    payload: Optional[ReportPayload] = Field(default=None, description="Pre-aggregated data.")
    report_type: Optional[str] = Field(default=None, description="Aggregate stored data instead.")
    date_range: Optional[DateRange] = Field(default=None)


class ReportListResponse(BaseModel):
    reports: list[ReportRecord] = Field(default_factory=list)
    total: int = 0


class ScheduleRequest(BaseModel):
    report_type: str
    frequency: str
    format: str = ExportFormat.PDF.value
    recipients: list[str] = Field(default_factory=list)
    active: bool = True


class ScheduleListResponse(BaseModel):
    schedules: list[ReportSchedule] = Field(default_factory=list)
    total: int = 0


def _download(rendered: RenderedReport) -> Response:
    return Response(
        content=rendered.content,
        media_type=rendered.content_type,
        headers={
            "Content-Disposition": f'attachment; filename="{rendered.filename}"',
            "X-Report-ID": rendered.record.report_id,
        },
    )


# ---------------------------------------------------------------------------
# Endpoints
# ---------------------------------------------------------------------------


@router.post("/render", summary="Render a report as a download")
async def render_report(
    body: RenderReportRequest,
    tenant_id: str = Depends(get_tenant_id),
    service: ReportService = Depends(get_report_service),
) -> Response:
    fmt = getattr(body.format, "value", body.format)
    if body.payload is not None:
        rendered = await service.render(tenant_id, body.payload, fmt)
    elif body.report_type and body.date_range:
        rendered = await service.generate(tenant_id, body.report_type, body.date_range, fmt)
    else:
        raise ValidationException("Provide either a payload or a report_type with a date_range")
    return _download(rendered)


@router.get("", response_model=ReportListResponse, summary="List generated reports")
async def list_reports(
    tenant_id: str = Depends(get_tenant_id),
    service: ReportService = Depends(get_report_service),
) -> ReportListResponse:
    reports = await service.list_reports(tenant_id)
    return ReportListResponse(reports=reports, total=len(reports))


@router.post(
    "/schedules",
    response_model=ReportSchedule,
    status_code=201,
    summary="Schedule recurring report delivery",
)
async def create_schedule(
    body: ScheduleRequest,
    tenant_id: str = Depends(get_tenant_id),
    scheduler: ReportScheduler = Depends(get_report_scheduler),
) -> ReportSchedule:
    return await scheduler.schedule(tenant_id, body.model_dump())


@router.get("/schedules", response_model=ScheduleListResponse, summary="List report schedules")
async def list_schedules(
    tenant_id: str = Depends(get_tenant_id),
    scheduler: ReportScheduler = Depends(get_report_scheduler),
) -> ScheduleListResponse:
    schedules = await scheduler.list_schedules(tenant_id)
    return ScheduleListResponse(schedules=schedules, total=len(schedules))


@router.post(
    "/schedules/run-due",
    response_model=ScheduleRunResult,
    summary="Generate and deliver every due scheduled report",
)
async def run_due_schedules(
    scheduler: ReportScheduler = Depends(get_report_scheduler),
) -> ScheduleRunResult:
    return await scheduler.process_due()


@router.get("/{report_id}", response_model=ReportRecord, summary="Get report metadata")
async def get_report(
    report_id: str,
    tenant_id: str = Depends(get_tenant_id),
    service: ReportService = Depends(get_report_service),
) -> ReportRecord:
    return await service.get_report(tenant_id, report_id)
