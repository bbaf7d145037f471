"""
Shared FastAPI dependencies for the v1 endpoints.

Services are built per request from the database handle and the
application-scoped objects the lifespan placed on ``app.state`` (alert
window buffer, notifier, email client, job runner, monitoring service).
"""

from __future__ import annotations

from typing import Any

from fastapi import Depends, Header, Request
from motor.motor_asyncio import AsyncIOMotorDatabase

from truckops.config import Settings, get_settings
from truckops.database import get_database
from truckops.models.base import DEFAULT_TENANT
from truckops.services.alerts.service import AlertService
from truckops.services.errors.service import ErrorService
from truckops.services.inventory.service import InventoryService
from truckops.services.jobs.runner import JobRunner
from truckops.services.monitoring.monitor import MonitoringService
from truckops.services.reports.scheduler import ReportScheduler
from truckops.services.reports.service import ReportService
from truckops.services.training.service import TrainingService


def get_tenant_id(x_tenant_id: str = Header(default=DEFAULT_TENANT, alias="X-Tenant-ID")) -> str:
    return x_tenant_id.strip() or DEFAULT_TENANT


def get_app_settings() -> Settings:
    return get_settings()


def _state(request: Request, name: str) -> Any:
    return getattr(request.app.state, name, None)


def get_alert_service(
    request: Request,
    db: AsyncIOMotorDatabase = Depends(get_database),  # type: ignore[type-arg]
    settings: Settings = Depends(get_app_settings),
) -> AlertService:
    return AlertService(
        db,
        settings=settings,
        notifier=_state(request, "alert_notifier"),
        windows=_state(request, "alert_windows"),
    )


def get_error_service(
    db: AsyncIOMotorDatabase = Depends(get_database),  # type: ignore[type-arg]
    settings: Settings = Depends(get_app_settings),
) -> ErrorService:
    return ErrorService(db, settings=settings)


def get_report_service(
    db: AsyncIOMotorDatabase = Depends(get_database),  # type: ignore[type-arg]
    settings: Settings = Depends(get_app_settings),
) -> ReportService:
    return ReportService(db, settings=settings)


def get_report_scheduler(
    request: Request,
    db: AsyncIOMotorDatabase = Depends(get_database),  # type: ignore[type-arg]
    reports: ReportService = Depends(get_report_service),
) -> ReportScheduler:
    return ReportScheduler(db, reports, email_client=_state(request, "email_client"))


def get_inventory_service(
    request: Request,
    db: AsyncIOMotorDatabase = Depends(get_database),  # type: ignore[type-arg]
    settings: Settings = Depends(get_app_settings),
) -> InventoryService:
    return InventoryService(
        db,
        email_client=_state(request, "email_client"),
        low_stock_recipients=settings.LOW_STOCK_RECIPIENTS,
    )


def get_job_runner(request: Request) -> JobRunner:
    runner = _state(request, "jobs")
    if runner is None:
        raise RuntimeError("Job runner is not initialised.")
    return runner


def get_training_service(
    db: AsyncIOMotorDatabase = Depends(get_database),  # type: ignore[type-arg]
    runner: JobRunner = Depends(get_job_runner),
    settings: Settings = Depends(get_app_settings),
) -> TrainingService:
    return TrainingService(db, runner, epoch_seconds=settings.TRAINING_EPOCH_SECONDS)


def get_monitoring_service(request: Request) -> MonitoringService:
    monitoring = _state(request, "monitoring")
    if monitoring is None:
        raise RuntimeError("Monitoring service is not initialised.")
    return monitoring
