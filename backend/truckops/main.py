from __future__ import annotations

import logging
from collections.abc import AsyncIterator, Awaitable, Callable
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import ORJSONResponse

from truckops.api.v1.endpoints.health import (
    DependencyDetail,
    check_email,
    check_mongo,
    check_redis,
)
from truckops.api.v1.router import api_v1_router
from truckops.config import Settings, get_settings
from truckops.core.exceptions import AppException
from truckops.core.logging import setup_logging
from truckops.database import MongoConnection
from truckops.db.indexes import create_indexes
from truckops.models.monitoring import HealthCheckResult
from truckops.redis_client import RedisConnection
from truckops.services.alerts.engine import AlertEngine
from truckops.services.alerts.evaluator import WindowedEvaluator
from truckops.services.alerts.lifecycle import AlertLifecycle
from truckops.services.alerts.notifier import AlertNotifier
from truckops.services.email.client import EmailClient
from truckops.services.jobs.runner import JobRunner
from truckops.services.monitoring.monitor import MonitoringService
from truckops.services.reports.scheduler import ReportScheduler
from truckops.services.reports.service import ReportService

logger = logging.getLogger(__name__)


def _start_background_jobs(application: FastAPI, settings: Settings) -> None:
    state = application.state
    db = state.mongo.db

    state.jobs.start_periodic(
        "monitoring",
        settings.MONITOR_INTERVAL_SECONDS,
        state.monitoring.collect_once,
    )

    lifecycle = AlertLifecycle(db, default_suppress_ms=settings.DEFAULT_SUPPRESS_MS)
    state.jobs.start_periodic(
        "suppression-sweep",
        settings.SUPPRESSION_SWEEP_SECONDS,
        lifecycle.expire_suppressions,
    )

    scheduler = ReportScheduler(db, ReportService(db, settings), email_client=state.email_client)
    state.jobs.start_periodic(
        "report-schedules",
        settings.REPORT_SCHEDULE_SECONDS,
        scheduler.process_due,
    )


@asynccontextmanager
async def lifespan(application: FastAPI) -> AsyncIterator[None]:
    """Manage startup and shutdown of external connections and background jobs."""
    settings = get_settings()
    setup_logging(level=settings.LOG_LEVEL)
    settings.validate_required()

    logger.info(
        "Starting TruckOps backend",
        extra={"environment": settings.ENVIRONMENT},
    )

    # --- Startup ---
    mongo = MongoConnection(settings)
    redis = RedisConnection(settings)
    await mongo.connect()
    await redis.connect()
    application.state.mongo = mongo
    application.state.redis = redis

    # Create indexes after MongoDB is connected
    await create_indexes(mongo.db)

    state = application.state
    state.email_client = EmailClient.from_settings(settings) if settings.EMAIL_FUNCTION_URL else None
    state.alert_windows = WindowedEvaluator()
    state.alert_notifier = AlertNotifier(
        email_client=state.email_client,
        redis=redis.client,
        muted=settings.ALERT_NOTIFICATIONS_MUTED,
    )
    state.jobs = JobRunner(keep_finished=settings.JOBS_KEEP_FINISHED)
    state.monitoring = MonitoringService(
        engine=AlertEngine(mongo.db, notifier=state.alert_notifier, windows=state.alert_windows),
        retention_hours=settings.METRICS_RETENTION_HOURS,
        db=mongo.db,
    )

    def _as_health_check(check: Callable[[], Awaitable[DependencyDetail]]):
        async def run() -> HealthCheckResult:
            detail = await check()
            return HealthCheckResult(
                healthy=detail.healthy,
                message=detail.error or "",
                details={"latency_ms": detail.latency_ms},
            )

        return run

    state.monitoring.register_health_check("mongodb", _as_health_check(lambda: check_mongo(mongo.db)))
    state.monitoring.register_health_check("redis", _as_health_check(lambda: check_redis(redis.client)))
    if state.email_client is not None:
        state.monitoring.register_health_check(
            "email", _as_health_check(lambda: check_email(state.email_client))
        )

    if settings.BACKGROUND_JOBS_ENABLED:
        _start_background_jobs(application, settings)

    logger.info("TruckOps backend ready")

    yield

    # --- Shutdown ---
    logger.info("Shutting down TruckOps backend")
    await state.jobs.shutdown()
    await state.alert_notifier.close()
    if state.email_client is not None:
        await state.email_client.close()
    await redis.close()
    await mongo.close()
    logger.info("TruckOps backend stopped")


def create_application() -> FastAPI:
    """Build and configure the FastAPI application."""
    settings = get_settings()

    application = FastAPI(
        title="TruckOps API",
        description="Operations backend for the food-truck platform",
        version="0.1.0",
        lifespan=lifespan,
        default_response_class=ORJSONResponse,
        docs_url="/api/docs" if not settings.is_production else None,
        redoc_url="/api/redoc" if not settings.is_production else None,
        openapi_url="/api/openapi.json" if not settings.is_production else None,
    )

    # --- CORS ---
    application.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # --- Exception handlers ---
    @application.exception_handler(AppException)
    async def app_exception_handler(_request: Request, exc: AppException) -> ORJSONResponse:
        logger.warning(
            "Application error: %s",
            exc.message,
            extra={"error_code": exc.error_code, "status_code": exc.status_code},
        )
        return ORJSONResponse(
            status_code=exc.status_code,
            content=exc.to_dict(),
        )

    @application.exception_handler(Exception)
    async def unhandled_exception_handler(
        _request: Request, exc: Exception
    ) -> ORJSONResponse:
        logger.exception("Unhandled exception: %s", str(exc))
        return ORJSONResponse(
            status_code=500,
            content={
                "error": "INTERNAL_ERROR",
                "message": "An unexpected error occurred",
            },
        )

    # --- Routers ---
    application.include_router(api_v1_router, prefix="/api/v1")

    return application


app = create_application()
