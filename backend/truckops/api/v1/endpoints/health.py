"""
Health and readiness check endpoints.

Provides liveness and readiness checks for the TruckOps backend,
verifying connectivity to MongoDB, Redis and the email functions. The
readiness check also reports the background jobs that are running.
"""

from __future__ import annotations

import logging
import time
from datetime import datetime, timezone
from typing import Any, Awaitable, Callable

from fastapi import APIRouter, Depends, Request
from motor.motor_asyncio import AsyncIOMotorDatabase
from pydantic import BaseModel, Field
from redis.asyncio import Redis

from truckops.api.v1.dependencies import get_app_settings
from truckops.config import Settings
from truckops.core.exceptions import ServiceUnavailableException
from truckops.database import get_database
from truckops.redis_client import get_redis
from truckops.services.email.client import EmailClient

logger = logging.getLogger(__name__)

router = APIRouter(tags=["health"])


# ---------------------------------------------------------------------------
# Response schemas
# ---------------------------------------------------------------------------


class HealthResponse(BaseModel):
    """Basic health check response."""

    status: str = Field(..., description="Overall service status.")
    mongo: bool = Field(..., description="MongoDB connectivity.")
    redis: bool = Field(..., description="Redis connectivity.")


class DependencyDetail(BaseModel):
    """Detailed status for a single dependency."""

    healthy: bool = Field(..., description="Whether the dependency is reachable.")
    latency_ms: float = Field(..., description="Round-trip latency in milliseconds.")
    error: str | None = Field(default=None, description="Error message if unhealthy.")
    configured: bool = Field(default=True, description="Whether the dependency is configured at all.")


class ReadinessResponse(BaseModel):
    """Detailed readiness check response."""

    status: str = Field(..., description="Overall readiness status: 'ready' or 'degraded'.")
    timestamp: str = Field(..., description="ISO-8601 UTC timestamp of the check.")
    environment: str = Field(..., description="Deployment environment.")
    mongo: DependencyDetail = Field(..., description="MongoDB status detail.")
    redis: DependencyDetail = Field(..., description="Redis status detail.")
    email: DependencyDetail = Field(..., description="Email function status detail.")
    running_jobs: list[str] = Field(default_factory=list, description="Names of running background jobs.")


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


async def _timed(name: str, ping: Callable[[], Awaitable[Any]]) -> DependencyDetail:
    start = time.monotonic()
    try:
        await ping()
    except ServiceUnavailableException as exc:
        error: str | None = exc.message
        logger.warning("%s health check failed: %s", name, exc.detail)
    except Exception as exc:
        error = str(exc)
        logger.warning("%s health check failed", name, exc_info=exc)
    else:
        error = None
    latency = round((time.monotonic() - start) * 1000, 2)
    return DependencyDetail(healthy=error is None, latency_ms=latency, error=error)


async def check_mongo(db: AsyncIOMotorDatabase) -> DependencyDetail:  # type: ignore[type-arg]
    return await _timed("MongoDB", lambda: db.command("ping"))


async def check_redis(redis: Redis) -> DependencyDetail:  # type: ignore[type-arg]
    return await _timed("Redis", redis.ping)


async def check_email(client: EmailClient | None) -> DependencyDetail:
    """Ping the email functions; an unconfigured client is reported as such."""
    if client is None or not client.configured:
        return DependencyDetail(
            healthy=False, latency_ms=0.0, error="not configured", configured=False
        )
    return await _timed("Email function", client.ping)


def running_jobs(request: Request) -> list[str]:
    """Names of the background jobs that have not finished yet."""
    jobs = getattr(request.app.state, "jobs", None)
    if jobs is None:
        return []
    return sorted(job.name for job in jobs.list() if not job.done)


# ---------------------------------------------------------------------------
# Endpoints
# ---------------------------------------------------------------------------


@router.get(
    "/health",
    response_model=HealthResponse,
    summary="Basic health check",
    description="Returns the liveness status and connectivity of MongoDB and Redis.",
)
async def health_check(
    db: AsyncIOMotorDatabase = Depends(get_database),  # type: ignore[type-arg]
    redis: Redis = Depends(get_redis),  # type: ignore[type-arg]
) -> HealthResponse:
    mongo = await check_mongo(db)
    cache = await check_redis(redis)
    return HealthResponse(
        status="ok" if mongo.healthy and cache.healthy else "degraded",
        mongo=mongo.healthy,
        redis=cache.healthy,
    )


@router.get(
    "/ready",
    response_model=ReadinessResponse,
    summary="Detailed readiness check",
    description=(
        "Returns connectivity and latency for MongoDB, Redis and the email "
        "functions, plus the background jobs still running."
    ),
)
async def readiness_check(
    request: Request,
    db: AsyncIOMotorDatabase = Depends(get_database),  # type: ignore[type-arg]
    redis: Redis = Depends(get_redis),  # type: ignore[type-arg]
    settings: Settings = Depends(get_app_settings),
) -> ReadinessResponse:
    mongo = await check_mongo(db)
    cache = await check_redis(redis)
    email = await check_email(getattr(request.app.state, "email_client", None))

    required = [mongo, cache]
    # Email is only mandatory in production.
    if settings.is_production:
        required.append(email)

    return ReadinessResponse(
        status="ready" if all(dep.healthy for dep in required) else "degraded",
        timestamp=datetime.now(timezone.utc).isoformat(),
        environment=settings.ENVIRONMENT,
        mongo=mongo,
        redis=cache,
        email=email,
        running_jobs=running_jobs(request),
    )
