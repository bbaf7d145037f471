"""
Shared pytest fixtures for the TruckOps backend test suite.

Provides an in-memory Motor-compatible database, a stubbed Redis client,
the FastAPI application wired to both, and sample alert, error and
report data.
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import AsyncGenerator
from unittest.mock import AsyncMock

import pytest
from httpx import ASGITransport, AsyncClient
from mongomock_motor import AsyncMongoMockClient

from truckops.config import Settings
from truckops.models.base import generate_uuid
from truckops.services.alerts.engine import AlertEngine
from truckops.services.alerts.evaluator import WindowedEvaluator
from truckops.services.alerts.notifier import AlertNotifier
from truckops.services.jobs.runner import JobRunner
from truckops.services.monitoring.monitor import MonitoringService

# Fixed reference time used by the time-dependent tests: 2026-03-10 12:00 UTC.
NOW = datetime(2026, 3, 10, 12, 0, tzinfo=timezone.utc)
NOW_MS = int(NOW.timestamp() * 1000)
HOUR_MS = 3_600_000
DAY_MS = 86_400_000


# ---------------------------------------------------------------------------
# Database and infrastructure fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def test_db():
    """Create a disposable in-memory database.

    Each test gets its own database name so no state leaks between tests.
    """
    client = AsyncMongoMockClient()
    return client[f"truckops_test_{generate_uuid()[:8]}"]


@pytest.fixture
def mock_redis() -> AsyncMock:
    """Return a Redis stand-in whose ping and publish succeed."""
    redis = AsyncMock()
    redis.ping = AsyncMock(return_value=True)
    redis.publish = AsyncMock(return_value=1)
    return redis


@pytest.fixture
def test_settings() -> Settings:
    """Settings with background jobs off and instant training epochs."""
    return Settings(
        BACKGROUND_JOBS_ENABLED=False,
        TRAINING_EPOCH_SECONDS=0,
        ALERT_ACTOR="ops-tester",
        EMAIL_FUNCTION_URL="",
    )


@pytest.fixture
async def job_runner() -> AsyncGenerator[JobRunner, None]:
    """Provide a JobRunner that is shut down after the test."""
    runner = JobRunner()
    yield runner
    await runner.shutdown(timeout=1.0)


# ---------------------------------------------------------------------------
# FastAPI test app and async client
# ---------------------------------------------------------------------------


@pytest.fixture
async def test_app(test_db, mock_redis, test_settings, job_runner):
    """Create the TruckOps application with overridden dependencies.

    The lifespan is not run by the ASGI transport, so the app-scoped
    objects it would create are placed on ``app.state`` here.
    """
    from truckops.api.v1.dependencies import get_app_settings
    from truckops.database import get_database
    from truckops.main import create_application
    from truckops.redis_client import get_redis

    app = create_application()

    async def _override_get_database():
        yield test_db

    async def _override_get_redis():
        yield mock_redis

    app.dependency_overrides[get_database] = _override_get_database
    app.dependency_overrides[get_redis] = _override_get_redis
    app.dependency_overrides[get_app_settings] = lambda: test_settings

    windows = WindowedEvaluator()
    notifier = AlertNotifier(redis=mock_redis)
    app.state.email_client = None
    app.state.alert_windows = windows
    app.state.alert_notifier = notifier
    app.state.jobs = job_runner
    app.state.monitoring = MonitoringService(
        engine=AlertEngine(test_db, notifier=notifier, windows=windows),
        db=test_db,
    )

    yield app


@pytest.fixture
async def async_client(test_app) -> AsyncGenerator[AsyncClient, None]:
    """Provide an httpx.AsyncClient wired to the test FastAPI app."""
    transport = ASGITransport(app=test_app)
    async with AsyncClient(transport=transport, base_url="http://testserver") as client:
        yield client


# ---------------------------------------------------------------------------
# Sample data fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def sample_rule() -> dict:
    """Return a sample alert rule payload."""
    return {
        "name": "High CPU",
        "description": "CPU usage on the order API hosts",
        "metric": "cpu",
        "operator": "gt",
        "threshold": 90,
        "severity": "high",
        "category": "performance",
        "channels": ["push"],
        "recipients": ["ops@foodtruck.example"],
        "tags": ["cpu"],
    }


@pytest.fixture
def sample_alert_docs() -> list[dict]:
    """Return raw alert documents spread across states and severities."""
    base = {
        "tenant_id": "default",
        "source": "alert-engine",
        "metric": "cpu",
        "history": [],
    }
    return [
        {
            **base,
            "alert_id": "alert-critical-active",
            "rule_id": "rule-1",
            "severity": "critical",
            "category": "system",
            "message": "Database connection pool exhausted",
            "timestamp": NOW_MS - HOUR_MS,
            "state": "active",
        },
        {
            **base,
            "alert_id": "alert-high-ack",
            "rule_id": "rule-2",
            "severity": "high",
            "category": "performance",
            "message": "Checkout latency above 3s",
            "timestamp": NOW_MS - 2 * HOUR_MS,
            "state": "acknowledged",
            "acknowledged_at": NOW_MS - HOUR_MS,
            "acknowledged_by": "ops",
        },
        {
            **base,
            "alert_id": "alert-low-resolved",
            "rule_id": "rule-3",
            "severity": "low",
            "category": "business",
            "message": "Fewer orders than usual",
            "timestamp": NOW_MS - DAY_MS - HOUR_MS,
            "state": "resolved",
            "resolved_at": NOW_MS - DAY_MS,
            "resolved_by": "ops",
        },
        {
            **base,
            "alert_id": "alert-medium-suppressed",
            "rule_id": "rule-4",
            "severity": "medium",
            "category": "network",
            "message": "Packet loss on truck uplink",
            "timestamp": NOW_MS - 3 * HOUR_MS,
            "state": "suppressed",
            "suppressed_at": NOW_MS - 2 * HOUR_MS,
            "suppress_until": NOW_MS - HOUR_MS,
        },
    ]


@pytest.fixture
def sample_error_docs() -> list[dict]:
    """Return raw error event documents."""
    return [
        {
            "error_id": "err-1",
            "tenant_id": "default",
            "message": "TypeError: cart is undefined",
            "stack": "TypeError: cart is undefined\n    at addItem (app.js:10:5)",
            "severity": "error",
            "category": "javascript",
            "browser": "chrome",
            "platform": "mobile",
            "user_id": "user-1",
            "timestamp": NOW_MS - HOUR_MS,
        },
        {
            "error_id": "err-2",
            "tenant_id": "default",
            "message": "TypeError: cart is undefined",
            "severity": "error",
            "category": "javascript",
            "browser": "safari",
            "platform": "mobile",
            "user_id": "user-2",
            "timestamp": NOW_MS - 2 * HOUR_MS,
        },
        {
            "error_id": "err-3",
            "tenant_id": "default",
            "message": "Payment gateway timeout",
            "severity": "critical",
            "category": "payment",
            "browser": "firefox",
            "platform": "desktop",
            "user_id": "user-1",
            "timestamp": NOW_MS - DAY_MS - HOUR_MS,
        },
    ]


@pytest.fixture
def sample_orders() -> list[dict]:
    """Return raw order documents inside the first week of March 2026."""
    return [
        {
            "order_id": "order-0001",
            "order_number": "1001",
            "tenant_id": "default",
            "customer_id": "cust-1",
            "customer_name": "Anna Muster",
            "status": "completed",
            "payment_method": "card",
            "type": "pickup",
            "subtotal": 40.0,
            "tax": 3.0,
            "tip": 2.0,
            "delivery_fee": 0.0,
            "discount": 5.0,
            "total": 40.0,
            "items": [
                {"product_id": "p-burger", "name": "Burger", "quantity": 2, "price": 15.0},
                {"product_id": "p-fries", "name": "Fries", "quantity": 2, "price": 5.0},
            ],
            "created_at": datetime(2026, 3, 2, 12, 0, tzinfo=timezone.utc),
            "completed_at": datetime(2026, 3, 2, 12, 10, tzinfo=timezone.utc),
        },
        {
            "order_id": "order-0002",
            "order_number": "1002",
            "tenant_id": "default",
            "customer_id": "cust-2",
            "customer_name": "Ben Beispiel",
            "status": "delivered",
            "payment_method": "twint",
            "type": "delivery",
            "subtotal": 20.0,
            "tax": 1.5,
            "tip": 0.0,
            "delivery_fee": 5.0,
            "discount": 0.0,
            "total": 26.5,
            "items": [
                {"product_id": "p-burger", "name": "Burger", "quantity": 1, "price": 15.0},
                {"product_id": "p-soda", "name": "Soda", "quantity": 1, "price": 5.0},
            ],
            "created_at": datetime(2026, 3, 3, 18, 30, tzinfo=timezone.utc),
        },
        {
            "order_id": "order-0003",
            "order_number": "1003",
            "tenant_id": "default",
            "customer_id": "cust-1",
            "customer_name": "Anna Muster",
            "status": "cancelled",
            "payment_method": "cash",
            "type": "pickup",
            "subtotal": 10.0,
            "total": 10.0,
            "items": [{"product_id": "p-fries", "name": "Fries", "quantity": 2, "price": 5.0}],
            "created_at": datetime(2026, 3, 4, 9, 0, tzinfo=timezone.utc),
        },
    ]
