"""
Main API v1 router.

Aggregates all endpoint sub-routers under the /api/v1 prefix.
Import this router from the FastAPI application entry point and include it:

    from truckops.api.v1.router import api_v1_router
    app.include_router(api_v1_router, prefix="/api/v1")
"""

from __future__ import annotations

from fastapi import APIRouter

from truckops.api.v1.endpoints.alert_rules import router as alert_rules_router
from truckops.api.v1.endpoints.alerts import router as alerts_router
from truckops.api.v1.endpoints.errors import router as errors_router
from truckops.api.v1.endpoints.health import router as health_router
from truckops.api.v1.endpoints.incidents import router as incidents_router
from truckops.api.v1.endpoints.inventory import router as inventory_router
from truckops.api.v1.endpoints.monitoring import router as monitoring_router
from truckops.api.v1.endpoints.reports import router as reports_router
from truckops.api.v1.endpoints.training import router as training_router

api_v1_router = APIRouter()

# Health checks (no prefix -- mounted at /api/v1/health and /api/v1/ready)
api_v1_router.include_router(health_router)

# Alerts -- /api/v1/alerts/*
api_v1_router.include_router(alerts_router)

# Alert rules -- /api/v1/alert-rules/*
api_v1_router.include_router(alert_rules_router)

# Incidents -- /api/v1/incidents
api_v1_router.include_router(incidents_router)

# Error tracking -- /api/v1/errors/*
api_v1_router.include_router(errors_router)

# System monitoring -- /api/v1/monitoring/*
api_v1_router.include_router(monitoring_router)

# Reports -- /api/v1/reports/*
api_v1_router.include_router(reports_router)

# Inventory -- /api/v1/inventory/*
api_v1_router.include_router(inventory_router)

# AI training -- /api/v1/training/*
api_v1_router.include_router(training_router)
