"""
Error tracking models.

Client and server errors reported by the TruckOps apps are stored as
individual ErrorEvent documents; grouping and statistics are computed on
read over the most recent events.

MongoDB collection: ``errors``
"""

from __future__ import annotations

from enum import Enum
from typing import Optional

from pydantic import Field

from truckops.models.base import DEFAULT_TENANT, MongoBaseModel, generate_uuid, now_ms


class ErrorSeverity(str, Enum):
    """Severity of a reported error."""

    CRITICAL = "critical"
    ERROR = "error"
    WARNING = "warning"
    INFO = "info"


class ErrorCategory(str, Enum):
    """Area of the product the error came from."""

    JAVASCRIPT = "javascript"
    NETWORK = "network"
    API = "api"
    DATABASE = "database"
    AUTH = "auth"
    PAYMENT = "payment"
    UI = "ui"
    PERFORMANCE = "performance"


class ErrorEvent(MongoBaseModel):
    """A single reported error occurrence."""

    error_id: str = Field(default_factory=generate_uuid, description="Unique error identifier.")
    tenant_id: str = Field(default=DEFAULT_TENANT, description="Owning tenant.")
    message: str = Field(default="", description="Error message.")
    stack: Optional[str] = Field(default=None, description="Raw stack trace.")
    severity: ErrorSeverity = Field(default=ErrorSeverity.ERROR)
    category: ErrorCategory = Field(default=ErrorCategory.JAVASCRIPT)
    browser: Optional[str] = Field(default=None, description="chrome, firefox, safari, edge, other.")
    platform: Optional[str] = Field(default=None, description="desktop, mobile, tablet.")
    url: Optional[str] = Field(default=None, description="Page or endpoint where it happened.")
    user_id: Optional[str] = Field(default=None, description="Affected user, if known.")
    timestamp: int = Field(default_factory=now_ms, description="Epoch ms of the occurrence.")
    resolved: bool = Field(default=False)
    resolved_at: Optional[int] = Field(default=None)
    resolved_by: Optional[str] = Field(default=None)
    sentry_id: Optional[str] = Field(default=None, description="Linked Sentry issue id.")
