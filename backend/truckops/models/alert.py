"""
Alert models for the TruckOps monitoring and notification system.

An AlertRule describes a threshold condition over a named metric. When a
sample satisfies the condition an Alert is raised; the alert then moves
through its lifecycle (active, acknowledged, resolved, suppressed) driven by
operator actions.

MongoDB collections: ``alert_rules``, ``alerts``, ``incidents``.
"""

from __future__ import annotations

from enum import Enum
from typing import Any, Optional, Union

from pydantic import BaseModel, Field

from truckops.models.base import (
    DEFAULT_TENANT,
    MongoBaseModel,
    generate_uuid,
    now_ms,
)

# ---------------------------------------------------------------------------
# Enums
# ---------------------------------------------------------------------------


class AlertOperator(str, Enum):
    """Comparison operator for threshold evaluation."""

    GT = "gt"
    GTE = "gte"
    LT = "lt"
    LTE = "lte"
    EQ = "eq"
    NEQ = "neq"
    CONTAINS = "contains"
    NOT_CONTAINS = "notContains"


class AlertSeverity(str, Enum):
    """Severity class of a rule and of the alerts it raises."""

    CRITICAL = "critical"
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"


class AlertCategory(str, Enum):
    """Functional area an alert belongs to."""

    SYSTEM = "system"
    PERFORMANCE = "performance"
    SECURITY = "security"
    NETWORK = "network"
    DATABASE = "database"
    APPLICATION = "application"
    BUSINESS = "business"
    USER = "user"


class AlertState(str, Enum):
    """Lifecycle state of a raised alert."""

    ACTIVE = "active"
    ACKNOWLEDGED = "acknowledged"
    RESOLVED = "resolved"
    SUPPRESSED = "suppressed"


class MetricType(str, Enum):
    """Metrics an alert rule can monitor."""

    CPU = "cpu"
    MEMORY = "memory"
    DISK = "disk"
    NETWORK = "network"
    RESPONSE_TIME = "responseTime"
    ERROR_RATE = "errorRate"
    REQUEST_RATE = "requestRate"
    CUSTOM = "custom"


class TimeWindow(str, Enum):
    """Window over which a rule's condition must hold before it fires."""

    ONE_MINUTE = "1m"
    FIVE_MINUTES = "5m"
    FIFTEEN_MINUTES = "15m"
    THIRTY_MINUTES = "30m"
    ONE_HOUR = "1h"
    ONE_DAY = "24h"


class NotificationChannel(str, Enum):
    """Fan-out channels an alert rule can notify."""

    EMAIL = "email"
    SMS = "sms"
    PUSH = "push"
    SLACK = "slack"
    TEAMS = "teams"
    WEBHOOK = "webhook"
    PHONE = "phone"


class BulkAction(str, Enum):
    """Lifecycle action applied to a selection of alerts."""

    ACKNOWLEDGE = "acknowledge"
    RESOLVE = "resolve"
    SUPPRESS = "suppress"


SEVERITY_PRIORITY: dict[str, int] = {
    AlertSeverity.CRITICAL.value: 1,
    AlertSeverity.HIGH.value: 2,
    AlertSeverity.MEDIUM.value: 3,
    AlertSeverity.LOW.value: 4,
}

TIME_WINDOW_MS: dict[str, int] = {
    TimeWindow.ONE_MINUTE.value: 60_000,
    TimeWindow.FIVE_MINUTES.value: 300_000,
    TimeWindow.FIFTEEN_MINUTES.value: 900_000,
    TimeWindow.THIRTY_MINUTES.value: 1_800_000,
    TimeWindow.ONE_HOUR.value: 3_600_000,
    TimeWindow.ONE_DAY.value: 86_400_000,
}

METRIC_UNITS: dict[str, str] = {
    MetricType.CPU.value: "%",
    MetricType.MEMORY.value: "%",
    MetricType.DISK.value: "%",
    MetricType.NETWORK.value: "ms",
    MetricType.RESPONSE_TIME.value: "ms",
    MetricType.ERROR_RATE.value: "%",
    MetricType.REQUEST_RATE.value: "/s",
    MetricType.CUSTOM.value: "",
}

Threshold = Union[float, str]


# ---------------------------------------------------------------------------
# Embedded sub-documents
# ---------------------------------------------------------------------------


class AlertHistoryEntry(BaseModel):
    """One recorded lifecycle transition of an alert."""

    action: str = Field(..., description="Transition name (acknowledged, resolved, ...).")
    timestamp: int = Field(default_factory=now_ms, description="Epoch ms of the transition.")
    user: str = Field(default="", description="Actor that performed the transition.")
    resolution: Optional[str] = Field(default=None, description="Resolution note, if any.")


# ---------------------------------------------------------------------------
# Primary model: AlertRule
# ---------------------------------------------------------------------------


class AlertRule(MongoBaseModel):
    """
    A configured threshold condition over a named metric. Rules are created,
    edited and deleted by an operator; enabled rules are evaluated against
    every incoming metric sample.

    MongoDB collection: ``alert_rules``
    """

    rule_id: str = Field(
        default_factory=generate_uuid,
        description="Unique rule identifier (UUID v4).",
    )
    tenant_id: str = Field(default=DEFAULT_TENANT, description="Owning tenant.")
    name: str = Field(..., min_length=1, max_length=200, description="Rule display name.")
    description: str = Field(default="", max_length=1000, description="What the rule watches.")
    metric: MetricType = Field(..., description="Monitored metric.")
    operator: AlertOperator = Field(..., description="Comparison operator.")
    threshold: Threshold = Field(..., description="Value the sample is compared against.")
    time_window: Optional[TimeWindow] = Field(
        default=None,
        description="Window over which the condition must hold; None evaluates each sample.",
    )
    severity: AlertSeverity = Field(default=AlertSeverity.MEDIUM, description="Severity class.")
    category: AlertCategory = Field(default=AlertCategory.SYSTEM, description="Alert category.")
    enabled: bool = Field(default=True, description="Whether the rule is evaluated.")
    channels: list[NotificationChannel] = Field(
        default_factory=list,
        description="Notification channels used when the rule fires.",
    )
    recipients: list[str] = Field(
        default_factory=list,
        description="Email recipients / webhook URLs for notifications.",
    )
    tags: list[str] = Field(default_factory=list, description="Free-form labels.")
    last_triggered: Optional[int] = Field(default=None, description="Epoch ms of last firing.")
    trigger_count: int = Field(default=0, ge=0, description="Total times fired.")
    created_by: str = Field(default="", description="Operator that created the rule.")
    updated_by: Optional[str] = Field(default=None, description="Operator of the last edit.")

    @property
    def window_ms(self) -> int:
        """Time window length in milliseconds (0 when the rule has none)."""
        if self.time_window is None:
            return 0
        window = getattr(self.time_window, "value", self.time_window)
        return TIME_WINDOW_MS[window]


# ---------------------------------------------------------------------------
# Primary model: Alert
# ---------------------------------------------------------------------------


class Alert(MongoBaseModel):
    """
    An alert instance raised when a rule's condition evaluates true.
    Severity and category are copied from the rule at creation time and are
    not updated if the rule changes later. Manually triggered test alerts
    carry no ``rule_id``.

    MongoDB collection: ``alerts``
    """

    alert_id: str = Field(
        default_factory=generate_uuid,
        description="Unique alert identifier (UUID v4).",
    )
    tenant_id: str = Field(default=DEFAULT_TENANT, description="Owning tenant.")
    rule_id: Optional[str] = Field(
        default=None,
        description="Rule that raised the alert; None for manual test alerts.",
    )
    severity: AlertSeverity = Field(..., description="Severity copied from the rule.")
    category: AlertCategory = Field(..., description="Category copied from the rule.")
    message: str = Field(..., description="Human-readable alert message.")
    source: str = Field(default="alert-engine", description="Component that raised the alert.")
    metric: Optional[str] = Field(default=None, description="Metric that was evaluated.")
    value: Optional[Threshold] = Field(default=None, description="Sample value at trigger time.")
    threshold: Optional[Threshold] = Field(default=None, description="Threshold that was crossed.")
    timestamp: int = Field(default_factory=now_ms, description="Epoch ms of creation.")
    state: AlertState = Field(default=AlertState.ACTIVE, description="Lifecycle state.")
    tags: list[str] = Field(default_factory=list, description="Free-form labels.")

    acknowledged_at: Optional[int] = Field(default=None)
    acknowledged_by: Optional[str] = Field(default=None)
    resolved_at: Optional[int] = Field(default=None)
    resolved_by: Optional[str] = Field(default=None)
    resolution: Optional[str] = Field(default=None)
    suppressed_at: Optional[int] = Field(default=None)
    suppressed_by: Optional[str] = Field(default=None)
    suppress_until: Optional[int] = Field(
        default=None,
        description="Epoch ms after which the suppression sweep re-activates the alert.",
    )

    history: list[AlertHistoryEntry] = Field(
        default_factory=list,
        description="Recorded lifecycle transitions, oldest first.",
    )

    @property
    def is_test(self) -> bool:
        return self.rule_id is None

    @property
    def resolution_time_ms(self) -> Optional[int]:
        if self.resolved_at is None:
            return None
        return self.resolved_at - self.timestamp


# ---------------------------------------------------------------------------
# Incidents
# ---------------------------------------------------------------------------


class Incident(MongoBaseModel):
    """
    A grouped operational incident. Incidents are written by on-call tooling;
    TruckOps only lists them.

    MongoDB collection: ``incidents``
    """

    incident_id: str = Field(default_factory=generate_uuid)
    tenant_id: str = Field(default=DEFAULT_TENANT)
    title: str = Field(..., description="Incident headline.")
    severity: AlertSeverity = Field(default=AlertSeverity.HIGH)
    status: str = Field(default="open", description="open, investigating, resolved.")
    alert_ids: list[str] = Field(default_factory=list, description="Alerts grouped in the incident.")
    timestamp: int = Field(default_factory=now_ms)
    details: dict[str, Any] = Field(default_factory=dict)
