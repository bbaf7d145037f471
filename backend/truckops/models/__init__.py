"""
TruckOps data models package.

All Pydantic v2 models for MongoDB document storage. Import from this
module for convenient access to every model and enum in the system.
"""

# Alert models
from truckops.models.alert import (
    SEVERITY_PRIORITY,
    Alert,
    AlertCategory,
    AlertHistoryEntry,
    AlertOperator,
    AlertRule,
    AlertSeverity,
    AlertState,
    BulkAction,
    Incident,
    MetricType,
    NotificationChannel,
    TimeWindow,
)

# Base model and helpers
from truckops.models.base import (
    DEFAULT_TENANT,
    MongoBaseModel,
    ensure_utc,
    generate_uuid,
    now_ms,
    utc_now,
)

# Error tracking models
from truckops.models.error_event import ErrorCategory, ErrorEvent, ErrorSeverity

# Inventory models
from truckops.models.inventory import InventoryItem, MovementType, StockMovement

# Monitoring models
from truckops.models.monitoring import (
    HealthCheckResult,
    MetricPoint,
    MetricSample,
    MetricThreshold,
    MonitoringAlert,
)

# Report models
from truckops.models.report import (
    DateRange,
    ExportFormat,
    ReportDocument,
    ReportPayload,
    ReportRecord,
    ReportSchedule,
    ReportTable,
    ReportType,
    ScheduleFrequency,
)

# Training models
from truckops.models.training import (
    TRAINING_PRESETS,
    EpochMetrics,
    PresetConfig,
    TrainingPreset,
    TrainingSession,
    TrainingStatus,
)

__all__ = [
    # base
    "DEFAULT_TENANT",
    "MongoBaseModel",
    "ensure_utc",
    "generate_uuid",
    "now_ms",
    "utc_now",
    # alert
    "SEVERITY_PRIORITY",
    "Alert",
    "AlertCategory",
    "AlertHistoryEntry",
    "AlertOperator",
    "AlertRule",
    "AlertSeverity",
    "AlertState",
    "BulkAction",
    "Incident",
    "MetricType",
    "NotificationChannel",
    "TimeWindow",
    # errors
    "ErrorCategory",
    "ErrorEvent",
    "ErrorSeverity",
    # inventory
    "InventoryItem",
    "MovementType",
    "StockMovement",
    # monitoring
    "HealthCheckResult",
    "MetricPoint",
    "MetricSample",
    "MetricThreshold",
    "MonitoringAlert",
    # report
    "DateRange",
    "ExportFormat",
    "ReportDocument",
    "ReportPayload",
    "ReportRecord",
    "ReportSchedule",
    "ReportTable",
    "ReportType",
    "ScheduleFrequency",
    # training
    "TRAINING_PRESETS",
    "EpochMetrics",
    "PresetConfig",
    "TrainingPreset",
    "TrainingSession",
    "TrainingStatus",
]
