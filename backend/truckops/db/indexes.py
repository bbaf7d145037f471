from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from pymongo import ASCENDING, DESCENDING, TEXT, IndexModel

if TYPE_CHECKING:
    from motor.motor_asyncio import AsyncIOMotorDatabase

logger = logging.getLogger(__name__)


async def create_indexes(db: AsyncIOMotorDatabase) -> None:  # type: ignore[type-arg]
    """Create all MongoDB indexes required by the application.

    This function is idempotent -- calling it multiple times is safe because
    ``create_indexes`` is a no-op when the index already exists.
    """
    logger.info("Creating MongoDB indexes")

    # ---- alerts ----
    await db.alerts.create_indexes(
        [
            IndexModel([("alert_id", ASCENDING)], unique=True, name="uq_alert_id"),
            IndexModel(
                [("tenant_id", ASCENDING), ("timestamp", DESCENDING)],
                name="idx_alert_tenant_ts",
            ),
            IndexModel(
                [("tenant_id", ASCENDING), ("state", ASCENDING)],
                name="idx_alert_tenant_state",
            ),
            IndexModel(
                [("state", ASCENDING), ("suppress_until", ASCENDING)],
                name="idx_alert_suppress_until",
            ),
            IndexModel([("message", TEXT), ("source", TEXT)], name="text_alert_message"),
        ]
    )

    # ---- alert_rules ----
    await db.alert_rules.create_indexes(
        [
            IndexModel([("rule_id", ASCENDING)], unique=True, name="uq_rule_id"),
            IndexModel(
                [("tenant_id", ASCENDING), ("metric", ASCENDING), ("enabled", ASCENDING)],
                name="idx_rule_tenant_metric_enabled",
            ),
        ]
    )

    # ---- incidents ----
    await db.incidents.create_indexes(
        [
            IndexModel([("incident_id", ASCENDING)], unique=True, name="uq_incident_id"),
            IndexModel(
                [("tenant_id", ASCENDING), ("created_at", DESCENDING)],
                name="idx_incident_tenant_created",
            ),
        ]
    )

    # ---- errors ----
    await db.errors.create_indexes(
        [
            IndexModel([("error_id", ASCENDING)], unique=True, name="uq_error_id"),
            IndexModel(
                [("tenant_id", ASCENDING), ("timestamp", DESCENDING)],
                name="idx_error_tenant_ts",
            ),
            IndexModel([("resolved", ASCENDING)], name="idx_error_resolved"),
        ]
    )

    # ---- system_metrics ----
    await db.system_metrics.create_indexes(
        [
            IndexModel([("timestamp", DESCENDING)], name="idx_metrics_ts"),
        ]
    )

    # ---- reports / scheduled_reports ----
    await db.reports.create_indexes(
        [
            IndexModel([("report_id", ASCENDING)], unique=True, name="uq_report_id"),
            IndexModel(
                [("tenant_id", ASCENDING), ("created_at", DESCENDING)],
                name="idx_report_tenant_created",
            ),
        ]
    )
    await db.scheduled_reports.create_indexes(
        [
            IndexModel([("schedule_id", ASCENDING)], unique=True, name="uq_schedule_id"),
            IndexModel(
                [("active", ASCENDING), ("next_run", ASCENDING)],
                name="idx_schedule_due",
            ),
        ]
    )

    # ---- inventory / stock_movements ----
    await db.inventory.create_indexes(
        [
            IndexModel([("item_id", ASCENDING)], unique=True, name="uq_item_id"),
            IndexModel([("tenant_id", ASCENDING)], name="idx_inventory_tenant"),
        ]
    )
    await db.stock_movements.create_indexes(
        [
            IndexModel(
                [("tenant_id", ASCENDING), ("inventory_item_id", ASCENDING), ("created_at", DESCENDING)],
                name="idx_movement_item_created",
            ),
        ]
    )

    # ---- ai_training_sessions ----
    await db.ai_training_sessions.create_indexes(
        [
            IndexModel([("session_id", ASCENDING)], unique=True, name="uq_session_id"),
            IndexModel(
                [("tenant_id", ASCENDING), ("created_at", DESCENDING)],
                name="idx_session_tenant_created",
            ),
        ]
    )

    logger.info("MongoDB indexes created successfully")
