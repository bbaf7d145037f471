"""
Alert service facade.

Coordinates the alert engine, the lifecycle state machine and the pure
statistics reducers, and owns rule CRUD and incident listing. Provides a
single endpoint-friendly interface for the API layer.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any, Optional

from pydantic import ValidationError

from truckops.config import Settings, get_settings
from truckops.core.exceptions import NotFoundException, ValidationException
from truckops.models.alert import Alert, AlertRule, Incident
from truckops.models.base import now_ms, utc_now
from truckops.services.alerts.engine import AlertEngine
from truckops.services.alerts.lifecycle import AlertLifecycle, BulkActionResult
from truckops.services.alerts.statistics import (
    AlertStats,
    calculate_alert_stats,
    filter_alerts,
    sort_alerts,
)

if TYPE_CHECKING:
    from motor.motor_asyncio import AsyncIOMotorDatabase

    from truckops.services.alerts.evaluator import WindowedEvaluator
    from truckops.services.alerts.notifier import AlertNotifier

logger = logging.getLogger(__name__)

# Fields an operator may change on an existing rule.
_EDITABLE_RULE_FIELDS = frozenset(
    {
        "name",
        "description",
        "metric",
        "operator",
        "threshold",
        "time_window",
        "severity",
        "category",
        "enabled",
        "channels",
        "recipients",
        "tags",
    }
)


def _validation_errors(exc: ValidationError) -> list[dict[str, object]]:
    return [
        {"loc": ".".join(str(p) for p in err["loc"]), "msg": err["msg"]}
        for err in exc.errors()
    ]


class AlertService:
    """High-level facade for alert management.

    Args:
        db: Motor async database handle.
        settings: Application settings (limits and default actor).
        notifier: Fan-out used when alerts are raised.
        windows: Shared sample buffer for time-windowed rules.
    """

    def __init__(
        self,
        db: AsyncIOMotorDatabase,  # type: ignore[type-arg]
        settings: Optional[Settings] = None,
        notifier: Optional[AlertNotifier] = None,
        windows: Optional[WindowedEvaluator] = None,
    ) -> None:
        self._settings = settings or get_settings()
        self._alerts = db["alerts"]
        self._rules = db["alert_rules"]
        self._incidents = db["incidents"]
        self.engine = AlertEngine(db, notifier=notifier, windows=windows)
        self.lifecycle = AlertLifecycle(db, default_suppress_ms=self._settings.DEFAULT_SUPPRESS_MS)

    def _actor(self, actor: Optional[str]) -> str:
        return actor or self._settings.ALERT_ACTOR

    # ------------------------------------------------------------------
    # Alerts
    # ------------------------------------------------------------------

    async def recent_alerts(self, tenant_id: str) -> list[Alert]:
        """Load the most recent ``ALERT_RETRIEVAL_LIMIT`` alerts, newest first."""
        limit = self._settings.ALERT_RETRIEVAL_LIMIT
        cursor = (
            self._alerts.find({"tenant_id": tenant_id}, {"_id": 0})
            .sort("timestamp", -1)
            .limit(limit)
        )
        return Alert.parse_many(await cursor.to_list(length=limit))

    async def list_alerts(
        self,
        tenant_id: str,
        state: Optional[str] = None,
        severity: Optional[str] = None,
        category: Optional[str] = None,
        time_range: Optional[str] = None,
        search: Optional[str] = None,
        sort_by: str = "timestamp",
        descending: bool = True,
        now: Optional[int] = None,
    ) -> dict[str, Any]:
        """Return the filtered, sorted alerts together with their statistics.

        Statistics are computed over the filtered list so the summary always
        matches what is shown.
        """
        ts = now if now is not None else now_ms()
        alerts = await self.recent_alerts(tenant_id)
        filtered = filter_alerts(
            alerts,
            state=state,
            severity=severity,
            category=category,
            time_range=time_range,
            search=search,
            now=ts,
        )
        ordered = sort_alerts(filtered, sort_by=sort_by, descending=descending)
        return {
            "alerts": ordered,
            "total": len(ordered),
            "stats": calculate_alert_stats(ordered, now=ts),
        }

    async def stats(self, tenant_id: str, now: Optional[int] = None) -> AlertStats:
        alerts = await self.recent_alerts(tenant_id)
        return calculate_alert_stats(alerts, now=now)

    async def get_alert(self, tenant_id: str, alert_id: str) -> Alert:
        doc = await self._alerts.find_one(
            {"alert_id": alert_id, "tenant_id": tenant_id}, {"_id": 0}
        )
        if doc is None:
            raise NotFoundException(resource="Alert", identifier=alert_id)
        return Alert.from_document(doc)

    async def acknowledge(self, tenant_id: str, alert_id: str, actor: Optional[str] = None) -> Alert:
        return await self.lifecycle.acknowledge(tenant_id, alert_id, self._actor(actor))

    async def resolve(
        self,
        tenant_id: str,
        alert_id: str,
        resolution: str = "",
        actor: Optional[str] = None,
    ) -> Alert:
        return await self.lifecycle.resolve(
            tenant_id, alert_id, self._actor(actor), resolution=resolution
        )

    async def suppress(
        self,
        tenant_id: str,
        alert_id: str,
        duration_ms: Optional[int] = None,
        actor: Optional[str] = None,
    ) -> Alert:
        duration = duration_ms if duration_ms is not None else self._settings.DEFAULT_SUPPRESS_MS
        return await self.lifecycle.suppress(tenant_id, alert_id, duration, self._actor(actor))

    async def bulk_apply(
        self,
        tenant_id: str,
        alert_ids: list[str],
        action: str,
        actor: Optional[str] = None,
        duration_ms: Optional[int] = None,
    ) -> BulkActionResult:
        return await self.lifecycle.bulk_apply(
            tenant_id, alert_ids, action, self._actor(actor), duration_ms=duration_ms
        )

    async def sweep_suppressions(self, tenant_id: Optional[str] = None) -> list[str]:
        return await self.lifecycle.expire_suppressions(tenant_id=tenant_id)

    async def evaluate_sample(
        self,
        tenant_id: str,
        metric: str,
        value: Any,
        timestamp: Optional[int] = None,
    ) -> list[Alert]:
        return await self.engine.evaluate_sample(tenant_id, metric, value, timestamp)

    async def trigger_test_alert(self, tenant_id: str, actor: Optional[str] = None) -> Alert:
        return await self.engine.trigger_test_alert(tenant_id, self._actor(actor))

    # ------------------------------------------------------------------
    # Rules
    # ------------------------------------------------------------------

    async def create_rule(
        self,
        tenant_id: str,
        data: dict[str, Any],
        actor: Optional[str] = None,
    ) -> AlertRule:
        """Create a rule. New rules start enabled with zeroed trigger counters.

        Raises:
            ValidationException: If *data* does not describe a valid rule.
        """
        fields = {k: v for k, v in data.items() if k in _EDITABLE_RULE_FIELDS}
        fields.update(
            tenant_id=tenant_id,
            enabled=True,
            trigger_count=0,
            last_triggered=None,
            created_by=self._actor(actor),
        )
        try:
            rule = AlertRule.model_validate(fields)
        except ValidationError as exc:
            raise ValidationException(
                "Invalid alert rule", errors=_validation_errors(exc)
            ) from exc

        await self._rules.insert_one(rule.to_document())
        logger.info(
            "Created alert rule '%s'",
            rule.name,
            extra={"rule_id": rule.rule_id, "tenant_id": tenant_id},
        )
        return rule

    async def get_rule(self, tenant_id: str, rule_id: str) -> AlertRule:
        doc = await self._rules.find_one({"rule_id": rule_id, "tenant_id": tenant_id}, {"_id": 0})
        if doc is None:
            raise NotFoundException(resource="Alert rule", identifier=rule_id)
        return AlertRule.from_document(doc)

    async def list_rules(self, tenant_id: str) -> list[AlertRule]:
        cursor = self._rules.find({"tenant_id": tenant_id}, {"_id": 0}).sort("name", 1)
        return AlertRule.parse_many(await cursor.to_list(length=None))

    async def update_rule(
        self,
        tenant_id: str,
        rule_id: str,
        updates: dict[str, Any],
        actor: Optional[str] = None,
    ) -> AlertRule:
        """Apply a partial update to a rule.

        Raises:
            NotFoundException: If the rule does not exist for the tenant.
            ValidationException: If the merged rule would be invalid.
        """
        current = await self.get_rule(tenant_id, rule_id)
        changes = {k: v for k, v in updates.items() if k in _EDITABLE_RULE_FIELDS}
        merged = {**current.model_dump(), **changes, "updated_by": self._actor(actor)}
        try:
            rule = AlertRule.model_validate(merged)
        except ValidationError as exc:
            raise ValidationException(
                "Invalid alert rule update", errors=_validation_errors(exc)
            ) from exc

        rule.updated_at = utc_now()
        await self._rules.update_one(
            {"rule_id": rule_id, "tenant_id": tenant_id},
            {"$set": {k: v for k, v in rule.to_document().items() if k != "created_at"}},
        )
        self.engine.windows.forget(tenant_id, rule_id)
        logger.info("Updated alert rule", extra={"rule_id": rule_id, "tenant_id": tenant_id})
        return rule

    async def delete_rule(self, tenant_id: str, rule_id: str) -> dict[str, Any]:
        result = await self._rules.delete_one({"rule_id": rule_id, "tenant_id": tenant_id})
        if result.deleted_count == 0:
            raise NotFoundException(resource="Alert rule", identifier=rule_id)
        self.engine.windows.forget(tenant_id, rule_id)
        logger.info("Deleted alert rule", extra={"rule_id": rule_id, "tenant_id": tenant_id})
        return {"rule_id": rule_id, "message": "Alert rule has been deleted."}

    # ------------------------------------------------------------------
    # Incidents
    # ------------------------------------------------------------------

    async def list_incidents(self, tenant_id: str) -> list[Incident]:
        limit = self._settings.INCIDENT_RETRIEVAL_LIMIT
        cursor = (
            self._incidents.find({"tenant_id": tenant_id}, {"_id": 0})
            .sort("timestamp", -1)
            .limit(limit)
        )
        return Incident.parse_many(await cursor.to_list(length=limit))

    # ------------------------------------------------------------------
    # Export
    # ------------------------------------------------------------------

    async def export_alerts(
        self,
        tenant_id: str,
        filters: Optional[dict[str, Any]] = None,
        now: Optional[int] = None,
    ) -> dict[str, Any]:
        """Build the downloadable JSON export of alerts, rules and stats."""
        applied = {k: v for k, v in (filters or {}).items() if v is not None}
        listing = await self.list_alerts(tenant_id, now=now, **applied)
        rules = await self.list_rules(tenant_id)
        return {
            "export_date": utc_now().isoformat(),
            "tenant_id": tenant_id,
            "filters": applied,
            "alerts": [a.model_dump(mode="json") for a in listing["alerts"]],
            "rules": [r.model_dump(mode="json") for r in rules],
            "stats": listing["stats"].model_dump(mode="json"),
        }
