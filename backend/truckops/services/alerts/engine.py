"""
Alert engine for threshold-based monitoring.

Evaluates enabled alert rules against incoming metric samples, raises a
new Alert for every violating evaluation, stamps the rule's trigger
counters, and hands the alert to the notifier.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any, Optional

from truckops.models.alert import (
    METRIC_UNITS,
    Alert,
    AlertCategory,
    AlertRule,
    AlertSeverity,
    AlertState,
)
from truckops.models.base import now_ms, utc_now
from truckops.services.alerts.evaluator import OPERATOR_SYMBOLS, WindowedEvaluator, evaluate

if TYPE_CHECKING:
    from motor.motor_asyncio import AsyncIOMotorDatabase

    from truckops.services.alerts.notifier import AlertNotifier

logger = logging.getLogger(__name__)

TEST_ALERT_TAGS = ["test", "cpu", "performance"]


def format_alert_message(rule: AlertRule, value: Any) -> str:
    """Build the human-readable message of an alert raised by *rule*."""
    metric = str(rule.metric)
    unit = METRIC_UNITS.get(metric, "")
    symbol = OPERATOR_SYMBOLS.get(str(rule.operator), str(rule.operator))
    return f"{rule.name}: {metric} is {value}{unit} ({symbol} {rule.threshold}{unit})"


class AlertEngine:
    """Evaluate rules and raise alerts.

    Args:
        db: Motor async database handle.
        notifier: Optional fan-out for triggered alerts.
        windows: Shared buffer for time-windowed rules.
    """

    def __init__(
        self,
        db: AsyncIOMotorDatabase,  # type: ignore[type-arg]
        notifier: Optional[AlertNotifier] = None,
        windows: Optional[WindowedEvaluator] = None,
    ) -> None:
        self._alerts = db["alerts"]
        self._rules = db["alert_rules"]
        self._notifier = notifier
        self._windows = windows or WindowedEvaluator()

    @property
    def windows(self) -> WindowedEvaluator:
        return self._windows

    # ------------------------------------------------------------------
    # Evaluation
    # ------------------------------------------------------------------

    async def evaluate_sample(
        self,
        tenant_id: str,
        metric: str,
        value: Any,
        timestamp: Optional[int] = None,
    ) -> list[Alert]:
        """Evaluate every enabled rule of *tenant_id* that watches *metric*.

        Returns:
            The alerts raised by this sample (possibly empty).
        """
        ts = timestamp if timestamp is not None else now_ms()
        cursor = self._rules.find(
            {"tenant_id": tenant_id, "metric": metric, "enabled": True},
            {"_id": 0},
        )
        rules = AlertRule.parse_many(await cursor.to_list(length=None))

        raised: list[Alert] = []
        for rule in rules:
            alert = await self.evaluate_rule(rule, value, ts)
            if alert is not None:
                raised.append(alert)

        if raised:
            logger.info(
                "%d alerts raised for %s=%s",
                len(raised),
                metric,
                value,
                extra={"tenant_id": tenant_id},
            )
        return raised

    async def evaluate_rule(
        self,
        rule: AlertRule,
        value: Any,
        timestamp: Optional[int] = None,
    ) -> Optional[Alert]:
        """Evaluate one rule against one sample; raise an alert if it fires."""
        if not rule.enabled:
            return None

        ts = timestamp if timestamp is not None else now_ms()
        violating = evaluate(value, rule.operator, rule.threshold)
        fires = self._windows.observe(rule, violating, ts) if rule.time_window else violating
        if not fires:
            return None

        alert = Alert(
            tenant_id=rule.tenant_id,
            rule_id=rule.rule_id,
            severity=rule.severity,
            category=rule.category,
            message=format_alert_message(rule, value),
            metric=str(rule.metric),
            value=value,
            threshold=rule.threshold,
            timestamp=ts,
            tags=list(rule.tags),
        )
        await self._alerts.insert_one(alert.to_document())
        await self._rules.update_one(
            {"rule_id": rule.rule_id, "tenant_id": rule.tenant_id},
            {
                "$set": {"last_triggered": ts, "updated_at": utc_now()},
                "$inc": {"trigger_count": 1},
            },
        )
        logger.info(
            "Alert triggered: %s",
            rule.name,
            extra={
                "alert_id": alert.alert_id,
                "rule_id": rule.rule_id,
                "tenant_id": rule.tenant_id,
            },
        )

        await self._notify(alert, rule)
        return alert

    async def trigger_test_alert(self, tenant_id: str, actor: str = "") -> Alert:
        """Write the canned test alert used to check notification wiring."""
        alert = Alert(
            tenant_id=tenant_id,
            rule_id=None,
            severity=AlertSeverity.HIGH,
            category=AlertCategory.SYSTEM,
            message="Test alert: CPU usage above threshold",
            source="manual-test",
            metric="cpu",
            value=92,
            threshold=90,
            state=AlertState.ACTIVE,
            tags=list(TEST_ALERT_TAGS),
        )
        await self._alerts.insert_one(alert.to_document())
        logger.info(
            "Test alert created by %s",
            actor or "unknown",
            extra={"alert_id": alert.alert_id, "tenant_id": tenant_id},
        )
        await self._notify(alert, None)
        return alert

    async def _notify(self, alert: Alert, rule: Optional[AlertRule]) -> None:
        if self._notifier is None:
            return
        report = await self._notifier.notify(alert, rule)
        if report.failed:
            logger.warning(
                "Alert notification partially failed: %s",
                ", ".join(sorted(report.failed)),
                extra={"alert_id": alert.alert_id},
            )
