"""
Unit tests for the alert engine.

Tests rule evaluation against samples, alert persistence, trigger
counters, disabled rules, tenant isolation, test alerts and notifier
hand-off.
"""

from __future__ import annotations

from unittest.mock import AsyncMock

from truckops.models.alert import AlertRule
from truckops.services.alerts.engine import AlertEngine, format_alert_message
from truckops.services.alerts.notifier import NotificationReport

NOW_MS = 1_773_144_000_000


async def _store_rule(db, **overrides) -> AlertRule:
    fields = {
        "name": "High CPU",
        "metric": "cpu",
        "operator": "gt",
        "threshold": 90,
        "severity": "critical",
        "category": "performance",
        "channels": ["push"],
        "tags": ["cpu"],
    }
    fields.update(overrides)
    rule = AlertRule.model_validate(fields)
    await db["alert_rules"].insert_one(rule.to_document())
    return rule


class TestEvaluateSample:
    """Test evaluation of incoming samples."""

    async def test_violating_sample_raises_alert(self, test_db):
        """A sample over the threshold creates an alert copied from the rule."""
        rule = await _store_rule(test_db)
        engine = AlertEngine(test_db)

        raised = await engine.evaluate_sample("default", "cpu", 95, NOW_MS)

        assert len(raised) == 1
        alert = raised[0]
        assert alert.rule_id == rule.rule_id
        assert alert.severity == "critical"
        assert alert.category == "performance"
        assert alert.state == "active"
        assert alert.timestamp == NOW_MS
        assert alert.tags == ["cpu"]
        assert await test_db["alerts"].count_documents({}) == 1

    async def test_trigger_counters_are_updated(self, test_db):
        """Every firing increments trigger_count and stamps last_triggered."""
        rule = await _store_rule(test_db)
        engine = AlertEngine(test_db)

        await engine.evaluate_sample("default", "cpu", 95, NOW_MS)
        await engine.evaluate_sample("default", "cpu", 97, NOW_MS + 1000)

        doc = await test_db["alert_rules"].find_one({"rule_id": rule.rule_id})
        assert doc["trigger_count"] == 2
        assert doc["last_triggered"] == NOW_MS + 1000

    async def test_healthy_sample_raises_nothing(self, test_db):
        """A sample within bounds raises no alert."""
        await _store_rule(test_db)
        engine = AlertEngine(test_db)

        assert await engine.evaluate_sample("default", "cpu", 50, NOW_MS) == []
        assert await test_db["alerts"].count_documents({}) == 0

    async def test_disabled_rules_are_skipped(self, test_db):
        """Disabled rules are not evaluated."""
        await _store_rule(test_db, enabled=False)
        engine = AlertEngine(test_db)

        assert await engine.evaluate_sample("default", "cpu", 99, NOW_MS) == []

    async def test_rules_of_other_tenants_are_ignored(self, test_db):
        """A sample only meets its own tenant's rules."""
        await _store_rule(test_db, tenant_id="truck-a")
        engine = AlertEngine(test_db)

        assert await engine.evaluate_sample("truck-b", "cpu", 99, NOW_MS) == []

    async def test_only_rules_for_the_metric_are_evaluated(self, test_db):
        """A memory sample does not trigger a CPU rule."""
        await _store_rule(test_db)
        engine = AlertEngine(test_db)

        assert await engine.evaluate_sample("default", "memory", 99, NOW_MS) == []

    async def test_windowed_rule_waits_for_coverage(self, test_db):
        """A rule with a time window fires only once the window is covered."""
        await _store_rule(test_db, time_window="1m")
        engine = AlertEngine(test_db)

        assert await engine.evaluate_sample("default", "cpu", 95, NOW_MS) == []
        raised = await engine.evaluate_sample("default", "cpu", 96, NOW_MS + 60_000)

        assert len(raised) == 1


class TestNotifications:
    """Test the hand-off to the notifier."""

    async def test_notifier_receives_alert_and_rule(self, test_db):
        """Each raised alert is passed to the notifier with its rule."""
        rule = await _store_rule(test_db)
        notifier = AsyncMock()
        notifier.notify = AsyncMock(
            side_effect=lambda alert, r: NotificationReport(alert_id=alert.alert_id)
        )
        engine = AlertEngine(test_db, notifier=notifier)

        raised = await engine.evaluate_sample("default", "cpu", 95, NOW_MS)

        notifier.notify.assert_awaited_once()
        sent_alert, sent_rule = notifier.notify.await_args.args
        assert sent_alert.alert_id == raised[0].alert_id
        assert sent_rule.rule_id == rule.rule_id

    async def test_notification_failure_does_not_block_alert(self, test_db):
        """A failed channel is reported, the alert is still stored."""
        await _store_rule(test_db)
        notifier = AsyncMock()
        notifier.notify = AsyncMock(
            side_effect=lambda alert, r: NotificationReport(
                alert_id=alert.alert_id, failed={"email": "relay down"}
            )
        )
        engine = AlertEngine(test_db, notifier=notifier)

        raised = await engine.evaluate_sample("default", "cpu", 95, NOW_MS)

        assert len(raised) == 1
        assert await test_db["alerts"].count_documents({}) == 1


class TestTestAlert:
    """Test the canned test alert."""

    async def test_trigger_test_alert(self, test_db):
        """The test alert has no rule, high severity and the test tags."""
        engine = AlertEngine(test_db)

        alert = await engine.trigger_test_alert("default", actor="ops")

        assert alert.rule_id is None
        assert alert.is_test is True
        assert alert.severity == "high"
        assert alert.source == "manual-test"
        assert "test" in alert.tags
        doc = await test_db["alerts"].find_one({"alert_id": alert.alert_id})
        assert doc is not None


class TestFormatAlertMessage:
    """Test the alert message text."""

    def test_message_includes_value_unit_and_threshold(self):
        rule = AlertRule.model_validate(
            {"name": "High CPU", "metric": "cpu", "operator": "gte", "threshold": 90}
        )

        message = format_alert_message(rule, 93)

        assert message.startswith("High CPU: cpu is 93%")
        assert ">=" in message
