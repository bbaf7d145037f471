"""
Unit tests for threshold evaluation.

Covers the eight rule operators, numeric coercion, and the windowed
evaluator that only fires once a condition held for the whole window.
"""

from __future__ import annotations

import pytest

from truckops.models.alert import AlertRule
from truckops.services.alerts.evaluator import WindowedEvaluator, evaluate

MINUTE_MS = 60_000


def _rule(**overrides) -> AlertRule:
    fields = {
        "rule_id": "rule-cpu",
        "name": "High CPU",
        "metric": "cpu",
        "operator": "gt",
        "threshold": 90,
    }
    fields.update(overrides)
    return AlertRule.model_validate(fields)


class TestEvaluate:
    """Test the pure operator comparison."""

    @pytest.mark.parametrize(
        ("value", "operator", "threshold", "expected"),
        [
            (95, "gt", 90, True),
            (90, "gt", 90, False),
            (90, "gte", 90, True),
            (10, "lt", 20, True),
            (20, "lte", 20, True),
            (21, "lte", 20, False),
            ("down", "eq", "down", True),
            ("up", "neq", "down", True),
            ("connection refused", "contains", "refused", True),
            ("all good", "notContains", "error", True),
            ("error 500", "notContains", "error", False),
        ],
    )
    def test_operators(self, value, operator, threshold, expected):
        """Each operator should compare the sample against the threshold."""
        assert evaluate(value, operator, threshold) is expected

    def test_numeric_strings_are_coerced(self):
        """Ordering operators should accept numeric strings on either side."""
        assert evaluate("95.5", "gt", 90) is True
        assert evaluate(95, "gte", " 95 ") is True

    def test_non_numeric_ordering_is_false(self):
        """A non-numeric operand of an ordering operator never fires."""
        assert evaluate("high", "gt", 90) is False
        assert evaluate(None, "lt", 5) is False
        assert evaluate(True, "gt", 0) is False

    def test_unknown_operator_is_false(self):
        """An operator outside the known set evaluates to False."""
        assert evaluate(100, "approximately", 90) is False


class TestWindowedEvaluator:
    """Test time-window coverage for windowed rules."""

    def test_rule_without_window_passes_through(self):
        """Without a window the single evaluation result is returned."""
        windows = WindowedEvaluator()
        rule = _rule()
        assert windows.observe(rule, True, 0) is True
        assert windows.observe(rule, False, 1) is False

    def test_fires_only_after_full_window(self):
        """A 5m rule fires once violating samples span five minutes."""
        windows = WindowedEvaluator()
        rule = _rule(time_window="5m")

        assert windows.observe(rule, True, 0) is False
        assert windows.observe(rule, True, 2 * MINUTE_MS) is False
        assert windows.observe(rule, True, 4 * MINUTE_MS) is False
        assert windows.observe(rule, True, 5 * MINUTE_MS) is True
        assert windows.observe(rule, True, 6 * MINUTE_MS) is True

    def test_recovery_inside_window_blocks_firing(self):
        """One healthy sample inside the window prevents the rule firing."""
        windows = WindowedEvaluator()
        rule = _rule(time_window="1m")

        windows.observe(rule, True, 0)
        windows.observe(rule, False, 30_000)
        assert windows.observe(rule, True, MINUTE_MS) is False
        # Once the healthy sample ages out of the window the rule fires again.
        assert windows.observe(rule, True, 2 * MINUTE_MS) is True

    def test_forget_resets_the_buffer(self):
        """Forgetting a rule discards its collected history."""
        windows = WindowedEvaluator()
        rule = _rule(time_window="1m")

        windows.observe(rule, True, 0)
        windows.forget(rule.tenant_id, rule.rule_id)
        assert windows.observe(rule, True, MINUTE_MS) is False

    def test_buffers_are_per_tenant(self):
        """The same rule id under two tenants keeps separate buffers."""
        windows = WindowedEvaluator()
        rule_a = _rule(time_window="1m", tenant_id="truck-a")
        rule_b = _rule(time_window="1m", tenant_id="truck-b")

        windows.observe(rule_a, True, 0)
        assert windows.observe(rule_b, True, MINUTE_MS) is False
        assert windows.observe(rule_a, True, MINUTE_MS) is True
