"""
Unit tests for the alert statistics reducers.

Covers counts, MTTR, percentages, the today/yesterday trend, filtering,
sorting and duration formatting.
"""

from __future__ import annotations

from datetime import datetime, timezone

import pytest

from truckops.core.exceptions import ValidationException
from truckops.models.alert import Alert
from truckops.services.alerts.statistics import (
    calculate_alert_stats,
    filter_alerts,
    format_duration,
    sort_alerts,
)

# 2026-03-10 12:00 UTC
NOW_MS = int(datetime(2026, 3, 10, 12, 0, tzinfo=timezone.utc).timestamp() * 1000)
HOUR_MS = 3_600_000
DAY_MS = 86_400_000


@pytest.fixture
def alerts(sample_alert_docs) -> list[Alert]:
    return [Alert.from_document(doc) for doc in sample_alert_docs]


class TestCalculateAlertStats:
    """Test aggregate statistics."""

    def test_counts_by_state(self, alerts):
        """Each state is counted once."""
        stats = calculate_alert_stats(alerts, now=NOW_MS)

        assert stats.total == 4
        assert stats.active == 1
        assert stats.acknowledged == 1
        assert stats.resolved == 1
        assert stats.suppressed == 1
        assert stats.last_24h == 3

    def test_every_severity_and_category_key_present(self, alerts):
        """Missing keys are zero-filled."""
        stats = calculate_alert_stats(alerts, now=NOW_MS)

        assert set(stats.by_severity) == {"critical", "high", "medium", "low"}
        assert stats.by_category["security"] == 0
        assert stats.by_category["business"] == 1
        assert stats.severity_pct["critical"] == 25.0

    def test_mttr_uses_resolved_alerts_only(self, alerts):
        """MTTR is the mean of resolved_at - timestamp."""
        stats = calculate_alert_stats(alerts, now=NOW_MS)

        assert stats.mttr_ms == float(HOUR_MS)

    def test_empty_list_has_zero_percentages(self):
        """An empty list yields zeros, never a division error."""
        stats = calculate_alert_stats([], now=NOW_MS)

        assert stats.total == 0
        assert stats.mttr_ms == 0.0
        assert all(v == 0.0 for v in stats.severity_pct.values())
        assert all(v == 0.0 for v in stats.state_pct.values())
        assert stats.today_vs_yesterday.pct_change == 0.0

    def test_today_vs_yesterday(self, alerts):
        """Alerts since midnight are compared with the previous day."""
        stats = calculate_alert_stats(alerts, now=NOW_MS)
        trend = stats.today_vs_yesterday

        assert trend.today == 3
        assert trend.yesterday == 1
        assert trend.delta == 2
        assert trend.pct_change == 200.0

    def test_no_alerts_yesterday_reports_full_increase(self, alerts):
        """With nothing yesterday, any alert today is a 100% increase."""
        today_only = [a for a in alerts if a.timestamp > NOW_MS - 4 * HOUR_MS]
        stats = calculate_alert_stats(today_only, now=NOW_MS)

        assert stats.today_vs_yesterday.pct_change == 100.0


class TestFilterAndSort:
    """Test list filtering and ordering."""

    def test_all_disables_a_filter(self, alerts):
        """The value "all" is the same as no filter."""
        assert len(filter_alerts(alerts, state="all", severity="all")) == 4

    def test_filter_by_state_and_severity(self, alerts):
        """Filters combine with AND."""
        result = filter_alerts(alerts, state="active", severity="critical")

        assert [a.alert_id for a in result] == ["alert-critical-active"]

    def test_filter_by_time_range(self, alerts):
        """Only alerts newer than the range are kept."""
        result = filter_alerts(alerts, time_range="24h", now=NOW_MS)

        assert "alert-low-resolved" not in {a.alert_id for a in result}
        assert len(result) == 3

    def test_search_matches_message_case_insensitively(self, alerts):
        """Search looks at the message, source and rule id."""
        assert [a.alert_id for a in filter_alerts(alerts, search="CHECKOUT")] == ["alert-high-ack"]
        assert len(filter_alerts(alerts, search="rule-4")) == 1

    def test_sort_by_severity_puts_critical_first(self, alerts):
        """Severity sorts by priority, critical = 1."""
        ordered = sort_alerts(alerts, sort_by="severity", descending=False)

        assert [str(a.severity) for a in ordered] == ["critical", "high", "medium", "low"]

    def test_sort_by_timestamp_newest_first(self, alerts):
        """The default order is newest first."""
        ordered = sort_alerts(alerts)

        assert ordered[0].alert_id == "alert-critical-active"
        assert ordered[-1].alert_id == "alert-low-resolved"

    def test_sort_by_value_mixes_numbers_and_text(self):
        """Text values from contains rules sort after numeric values."""
        mixed = [
            Alert(severity="high", category="business", message="m", value="payment failed"),
            Alert(severity="high", category="system", message="m", value=92),
            Alert(severity="low", category="system", message="m"),
        ]

        ordered = sort_alerts(mixed, sort_by="value", descending=False)

        assert [a.value for a in ordered] == [None, 92, "payment failed"]

    def test_sort_by_unknown_field_is_rejected(self, alerts):
        """Only whitelisted fields can be sorted on."""
        with pytest.raises(ValidationException):
            sort_alerts(alerts, sort_by="history")


class TestFormatDuration:
    """Test compact duration rendering."""

    @pytest.mark.parametrize(
        ("ms", "expected"),
        [
            (45_000, "45s"),
            (90_000, "2m"),
            (12 * 60_000, "12m"),
            (3 * HOUR_MS, "3h"),
            (2 * DAY_MS, "2d"),
        ],
    )
    def test_format_duration(self, ms, expected):
        assert format_duration(ms) == expected
