"""
Pure reducers over in-memory alert lists.

Nothing here touches the database: callers load the most recent alerts
once, then filter, sort and aggregate that list as often as needed.
"""

from __future__ import annotations

import math
from datetime import UTC, datetime
from typing import Any, Iterable, Optional

from pydantic import BaseModel, Field

from truckops.core.exceptions import ValidationException
from truckops.models.alert import (
    SEVERITY_PRIORITY,
    Alert,
    AlertCategory,
    AlertSeverity,
    AlertState,
)
from truckops.models.base import now_ms

DAY_MS = 86_400_000

TIME_RANGE_MS: dict[str, int] = {
    "1m": 60_000,
    "5m": 300_000,
    "15m": 900_000,
    "30m": 1_800_000,
    "1h": 3_600_000,
    "24h": DAY_MS,
    "7d": 7 * DAY_MS,
    "30d": 30 * DAY_MS,
}

UNKNOWN_PRIORITY = 999


class TrendDelta(BaseModel):
    today: int = 0
    yesterday: int = 0
    delta: int = 0
    pct_change: float = 0.0


class AlertStats(BaseModel):
    """Aggregate view of an alert list."""

    total: int = 0
    active: int = 0
    acknowledged: int = 0
    resolved: int = 0
    suppressed: int = 0
    last_24h: int = 0
    by_severity: dict[str, int] = Field(default_factory=dict)
    by_category: dict[str, int] = Field(default_factory=dict)
    mttr_ms: float = 0.0
    severity_pct: dict[str, float] = Field(default_factory=dict)
    state_pct: dict[str, float] = Field(default_factory=dict)
    today_vs_yesterday: TrendDelta = Field(default_factory=TrendDelta)


def _pct(part: int, whole: int) -> float:
    if whole == 0:
        return 0.0
    return round(part / whole * 100, 1)


def _start_of_day_ms(ts_ms: int) -> int:
    moment = datetime.fromtimestamp(ts_ms / 1000, tz=UTC)
    midnight = moment.replace(hour=0, minute=0, second=0, microsecond=0)
    return int(midnight.timestamp() * 1000)


def calculate_alert_stats(alerts: list[Alert], now: Optional[int] = None) -> AlertStats:
    """Count alerts by state, severity and category and compute MTTR.

    Every severity and category key is present (zero-filled) and all
    percentages are 0.0 for an empty list.

    Args:
        alerts: The alerts to aggregate.
        now: Reference time in epoch ms (defaults to the wall clock).
    """
    ts = now if now is not None else now_ms()
    total = len(alerts)

    by_state = {state.value: 0 for state in AlertState}
    by_severity = {severity.value: 0 for severity in AlertSeverity}
    by_category = {category.value: 0 for category in AlertCategory}
    for alert in alerts:
        by_state[str(alert.state)] = by_state.get(str(alert.state), 0) + 1
        by_severity[str(alert.severity)] = by_severity.get(str(alert.severity), 0) + 1
        by_category[str(alert.category)] = by_category.get(str(alert.category), 0) + 1

    cutoff = ts - DAY_MS
    last_24h = sum(1 for a in alerts if a.timestamp > cutoff)

    resolution_times = [
        a.resolution_time_ms
        for a in alerts
        if a.state == AlertState.RESOLVED.value and a.resolution_time_ms is not None
    ]
    mttr = sum(resolution_times) / len(resolution_times) if resolution_times else 0.0

    today_start = _start_of_day_ms(ts)
    yesterday_start = today_start - DAY_MS
    today = sum(1 for a in alerts if today_start <= a.timestamp <= ts)
    yesterday = sum(1 for a in alerts if yesterday_start <= a.timestamp < today_start)
    if yesterday:
        pct_change = round((today - yesterday) / yesterday * 100, 1)
    else:
        pct_change = 100.0 if today else 0.0

    return AlertStats(
        total=total,
        active=by_state[AlertState.ACTIVE.value],
        acknowledged=by_state[AlertState.ACKNOWLEDGED.value],
        resolved=by_state[AlertState.RESOLVED.value],
        suppressed=by_state[AlertState.SUPPRESSED.value],
        last_24h=last_24h,
        by_severity=by_severity,
        by_category=by_category,
        mttr_ms=float(mttr),
        severity_pct={k: _pct(v, total) for k, v in by_severity.items()},
        state_pct={k: _pct(v, total) for k, v in by_state.items()},
        today_vs_yesterday=TrendDelta(
            today=today,
            yesterday=yesterday,
            delta=today - yesterday,
            pct_change=pct_change,
        ),
    )


def filter_alerts(
    alerts: Iterable[Alert],
    state: Optional[str] = None,
    severity: Optional[str] = None,
    category: Optional[str] = None,
    time_range: Optional[str] = None,
    search: Optional[str] = None,
    now: Optional[int] = None,
) -> list[Alert]:
    """Filter an alert list. ``None`` or ``"all"`` disables a criterion."""
    result = list(alerts)

    if state and state != "all":
        result = [a for a in result if a.state == state]
    if severity and severity != "all":
        result = [a for a in result if a.severity == severity]
    if category and category != "all":
        result = [a for a in result if a.category == category]
    if time_range and time_range != "all":
        span = TIME_RANGE_MS.get(time_range)
        if span is not None:
            cutoff = (now if now is not None else now_ms()) - span
            result = [a for a in result if a.timestamp > cutoff]
    if search:
        needle = search.lower()
        result = [
            a
            for a in result
            if needle in a.message.lower()
            or needle in (a.source or "").lower()
            or needle in (a.rule_id or "").lower()
        ]

    return result


SORT_FIELDS: tuple[str, ...] = ("timestamp", "severity", "state", "category", "value", "threshold")


def _sort_key(sort_by: str):
    if sort_by not in SORT_FIELDS:
        raise ValidationException(
            f"Cannot sort alerts by '{sort_by}'",
            detail={"sort_by": sort_by, "allowed": list(SORT_FIELDS)},
        )
    if sort_by == "severity":
        return lambda a: SEVERITY_PRIORITY.get(str(a.severity), UNKNOWN_PRIORITY)

    def key(alert: Alert) -> Any:
        value = getattr(alert, sort_by)
        # None first, then numbers, then strings
        if value is None:
            return (0, 0)
        if isinstance(value, str):
            return (2, value)
        return (1, value)

    return key


def sort_alerts(
    alerts: Iterable[Alert],
    sort_by: str = "timestamp",
    descending: bool = True,
) -> list[Alert]:
    """Sort alerts by a field; ``severity`` sorts by priority (critical=1).

    Raises:
        ValidationException: If *sort_by* is not one of ``SORT_FIELDS``.
    """
    return sorted(alerts, key=_sort_key(sort_by), reverse=descending)


def format_duration(ms: float) -> str:
    """Render a millisecond span as ``"45s"``, ``"12m"``, ``"3h"`` or ``"2d"``."""

    def _round(x: float) -> int:
        return math.floor(x + 0.5)

    if ms < 60_000:
        return f"{_round(ms / 1000)}s"
    if ms < 3_600_000:
        return f"{_round(ms / 60_000)}m"
    if ms < DAY_MS:
        return f"{_round(ms / 3_600_000)}h"
    return f"{_round(ms / DAY_MS)}d"
