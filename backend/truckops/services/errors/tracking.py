"""
Grouping, statistics and stack-trace parsing for reported errors.

All functions are pure and operate on already-loaded ErrorEvent lists.
"""

from __future__ import annotations

import re
from typing import Iterable, Optional

from pydantic import BaseModel, Field

from truckops.models.base import now_ms
from truckops.models.error_event import ErrorCategory, ErrorEvent, ErrorSeverity

DAY_MS = 86_400_000

ERROR_TIME_RANGES: dict[str, int] = {
    "1h": 3_600_000,
    "24h": DAY_MS,
    "7d": 7 * DAY_MS,
    "30d": 30 * DAY_MS,
}

UNKNOWN_MESSAGE = "Unknown Error"
DEFAULT_BROWSER = "other"
DEFAULT_PLATFORM = "desktop"

_FRAME_RE = re.compile(r"at\s+(.+?)\s+\((.+?):(\d+):(\d+)\)")


class StackFrame(BaseModel):
    function: str
    file: str
    line: int
    column: int


class ErrorGroup(BaseModel):
    """Errors sharing the same message."""

    message: str
    count: int = 0
    first_seen: int
    last_seen: int
    severity: str
    category: str
    errors: list[ErrorEvent] = Field(default_factory=list)


class ErrorStats(BaseModel):
    total: int = 0
    last_24h: int = 0
    trend: int = 0
    by_severity: dict[str, int] = Field(default_factory=dict)
    by_category: dict[str, int] = Field(default_factory=dict)
    by_browser: dict[str, int] = Field(default_factory=dict)
    by_platform: dict[str, int] = Field(default_factory=dict)
    affected_users: int = 0
    error_rate: float = Field(default=0.0, description="Errors per hour over the last 24h.")


def group_errors_by_message(errors: Iterable[ErrorEvent]) -> list[ErrorGroup]:
    """Group errors by message, most recently seen group first.

    Severity and category of a group are taken from its first member.
    """
    groups: dict[str, ErrorGroup] = {}
    for error in errors:
        key = error.message or UNKNOWN_MESSAGE
        group = groups.get(key)
        if group is None:
            group = ErrorGroup(
                message=key,
                first_seen=error.timestamp,
                last_seen=error.timestamp,
                severity=str(error.severity),
                category=str(error.category),
            )
            groups[key] = group
        group.count += 1
        group.first_seen = min(group.first_seen, error.timestamp)
        group.last_seen = max(group.last_seen, error.timestamp)
        group.errors.append(error)

    return sorted(groups.values(), key=lambda g: g.last_seen, reverse=True)


def calculate_error_stats(errors: list[ErrorEvent], now: Optional[int] = None) -> ErrorStats:
    """Aggregate an error list.

    ``trend`` is the last-24h count minus the count of the 24h before
    that; ``error_rate`` spreads the last-24h count over 24 hours.
    """
    ts = now if now is not None else now_ms()
    last_24h = [e for e in errors if ts - e.timestamp < DAY_MS]
    previous_24h = [e for e in errors if ts - 2 * DAY_MS < e.timestamp <= ts - DAY_MS]

    by_severity = {s.value: 0 for s in ErrorSeverity}
    by_category = {c.value: 0 for c in ErrorCategory}
    by_browser: dict[str, int] = {}
    by_platform: dict[str, int] = {}
    for error in errors:
        by_severity[str(error.severity)] = by_severity.get(str(error.severity), 0) + 1
        by_category[str(error.category)] = by_category.get(str(error.category), 0) + 1
        browser = error.browser or DEFAULT_BROWSER
        by_browser[browser] = by_browser.get(browser, 0) + 1
        platform = error.platform or DEFAULT_PLATFORM
        by_platform[platform] = by_platform.get(platform, 0) + 1

    return ErrorStats(
        total=len(errors),
        last_24h=len(last_24h),
        trend=len(last_24h) - len(previous_24h),
        by_severity=by_severity,
        by_category=by_category,
        by_browser=by_browser,
        by_platform=by_platform,
        affected_users=len({e.user_id for e in errors if e.user_id}),
        error_rate=len(last_24h) / 24,
    )


def parse_stack_trace(stack: Optional[str]) -> list[StackFrame]:
    """Extract ``at fn (file:line:col)`` frames from a JavaScript stack."""
    if not stack:
        return []
    frames: list[StackFrame] = []
    for line in stack.splitlines():
        match = _FRAME_RE.search(line)
        if match:
            frames.append(
                StackFrame(
                    function=match.group(1),
                    file=match.group(2),
                    line=int(match.group(3)),
                    column=int(match.group(4)),
                )
            )
    return frames


def filter_errors(
    errors: Iterable[ErrorEvent],
    severity: Optional[str] = None,
    category: Optional[str] = None,
    browser: Optional[str] = None,
    platform: Optional[str] = None,
    time_range: Optional[str] = None,
    search: Optional[str] = None,
    resolved: Optional[bool] = None,
    now: Optional[int] = None,
) -> list[ErrorEvent]:
    """Filter errors; ``None`` or ``"all"`` disables a criterion."""
    result = list(errors)

    if severity and severity != "all":
        result = [e for e in result if e.severity == severity]
    if category and category != "all":
        result = [e for e in result if e.category == category]
    if browser and browser != "all":
        result = [e for e in result if e.browser == browser]
    if platform and platform != "all":
        result = [e for e in result if e.platform == platform]
    if time_range and time_range != "all":
        span = ERROR_TIME_RANGES.get(time_range)
        if span is not None:
            cutoff = (now if now is not None else now_ms()) - span
            result = [e for e in result if e.timestamp > cutoff]
    if search:
        needle = search.lower()
        result = [
            e
            for e in result
            if needle in e.message.lower()
            or needle in (e.stack or "").lower()
            or needle in (e.url or "").lower()
        ]
    if resolved is not None:
        result = [e for e in result if e.resolved == resolved]

    return result
