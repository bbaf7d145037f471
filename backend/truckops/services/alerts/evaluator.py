"""
Threshold evaluation for alert rules.

``evaluate`` is the pure comparison over the eight rule operators.
``WindowedEvaluator`` keeps a short sample history per rule so that rules
with a time window only fire once the condition has held for the whole
window.
"""

from __future__ import annotations

import logging
from collections import deque
from typing import TYPE_CHECKING, Any, Callable, Optional

from truckops.models.alert import AlertOperator

if TYPE_CHECKING:
    from truckops.models.alert import AlertRule

logger = logging.getLogger(__name__)


def _as_number(value: Any) -> Optional[float]:
    """Coerce ints, floats and numeric strings; anything else is None."""
    if isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        return float(value)
    if isinstance(value, str):
        try:
            return float(value.strip())
        except ValueError:
            return None
    return None


# Ordering operators only see numbers; the other four see raw values.
NUMERIC_OPERATORS: dict[str, Callable[[float, float], bool]] = {
    AlertOperator.GT.value: lambda a, b: a > b,
    AlertOperator.GTE.value: lambda a, b: a >= b,
    AlertOperator.LT.value: lambda a, b: a < b,
    AlertOperator.LTE.value: lambda a, b: a <= b,
}

VALUE_OPERATORS: dict[str, Callable[[Any, Any], bool]] = {
    AlertOperator.EQ.value: lambda a, b: a == b,
    AlertOperator.NEQ.value: lambda a, b: a != b,
    AlertOperator.CONTAINS.value: lambda a, b: str(b) in str(a),
    AlertOperator.NOT_CONTAINS.value: lambda a, b: str(b) not in str(a),
}

OPERATOR_SYMBOLS: dict[str, str] = {
    "gt": ">",
    "gte": ">=",
    "lt": "<",
    "lte": "<=",
    "eq": "==",
    "neq": "!=",
    "contains": "contains",
    "notContains": "does not contain",
}


def evaluate(value: Any, operator: str, threshold: Any) -> bool:
    """Compare *value* against *threshold* with the given operator.

    Args:
        value: The observed sample.
        operator: One of the :class:`AlertOperator` values.
        threshold: The configured threshold.

    Returns:
        ``True`` when the condition holds. Unknown operators and
        non-numeric operands of an ordering operator evaluate to ``False``.
    """
    op = getattr(operator, "value", operator)

    numeric = NUMERIC_OPERATORS.get(op)
    if numeric is not None:
        left = _as_number(value)
        right = _as_number(threshold)
        if left is None or right is None:
            return False
        return numeric(left, right)

    plain = VALUE_OPERATORS.get(op)
    if plain is not None:
        return plain(value, threshold)

    logger.warning("Unknown alert operator: %s", op)
    return False


class WindowedEvaluator:
    """Per-rule sample buffer for rules with a time window.

    A rule with a window fires only when the observed samples span at least
    the whole window and every one of them violates the threshold. The
    newest sample at or before the window start is retained as the anchor
    that proves coverage.
    """

    def __init__(self) -> None:
        self._buffers: dict[tuple[str, str], deque[tuple[int, bool]]] = {}

    def observe(self, rule: AlertRule, violating: bool, timestamp_ms: int) -> bool:
        """Record one evaluation result and return whether the rule fires."""
        window = rule.window_ms
        if window <= 0:
            return violating

        key = (rule.tenant_id, rule.rule_id)
        buffer = self._buffers.setdefault(key, deque())
        buffer.append((timestamp_ms, violating))

        cutoff = timestamp_ms - window
        while len(buffer) >= 2 and buffer[1][0] <= cutoff:
            buffer.popleft()

        covered = buffer[0][0] <= cutoff
        return covered and all(flag for _, flag in buffer)

    def forget(self, tenant_id: str, rule_id: str) -> None:
        """Drop the buffer of a rule that was edited or deleted."""
        self._buffers.pop((tenant_id, rule_id), None)

    def clear(self) -> None:
        self._buffers.clear()
