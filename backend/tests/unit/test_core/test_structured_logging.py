"""
Unit tests for the JSON log formatter.
"""

from __future__ import annotations

import logging
import sys

import orjson

from truckops.core.logging import JSONFormatter, setup_logging


def _record(msg: str = "Alert fired", **extra) -> logging.LogRecord:
    record = logging.LogRecord("truckops.alerts", logging.WARNING, __file__, 10, msg, (), None)
    for key, value in extra.items():
        setattr(record, key, value)
    return record


class TestJSONFormatter:
    """Test structured log lines."""

    def test_base_fields(self):
        line = orjson.loads(JSONFormatter().format(_record()))

        assert line["level"] == "WARNING"
        assert line["service"] == "truckops"
        assert line["logger"] == "truckops.alerts"
        assert line["message"] == "Alert fired"

    def test_extra_fields_are_included(self):
        line = orjson.loads(
            JSONFormatter().format(_record(alert_id="a-1", count=3, tags=("cpu", 9), blob={"x": 1}))
        )

        assert line["alert_id"] == "a-1"
        assert line["count"] == 3
        assert line["tags"] == ["cpu", "9"]
        assert "blob" not in line

    def test_exception_details(self):
        try:
            raise RuntimeError("disk full")
        except RuntimeError:
            record = logging.LogRecord(
                "truckops.jobs", logging.ERROR, __file__, 1, "Job failed", (), sys.exc_info()
            )

        line = orjson.loads(JSONFormatter().format(record))

        assert line["exception"]["type"] == "RuntimeError"
        assert line["exception"]["message"] == "disk full"


class TestSetupLogging:
    """Test root logger configuration."""

    def test_installs_single_json_handler(self):
        root = logging.getLogger()
        saved_handlers, saved_level = root.handlers[:], root.level
        try:
            setup_logging("DEBUG")
            setup_logging("debug")

            assert len(root.handlers) == 1
            assert isinstance(root.handlers[0].formatter, JSONFormatter)
            assert root.level == logging.DEBUG
            assert logging.getLogger("pymongo").level == logging.WARNING
        finally:
            root.handlers[:] = saved_handlers
            root.setLevel(saved_level)
