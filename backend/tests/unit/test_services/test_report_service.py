"""
Unit tests for the report service facade.
"""

from __future__ import annotations

import os
from datetime import datetime, timezone

import orjson
import pytest

from truckops.config import Settings
from truckops.core.exceptions import NotFoundException, ValidationException
from truckops.models.report import DateRange, ReportPayload
from truckops.services.reports import pdf_export
from truckops.services.reports.service import ReportService

WEEK = DateRange(
    start=datetime(2026, 3, 2, tzinfo=timezone.utc),
    end=datetime(2026, 3, 8, 23, 59, 59, tzinfo=timezone.utc),
)


@pytest.fixture
async def seeded_db(test_db, sample_orders):
    outside = {
        **sample_orders[0],
        "order_id": "order-0000",
        "created_at": datetime(2026, 2, 20, tzinfo=timezone.utc),
    }
    other_tenant = {**sample_orders[1], "order_id": "order-9999", "tenant_id": "other-truck"}
    await test_db["orders"].insert_many([*sample_orders, outside, other_tenant])
    return test_db


class TestRender:
    """Test rendering of caller-supplied payloads."""

    async def test_render_records_report(self, test_db):
        service = ReportService(test_db)
        payload = ReportPayload(type="sales", date_range=WEEK, summary={"total_revenue": 10})

        rendered = await service.render("default", payload, "csv")

        assert rendered.content_type.startswith("text/csv")
        assert rendered.record.size_bytes == len(rendered.content)
        assert rendered.filename == f"sales_report_{rendered.record.report_id[:8]}.csv"
        stored = await service.get_report("default", rendered.record.report_id)
        assert stored.title == "Sales Report"
        assert stored.path is None

    async def test_pdf_fallback_uses_html_extension(self, test_db, monkeypatch):
        def broken(html: str) -> bytes:
            raise OSError("no pango")

        monkeypatch.setattr(pdf_export, "_convert_to_pdf", broken)
        service = ReportService(test_db)

        rendered = await service.render(
            "default", ReportPayload(type="orders", date_range=WEEK), "pdf"
        )

        assert rendered.filename.endswith(".html")

    async def test_unsupported_format(self, test_db):
        service = ReportService(test_db)

        with pytest.raises(ValidationException):
            await service.render("default", ReportPayload(date_range=WEEK), "docx")

    async def test_output_dir_and_currency(self, test_db, tmp_path):
        settings = Settings(REPORT_OUTPUT_DIR=str(tmp_path), REPORT_CURRENCY="EUR")
        service = ReportService(test_db, settings=settings)
        payload = ReportPayload(type="sales", date_range=WEEK, summary={"total_revenue": 12.5})

        rendered = await service.render("default", payload, "json")

        assert rendered.record.path == os.path.join(str(tmp_path), rendered.filename)
        with open(rendered.record.path, "rb") as f:
            data = orjson.loads(f.read())
        assert data["currency"] == "EUR"
        assert ["Total revenue", "EUR 12.50"] in data["summary"]


class TestGenerate:
    """Test aggregation from stored data."""

    async def test_financial_from_stored_orders(self, seeded_db):
        service = ReportService(seeded_db)

        rendered = await service.generate("default", "financial", WEEK, "json")

        data = orjson.loads(rendered.content)
        summary = dict(data["summary"])
        assert summary["Total revenue"] == "CHF 66.50"
        assert summary["Discounts"] == "-CHF 5.00"

    async def test_only_orders_in_range_and_tenant(self, seeded_db):
        service = ReportService(seeded_db)

        payload = await service.collect_payload("default", "sales", WEEK)

        assert payload.summary["total_orders"] == 3
        numbers = sorted(o["id"] for o in payload.tables["orders"])
        assert numbers == ["order-0001", "order-0002", "order-0003"]

    async def test_large_history_keeps_in_range_orders(self, test_db, sample_orders):
        old = [
            {
                **sample_orders[0],
                "order_id": f"old-{n}",
                "created_at": datetime(2025, 6, 1, tzinfo=timezone.utc),
            }
            for n in range(5001)
        ]
        await test_db["orders"].insert_many([*old, {**sample_orders[1]}])
        service = ReportService(test_db)

        payload = await service.collect_payload("default", "sales", WEEK)

        assert payload.summary["total_orders"] == 1
        assert payload.summary["total_revenue"] == 26.5

    async def test_epoch_ms_timestamps_are_matched(self, test_db, sample_orders):
        stamped = {
            **sample_orders[1],
            "created_at": int(datetime(2026, 3, 3, 18, 30, tzinfo=timezone.utc).timestamp() * 1000),
        }
        outside = {**sample_orders[0], "created_at": 0}
        await test_db["orders"].insert_many([stamped, outside])
        service = ReportService(test_db)

        payload = await service.collect_payload("default", "orders", WEEK)

        assert [o["id"] for o in payload.tables["orders"]] == ["order-0002"]

    async def test_unknown_type_has_no_source(self, test_db):
        service = ReportService(test_db)

        with pytest.raises(ValidationException):
            await service.collect_payload("default", "weather", WEEK)


class TestRetrieval:
    """Test listing and lookup."""

    async def test_list_is_tenant_scoped(self, test_db):
        service = ReportService(test_db)
        payload = ReportPayload(type="sales", date_range=WEEK)
        await service.render("truck-a", payload, "json")
        await service.render("truck-a", payload, "csv")
        await service.render("truck-b", payload, "json")

        assert len(await service.list_reports("truck-a")) == 2
        assert len(await service.list_reports("truck-b")) == 1

    async def test_get_other_tenant_report(self, test_db):
        service = ReportService(test_db)
        rendered = await service.render("truck-a", ReportPayload(date_range=WEEK), "json")

        with pytest.raises(NotFoundException):
            await service.get_report("truck-b", rendered.record.report_id)
