"""
Report service facade.

Coordinates data aggregation, document building and the format renderers
to provide a unified interface for the API endpoints and the scheduler.
Every rendered report is recorded in ``reports``; when an output
directory is configured the file is written there as well.
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from datetime import datetime
from typing import TYPE_CHECKING, Any, Callable, Optional

from truckops.core.exceptions import NotFoundException, ValidationException
from truckops.models.base import ensure_utc
from truckops.models.report import (
    DateRange,
    ExportFormat,
    ReportDocument,
    ReportPayload,
    ReportRecord,
    ReportType,
)
from truckops.services.reports import aggregation
from truckops.services.reports.aggregation import in_range
from truckops.services.reports.builder import build_report_document
from truckops.services.reports.csv_export import render_csv, render_json
from truckops.services.reports.excel_export import render_excel
from truckops.services.reports.pdf_export import HTML_CONTENT_TYPE, render_pdf

if TYPE_CHECKING:
    from motor.motor_asyncio import AsyncIOMotorDatabase

    from truckops.config import Settings

logger = logging.getLogger(__name__)

RENDERERS: dict[str, Callable[[ReportDocument], tuple[bytes, str]]] = {
    ExportFormat.PDF.value: render_pdf,
    ExportFormat.XLSX.value: render_excel,
    ExportFormat.CSV.value: render_csv,
    ExportFormat.JSON.value: render_json,
}


@dataclass
class RenderedReport:
    """A rendered report ready to be streamed or attached."""

    record: ReportRecord
    content: bytes
    content_type: str

    @property
    def filename(self) -> str:
        ext = self.record.format
        if ext == ExportFormat.PDF.value and self.content_type == HTML_CONTENT_TYPE:
            ext = "html"
        return f"{self.record.report_type}_report_{self.record.report_id[:8]}.{ext}"


class ReportService:
    """High-level facade for report rendering and retrieval.

    Args:
        db: Motor async database handle.
        settings: Supplies the currency and output directory.
    """

    def __init__(
        self,
        db: AsyncIOMotorDatabase,  # type: ignore[type-arg]
        settings: Optional[Settings] = None,
    ) -> None:
        self._db = db
        self._collection = db["reports"]
        self._currency = settings.REPORT_CURRENCY if settings else "CHF"
        self._output_dir = settings.REPORT_OUTPUT_DIR if settings else ""

    # ------------------------------------------------------------------
    # Rendering
    # ------------------------------------------------------------------

    async def render(
        self,
        tenant_id: str,
        payload: ReportPayload,
        fmt: str = ExportFormat.PDF.value,
        schedule_id: Optional[str] = None,
        generated_at: Optional[datetime] = None,
    ) -> RenderedReport:
        """Render *payload* in *fmt* and record the result.

        Args:
            tenant_id: Owning tenant.
            payload: Pre-aggregated report data.
            fmt: One of ``pdf``, ``xlsx``, ``csv`` or ``json``.
            schedule_id: Set when rendered by the scheduler.
            generated_at: Footer timestamp; defaults to now.

        Returns:
            The stored record together with the rendered bytes.

        Raises:
            ValidationException: If *fmt* is not supported.
        """
        fmt = getattr(fmt, "value", fmt)
        renderer = RENDERERS.get(fmt)
        if renderer is None:
            raise ValidationException(
                f"Unsupported report format: {fmt}",
                detail={"formats": sorted(RENDERERS)},
            )

        document = build_report_document(payload, generated_at=generated_at, currency=self._currency)
        content, content_type = renderer(document)

        record = ReportRecord(
            tenant_id=tenant_id,
            report_type=document.report_type,
            format=fmt,
            title=document.title,
            size_bytes=len(content),
            schedule_id=schedule_id,
        )
        rendered = RenderedReport(record=record, content=content, content_type=content_type)
        if self._output_dir:
            record.path = self._write_file(rendered)

        await self._collection.insert_one(record.to_document())
        logger.info(
            "Rendered %s report as %s (%d bytes)",
            record.report_type,
            fmt,
            record.size_bytes,
            extra={"report_id": record.report_id, "tenant_id": tenant_id},
        )
        return rendered

    def _write_file(self, rendered: RenderedReport) -> str:
        os.makedirs(self._output_dir, exist_ok=True)
        path = os.path.join(self._output_dir, rendered.filename)
        with open(path, "wb") as f:
            f.write(rendered.content)
        return path

    async def generate(
        self,
        tenant_id: str,
        report_type: str,
        date_range: DateRange,
        fmt: str = ExportFormat.PDF.value,
        schedule_id: Optional[str] = None,
    ) -> RenderedReport:
        """Aggregate stored data for *report_type* and render it."""
        payload = await self.collect_payload(tenant_id, report_type, date_range)
        return await self.render(tenant_id, payload, fmt, schedule_id=schedule_id)

    # ------------------------------------------------------------------
    # Data collection
    # ------------------------------------------------------------------

    async def _load(self, collection: str, query: dict[str, Any]) -> list[dict]:
        return await self._db[collection].find(query, {"_id": 0}).to_list(length=None)

    async def _load_in_range(
        self, collection: str, tenant_id: str, date_range: DateRange
    ) -> list[dict]:
        # created_at is stored either as a BSON date or as epoch milliseconds
        start = ensure_utc(date_range.start)
        end = ensure_utc(date_range.end)
        start_ms = int(start.timestamp() * 1000)
        end_ms = int(end.timestamp() * 1000)
        docs = await self._load(
            collection,
            {
                "tenant_id": tenant_id,
                "$or": [
                    {"created_at": {"$gte": start, "$lte": end}},
                    {"created_at": {"$gte": start_ms, "$lte": end_ms}},
                ],
            },
        )
        return [d for d in docs if in_range(d.get("created_at"), date_range)]

    async def _orders_in(self, tenant_id: str, date_range: DateRange) -> list[dict]:
        return await self._load_in_range("orders", tenant_id, date_range)

    async def collect_payload(
        self,
        tenant_id: str,
        report_type: str,
        date_range: DateRange,
    ) -> ReportPayload:
        """Build a payload from the tenant's orders, customers and inventory.

        Raises:
            ValidationException: If *report_type* has no data source.
        """
        report_type = getattr(report_type, "value", report_type)
        if report_type == ReportType.SALES.value:
            return aggregation.aggregate_sales(await self._orders_in(tenant_id, date_range), date_range)
        if report_type == ReportType.ORDERS.value:
            return aggregation.aggregate_orders(await self._orders_in(tenant_id, date_range), date_range)
        if report_type == ReportType.FINANCIAL.value:
            return aggregation.aggregate_financial(
                await self._orders_in(tenant_id, date_range), date_range
            )
        if report_type == ReportType.CUSTOMERS.value:
            return aggregation.aggregate_customers(
                await self._load("customers", {"tenant_id": tenant_id}),
                await self._orders_in(tenant_id, date_range),
                date_range,
            )
        if report_type == ReportType.INVENTORY.value:
            return aggregation.aggregate_inventory(
                await self._load("inventory", {"tenant_id": tenant_id}),
                await self._load_in_range("stock_movements", tenant_id, date_range),
                date_range,
            )
        raise ValidationException(
            f"No data source for report type '{report_type}'",
            detail={"report_type": report_type},
        )

    # ------------------------------------------------------------------
    # Retrieval
    # ------------------------------------------------------------------

    async def list_reports(self, tenant_id: str, limit: int = 50) -> list[ReportRecord]:
        cursor = (
            self._collection.find({"tenant_id": tenant_id}, {"_id": 0})
            .sort("created_at", -1)
            .limit(limit)
        )
        return ReportRecord.parse_many(await cursor.to_list(length=limit))

    async def get_report(self, tenant_id: str, report_id: str) -> ReportRecord:
        doc = await self._collection.find_one(
            {"report_id": report_id, "tenant_id": tenant_id}, {"_id": 0}
        )
        if doc is None:
            raise NotFoundException(resource="Report", identifier=report_id)
        return ReportRecord.from_document(doc)
