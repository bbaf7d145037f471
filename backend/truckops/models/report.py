"""
Report models for the TruckOps report generation system.

A ReportPayload is the pre-aggregated data handed to the renderers (sales,
orders, inventory, customers or financial summaries). The builder shapes
it into a ReportDocument of titled tables, which the PDF, Excel, CSV and
JSON renderers turn into downloadable bytes. Generated reports and
recurring report schedules are persisted per tenant.
"""

from datetime import datetime
from enum import Enum
from typing import Any, Optional

from pydantic import BaseModel, Field

from truckops.models.base import DEFAULT_TENANT, MongoBaseModel, generate_uuid, utc_now

# ---------------------------------------------------------------------------
# Enums
# ---------------------------------------------------------------------------


class ReportType(str, Enum):
    """
    Category of report. Each type selects a different table layout in
    the builder; unknown types fall back to the generic key/value layout.
    """

    SALES = "sales"
    ORDERS = "orders"
    INVENTORY = "inventory"
    CUSTOMERS = "customers"
    FINANCIAL = "financial"
    GENERIC = "generic"


class ExportFormat(str, Enum):
    """Output format of a rendered report."""

    PDF = "pdf"
    XLSX = "xlsx"
    CSV = "csv"
    JSON = "json"


class ScheduleFrequency(str, Enum):
    """How often a scheduled report is generated."""

    DAILY = "daily"
    WEEKLY = "weekly"
    MONTHLY = "monthly"


# ---------------------------------------------------------------------------
# Render inputs and intermediate document
# ---------------------------------------------------------------------------


class DateRange(BaseModel):
    """Inclusive period a report covers."""

    start: datetime
    end: datetime


class ReportPayload(BaseModel):
    """
    Pre-aggregated report data. ``summary`` holds the headline figures;
    ``tables`` holds named row lists (e.g. ``top_products``,
    ``sales_by_date``, ``orders``, ``items``) whose expected keys depend
    on the report type.
    """

    type: str = Field(default=ReportType.GENERIC.value, description="Report type.")
    title: Optional[str] = Field(default=None, description="Override for the default title.")
    tenant_name: str = Field(default="", description="Business name printed in the header.")
    date_range: DateRange
    summary: dict[str, Any] = Field(default_factory=dict)
    tables: dict[str, list[dict[str, Any]]] = Field(default_factory=dict)


class ReportTable(BaseModel):
    """A titled table; one sheet in Excel, one block in PDF/CSV."""

    title: str
    sheet_name: str
    headers: list[str] = Field(default_factory=list)
    rows: list[list[Any]] = Field(default_factory=list)
    currency_columns: list[int] = Field(
        default_factory=list,
        description="Column indexes holding money amounts.",
    )


class ReportDocument(BaseModel):
    """Render-ready report: headline figures plus ordered tables."""

    report_type: str
    title: str
    subtitle: str = ""
    period_label: str = ""
    summary: list[tuple[str, str]] = Field(default_factory=list)
    tables: list[ReportTable] = Field(default_factory=list)
    generated_at: datetime = Field(default_factory=utc_now)
    currency: str = "CHF"


# ---------------------------------------------------------------------------
# Persisted records
# ---------------------------------------------------------------------------


class ReportRecord(MongoBaseModel):
    """
    Metadata of one generated report file.

    MongoDB collection: ``reports``
    """

    report_id: str = Field(default_factory=generate_uuid)
    tenant_id: str = Field(default=DEFAULT_TENANT)
    report_type: str = Field(...)
    format: ExportFormat = Field(...)
    title: str = Field(...)
    size_bytes: int = Field(default=0, ge=0)
    path: Optional[str] = Field(default=None, description="Where the rendered file was written.")
    schedule_id: Optional[str] = Field(default=None)


class ReportSchedule(MongoBaseModel):
    """
    A recurring report delivered by email. ``next_run`` and ``last_run``
    are epoch milliseconds.

    MongoDB collection: ``scheduled_reports``
    """

    schedule_id: str = Field(default_factory=generate_uuid)
    tenant_id: str = Field(default=DEFAULT_TENANT)
    report_type: ReportType = Field(...)
    format: ExportFormat = Field(default=ExportFormat.PDF)
    frequency: ScheduleFrequency = Field(...)
    recipients: list[str] = Field(default_factory=list)
    active: bool = Field(default=True)
    next_run: int = Field(default=0)
    last_run: Optional[int] = Field(default=None)
    last_report_id: Optional[str] = Field(default=None)
    last_error: Optional[str] = Field(default=None)
    failure_count: int = Field(
        default=0, ge=0, description="Consecutive failed attempts for the current period."
    )
    pending_report_id: Optional[str] = Field(
        default=None, description="Report generated for the current period but not yet delivered."
    )
    pending_period: Optional[str] = Field(default=None, description="Period label of the pending report.")
