"""
Report document builder.

Shapes a pre-aggregated ``ReportPayload`` into a render-ready
``ReportDocument``: headline figures plus titled tables whose columns
depend on the report type. The renderers (PDF, Excel, CSV, JSON) only
ever see the document, so every layout decision lives here.
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Any, Callable, Optional

import orjson

from truckops.models.base import ensure_utc, utc_now
from truckops.models.report import ReportDocument, ReportPayload, ReportTable, ReportType

logger = logging.getLogger(__name__)

ORDER_DETAIL_LIMIT = 30
TOP_LIST_LIMIT = 10

DEFAULT_TITLES: dict[str, str] = {
    ReportType.SALES.value: "Sales Report",
    ReportType.ORDERS.value: "Order Overview",
    ReportType.INVENTORY.value: "Inventory Report",
    ReportType.CUSTOMERS.value: "Customer Report",
    ReportType.FINANCIAL.value: "Financial Report",
    ReportType.GENERIC.value: "Report",
}


# ---------------------------------------------------------------------------
# Formatting helpers
# ---------------------------------------------------------------------------


def format_currency(value: Any, currency: str = "CHF") -> str:
    """Format *value* as ``"CHF 1,234.50"``; negatives get a leading minus."""
    try:
        amount = float(value or 0)
    except (TypeError, ValueError):
        return str(value)
    sign = "-" if amount < 0 else ""
    return f"{sign}{currency} {abs(amount):,.2f}"


def format_percent(value: Any) -> str:
    try:
        return f"{float(value) * 100:.1f}%"
    except (TypeError, ValueError):
        return "0.0%"


def format_date(value: Any, fmt: str = "%d.%m.%Y") -> str:
    """Render datetimes, ISO strings and epoch-ms ints as *fmt*."""
    if value is None or value == "":
        return ""
    if isinstance(value, datetime):
        return ensure_utc(value).strftime(fmt)
    if isinstance(value, (int, float)):
        return datetime.fromtimestamp(value / 1000, tz=timezone.utc).strftime(fmt)
    try:
        return datetime.fromisoformat(str(value).replace("Z", "+00:00")).strftime(fmt)
    except ValueError:
        return str(value)


def _num(value: Any) -> float:
    try:
        return float(value or 0)
    except (TypeError, ValueError):
        return 0.0


def _label(key: str) -> str:
    return str(key).replace("_", " ").strip().capitalize()


def _breakdown_table(title: str, sheet: str, heading: str, counts: dict[str, Any]) -> ReportTable:
    return ReportTable(
        title=title,
        sheet_name=sheet,
        headers=[heading, "Count"],
        rows=[[_label(k), v] for k, v in (counts or {}).items()],
    )


# ---------------------------------------------------------------------------
# Per-type layouts
# ---------------------------------------------------------------------------


def _sales(payload: ReportPayload, currency: str) -> tuple[list[tuple[str, str]], list[ReportTable]]:
    s = payload.summary
    summary = [
        ("Total revenue", format_currency(s.get("total_revenue"), currency)),
        ("Orders", str(s.get("total_orders", 0))),
        ("Average order value", format_currency(s.get("average_order_value"), currency)),
        ("Items sold", str(s.get("items_sold", 0))),
    ]
    products = payload.tables.get("top_products", [])[:TOP_LIST_LIMIT]
    daily = payload.tables.get("sales_by_date", [])
    orders = payload.tables.get("orders", [])[:ORDER_DETAIL_LIMIT]
    tables = [
        ReportTable(
            title="Top 10 products",
            sheet_name="Top Products",
            headers=["Product", "Quantity", "Revenue"],
            rows=[[p.get("name", ""), p.get("quantity", 0), _num(p.get("revenue"))] for p in products],
            currency_columns=[2],
        ),
        ReportTable(
            title="Daily sales",
            sheet_name="Daily Sales",
            headers=["Date", "Revenue", "Orders", "Items"],
            rows=[
                [format_date(d.get("date")), _num(d.get("revenue")), d.get("orders", 0), d.get("items", 0)]
                for d in daily
            ],
            currency_columns=[1],
        ),
    ]
    if orders:
        tables.append(_order_table(orders, "Order details"))
    return summary, tables


def _order_table(orders: list[dict[str, Any]], title: str) -> ReportTable:
    rows = []
    for order in orders:
        number = order.get("order_number") or str(order.get("id", ""))[-6:]
        rows.append(
            [
                number,
                format_date(order.get("created_at"), "%d.%m %H:%M"),
                order.get("customer") or "Guest",
                _num(order.get("total")),
                _label(order.get("status", "")),
            ]
        )
    return ReportTable(
        title=title,
        sheet_name="Orders",
        headers=["Order #", "Time", "Customer", "Amount", "Status"],
        rows=rows,
        currency_columns=[3],
    )


def _orders(payload: ReportPayload, currency: str) -> tuple[list[tuple[str, str]], list[ReportTable]]:
    s = payload.summary
    summary = [
        ("Total orders", str(s.get("total_orders", 0))),
        ("Average preparation time", f"{s.get('average_preparation_time', 0)} minutes"),
    ]
    tables = [
        _breakdown_table("Orders by status", "By Status", "Status", s.get("orders_by_status", {})),
        _breakdown_table(
            "Payment methods", "Payment Methods", "Method", s.get("payment_methods", {})
        ),
        _order_table(payload.tables.get("orders", []), "Orders"),
    ]
    return summary, tables


def _inventory(payload: ReportPayload, currency: str) -> tuple[list[tuple[str, str]], list[ReportTable]]:
    s = payload.summary
    summary = [
        ("Total items", str(s.get("total_items", 0))),
        ("Items with low stock", str(s.get("low_stock_items", 0))),
        ("Total value", format_currency(s.get("total_value"), currency)),
    ]
    tables: list[ReportTable] = []
    low = payload.tables.get("low_stock", [])
    if low:
        tables.append(
            ReportTable(
                title="Low stock warning",
                sheet_name="Low Stock",
                headers=["Item", "Current stock", "Min. stock", "Unit"],
                rows=[
                    [i.get("name", ""), i.get("current_stock", 0), i.get("min_stock", 0), i.get("unit", "")]
                    for i in low
                ],
            )
        )
    items = payload.tables.get("items", [])
    tables.append(
        ReportTable(
            title="Full inventory",
            sheet_name="Inventory",
            headers=["Item", "Category", "Stock", "Unit", "Value"],
            rows=[
                [
                    i.get("name", ""),
                    i.get("category", ""),
                    i.get("current_stock", 0),
                    i.get("unit", ""),
                    _num(i.get("current_stock")) * _num(i.get("unit_cost")),
                ]
                for i in items
            ],
            currency_columns=[4],
        )
    )
    movements = s.get("movements_by_type")
    if movements:
        tables.append(_breakdown_table("Stock movements", "Movements", "Type", movements))
    return summary, tables


def _customers(payload: ReportPayload, currency: str) -> tuple[list[tuple[str, str]], list[ReportTable]]:
    s = payload.summary
    summary = [
        ("Total customers", str(s.get("total_customers", 0))),
        ("New customers", str(s.get("new_customers", 0))),
    ]
    top = payload.tables.get("top_customers", [])[:TOP_LIST_LIMIT]
    tables = [
        _breakdown_table("Customer segments", "Segments", "Segment", s.get("segments", {})),
        ReportTable(
            title="Top 10 customers by revenue",
            sheet_name="Top Customers",
            headers=["Customer", "Email", "Revenue"],
            rows=[[c.get("name", ""), c.get("email") or "-", _num(c.get("revenue"))] for c in top],
            currency_columns=[2],
        ),
    ]
    return summary, tables


def _financial(payload: ReportPayload, currency: str) -> tuple[list[tuple[str, str]], list[ReportTable]]:
    s = payload.summary
    def money(key: str) -> str:
        return format_currency(s.get(key), currency)

    summary = [
        ("Revenue (net)", money("revenue")),
        ("Taxes", money("tax")),
        ("Tips", money("tips")),
        ("Delivery fees", money("delivery_fees")),
        ("Discounts", "-" + money("discounts")),
        ("Total revenue", money("total_revenue")),
        ("Processing fees", "-" + money("processing_fees")),
        ("Net revenue", money("net_revenue")),
    ]
    total = _num(s.get("total_revenue"))
    payments = payload.tables.get("revenue_by_payment", [])
    tables = [
        ReportTable(
            title="Revenue by payment method",
            sheet_name="Payment Methods",
            headers=["Payment method", "Amount", "Share"],
            rows=[
                [
                    _label(p.get("method", "")),
                    _num(p.get("amount")),
                    format_percent(_num(p.get("amount")) / total) if total else "0.0%",
                ]
                for p in payments
            ],
            currency_columns=[1],
        )
    ]
    return summary, tables


def _stringify(value: Any) -> str:
    if isinstance(value, (dict, list)):
        return orjson.dumps(value, default=str).decode()
    return str(value)


def _generic(payload: ReportPayload, currency: str) -> tuple[list[tuple[str, str]], list[ReportTable]]:
    rows = [[key, _stringify(value)] for key, value in payload.summary.items()]
    rows.extend([name, _stringify(table)] for name, table in payload.tables.items())
    table = ReportTable(title="Report data", sheet_name="Data", headers=["Field", "Value"], rows=rows)
    return [], [table]


_LAYOUTS: dict[str, Callable[[ReportPayload, str], tuple[list[tuple[str, str]], list[ReportTable]]]] = {
    ReportType.SALES.value: _sales,
    ReportType.ORDERS.value: _orders,
    ReportType.INVENTORY.value: _inventory,
    ReportType.CUSTOMERS.value: _customers,
    ReportType.FINANCIAL.value: _financial,
}


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------


def build_report_document(
    payload: ReportPayload,
    generated_at: Optional[datetime] = None,
    currency: str = "CHF",
) -> ReportDocument:
    """Build the render-ready document for *payload*.

    Unknown report types use the generic key/value layout.

    Args:
        payload: Pre-aggregated report data.
        generated_at: Footer timestamp; defaults to now.
        currency: Currency code for money columns and figures.

    Returns:
        The ReportDocument consumed by every renderer.
    """
    report_type = payload.type if payload.type in _LAYOUTS else ReportType.GENERIC.value
    if report_type != payload.type:
        logger.debug("Unknown report type %r, using generic layout", payload.type)

    summary, tables = _LAYOUTS.get(report_type, _generic)(payload, currency)
    period = (
        f"{format_date(payload.date_range.start)} - {format_date(payload.date_range.end)}"
    )
    return ReportDocument(
        report_type=report_type,
        title=payload.title or DEFAULT_TITLES[report_type],
        subtitle=payload.tenant_name,
        period_label=period,
        summary=summary,
        tables=tables,
        generated_at=generated_at or utc_now(),
        currency=currency,
    )
