"""
Report data aggregation.

Pure functions that turn raw ``orders``, ``customers``, ``inventory`` and
``stock_movements`` documents into the pre-aggregated ``ReportPayload``
the builder consumes. Order timestamps may be stored as datetimes, ISO
strings or epoch milliseconds; all three are accepted.
"""

from __future__ import annotations

from collections import Counter, defaultdict
from datetime import datetime, timezone
from typing import Any, Optional

from truckops.models.base import ensure_utc
from truckops.models.report import DateRange, ReportPayload, ReportType

PROCESSING_FEE_RATE = 0.029
PROCESSING_FEE_FIXED = 0.30
SETTLED_STATUSES = ("completed", "delivered")
ORDER_ROW_LIMIT = 100
MOVEMENT_ROW_LIMIT = 100


def to_datetime(value: Any) -> Optional[datetime]:
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        return ensure_utc(value)
    if isinstance(value, (int, float)):
        return datetime.fromtimestamp(value / 1000, tz=timezone.utc)
    try:
        return ensure_utc(datetime.fromisoformat(str(value).replace("Z", "+00:00")))
    except ValueError:
        return None


def in_range(value: Any, date_range: DateRange) -> bool:
    ts = to_datetime(value)
    if ts is None:
        return False
    return ensure_utc(date_range.start) <= ts <= ensure_utc(date_range.end)


def _f(value: Any) -> float:
    try:
        return float(value or 0)
    except (TypeError, ValueError):
        return 0.0


def _item_count(order: dict[str, Any]) -> float:
    return sum(_f(item.get("quantity")) for item in order.get("items") or [])


def _order_row(order: dict[str, Any]) -> dict[str, Any]:
    return {
        "order_number": order.get("order_number"),
        "id": order.get("order_id", ""),
        "created_at": to_datetime(order.get("created_at")),
        "customer": order.get("customer_name"),
        "total": _f(order.get("total")),
        "status": order.get("status", ""),
    }


# ---------------------------------------------------------------------------
# Per-type aggregation
# ---------------------------------------------------------------------------


def aggregate_sales(orders: list[dict[str, Any]], date_range: DateRange) -> ReportPayload:
    total_revenue = sum(_f(o.get("total")) for o in orders)
    items_sold = sum(_item_count(o) for o in orders)

    by_date: dict[str, dict[str, float]] = defaultdict(lambda: {"revenue": 0.0, "orders": 0, "items": 0.0})
    products: dict[str, dict[str, Any]] = {}
    for order in orders:
        ts = to_datetime(order.get("created_at"))
        if ts is not None:
            day = by_date[ts.date().isoformat()]
            day["revenue"] += _f(order.get("total"))
            day["orders"] += 1
            day["items"] += _item_count(order)
        for item in order.get("items") or []:
            key = item.get("product_id") or item.get("name", "")
            entry = products.setdefault(key, {"name": item.get("name", ""), "quantity": 0.0, "revenue": 0.0})
            entry["quantity"] += _f(item.get("quantity"))
            entry["revenue"] += _f(item.get("price")) * _f(item.get("quantity"))

    top = sorted(products.values(), key=lambda p: p["revenue"], reverse=True)[:10]
    return ReportPayload(
        type=ReportType.SALES.value,
        date_range=date_range,
        summary={
            "total_revenue": total_revenue,
            "total_orders": len(orders),
            "average_order_value": total_revenue / len(orders) if orders else 0,
            "items_sold": items_sold,
        },
        tables={
            "top_products": top,
            "sales_by_date": [{"date": d, **v} for d, v in sorted(by_date.items())],
            "orders": [_order_row(o) for o in orders[:ORDER_ROW_LIMIT]],
        },
    )


def aggregate_orders(orders: list[dict[str, Any]], date_range: DateRange) -> ReportPayload:
    prep_minutes: list[float] = []
    for order in orders:
        if order.get("status") != "completed":
            continue
        created = to_datetime(order.get("created_at"))
        completed = to_datetime(order.get("completed_at"))
        if created and completed:
            prep_minutes.append((completed - created).total_seconds() / 60)

    return ReportPayload(
        type=ReportType.ORDERS.value,
        date_range=date_range,
        summary={
            "total_orders": len(orders),
            "orders_by_status": dict(Counter(o.get("status", "unknown") for o in orders)),
            "payment_methods": dict(Counter(o.get("payment_method", "unknown") for o in orders)),
            "order_types": dict(Counter(o.get("type", "unknown") for o in orders)),
            "average_preparation_time": round(sum(prep_minutes) / len(prep_minutes)) if prep_minutes else 0,
        },
        tables={"orders": [_order_row(o) for o in orders]},
    )


def aggregate_inventory(
    items: list[dict[str, Any]],
    movements: list[dict[str, Any]],
    date_range: DateRange,
) -> ReportPayload:
    rows = [
        {
            "name": i.get("product_name", ""),
            "category": i.get("category", ""),
            "current_stock": _f(i.get("current_stock")),
            "min_stock": _f(i.get("min_stock")),
            "unit": i.get("unit", ""),
            "unit_cost": _f(i.get("cost_per_unit")),
        }
        for i in items
    ]
    low = [r for r in rows if r["current_stock"] <= r["min_stock"]]
    return ReportPayload(
        type=ReportType.INVENTORY.value,
        date_range=date_range,
        summary={
            "total_items": len(rows),
            "low_stock_items": len(low),
            "total_value": sum(r["current_stock"] * r["unit_cost"] for r in rows),
            "movements_by_type": dict(Counter(m.get("type", "unknown") for m in movements)),
        },
        tables={
            "items": rows,
            "low_stock": low,
            "movements": movements[:MOVEMENT_ROW_LIMIT],
        },
    )


def aggregate_customers(
    customers: list[dict[str, Any]],
    orders: list[dict[str, Any]],
    date_range: DateRange,
) -> ReportPayload:
    by_id = {c.get("customer_id"): c for c in customers}
    revenue: dict[str, float] = defaultdict(float)
    for order in orders:
        if order.get("customer_id"):
            revenue[order["customer_id"]] += _f(order.get("total"))

    top = []
    for customer_id, amount in sorted(revenue.items(), key=lambda kv: kv[1], reverse=True)[:10]:
        customer = by_id.get(customer_id, {})
        top.append(
            {
                "id": customer_id,
                "name": customer.get("name", "Unknown"),
                "email": customer.get("email"),
                "revenue": amount,
            }
        )

    new = [c for c in customers if in_range(c.get("created_at"), date_range)]
    return ReportPayload(
        type=ReportType.CUSTOMERS.value,
        date_range=date_range,
        summary={
            "total_customers": len(customers),
            "new_customers": len(new),
            "segments": dict(Counter(c.get("loyalty_tier") or "none" for c in customers)),
        },
        tables={"top_customers": top},
    )


def aggregate_financial(orders: list[dict[str, Any]], date_range: DateRange) -> ReportPayload:
    """Settle completed/delivered orders into revenue, fees and net figures.

    Processing fees are estimated at 2.9% of the order total plus 0.30 per
    order.
    """
    settled = [o for o in orders if o.get("status") in SETTLED_STATUSES]
    revenue = sum(_f(o.get("subtotal")) for o in settled)
    tax = sum(_f(o.get("tax")) for o in settled)
    tips = sum(_f(o.get("tip")) for o in settled)
    delivery = sum(_f(o.get("delivery_fee")) for o in settled)
    discounts = sum(_f(o.get("discount")) for o in settled)
    total_revenue = revenue + tax + tips + delivery - discounts
    fees = sum(_f(o.get("total")) * PROCESSING_FEE_RATE + PROCESSING_FEE_FIXED for o in settled)

    by_payment: dict[str, float] = defaultdict(float)
    for order in settled:
        by_payment[order.get("payment_method", "unknown")] += _f(order.get("total"))

    return ReportPayload(
        type=ReportType.FINANCIAL.value,
        date_range=date_range,
        summary={
            "revenue": revenue,
            "tax": tax,
            "tips": tips,
            "delivery_fees": delivery,
            "discounts": discounts,
            "total_revenue": total_revenue,
            "processing_fees": fees,
            "net_revenue": total_revenue - fees,
            "order_count": len(settled),
            "average_order_value": total_revenue / len(settled) if settled else 0,
        },
        tables={
            "revenue_by_payment": [{"method": m, "amount": a} for m, a in by_payment.items()],
        },
    )
