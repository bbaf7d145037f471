#!/usr/bin/env python3
"""
Sample data seeder for TruckOps.

Creates realistic sample customers, orders, inventory, alert rules, alerts,
error events and a report schedule for demo and development environments.
Safe to run multiple times -- existing data is cleared before seeding.

Usage:
    python scripts/seed_data.py
    python scripts/seed_data.py --mongo-url mongodb://localhost:27017 --db truckops
"""

from __future__ import annotations

import argparse
import asyncio
import logging
import random
from datetime import datetime, timedelta, timezone
from uuid import uuid4

from motor.motor_asyncio import AsyncIOMotorClient

logging.basicConfig(level=logging.INFO, format="%(asctime)s %(levelname)s %(message)s")
logger = logging.getLogger("seed_data")

TENANT = "default"

MENU = [
    ("p-burger", "Classic Burger", 15.0),
    ("p-veggie", "Veggie Burger", 14.5),
    ("p-fries", "Fries", 5.0),
    ("p-sweet-fries", "Sweet Potato Fries", 6.5),
    ("p-soda", "Soda", 4.0),
    ("p-lemonade", "Homemade Lemonade", 5.5),
]


def _uuid() -> str:
    return str(uuid4())


def _now() -> datetime:
    return datetime.now(timezone.utc)


def _days_ago(n: float) -> datetime:
    return _now() - timedelta(days=n)


def _ms(dt: datetime) -> int:
    return int(dt.timestamp() * 1000)


# ---------------------------------------------------------------------------
# Sample data generators
# ---------------------------------------------------------------------------


def _generate_customers() -> list[dict]:
    """Generate sample customer records."""
    names = [
        ("cust-001", "Anna Muster", "anna@example.ch", "gold"),
        ("cust-002", "Ben Beispiel", "ben@example.ch", "silver"),
        ("cust-003", "Chiara Rossi", "chiara@example.ch", None),
        ("cust-004", "David Keller", "david@example.ch", "bronze"),
        ("cust-005", "Elif Yilmaz", "elif@example.ch", None),
    ]
    return [
        {
            "customer_id": customer_id,
            "tenant_id": TENANT,
            "name": name,
            "email": email,
            "loyalty_tier": tier,
            "created_at": _days_ago(60 - i * 10),
        }
        for i, (customer_id, name, email, tier) in enumerate(names)
    ]


def _generate_orders(customers: list[dict], count: int = 120) -> list[dict]:
    """Generate orders spread over the last 30 days."""
    rng = random.Random(42)
    statuses = ["completed"] * 8 + ["delivered", "cancelled"]
    orders = []
    for n in range(count):
        customer = rng.choice(customers)
        lines = rng.sample(MENU, k=rng.randint(1, 3))
        items = [
            {"product_id": pid, "name": name, "quantity": rng.randint(1, 3), "price": price}
            for pid, name, price in lines
        ]
        subtotal = round(sum(i["price"] * i["quantity"] for i in items), 2)
        order_type = rng.choice(["pickup", "pickup", "delivery"])
        delivery_fee = 5.0 if order_type == "delivery" else 0.0
        tax = round(subtotal * 0.077, 2)
        tip = rng.choice([0.0, 0.0, 1.0, 2.0])
        created = _days_ago(rng.uniform(0, 30))
        status = rng.choice(statuses)
        order = {
            "order_id": _uuid(),
            "order_number": str(1000 + n),
            "tenant_id": TENANT,
            "customer_id": customer["customer_id"],
            "customer_name": customer["name"],
            "status": status,
            "payment_method": rng.choice(["card", "cash", "twint"]),
            "type": order_type,
            "subtotal": subtotal,
            "tax": tax,
            "tip": tip,
            "delivery_fee": delivery_fee,
            "discount": 0.0,
            "total": round(subtotal + tax + tip + delivery_fee, 2),
            "items": items,
            "created_at": created,
        }
        if status == "completed":
            order["completed_at"] = created + timedelta(minutes=rng.randint(5, 25))
        orders.append(order)
    return orders


def _generate_inventory() -> list[dict]:
    """Generate inventory items, two of them below their minimum."""
    rows = [
        ("Beef patties", 80, 30, "meat", "pcs", 2.4),
        ("Brioche buns", 25, 40, "bakery", "pcs", 0.6),
        ("Cheddar", 4, 2, "dairy", "kg", 12.5),
        ("Potatoes", 35, 20, "produce", "kg", 1.2),
        ("Sweet potatoes", 6, 10, "produce", "kg", 2.8),
        ("Frying oil", 18, 10, "pantry", "l", 3.1),
    ]
    return [
        {
            "item_id": _uuid(),
            "tenant_id": TENANT,
            "product_name": name,
            "current_stock": stock,
            "min_stock": minimum,
            "category": category,
            "unit": unit,
            "cost_per_unit": cost,
            "version": 0,
            "created_at": _days_ago(30),
            "updated_at": _days_ago(1),
        }
        for name, stock, minimum, category, unit, cost in rows
    ]


def _generate_alert_rules() -> list[dict]:
    """Generate alert rules for the host metrics and the order pipeline."""
    base = {
        "tenant_id": TENANT,
        "enabled": True,
        "channels": ["push", "email"],
        "recipients": ["ops@foodtruck.example"],
        "trigger_count": 0,
        "created_by": "seed",
        "created_at": _days_ago(14),
        "updated_at": _days_ago(14),
    }
    return [
        {
            **base,
            "rule_id": "rule-cpu-high",
            "name": "High CPU",
            "description": "CPU usage on the order API host",
            "metric": "cpu",
            "operator": "gt",
            "threshold": 90,
            "severity": "high",
            "category": "performance",
            "tags": ["host"],
        },
        {
            **base,
            "rule_id": "rule-disk-full",
            "name": "Disk almost full",
            "description": "Free disk space on the POS box",
            "metric": "disk",
            "operator": "gte",
            "threshold": 95,
            "severity": "critical",
            "category": "system",
            "tags": ["host"],
        },
        {
            **base,
            "rule_id": "rule-error-rate",
            "name": "Checkout errors",
            "description": "Average checkout error rate over five minutes",
            "metric": "error_rate",
            "operator": "gt",
            "threshold": 5,
            "time_window": "5m",
            "severity": "medium",
            "category": "business",
            "tags": ["checkout"],
        },
    ]


def _generate_alerts() -> list[dict]:
    """Generate alerts in every lifecycle state."""
    base = {"tenant_id": TENANT, "source": "alert-engine", "tags": [], "history": []}
    return [
        {
            **base,
            "alert_id": _uuid(),
            "rule_id": "rule-cpu-high",
            "severity": "high",
            "category": "performance",
            "message": "High CPU: cpu is 96.0 (threshold 90)",
            "metric": "cpu",
            "value": 96.0,
            "threshold": 90,
            "timestamp": _ms(_days_ago(0.05)),
            "state": "active",
        },
        {
            **base,
            "alert_id": _uuid(),
            "rule_id": "rule-error-rate",
            "severity": "medium",
            "category": "business",
            "message": "Checkout errors: error_rate is 7.5 (threshold 5)",
            "metric": "error_rate",
            "value": 7.5,
            "threshold": 5,
            "timestamp": _ms(_days_ago(0.5)),
            "state": "acknowledged",
            "acknowledged_at": _ms(_days_ago(0.45)),
            "acknowledged_by": "chef",
        },
        {
            **base,
            "alert_id": _uuid(),
            "rule_id": "rule-disk-full",
            "severity": "critical",
            "category": "system",
            "message": "Disk almost full: disk is 97.0 (threshold 95)",
            "metric": "disk",
            "value": 97.0,
            "threshold": 95,
            "timestamp": _ms(_days_ago(3)),
            "state": "resolved",
            "resolved_at": _ms(_days_ago(2.9)),
            "resolved_by": "chef",
            "resolution": "Rotated old receipts",
        },
    ]


def _generate_errors() -> list[dict]:
    """Generate client error events."""
    return [
        {
            "error_id": _uuid(),
            "tenant_id": TENANT,
            "message": "TypeError: cart is undefined",
            "stack": "TypeError: cart is undefined\n    at addItem (app.js:10:5)",
            "severity": "error",
            "category": "javascript",
            "browser": "chrome",
            "platform": "mobile",
            "url": "/menu",
            "user_id": "cust-001",
            "timestamp": _ms(_days_ago(0.2)),
            "resolved": False,
        },
        {
            "error_id": _uuid(),
            "tenant_id": TENANT,
            "message": "Payment gateway timeout",
            "severity": "critical",
            "category": "payment",
            "browser": "safari",
            "platform": "mobile",
            "url": "/checkout",
            "user_id": "cust-002",
            "timestamp": _ms(_days_ago(1)),
            "resolved": False,
        },
        {
            "error_id": _uuid(),
            "tenant_id": TENANT,
            "message": "Order API returned 500",
            "severity": "error",
            "category": "api",
            "browser": "firefox",
            "platform": "desktop",
            "url": "/orders",
            "timestamp": _ms(_days_ago(4)),
            "resolved": True,
            "resolved_at": _ms(_days_ago(3.5)),
            "resolved_by": "chef",
        },
    ]


def _generate_schedules() -> list[dict]:
    """Generate a weekly sales report schedule."""
    return [
        {
            "schedule_id": _uuid(),
            "tenant_id": TENANT,
            "report_type": "sales",
            "format": "pdf",
            "frequency": "weekly",
            "recipients": ["owner@foodtruck.example"],
            "active": True,
            "next_run": _ms(_now() + timedelta(days=1)),
            "failure_count": 0,
            "created_at": _days_ago(7),
            "updated_at": _days_ago(7),
        }
    ]


# ---------------------------------------------------------------------------
# Main
# ---------------------------------------------------------------------------


async def seed(mongo_url: str, db_name: str) -> None:
    """Seed the database with sample data."""
    client: AsyncIOMotorClient = AsyncIOMotorClient(mongo_url)  # type: ignore[type-arg]
    db = client[db_name]

    logger.info("Seeding database: %s", db_name)

    customers = _generate_customers()
    seeded = {
        "customers": customers,
        "orders": _generate_orders(customers),
        "inventory": _generate_inventory(),
        "alert_rules": _generate_alert_rules(),
        "alerts": _generate_alerts(),
        "errors": _generate_errors(),
        "scheduled_reports": _generate_schedules(),
    }

    for coll_name, docs in seeded.items():
        count = await db[coll_name].count_documents({})
        if count > 0:
            await db[coll_name].delete_many({})
            logger.info("  Cleared %d documents from %s", count, coll_name)
        await db[coll_name].insert_many(docs)
        logger.info("  Inserted %d documents into %s", len(docs), coll_name)

    logger.info("Seeding complete.")
    client.close()


def main() -> None:
    parser = argparse.ArgumentParser(description="Seed TruckOps database with sample data.")
    parser.add_argument(
        "--mongo-url",
        default="mongodb://localhost:27017",
        help="MongoDB connection URI (default: mongodb://localhost:27017)",
    )
    parser.add_argument(
        "--db",
        default="truckops",
        help="Database name (default: truckops)",
    )
    args = parser.parse_args()

    asyncio.run(seed(args.mongo_url, args.db))


if __name__ == "__main__":
    main()
