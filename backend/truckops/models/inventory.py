"""
Inventory models.

InventoryItem documents hold the current stock of one product for a tenant.
Every stock change is recorded as a StockMovement with the stock level
before and after the change. Items carry a ``version`` counter that each
adjustment increments; writes are conditioned on the version that was read.

MongoDB collections: ``inventory``, ``stock_movements``
"""

from __future__ import annotations

from enum import Enum
from typing import Optional

from pydantic import Field

from truckops.models.base import DEFAULT_TENANT, MongoBaseModel, generate_uuid


class MovementType(str, Enum):
    """Kind of stock movement."""

    IN = "in"
    OUT = "out"
    ADJUSTMENT = "adjustment"
    WASTE = "waste"


class InventoryItem(MongoBaseModel):
    """Current stock of one product."""

    item_id: str = Field(default_factory=generate_uuid)
    tenant_id: str = Field(default=DEFAULT_TENANT)
    product_name: str = Field(..., min_length=1)
    current_stock: float = Field(default=0)
    min_stock: float = Field(default=0, ge=0, description="Low-stock warning level.")
    category: str = Field(default="")
    unit: str = Field(default="pcs")
    cost_per_unit: float = Field(default=0, ge=0)
    version: int = Field(default=0, ge=0, description="Optimistic-concurrency token.")


class StockMovement(MongoBaseModel):
    """One recorded change to an item's stock."""

    movement_id: str = Field(default_factory=generate_uuid)
    tenant_id: str = Field(default=DEFAULT_TENANT)
    inventory_item_id: str = Field(...)
    product_name: str = Field(default="")
    type: MovementType = Field(...)
    quantity: float = Field(..., description="Quantity as entered by the operator.")
    previous_stock: float = Field(...)
    new_stock: float = Field(...)
    reason: str = Field(default="")
    reference: Optional[str] = Field(default=None)
    performed_by: str = Field(default="")
    cost: float = Field(default=0, description="Value lost for waste movements.")
