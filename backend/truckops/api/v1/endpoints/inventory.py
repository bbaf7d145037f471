"""
Inventory endpoints.

Item creation and lookup, stock adjustments (guarded by the item's
version against concurrent edits) and the movement history of an item.
"""

from __future__ import annotations

import logging
from typing import Optional

from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel, Field

from truckops.api.v1.dependencies import get_inventory_service, get_tenant_id
from truckops.models.inventory import InventoryItem, MovementType, StockMovement
from truckops.services.inventory.service import InventoryService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/inventory", tags=["inventory"])


# ---------------------------------------------------------------------------
# Schemas
# ---------------------------------------------------------------------------


class CreateItemRequest(BaseModel):
    product_name: str = Field(..., min_length=1, max_length=200)
    current_stock: float = 0
    min_stock: float = Field(default=0, ge=0)
    category: str = ""
    unit: str = "pcs"
    cost_per_unit: float = Field(default=0, ge=0)


class AdjustStockRequest(BaseModel):
    type: MovementType = Field(..., description="in, out, adjustment or waste.")
    quantity: float = Field(..., description="Amount moved; signed for adjustments.")
    reason: str = Field(..., description="Why the stock changed.")
    performed_by: str = Field(default="", description="Operator recording the movement.")
    reference: Optional[str] = Field(default=None, description="Order or delivery reference.")
    expected_version: Optional[int] = Field(
        default=None,
        ge=0,
        description="Item version the client last saw; rejects the change if it moved on.",
    )


class MovementListResponse(BaseModel):
    movements: list[StockMovement] = Field(default_factory=list)
    total: int = 0


# ---------------------------------------------------------------------------
# Endpoints
# ---------------------------------------------------------------------------


@router.post("", response_model=InventoryItem, status_code=201, summary="Create an inventory item")
async def create_item(
    body: CreateItemRequest,
    tenant_id: str = Depends(get_tenant_id),
    service: InventoryService = Depends(get_inventory_service),
) -> InventoryItem:
    return await service.create_item(tenant_id, body.model_dump())


@router.get("/{item_id}", response_model=InventoryItem, summary="Get an inventory item")
async def get_item(
    item_id: str,
    tenant_id: str = Depends(get_tenant_id),
    service: InventoryService = Depends(get_inventory_service),
) -> InventoryItem:
    return await service.get_item(tenant_id, item_id)


@router.post(
    "/{item_id}/adjust",
    response_model=StockMovement,
    status_code=201,
    summary="Adjust stock and record the movement",
)
async def adjust_stock(
    item_id: str,
    body: AdjustStockRequest,
    tenant_id: str = Depends(get_tenant_id),
    service: InventoryService = Depends(get_inventory_service),
) -> StockMovement:
    return await service.adjust_stock(
        tenant_id,
        item_id,
        body.type,
        body.quantity,
        body.reason,
        body.performed_by,
        reference=body.reference,
        expected_version=body.expected_version,
    )


@router.get(
    "/{item_id}/movements",
    response_model=MovementListResponse,
    summary="Stock movements of an item, newest first",
)
async def list_movements(
    item_id: str,
    limit: int = Query(default=100, ge=1, le=1000),
    tenant_id: str = Depends(get_tenant_id),
    service: InventoryService = Depends(get_inventory_service),
) -> MovementListResponse:
    movements = await service.list_movements(tenant_id, item_id, limit=limit)
    return MovementListResponse(movements=movements, total=len(movements))
