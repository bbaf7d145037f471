"""
Inventory stock adjustments.

Stock changes are written with an optimistic-concurrency check: the update
filters on the item's ``version`` as read and increments it, so a
concurrent adjustment from another session makes this write match nothing
and fail loudly instead of silently overwriting the other change. The
stock movement is recorded only after the item write succeeded.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any, Optional

from pydantic import ValidationError

from truckops.core.exceptions import (
    AppException,
    ConflictException,
    NotFoundException,
    ValidationException,
)
from truckops.models.base import utc_now
from truckops.models.inventory import InventoryItem, MovementType, StockMovement
from truckops.services.email.templates import render_low_stock_email

if TYPE_CHECKING:
    from motor.motor_asyncio import AsyncIOMotorDatabase

    from truckops.services.email.client import EmailClient

logger = logging.getLogger(__name__)


def stock_delta(movement_type: str, quantity: float) -> float:
    """Signed change in stock for a movement.

    ``in`` adds ``|q|``; ``out`` and ``waste`` remove ``|q|``; ``adjustment``
    applies ``q`` with its sign.
    """
    movement_type = getattr(movement_type, "value", movement_type)
    if movement_type == MovementType.IN.value:
        return abs(quantity)
    if movement_type in (MovementType.OUT.value, MovementType.WASTE.value):
        return -abs(quantity)
    if movement_type == MovementType.ADJUSTMENT.value:
        return quantity
    raise ValidationException(f"Unknown movement type '{movement_type}'")


class InventoryService:
    """Inventory items and their stock movements.

    Args:
        db: Motor async database handle.
        email_client: Used for low-stock notifications; optional.
        low_stock_recipients: Addresses notified on low stock.
    """

    def __init__(
        self,
        db: AsyncIOMotorDatabase,  # type: ignore[type-arg]
        email_client: Optional[EmailClient] = None,
        low_stock_recipients: Optional[list[str]] = None,
    ) -> None:
        self._items = db["inventory"]
        self._movements = db["stock_movements"]
        self._email = email_client
        self._recipients = list(low_stock_recipients or [])

    async def create_item(self, tenant_id: str, data: dict[str, Any]) -> InventoryItem:
        try:
            item = InventoryItem.model_validate({**data, "tenant_id": tenant_id, "version": 0})
        except ValidationError as exc:
            raise ValidationException(
                "Invalid inventory item",
                errors=[
                    {"loc": ".".join(str(p) for p in err["loc"]), "msg": err["msg"]}
                    for err in exc.errors()
                ],
            ) from exc
        await self._items.insert_one(item.to_document())
        return item

    async def get_item(self, tenant_id: str, item_id: str) -> InventoryItem:
        doc = await self._items.find_one({"item_id": item_id, "tenant_id": tenant_id}, {"_id": 0})
        if doc is None:
            raise NotFoundException(resource="Inventory item", identifier=item_id)
        return InventoryItem.from_document(doc)

    async def adjust_stock(
        self,
        tenant_id: str,
        item_id: str,
        movement_type: str,
        quantity: float,
        reason: str,
        performed_by: str,
        reference: Optional[str] = None,
        expected_version: Optional[int] = None,
    ) -> StockMovement:
        """Apply a stock movement and record it.

        Args:
            expected_version: Version the caller last saw. When omitted the
                version read here is used, which still protects against
                writes landing between this read and the update.

        Raises:
            ValidationException: For a zero quantity, an empty reason or an
                unknown movement type.
            NotFoundException: If the item does not exist for the tenant.
            ConflictException: If the item changed since it was read.
        """
        if quantity == 0:
            raise ValidationException("Quantity must not be zero")
        if not reason or not reason.strip():
            raise ValidationException("A reason is required for stock adjustments")

        delta = stock_delta(movement_type, quantity)
        item = await self.get_item(tenant_id, item_id)
        version = item.version if expected_version is None else expected_version

        previous = item.current_stock
        new_stock = previous + delta
        result = await self._items.update_one(
            {"item_id": item_id, "tenant_id": tenant_id, "version": version},
            {
                "$set": {
                    "current_stock": new_stock,
                    "last_counted": utc_now(),
                    "updated_at": utc_now(),
                },
                "$inc": {"version": 1},
            },
        )
        if result.matched_count == 0:
            logger.warning(
                "Concurrent stock change detected",
                extra={"item_id": item_id, "tenant_id": tenant_id, "version": version},
            )
            raise ConflictException(
                resource="Inventory item",
                identifier=item_id,
                detail={"expected_version": version},
            )

        movement_type = getattr(movement_type, "value", movement_type)
        movement = StockMovement(
            tenant_id=tenant_id,
            inventory_item_id=item_id,
            product_name=item.product_name,
            type=movement_type,
            quantity=quantity,
            previous_stock=previous,
            new_stock=new_stock,
            reason=reason,
            reference=reference,
            performed_by=performed_by,
            cost=item.cost_per_unit * abs(quantity) if movement_type == MovementType.WASTE.value else 0,
        )
        await self._movements.insert_one(movement.to_document())
        logger.info(
            "Stock %s for %s: %s -> %s",
            movement_type,
            item.product_name,
            previous,
            new_stock,
            extra={"item_id": item_id, "tenant_id": tenant_id},
        )

        if new_stock <= item.min_stock:
            await self._notify_low_stock(item, new_stock)
        return movement

    async def list_movements(
        self,
        tenant_id: str,
        item_id: str,
        limit: int = 100,
    ) -> list[StockMovement]:
        cursor = (
            self._movements.find(
                {"tenant_id": tenant_id, "inventory_item_id": item_id}, {"_id": 0}
            )
            .sort("created_at", -1)
            .limit(limit)
        )
        return StockMovement.parse_many(await cursor.to_list(length=limit))

    async def _notify_low_stock(self, item: InventoryItem, stock: float) -> None:
        if self._email is None or not self._recipients:
            logger.info(
                "Low stock for %s (%s %s); no recipients configured",
                item.product_name,
                stock,
                item.unit,
                extra={"item_id": item.item_id},
            )
            return
        subject, html, text = render_low_stock_email(item, stock)
        try:
            await self._email.send(
                to=self._recipients,
                subject=subject,
                html=html,
                text=text,
                metadata={"item_id": item.item_id, "tenant_id": item.tenant_id},
            )
        except AppException as exc:
            logger.warning(
                "Low-stock email failed: %s",
                exc.message,
                extra={"item_id": item.item_id},
            )
