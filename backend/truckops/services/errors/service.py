"""
Error tracking service.

Stores error events reported by the client apps and serves the grouped,
filtered view used by the control panel.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any, Optional

from pydantic import ValidationError

from truckops.config import Settings, get_settings
from truckops.core.exceptions import NotFoundException, ValidationException
from truckops.models.base import now_ms, utc_now
from truckops.models.error_event import ErrorEvent
from truckops.services.alerts.lifecycle import BulkActionResult, BulkFailure
from truckops.services.errors.tracking import (
    calculate_error_stats,
    filter_errors,
    group_errors_by_message,
)

if TYPE_CHECKING:
    from motor.motor_asyncio import AsyncIOMotorDatabase

logger = logging.getLogger(__name__)


class ErrorService:
    """CRUD and reporting over the ``errors`` collection.

    Args:
        db: Motor async database handle.
        settings: Application settings (retrieval limit, default actor).
    """

    def __init__(
        self,
        db: AsyncIOMotorDatabase,  # type: ignore[type-arg]
        settings: Optional[Settings] = None,
    ) -> None:
        self._settings = settings or get_settings()
        self._collection = db["errors"]

    async def record(self, tenant_id: str, data: dict[str, Any]) -> ErrorEvent:
        """Store a reported error.

        Raises:
            ValidationException: If *data* is not a valid error event.
        """
        try:
            event = ErrorEvent.model_validate({**data, "tenant_id": tenant_id})
        except ValidationError as exc:
            raise ValidationException(
                "Invalid error event",
                errors=[
                    {"loc": ".".join(str(p) for p in err["loc"]), "msg": err["msg"]}
                    for err in exc.errors()
                ],
            ) from exc

        await self._collection.insert_one(event.to_document())
        logger.debug("Recorded error event", extra={"error_id": event.error_id, "tenant_id": tenant_id})
        return event

    async def recent_errors(self, tenant_id: str) -> list[ErrorEvent]:
        limit = self._settings.ERROR_RETRIEVAL_LIMIT
        cursor = (
            self._collection.find({"tenant_id": tenant_id}, {"_id": 0})
            .sort("timestamp", -1)
            .limit(limit)
        )
        return ErrorEvent.parse_many(await cursor.to_list(length=limit))

    async def list_errors(
        self,
        tenant_id: str,
        now: Optional[int] = None,
        **filters: Any,
    ) -> dict[str, Any]:
        """Return filtered errors, their message groups and statistics."""
        ts = now if now is not None else now_ms()
        errors = await self.recent_errors(tenant_id)
        filtered = filter_errors(errors, now=ts, **filters)
        return {
            "errors": filtered,
            "groups": group_errors_by_message(filtered),
            "stats": calculate_error_stats(filtered, now=ts),
            "total": len(filtered),
        }

    async def resolve(self, tenant_id: str, error_id: str, actor: Optional[str] = None) -> ErrorEvent:
        ts = now_ms()
        result = await self._collection.update_one(
            {"error_id": error_id, "tenant_id": tenant_id},
            {
                "$set": {
                    "resolved": True,
                    "resolved_at": ts,
                    "resolved_by": actor or self._settings.ALERT_ACTOR,
                    "updated_at": utc_now(),
                }
            },
        )
        if result.matched_count == 0:
            raise NotFoundException(resource="Error", identifier=error_id)
        doc = await self._collection.find_one({"error_id": error_id}, {"_id": 0})
        return ErrorEvent.from_document(doc)

    async def bulk_resolve(
        self,
        tenant_id: str,
        error_ids: list[str],
        actor: Optional[str] = None,
    ) -> BulkActionResult:
        result = BulkActionResult(action="resolve")
        for error_id in error_ids:
            try:
                await self.resolve(tenant_id, error_id, actor)
            except Exception as exc:
                logger.warning(
                    "Bulk resolve failed for error %s: %s",
                    error_id,
                    exc,
                    extra={"tenant_id": tenant_id},
                )
                result.failed.append(BulkFailure(item_id=error_id, error=str(exc)))
            else:
                result.succeeded.append(error_id)
        return result

    async def delete(self, tenant_id: str, error_id: str) -> dict[str, Any]:
        result = await self._collection.delete_one({"error_id": error_id, "tenant_id": tenant_id})
        if result.deleted_count == 0:
            raise NotFoundException(resource="Error", identifier=error_id)
        logger.info("Deleted error event", extra={"error_id": error_id, "tenant_id": tenant_id})
        return {"error_id": error_id, "message": "Error has been deleted."}

    async def export(self, tenant_id: str, now: Optional[int] = None, **filters: Any) -> dict[str, Any]:
        listing = await self.list_errors(tenant_id, now=now, **filters)
        return {
            "export_date": utc_now().isoformat(),
            "tenant_id": tenant_id,
            "filters": {k: v for k, v in filters.items() if v is not None},
            "errors": [e.model_dump(mode="json") for e in listing["errors"]],
            "stats": listing["stats"].model_dump(mode="json"),
        }
