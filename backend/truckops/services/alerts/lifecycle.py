"""
Alert lifecycle state machine.

Transitions::

    active ──► acknowledged ──► resolved
      │              │             ▲
      └──► suppressed ◄┘           │
              └────────────────────┘

Every transition is a single conditional write: the update only matches
when the alert is still in one of the allowed source states, so two
operators racing on the same alert cannot both succeed. The sweep in
:meth:`AlertLifecycle.expire_suppressions` returns expired suppressions to
``active``; nothing else reverts a suppression.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any, Optional

from pydantic import BaseModel, Field

from truckops.core.exceptions import (
    InvalidTransitionException,
    NotFoundException,
    ValidationException,
)
from truckops.models.alert import Alert, AlertHistoryEntry, AlertState, BulkAction
from truckops.models.base import now_ms, utc_now

if TYPE_CHECKING:
    from motor.motor_asyncio import AsyncIOMotorDatabase

logger = logging.getLogger(__name__)

DEFAULT_SUPPRESS_MS = 3_600_000

_ACKNOWLEDGE_FROM = (AlertState.ACTIVE.value,)
_RESOLVE_FROM = (
    AlertState.ACTIVE.value,
    AlertState.ACKNOWLEDGED.value,
    AlertState.SUPPRESSED.value,
)
_SUPPRESS_FROM = (AlertState.ACTIVE.value, AlertState.ACKNOWLEDGED.value)


class BulkFailure(BaseModel):
    item_id: str
    error: str


class BulkActionResult(BaseModel):
    """Per-item outcome of a bulk lifecycle action."""

    action: str
    succeeded: list[str] = Field(default_factory=list)
    failed: list[BulkFailure] = Field(default_factory=list)

    @property
    def all_succeeded(self) -> bool:
        return not self.failed


class AlertLifecycle:
    """Apply lifecycle transitions to stored alerts.

    Args:
        db: Motor async database handle.
        default_suppress_ms: Duration used by bulk suppress when none is given.
    """

    def __init__(
        self,
        db: AsyncIOMotorDatabase,  # type: ignore[type-arg]
        default_suppress_ms: int = DEFAULT_SUPPRESS_MS,
    ) -> None:
        self._alerts = db["alerts"]
        self._default_suppress_ms = default_suppress_ms

    # ------------------------------------------------------------------
    # Single-alert transitions
    # ------------------------------------------------------------------

    async def acknowledge(
        self,
        tenant_id: str,
        alert_id: str,
        actor: str,
        now: Optional[int] = None,
    ) -> Alert:
        """Move an ``active`` alert to ``acknowledged``.

        Raises:
            NotFoundException: If the alert does not exist for the tenant.
            InvalidTransitionException: If the alert is not ``active``.
        """
        ts = now if now is not None else now_ms()
        return await self._transition(
            tenant_id,
            alert_id,
            action="acknowledge",
            allowed=_ACKNOWLEDGE_FROM,
            changes={
                "state": AlertState.ACKNOWLEDGED.value,
                "acknowledged_at": ts,
                "acknowledged_by": actor,
            },
            entry=AlertHistoryEntry(action="acknowledged", timestamp=ts, user=actor),
        )

    async def resolve(
        self,
        tenant_id: str,
        alert_id: str,
        actor: str,
        resolution: str = "",
        now: Optional[int] = None,
    ) -> Alert:
        """Move an open alert (active, acknowledged or suppressed) to ``resolved``.

        Raises:
            NotFoundException: If the alert does not exist for the tenant.
            InvalidTransitionException: If the alert is already resolved.
        """
        ts = now if now is not None else now_ms()
        return await self._transition(
            tenant_id,
            alert_id,
            action="resolve",
            allowed=_RESOLVE_FROM,
            changes={
                "state": AlertState.RESOLVED.value,
                "resolved_at": ts,
                "resolved_by": actor,
                "resolution": resolution,
            },
            entry=AlertHistoryEntry(
                action="resolved", timestamp=ts, user=actor, resolution=resolution
            ),
        )

    async def suppress(
        self,
        tenant_id: str,
        alert_id: str,
        duration_ms: int,
        actor: str,
        now: Optional[int] = None,
    ) -> Alert:
        """Silence an active or acknowledged alert for *duration_ms*.

        Raises:
            ValidationException: If *duration_ms* is not positive.
            NotFoundException: If the alert does not exist for the tenant.
            InvalidTransitionException: If the alert is resolved or already
                suppressed.
        """
        if duration_ms <= 0:
            raise ValidationException(
                "Suppression duration must be positive",
                detail={"duration_ms": duration_ms},
            )
        ts = now if now is not None else now_ms()
        return await self._transition(
            tenant_id,
            alert_id,
            action="suppress",
            allowed=_SUPPRESS_FROM,
            changes={
                "state": AlertState.SUPPRESSED.value,
                "suppressed_at": ts,
                "suppressed_by": actor,
                "suppress_until": ts + duration_ms,
            },
            entry=AlertHistoryEntry(action="suppressed", timestamp=ts, user=actor),
        )

    # ------------------------------------------------------------------
    # Bulk
    # ------------------------------------------------------------------

    async def bulk_apply(
        self,
        tenant_id: str,
        alert_ids: list[str],
        action: str,
        actor: str,
        duration_ms: Optional[int] = None,
    ) -> BulkActionResult:
        """Apply *action* to each alert independently.

        There is no transaction: a failing id is recorded in the result and
        the remaining ids are still processed.
        """
        action = getattr(action, "value", action)
        if action not in {a.value for a in BulkAction}:
            raise ValidationException(f"Unknown bulk action '{action}'")

        result = BulkActionResult(action=action)
        for alert_id in alert_ids:
            try:
                if action == BulkAction.ACKNOWLEDGE.value:
                    await self.acknowledge(tenant_id, alert_id, actor)
                elif action == BulkAction.RESOLVE.value:
                    await self.resolve(tenant_id, alert_id, actor)
                else:
                    await self.suppress(
                        tenant_id,
                        alert_id,
                        duration_ms or self._default_suppress_ms,
                        actor,
                    )
            except Exception as exc:
                logger.warning(
                    "Bulk %s failed for alert %s: %s",
                    action,
                    alert_id,
                    exc,
                    extra={"alert_id": alert_id, "tenant_id": tenant_id},
                )
                result.failed.append(BulkFailure(item_id=alert_id, error=str(exc)))
            else:
                result.succeeded.append(alert_id)

        logger.info(
            "Bulk %s: %d succeeded, %d failed",
            action,
            len(result.succeeded),
            len(result.failed),
            extra={"tenant_id": tenant_id},
        )
        return result

    # ------------------------------------------------------------------
    # Suppression expiry
    # ------------------------------------------------------------------

    async def expire_suppressions(
        self,
        now: Optional[int] = None,
        tenant_id: Optional[str] = None,
        actor: str = "system",
    ) -> list[str]:
        """Return expired suppressions to ``active``.

        Args:
            now: Reference time in epoch ms (defaults to the wall clock).
            tenant_id: Restrict the sweep to one tenant; all tenants when None.
            actor: Recorded on the ``unsuppressed`` history entry.

        Returns:
            The ids of the alerts that were re-activated.
        """
        ts = now if now is not None else now_ms()
        query: dict[str, Any] = {
            "state": AlertState.SUPPRESSED.value,
            "suppress_until": {"$lte": ts},
        }
        if tenant_id is not None:
            query["tenant_id"] = tenant_id

        expired = await self._alerts.find(query, {"_id": 0, "alert_id": 1}).to_list(length=None)
        reactivated: list[str] = []
        for doc in expired:
            entry = AlertHistoryEntry(action="unsuppressed", timestamp=ts, user=actor)
            result = await self._alerts.update_one(
                {"alert_id": doc["alert_id"], "state": AlertState.SUPPRESSED.value},
                {
                    "$set": {"state": AlertState.ACTIVE.value, "updated_at": utc_now()},
                    "$push": {"history": entry.model_dump()},
                },
            )
            if result.modified_count:
                reactivated.append(doc["alert_id"])

        if reactivated:
            logger.info("Re-activated %d expired suppressions", len(reactivated))
        return reactivated

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    async def _transition(
        self,
        tenant_id: str,
        alert_id: str,
        action: str,
        allowed: tuple[str, ...],
        changes: dict[str, Any],
        entry: AlertHistoryEntry,
    ) -> Alert:
        changes = {**changes, "updated_at": utc_now()}
        try:
            result = await self._alerts.update_one(
                {
                    "alert_id": alert_id,
                    "tenant_id": tenant_id,
                    "state": {"$in": list(allowed)},
                },
                {"$set": changes, "$push": {"history": entry.model_dump()}},
            )
        except Exception as exc:
            logger.error(
                "Failed to %s alert: %s",
                action,
                exc,
                extra={"alert_id": alert_id, "tenant_id": tenant_id},
            )
            raise

        doc = await self._alerts.find_one(
            {"alert_id": alert_id, "tenant_id": tenant_id}, {"_id": 0}
        )
        if doc is None:
            raise NotFoundException(resource="Alert", identifier=alert_id)

        alert = Alert.from_document(doc)
        if result.matched_count == 0:
            raise InvalidTransitionException(alert_id, str(alert.state), action)

        logger.info(
            "Alert %s: %s -> %s",
            action,
            alert_id,
            alert.state,
            extra={"alert_id": alert_id, "tenant_id": tenant_id, "actor": entry.user},
        )
        return alert
