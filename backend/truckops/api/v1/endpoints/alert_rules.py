"""
Alert rule endpoints.

CRUD over the tenant's threshold rules. Field values (metric, operator,
severity and the rest) are validated by the service against the rule
model so invalid combinations surface as a single validation error.
"""

from __future__ import annotations

import logging
from typing import Any, Optional

from fastapi import APIRouter, Depends
from pydantic import BaseModel, Field

from truckops.api.v1.dependencies import get_alert_service, get_tenant_id
from truckops.models.alert import AlertRule
from truckops.services.alerts.service import AlertService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/alert-rules", tags=["alert-rules"])


# ---------------------------------------------------------------------------
# Schemas
# ---------------------------------------------------------------------------


class RuleFields(BaseModel):
    """Editable rule fields; all optional so the same shape serves PATCH."""

    name: Optional[str] = None
    description: Optional[str] = None
    metric: Optional[str] = None
    operator: Optional[str] = None
    threshold: Optional[Any] = None
    time_window: Optional[str] = None
    severity: Optional[str] = None
    category: Optional[str] = None
    enabled: Optional[bool] = None
    channels: Optional[list[str]] = None
    recipients: Optional[list[str]] = None
    tags: Optional[list[str]] = None
    actor: Optional[str] = Field(default=None, description="Operator making the change.")

    def changes(self) -> dict[str, Any]:
        return self.model_dump(exclude_unset=True, exclude={"actor"})


class RuleListResponse(BaseModel):
    rules: list[AlertRule] = Field(default_factory=list)
    total: int = 0


class DeleteRuleResponse(BaseModel):
    rule_id: str = Field(..., description="Deleted rule ID.")
    message: str = Field(..., description="Human-readable status message.")


# ---------------------------------------------------------------------------
# Endpoints
# ---------------------------------------------------------------------------


@router.get("", response_model=RuleListResponse, summary="List alert rules")
async def list_rules(
    tenant_id: str = Depends(get_tenant_id),
    service: AlertService = Depends(get_alert_service),
) -> RuleListResponse:
    rules = await service.list_rules(tenant_id)
    return RuleListResponse(rules=rules, total=len(rules))


@router.post("", response_model=AlertRule, status_code=201, summary="Create an alert rule")
async def create_rule(
    body: RuleFields,
    tenant_id: str = Depends(get_tenant_id),
    service: AlertService = Depends(get_alert_service),
) -> AlertRule:
    return await service.create_rule(tenant_id, body.changes(), actor=body.actor)


@router.get("/{rule_id}", response_model=AlertRule, summary="Get an alert rule")
async def get_rule(
    rule_id: str,
    tenant_id: str = Depends(get_tenant_id),
    service: AlertService = Depends(get_alert_service),
) -> AlertRule:
    return await service.get_rule(tenant_id, rule_id)


@router.patch("/{rule_id}", response_model=AlertRule, summary="Update an alert rule")
async def update_rule(
    rule_id: str,
    body: RuleFields,
    tenant_id: str = Depends(get_tenant_id),
    service: AlertService = Depends(get_alert_service),
) -> AlertRule:
    return await service.update_rule(tenant_id, rule_id, body.changes(), actor=body.actor)


@router.delete("/{rule_id}", response_model=DeleteRuleResponse, summary="Delete an alert rule")
async def delete_rule(
    rule_id: str,
    tenant_id: str = Depends(get_tenant_id),
    service: AlertService = Depends(get_alert_service),
) -> DeleteRuleResponse:
    return DeleteRuleResponse(**await service.delete_rule(tenant_id, rule_id))
