"""
AI training endpoints.

Training is simulated: a session runs as a background job producing
synthetic per-epoch metrics, which clients poll through these endpoints.
"""

from __future__ import annotations

import logging

from fastapi import APIRouter, Depends
from pydantic import BaseModel, Field

from truckops.api.v1.dependencies import get_tenant_id, get_training_service
from truckops.models.training import TrainingPreset, TrainingSession
from truckops.services.training.service import TrainingService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/training", tags=["training"])


class StartSessionRequest(BaseModel):
    model_config = {"protected_namespaces": ()}

    model_name: str = Field(..., min_length=1, max_length=200)
    preset: str = Field(default=TrainingPreset.BALANCED.value, description="quick, balanced or thorough.")


class SessionListResponse(BaseModel):
    sessions: list[TrainingSession] = Field(default_factory=list)
    total: int = 0


@router.post(
    "/sessions",
    response_model=TrainingSession,
    status_code=202,
    summary="Start a simulated training session",
)
async def start_session(
    body: StartSessionRequest,
    tenant_id: str = Depends(get_tenant_id),
    service: TrainingService = Depends(get_training_service),
) -> TrainingSession:
    return await service.start_session(tenant_id, body.model_name, body.preset)


@router.get("/sessions", response_model=SessionListResponse, summary="List training sessions")
async def list_sessions(
    tenant_id: str = Depends(get_tenant_id),
    service: TrainingService = Depends(get_training_service),
) -> SessionListResponse:
    sessions = await service.list_sessions(tenant_id)
    return SessionListResponse(sessions=sessions, total=len(sessions))


@router.get("/sessions/{session_id}", response_model=TrainingSession, summary="Get a session")
async def get_session(
    session_id: str,
    tenant_id: str = Depends(get_tenant_id),
    service: TrainingService = Depends(get_training_service),
) -> TrainingSession:
    return await service.get_session(tenant_id, session_id)


@router.post(
    "/sessions/{session_id}/cancel",
    response_model=TrainingSession,
    summary="Cancel a running session",
)
async def cancel_session(
    session_id: str,
    tenant_id: str = Depends(get_tenant_id),
    service: TrainingService = Depends(get_training_service),
) -> TrainingSession:
    return await service.cancel_session(tenant_id, session_id)
