"""
AI training session models.

Training is simulated: a session runs a fixed number of epochs and records
synthetic loss/accuracy curves so the control panel can exercise the whole
session lifecycle without a real training backend.

MongoDB collection: ``ai_training_sessions``
"""

from __future__ import annotations

from enum import Enum
from typing import Optional

from pydantic import BaseModel, Field

from truckops.models.base import DEFAULT_TENANT, MongoBaseModel, generate_uuid


class TrainingPreset(str, Enum):
    QUICK = "quick"
    BALANCED = "balanced"
    THOROUGH = "thorough"


class TrainingStatus(str, Enum):
    PENDING = "pending"
    RUNNING = "running"
    COMPLETED = "completed"
    FAILED = "failed"
    CANCELLED = "cancelled"


class PresetConfig(BaseModel):
    epochs: int
    patience: int
    description: str = ""


TRAINING_PRESETS: dict[str, PresetConfig] = {
    TrainingPreset.QUICK.value: PresetConfig(
        epochs=10, patience=3, description="Fast run for smoke tests"
    ),
    TrainingPreset.BALANCED.value: PresetConfig(
        epochs=50, patience=10, description="Balance between speed and quality"
    ),
    TrainingPreset.THOROUGH.value: PresetConfig(
        epochs=200, patience=20, description="Maximum accuracy, long run"
    ),
}


class EpochMetrics(BaseModel):
    """Metrics recorded at the end of one epoch."""

    epoch: int
    loss: float
    accuracy: float
    val_loss: float
    val_accuracy: float
    learning_rate: float
    memory_usage: float


class TrainingSession(MongoBaseModel):
    """A (simulated) model training run."""

    model_config = {"protected_namespaces": ()}

    session_id: str = Field(default_factory=generate_uuid)
    tenant_id: str = Field(default=DEFAULT_TENANT)
    model_name: str = Field(..., min_length=1)
    preset: TrainingPreset = Field(default=TrainingPreset.QUICK)
    total_epochs: int = Field(..., ge=1)
    current_epoch: int = Field(default=0, ge=0)
    progress: float = Field(default=0.0, ge=0.0, le=1.0)
    status: TrainingStatus = Field(default=TrainingStatus.PENDING)
    history: list[EpochMetrics] = Field(default_factory=list)
    final_metrics: Optional[EpochMetrics] = Field(default=None)
    stopped_early: bool = Field(default=False, description="Stopped by patience before the last epoch.")
    job_id: Optional[str] = Field(default=None)
    error: Optional[str] = Field(default=None)
