"""
Training session service.

Starts simulated training runs as background jobs and persists their
progress to ``ai_training_sessions`` after every epoch so the control panel
can poll a session while it runs.
"""

from __future__ import annotations

import asyncio
import logging
from typing import TYPE_CHECKING, Optional

from truckops.core.exceptions import NotFoundException, ValidationException
from truckops.models.base import utc_now
from truckops.models.training import (
    TRAINING_PRESETS,
    TrainingSession,
    TrainingStatus,
)
from truckops.services.training.simulator import EarlyStopping, TrainingSimulator

if TYPE_CHECKING:
    from motor.motor_asyncio import AsyncIOMotorDatabase

    from truckops.services.jobs.runner import BackgroundJob, JobRunner

logger = logging.getLogger(__name__)

_OPEN_STATUSES = (TrainingStatus.PENDING.value, TrainingStatus.RUNNING.value)


class TrainingService:
    """Start, observe and cancel simulated training sessions.

    Args:
        db: Motor async database handle.
        runner: Job runner that owns the simulation tasks.
        epoch_seconds: Simulated duration of one epoch.
        seed: Optional RNG seed for reproducible curves.
    """

    def __init__(
        self,
        db: AsyncIOMotorDatabase,  # type: ignore[type-arg]
        runner: JobRunner,
        epoch_seconds: float = 2.0,
        seed: Optional[int] = None,
    ) -> None:
        self._collection = db["ai_training_sessions"]
        self._runner = runner
        self._epoch_seconds = epoch_seconds
        self._seed = seed

    async def start_session(self, tenant_id: str, model_name: str, preset: str) -> TrainingSession:
        """Create a session and start its simulation in the background.

        Raises:
            ValidationException: If *preset* is unknown.
        """
        config = TRAINING_PRESETS.get(preset)
        if config is None:
            raise ValidationException(
                f"Unknown training preset '{preset}'",
                detail={"presets": sorted(TRAINING_PRESETS)},
            )

        session = TrainingSession(
            tenant_id=tenant_id,
            model_name=model_name,
            preset=preset,
            total_epochs=config.epochs,
        )
        await self._collection.insert_one(session.to_document())

        job = self._runner.start(
            f"training:{model_name}",
            lambda j: self._simulate(j, session.session_id, config.epochs, config.patience),
        )
        session.job_id = job.job_id
        await self._set(session.session_id, {"job_id": job.job_id})

        logger.info(
            "Training session started (%s, %d epochs)",
            preset,
            config.epochs,
            extra={"session_id": session.session_id, "tenant_id": tenant_id},
        )
        return session

    async def _simulate(
        self,
        job: BackgroundJob,
        session_id: str,
        total_epochs: int,
        patience: int,
    ) -> Optional[dict]:
        simulator = TrainingSimulator(total_epochs, seed=self._seed)
        stopper = EarlyStopping(patience)
        await self._set(session_id, {"status": TrainingStatus.RUNNING.value})

        last = None
        stopped_early = False
        try:
            for epoch in range(1, total_epochs + 1):
                await asyncio.sleep(self._epoch_seconds)
                last = simulator.epoch(epoch)
                progress = epoch / total_epochs
                await self._collection.update_one(
                    {"session_id": session_id},
                    {
                        "$set": {
                            "current_epoch": epoch,
                            "progress": progress,
                            "updated_at": utc_now(),
                        },
                        "$push": {"history": last.model_dump()},
                    },
                )
                await job.report_progress(progress, f"epoch {epoch}/{total_epochs}")
                if last.val_loss > last.loss * 1.2:
                    logger.debug(
                        "Validation loss diverging at epoch %d",
                        epoch,
                        extra={"session_id": session_id},
                    )
                if stopper.step(last.val_loss) and epoch < total_epochs:
                    stopped_early = True
                    break
        except asyncio.CancelledError:
            await self._set(session_id, {"status": TrainingStatus.CANCELLED.value})
            raise
        except Exception as exc:
            await self._set(
                session_id, {"status": TrainingStatus.FAILED.value, "error": str(exc)}
            )
            raise

        final = last.model_dump() if last is not None else None
        await self._set(
            session_id,
            {
                "status": TrainingStatus.COMPLETED.value,
                "final_metrics": final,
                "stopped_early": stopped_early,
            },
        )
        logger.info(
            "Training session completed",
            extra={"session_id": session_id, "stopped_early": stopped_early},
        )
        return final

    async def _set(self, session_id: str, fields: dict) -> None:
        await self._collection.update_one(
            {"session_id": session_id},
            {"$set": {**fields, "updated_at": utc_now()}},
        )

    async def get_session(self, tenant_id: str, session_id: str) -> TrainingSession:
        doc = await self._collection.find_one(
            {"session_id": session_id, "tenant_id": tenant_id}, {"_id": 0}
        )
        if doc is None:
            raise NotFoundException(resource="Training session", identifier=session_id)
        return TrainingSession.from_document(doc)

    async def list_sessions(self, tenant_id: str, limit: int = 50) -> list[TrainingSession]:
        cursor = (
            self._collection.find({"tenant_id": tenant_id}, {"_id": 0})
            .sort("created_at", -1)
            .limit(limit)
        )
        return TrainingSession.parse_many(await cursor.to_list(length=limit))

    async def cancel_session(self, tenant_id: str, session_id: str) -> TrainingSession:
        """Cancel a pending or running session.

        Raises:
            NotFoundException: If the session does not exist.
            ValidationException: If the session already finished.
        """
        session = await self.get_session(tenant_id, session_id)
        if session.status not in _OPEN_STATUSES:
            raise ValidationException(
                f"Training session is already {session.status}",
                detail={"session_id": session_id, "status": session.status},
            )

        if session.job_id:
            try:
                job = self._runner.get(session.job_id)
            except NotFoundException:
                job = None
            if job is not None:
                job.cancel()
                await job.wait()

        await self._set(session_id, {"status": TrainingStatus.CANCELLED.value})
        logger.info("Training session cancelled", extra={"session_id": session_id})
        return await self.get_session(tenant_id, session_id)
