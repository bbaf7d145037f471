"""
Background job runner.

A BackgroundJob wraps one ``asyncio.Task`` and exposes its status,
progress and result so callers can observe or cancel long-running work
(training simulations, report batches). ``JobRunner.start_periodic`` runs
interval loops (metric collection, suppression sweep) whose failed ticks
are logged and do not stop the loop.
"""

from __future__ import annotations

import asyncio
import contextlib
import inspect
import logging
from datetime import datetime
from enum import Enum
from typing import Any, Awaitable, Callable, Optional

from truckops.core.exceptions import NotFoundException
from truckops.models.base import generate_uuid, utc_now

logger = logging.getLogger(__name__)

ProgressCallback = Callable[["BackgroundJob"], Any]
JobFunc = Callable[["BackgroundJob"], Awaitable[Any]]


class JobStatus(str, Enum):
    PENDING = "pending"
    RUNNING = "running"
    COMPLETED = "completed"
    FAILED = "failed"
    CANCELLED = "cancelled"


FINISHED_STATUSES = frozenset({JobStatus.COMPLETED, JobStatus.FAILED, JobStatus.CANCELLED})


class BackgroundJob:
    """A cancellable, observable unit of async work.

    The wrapped coroutine function receives the job itself so it can call
    :meth:`report_progress`.
    """

    def __init__(self, name: str, func: JobFunc, job_id: Optional[str] = None) -> None:
        self.job_id = job_id or generate_uuid()
        self.name = name
        self.status = JobStatus.PENDING
        self.progress = 0.0
        self.detail: Optional[str] = None
        self.result: Any = None
        self.error: Optional[str] = None
        self.created_at: datetime = utc_now()
        self.started_at: Optional[datetime] = None
        self.finished_at: Optional[datetime] = None
        self._func = func
        self._task: Optional[asyncio.Task[Any]] = None
        self._callbacks: list[ProgressCallback] = []

    @property
    def done(self) -> bool:
        return self.status in FINISHED_STATUSES

    def add_progress_callback(self, callback: ProgressCallback) -> None:
        """Register *callback*; it is called with the job on every update.

        Callbacks may be plain functions or coroutine functions.
        """
        self._callbacks.append(callback)

    async def report_progress(self, progress: float, detail: Optional[str] = None) -> None:
        self.progress = max(0.0, min(1.0, progress))
        if detail is not None:
            self.detail = detail
        await self._fire_callbacks()

    def start(self) -> asyncio.Task[Any]:
        if self._task is not None:
            return self._task
        self._task = asyncio.create_task(self._run(), name=f"job:{self.name}:{self.job_id}")
        return self._task

    async def _run(self) -> Any:
        self.status = JobStatus.RUNNING
        self.started_at = utc_now()
        await self._fire_callbacks()
        try:
            self.result = await self._func(self)
        except asyncio.CancelledError:
            self.status = JobStatus.CANCELLED
            logger.info("Job cancelled", extra={"job_id": self.job_id, "job_name": self.name})
            raise
        except Exception as exc:
            self.status = JobStatus.FAILED
            self.error = str(exc)
            logger.error(
                "Job failed: %s",
                exc,
                exc_info=exc,
                extra={"job_id": self.job_id, "job_name": self.name},
            )
        else:
            self.status = JobStatus.COMPLETED
            self.progress = 1.0
        finally:
            self.finished_at = utc_now()
            await self._fire_callbacks()
        return self.result

    async def _fire_callbacks(self) -> None:
        for callback in list(self._callbacks):
            try:
                outcome = callback(self)
                if inspect.isawaitable(outcome):
                    await outcome
            except Exception as exc:
                logger.warning(
                    "Progress callback failed: %s",
                    exc,
                    extra={"job_id": self.job_id},
                )

    def cancel(self) -> bool:
        """Request cancellation. Returns False if the job already finished."""
        if self.done:
            return False
        requested = self._task.cancel() if self._task is not None else True
        if self.status == JobStatus.PENDING:
            # A task cancelled before its first step never enters _run.
            self.status = JobStatus.CANCELLED
            self.finished_at = utc_now()
        return requested

    async def wait(self, timeout: Optional[float] = None) -> Any:
        """Wait for the job to finish and return its result.

        Cancellation and failures are reflected in :attr:`status` and are
        not raised here.
        """
        if self._task is None:
            return self.result
        with contextlib.suppress(asyncio.CancelledError):
            await asyncio.wait_for(asyncio.shield(self._task), timeout=timeout)
        return self.result

    def to_dict(self) -> dict[str, Any]:
        return {
            "job_id": self.job_id,
            "name": self.name,
            "status": self.status.value,
            "progress": self.progress,
            "detail": self.detail,
            "error": self.error,
            "created_at": self.created_at.isoformat(),
            "started_at": self.started_at.isoformat() if self.started_at else None,
            "finished_at": self.finished_at.isoformat() if self.finished_at else None,
        }


class JobRunner:
    """Owns the application's background jobs.

    Finished jobs stay observable until more than *keep_finished* of them
    have piled up; the oldest are then dropped when the next job starts.
    """

    def __init__(self, keep_finished: int = 100) -> None:
        self._jobs: dict[str, BackgroundJob] = {}
        self._keep_finished = keep_finished

    def start(self, name: str, func: JobFunc, job_id: Optional[str] = None) -> BackgroundJob:
        self.prune()
        job = BackgroundJob(name, func, job_id=job_id)
        self._jobs[job.job_id] = job
        job.start()
        logger.info("Started job %s", name, extra={"job_id": job.job_id})
        return job

    def start_periodic(
        self,
        name: str,
        interval: float,
        tick: Callable[[], Awaitable[Any]],
    ) -> BackgroundJob:
        """Run *tick* every *interval* seconds until the job is cancelled."""

        async def _loop(job: BackgroundJob) -> None:
            runs = 0
            while True:
                try:
                    await tick()
                    runs += 1
                    job.detail = f"{runs} ticks"
                except asyncio.CancelledError:
                    raise
                except Exception as exc:
                    logger.error(
                        "Periodic job %s tick failed: %s",
                        name,
                        exc,
                        exc_info=exc,
                        extra={"job_id": job.job_id},
                    )
                await asyncio.sleep(interval)

        return self.start(name, _loop)

    def get(self, job_id: str) -> BackgroundJob:
        job = self._jobs.get(job_id)
        if job is None:
            raise NotFoundException(resource="Job", identifier=job_id)
        return job

    def list(self) -> list[BackgroundJob]:
        return list(self._jobs.values())

    def prune(self) -> int:
        """Drop the oldest finished jobs beyond the retention count."""
        finished = sorted(
            (job for job in self._jobs.values() if job.done),
            key=lambda job: job.finished_at or job.created_at,
        )
        excess = finished[: max(0, len(finished) - self._keep_finished)]
        for job in excess:
            del self._jobs[job.job_id]
        if excess:
            logger.debug("Pruned %d finished jobs", len(excess))
        return len(excess)

    def cancel(self, job_id: str) -> bool:
        return self.get(job_id).cancel()

    async def shutdown(self, timeout: float = 5.0) -> None:
        """Cancel every unfinished job and wait for them to stop."""
        pending = [job for job in self._jobs.values() if not job.done]
        for job in pending:
            job.cancel()
        for job in pending:
            try:
                await job.wait(timeout=timeout)
            except asyncio.TimeoutError:
                logger.warning("Job %s did not stop in time", job.name, extra={"job_id": job.job_id})
        logger.info("Job runner stopped (%d jobs cancelled)", len(pending))
