"""
Scheduled report delivery.

Schedules live in ``scheduled_reports`` with a ``next_run`` timestamp in
epoch milliseconds. ``process_due`` generates every report whose
``next_run`` has passed, emails it to the schedule's recipients and
advances ``next_run``. A failing schedule records the error and bumps its
failure counter; the remaining schedules in the batch still run. A report
that was generated but not delivered is kept as ``pending_report_id`` and
only re-sent on the next sweep. After ``MAX_ATTEMPTS_PER_PERIOD`` failures
the period is skipped and ``next_run`` moves on.
"""

from __future__ import annotations

import logging
from datetime import datetime, timedelta
from typing import TYPE_CHECKING, Any, Optional

from pydantic import BaseModel, Field, ValidationError

from truckops.core.exceptions import ValidationException
from truckops.models.base import ensure_utc, utc_now
from truckops.models.report import DateRange, ReportSchedule, ScheduleFrequency
from truckops.services.email.templates import render_report_email

if TYPE_CHECKING:
    from motor.motor_asyncio import AsyncIOMotorDatabase

    from truckops.services.email.client import EmailClient
    from truckops.services.reports.service import ReportService

logger = logging.getLogger(__name__)

_SCHEDULE_FIELDS = ("report_type", "format", "frequency", "recipients", "active")

MAX_ATTEMPTS_PER_PERIOD = 3


def _to_ms(value: datetime) -> int:
    return int(ensure_utc(value).timestamp() * 1000)


def _midnight(value: datetime) -> datetime:
    return ensure_utc(value).replace(hour=0, minute=0, second=0, microsecond=0)


def calculate_next_run(frequency: str, now: datetime) -> datetime:
    """Next run time strictly after *now* (UTC).

    ``daily`` runs at the next midnight, ``weekly`` at the next Monday
    midnight and ``monthly`` on the first of the next month.

    Raises:
        ValidationException: For an unknown frequency.
    """
    frequency = getattr(frequency, "value", frequency)
    today = _midnight(now)
    if frequency == ScheduleFrequency.DAILY.value:
        return today + timedelta(days=1)
    if frequency == ScheduleFrequency.WEEKLY.value:
        return today + timedelta(days=7 - today.weekday())
    if frequency == ScheduleFrequency.MONTHLY.value:
        if today.month == 12:
            return today.replace(year=today.year + 1, month=1, day=1)
        return today.replace(month=today.month + 1, day=1)
    raise ValidationException(f"Unknown schedule frequency '{frequency}'")


def report_period(frequency: str, now: datetime) -> DateRange:
    """The completed period a run at *now* reports on.

    ``daily`` covers the previous day, ``weekly`` the previous Monday to
    Sunday and ``monthly`` the previous calendar month.
    """
    frequency = getattr(frequency, "value", frequency)
    today = _midnight(now)
    if frequency == ScheduleFrequency.DAILY.value:
        start = today - timedelta(days=1)
        end = today
    elif frequency == ScheduleFrequency.WEEKLY.value:
        end = today - timedelta(days=today.weekday())
        start = end - timedelta(days=7)
    elif frequency == ScheduleFrequency.MONTHLY.value:
        end = today.replace(day=1)
        start = (end - timedelta(days=1)).replace(day=1)
    else:
        raise ValidationException(f"Unknown schedule frequency '{frequency}'")
    return DateRange(start=start, end=end - timedelta(milliseconds=1))


class ScheduleRunResult(BaseModel):
    """Outcome of one ``process_due`` pass."""

    processed: list[str] = Field(default_factory=list)
    failed: dict[str, str] = Field(default_factory=dict)


class ReportScheduler:
    """Create schedules and run the ones that are due.

    Args:
        db: Motor async database handle.
        reports: Renders and records the generated reports.
        email_client: Delivers the reports; without one, reports are
            generated but not sent.
    """

    def __init__(
        self,
        db: AsyncIOMotorDatabase,  # type: ignore[type-arg]
        reports: ReportService,
        email_client: Optional[EmailClient] = None,
    ) -> None:
        self._collection = db["scheduled_reports"]
        self._reports = reports
        self._email = email_client

    async def schedule(
        self,
        tenant_id: str,
        data: dict[str, Any],
        now: Optional[datetime] = None,
    ) -> ReportSchedule:
        """Store a new schedule with its first ``next_run``.

        Raises:
            ValidationException: If the schedule is invalid.
        """
        fields = {k: v for k, v in data.items() if k in _SCHEDULE_FIELDS}
        try:
            schedule = ReportSchedule.model_validate({**fields, "tenant_id": tenant_id})
        except ValidationError as exc:
            raise ValidationException(
                "Invalid report schedule",
                errors=[
                    {"loc": ".".join(str(p) for p in err["loc"]), "msg": err["msg"]}
                    for err in exc.errors()
                ],
            ) from exc
        bad = [r for r in schedule.recipients if "@" not in r]
        if bad:
            raise ValidationException("Invalid recipient addresses", detail={"recipients": bad})

        schedule.next_run = _to_ms(calculate_next_run(schedule.frequency, now or utc_now()))
        await self._collection.insert_one(schedule.to_document())
        logger.info(
            "Report schedule created (%s %s)",
            schedule.frequency,
            schedule.report_type,
            extra={"schedule_id": schedule.schedule_id, "tenant_id": tenant_id},
        )
        return schedule

    async def list_schedules(self, tenant_id: str) -> list[ReportSchedule]:
        cursor = self._collection.find({"tenant_id": tenant_id}, {"_id": 0}).sort("next_run", 1)
        return ReportSchedule.parse_many(await cursor.to_list(length=500))

    async def process_due(self, now: Optional[datetime] = None) -> ScheduleRunResult:
        """Generate and deliver every active schedule whose time has come."""
        now = now or utc_now()
        now_ms = _to_ms(now)
        cursor = self._collection.find(
            {"active": True, "next_run": {"$lte": now_ms}}, {"_id": 0}
        )
        due = ReportSchedule.parse_many(await cursor.to_list(length=500))

        result = ScheduleRunResult()
        for schedule in due:
            try:
                report_id = await self._run(schedule, now)
            except Exception as exc:
                logger.error(
                    "Scheduled report failed: %s",
                    exc,
                    extra={"schedule_id": schedule.schedule_id, "tenant_id": schedule.tenant_id},
                )
                result.failed[schedule.schedule_id] = str(exc)
                await self._record_failure(schedule, exc, now)
                continue

            await self._collection.update_one(
                {"schedule_id": schedule.schedule_id},
                {
                    "$set": {
                        "last_run": now_ms,
                        "next_run": _to_ms(calculate_next_run(schedule.frequency, now)),
                        "last_report_id": report_id,
                        "last_error": None,
                        "failure_count": 0,
                        "pending_report_id": None,
                        "pending_period": None,
                        "updated_at": utc_now(),
                    }
                },
            )
            result.processed.append(schedule.schedule_id)

        if due:
            logger.info(
                "Processed %d scheduled reports (%d failed)",
                len(result.processed),
                len(result.failed),
            )
        return result

    async def _record_failure(self, schedule: ReportSchedule, exc: Exception, now: datetime) -> None:
        attempts = schedule.failure_count + 1
        fields: dict[str, Any] = {
            "last_error": str(exc),
            "failure_count": attempts,
            "updated_at": utc_now(),
        }
        if attempts >= MAX_ATTEMPTS_PER_PERIOD:
            logger.error(
                "Skipping scheduled report period after %d failed attempts",
                attempts,
                extra={"schedule_id": schedule.schedule_id, "tenant_id": schedule.tenant_id},
            )
            fields.update(
                next_run=_to_ms(calculate_next_run(schedule.frequency, now)),
                failure_count=0,
                pending_report_id=None,
                pending_period=None,
            )
        await self._collection.update_one({"schedule_id": schedule.schedule_id}, {"$set": fields})

    async def _run(self, schedule: ReportSchedule, now: datetime) -> str:
        # A report already generated for this period is only re-sent.
        if schedule.pending_report_id:
            record = await self._reports.get_report(schedule.tenant_id, schedule.pending_report_id)
            label = schedule.pending_period or ""
        else:
            period = report_period(schedule.frequency, now)
            rendered = await self._reports.generate(
                schedule.tenant_id,
                schedule.report_type,
                period,
                schedule.format,
                schedule_id=schedule.schedule_id,
            )
            record = rendered.record
            label = f"{period.start:%d.%m.%Y} - {period.end:%d.%m.%Y}"
            await self._collection.update_one(
                {"schedule_id": schedule.schedule_id},
                {"$set": {"pending_report_id": record.report_id, "pending_period": label}},
            )

        if self._email is not None and schedule.recipients:
            subject, html, text = render_report_email(record, period=label)
            await self._email.send(
                to=schedule.recipients,
                subject=subject,
                html=html,
                text=text,
                attachment_url=record.path,
                metadata={
                    "report_id": record.report_id,
                    "schedule_id": schedule.schedule_id,
                    "tenant_id": schedule.tenant_id,
                },
            )
        return record.report_id
