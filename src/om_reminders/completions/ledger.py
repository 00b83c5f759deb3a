"""Completion ledger: at most one completion per schedule and period."""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Callable
from zoneinfo import ZoneInfo

from om_reminders.completions.repository import CompletionRepository, completion_id
from om_reminders.completions.types import Actor, AlreadyCompleted, CompletionNotFound, TaskCompletion
from om_reminders.infrastructure.logger import logger
from om_reminders.scheduling.recurrence import resolve_period
from om_reminders.scheduling.repository import ScheduleRepository
from om_reminders.scheduling.types import Schedule, ScheduleNotFound, to_utc_iso


def period_key(value: datetime | str) -> str:
    """Normalize a period boundary to the UTC ISO form used as storage key."""
    instant = datetime.fromisoformat(value) if isinstance(value, str) else value
    if instant.tzinfo is None:
        instant = instant.replace(tzinfo=timezone.utc)
    return to_utc_iso(instant)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class CompletionLedger:
    """Tracks which (schedule, period) obligations are satisfied.

    Records are keyed by an id derived from the schedule and period
    boundaries and written with insert-if-absent, so two racing
    ``mark_complete`` calls leave exactly one record and the loser gets
    ``AlreadyCompleted``.
    """

    def __init__(
        self,
        completion_repo: CompletionRepository,
        schedule_repo: ScheduleRepository,
        clock: Callable[[], datetime] = _utcnow,
    ) -> None:
        self._completion_repo = completion_repo
        self._schedule_repo = schedule_repo
        self._clock = clock

    def is_completed(self, schedule_id: str, period_start: datetime | str, period_end: datetime | str) -> bool:
        return self._completion_repo.get_for_period(
            schedule_id, period_key(period_start), period_key(period_end)
        ) is not None

    def is_period_completed(self, schedule: Schedule, now: datetime, tz: ZoneInfo) -> bool:
        period = resolve_period(schedule.recurrence, now, tz, anchor=schedule.created_instant())
        return self.is_completed(schedule.id, period.start, period.end)

    def mark_complete(
        self,
        schedule_id: str,
        period_start: datetime | str,
        period_end: datetime | str,
        actor: Actor | None = None,
        notes: str | None = None,
    ) -> TaskCompletion:
        schedule = self._schedule_repo.get_schedule_by_id(schedule_id)
        if not schedule:
            raise ScheduleNotFound(schedule_id)

        start, end = period_key(period_start), period_key(period_end)
        if end <= start:
            raise ValueError("period_end must be after period_start")

        completion = TaskCompletion(
            id=completion_id(schedule_id, start, end),
            schedule_id=schedule_id,
            period_start=start,
            period_end=end,
            deadline_kind=str(schedule.recurrence.get("kind", "")),
            completed_at=to_utc_iso(self._clock()),
            completed_by=actor or Actor(name=schedule.assignee.name, email=schedule.assignee.email),
            notes=notes or None,
        )
        if not self._completion_repo.insert_completion(completion):
            raise AlreadyCompleted(schedule_id, start, end)

        logger.info("Task marked complete", schedule_id=schedule_id, period_start=start, period_end=end)
        return completion

    def mark_incomplete(self, completion_id: str) -> None:
        if not self._completion_repo.delete_completion(completion_id):
            raise CompletionNotFound(completion_id)
        logger.info("Task marked incomplete", completion_id=completion_id)

    def list_completions(
        self, schedule_id: str | None = None, start: datetime | str | None = None, end: datetime | str | None = None
    ) -> list[TaskCompletion]:
        return self._completion_repo.query_completions(
            schedule_id,
            period_key(start) if start is not None else None,
            period_key(end) if end is not None else None,
        )
