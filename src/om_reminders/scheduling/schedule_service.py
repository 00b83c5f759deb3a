"""Schedule manager: centralized schedule lifecycle."""

from __future__ import annotations

import random
import string
import time
from datetime import datetime, timezone
from typing import Any, Callable, TYPE_CHECKING
from zoneinfo import ZoneInfo

from om_reminders.infrastructure.logger import logger
from om_reminders.scheduling.recurrence import resolve_period
from om_reminders.scheduling.reminder_timing import check_reminder_fits, resolve_reminder_instant
from om_reminders.scheduling.repository import ScheduleRepository
from om_reminders.scheduling.types import (
    Assignee,
    Schedule,
    ScheduleNotFound,
    parse_recurrence_rule,
    parse_reminder_rule,
)

if TYPE_CHECKING:
    from om_reminders.dispatch.repository import SentReminderRepository


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _normalize_rules(recurrence: Any, reminder: Any) -> tuple[dict, dict]:
    return (
        parse_recurrence_rule(recurrence).model_dump(mode="json", exclude_none=True),
        parse_reminder_rule(reminder).model_dump(mode="json", exclude_none=True),
    )


class ScheduleManager:
    """CRUD and status lifecycle for schedules.

    Rules are rejected on write when the reminder could never fire inside
    its period. Every mutation calls ``on_change`` so derived snapshots can
    be flagged stale. Editing a schedule also forgets today's confirmed sent
    markers for it, so the edited reminder is allowed to go out again.
    """

    def __init__(
        self,
        schedule_repo: ScheduleRepository,
        sent_reminders: SentReminderRepository | None = None,
        tz: ZoneInfo | None = None,
        on_change: Callable[[], None] | None = None,
        clock: Callable[[], datetime] = _utcnow,
    ) -> None:
        self._schedule_repo = schedule_repo
        self._sent_reminders = sent_reminders
        self._tz = tz or ZoneInfo("UTC")
        self._on_change = on_change
        self._clock = clock

    # --- CRUD ---

    def create(
        self,
        title: str,
        recurrence: Any,
        reminder: Any,
        assignee_name: str,
        assignee_email: str = "",
        description: str = "",
        visible: bool = True,
    ) -> Schedule:
        recurrence_doc, reminder_doc = _normalize_rules(recurrence, reminder)
        self._check_timing(recurrence_doc, reminder_doc, self._clock())
        rand = "".join(random.choices(string.ascii_lowercase + string.digits, k=8))
        now = self._now_iso()
        schedule = Schedule(
            id=f"sched-{int(time.time())}-{rand}",
            title=title,
            description=description,
            recurrence=recurrence_doc,
            reminder=reminder_doc,
            assignee=Assignee(name=assignee_name, email=assignee_email),
            status="active",
            visible=visible,
            created_at=now,
            updated_at=now,
        )
        self._schedule_repo.create_schedule(schedule)
        logger.info("Schedule created", schedule_id=schedule.id, kind=recurrence_doc["kind"])
        self._changed()
        return schedule

    def get_by_id(self, id: str) -> Schedule | None:
        return self._schedule_repo.get_schedule_by_id(id)

    def get(self, id: str) -> Schedule:
        schedule = self._schedule_repo.get_schedule_by_id(id)
        if not schedule:
            raise ScheduleNotFound(id)
        return schedule

    def get_all(self, page: int = 1, page_size: int | None = None, status: str | None = None) -> list[Schedule]:
        """Newest first, optionally filtered by status and paginated (1-based pages)."""
        schedules = (
            self._schedule_repo.get_active_schedules() if status == "active"
            else [s for s in self._schedule_repo.get_all_schedules() if status is None or s.status == status]
        )
        if page_size is None:
            return schedules
        offset = max(0, page - 1) * page_size
        return schedules[offset:offset + page_size]

    def update(
        self,
        id: str,
        title: str | None = None,
        description: str | None = None,
        recurrence: Any = None,
        reminder: Any = None,
        assignee_name: str | None = None,
        assignee_email: str | None = None,
        visible: bool | None = None,
    ) -> Schedule:
        current = self.get(id)
        updates: dict[str, Any] = {"title": title, "description": description, "visible": visible}
        if recurrence is not None or reminder is not None:
            updates["recurrence"], updates["reminder"] = _normalize_rules(
                recurrence if recurrence is not None else current.recurrence,
                reminder if reminder is not None else current.reminder,
            )
            self._check_timing(updates["recurrence"], updates["reminder"], current.created_instant())
        if assignee_name is not None or assignee_email is not None:
            updates["assignee"] = {
                "name": assignee_name if assignee_name is not None else current.assignee.name,
                "email": assignee_email if assignee_email is not None else current.assignee.email,
            }
        updates["updated_at"] = self._now_iso()

        schedule = self._schedule_repo.update_schedule(id, **updates)
        if not schedule:
            raise ScheduleNotFound(id)
        if self._sent_reminders is not None:
            today = self._clock().astimezone(self._tz).date()
            cleared = self._sent_reminders.clear_for_schedule_day(id, today)
            if cleared:
                logger.info("Cleared sent reminders after edit", schedule_id=id, cleared=cleared)
        logger.info("Schedule updated", schedule_id=id)
        self._changed()
        return schedule

    def delete(self, id: str) -> None:
        if not self._schedule_repo.delete_schedule(id):
            raise ScheduleNotFound(id)
        logger.info("Schedule deleted", schedule_id=id)
        self._changed()

    # --- Lifecycle ---

    def activate(self, id: str) -> Schedule:
        return self._set_status(id, "active")

    def deactivate(self, id: str) -> Schedule:
        return self._set_status(id, "inactive")

    # --- Internal ---

    def _set_status(self, id: str, status: str) -> Schedule:
        schedule = self._schedule_repo.update_schedule(id, status=status, updated_at=self._now_iso())
        if not schedule:
            raise ScheduleNotFound(id)
        logger.info("Schedule status changed", schedule_id=id, status=status)
        self._changed()
        return schedule

    def _now_iso(self) -> str:
        return self._clock().astimezone(timezone.utc).isoformat()

    def _check_timing(self, recurrence: dict, reminder: dict, anchor: datetime) -> None:
        period = resolve_period(recurrence, self._clock(), self._tz, anchor=anchor)
        check_reminder_fits(reminder, resolve_reminder_instant(reminder, period.deadline, self._tz), period)

    def _changed(self) -> None:
        if self._on_change:
            self._on_change()
