"""Reminder timing: when should the reminder for a deadline go out."""

from __future__ import annotations

from datetime import datetime, timedelta
from typing import Literal
from zoneinfo import ZoneInfo

from om_reminders.scheduling.recurrence import parse_time_of_day
from om_reminders.scheduling.types import (
    AbsoluteReminder,
    InvalidReminderRule,
    Period,
    RelativeReminder,
    ReminderRule,
    parse_reminder_rule,
)

DueState = Literal["due", "not_due", "missed"]


def resolve_reminder_instant(rule: ReminderRule | dict, deadline: datetime, tz: ZoneInfo) -> datetime:
    """Compute the fire instant for ``deadline``. Raises InvalidReminderRule.

    Relative reminders land ``days_before`` days ahead of the deadline, at
    the rule's own time of day or else the deadline's. The result is not
    clamped, so it may lie in the past.
    """
    rule = parse_reminder_rule(rule)

    if isinstance(rule, RelativeReminder):
        local_deadline = deadline.astimezone(tz)
        day = local_deadline.date() - timedelta(days=rule.days_before)
        at = parse_time_of_day(rule.time) if rule.time else local_deadline.time()
        return datetime.combine(day, at, tzinfo=tz)

    assert isinstance(rule, AbsoluteReminder)
    if rule.at.tzinfo is None:
        return rule.at.replace(tzinfo=tz)
    return rule.at


def check_reminder_fits(rule: ReminderRule | dict, fire_instant: datetime, period: Period) -> None:
    """Reject a relative reminder that can only fire after its period has ended.

    Such a reminder is never due while its period is current, so every run
    would skip it.
    """
    rule = parse_reminder_rule(rule)
    if isinstance(rule, RelativeReminder) and fire_instant >= period.end:
        raise InvalidReminderRule(
            "Reminder fires after its period ends",
            {"fire_at": fire_instant.isoformat(), "period_end": period.end.isoformat()},
        )


def is_due(rule: ReminderRule | dict, fire_instant: datetime, period: Period, now: datetime) -> DueState:
    """Decide whether a reminder should be sent at ``now``.

    A relative reminder whose fire instant has passed is sent straight away.
    An absolute reminder that fired before the current period began belongs
    to an earlier period and is reported as missed.
    """
    rule = parse_reminder_rule(rule)
    if now < fire_instant:
        return "not_due"
    if isinstance(rule, AbsoluteReminder) and fire_instant < period.start:
        return "missed"
    return "due"
