"""Recurrence resolver: maps a rule and a reference instant to its current period.

All boundaries are computed on the wall clock of the supplied timezone and
returned as aware datetimes in that zone. Periods are half-open
``[start, end)`` and always contain the reference instant.
"""

from __future__ import annotations

import calendar
from datetime import date, datetime, time, timedelta
from typing import Protocol
from zoneinfo import ZoneInfo

from croniter import croniter

from om_reminders.scheduling.types import (
    CustomRule,
    DailyRule,
    HourlyRule,
    IntervalRule,
    InvalidRecurrenceRule,
    MonthlyRule,
    MonthlySpecificRule,
    PerMinuteRule,
    Period,
    RecurrenceRule,
    WeeklyRule,
    parse_recurrence_rule,
)

DAY_NAMES = ["Sunday", "Monday", "Tuesday", "Wednesday", "Thursday", "Friday", "Saturday"]


class CronStrategy(Protocol):
    def bracket(self, expression: str, reference: datetime) -> tuple[datetime, datetime]:
        """Return (previous firing <= reference, next firing > reference)."""
        ...


class CroniterStrategy:
    def bracket(self, expression: str, reference: datetime) -> tuple[datetime, datetime]:
        if not croniter.is_valid(expression):
            raise InvalidRecurrenceRule(f"Invalid cron expression: {expression}", {"cron_expression": expression})
        try:
            nxt = croniter(expression, reference).get_next(datetime)
            prev = croniter(expression, nxt).get_prev(datetime)
        except (ValueError, KeyError) as err:
            raise InvalidRecurrenceRule(
                f"Cron expression never fires: {expression}", {"cron_expression": expression}
            ) from err
        return prev, nxt


_default_cron = CroniterStrategy()


def parse_time_of_day(value: str | None) -> time:
    if not value:
        return time(0, 0)
    hours, minutes = value.split(":")
    return time(int(hours), int(minutes))


def _at(day: date, tz: ZoneInfo, at: time = time(0, 0)) -> datetime:
    return datetime.combine(day, at, tzinfo=tz)


def _localize(instant: datetime, tz: ZoneInfo) -> datetime:
    if instant.tzinfo is None:
        return instant.replace(tzinfo=tz)
    return instant.astimezone(tz)


def _month_bounds(day: date) -> tuple[date, date]:
    first = day.replace(day=1)
    if first.month == 12:
        return first, date(first.year + 1, 1, 1)
    return first, date(first.year, first.month + 1, 1)


def _anniversary(year: int, month: int, day: int) -> date:
    return date(year, month, min(day, calendar.monthrange(year, month)[1]))


def resolve_period(
    rule: RecurrenceRule | dict,
    reference: datetime,
    tz: ZoneInfo,
    *,
    anchor: datetime | None = None,
    cron: CronStrategy | None = None,
) -> Period:
    """Compute the period containing ``reference`` for ``rule``.

    ``anchor`` is the schedule's creation instant; interval rules count their
    windows from its local date. Raises InvalidRecurrenceRule.
    """
    rule = parse_recurrence_rule(rule)
    ref = _localize(reference, tz)
    today = ref.date()

    if isinstance(rule, DailyRule):
        return Period(_at(today, tz), _at(today + timedelta(days=1), tz), _at(today, tz, parse_time_of_day(rule.time)))

    if isinstance(rule, WeeklyRule):
        sunday_based = (today.weekday() + 1) % 7
        due = today + timedelta(days=(rule.day_of_week - sunday_based) % 7)
        return Period(
            _at(due - timedelta(days=6), tz),
            _at(due + timedelta(days=1), tz),
            _at(due, tz, parse_time_of_day(rule.time)),
        )

    if isinstance(rule, MonthlyRule):
        first, next_first = _month_bounds(today)
        last_day = calendar.monthrange(first.year, first.month)[1]
        due = first.replace(day=min(rule.day_of_month, last_day))
        return Period(_at(first, tz), _at(next_first, tz), _at(due, tz, parse_time_of_day(rule.time)))

    if isinstance(rule, MonthlySpecificRule):
        due = _anniversary(today.year, rule.month, rule.day)
        if due < today:
            due = _anniversary(today.year + 1, rule.month, rule.day)
        previous = _anniversary(due.year - 1, rule.month, rule.day)
        return Period(
            _at(previous + timedelta(days=1), tz),
            _at(due + timedelta(days=1), tz),
            _at(due, tz, parse_time_of_day(rule.time)),
        )

    if isinstance(rule, IntervalRule):
        if anchor is None:
            raise InvalidRecurrenceRule("Interval rule needs the schedule's creation instant", {"kind": rule.kind})
        epoch = _localize(anchor, tz).date()
        window = ((today - epoch).days // rule.days) * rule.days
        window_start = epoch + timedelta(days=window)
        window_end = window_start + timedelta(days=rule.days)
        return Period(
            _at(window_start, tz),
            _at(window_end, tz),
            _at(window_end - timedelta(days=1), tz, parse_time_of_day(rule.time)),
        )

    if isinstance(rule, HourlyRule):
        start_hour = (ref.hour // rule.hours) * rule.hours
        start = _at(today, tz, time(start_hour))
        end_hour = start_hour + rule.hours
        end = _at(today + timedelta(days=1), tz) if end_hour >= 24 else _at(today, tz, time(end_hour))
        return Period(start, end, end)

    if isinstance(rule, PerMinuteRule):
        start_minute = (ref.minute // rule.minutes) * rule.minutes
        hour_start = datetime.combine(today, time(ref.hour))
        end_minute = start_minute + rule.minutes
        start = (hour_start + timedelta(minutes=start_minute)).replace(tzinfo=tz)
        end = (hour_start + timedelta(minutes=min(end_minute, 60))).replace(tzinfo=tz)
        return Period(start, end, end)

    if isinstance(rule, CustomRule):
        previous, following = (cron or _default_cron).bracket(rule.cron_expression, ref)
        return Period(_localize(previous, tz), _localize(following, tz), _localize(following, tz))

    raise InvalidRecurrenceRule(f"Unsupported recurrence rule: {rule!r}")


def describe_rule(rule: RecurrenceRule | dict) -> str:
    """Human-readable label for a recurrence rule."""
    try:
        rule = parse_recurrence_rule(rule)
    except InvalidRecurrenceRule:
        return "Scheduled"
    at = f" at {rule.time}" if getattr(rule, "time", None) else ""

    if isinstance(rule, DailyRule):
        return f"Daily{at}"
    if isinstance(rule, WeeklyRule):
        return f"Every {DAY_NAMES[rule.day_of_week]}{at}"
    if isinstance(rule, MonthlyRule):
        return f"Monthly on day {rule.day_of_month}{at}"
    if isinstance(rule, MonthlySpecificRule):
        return f"Annually on {calendar.month_name[rule.month]} {rule.day}{at}"
    if isinstance(rule, IntervalRule):
        return f"Every {rule.days} day(s){at}"
    if isinstance(rule, HourlyRule):
        return "Every hour" if rule.hours == 1 else f"Every {rule.hours} hours"
    if isinstance(rule, PerMinuteRule):
        return "Every minute" if rule.minutes == 1 else f"Every {rule.minutes} minutes"
    return f"Custom schedule ({rule.cron_expression})"
