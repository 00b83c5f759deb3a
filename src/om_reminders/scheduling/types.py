"""Scheduling domain types: recurrence and reminder rules, periods, schedules."""

from __future__ import annotations

import calendar
import re
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Annotated, Any, Literal, Union

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter, ValidationError, field_validator, model_validator

from om_reminders.infrastructure.errors import DomainError

_TIME_RE = re.compile(r"^([0-1][0-9]|2[0-3]):[0-5][0-9]$")
# Longest length each month can have (February allows the 29th)
_MAX_MONTH_DAYS = (0, 31, 29, 31, 30, 31, 30, 31, 31, 30, 31, 30, 31)


class InvalidRecurrenceRule(DomainError):
    pass


class InvalidReminderRule(DomainError):
    pass


class ScheduleNotFound(DomainError):
    def __init__(self, schedule_id: str) -> None:
        super().__init__(f"Schedule not found: {schedule_id}", {"schedule_id": schedule_id})
        self.schedule_id = schedule_id


def _check_time(value: str | None) -> str | None:
    if value is not None and not _TIME_RE.match(value):
        raise ValueError("time must be HH:MM (24-hour)")
    return value


class _Rule(BaseModel):
    model_config = ConfigDict(extra="forbid", frozen=True)


class _TimedRule(_Rule):
    time: str | None = None

    @field_validator("time")
    @classmethod
    def _validate_time(cls, value: str | None) -> str | None:
        return _check_time(value)


# --- Recurrence rules ---


class DailyRule(_TimedRule):
    kind: Literal["daily"] = "daily"


class WeeklyRule(_TimedRule):
    kind: Literal["weekly"] = "weekly"
    day_of_week: int = Field(ge=0, le=6)  # 0 = Sunday


class MonthlyRule(_TimedRule):
    kind: Literal["monthly"] = "monthly"
    day_of_month: int = Field(ge=1, le=31)


class MonthlySpecificRule(_TimedRule):
    kind: Literal["monthly-specific"] = "monthly-specific"
    month: int = Field(ge=1, le=12)
    day: int = Field(ge=1, le=31)

    @model_validator(mode="after")
    def _day_fits_month(self) -> MonthlySpecificRule:
        if self.day > _MAX_MONTH_DAYS[self.month]:
            raise ValueError(f"{calendar.month_name[self.month]} has no day {self.day}")
        return self


class IntervalRule(_TimedRule):
    kind: Literal["interval"] = "interval"
    days: int = Field(ge=1)


class HourlyRule(_Rule):
    kind: Literal["hourly"] = "hourly"
    hours: int = Field(default=1, ge=1, le=23)


class PerMinuteRule(_Rule):
    kind: Literal["per-minute"] = "per-minute"
    minutes: int = Field(default=1, ge=1, le=59)


class CustomRule(_Rule):
    kind: Literal["custom"] = "custom"
    cron_expression: str = Field(min_length=1)


RecurrenceRule = Annotated[
    Union[
        DailyRule, WeeklyRule, MonthlyRule, MonthlySpecificRule,
        IntervalRule, HourlyRule, PerMinuteRule, CustomRule,
    ],
    Field(discriminator="kind"),
]

# --- Reminder rules ---


class RelativeReminder(_TimedRule):
    kind: Literal["relative"] = "relative"
    days_before: int = Field(default=1, ge=0)


class AbsoluteReminder(_Rule):
    kind: Literal["absolute"] = "absolute"
    at: datetime


ReminderRule = Annotated[Union[RelativeReminder, AbsoluteReminder], Field(discriminator="kind")]

_recurrence_adapter: TypeAdapter[Any] = TypeAdapter(RecurrenceRule)
_reminder_adapter: TypeAdapter[Any] = TypeAdapter(ReminderRule)
_RECURRENCE_TYPES = (
    DailyRule, WeeklyRule, MonthlyRule, MonthlySpecificRule,
    IntervalRule, HourlyRule, PerMinuteRule, CustomRule,
)


def _errors_summary(err: ValidationError) -> list[str]:
    return [f"{'.'.join(str(p) for p in e['loc']) or 'rule'}: {e['msg']}" for e in err.errors()]


def parse_recurrence_rule(data: Any) -> RecurrenceRule:
    """Validate a recurrence rule mapping. Raises InvalidRecurrenceRule."""
    if isinstance(data, _RECURRENCE_TYPES):
        return data
    try:
        return _recurrence_adapter.validate_python(data)
    except ValidationError as err:
        errors = _errors_summary(err)
        raise InvalidRecurrenceRule(f"Invalid recurrence rule: {'; '.join(errors)}", {"errors": errors}) from err


def parse_reminder_rule(data: Any) -> ReminderRule:
    """Validate a reminder rule mapping. Raises InvalidReminderRule."""
    if isinstance(data, (RelativeReminder, AbsoluteReminder)):
        return data
    try:
        return _reminder_adapter.validate_python(data)
    except ValidationError as err:
        errors = _errors_summary(err)
        raise InvalidReminderRule(f"Invalid reminder rule: {'; '.join(errors)}", {"errors": errors}) from err


def to_utc_iso(instant: datetime) -> str:
    return instant.astimezone(timezone.utc).isoformat()


@dataclass(frozen=True)
class Period:
    """Half-open window ``[start, end)`` plus the instant its obligation is due."""

    start: datetime
    end: datetime
    deadline: datetime

    def contains(self, instant: datetime) -> bool:
        return self.start <= instant < self.end

    @property
    def start_key(self) -> str:
        return to_utc_iso(self.start)

    @property
    def end_key(self) -> str:
        return to_utc_iso(self.end)


# --- Schedule ---


class Assignee(BaseModel):
    name: str
    email: str = ""


class Schedule(BaseModel):
    """Recurring task definition.

    Rules are kept as raw mappings so one malformed schedule can be loaded
    and reported without blocking the others; parse them per evaluation.
    """

    id: str
    title: str
    description: str = ""
    recurrence: dict[str, Any]
    reminder: dict[str, Any]
    assignee: Assignee
    status: Literal["active", "inactive"] = "active"
    visible: bool = True
    created_at: str = ""
    updated_at: str = ""

    @property
    def is_active(self) -> bool:
        return self.status == "active"

    def recurrence_rule(self) -> RecurrenceRule:
        return parse_recurrence_rule(self.recurrence)

    def reminder_rule(self) -> ReminderRule:
        return parse_reminder_rule(self.reminder)

    def created_instant(self) -> datetime | None:
        if not self.created_at:
            return None
        try:
            created = datetime.fromisoformat(self.created_at)
        except ValueError:
            return None
        return created if created.tzinfo else created.replace(tzinfo=timezone.utc)
