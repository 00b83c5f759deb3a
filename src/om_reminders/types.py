"""Public import surface: every domain type and error, re-exported from one place.

The command layer takes its error taxonomy from here, and client code
outside the package should import from here rather than from the
per-area ``types`` modules.
"""

from om_reminders.cache.types import CacheSnapshot, CacheView, CollectionKind, SyncFailed, SyncResult
from om_reminders.completions.types import Actor, AlreadyCompleted, CompletionNotFound, TaskCompletion
from om_reminders.dispatch.types import (
    DispatchRun,
    DispatchRunLog,
    OutcomeStatus,
    ScheduleOutcome,
    SentReminder,
    TriggerResult,
)
from om_reminders.employees.types import Employee, EmployeeNotFound
from om_reminders.infrastructure.errors import DomainError
from om_reminders.scheduling.types import (
    AbsoluteReminder,
    Assignee,
    CustomRule,
    DailyRule,
    HourlyRule,
    IntervalRule,
    InvalidRecurrenceRule,
    InvalidReminderRule,
    MonthlyRule,
    MonthlySpecificRule,
    PerMinuteRule,
    Period,
    RecurrenceRule,
    RelativeReminder,
    ReminderRule,
    Schedule,
    ScheduleNotFound,
    WeeklyRule,
)

__all__ = [
    "AbsoluteReminder",
    "Actor",
    "AlreadyCompleted",
    "Assignee",
    "CacheSnapshot",
    "CacheView",
    "CollectionKind",
    "CompletionNotFound",
    "CustomRule",
    "DailyRule",
    "DispatchRun",
    "DispatchRunLog",
    "DomainError",
    "Employee",
    "EmployeeNotFound",
    "HourlyRule",
    "IntervalRule",
    "InvalidRecurrenceRule",
    "InvalidReminderRule",
    "MonthlyRule",
    "MonthlySpecificRule",
    "OutcomeStatus",
    "PerMinuteRule",
    "Period",
    "RecurrenceRule",
    "RelativeReminder",
    "ReminderRule",
    "Schedule",
    "ScheduleNotFound",
    "ScheduleOutcome",
    "SentReminder",
    "SyncFailed",
    "SyncResult",
    "TaskCompletion",
    "TriggerResult",
    "WeeklyRule",
]
