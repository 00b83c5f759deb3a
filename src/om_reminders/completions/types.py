"""Completion ledger domain types."""

from __future__ import annotations

from pydantic import BaseModel

from om_reminders.infrastructure.errors import DomainError


class AlreadyCompleted(DomainError):
    def __init__(self, schedule_id: str, period_start: str, period_end: str) -> None:
        super().__init__(
            "Task already marked as complete for this period",
            {"schedule_id": schedule_id, "period_start": period_start, "period_end": period_end},
        )


class CompletionNotFound(DomainError):
    def __init__(self, completion_id: str) -> None:
        super().__init__(f"Completion not found: {completion_id}", {"completion_id": completion_id})


class Actor(BaseModel):
    name: str = ""
    email: str = ""


class TaskCompletion(BaseModel):
    id: str
    schedule_id: str
    period_start: str  # UTC ISO-8601
    period_end: str
    deadline_kind: str = ""
    completed_at: str
    completed_by: Actor
    notes: str | None = None
