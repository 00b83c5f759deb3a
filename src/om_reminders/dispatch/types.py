"""Dispatch domain types."""

from __future__ import annotations

from typing import Literal

from pydantic import BaseModel

OutcomeStatus = Literal["sent", "skipped", "error"]


class ScheduleOutcome(BaseModel):
    schedule_id: str
    status: OutcomeStatus
    reason: str
    period_start: str | None = None
    period_end: str | None = None
    fire_at: str | None = None


class DispatchRunLog(BaseModel):
    id: str
    timestamp: str  # UTC ISO-8601
    interval_since_previous_ms: int | None = None  # None for the first-ever run
    checked: int = 0
    sent: int = 0
    skipped: int = 0
    errors: int = 0
    active_total: int = 0
    duration_ms: int = 0
    cancelled: bool = False


class DispatchRun(BaseModel):
    log: DispatchRunLog
    outcomes: list[ScheduleOutcome]


class SentReminder(BaseModel):
    """Dedupe marker: at most one per (schedule, period, local day)."""

    id: str
    schedule_id: str
    period_start: str
    period_end: str
    day: str  # local calendar day, YYYY-MM-DD
    state: Literal["pending", "sent"] = "pending"
    claimed_at: str
    sent_at: str | None = None
    recipient: str = ""


class TriggerResult(BaseModel):
    run_id: str
    checked: int
    sent: int
    skipped: int
    errors: int
    synced_at: str | None = None
    details: list[ScheduleOutcome] = []
