"""Tests for the completion ledger."""

from datetime import datetime, timedelta, timezone
from zoneinfo import ZoneInfo

import pytest

from om_reminders.completions.ledger import CompletionLedger, period_key
from om_reminders.completions.types import Actor, AlreadyCompleted, CompletionNotFound
from om_reminders.scheduling.recurrence import resolve_period
from om_reminders.scheduling.types import Assignee, Schedule, ScheduleNotFound

MANILA = ZoneInfo("Asia/Manila")
START = datetime(2026, 10, 10, tzinfo=MANILA)
END = datetime(2026, 10, 17, tzinfo=MANILA)


class StepClock:
    def __init__(self, start: datetime) -> None:
        self.now = start

    def __call__(self) -> datetime:
        self.now += timedelta(seconds=1)
        return self.now


def _schedule(id: str = "sched-1") -> Schedule:
    return Schedule(
        id=id,
        title="Clean filters",
        recurrence={"kind": "weekly", "day_of_week": 5, "time": "17:00"},
        reminder={"kind": "relative", "days_before": 1},
        assignee=Assignee(name="Dana", email="dana@example.com"),
        created_at="2026-01-01T00:00:00+00:00",
    )


@pytest.fixture
def ledger(db):
    db.schedule_repo.create_schedule(_schedule())
    db.schedule_repo.create_schedule(_schedule("sched-2"))
    return CompletionLedger(
        db.completion_repo, db.schedule_repo, clock=StepClock(datetime(2026, 10, 15, tzinfo=timezone.utc))
    )


class TestPeriodKey:
    def test_same_instant_same_key(self):
        assert period_key(START) == period_key("2026-10-09T16:00:00+00:00")
        assert period_key(START) == "2026-10-09T16:00:00+00:00"

    def test_naive_string_is_utc(self):
        assert period_key("2026-10-09T16:00:00") == "2026-10-09T16:00:00+00:00"


class TestMarkComplete:
    def test_records_completion(self, ledger):
        completion = ledger.mark_complete("sched-1", START, END, notes="All zones flushed")
        assert completion.period_start == "2026-10-09T16:00:00+00:00"
        assert completion.deadline_kind == "weekly"
        assert completion.notes == "All zones flushed"
        assert ledger.is_completed("sched-1", START, END)

    def test_actor_defaults_to_assignee(self, ledger):
        completion = ledger.mark_complete("sched-1", START, END)
        assert completion.completed_by == Actor(name="Dana", email="dana@example.com")

    def test_explicit_actor(self, ledger):
        completion = ledger.mark_complete("sched-1", START, END, actor=Actor(name="Lee"))
        assert completion.completed_by.name == "Lee"

    def test_second_mark_conflicts(self, ledger):
        ledger.mark_complete("sched-1", START, END)
        with pytest.raises(AlreadyCompleted):
            ledger.mark_complete("sched-1", START.astimezone(timezone.utc), END)
        assert len(ledger.list_completions("sched-1")) == 1

    def test_other_period_is_independent(self, ledger):
        ledger.mark_complete("sched-1", START, END)
        ledger.mark_complete("sched-1", END, END + timedelta(days=7))
        assert len(ledger.list_completions("sched-1")) == 2

    def test_other_schedule_is_independent(self, ledger):
        ledger.mark_complete("sched-1", START, END)
        ledger.mark_complete("sched-2", START, END)
        assert ledger.is_completed("sched-2", START, END)

    def test_unknown_schedule(self, ledger):
        with pytest.raises(ScheduleNotFound):
            ledger.mark_complete("missing", START, END)

    def test_empty_period_rejected(self, ledger):
        with pytest.raises(ValueError):
            ledger.mark_complete("sched-1", END, START)


class TestMarkIncomplete:
    def test_removes_record(self, ledger):
        completion = ledger.mark_complete("sched-1", START, END)
        ledger.mark_incomplete(completion.id)
        assert not ledger.is_completed("sched-1", START, END)
        ledger.mark_complete("sched-1", START, END)

    def test_missing_record(self, ledger):
        with pytest.raises(CompletionNotFound):
            ledger.mark_incomplete("cmp-missing")


class TestQueries:
    def test_list_newest_first(self, ledger):
        ledger.mark_complete("sched-1", START, END)
        ledger.mark_complete("sched-2", START, END)
        assert [c.schedule_id for c in ledger.list_completions()] == ["sched-2", "sched-1"]

    def test_list_by_completed_range(self, ledger):
        first = ledger.mark_complete("sched-1", START, END)
        ledger.mark_complete("sched-2", START, END)
        assert [c.id for c in ledger.list_completions(end=first.completed_at)] == [first.id]

    def test_is_period_completed(self, ledger, db, tz):
        schedule = db.schedule_repo.get_schedule_by_id("sched-1")
        now = datetime(2026, 10, 15, 12, tzinfo=MANILA)
        period = resolve_period(schedule.recurrence, now, tz)
        assert not ledger.is_period_completed(schedule, now, tz)
        ledger.mark_complete("sched-1", period.start, period.end)
        assert ledger.is_period_completed(schedule, now, tz)
        assert not ledger.is_period_completed(schedule, now + timedelta(days=7), tz)
