"""Tests for ScheduleManager lifecycle."""

from datetime import datetime
from zoneinfo import ZoneInfo

import pytest

from om_reminders.scheduling.schedule_service import ScheduleManager
from om_reminders.scheduling.types import InvalidRecurrenceRule, InvalidReminderRule, ScheduleNotFound

WEEKLY = {"kind": "weekly", "day_of_week": 5, "time": "17:00"}
DAY_BEFORE = {"kind": "relative", "days_before": 1, "time": "09:00"}
NOW = datetime(2026, 10, 15, 10, 0, tzinfo=ZoneInfo("Asia/Manila"))


@pytest.fixture
def changes():
    return []


@pytest.fixture
def manager(db, tz, changes):
    return ScheduleManager(
        db.schedule_repo,
        sent_reminders=db.sent_reminder_repo,
        tz=tz,
        on_change=lambda: changes.append(1),
        clock=lambda: NOW,
    )


def _create(manager, title="Check sprinkler heads", **kwargs):
    return manager.create(title, WEEKLY, DAY_BEFORE, "Dana", "dana@example.com", **kwargs)


class TestCreate:
    def test_create_persists_and_notifies(self, manager, changes):
        schedule = _create(manager)
        assert schedule.id.startswith("sched-")
        assert schedule.status == "active"
        assert schedule.created_at == schedule.updated_at
        assert manager.get(schedule.id).title == "Check sprinkler heads"
        assert changes == [1]

    def test_rules_are_normalized(self, manager):
        schedule = manager.create("Drain", {"kind": "daily"}, {"kind": "relative"}, "Dana")
        assert schedule.recurrence == {"kind": "daily"}
        assert schedule.reminder == {"kind": "relative", "days_before": 1}

    def test_invalid_recurrence_rejected(self, manager, changes):
        with pytest.raises(InvalidRecurrenceRule):
            manager.create("Bad", {"kind": "monthly", "day_of_month": 40}, DAY_BEFORE, "Dana")
        assert manager.get_all() == []
        assert changes == []

    def test_invalid_reminder_rejected(self, manager):
        with pytest.raises(InvalidReminderRule):
            manager.create("Bad", WEEKLY, {"kind": "relative", "days_before": -2}, "Dana")

    def test_reminder_after_period_end_rejected(self, manager, changes):
        # Same-day 23:00 on a two-hour period lands long after the 10:00-12:00 window
        with pytest.raises(InvalidReminderRule):
            manager.create(
                "Late", {"kind": "hourly", "hours": 2}, {"kind": "relative", "days_before": 0, "time": "23:00"}, "Dana"
            )
        assert manager.get_all() == []
        assert changes == []

    @pytest.mark.parametrize("recurrence", [
        {"kind": "hourly"},
        {"kind": "per-minute", "minutes": 5},
        {"kind": "custom", "cron_expression": "0 * * * *"},
    ])
    def test_default_reminder_accepted_for_sub_daily_rules(self, manager, recurrence):
        schedule = manager.create("Flush", recurrence, {"kind": "relative"}, "Dana")
        assert schedule.reminder["days_before"] == 1


class TestQueries:
    def test_get_missing_raises(self, manager):
        assert manager.get_by_id("nope") is None
        with pytest.raises(ScheduleNotFound):
            manager.get("nope")

    def test_status_filter(self, manager):
        first = _create(manager, title="A")
        _create(manager, title="B")
        manager.deactivate(first.id)
        assert [s.title for s in manager.get_all(status="inactive")] == ["A"]
        assert [s.title for s in manager.get_all(status="active")] == ["B"]
        assert len(manager.get_all()) == 2

    def test_pagination(self, manager):
        for i in range(5):
            _create(manager, title=f"Task {i}")
        assert len(manager.get_all(page=1, page_size=2)) == 2
        assert len(manager.get_all(page=3, page_size=2)) == 1
        assert manager.get_all(page=4, page_size=2) == []


class TestUpdate:
    def test_partial_update(self, manager):
        schedule = _create(manager)
        updated = manager.update(schedule.id, title="Check valves", assignee_email="lee@example.com")
        assert updated.title == "Check valves"
        assert updated.assignee.name == "Dana"
        assert updated.assignee.email == "lee@example.com"
        assert updated.recurrence == schedule.recurrence

    def test_update_reminder_keeps_recurrence(self, manager):
        schedule = _create(manager)
        updated = manager.update(schedule.id, reminder={"kind": "relative", "days_before": 3})
        assert updated.reminder["days_before"] == 3
        assert updated.recurrence == WEEKLY

    def test_update_invalid_rule_leaves_schedule(self, manager):
        schedule = _create(manager)
        with pytest.raises(InvalidRecurrenceRule):
            manager.update(schedule.id, recurrence={"kind": "hourly", "hours": 0})
        assert manager.get(schedule.id).recurrence == WEEKLY

    def test_update_missing(self, manager):
        with pytest.raises(ScheduleNotFound):
            manager.update("nope", title="x")

    def test_update_clears_todays_markers(self, manager, db, tz):
        schedule = _create(manager)
        today = NOW.date()
        marker = db.sent_reminder_repo.claim(schedule.id, "s", "e", today, "2026-10-19T00:00:00+00:00")
        db.sent_reminder_repo.confirm(marker, "2026-10-19T00:00:01+00:00")

        manager.update(schedule.id, title="Edited")

        assert db.sent_reminder_repo.get(schedule.id, "s", "e", today) is None

    def test_update_keeps_pending_claims(self, manager, db):
        schedule = _create(manager)
        db.sent_reminder_repo.claim(schedule.id, "s", "e", NOW.date(), "2026-10-15T02:00:00+00:00")

        manager.update(schedule.id, description="edited")

        assert db.sent_reminder_repo.get(schedule.id, "s", "e", NOW.date()).state == "pending"

    def test_update_to_unreachable_reminder_rejected(self, manager):
        schedule = manager.create("Flush", {"kind": "hourly"}, {"kind": "relative"}, "Dana")
        with pytest.raises(InvalidReminderRule):
            manager.update(schedule.id, reminder={"kind": "relative", "days_before": 0, "time": "23:30"})
        assert manager.get(schedule.id).reminder == {"kind": "relative", "days_before": 1}


class TestLifecycle:
    def test_deactivate_and_activate(self, manager, changes):
        schedule = _create(manager)
        assert manager.deactivate(schedule.id).status == "inactive"
        assert manager.activate(schedule.id).status == "active"
        assert len(changes) == 3

    def test_delete(self, manager):
        schedule = _create(manager)
        manager.delete(schedule.id)
        assert manager.get_by_id(schedule.id) is None
        with pytest.raises(ScheduleNotFound):
            manager.delete(schedule.id)
