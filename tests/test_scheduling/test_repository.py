"""Tests for schedule repository."""

import pytest

from om_reminders.scheduling.types import Assignee, Schedule


@pytest.fixture
def schedule_repo(db):
    return db.schedule_repo


def _schedule(id: str = "sched-1", status: str = "active", created_at: str = "2026-10-01T00:00:00+00:00") -> Schedule:
    return Schedule(
        id=id,
        title="Flush drip lines",
        recurrence={"kind": "weekly", "day_of_week": 5, "time": "17:00"},
        reminder={"kind": "relative", "days_before": 1, "time": "09:00"},
        assignee=Assignee(name="Dana", email="dana@example.com"),
        status=status,
        created_at=created_at,
        updated_at=created_at,
    )


class TestScheduleCRUD:
    def test_create_and_get(self, schedule_repo):
        schedule_repo.create_schedule(_schedule())
        result = schedule_repo.get_schedule_by_id("sched-1")
        assert result is not None
        assert result.title == "Flush drip lines"
        assert result.recurrence["day_of_week"] == 5
        assert result.assignee.email == "dana@example.com"

    def test_get_nonexistent(self, schedule_repo):
        assert schedule_repo.get_schedule_by_id("nonexistent") is None

    def test_update(self, schedule_repo):
        schedule_repo.create_schedule(_schedule())
        schedule_repo.update_schedule("sched-1", status="inactive", title=None)
        result = schedule_repo.get_schedule_by_id("sched-1")
        assert result.status == "inactive"
        assert result.title == "Flush drip lines"

    def test_update_missing(self, schedule_repo):
        assert schedule_repo.update_schedule("nope", status="inactive") is None

    def test_delete(self, schedule_repo):
        schedule_repo.create_schedule(_schedule())
        assert schedule_repo.delete_schedule("sched-1") is True
        assert schedule_repo.get_schedule_by_id("sched-1") is None
        assert schedule_repo.delete_schedule("sched-1") is False


class TestScheduleQueries:
    def test_all_newest_first(self, schedule_repo):
        schedule_repo.create_schedule(_schedule(id="old", created_at="2026-01-01T00:00:00+00:00"))
        schedule_repo.create_schedule(_schedule(id="new", created_at="2026-06-01T00:00:00+00:00"))
        assert [s.id for s in schedule_repo.get_all_schedules()] == ["new", "old"]

    def test_active_only(self, schedule_repo):
        schedule_repo.create_schedule(_schedule(id="s1"))
        schedule_repo.create_schedule(_schedule(id="s2", status="inactive"))
        assert [s.id for s in schedule_repo.get_active_schedules()] == ["s1"]
