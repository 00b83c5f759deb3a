"""Tests for cache snapshots and staleness."""

from datetime import datetime, timedelta, timezone

import pytest

from om_reminders.cache.synchronizer import CacheSynchronizer
from om_reminders.cache.types import SyncFailed
from om_reminders.employees.types import Employee
from om_reminders.scheduling.types import Assignee, Schedule

FROZEN = datetime(2026, 10, 19, 1, 0, tzinfo=timezone.utc)


def _schedule(id: str, assignee: str = "Dana", email: str = "dana@example.com", status: str = "active", visible: bool = True) -> Schedule:
    return Schedule(
        id=id,
        title=f"Task {id}",
        recurrence={"kind": "daily"},
        reminder={"kind": "relative"},
        assignee=Assignee(name=assignee, email=email),
        status=status,
        visible=visible,
        created_at=f"2026-10-01T00:00:0{id[-1]}+00:00",
    )


def _boom():
    raise RuntimeError("store offline")


@pytest.fixture
def cache(db):
    return CacheSynchronizer(
        db.snapshot_repo, db.schedule_repo, db.employee_repo, db.state_repo, max_age_s=300, clock=lambda: FROZEN
    )


class TestSync:
    def test_never_built_vs_empty(self, cache):
        assert cache.read("schedules") is None
        view = cache.view("schedules")
        assert view.cache_exists is False
        assert view.entries == []

        cache.sync("schedules")
        view = cache.view("schedules")
        assert view.cache_exists is True
        assert view.entries == []
        assert view.count == 0

    def test_snapshot_holds_active_schedules(self, cache, db):
        db.schedule_repo.create_schedule(_schedule("s1"))
        db.schedule_repo.create_schedule(_schedule("s2", status="inactive"))
        result = cache.sync("schedules")
        assert result.count == 1
        assert [e["id"] for e in cache.read("schedules").entries] == ["s1"]

    def test_calendar_hides_invisible(self, cache, db):
        db.schedule_repo.create_schedule(_schedule("s1"))
        db.schedule_repo.create_schedule(_schedule("s2", visible=False))
        cache.sync("calendar")
        assert [e["id"] for e in cache.read("calendar").entries] == ["s1"]

    def test_last_synced_strictly_increases(self, cache):
        first = cache.sync("schedules").synced_at
        second = cache.sync("schedules").synced_at
        assert datetime.fromisoformat(second) > datetime.fromisoformat(first)

    def test_resync_is_idempotent(self, cache, db):
        db.schedule_repo.create_schedule(_schedule("s1"))
        first = cache.sync("schedules")
        second = cache.sync("schedules")
        assert first.count == second.count == 1
        assert cache.read("schedules").source_count == 1

    def test_failure_keeps_previous_snapshot(self, cache, db, monkeypatch):
        db.schedule_repo.create_schedule(_schedule("s1"))
        cache.sync("schedules")
        before = cache.read("schedules")

        monkeypatch.setattr(db.schedule_repo, "get_active_schedules", _boom)
        with pytest.raises(SyncFailed) as exc:
            cache.sync("schedules")

        assert exc.value.kind == "schedules"
        assert cache.read("schedules") == before

    def test_unknown_kind(self, cache):
        with pytest.raises(ValueError):
            cache.sync("tasks")

    def test_sync_all_reports_per_kind(self, cache, db, monkeypatch):
        monkeypatch.setattr(db.employee_repo, "get_all_employees", _boom)
        results = cache.sync_all()
        assert results["schedules"].count == 0
        assert isinstance(results["employees"], SyncFailed)


class TestEmployeesSnapshot:
    def test_aggregates_tasks_per_assignee(self, cache, db):
        db.employee_repo.create_employee(Employee(id="e1", name="Dana", email="Dana@Example.com", position="Tech"))
        db.employee_repo.create_employee(Employee(id="e2", name="Ana", email="", position="Lead"))
        db.schedule_repo.create_schedule(_schedule("s1"))
        db.schedule_repo.create_schedule(_schedule("s2"))
        db.schedule_repo.create_schedule(_schedule("s3", assignee="Rio", email="rio@example.com"))
        db.schedule_repo.create_schedule(_schedule("s4", status="inactive"))

        cache.sync("employees")
        entries = cache.read("employees").entries

        assert [e["name"] for e in entries] == ["Dana", "Rio", "Ana"]
        dana, rio, ana = entries
        assert dana["employee_id"] == "e1"
        assert dana["task_count"] == 2
        assert {t["id"] for t in dana["tasks"]} == {"s1", "s2"}
        assert rio["employee_id"] is None
        assert ana["task_count"] == 0

    def test_assignee_without_email_matched_by_name(self, cache, db):
        db.employee_repo.create_employee(Employee(id="e1", name="Lee", position="Tech"))
        db.schedule_repo.create_schedule(_schedule("s1", assignee="lee", email=""))
        cache.sync("employees")
        entries = cache.read("employees").entries
        assert len(entries) == 1
        assert entries[0]["task_count"] == 1


class TestStaleness:
    def test_fresh_snapshot_reused(self, cache, db):
        cache.sync("schedules")
        db.schedule_repo.create_schedule(_schedule("s1"))
        assert cache.ensure_fresh("schedules").source_count == 0

    def test_mark_stale_forces_resync(self, cache, db):
        cache.sync("schedules")
        db.schedule_repo.create_schedule(_schedule("s1"))
        cache.mark_stale("schedules")
        assert cache.is_stale(cache.read("schedules"))

        snapshot = cache.ensure_fresh("schedules")

        assert snapshot.source_count == 1
        assert not cache.is_stale(snapshot)

    def test_mark_stale_without_kinds_marks_all(self, cache):
        cache.sync_all()
        cache.mark_stale()
        assert all(cache.is_stale(cache.read(kind)) for kind in ("schedules", "calendar", "employees"))

    def test_age_makes_stale(self, cache):
        snapshot = cache.ensure_fresh("schedules")
        assert not cache.is_stale(snapshot, FROZEN + timedelta(seconds=299))
        assert cache.is_stale(snapshot, FROZEN + timedelta(seconds=301))

    def test_missing_snapshot_built_on_demand(self, cache):
        assert cache.ensure_fresh("calendar").kind == "calendar"

    def test_failed_resync_serves_stale_snapshot(self, cache, db, monkeypatch):
        cache.sync("schedules")
        cache.mark_stale("schedules")
        monkeypatch.setattr(db.schedule_repo, "get_active_schedules", _boom)
        assert cache.ensure_fresh("schedules").source_count == 0

    def test_failed_first_sync_raises(self, cache, db, monkeypatch):
        monkeypatch.setattr(db.schedule_repo, "get_active_schedules", _boom)
        with pytest.raises(SyncFailed):
            cache.ensure_fresh("schedules")

    def test_mutation_during_sync_keeps_flag(self, cache, db, monkeypatch):
        cache.mark_stale("schedules")
        real = db.schedule_repo.get_active_schedules

        def racing():
            cache.mark_stale("schedules")
            return real()

        monkeypatch.setattr(db.schedule_repo, "get_active_schedules", racing)
        cache.sync("schedules")
        assert cache.is_stale(cache.read("schedules"))
