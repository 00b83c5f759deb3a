"""Cache synchronizer: denormalized snapshots of the authoritative collections."""

from __future__ import annotations

import uuid
from datetime import datetime, timedelta, timezone
from typing import Any, Callable

from om_reminders.cache.repository import SnapshotRepository
from om_reminders.cache.types import COLLECTION_KINDS, CacheSnapshot, CacheView, CollectionKind, SyncFailed, SyncResult
from om_reminders.employees.repository import EmployeeRepository
from om_reminders.infrastructure.config import CACHE_MAX_AGE
from om_reminders.infrastructure.logger import logger
from om_reminders.infrastructure.state_repo import StateRepository
from om_reminders.scheduling.repository import ScheduleRepository
from om_reminders.scheduling.types import Schedule, to_utc_iso

STALE_KEY_PREFIX = "cache_stale:"


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class CacheSynchronizer:
    """Sole writer of cache snapshots.

    A snapshot is rebuilt from a full read of the authoritative collection
    and replaced in one write, so a failed read never leaves a partial
    snapshot behind. Mutations elsewhere call ``mark_stale``; the flag is
    only cleared by a sync that started after it was raised.
    """

    def __init__(
        self,
        snapshot_repo: SnapshotRepository,
        schedule_repo: ScheduleRepository,
        employee_repo: EmployeeRepository,
        state_repo: StateRepository,
        max_age_s: float = CACHE_MAX_AGE,
        clock: Callable[[], datetime] = _utcnow,
    ) -> None:
        self._snapshot_repo = snapshot_repo
        self._schedule_repo = schedule_repo
        self._employee_repo = employee_repo
        self._state_repo = state_repo
        self._max_age = timedelta(seconds=max_age_s)
        self._clock = clock
        self._builders: dict[str, Callable[[], list[dict[str, Any]]]] = {
            "schedules": self._build_schedules,
            "calendar": self._build_calendar,
            "employees": self._build_employees,
        }

    # --- Sync ---

    def sync(self, kind: CollectionKind) -> SyncResult:
        """Rebuild one snapshot. Raises SyncFailed; the previous snapshot stays intact."""
        builder = self._builders.get(kind)
        if builder is None:
            raise ValueError(f"Unknown cache kind: {kind}")

        stale_token = self._state_repo.get_state(STALE_KEY_PREFIX + kind)
        try:
            entries = builder()
        except Exception as err:
            logger.error("Cache sync failed", kind=kind, err=str(err))
            raise SyncFailed(kind, str(err)) from err

        previous = self._snapshot_repo.get_snapshot(kind)
        synced_at = self._clock()
        if previous is not None:
            last = datetime.fromisoformat(previous.last_synced_at)
            if synced_at <= last:
                synced_at = last + timedelta(microseconds=1)

        snapshot = CacheSnapshot(
            kind=kind, entries=entries, last_synced_at=to_utc_iso(synced_at), source_count=len(entries)
        )
        self._snapshot_repo.replace_snapshot(snapshot)
        if stale_token is not None and self._state_repo.get_state(STALE_KEY_PREFIX + kind) == stale_token:
            self._state_repo.delete_state(STALE_KEY_PREFIX + kind)

        logger.info("Cache synced", kind=kind, count=len(entries))
        return SyncResult(kind=kind, count=len(entries), synced_at=snapshot.last_synced_at)

    def sync_all(self) -> dict[str, SyncResult | SyncFailed]:
        results: dict[str, SyncResult | SyncFailed] = {}
        for kind in COLLECTION_KINDS:
            try:
                results[kind] = self.sync(kind)
            except SyncFailed as err:
                results[kind] = err
        return results

    # --- Read ---

    def read(self, kind: CollectionKind) -> CacheSnapshot | None:
        """Current snapshot, or None when it has never been built."""
        return self._snapshot_repo.get_snapshot(kind)

    def view(self, kind: CollectionKind) -> CacheView:
        snapshot = self.read(kind)
        if snapshot is None:
            return CacheView(entries=[], cache_exists=False)
        return CacheView(
            entries=snapshot.entries,
            cache_exists=True,
            last_synced=snapshot.last_synced_at,
            count=snapshot.source_count,
        )

    # --- Staleness ---

    def mark_stale(self, *kinds: CollectionKind) -> None:
        for kind in kinds or COLLECTION_KINDS:
            self._state_repo.set_state(STALE_KEY_PREFIX + kind, uuid.uuid4().hex)

    def is_stale(self, snapshot: CacheSnapshot, now: datetime | None = None) -> bool:
        if self._state_repo.get_state(STALE_KEY_PREFIX + snapshot.kind) is not None:
            return True
        age = (now or self._clock()) - datetime.fromisoformat(snapshot.last_synced_at)
        return age > self._max_age

    def ensure_fresh(self, kind: CollectionKind, now: datetime | None = None) -> CacheSnapshot:
        """Return a usable snapshot, resyncing when missing or stale.

        A failed resync falls back to the stale snapshot when there is one;
        with nothing to fall back on, SyncFailed propagates.
        """
        snapshot = self.read(kind)
        if snapshot is not None and not self.is_stale(snapshot, now):
            return snapshot
        try:
            self.sync(kind)
        except SyncFailed:
            if snapshot is None:
                raise
            logger.warning("Serving stale snapshot", kind=kind, last_synced=snapshot.last_synced_at)
            return snapshot
        fresh = self.read(kind)
        assert fresh is not None
        return fresh

    # --- Builders ---

    def _build_schedules(self) -> list[dict[str, Any]]:
        return [s.model_dump() for s in self._schedule_repo.get_active_schedules()]

    def _build_calendar(self) -> list[dict[str, Any]]:
        return [s.model_dump() for s in self._schedule_repo.get_active_schedules() if s.visible]

    def _build_employees(self) -> list[dict[str, Any]]:
        """Employees with their active tasks, busiest first.

        Assignees that have no employee record still get an entry.
        """
        by_key: dict[str, dict[str, Any]] = {}
        for employee in self._employee_repo.get_all_employees():
            by_key[_assignee_key(employee.email, employee.name)] = {
                "employee_id": employee.id,
                "name": employee.name,
                "email": employee.email,
                "position": employee.position,
                "task_count": 0,
                "tasks": [],
            }

        for schedule in self._schedule_repo.get_active_schedules():
            entry = by_key.setdefault(_assignee_key(schedule.assignee.email, schedule.assignee.name), {
                "employee_id": None,
                "name": schedule.assignee.name,
                "email": schedule.assignee.email,
                "position": "",
                "task_count": 0,
                "tasks": [],
            })
            entry["task_count"] += 1
            entry["tasks"].append(_task_summary(schedule))

        return sorted(by_key.values(), key=lambda e: (-e["task_count"], e["name"].lower()))


def _assignee_key(email: str, name: str) -> str:
    return email.strip().lower() or f"name:{name.strip().lower()}"


def _task_summary(schedule: Schedule) -> dict[str, Any]:
    return {"id": schedule.id, "title": schedule.title, "status": schedule.status}
