"""Schedule persistence over the document store."""

from __future__ import annotations

from typing import Any

from om_reminders.infrastructure.document_store import DocumentStore
from om_reminders.scheduling.types import Schedule

COLLECTION = "schedules"


class ScheduleRepository:
    def __init__(self, store: DocumentStore) -> None:
        self._store = store

    def create_schedule(self, schedule: Schedule) -> None:
        self._store.put(COLLECTION, schedule.id, schedule.model_dump())

    def get_schedule_by_id(self, id: str) -> Schedule | None:
        doc = self._store.get(COLLECTION, id)
        return Schedule.model_validate(doc) if doc else None

    def get_all_schedules(self) -> list[Schedule]:
        docs = self._store.query(COLLECTION, order_by="created_at", descending=True)
        return [Schedule.model_validate(doc) for doc in docs]

    def get_active_schedules(self) -> list[Schedule]:
        docs = self._store.query(
            COLLECTION, [("status", "==", "active")], order_by="created_at", descending=True
        )
        return [Schedule.model_validate(doc) for doc in docs]

    def update_schedule(self, id: str, **updates: Any) -> Schedule | None:
        """Apply non-None field updates. Returns the updated schedule, or None if missing."""
        current = self._store.get(COLLECTION, id)
        if not current:
            return None
        current.update({k: v for k, v in updates.items() if v is not None})
        schedule = Schedule.model_validate(current)
        self._store.put(COLLECTION, id, schedule.model_dump())
        return schedule

    def delete_schedule(self, id: str) -> bool:
        return self._store.delete(COLLECTION, id)
