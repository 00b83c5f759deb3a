"""Completion records over the document store."""

from __future__ import annotations

import hashlib

from om_reminders.completions.types import TaskCompletion
from om_reminders.infrastructure.document_store import DocumentStore, Filter

COLLECTION = "completions"


def completion_id(schedule_id: str, period_start: str, period_end: str) -> str:
    """Deterministic id for one (schedule, period) pair."""
    digest = hashlib.sha256(f"{schedule_id}|{period_start}|{period_end}".encode()).hexdigest()
    return f"cmp-{digest[:24]}"


class CompletionRepository:
    def __init__(self, store: DocumentStore) -> None:
        self._store = store

    def insert_completion(self, completion: TaskCompletion) -> bool:
        """Insert if no record exists for the id. Returns False when one already does."""
        return self._store.create(COLLECTION, completion.id, completion.model_dump())

    def get_completion(self, id: str) -> TaskCompletion | None:
        doc = self._store.get(COLLECTION, id)
        return TaskCompletion.model_validate(doc) if doc else None

    def get_for_period(self, schedule_id: str, period_start: str, period_end: str) -> TaskCompletion | None:
        return self.get_completion(completion_id(schedule_id, period_start, period_end))

    def query_completions(
        self, schedule_id: str | None = None, start: str | None = None, end: str | None = None
    ) -> list[TaskCompletion]:
        """Newest first. ``start``/``end`` bound ``completed_at`` (inclusive)."""
        filters: list[Filter] = []
        if schedule_id:
            filters.append(("schedule_id", "==", schedule_id))
        if start:
            filters.append(("completed_at", ">=", start))
        if end:
            filters.append(("completed_at", "<=", end))
        docs = self._store.query(COLLECTION, filters, order_by="completed_at", descending=True)
        return [TaskCompletion.model_validate(doc) for doc in docs]

    def delete_completion(self, id: str) -> bool:
        return self._store.delete(COLLECTION, id)
