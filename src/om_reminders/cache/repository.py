"""Snapshot persistence: one document per collection kind."""

from __future__ import annotations

from om_reminders.cache.types import CacheSnapshot
from om_reminders.infrastructure.document_store import DocumentStore

COLLECTION = "cache_snapshots"


class SnapshotRepository:
    def __init__(self, store: DocumentStore) -> None:
        self._store = store

    def get_snapshot(self, kind: str) -> CacheSnapshot | None:
        doc = self._store.get(COLLECTION, kind)
        if not doc:
            return None
        doc.pop("id", None)
        return CacheSnapshot.model_validate(doc)

    def replace_snapshot(self, snapshot: CacheSnapshot) -> None:
        """Swap the whole snapshot document in a single write."""
        self._store.put(COLLECTION, snapshot.kind, snapshot.model_dump())
