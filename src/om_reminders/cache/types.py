"""Cache snapshot types."""

from __future__ import annotations

from typing import Any, Literal

from pydantic import BaseModel

from om_reminders.infrastructure.errors import DomainError

CollectionKind = Literal["schedules", "calendar", "employees"]
COLLECTION_KINDS: tuple[CollectionKind, ...] = ("schedules", "calendar", "employees")


class SyncFailed(DomainError):
    def __init__(self, kind: str, reason: str) -> None:
        super().__init__(f"Cache sync failed for {kind}: {reason}", {"kind": kind, "reason": reason})
        self.kind = kind
        self.reason = reason


class CacheSnapshot(BaseModel):
    kind: CollectionKind
    entries: list[dict[str, Any]]
    last_synced_at: str  # UTC ISO-8601
    source_count: int


class CacheView(BaseModel):
    """What interactive readers get: an empty list with ``cache_exists=False`` means never built."""

    entries: list[dict[str, Any]]
    cache_exists: bool
    last_synced: str | None = None
    count: int | None = None


class SyncResult(BaseModel):
    kind: CollectionKind
    count: int
    synced_at: str
