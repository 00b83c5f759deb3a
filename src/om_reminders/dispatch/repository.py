"""Run log and sent-reminder (dedupe set) persistence."""

from __future__ import annotations

import hashlib
from datetime import date, datetime
from zoneinfo import ZoneInfo

from om_reminders.dispatch.types import DispatchRunLog, SentReminder
from om_reminders.infrastructure.document_store import DocumentStore

RUNS_COLLECTION = "dispatch_runs"
SENT_COLLECTION = "sent_reminders"


class RunLogRepository:
    """Append-only dispatch run logs."""

    def __init__(self, store: DocumentStore) -> None:
        self._store = store

    def append(self, log: DispatchRunLog) -> None:
        self._store.put(RUNS_COLLECTION, log.id, log.model_dump())

    def get_latest(self) -> DispatchRunLog | None:
        docs = self._store.query(RUNS_COLLECTION, order_by="timestamp", descending=True, limit=1)
        return DispatchRunLog.model_validate(docs[0]) if docs else None

    def get_recent(self, limit: int = 20) -> list[DispatchRunLog]:
        docs = self._store.query(RUNS_COLLECTION, order_by="timestamp", descending=True, limit=limit)
        return [DispatchRunLog.model_validate(doc) for doc in docs]


def marker_id(schedule_id: str, period_start: str, period_end: str, day: date | str) -> str:
    digest = hashlib.sha256(f"{schedule_id}|{period_start}|{period_end}|{day}".encode()).hexdigest()
    return f"sent-{digest[:24]}"


class SentReminderRepository:
    """Same-day dedupe set.

    ``claim`` is the atomic insert-if-absent; whoever wins it may send. The
    winner then either ``confirm``s the marker or ``release``s it so a later
    run can try again.
    """

    def __init__(self, store: DocumentStore) -> None:
        self._store = store

    def claim(
        self,
        schedule_id: str,
        period_start: str,
        period_end: str,
        day: date,
        claimed_at: str,
        recipient: str = "",
    ) -> SentReminder | None:
        """Insert a pending marker. Returns None when one already exists."""
        marker = SentReminder(
            id=marker_id(schedule_id, period_start, period_end, day),
            schedule_id=schedule_id,
            period_start=period_start,
            period_end=period_end,
            day=day.isoformat(),
            claimed_at=claimed_at,
            recipient=recipient,
        )
        if not self._store.create(SENT_COLLECTION, marker.id, marker.model_dump()):
            return None
        return marker

    def confirm(self, marker: SentReminder, sent_at: str) -> SentReminder:
        confirmed = marker.model_copy(update={"state": "sent", "sent_at": sent_at})
        self._store.put(SENT_COLLECTION, confirmed.id, confirmed.model_dump())
        return confirmed

    def release(self, marker: SentReminder) -> None:
        self._store.delete(SENT_COLLECTION, marker.id)

    def get(self, schedule_id: str, period_start: str, period_end: str, day: date) -> SentReminder | None:
        doc = self._store.get(SENT_COLLECTION, marker_id(schedule_id, period_start, period_end, day))
        return SentReminder.model_validate(doc) if doc else None

    def sent_on(self, day: date) -> list[SentReminder]:
        docs = self._store.query(
            SENT_COLLECTION, [("day", "==", day.isoformat()), ("state", "==", "sent")], order_by="sent_at"
        )
        return [SentReminder.model_validate(doc) for doc in docs]

    def sent_today(self, now: datetime, tz: ZoneInfo) -> dict[str, str]:
        """Schedule id -> latest confirmed send time for the local day of ``now``."""
        return {m.schedule_id: m.sent_at or m.claimed_at for m in self.sent_on(now.astimezone(tz).date())}

    def clear_for_schedule_day(self, schedule_id: str, day: date) -> int:
        """Forget confirmed sends for the day. Pending claims of in-flight runs stay."""
        docs = self._store.query(
            SENT_COLLECTION,
            [("schedule_id", "==", schedule_id), ("day", "==", day.isoformat()), ("state", "==", "sent")],
        )
        for doc in docs:
            self._store.delete(SENT_COLLECTION, doc["id"])
        return len(docs)

    def cleanup(self, keep_from_day: date, stale_claims_before: str) -> int:
        """Drop markers for days before ``keep_from_day`` and abandoned pending claims."""
        old = self._store.query(SENT_COLLECTION, [("day", "<", keep_from_day.isoformat())])
        abandoned = self._store.query(
            SENT_COLLECTION, [("state", "==", "pending"), ("claimed_at", "<", stale_claims_before)]
        )
        ids = {doc["id"] for doc in old} | {doc["id"] for doc in abandoned}
        for id in ids:
            self._store.delete(SENT_COLLECTION, id)
        return len(ids)
