"""Tests for run logs and the sent-reminder dedupe set."""

from datetime import date, datetime, timezone
from zoneinfo import ZoneInfo

import pytest

from om_reminders.dispatch.repository import marker_id
from om_reminders.dispatch.types import DispatchRunLog

DAY = date(2026, 10, 19)


@pytest.fixture
def sent(db):
    return db.sent_reminder_repo


class TestClaim:
    def test_first_claim_wins(self, sent):
        marker = sent.claim("sched-1", "s", "e", DAY, "2026-10-19T01:00:00+00:00", recipient="dana@example.com")
        assert marker.state == "pending"
        assert marker.id == marker_id("sched-1", "s", "e", DAY)
        assert sent.claim("sched-1", "s", "e", DAY, "2026-10-19T01:00:05+00:00") is None

    def test_distinct_periods_and_days(self, sent):
        assert sent.claim("sched-1", "s", "e", DAY, "t") is not None
        assert sent.claim("sched-1", "s2", "e2", DAY, "t") is not None
        assert sent.claim("sched-1", "s", "e", date(2026, 10, 20), "t") is not None

    def test_release_allows_reclaim(self, sent):
        marker = sent.claim("sched-1", "s", "e", DAY, "t")
        sent.release(marker)
        assert sent.get("sched-1", "s", "e", DAY) is None
        assert sent.claim("sched-1", "s", "e", DAY, "t") is not None

    def test_confirm(self, sent):
        marker = sent.claim("sched-1", "s", "e", DAY, "2026-10-19T01:00:00+00:00")
        sent.confirm(marker, "2026-10-19T01:00:02+00:00")
        stored = sent.get("sched-1", "s", "e", DAY)
        assert stored.state == "sent"
        assert stored.sent_at == "2026-10-19T01:00:02+00:00"


class TestQueries:
    def test_sent_today_only_confirmed(self, sent):
        confirmed = sent.claim("sched-1", "s", "e", DAY, "2026-10-19T01:00:00+00:00")
        sent.confirm(confirmed, "2026-10-19T01:00:02+00:00")
        sent.claim("sched-2", "s", "e", DAY, "2026-10-19T01:00:00+00:00")

        now = datetime(2026, 10, 19, 3, 0, tzinfo=timezone.utc)
        assert sent.sent_today(now, ZoneInfo("Asia/Manila")) == {"sched-1": "2026-10-19T01:00:02+00:00"}

    def test_sent_today_uses_local_day(self, sent):
        marker = sent.claim("sched-1", "s", "e", DAY, "t")
        sent.confirm(marker, "2026-10-18T17:00:00+00:00")
        # 2026-10-18 17:00 UTC is already the 19th in Manila
        now = datetime(2026, 10, 18, 17, 0, tzinfo=timezone.utc)
        assert "sched-1" in sent.sent_today(now, ZoneInfo("Asia/Manila"))
        assert sent.sent_today(now, ZoneInfo("UTC")) == {}

    def test_clear_for_schedule_day(self, sent):
        sent.confirm(sent.claim("sched-1", "s", "e", DAY, "t"), "t1")
        sent.confirm(sent.claim("sched-1", "s2", "e2", DAY, "t"), "t2")
        sent.confirm(sent.claim("sched-2", "s", "e", DAY, "t"), "t3")
        assert sent.clear_for_schedule_day("sched-1", DAY) == 2
        assert sent.get("sched-2", "s", "e", DAY) is not None

    def test_clear_keeps_pending_claims(self, sent):
        sent.claim("sched-1", "s", "e", DAY, "t")
        assert sent.clear_for_schedule_day("sched-1", DAY) == 0
        assert sent.claim("sched-1", "s", "e", DAY, "t") is None

    def test_cleanup(self, sent):
        old = sent.claim("sched-1", "s", "e", date(2026, 10, 1), "2026-10-01T00:00:00+00:00")
        sent.confirm(old, "2026-10-01T00:00:01+00:00")
        sent.claim("sched-2", "s", "e", DAY, "2026-10-19T00:00:00+00:00")
        kept = sent.claim("sched-3", "s", "e", DAY, "2026-10-19T02:00:00+00:00")

        removed = sent.cleanup(date(2026, 10, 12), "2026-10-19T01:00:00+00:00")

        assert removed == 2
        assert sent.get("sched-3", "s", "e", DAY) == kept


class TestRunLogs:
    def test_latest_and_recent(self, db):
        for minute in (0, 5, 10):
            db.run_log_repo.append(DispatchRunLog(id=f"run-{minute}", timestamp=f"2026-10-19T01:{minute:02d}:00+00:00"))
        assert db.run_log_repo.get_latest().id == "run-10"
        assert [log.id for log in db.run_log_repo.get_recent(2)] == ["run-10", "run-5"]

    def test_no_runs(self, db):
        assert db.run_log_repo.get_latest() is None
