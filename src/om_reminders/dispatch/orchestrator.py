"""Dispatch orchestrator: one pass over the active schedules per invocation."""

from __future__ import annotations

import asyncio
import time
import uuid
from datetime import datetime, timedelta, timezone
from typing import Any, Callable, Iterable

from pydantic import ValidationError

from om_reminders.completions.ledger import CompletionLedger
from om_reminders.dispatch.email import DeliveryFailed, EmailSender
from om_reminders.dispatch.formatter import format_reminder
from om_reminders.dispatch.repository import RunLogRepository, SentReminderRepository
from om_reminders.dispatch.types import DispatchRun, DispatchRunLog, ScheduleOutcome
from om_reminders.infrastructure.config import CLAIM_TTL, SENT_REMINDER_RETENTION_DAYS, DispatchConfig
from om_reminders.infrastructure.errors import DomainError
from om_reminders.infrastructure.logger import logger
from om_reminders.scheduling.recurrence import CronStrategy, resolve_period
from om_reminders.scheduling.reminder_timing import check_reminder_fits, is_due, resolve_reminder_instant
from om_reminders.scheduling.types import Schedule, to_utc_iso

ScheduleEntry = Schedule | dict[str, Any]


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _entry_id(entry: ScheduleEntry) -> str:
    if isinstance(entry, Schedule):
        return entry.id
    return str(entry.get("id", "<unknown>"))


def _is_active(entry: ScheduleEntry) -> bool:
    if isinstance(entry, Schedule):
        return entry.is_active
    return entry.get("status", "active") == "active"


class DispatchOrchestrator:
    """Evaluates every active schedule and sends the reminders that are due.

    Per schedule: PENDING -> SENT | SKIPPED | ERROR. Schedules run
    concurrently up to ``config.max_workers``, each under its own timeout
    capped by what is left of the run budget. Outcomes are collected behind
    a gather barrier and reduced once into the run log.

    A send is guarded by claiming the dedupe marker first (insert-if-absent).
    The claim is confirmed after delivery and released when delivery fails.
    A send cut short by a timeout or cancellation keeps its pending claim
    until it ages past the claim TTL, so at most one reminder goes out per
    schedule, period and day no matter how many runs overlap.
    """

    def __init__(
        self,
        ledger: CompletionLedger,
        sent_reminders: SentReminderRepository,
        run_logs: RunLogRepository,
        sender: EmailSender,
        config: DispatchConfig | None = None,
        clock: Callable[[], datetime] = _utcnow,
        cron: CronStrategy | None = None,
        retention_days: int = SENT_REMINDER_RETENTION_DAYS,
        claim_ttl_s: float = CLAIM_TTL,
    ) -> None:
        self._ledger = ledger
        self._sent = sent_reminders
        self._run_logs = run_logs
        self._sender = sender
        self._config = config or DispatchConfig()
        self._clock = clock
        self._cron = cron
        self._retention_days = retention_days
        self._claim_ttl = timedelta(seconds=claim_ttl_s)

    async def run(self, entries: Iterable[ScheduleEntry], now: datetime | None = None) -> DispatchRun:
        """Process every active entry once and record a run log.

        If the run is cancelled, schedules still in flight are cancelled, the
        log is written for what finished and the cancellation propagates.
        """
        started = time.monotonic()
        now = now or self._clock()
        active = [entry for entry in entries if _is_active(entry)]
        semaphore = asyncio.Semaphore(self._config.max_workers)
        run_deadline = asyncio.get_event_loop().time() + self._config.get_run_timeout()

        tasks = [asyncio.create_task(self._process(entry, now, semaphore, run_deadline)) for entry in active]
        try:
            outcomes = list(await asyncio.gather(*tasks))
        except asyncio.CancelledError:
            for task in tasks:
                task.cancel()
            if tasks:
                await asyncio.wait(tasks)
            outcomes = [task.result() for task in tasks if not task.cancelled()]
            log = self._record(outcomes, now, len(active), started, cancelled=True)
            logger.warning("Dispatch run cancelled", run_id=log.id, checked=log.checked, active_total=len(active))
            raise

        log = self._record(outcomes, now, len(active), started, cancelled=False)
        logger.info(
            "Dispatch run complete",
            run_id=log.id,
            checked=log.checked,
            sent=log.sent,
            skipped=log.skipped,
            errors=log.errors,
            duration_ms=log.duration_ms,
        )
        if log.errors == 0:
            self._cleanup(now)
        return DispatchRun(log=log, outcomes=outcomes)

    # --- Per schedule ---

    async def _process(
        self, entry: ScheduleEntry, now: datetime, semaphore: asyncio.Semaphore, run_deadline: float
    ) -> ScheduleOutcome:
        schedule_id = _entry_id(entry)
        async with semaphore:
            remaining = run_deadline - asyncio.get_event_loop().time()
            if remaining <= 0:
                return ScheduleOutcome(schedule_id=schedule_id, status="error", reason="run time budget exhausted")
            try:
                return await asyncio.wait_for(
                    self._evaluate(entry, now), timeout=min(self._config.schedule_timeout, remaining)
                )
            except asyncio.TimeoutError:
                logger.warning("Schedule evaluation timed out", schedule_id=schedule_id)
                return ScheduleOutcome(schedule_id=schedule_id, status="error", reason="timed out")
            except ValidationError as err:
                logger.warning("Malformed schedule entry", schedule_id=schedule_id, err=str(err))
                return ScheduleOutcome(schedule_id=schedule_id, status="error", reason="malformed schedule entry")
            except DomainError as err:
                logger.warning("Schedule evaluation failed", schedule_id=schedule_id, err=err.message)
                return ScheduleOutcome(schedule_id=schedule_id, status="error", reason=err.message)
            except Exception as err:
                logger.exception("Unexpected error evaluating schedule", schedule_id=schedule_id)
                return ScheduleOutcome(schedule_id=schedule_id, status="error", reason=f"internal error: {err}")

    async def _evaluate(self, entry: ScheduleEntry, now: datetime) -> ScheduleOutcome:
        schedule = entry if isinstance(entry, Schedule) else Schedule.model_validate(entry)
        tz = self._config.tz

        period = resolve_period(schedule.recurrence, now, tz, anchor=schedule.created_instant(), cron=self._cron)
        fire_at = resolve_reminder_instant(schedule.reminder, period.deadline, tz)
        check_reminder_fits(schedule.reminder, fire_at, period)

        def outcome(status: str, reason: str) -> ScheduleOutcome:
            return ScheduleOutcome(
                schedule_id=schedule.id,
                status=status,  # type: ignore[arg-type]
                reason=reason,
                period_start=period.start_key,
                period_end=period.end_key,
                fire_at=to_utc_iso(fire_at),
            )

        due = is_due(schedule.reminder, fire_at, period, now)
        if due == "not_due":
            return outcome("skipped", "not due yet")
        if due == "missed":
            return outcome("skipped", "reminder instant belongs to an earlier period")
        if self._ledger.is_completed(schedule.id, period.start, period.end):
            return outcome("skipped", "already completed")
        if not schedule.assignee.email:
            return outcome("skipped", "assignee has no email address")

        marker = self._sent.claim(
            schedule.id,
            period.start_key,
            period.end_key,
            now.astimezone(tz).date(),
            claimed_at=to_utc_iso(now),
            recipient=schedule.assignee.email,
        )
        if marker is None:
            return outcome("skipped", "already sent today")

        message = format_reminder(schedule, period.deadline, tz)
        try:
            await self._sender.send(message.to, message.subject, message.text, message.html)
        except DeliveryFailed as err:
            self._sent.release(marker)
            logger.warning("Reminder delivery failed", schedule_id=schedule.id, reason=err.reason)
            return outcome("error", err.message)
        except BaseException:
            # The send may still complete in its executor thread; the claim
            # stays pending until the claim TTL purge drops it.
            logger.warning("Reminder send interrupted, claim kept", schedule_id=schedule.id, marker_id=marker.id)
            raise

        self._sent.confirm(marker, to_utc_iso(self._clock()))
        logger.info("Reminder sent", schedule_id=schedule.id, to=message.to, period_start=period.start_key)
        return outcome("sent", "reminder sent")

    # --- Reduction ---

    def _record(
        self, outcomes: list[ScheduleOutcome], now: datetime, active_total: int, started: float, cancelled: bool
    ) -> DispatchRunLog:
        previous = self._run_logs.get_latest()
        interval_ms = None
        if previous is not None:
            interval_ms = int((now - datetime.fromisoformat(previous.timestamp)).total_seconds() * 1000)

        log = DispatchRunLog(
            id=f"run-{uuid.uuid4().hex[:12]}",
            timestamp=to_utc_iso(now),
            interval_since_previous_ms=interval_ms,
            checked=len(outcomes),
            sent=sum(1 for o in outcomes if o.status == "sent"),
            skipped=sum(1 for o in outcomes if o.status == "skipped"),
            errors=sum(1 for o in outcomes if o.status == "error"),
            active_total=active_total,
            duration_ms=int((time.monotonic() - started) * 1000),
            cancelled=cancelled,
        )
        self._run_logs.append(log)
        return log

    def _cleanup(self, now: datetime) -> None:
        keep_from = now.astimezone(self._config.tz).date() - timedelta(days=self._retention_days)
        try:
            removed = self._sent.cleanup(keep_from, to_utc_iso(now - self._claim_ttl))
        except Exception:
            logger.exception("Sent reminder cleanup failed")
            return
        if removed:
            logger.info("Cleaned up old sent reminders", removed=removed)
