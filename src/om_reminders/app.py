"""ReminderApp: composes services, wires subsystems."""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Callable

from om_reminders.cache.synchronizer import CacheSynchronizer
from om_reminders.commands.watcher import CommandDeps, CommandWatcher
from om_reminders.completions.ledger import CompletionLedger
from om_reminders.dispatch.email import EmailSender, create_email_sender
from om_reminders.dispatch.orchestrator import DispatchOrchestrator
from om_reminders.dispatch.trigger import ReminderTrigger, start_dispatch_loop
from om_reminders.dispatch.types import TriggerResult
from om_reminders.employees.service import EmployeeManager
from om_reminders.infrastructure.config import COMMANDS_DIR, DISPATCH_POLL_INTERVAL, DispatchConfig
from om_reminders.infrastructure.database import AppDatabase, database
from om_reminders.infrastructure.logger import logger
from om_reminders.infrastructure.poll_loop import PollLoop
from om_reminders.scheduling.schedule_service import ScheduleManager


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class ReminderApp:
    """Composes all services and manages the application lifecycle."""

    def __init__(
        self,
        db: AppDatabase = database,
        sender: EmailSender | None = None,
        config: DispatchConfig | None = None,
        clock: Callable[[], datetime] = _utcnow,
    ) -> None:
        self._db = db
        self._sender = sender
        self.config = config or DispatchConfig()
        self._clock = clock
        self._dispatch_handle: PollLoop | None = None
        self._built = False

    def build(self) -> None:
        """Wire services on top of an initialized database."""
        if self._built:
            return
        db = self._db
        tz = self.config.tz

        self.cache = CacheSynchronizer(
            db.snapshot_repo, db.schedule_repo, db.employee_repo, db.state_repo, clock=self._clock
        )
        self.schedules = ScheduleManager(
            db.schedule_repo,
            sent_reminders=db.sent_reminder_repo,
            tz=tz,
            on_change=lambda: self.cache.mark_stale("schedules", "calendar", "employees"),
            clock=self._clock,
        )
        self.employees = EmployeeManager(db.employee_repo, on_change=lambda: self.cache.mark_stale("employees"))
        self.ledger = CompletionLedger(db.completion_repo, db.schedule_repo, clock=self._clock)
        self.orchestrator = DispatchOrchestrator(
            self.ledger,
            db.sent_reminder_repo,
            db.run_log_repo,
            self._sender or create_email_sender(),
            config=self.config,
            clock=self._clock,
        )
        self.trigger = ReminderTrigger(self.cache, self.orchestrator)
        self.run_logs = db.run_log_repo
        self.commands = CommandWatcher(
            CommandDeps(
                trigger=self.trigger,
                cache=self.cache,
                ledger=self.ledger,
                schedule_manager=self.schedules,
                employee_manager=self.employees,
                sent_reminders=db.sent_reminder_repo,
                run_logs=db.run_log_repo,
                tz=tz,
                clock=self._clock,
            ),
            base_dir=COMMANDS_DIR,
        )
        self._built = True

    def init(self) -> None:
        """Open the database and wire services."""
        self._db.init()
        self.build()

    async def start(self, interval_s: float = DISPATCH_POLL_INTERVAL) -> None:
        """Initialize all services and start the periodic loops."""
        logger.info("Starting reminder service...", timezone=self.config.timezone)
        self.init()
        self.commands.start()
        self._dispatch_handle = start_dispatch_loop(self.trigger, interval_s)
        logger.info("Reminder service started", interval_s=interval_s)

    async def run_once(self, now: datetime | None = None) -> TriggerResult:
        self.build()
        return await self.trigger.fire(now)

    def close(self) -> None:
        self._db.close()

    async def shutdown(self) -> None:
        """Gracefully shut down all services."""
        logger.info("Shutting down reminder service...")
        if self._dispatch_handle:
            self._dispatch_handle.stop()
            self._dispatch_handle = None
        if self._built:
            self.commands.stop()
        self.close()
        logger.info("Reminder service shut down complete")
