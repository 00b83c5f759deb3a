"""Command watcher: picks up command files from the inbox and writes results to the outbox."""

from __future__ import annotations

import asyncio
import json
import random
import string
import time
from datetime import datetime
from pathlib import Path
from typing import Any, Callable
from zoneinfo import ZoneInfo

from om_reminders.cache.synchronizer import CacheSynchronizer
from om_reminders.commands.dispatcher import CommandDispatcher, CommandResult
from om_reminders.commands.handlers import default_handlers
from om_reminders.completions.ledger import CompletionLedger
from om_reminders.dispatch.repository import RunLogRepository, SentReminderRepository
from om_reminders.dispatch.trigger import ReminderTrigger
from om_reminders.employees.service import EmployeeManager
from om_reminders.infrastructure.config import COMMAND_POLL_INTERVAL, COMMANDS_DIR
from om_reminders.infrastructure.logger import logger
from om_reminders.infrastructure.poll_loop import PollLoop, start_poll_loop
from om_reminders.scheduling.schedule_service import ScheduleManager


class CommandDeps:
    """Dependencies for command handlers, passed as a context object."""

    def __init__(
        self,
        trigger: ReminderTrigger,
        cache: CacheSynchronizer,
        ledger: CompletionLedger,
        schedule_manager: ScheduleManager,
        employee_manager: EmployeeManager,
        sent_reminders: SentReminderRepository,
        run_logs: RunLogRepository,
        tz: ZoneInfo,
        clock: Callable[[], datetime],
    ) -> None:
        self.trigger = trigger
        self.cache = cache
        self.ledger = ledger
        self.schedule_manager = schedule_manager
        self.employee_manager = employee_manager
        self.sent_reminders = sent_reminders
        self.run_logs = run_logs
        self.tz = tz
        self.clock = clock


def write_json_atomic(path: Path, data: Any) -> None:
    """Write via tmp + rename so readers never see a partial file."""
    path.parent.mkdir(parents=True, exist_ok=True)
    temp_path = path.with_suffix(path.suffix + ".tmp")
    temp_path.write_text(json.dumps(data, indent=2, default=str))
    temp_path.rename(path)


def submit_command(data: dict[str, Any], base_dir: Path = COMMANDS_DIR) -> str:
    """Drop a command into the inbox. Returns the request id used for the result file."""
    rand = "".join(random.choices(string.ascii_lowercase + string.digits, k=4))
    request_id = f"{int(time.time() * 1000)}-{rand}"
    write_json_atomic(base_dir / "inbox" / f"{request_id}.json", data)
    return request_id


class CommandWatcher:
    """Watches ``<base_dir>/inbox`` for command files.

    Results land in ``outbox/<request id>.json``; files that cannot be read
    as a JSON object move to ``errors/``.
    """

    def __init__(
        self,
        deps: CommandDeps,
        base_dir: Path = COMMANDS_DIR,
        dispatcher: CommandDispatcher | None = None,
        poll_interval_s: float = COMMAND_POLL_INTERVAL,
    ) -> None:
        self._deps = deps
        self._dispatcher = dispatcher or CommandDispatcher(default_handlers())
        self._inbox = base_dir / "inbox"
        self._outbox = base_dir / "outbox"
        self._errors = base_dir / "errors"
        self._poll_interval = poll_interval_s
        self._processing = False
        self._watch_task: asyncio.Task[None] | None = None
        self._poll_loop: PollLoop | None = None

    def start(self) -> None:
        if self._poll_loop is not None:
            logger.debug("Command watcher already running, skipping duplicate start")
            return
        for directory in (self._inbox, self._outbox, self._errors):
            directory.mkdir(parents=True, exist_ok=True)
        self._watch_task = asyncio.create_task(self._watch_loop())
        # Fallback poll catches anything the file watcher misses
        self._poll_loop = start_poll_loop("Command", self._poll_interval * 10, self.process_inbox)
        logger.info("Command watcher started", inbox=str(self._inbox))

    def stop(self) -> None:
        if self._watch_task:
            self._watch_task.cancel()
            self._watch_task = None
        if self._poll_loop:
            self._poll_loop.stop()
            self._poll_loop = None

    async def dispatch(self, data: dict[str, Any]) -> CommandResult:
        """Dispatch a command directly, bypassing the inbox."""
        return await self._dispatcher.dispatch(data, self._deps)

    async def _watch_loop(self) -> None:
        from watchfiles import awatch

        try:
            async for _changes in awatch(str(self._inbox), poll_delay_ms=int(self._poll_interval * 1000)):
                await self.process_inbox()
        except asyncio.CancelledError:
            pass
        except Exception:
            logger.exception("Command file watcher failed, relying on fallback poll")

    async def process_inbox(self) -> int:
        """Handle every pending command file. Returns how many were processed."""
        if self._processing or not self._inbox.exists():
            return 0
        self._processing = True
        processed = 0
        try:
            for file_path in sorted(f for f in self._inbox.iterdir() if f.suffix == ".json"):
                await self._process_file(file_path)
                processed += 1
        finally:
            self._processing = False
        return processed

    async def _process_file(self, file_path: Path) -> None:
        request_id = file_path.stem
        try:
            data = json.loads(file_path.read_text())
            if not isinstance(data, dict):
                raise ValueError("command must be a JSON object")
        except (OSError, ValueError) as err:
            logger.warning("Malformed command file", file=file_path.name, err=str(err))
            self._errors.mkdir(parents=True, exist_ok=True)
            file_path.rename(self._errors / file_path.name)
            return

        result = await self._dispatcher.dispatch(data, self._deps)
        write_json_atomic(self._outbox / f"{request_id}.json", {"request_id": request_id, **result.to_dict()})
        file_path.unlink()
        logger.info("Command processed", type=data.get("type"), request_id=request_id, success=result.success)
