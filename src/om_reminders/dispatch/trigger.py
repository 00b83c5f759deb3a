"""Trigger interface: periodic and on-demand dispatch invocations."""

from __future__ import annotations

from datetime import datetime

from om_reminders.cache.synchronizer import CacheSynchronizer
from om_reminders.dispatch.orchestrator import DispatchOrchestrator
from om_reminders.dispatch.types import TriggerResult
from om_reminders.infrastructure.poll_loop import PollLoop, start_poll_loop


class ReminderTrigger:
    """Refreshes the schedule snapshot if needed, then runs the orchestrator.

    Safe to call from the periodic loop and from interactive commands at the
    same time; overlapping runs are deduplicated by the orchestrator.
    """

    def __init__(self, cache: CacheSynchronizer, orchestrator: DispatchOrchestrator) -> None:
        self._cache = cache
        self._orchestrator = orchestrator

    async def fire(self, now: datetime | None = None) -> TriggerResult:
        snapshot = self._cache.ensure_fresh("schedules", now)
        run = await self._orchestrator.run(snapshot.entries, now)
        return TriggerResult(
            run_id=run.log.id,
            checked=run.log.checked,
            sent=run.log.sent,
            skipped=run.log.skipped,
            errors=run.log.errors,
            synced_at=snapshot.last_synced_at,
            details=run.outcomes,
        )

    async def tick(self) -> None:
        await self.fire()


def start_dispatch_loop(trigger: ReminderTrigger, interval_s: float) -> PollLoop:
    """Fire the trigger every ``interval_s`` seconds."""
    return start_poll_loop("Dispatch", interval_s, trigger.tick)
