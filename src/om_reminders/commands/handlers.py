"""Command handlers: dispatch, cache, completions, schedules and employees."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Any, TYPE_CHECKING

from om_reminders.cache.types import COLLECTION_KINDS, SyncFailed
from om_reminders.commands.dispatcher import CommandError, CommandHandler
from om_reminders.completions.types import Actor
from om_reminders.infrastructure.logger import logger
from om_reminders.scheduling.recurrence import resolve_period

if TYPE_CHECKING:
    from om_reminders.commands.watcher import CommandDeps


def _require(data: dict[str, Any], key: str, command: str) -> Any:
    value = data.get(key)
    if value is None or value == "":
        raise CommandError("bad_request", f"Missing {key}", {"command": command})
    return value


def _parse_instant(value: Any, key: str) -> datetime | None:
    if value is None:
        return None
    try:
        instant = datetime.fromisoformat(str(value))
    except ValueError:
        raise CommandError("bad_request", f"Invalid timestamp for {key}: {value}")
    if instant.tzinfo is None:
        raise CommandError("bad_request", f"Timestamp for {key} needs a UTC offset: {value}")
    return instant


def _kind(data: dict[str, Any], allow_all: bool = False) -> str:
    kind = data.get("kind", "all" if allow_all else None)
    if kind == "all" and allow_all:
        return kind
    if kind not in COLLECTION_KINDS:
        raise CommandError("bad_request", f"Unknown cache kind: {kind}", {"allowed": list(COLLECTION_KINDS)})
    return kind


# --- Dispatch ---


class DispatchNowHandler(CommandHandler):
    command = "dispatch_now"

    async def validate(self, data: dict[str, Any]) -> datetime | None:
        return _parse_instant(data.get("now"), "now")

    async def execute(self, now: datetime | None, deps: CommandDeps) -> dict[str, Any]:
        result = await deps.trigger.fire(now)
        logger.info("Dispatch triggered on demand", run_id=result.run_id, sent=result.sent)
        return result.model_dump()


class SentTodayHandler(CommandHandler):
    command = "sent_today"

    async def validate(self, data: dict[str, Any]) -> datetime | None:
        return _parse_instant(data.get("now"), "now")

    async def execute(self, now: datetime | None, deps: CommandDeps) -> dict[str, str]:
        return deps.sent_reminders.sent_today(now or deps.clock(), deps.tz)


class ListRunsHandler(CommandHandler):
    command = "list_runs"

    async def validate(self, data: dict[str, Any]) -> int:
        limit = data.get("limit", 20)
        if not isinstance(limit, int) or limit < 1:
            raise CommandError("bad_request", "limit must be a positive integer")
        return limit

    async def execute(self, limit: int, deps: CommandDeps) -> list[dict[str, Any]]:
        return [log.model_dump() for log in deps.run_logs.get_recent(limit)]


# --- Cache ---


class SyncCacheHandler(CommandHandler):
    command = "sync_cache"

    async def validate(self, data: dict[str, Any]) -> str:
        return _kind(data, allow_all=True)

    async def execute(self, kind: str, deps: CommandDeps) -> dict[str, Any]:
        if kind != "all":
            return deps.cache.sync(kind).model_dump()  # type: ignore[arg-type]
        results = deps.cache.sync_all()
        failed = {k: r.reason for k, r in results.items() if isinstance(r, SyncFailed)}
        if failed:
            raise CommandError("unavailable", "Cache sync failed", {"failed": failed})
        return {k: r.model_dump() for k, r in results.items() if not isinstance(r, SyncFailed)}


class ReadCacheHandler(CommandHandler):
    command = "read_cache"

    async def validate(self, data: dict[str, Any]) -> str:
        return _kind(data)

    async def execute(self, kind: str, deps: CommandDeps) -> dict[str, Any]:
        return deps.cache.view(kind).model_dump()  # type: ignore[arg-type]


# --- Completions ---


@dataclass
class MarkCompletePayload:
    schedule_id: str
    period_start: datetime | None
    period_end: datetime | None
    actor: Actor | None
    notes: str | None


class MarkCompleteHandler(CommandHandler):
    command = "mark_complete"

    async def validate(self, data: dict[str, Any]) -> MarkCompletePayload:
        schedule_id = _require(data, "schedule_id", self.command)
        start = _parse_instant(data.get("period_start"), "period_start")
        end = _parse_instant(data.get("period_end"), "period_end")
        if (start is None) != (end is None):
            raise CommandError("bad_request", "period_start and period_end must be given together")
        actor = data.get("actor")
        return MarkCompletePayload(
            schedule_id=schedule_id,
            period_start=start,
            period_end=end,
            actor=Actor(**actor) if isinstance(actor, dict) else None,
            notes=data.get("notes"),
        )

    async def execute(self, payload: MarkCompletePayload, deps: CommandDeps) -> dict[str, Any]:
        start, end = payload.period_start, payload.period_end
        if start is None or end is None:
            # No explicit period: complete the one the schedule is in right now
            schedule = deps.schedule_manager.get(payload.schedule_id)
            period = resolve_period(schedule.recurrence, deps.clock(), deps.tz, anchor=schedule.created_instant())
            start, end = period.start, period.end
        completion = deps.ledger.mark_complete(payload.schedule_id, start, end, payload.actor, payload.notes)
        return completion.model_dump()


class MarkIncompleteHandler(CommandHandler):
    command = "mark_incomplete"

    async def validate(self, data: dict[str, Any]) -> str:
        return _require(data, "completion_id", self.command)

    async def execute(self, completion_id: str, deps: CommandDeps) -> dict[str, Any]:
        deps.ledger.mark_incomplete(completion_id)
        return {"completion_id": completion_id}


class ListCompletionsHandler(CommandHandler):
    command = "list_completions"

    async def validate(self, data: dict[str, Any]) -> dict[str, Any]:
        return {
            "schedule_id": data.get("schedule_id"),
            "start": _parse_instant(data.get("start"), "start"),
            "end": _parse_instant(data.get("end"), "end"),
        }

    async def execute(self, filters: dict[str, Any], deps: CommandDeps) -> list[dict[str, Any]]:
        return [c.model_dump() for c in deps.ledger.list_completions(**filters)]


# --- Schedules ---


class CreateScheduleHandler(CommandHandler):
    command = "create_schedule"

    async def validate(self, data: dict[str, Any]) -> dict[str, Any]:
        assignee = _require(data, "assignee", self.command)
        if not isinstance(assignee, dict) or not assignee.get("name"):
            raise CommandError("bad_request", "assignee needs a name", {"command": self.command})
        return {
            "title": _require(data, "title", self.command),
            "recurrence": _require(data, "recurrence", self.command),
            "reminder": _require(data, "reminder", self.command),
            "assignee_name": assignee["name"],
            "assignee_email": assignee.get("email", ""),
            "description": data.get("description", ""),
            "visible": bool(data.get("visible", True)),
        }

    async def execute(self, fields: dict[str, Any], deps: CommandDeps) -> dict[str, Any]:
        return deps.schedule_manager.create(**fields).model_dump()


class UpdateScheduleHandler(CommandHandler):
    command = "update_schedule"

    async def validate(self, data: dict[str, Any]) -> dict[str, Any]:
        assignee = data.get("assignee") or {}
        return {
            "id": _require(data, "schedule_id", self.command),
            "title": data.get("title"),
            "description": data.get("description"),
            "recurrence": data.get("recurrence"),
            "reminder": data.get("reminder"),
            "assignee_name": assignee.get("name"),
            "assignee_email": assignee.get("email"),
            "visible": data.get("visible"),
        }

    async def execute(self, fields: dict[str, Any], deps: CommandDeps) -> dict[str, Any]:
        return deps.schedule_manager.update(**fields).model_dump()


class SetScheduleStatusHandler(CommandHandler):
    command = "set_schedule_status"

    async def validate(self, data: dict[str, Any]) -> tuple[str, str]:
        status = _require(data, "status", self.command)
        if status not in ("active", "inactive"):
            raise CommandError("bad_request", f"Invalid status: {status}")
        return _require(data, "schedule_id", self.command), status

    async def execute(self, payload: tuple[str, str], deps: CommandDeps) -> dict[str, Any]:
        schedule_id, status = payload
        manager = deps.schedule_manager
        schedule = manager.activate(schedule_id) if status == "active" else manager.deactivate(schedule_id)
        return schedule.model_dump()


class DeleteScheduleHandler(CommandHandler):
    command = "delete_schedule"

    async def validate(self, data: dict[str, Any]) -> str:
        return _require(data, "schedule_id", self.command)

    async def execute(self, schedule_id: str, deps: CommandDeps) -> dict[str, Any]:
        deps.schedule_manager.delete(schedule_id)
        return {"schedule_id": schedule_id}


class ListSchedulesHandler(CommandHandler):
    command = "list_schedules"

    async def validate(self, data: dict[str, Any]) -> dict[str, Any]:
        page, page_size = data.get("page", 1), data.get("page_size")
        if not isinstance(page, int) or page < 1 or (page_size is not None and (not isinstance(page_size, int) or page_size < 1)):
            raise CommandError("bad_request", "page and page_size must be positive integers")
        return {"page": page, "page_size": page_size, "status": data.get("status")}

    async def execute(self, query: dict[str, Any], deps: CommandDeps) -> list[dict[str, Any]]:
        return [s.model_dump() for s in deps.schedule_manager.get_all(**query)]


# --- Employees ---


class CreateEmployeeHandler(CommandHandler):
    command = "create_employee"

    async def validate(self, data: dict[str, Any]) -> dict[str, Any]:
        return {
            "name": _require(data, "name", self.command),
            "position": _require(data, "position", self.command),
            "email": data.get("email", ""),
        }

    async def execute(self, fields: dict[str, Any], deps: CommandDeps) -> dict[str, Any]:
        return deps.employee_manager.create(**fields).model_dump()


class UpdateEmployeeHandler(CommandHandler):
    command = "update_employee"

    async def validate(self, data: dict[str, Any]) -> dict[str, Any]:
        return {
            "id": _require(data, "employee_id", self.command),
            "name": data.get("name"),
            "email": data.get("email"),
            "position": data.get("position"),
        }

    async def execute(self, fields: dict[str, Any], deps: CommandDeps) -> dict[str, Any]:
        return deps.employee_manager.update(**fields).model_dump()


class DeleteEmployeeHandler(CommandHandler):
    command = "delete_employee"

    async def validate(self, data: dict[str, Any]) -> str:
        return _require(data, "employee_id", self.command)

    async def execute(self, employee_id: str, deps: CommandDeps) -> dict[str, Any]:
        deps.employee_manager.delete(employee_id)
        return {"employee_id": employee_id}


class ListEmployeesHandler(CommandHandler):
    command = "list_employees"

    async def validate(self, data: dict[str, Any]) -> None:
        return None

    async def execute(self, _payload: None, deps: CommandDeps) -> list[dict[str, Any]]:
        return [e.model_dump() for e in deps.employee_manager.get_all()]


def default_handlers() -> list[CommandHandler]:
    return [
        DispatchNowHandler(),
        SentTodayHandler(),
        ListRunsHandler(),
        SyncCacheHandler(),
        ReadCacheHandler(),
        MarkCompleteHandler(),
        MarkIncompleteHandler(),
        ListCompletionsHandler(),
        CreateScheduleHandler(),
        UpdateScheduleHandler(),
        SetScheduleStatusHandler(),
        DeleteScheduleHandler(),
        ListSchedulesHandler(),
        CreateEmployeeHandler(),
        UpdateEmployeeHandler(),
        DeleteEmployeeHandler(),
        ListEmployeesHandler(),
    ]
