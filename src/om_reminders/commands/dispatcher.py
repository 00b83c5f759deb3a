"""Command dispatcher and base handler for interactive clients."""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, Literal, TYPE_CHECKING

from om_reminders.dispatch.email import DeliveryFailed
from om_reminders.infrastructure.logger import logger
from om_reminders.types import (
    AlreadyCompleted,
    CompletionNotFound,
    DomainError,
    EmployeeNotFound,
    InvalidRecurrenceRule,
    InvalidReminderRule,
    ScheduleNotFound,
    SyncFailed,
)

if TYPE_CHECKING:
    from om_reminders.commands.watcher import CommandDeps

ErrorKind = Literal["bad_request", "not_found", "conflict", "unavailable", "internal"]

_ERROR_KINDS: list[tuple[type[Exception], ErrorKind]] = [
    (InvalidRecurrenceRule, "bad_request"),
    (InvalidReminderRule, "bad_request"),
    (ScheduleNotFound, "not_found"),
    (CompletionNotFound, "not_found"),
    (EmployeeNotFound, "not_found"),
    (AlreadyCompleted, "conflict"),
    (SyncFailed, "unavailable"),
    (DeliveryFailed, "unavailable"),
]


class CommandError(DomainError):
    """Expected command failure with the kind reported back to the client."""

    def __init__(self, kind: ErrorKind, message: str, details: dict[str, Any] | None = None) -> None:
        super().__init__(message, details)
        self.kind = kind


def error_kind(err: Exception) -> ErrorKind:
    if isinstance(err, CommandError):
        return err.kind
    for exc_type, kind in _ERROR_KINDS:
        if isinstance(err, exc_type):
            return kind
    if isinstance(err, ValueError):
        return "bad_request"
    return "internal"


@dataclass
class CommandResult:
    success: bool
    data: Any = None
    error: ErrorKind | None = None
    message: str | None = None
    details: dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        result: dict[str, Any] = {"success": self.success}
        if self.success:
            result["data"] = self.data
        else:
            result.update(error=self.error, message=self.message, details=self.details)
        return result


class CommandHandler(ABC):
    """Base class for command handlers."""

    @property
    @abstractmethod
    def command(self) -> str: ...

    @abstractmethod
    async def validate(self, data: dict[str, Any]) -> Any: ...

    @abstractmethod
    async def execute(self, payload: Any, deps: CommandDeps) -> Any: ...

    async def handle(self, data: dict[str, Any], deps: CommandDeps) -> Any:
        validated = await self.validate(data)
        return await self.execute(validated, deps)


class CommandDispatcher:
    """Routes commands to registered handlers and always answers with a CommandResult."""

    def __init__(self, handlers: list[CommandHandler]) -> None:
        self._handlers: dict[str, CommandHandler] = {h.command: h for h in handlers}

    @property
    def commands(self) -> list[str]:
        return sorted(self._handlers)

    async def dispatch(self, data: dict[str, Any], deps: CommandDeps) -> CommandResult:
        command_type = data.get("type")
        handler = self._handlers.get(command_type)  # type: ignore[arg-type]
        if not handler:
            logger.warning("Unknown command type", type=command_type)
            return CommandResult(False, error="bad_request", message=f"Unknown command: {command_type}")
        try:
            return CommandResult(True, data=await handler.handle(data, deps))
        except DomainError as err:
            kind = error_kind(err)
            logger.warning(err.message, command=command_type, failure=kind, details=err.details)
            return CommandResult(False, error=kind, message=err.message, details=err.details)
        except ValueError as err:
            logger.warning("Invalid command payload", command=command_type, err=str(err))
            return CommandResult(False, error="bad_request", message=str(err))
        except Exception as err:
            logger.exception("Command failed", command=command_type)
            return CommandResult(False, error="internal", message=str(err))
