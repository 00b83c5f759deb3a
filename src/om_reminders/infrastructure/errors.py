"""Base error type shared by every domain."""

from __future__ import annotations

from typing import Any


class DomainError(Exception):
    """Expected failure carrying a message and structured details for logging."""

    def __init__(self, message: str, details: dict[str, Any] | None = None) -> None:
        super().__init__(message)
        self.details = details or {}

    @property
    def message(self) -> str:
        return self.args[0]
