"""Employee domain types."""

from __future__ import annotations

import re

from pydantic import BaseModel, Field, field_validator

from om_reminders.infrastructure.errors import DomainError

_EMAIL_RE = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")


class EmployeeNotFound(DomainError):
    def __init__(self, employee_id: str) -> None:
        super().__init__(f"Employee not found: {employee_id}", {"employee_id": employee_id})


class Employee(BaseModel):
    id: str
    name: str = Field(min_length=1, max_length=200)
    email: str = ""  # optional, may be empty
    position: str = Field(min_length=1, max_length=200)
    created_at: str = ""
    updated_at: str = ""

    @field_validator("email")
    @classmethod
    def _valid_email(cls, value: str) -> str:
        if value and not _EMAIL_RE.match(value):
            raise ValueError(f"Invalid email address: {value}")
        return value
