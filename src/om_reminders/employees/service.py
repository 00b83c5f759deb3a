"""Employee manager: employee record CRUD."""

from __future__ import annotations

import uuid
from datetime import datetime, timezone
from typing import Callable

from om_reminders.employees.repository import EmployeeRepository
from om_reminders.employees.types import Employee, EmployeeNotFound
from om_reminders.infrastructure.logger import logger


class EmployeeManager:
    def __init__(self, employee_repo: EmployeeRepository, on_change: Callable[[], None] | None = None) -> None:
        self._employee_repo = employee_repo
        self._on_change = on_change

    def create(self, name: str, position: str, email: str = "") -> Employee:
        now = datetime.now(timezone.utc).isoformat()
        employee = Employee(
            id=f"emp-{uuid.uuid4().hex[:12]}",
            name=name.strip(),
            email=email.strip(),
            position=position.strip(),
            created_at=now,
            updated_at=now,
        )
        self._employee_repo.create_employee(employee)
        logger.info("Employee created", employee_id=employee.id)
        self._changed()
        return employee

    def get(self, id: str) -> Employee:
        employee = self._employee_repo.get_employee_by_id(id)
        if not employee:
            raise EmployeeNotFound(id)
        return employee

    def get_all(self) -> list[Employee]:
        return self._employee_repo.get_all_employees()

    def update(
        self, id: str, name: str | None = None, email: str | None = None, position: str | None = None
    ) -> Employee:
        employee = self._employee_repo.update_employee(
            id,
            name=name.strip() if name is not None else None,
            email=email.strip() if email is not None else None,
            position=position.strip() if position is not None else None,
            updated_at=datetime.now(timezone.utc).isoformat(),
        )
        if not employee:
            raise EmployeeNotFound(id)
        logger.info("Employee updated", employee_id=id)
        self._changed()
        return employee

    def delete(self, id: str) -> None:
        if not self._employee_repo.delete_employee(id):
            raise EmployeeNotFound(id)
        logger.info("Employee deleted", employee_id=id)
        self._changed()

    def _changed(self) -> None:
        if self._on_change:
            self._on_change()
