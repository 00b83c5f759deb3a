"""Employee persistence over the document store."""

from __future__ import annotations

from typing import Any

from om_reminders.employees.types import Employee
from om_reminders.infrastructure.document_store import DocumentStore

COLLECTION = "employees"


class EmployeeRepository:
    def __init__(self, store: DocumentStore) -> None:
        self._store = store

    def create_employee(self, employee: Employee) -> None:
        self._store.put(COLLECTION, employee.id, employee.model_dump())

    def get_employee_by_id(self, id: str) -> Employee | None:
        doc = self._store.get(COLLECTION, id)
        return Employee.model_validate(doc) if doc else None

    def get_all_employees(self) -> list[Employee]:
        docs = self._store.query(COLLECTION, order_by="name")
        return [Employee.model_validate(doc) for doc in docs]

    def update_employee(self, id: str, **updates: Any) -> Employee | None:
        current = self._store.get(COLLECTION, id)
        if not current:
            return None
        current.update({k: v for k, v in updates.items() if v is not None})
        employee = Employee.model_validate(current)
        self._store.put(COLLECTION, id, employee.model_dump())
        return employee

    def delete_employee(self, id: str) -> bool:
        return self._store.delete(COLLECTION, id)
