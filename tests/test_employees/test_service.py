"""Tests for EmployeeManager."""

import pytest
from pydantic import ValidationError

from om_reminders.employees.service import EmployeeManager
from om_reminders.employees.types import EmployeeNotFound


@pytest.fixture
def manager(db):
    return EmployeeManager(db.employee_repo)


class TestEmployeeCRUD:
    def test_create_and_get(self, manager):
        employee = manager.create("  Dana Cruz ", "Irrigation Tech", "dana@example.com")
        assert employee.id.startswith("emp-")
        assert employee.name == "Dana Cruz"
        assert manager.get(employee.id).position == "Irrigation Tech"

    def test_email_optional(self, manager):
        assert manager.create("Lee", "Supervisor").email == ""

    def test_invalid_email(self, manager):
        with pytest.raises(ValidationError):
            manager.create("Lee", "Supervisor", "not-an-email")

    def test_blank_name_rejected(self, manager):
        with pytest.raises(ValidationError):
            manager.create("   ", "Supervisor")

    def test_get_all_sorted_by_name(self, manager):
        manager.create("Zed", "Tech")
        manager.create("Ana", "Tech")
        assert [e.name for e in manager.get_all()] == ["Ana", "Zed"]

    def test_update(self, manager):
        employee = manager.create("Lee", "Tech")
        updated = manager.update(employee.id, position="Lead Tech")
        assert updated.position == "Lead Tech"
        assert updated.name == "Lee"

    def test_update_missing(self, manager):
        with pytest.raises(EmployeeNotFound):
            manager.update("emp-missing", name="x")

    def test_delete(self, manager):
        employee = manager.create("Lee", "Tech")
        manager.delete(employee.id)
        with pytest.raises(EmployeeNotFound):
            manager.get(employee.id)
        with pytest.raises(EmployeeNotFound):
            manager.delete(employee.id)


class TestChangeNotification:
    def test_every_mutation_notifies(self, db):
        changes = []
        manager = EmployeeManager(db.employee_repo, on_change=lambda: changes.append(1))
        employee = manager.create("Lee", "Tech")
        manager.update(employee.id, name="Lee Park")
        manager.delete(employee.id)
        assert len(changes) == 3
