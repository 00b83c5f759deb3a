"""Tests for database initialization and schema."""

from om_reminders.infrastructure.database import AppDatabase


class TestAppDatabase:
    def test_init_creates_schema(self):
        db = AppDatabase()
        db._init_test()
        tables = db.db.execute(
            "SELECT name FROM sqlite_master WHERE type='table' ORDER BY name"
        ).fetchall()
        table_names = [row[0] for row in tables]
        assert "documents" in table_names
        assert "app_state" in table_names

    def test_repos_initialized(self, db):
        assert db.store is not None
        assert db.schedule_repo is not None
        assert db.employee_repo is not None
        assert db.completion_repo is not None
        assert db.snapshot_repo is not None
        assert db.run_log_repo is not None
        assert db.sent_reminder_repo is not None

    def test_multiple_init_is_safe(self):
        db = AppDatabase()
        db._init_test()
        db._init_test()  # Should not raise

    def test_file_database(self, tmp_path):
        db = AppDatabase()
        db.init(tmp_path / "store" / "reminders.db")
        db.state_repo.set_state("key1", "value1")
        db.close()

        reopened = AppDatabase()
        reopened.init(tmp_path / "store" / "reminders.db")
        assert reopened.state_repo.get_state("key1") == "value1"
        reopened.close()


class TestStateRepo:
    def test_set_and_get(self, db):
        db.state_repo.set_state("key1", "value1")
        assert db.state_repo.get_state("key1") == "value1"

    def test_get_nonexistent(self, db):
        assert db.state_repo.get_state("nonexistent") is None

    def test_upsert(self, db):
        db.state_repo.set_state("key1", "old")
        db.state_repo.set_state("key1", "new")
        assert db.state_repo.get_state("key1") == "new"

    def test_delete(self, db):
        db.state_repo.set_state("key1", "value1")
        db.state_repo.delete_state("key1")
        assert db.state_repo.get_state("key1") is None
