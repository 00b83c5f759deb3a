"""SQLite database schema and AppDatabase composition root."""

from __future__ import annotations

import sqlite3
from pathlib import Path

from om_reminders.infrastructure.config import DATABASE_PATH
from om_reminders.infrastructure.logger import logger

BUSY_TIMEOUT_S = 10.0


def create_schema(db: sqlite3.Connection) -> None:
    """Create all tables and indexes. Safe to call multiple times (IF NOT EXISTS)."""
    db.executescript("""
        CREATE TABLE IF NOT EXISTS documents (
            collection TEXT NOT NULL,
            id TEXT NOT NULL,
            body TEXT NOT NULL,
            PRIMARY KEY (collection, id)
        );
        CREATE INDEX IF NOT EXISTS idx_documents_collection ON documents(collection);

        CREATE TABLE IF NOT EXISTS app_state (
            key TEXT PRIMARY KEY,
            value TEXT NOT NULL
        );
    """)


def connect(db_path: Path | str) -> sqlite3.Connection:
    """Open a connection configured for overlapping writers (WAL + busy timeout)."""
    db = sqlite3.connect(str(db_path), timeout=BUSY_TIMEOUT_S)
    db.row_factory = sqlite3.Row
    if str(db_path) != ":memory:":
        db.execute("PRAGMA journal_mode=WAL")
    return db


class AppDatabase:
    """Composition root that initializes the DB and exposes repositories."""

    def __init__(self) -> None:
        self._db: sqlite3.Connection | None = None
        # Repositories are set after init
        self.store: SqliteDocumentStore | None = None  # type: ignore[assignment]
        self.state_repo: StateRepository | None = None  # type: ignore[assignment]
        self.schedule_repo: ScheduleRepository | None = None  # type: ignore[assignment]
        self.employee_repo: EmployeeRepository | None = None  # type: ignore[assignment]
        self.completion_repo: CompletionRepository | None = None  # type: ignore[assignment]
        self.snapshot_repo: SnapshotRepository | None = None  # type: ignore[assignment]
        self.run_log_repo: RunLogRepository | None = None  # type: ignore[assignment]
        self.sent_reminder_repo: SentReminderRepository | None = None  # type: ignore[assignment]

    @property
    def db(self) -> sqlite3.Connection:
        assert self._db is not None, "Database not initialized. Call init() first."
        return self._db

    def init(self, db_path: Path | str = DATABASE_PATH) -> None:
        """Open (or create) the database file at the standard location."""
        db_path = Path(db_path)
        db_path.parent.mkdir(parents=True, exist_ok=True)
        self._db = connect(db_path)
        self._init_repos()
        logger.info("Database ready", path=str(db_path))

    def _init_test(self) -> None:
        """For tests only. Creates a fresh in-memory database."""
        self._db = connect(":memory:")
        self._init_repos()

    def close(self) -> None:
        if self._db is not None:
            self._db.close()
            self._db = None

    def _init_repos(self) -> None:
        assert self._db is not None
        create_schema(self._db)

        # Import here to avoid circular imports
        from om_reminders.cache.repository import SnapshotRepository
        from om_reminders.completions.repository import CompletionRepository
        from om_reminders.dispatch.repository import RunLogRepository, SentReminderRepository
        from om_reminders.employees.repository import EmployeeRepository
        from om_reminders.infrastructure.document_store import SqliteDocumentStore
        from om_reminders.infrastructure.state_repo import StateRepository
        from om_reminders.scheduling.repository import ScheduleRepository

        self.store = SqliteDocumentStore(self._db)
        self.state_repo = StateRepository(self._db)
        self.schedule_repo = ScheduleRepository(self.store)
        self.employee_repo = EmployeeRepository(self.store)
        self.completion_repo = CompletionRepository(self.store)
        self.snapshot_repo = SnapshotRepository(self.store)
        self.run_log_repo = RunLogRepository(self.store)
        self.sent_reminder_repo = SentReminderRepository(self.store)


# Singleton instance
database = AppDatabase()
