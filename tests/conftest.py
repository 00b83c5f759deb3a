from zoneinfo import ZoneInfo

import pytest

from om_reminders.infrastructure.database import AppDatabase


@pytest.fixture
def db() -> AppDatabase:
    """Create an in-memory database for testing."""
    app_db = AppDatabase()
    app_db._init_test()
    return app_db


@pytest.fixture
def tz() -> ZoneInfo:
    return ZoneInfo("Asia/Manila")
