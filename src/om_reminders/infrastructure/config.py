"""Configuration constants, .env parsing, and dispatch settings."""

from __future__ import annotations

import os
from pathlib import Path
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError


def read_env_file(keys: list[str]) -> dict[str, str]:
    """Parse .env file and return values for requested keys.

    Does NOT load into os.environ; callers decide what to do with values.
    SMTP credentials stay out of the process environment that way.
    """
    env_file = Path.cwd() / ".env"
    try:
        content = env_file.read_text()
    except OSError:
        return {}

    result: dict[str, str] = {}
    wanted = set(keys)

    for line in content.splitlines():
        trimmed = line.strip()
        if not trimmed or trimmed.startswith("#"):
            continue
        eq_idx = trimmed.find("=")
        if eq_idx == -1:
            continue
        key = trimmed[:eq_idx].strip()
        if key not in wanted:
            continue
        value = trimmed[eq_idx + 1 :].strip()
        if (value.startswith('"') and value.endswith('"')) or (value.startswith("'") and value.endswith("'")):
            value = value[1:-1]
        if value:
            result[key] = value

    return result


_ENV_KEYS = [
    "ORG_TIMEZONE",
    "EMAIL_PROVIDER",
    "EMAIL_HOST",
    "EMAIL_PORT",
    "EMAIL_USER",
    "EMAIL_PASS",
    "EMAIL_FROM_NAME",
    "GMAIL_CONFIG_DIR",
]
_env_config = read_env_file(_ENV_KEYS)


def _setting(key: str, default: str) -> str:
    return os.environ.get(key) or _env_config.get(key, default)


def _int_setting(key: str, default: int) -> int:
    try:
        return int(_setting(key, str(default)))
    except ValueError:
        return default


def _float_setting(key: str, default: float) -> float:
    try:
        return float(_setting(key, str(default)))
    except ValueError:
        return default


# Absolute paths
PROJECT_ROOT: Path = Path.cwd()
STORE_DIR: Path = Path(_setting("STORE_DIR", str(PROJECT_ROOT / "store"))).resolve()
DATA_DIR: Path = Path(_setting("DATA_DIR", str(PROJECT_ROOT / "data"))).resolve()
DATABASE_PATH: Path = STORE_DIR / "reminders.db"
COMMANDS_DIR: Path = DATA_DIR / "commands"

DISPATCH_POLL_INTERVAL: float = _float_setting("DISPATCH_POLL_INTERVAL", 60.0)  # seconds
DISPATCH_MAX_WORKERS: int = max(1, _int_setting("DISPATCH_MAX_WORKERS", 5))
DISPATCH_SCHEDULE_TIMEOUT: float = _float_setting("DISPATCH_SCHEDULE_TIMEOUT", 30.0)
DISPATCH_RUN_TIMEOUT: float = _float_setting("DISPATCH_RUN_TIMEOUT", 240.0)
COMMAND_POLL_INTERVAL: float = _float_setting("COMMAND_POLL_INTERVAL", 2.0)

CACHE_MAX_AGE: float = _float_setting("CACHE_MAX_AGE", 900.0)  # 15min
SENT_REMINDER_RETENTION_DAYS: int = max(1, _int_setting("SENT_REMINDER_RETENTION_DAYS", 7))
CLAIM_TTL: float = _float_setting("CLAIM_TTL", 600.0)

EMAIL_PROVIDER: str = _setting("EMAIL_PROVIDER", "smtp").lower()
EMAIL_HOST: str = _setting("EMAIL_HOST", "")
EMAIL_PORT: int = _int_setting("EMAIL_PORT", 587)
EMAIL_USER: str = _setting("EMAIL_USER", "")
EMAIL_PASS: str = _setting("EMAIL_PASS", "")
EMAIL_FROM_NAME: str = _setting("EMAIL_FROM_NAME", "Operation & Maintenance (O&M)")
GMAIL_CONFIG_DIR: Path = Path(_setting("GMAIL_CONFIG_DIR", str(Path.home() / ".gmail-mcp")))


def resolve_timezone(name: str | None = None) -> str:
    """Return a valid IANA zone name, falling back to UTC."""
    tz = name if name is not None else _setting("ORG_TIMEZONE", "Asia/Manila")
    if not tz:
        return "UTC"
    try:
        ZoneInfo(tz)
        return tz
    except (ZoneInfoNotFoundError, ValueError):
        return "UTC"


TIMEZONE: str = resolve_timezone()


class DispatchConfig:
    """Worker-pool and timeout configuration for one dispatch run."""

    def __init__(
        self,
        max_workers: int = DISPATCH_MAX_WORKERS,
        schedule_timeout: float = DISPATCH_SCHEDULE_TIMEOUT,
        run_timeout: float = DISPATCH_RUN_TIMEOUT,
        timezone: str = TIMEZONE,
    ) -> None:
        self.max_workers = max(1, max_workers)
        self.schedule_timeout = schedule_timeout
        self.run_timeout = run_timeout
        self.timezone = timezone

    @property
    def tz(self) -> ZoneInfo:
        return ZoneInfo(self.timezone)

    def get_run_timeout(self) -> float:
        """Get the run budget (always leaves room for at least one schedule)."""
        return max(self.run_timeout, self.schedule_timeout)
