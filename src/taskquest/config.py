# src/taskquest/config.py

"""
Settings for taskquest, read from TASKQUEST_* environment variables.

A local .env file is loaded first (real environment wins). Nothing here needs a
secret at import time: Notion credentials are only checked when the Notion backend
is selected (see cli/bootstrap.py). They are also read from the unprefixed
NOTION_API_KEY / NOTION_DATABASE_ID names.

Malformed numbers and booleans raise ConfigError instead of silently falling back.
"""

from __future__ import annotations

import os
from collections.abc import Callable
from dataclasses import dataclass
from pathlib import Path
from typing import Optional, TypeVar

from dotenv import load_dotenv

from .errors import ConfigError

ENV_PREFIX = "TASKQUEST_"

STORAGE_BACKENDS = ("local", "notion", "memory")

_TRUE = frozenset({"1", "true", "yes", "y", "on"})
_FALSE = frozenset({"0", "false", "no", "n", "off"})

T = TypeVar("T")

load_dotenv(override=False)


def _raw(key: str, *fallbacks: str) -> str | None:
    """First non-blank value among TASKQUEST_<key> and the given unprefixed names."""
    for name in (ENV_PREFIX + key, *fallbacks):
        value = os.getenv(name)
        if value is not None and value.strip():
            return value.strip()
    return None


def _parsed(key: str, default: T, parse: Callable[[str], T], kind: str) -> T:
    raw = _raw(key)
    if raw is None:
        return default
    try:
        return parse(raw)
    except ValueError as exc:
        raise ConfigError(f"{ENV_PREFIX}{key} must be {kind}, got {raw!r}") from exc


def _parse_bool(raw: str) -> bool:
    lowered = raw.lower()
    if lowered in _TRUE:
        return True
    if lowered in _FALSE:
        return False
    raise ValueError(raw)


def _parse_path(raw: str) -> Path:
    return Path(raw).expanduser()


@dataclass(frozen=True, slots=True)
class Settings:
    # ---- App / logging ----
    app_name: str
    log_level: str

    # ---- Storage ----
    storage_backend: str
    data_dir: Path
    kv_db_path: Path

    # ---- Notion ----
    notion_api_key: Optional[str]
    notion_database_id: Optional[str]

    # ---- Deadline notifier ----
    notify_interval_seconds: float
    notify_window_days: int

    # ---- Points ----
    points_enabled: bool
    completion_points_high: int
    completion_points_medium: int
    completion_points_low: int

    @staticmethod
    def from_env() -> "Settings":
        data_dir = _parsed("DATA_DIR", Path(".local/taskquest"), _parse_path, "a path")

        return Settings(
            app_name=_raw("APP_NAME") or "taskquest",
            log_level=_raw("LOG_LEVEL") or "INFO",
            storage_backend=(_raw("STORAGE_BACKEND") or "local").lower(),
            data_dir=data_dir,
            kv_db_path=_parsed("KV_DB_PATH", data_dir / "taskquest.sqlite3", _parse_path, "a path"),
            notion_api_key=_raw("NOTION_API_KEY", "NOTION_API_KEY"),
            notion_database_id=_raw("NOTION_DATABASE_ID", "NOTION_DATABASE_ID"),
            notify_interval_seconds=_parsed("NOTIFY_INTERVAL_SECONDS", 3600.0, float, "a number of seconds"),
            notify_window_days=_parsed("NOTIFY_WINDOW_DAYS", 3, int, "a whole number of days"),
            points_enabled=_parsed("POINTS_ENABLED", True, _parse_bool, "a boolean"),
            completion_points_high=_parsed("COMPLETION_POINTS_HIGH", 30, int, "an integer"),
            completion_points_medium=_parsed("COMPLETION_POINTS_MEDIUM", 20, int, "an integer"),
            completion_points_low=_parsed("COMPLETION_POINTS_LOW", 10, int, "an integer"),
        )


_SETTINGS: Settings | None = None


def get_settings() -> Settings:
    """Process-wide settings, read from the environment on first use."""
    global _SETTINGS
    if _SETTINGS is None:
        _SETTINGS = Settings.from_env()
    return _SETTINGS
