# src/taskquest/cli/bootstrap.py

"""
CLI bootstrap helpers.

This module is the "composition root":
- loads settings once,
- ensures local (gitignored) directories exist,
- opens the key-value store and picks the task backend (local or Notion),
- wires the points engine and deadline notifier into AppState.
"""

from __future__ import annotations

import contextlib
import logging

from ..config import STORAGE_BACKENDS, get_settings
from ..core.ports import KeyValueStore, TaskRepo
from ..core.state import AppState
from ..errors import ConfigError, StoreUnavailable
from ..points.engine import PointsEngine
from ..storage.kv_store import MemoryKeyValueStore, SQLiteKeyValueStore
from ..tasks.notifier import DeadlineNotifier
from ..tasks.notion_store import NotionTaskStore
from ..tasks.task_models import Priority
from ..tasks.task_store import LocalTaskStore

logger = logging.getLogger(__name__)


def _ensure_local_dirs(settings) -> None:
    try:
        settings.data_dir.mkdir(parents=True, exist_ok=True)
        settings.kv_db_path.parent.mkdir(parents=True, exist_ok=True)
    except OSError as exc:
        logger.error("Cannot create local data directories under %s: %s", settings.data_dir, exc)
        raise StoreUnavailable(str(exc)) from exc


def completion_points_from(settings) -> dict[Priority, int]:
    return {
        Priority.HIGH: int(settings.completion_points_high),
        Priority.MEDIUM: int(settings.completion_points_medium),
        Priority.LOW: int(settings.completion_points_low),
    }


def build_task_store(settings, kv: KeyValueStore) -> TaskRepo:
    backend = str(settings.storage_backend).lower()
    if backend not in STORAGE_BACKENDS:
        raise ConfigError(f"Unknown storage backend {backend!r} (expected one of: {', '.join(STORAGE_BACKENDS)})")

    if backend == "notion":
        if not settings.notion_api_key or not settings.notion_database_id:
            raise ConfigError("Notion backend needs NOTION_API_KEY and NOTION_DATABASE_ID")
        return NotionTaskStore.from_token(settings.notion_api_key, settings.notion_database_id)

    return LocalTaskStore(kv)


def create_initial_state(*, settings=None) -> AppState:
    """
    Create AppState from the provided settings.

    Keeping settings injectable makes the app easier to test and avoids hidden global config reads.
    If settings is None, falls back to get_settings().

    The ledger always lives in the key-value store, even when tasks live in Notion.
    """
    if settings is None:
        settings = get_settings()

    kv: KeyValueStore
    if str(settings.storage_backend).lower() == "memory":
        kv = MemoryKeyValueStore()
    else:
        _ensure_local_dirs(settings)
        kv = SQLiteKeyValueStore(settings.kv_db_path)
    kv.open()

    task_store = build_task_store(settings, kv)

    points = None
    if settings.points_enabled:
        points = PointsEngine(kv, completion_points=completion_points_from(settings))

    notifier = DeadlineNotifier(
        task_store,
        interval_seconds=settings.notify_interval_seconds,
        window_days=settings.notify_window_days,
    )

    logger.info("State ready backend=%s points=%s", settings.storage_backend, points is not None)
    return AppState(settings=settings, kv=kv, task_store=task_store, points=points, notifier=notifier)


async def shutdown_state(state: AppState) -> None:
    """Best-effort shutdown (no exceptions should escape)."""
    if state.notifier is not None:
        try:
            await state.notifier.stop()
        except Exception:
            logger.exception("Failed to stop deadline notifier.")

    aclose = getattr(state.task_store, "aclose", None)
    if aclose is not None:
        try:
            await aclose()
        except Exception:
            logger.debug("Task store close failed.", exc_info=True)

    with contextlib.suppress(Exception):
        state.kv.close()
