# tests/conftest.py

from __future__ import annotations

from pathlib import Path
from types import SimpleNamespace

import pytest

from taskquest.cli.bootstrap import create_initial_state
from taskquest.core.state import AppState
from taskquest.points.engine import PointsEngine
from taskquest.tasks.task_store import LocalTaskStore

from .fakes import FakeClock, FlakyKeyValueStore


@pytest.fixture()
def settings(tmp_path: Path) -> SimpleNamespace:
    """
    Minimal settings object compatible with the bootstrap and core modules.

    We intentionally use a SimpleNamespace rather than importing real config,
    to keep unit tests isolated and deterministic.
    """
    return SimpleNamespace(
        app_name="taskquest-test",
        log_level="DEBUG",
        storage_backend="memory",
        data_dir=tmp_path,
        kv_db_path=tmp_path / "taskquest.sqlite3",
        notion_api_key=None,
        notion_database_id=None,
        notify_interval_seconds=3600.0,
        notify_window_days=3,
        points_enabled=True,
        completion_points_high=30,
        completion_points_medium=20,
        completion_points_low=10,
    )


@pytest.fixture()
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture()
def kv() -> FlakyKeyValueStore:
    return FlakyKeyValueStore()


@pytest.fixture()
def engine(kv: FlakyKeyValueStore, clock: FakeClock) -> PointsEngine:
    return PointsEngine(kv, clock=clock)


@pytest.fixture()
def task_store(kv: FlakyKeyValueStore, clock: FakeClock) -> LocalTaskStore:
    return LocalTaskStore(kv, clock=clock)


@pytest.fixture()
def state(settings: SimpleNamespace) -> AppState:
    """
    AppState wired through the real composition root with the in-memory backend.
    """
    return create_initial_state(settings=settings)
