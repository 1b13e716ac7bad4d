# src/taskquest/core/state.py

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

from ..points.engine import PointsEngine
from ..tasks.notifier import DeadlineNotifier
from ..tasks.task_views import FilterSortSpec, TaskTab
from .ports import KeyValueStore, TaskRepo


@dataclass
class AppState:
    # Store Settings on the state for easy access in other modules later.
    settings: Any

    kv: KeyValueStore
    task_store: TaskRepo
    points: PointsEngine | None = None
    notifier: DeadlineNotifier | None = None

    # Current console view (not persisted).
    view_spec: FilterSortSpec = field(default_factory=FilterSortSpec)
    tab: TaskTab = TaskTab.ALL
