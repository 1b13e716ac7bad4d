# src/taskquest/tasks/task_store.py

from __future__ import annotations

import logging
import uuid
from collections.abc import Callable
from datetime import date, datetime
from typing import Any

from ..core.ports import KeyValueStore
from .task_models import UNSET, Priority, Task, TaskCreateInput, TaskStatus, status_from_progress
from .task_views import FilterSortSpec, derive_view

logger = logging.getLogger(__name__)

TASKS_KEY = "tasks"


class LocalTaskStore:
    """
    Task store kept as a single JSON list under the "tasks" key of a KeyValueStore.

    - create() assigns id / progress=0 / status=To Do / createdAt
    - status is always derived from progress when progress changes
    - delete() removes the task for good (no archive)
    - updates are last-write-wins: there is no version check

    Every write replaces the whole list in one set_many() call.
    """

    def __init__(
        self,
        kv: KeyValueStore,
        *,
        clock: Callable[[], datetime] = datetime.now,
        id_factory: Callable[[], str] = lambda: str(uuid.uuid4()),
    ) -> None:
        self._kv = kv
        self._clock = clock
        self._new_id = id_factory

    def close(self) -> None:
        """The key-value store is owned by the caller."""
        return

    # ---- low-level helpers ----

    def _load(self) -> list[Task]:
        raw = self._kv.get(TASKS_KEY)
        if not isinstance(raw, list):
            return []
        out: list[Task] = []
        for item in raw:
            if isinstance(item, dict):
                out.append(Task.from_dict(item))
        return out

    def _save(self, tasks: list[Task]) -> None:
        self._kv.set_many({TASKS_KEY: [t.to_dict() for t in tasks]})

    @staticmethod
    def _index_of(tasks: list[Task], task_id: str) -> int:
        for i, t in enumerate(tasks):
            if t.id == task_id:
                return i
        return -1

    # ---- public API ----

    async def list(self) -> list[Task]:
        return self._load()

    async def create(self, data: TaskCreateInput) -> Task:
        tasks = self._load()
        task = Task(
            id=self._new_id(),
            title=data.title,
            description=data.description,
            priority=data.priority,
            status=TaskStatus.TODO,
            deadline=data.deadline,
            tags=list(data.tags),
            progress=0,
            created_at=self._clock(),
        )
        tasks.append(task)
        self._save(tasks)
        logger.debug("Task created id=%s priority=%s deadline=%s", task.id, task.priority, task.deadline)
        return task

    async def update(
        self,
        task_id: str,
        *,
        title: str | None = None,
        description: str | None = None,
        priority: Priority | None = None,
        deadline: date | None = UNSET,
        tags: list[str] | None = None,
        progress: int | None = None,
    ) -> Task | None:
        tasks = self._load()
        idx = self._index_of(tasks, task_id)
        if idx < 0:
            logger.debug("Task update skipped: id=%s not found", task_id)
            return None

        task = tasks[idx]
        changes: dict[str, Any] = {}
        if title is not None:
            changes["title"] = title
        if description is not None:
            changes["description"] = description
        if priority is not None:
            changes["priority"] = priority
        if deadline is not UNSET:
            changes["deadline"] = deadline
        if tags is not None:
            changes["tags"] = list(tags)
        if progress is not None:
            changes["progress"] = int(progress)
            changes["status"] = status_from_progress(int(progress))

        for name, value in changes.items():
            setattr(task, name, value)

        if changes:
            self._save(tasks)
            logger.debug("Task updated id=%s fields=%s", task_id, sorted(changes))
        return task

    async def update_progress(self, task_id: str, progress: int) -> None:
        await self.update(task_id, progress=progress)

    async def delete(self, task_id: str) -> None:
        tasks = self._load()
        remaining = [t for t in tasks if t.id != task_id]
        if len(remaining) == len(tasks):
            return
        self._save(remaining)
        logger.debug("Task deleted id=%s", task_id)

    async def query_filtered(self, spec: FilterSortSpec) -> list[Task]:
        return derive_view(self._load(), spec)

    async def clear(self) -> int:
        tasks = self._load()
        if tasks:
            self._save([])
        logger.info("Local task store cleared (%d task(s))", len(tasks))
        return len(tasks)
