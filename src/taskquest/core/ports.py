# src/taskquest/core/ports.py

from __future__ import annotations

"""
Ports (interfaces) used by the core.

The core depends on Protocols instead of concrete implementations.
This keeps storage backends (local key-value store, Notion) swappable and makes testing easier.
"""

from collections.abc import Mapping
from datetime import date
from typing import Any, Protocol

from ..tasks.task_models import UNSET, Priority, Task, TaskCreateInput


class KeyValueStore(Protocol):
    """
    Named JSON blobs with an explicit lifecycle.

    set_many() must be atomic across all keys it receives: either every key is written or none.
    """

    def open(self) -> None: ...
    def close(self) -> None: ...
    def get(self, key: str) -> Any | None: ...
    def set_many(self, items: Mapping[str, Any]) -> None: ...
    def delete(self, key: str) -> None: ...


class TaskRepo(Protocol):
    """
    Async task storage.

    update() only touches the fields it is given; deadline=None clears the deadline.
    Unknown ids are not errors: update() returns None, delete()/update_progress() do nothing.
    Backend failures raise StoreUnavailable.
    """

    async def list(self) -> list[Task]: ...
    async def create(self, data: TaskCreateInput) -> Task: ...
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
    ) -> Task | None: ...
    async def update_progress(self, task_id: str, progress: int) -> None: ...
    async def delete(self, task_id: str) -> None: ...
    async def query_filtered(self, spec: Any) -> list[Task]: ...  # FilterSortSpec
    async def clear(self) -> int: ...


class TaskSource(Protocol):
    """Read-only view of the task collection (used by the deadline notifier)."""

    async def list(self) -> list[Task]: ...
