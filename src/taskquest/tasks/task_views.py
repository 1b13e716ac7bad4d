# src/taskquest/tasks/task_views.py

from __future__ import annotations

"""
Derived task views: filter, search, sort and tab buckets.

Everything here is pure: inputs are never mutated and the same (tasks, spec) pair
always yields the same list in the same order.
"""

from collections.abc import Iterable, Mapping
from dataclasses import dataclass
from datetime import date
from enum import StrEnum
from typing import Any

from ..errors import InvalidFilterError
from .task_models import Priority, Task, TaskStatus


class SortField(StrEnum):
    DEADLINE = "deadline"
    PRIORITY = "priority"
    PROGRESS = "progress"


class SortDirection(StrEnum):
    ASCENDING = "ascending"
    DESCENDING = "descending"


class TaskTab(StrEnum):
    ALL = "all"
    TODO = "todo"
    IN_PROGRESS = "inprogress"
    DONE = "done"


_TAB_STATUS: dict[TaskTab, TaskStatus] = {
    TaskTab.TODO: TaskStatus.TODO,
    TaskTab.IN_PROGRESS: TaskStatus.IN_PROGRESS,
    TaskTab.DONE: TaskStatus.DONE,
}

# Ascending priority order lists the most important tasks first.
PRIORITY_RANK: dict[Priority, int] = {
    Priority.HIGH: 0,
    Priority.MEDIUM: 1,
    Priority.LOW: 2,
}


def _enum_lookup(enum_cls: Any, raw: Any, what: str) -> Any:
    if raw is None:
        return None
    if isinstance(raw, enum_cls):
        return raw
    s = str(raw).strip()
    if not s:
        return None
    key = s.lower().replace(" ", "").replace("_", "")
    for member in enum_cls:
        if member.value.lower().replace(" ", "") == key or member.name.lower().replace("_", "") == key:
            return member
    allowed = ", ".join(m.value for m in enum_cls)
    raise InvalidFilterError(f"invalid {what} {s!r} (expected one of: {allowed})")


@dataclass(frozen=True, slots=True)
class FilterSortSpec:
    priority: Priority | None = None
    status: TaskStatus | None = None
    search_text: str | None = None
    sort_field: SortField | None = None
    sort_direction: SortDirection = SortDirection.ASCENDING

    @classmethod
    def from_params(cls, params: Mapping[str, Any]) -> FilterSortSpec:
        """
        Build a spec from loosely-typed input (query-string style).

        Accepts both camelCase (sortField) and snake_case (sort_field) names.
        Unknown enum values raise InvalidFilterError; empty values mean "not set".
        """

        def pick(*names: str) -> Any:
            for n in names:
                if n in params and params[n] not in (None, ""):
                    return params[n]
            return None

        search = pick("search", "searchText", "search_text")
        direction = _enum_lookup(
            SortDirection, pick("sortDirection", "sort_direction", "direction"), "sort direction"
        )
        return cls(
            priority=_enum_lookup(Priority, pick("priority"), "priority"),
            status=_enum_lookup(TaskStatus, pick("status"), "status"),
            search_text=str(search) if search is not None else None,
            sort_field=_enum_lookup(SortField, pick("sortField", "sort_field", "sort"), "sort field"),
            sort_direction=direction or SortDirection.ASCENDING,
        )

    def is_empty(self) -> bool:
        return (
            self.priority is None
            and self.status is None
            and not self.search_text
            and self.sort_field is None
        )


def matches(task: Task, spec: FilterSortSpec) -> bool:
    if spec.priority is not None and task.priority != spec.priority:
        return False
    if spec.status is not None and task.status != spec.status:
        return False
    if spec.search_text:
        needle = spec.search_text.lower()
        if needle not in (task.title or "").lower() and needle not in (task.description or "").lower():
            return False
    return True


def filter_tab(tasks: Iterable[Task], tab: TaskTab | str = TaskTab.ALL) -> list[Task]:
    """Status bucket used for display grouping; 'all' keeps everything."""
    tab = TaskTab(tab)
    if tab == TaskTab.ALL:
        return list(tasks)
    status = _TAB_STATUS[tab]
    return [t for t in tasks if t.status == status]


def sort_tasks(
    tasks: Iterable[Task],
    field: SortField | None,
    direction: SortDirection = SortDirection.ASCENDING,
) -> list[Task]:
    items = list(tasks)
    if field is None:
        return items

    reverse = direction == SortDirection.DESCENDING

    if field == SortField.DEADLINE:
        dated = [t for t in items if t.deadline is not None]
        undated = [t for t in items if t.deadline is None]
        dated.sort(key=lambda t: t.deadline or date.min, reverse=reverse)
        return dated + undated

    if field == SortField.PRIORITY:
        return sorted(items, key=lambda t: PRIORITY_RANK[t.priority], reverse=reverse)

    return sorted(items, key=lambda t: t.progress, reverse=reverse)


def derive_view(
    tasks: Iterable[Task],
    spec: FilterSortSpec | None = None,
    tab: TaskTab | str = TaskTab.ALL,
) -> list[Task]:
    """Filter (conjunctive), bucket by tab, then stable-sort."""
    spec = spec or FilterSortSpec()
    selected = [t for t in tasks if matches(t, spec)]
    selected = filter_tab(selected, tab)
    return sort_tasks(selected, spec.sort_field, spec.sort_direction)
