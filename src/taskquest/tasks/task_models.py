# src/taskquest/tasks/task_models.py

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, datetime
from enum import StrEnum
from typing import Any

# "Field not given" marker for partial updates where None is a meaningful value
# (deadline=None clears the deadline).
UNSET: Any = object()


class Priority(StrEnum):
    LOW = "Low"
    MEDIUM = "Medium"
    HIGH = "High"

    @classmethod
    def from_db(cls, raw: str | None) -> Priority:
        if not raw:
            return cls.LOW
        try:
            return cls(raw)
        except ValueError:
            return cls.LOW


class TaskStatus(StrEnum):
    """
    Task lifecycle status.

    Values are the display names, which are also the select option names
    in the Notion database.
    """

    TODO = "To Do"
    IN_PROGRESS = "In Progress"
    DONE = "Done"

    @classmethod
    def from_db(cls, raw: str | None) -> TaskStatus:
        if not raw:
            return cls.TODO
        try:
            return cls(raw)
        except ValueError:
            return cls.TODO


def status_from_progress(progress: int) -> TaskStatus:
    if progress >= 100:
        return TaskStatus.DONE
    if progress > 0:
        return TaskStatus.IN_PROGRESS
    return TaskStatus.TODO


def parse_date(raw: Any) -> date | None:
    """Accept a date, a datetime or an ISO string ("2024-05-01" or a full timestamp)."""
    if raw is None or raw == "":
        return None
    if isinstance(raw, datetime):
        return raw.date()
    if isinstance(raw, date):
        return raw
    s = str(raw).strip()
    try:
        return date.fromisoformat(s[:10])
    except ValueError:
        return None


def parse_timestamp(raw: Any) -> datetime | None:
    """
    Parse an ISO timestamp into a naive local datetime.

    Notion returns "2024-05-01T10:00:00.000Z"; aware values are converted to local time
    so they can be compared with datetime.now().
    """
    if raw is None or raw == "":
        return None
    if isinstance(raw, datetime):
        dt = raw
    else:
        s = str(raw).strip()
        if s.endswith("Z"):
            s = s[:-1] + "+00:00"
        try:
            dt = datetime.fromisoformat(s)
        except ValueError:
            return None
    if dt.tzinfo is not None:
        dt = dt.astimezone().replace(tzinfo=None)
    return dt


@dataclass(slots=True)
class Task:
    id: str
    title: str
    description: str
    priority: Priority
    status: TaskStatus
    deadline: date | None
    tags: list[str] = field(default_factory=list)
    progress: int = 0
    created_at: datetime | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "title": self.title,
            "description": self.description,
            "priority": self.priority.value,
            "status": self.status.value,
            "deadline": self.deadline.isoformat() if self.deadline else "",
            "tags": list(self.tags),
            "progress": int(self.progress),
            "createdAt": self.created_at.isoformat() if self.created_at else None,
        }

    @classmethod
    def from_dict(cls, raw: dict[str, Any]) -> Task:
        tags_any = raw.get("tags") or []
        return cls(
            id=str(raw.get("id") or ""),
            title=str(raw.get("title") or ""),
            description=str(raw.get("description") or ""),
            priority=Priority.from_db(raw.get("priority")),
            status=TaskStatus.from_db(raw.get("status")),
            deadline=parse_date(raw.get("deadline")),
            tags=[str(t) for t in tags_any] if isinstance(tags_any, list) else [],
            progress=int(raw.get("progress") or 0),
            created_at=parse_timestamp(raw.get("createdAt") or raw.get("created_at")),
        )


@dataclass(slots=True)
class TaskCreateInput:
    """What the user supplies; id, progress, status and created_at are assigned by the store."""

    title: str
    description: str = ""
    priority: Priority = Priority.MEDIUM
    deadline: date | None = None
    tags: list[str] = field(default_factory=list)
