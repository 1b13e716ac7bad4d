# src/taskquest/tasks/notifier.py

from __future__ import annotations

"""
Deadline notifier.

compute_notifications() is a pure function over the task collection.
DeadlineNotifier wraps it in a small polling loop that:
- recomputes immediately on start and whenever refresh() is called (task set changed),
- then recomputes on a fixed interval (hourly by default),
- replaces the previous notification set wholesale every time.

Delivery (printing, badges in a UI, ...) belongs to the caller via on_change.
"""

import asyncio
import contextlib
import logging
from collections.abc import Callable, Iterable
from dataclasses import dataclass
from datetime import date, timedelta

from ..core.ports import TaskSource
from .task_models import Task, TaskStatus

logger = logging.getLogger(__name__)

DEFAULT_WINDOW_DAYS = 3
DEFAULT_INTERVAL_SECONDS = 60 * 60


@dataclass(slots=True, frozen=True)
class Notification:
    task_id: str
    title: str
    message: str
    days_left: int
    kind: str = "deadline"


def due_phrase(days_left: int) -> str:
    if days_left == 0:
        return "due today"
    if days_left == 1:
        return "due tomorrow"
    return f"due in {days_left} days"


def compute_notifications(
    tasks: Iterable[Task],
    today: date,
    *,
    window_days: int = DEFAULT_WINDOW_DAYS,
) -> list[Notification]:
    """
    Reminders for open tasks due between today and today + window_days (inclusive).

    Overdue, completed and undated tasks produce nothing.
    """
    horizon = today + timedelta(days=window_days)
    out: list[Notification] = []
    for task in tasks:
        if task.status == TaskStatus.DONE or task.deadline is None:
            continue
        if not (today <= task.deadline <= horizon):
            continue
        days_left = (task.deadline - today).days
        out.append(
            Notification(
                task_id=task.id,
                title=task.title,
                message=f'"{task.title}" is {due_phrase(days_left)}',
                days_left=days_left,
            )
        )
    out.sort(key=lambda n: n.days_left)
    return out


class DeadlineNotifier:
    """
    Periodic reminder computation over a TaskSource.

    To stop the loop, call stop() (or cancel the task returned by start()).
    """

    def __init__(
        self,
        source: TaskSource,
        *,
        interval_seconds: float = DEFAULT_INTERVAL_SECONDS,
        window_days: int = DEFAULT_WINDOW_DAYS,
        on_change: Callable[[list[Notification]], None] | None = None,
        today: Callable[[], date] = date.today,
    ) -> None:
        self._source = source
        self._interval = max(0.01, float(interval_seconds))
        self._window_days = int(window_days)
        self.on_change = on_change
        self._today = today
        self._runner: asyncio.Task[None] | None = None
        self.notifications: list[Notification] = []

    @property
    def running(self) -> bool:
        return self._runner is not None and not self._runner.done()

    def recompute(self, tasks: Iterable[Task]) -> list[Notification]:
        """Replace the current set from an already-loaded collection."""
        self.notifications = compute_notifications(tasks, self._today(), window_days=self._window_days)
        if self.on_change is not None:
            try:
                self.on_change(list(self.notifications))
            except Exception:
                logger.exception("Notification callback failed")
        return self.notifications

    async def refresh(self) -> list[Notification]:
        """Reload the task collection and recompute. Keeps the previous set if loading fails."""
        try:
            tasks = await self._source.list()
        except Exception:
            logger.exception("Deadline check: listing tasks failed; keeping %d notification(s)",
                             len(self.notifications))
            return self.notifications
        notes = self.recompute(tasks)
        logger.debug("Deadline check: %d notification(s)", len(notes))
        return notes

    async def run(self) -> None:
        while True:
            await self.refresh()
            await asyncio.sleep(self._interval)

    def start(self) -> asyncio.Task[None]:
        if self._runner is None or self._runner.done():
            self._runner = asyncio.create_task(self.run(), name="deadline-notifier")
            logger.info("Deadline notifier started (interval=%ss, window=%sd)", self._interval, self._window_days)
        return self._runner

    async def stop(self) -> None:
        runner, self._runner = self._runner, None
        if runner is None:
            return
        runner.cancel()
        with contextlib.suppress(asyncio.CancelledError):
            await runner
        logger.info("Deadline notifier stopped")
