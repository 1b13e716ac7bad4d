# src/taskquest/points/badges.py

from __future__ import annotations

from collections.abc import Callable, Iterable
from dataclasses import dataclass
from datetime import datetime, timedelta

from ..tasks.task_models import Task
from .ledger import BadgeState, LedgerSnapshot

BadgePredicate = Callable[[Task, LedgerSnapshot, datetime], bool]


@dataclass(frozen=True, slots=True)
class BadgeRule:
    """
    One achievement: a predicate over (task, ledger, now) plus a fixed reward.

    The predicate sees the ledger as it was before the current check, so rules are
    evaluated independently of each other.
    """

    id: str
    name: str
    description: str
    reward: int
    predicate: BadgePredicate
    icon: str = ""

    def initial_state(self) -> BadgeState:
        return BadgeState(id=self.id, name=self.name, description=self.description, icon=self.icon)


def _always(task: Task, ledger: LedgerSnapshot, now: datetime) -> bool:
    return True


def _completed_within_a_day(task: Task, ledger: LedgerSnapshot, now: datetime) -> bool:
    if task.created_at is None:
        return False
    return now - task.created_at <= timedelta(hours=24)


def _streak_at_least(days: int) -> BadgePredicate:
    def check(task: Task, ledger: LedgerSnapshot, now: datetime) -> bool:
        return ledger.streak_days >= days

    return check


def _completed_at_least(count: int) -> BadgePredicate:
    def check(task: Task, ledger: LedgerSnapshot, now: datetime) -> bool:
        return ledger.tasks_completed >= count

    return check


def _high_priority_completed_at_least(count: int) -> BadgePredicate:
    def check(task: Task, ledger: LedgerSnapshot, now: datetime) -> bool:
        return ledger.high_priority_completed >= count

    return check


DEFAULT_BADGE_RULES: tuple[BadgeRule, ...] = (
    BadgeRule(
        id="first-task",
        name="First Step",
        description="Complete your first task",
        reward=100,
        predicate=_always,
        icon="🎯",
    ),
    BadgeRule(
        id="speed-runner",
        name="Speed Runner",
        description="Complete a task within 24 hours of creating it",
        reward=200,
        predicate=_completed_within_a_day,
        icon="⚡",
    ),
    BadgeRule(
        id="perfect-week",
        name="Perfect Week",
        description="Complete tasks 7 days in a row",
        reward=300,
        predicate=_streak_at_least(7),
        icon="🌟",
    ),
    BadgeRule(
        id="task-master",
        name="Task Master",
        description="Complete 10 tasks in total",
        reward=500,
        predicate=_completed_at_least(10),
        icon="👑",
    ),
    BadgeRule(
        id="high-achiever",
        name="High Achiever",
        description="Complete 5 high-priority tasks",
        reward=400,
        predicate=_high_priority_completed_at_least(5),
        icon="🏆",
    ),
)


def initial_badges(rules: Iterable[BadgeRule]) -> tuple[BadgeState, ...]:
    return tuple(r.initial_state() for r in rules)
