# src/taskquest/points/engine.py

"""
Points engine: point awards, levels, streaks and badges.

Every mutating operation works on a copy of the ledger, persists the full snapshot
in one set_many() call and only then swaps the in-memory ledger. A failed write
(StoreUnavailable) therefore leaves the engine exactly as it was.
"""

from __future__ import annotations

import logging
import threading
import uuid
from collections.abc import Callable, Iterable, Mapping
from dataclasses import replace
from datetime import date, datetime

from ..core.ports import KeyValueStore
from ..tasks.task_models import Priority, Task
from .badges import DEFAULT_BADGE_RULES, BadgeRule, initial_badges
from .ledger import (
    HISTORY_KEY,
    LEVEL_UP_BONUS_PER_LEVEL,
    POINTS_KEY,
    STATS_KEY,
    LedgerSnapshot,
    PointEntry,
    calculate_level,
)

logger = logging.getLogger(__name__)

DEFAULT_COMPLETION_POINTS: dict[Priority, int] = {
    Priority.HIGH: 30,
    Priority.MEDIUM: 20,
    Priority.LOW: 10,
}

STREAK_BONUS_PER_DAY = 10
STREAK_BONUS_CAP = 100


def streak_bonus(streak_days: int) -> int:
    return min(streak_days * STREAK_BONUS_PER_DAY, STREAK_BONUS_CAP)


class PointsEngine:
    def __init__(
        self,
        kv: KeyValueStore,
        *,
        badge_rules: Iterable[BadgeRule] = DEFAULT_BADGE_RULES,
        completion_points: Mapping[Priority, int] | None = None,
        clock: Callable[[], datetime] = datetime.now,
        id_factory: Callable[[], str] = lambda: str(uuid.uuid4()),
    ) -> None:
        self._kv = kv
        self._rules = tuple(badge_rules)
        self._completion_points = dict(completion_points or DEFAULT_COMPLETION_POINTS)
        self._clock = clock
        self._new_id = id_factory
        self._lock = threading.Lock()
        self._ledger = self._load()
        logger.info(
            "PointsEngine ready total=%s level=%s streak=%s",
            self._ledger.total_points,
            self._ledger.level,
            self._ledger.streak_days,
        )

    @property
    def snapshot(self) -> LedgerSnapshot:
        return self._ledger

    @property
    def badge_rules(self) -> tuple[BadgeRule, ...]:
        return self._rules

    # ---- persistence ----

    def _initial(self) -> LedgerSnapshot:
        return LedgerSnapshot(
            last_activity_date=self._today(),
            badges=initial_badges(self._rules),
        )

    def _load(self) -> LedgerSnapshot:
        points = self._kv.get(POINTS_KEY)
        history = self._kv.get(HISTORY_KEY)
        stats = self._kv.get(STATS_KEY)
        if points is None and history is None and stats is None:
            return self._initial()
        return LedgerSnapshot.from_blobs(
            points,
            history,
            stats,
            default_badges=initial_badges(self._rules),
            today=self._today(),
        )

    def _commit(self, ledger: LedgerSnapshot) -> LedgerSnapshot:
        # Raises StoreUnavailable before the in-memory ledger is touched.
        self._kv.set_many(ledger.to_blobs())
        self._ledger = ledger
        return ledger

    def _today(self) -> date:
        return self._clock().date()

    # ---- pure steps ----

    def _apply_points(self, ledger: LedgerSnapshot, action: str, delta: int, now: datetime) -> LedgerSnapshot:
        entries = list(ledger.history)
        entries.append(PointEntry(id=self._new_id(), action=action, delta=int(delta), timestamp=now))
        total = ledger.total_points + int(delta)

        new_level, _ = calculate_level(total)
        if new_level > ledger.level:
            # One bonus per call, sized by the level reached; the bonus never chains.
            bonus = new_level * LEVEL_UP_BONUS_PER_LEVEL
            entries.append(
                PointEntry(id=self._new_id(), action=f"Level {new_level} bonus", delta=bonus, timestamp=now)
            )
            total += bonus
            logger.info("Level up: %s -> %s (+%s bonus)", ledger.level, new_level, bonus)

        return replace(ledger, history=tuple(entries)).with_total(total)

    def _apply_streak(self, ledger: LedgerSnapshot, now: datetime) -> LedgerSnapshot:
        today = now.date()
        gap = (today - ledger.last_activity_date).days
        if gap == 0:
            return ledger
        if gap == 1:
            streak = ledger.streak_days + 1
            ledger = replace(ledger, streak_days=streak, last_activity_date=today)
            logger.debug("Streak extended to %s day(s)", streak)
            return self._apply_points(ledger, f"{streak}-day streak bonus", streak_bonus(streak), now)
        logger.debug("Streak reset (gap=%s day(s))", gap)
        return replace(ledger, streak_days=1, last_activity_date=today)

    def _apply_badges(self, ledger: LedgerSnapshot, task: Task, now: datetime) -> LedgerSnapshot:
        before = ledger
        for rule in self._rules:
            state = ledger.badge(rule.id) or rule.initial_state()
            if state.acquired:
                continue
            if not rule.predicate(task, before, now):
                continue

            acquired = replace(state, acquired=True, acquired_at=now)
            if ledger.badge(rule.id) is None:
                badges = (*ledger.badges, acquired)
            else:
                badges = tuple(acquired if b.id == rule.id else b for b in ledger.badges)
            ledger = replace(ledger, badges=badges)
            ledger = self._apply_points(ledger, f"Badge unlocked: {rule.name}", rule.reward, now)
            logger.info("Badge unlocked: %s (+%s)", rule.id, rule.reward)
        return ledger

    # ---- public API ----

    def add_points(self, action: str, delta: int) -> LedgerSnapshot:
        """Append a (possibly negative) award; adds a level-up bonus when a level boundary is crossed."""
        with self._lock:
            ledger = self._apply_points(self._ledger, action, delta, self._clock())
            return self._commit(ledger)

    def check_badges(self, task: Task) -> LedgerSnapshot:
        with self._lock:
            ledger = self._apply_badges(self._ledger, task, self._clock())
            if ledger is self._ledger:
                return ledger
            return self._commit(ledger)

    def update_streak(self) -> LedgerSnapshot:
        """
        Same calendar day: no-op.
        Next day: streak + 1 and a bonus of min(streak * 10, 100).
        Any other gap: streak restarts at 1 without a bonus.
        """
        with self._lock:
            ledger = self._apply_streak(self._ledger, self._clock())
            if ledger is self._ledger:
                return ledger
            return self._commit(ledger)

    def record_completion(self, task: Task) -> LedgerSnapshot:
        """Count a completed task, award its points, then run streak and badge checks in one write."""
        with self._lock:
            now = self._clock()
            ledger = replace(
                self._ledger,
                tasks_completed=self._ledger.tasks_completed + 1,
                high_priority_completed=self._ledger.high_priority_completed
                + (1 if task.priority == Priority.HIGH else 0),
            )
            award = self._completion_points.get(task.priority, 0)
            if award:
                ledger = self._apply_points(ledger, f'Completed "{task.title}"', award, now)
            ledger = self._apply_streak(ledger, now)
            ledger = self._apply_badges(ledger, task, now)
            return self._commit(ledger)

    def reset(self) -> LedgerSnapshot:
        with self._lock:
            logger.info("Points ledger reset")
            return self._commit(self._initial())
