# src/taskquest/points/ledger.py

"""
Points ledger model.

The ledger is persisted as three JSON blobs:
- "points":  total points (int)
- "history": list of point entries, oldest first
- "stats":   level / streak / badges / completion counters

Level thresholds use square roots of the total:
    level = floor(sqrt(total / 1000)) + 1
    next_level_threshold = level^2 * 1000
"""

from __future__ import annotations

import math
from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field, replace
from datetime import date, datetime
from typing import Any

from ..tasks.task_models import parse_date, parse_timestamp

POINTS_KEY = "points"
HISTORY_KEY = "history"
STATS_KEY = "stats"

LEVEL_BASE_POINTS = 1000
LEVEL_UP_BONUS_PER_LEVEL = 100


def calculate_level(total_points: int) -> tuple[int, int]:
    """Return (level, next_level_threshold) for a point total. Negative totals stay at level 1."""
    units = max(0, int(total_points)) // LEVEL_BASE_POINTS
    level = math.isqrt(units) + 1
    return level, level * level * LEVEL_BASE_POINTS


def level_floor(level: int) -> int:
    """Total points at which `level` starts."""
    return (level - 1) * (level - 1) * LEVEL_BASE_POINTS


@dataclass(frozen=True, slots=True)
class PointEntry:
    id: str
    action: str
    delta: int
    timestamp: datetime

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "action": self.action,
            "points": self.delta,
            "timestamp": self.timestamp.isoformat(),
        }

    @classmethod
    def from_dict(cls, raw: Mapping[str, Any]) -> PointEntry:
        return cls(
            id=str(raw.get("id") or ""),
            action=str(raw.get("action") or ""),
            delta=int(raw.get("points", raw.get("delta", 0)) or 0),
            timestamp=parse_timestamp(raw.get("timestamp")) or datetime.min,
        )


@dataclass(frozen=True, slots=True)
class BadgeState:
    id: str
    name: str
    description: str
    icon: str = ""
    acquired: bool = False
    acquired_at: datetime | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "description": self.description,
            "icon": self.icon,
            "acquired": self.acquired,
            "acquiredAt": self.acquired_at.isoformat() if self.acquired_at else None,
        }

    @classmethod
    def from_dict(cls, raw: Mapping[str, Any]) -> BadgeState:
        return cls(
            id=str(raw.get("id") or ""),
            name=str(raw.get("name") or ""),
            description=str(raw.get("description") or ""),
            icon=str(raw.get("icon") or ""),
            acquired=bool(raw.get("acquired")),
            acquired_at=parse_timestamp(raw.get("acquiredAt")),
        )


@dataclass(frozen=True, slots=True)
class LedgerSnapshot:
    total_points: int = 0
    history: tuple[PointEntry, ...] = ()
    level: int = 1
    current_points: int = 0
    next_level_threshold: int = LEVEL_BASE_POINTS
    streak_days: int = 0
    last_activity_date: date = field(default_factory=date.today)
    badges: tuple[BadgeState, ...] = ()
    tasks_completed: int = 0
    high_priority_completed: int = 0

    @property
    def points_to_next_level(self) -> int:
        return self.next_level_threshold - self.total_points

    def badge(self, badge_id: str) -> BadgeState | None:
        for b in self.badges:
            if b.id == badge_id:
                return b
        return None

    def acquired_badges(self) -> list[BadgeState]:
        return [b for b in self.badges if b.acquired]

    def with_total(self, total_points: int) -> LedgerSnapshot:
        """Copy with total and all level fields recomputed."""
        level, threshold = calculate_level(total_points)
        return replace(
            self,
            total_points=total_points,
            level=level,
            current_points=total_points - level_floor(level),
            next_level_threshold=threshold,
        )

    # ---- persistence ----

    def to_blobs(self) -> dict[str, Any]:
        return {
            POINTS_KEY: self.total_points,
            HISTORY_KEY: [e.to_dict() for e in self.history],
            STATS_KEY: {
                "level": self.level,
                "currentPoints": self.current_points,
                "nextLevelPoints": self.next_level_threshold,
                "streak": self.streak_days,
                "lastActivity": self.last_activity_date.isoformat(),
                "badges": [b.to_dict() for b in self.badges],
                "tasksCompleted": self.tasks_completed,
                "highPriorityCompleted": self.high_priority_completed,
            },
        }

    @classmethod
    def from_blobs(
        cls,
        points: Any,
        history: Any,
        stats: Any,
        *,
        default_badges: Iterable[BadgeState] = (),
        today: date | None = None,
    ) -> LedgerSnapshot:
        """
        Rebuild a snapshot from stored blobs (any of them may be missing).

        Level fields are always recomputed from the total. Badges missing from storage
        (for example newly configured ones) are added in their unacquired state.
        """
        entries: tuple[PointEntry, ...] = ()
        if isinstance(history, list):
            entries = tuple(PointEntry.from_dict(h) for h in history if isinstance(h, Mapping))

        stats_map: Mapping[str, Any] = stats if isinstance(stats, Mapping) else {}

        stored_badges: dict[str, BadgeState] = {}
        for raw in stats_map.get("badges") or []:
            if isinstance(raw, Mapping):
                b = BadgeState.from_dict(raw)
                stored_badges[b.id] = b

        badges: list[BadgeState] = []
        for default in default_badges:
            badges.append(stored_badges.pop(default.id, default))
        badges.extend(stored_badges.values())

        total = int(points) if isinstance(points, (int, float)) else sum(e.delta for e in entries)

        snapshot = cls(
            history=entries,
            streak_days=int(stats_map.get("streak") or 0),
            last_activity_date=parse_date(stats_map.get("lastActivity")) or today or date.today(),
            badges=tuple(badges),
            tasks_completed=int(stats_map.get("tasksCompleted") or 0),
            high_priority_completed=int(stats_map.get("highPriorityCompleted") or 0),
        )
        return snapshot.with_total(total)
