# tests/test_streak_and_badges.py

from __future__ import annotations

from datetime import timedelta

from taskquest.points.badges import DEFAULT_BADGE_RULES, BadgeRule
from taskquest.points.engine import PointsEngine
from taskquest.tasks.task_models import Priority

from .fakes import FakeClock, FlakyKeyValueStore, make_task


def test_streak_same_day_is_noop(engine: PointsEngine, kv: FlakyKeyValueStore) -> None:
    s = engine.update_streak()
    assert s.streak_days == 0
    assert s.history == ()
    assert kv.writes == []


def test_streak_next_day_increments_and_awards(engine: PointsEngine, clock: FakeClock) -> None:
    clock.advance(days=1)
    s = engine.update_streak()
    assert s.streak_days == 1
    assert s.total_points == 10
    assert s.last_activity_date == clock.today()

    # Second call on the same day: nothing changes, no duplicate bonus.
    s2 = engine.update_streak()
    assert s2.streak_days == 1
    assert s2.total_points == 10
    assert len(s2.history) == 1


def test_streak_gap_resets_to_one_without_bonus(engine: PointsEngine, clock: FakeClock) -> None:
    for _ in range(4):
        clock.advance(days=1)
        engine.update_streak()
    assert engine.snapshot.streak_days == 4
    points_before = engine.snapshot.total_points

    clock.advance(days=3)
    s = engine.update_streak()
    assert s.streak_days == 1
    assert s.total_points == points_before
    assert s.last_activity_date == clock.today()


def test_streak_bonus_is_capped(engine: PointsEngine, clock: FakeClock) -> None:
    for _ in range(12):
        clock.advance(days=1)
        engine.update_streak()
    s = engine.snapshot
    assert s.streak_days == 12
    streak_entries = [e for e in s.history if "streak" in e.action]
    assert streak_entries[0].delta == 10
    assert streak_entries[-1].delta == 100


def test_streak_late_evening_to_next_morning_counts_as_next_day(
    kv: FlakyKeyValueStore, clock: FakeClock
) -> None:
    clock.now = clock.now.replace(hour=23, minute=50)
    engine = PointsEngine(kv, clock=clock)
    clock.advance(minutes=20)
    assert engine.update_streak().streak_days == 1


def test_first_task_badge_fires_once(engine: PointsEngine, clock: FakeClock) -> None:
    old_task = make_task(created_at=clock.now - timedelta(days=3))

    s = engine.check_badges(old_task)
    first = s.badge("first-task")
    assert first is not None and first.acquired
    assert first.acquired_at == clock.now
    assert s.total_points == 100
    assert not s.badge("speed-runner").acquired

    clock.advance(hours=1)
    s2 = engine.check_badges(old_task)
    assert s2.total_points == 100
    assert len(s2.history) == 1
    assert s2.badge("first-task").acquired_at == first.acquired_at


def test_speed_runner_within_24_hours(engine: PointsEngine, clock: FakeClock) -> None:
    fresh = make_task(created_at=clock.now - timedelta(hours=2))
    s = engine.check_badges(fresh)
    assert s.badge("first-task").acquired
    assert s.badge("speed-runner").acquired
    assert s.total_points == 300


def test_speed_runner_needs_creation_time(engine: PointsEngine) -> None:
    s = engine.check_badges(make_task(created_at=None))
    assert not s.badge("speed-runner").acquired


def test_record_completion_awards_priority_points(engine: PointsEngine, clock: FakeClock, kv) -> None:
    task = make_task("report", priority=Priority.HIGH, created_at=clock.now - timedelta(days=5))
    s = engine.record_completion(task)
    assert s.tasks_completed == 1
    assert s.high_priority_completed == 1
    # 30 for a high-priority task + 100 for the first-task badge
    assert s.total_points == 130
    assert len(kv.writes) == 1


def test_task_master_after_ten_completions(engine: PointsEngine, clock: FakeClock) -> None:
    created = clock.now - timedelta(days=10)
    for i in range(10):
        engine.record_completion(make_task(f"chore {i}", priority=Priority.LOW, created_at=created))

    s = engine.snapshot
    assert s.tasks_completed == 10
    assert s.badge("task-master").acquired
    assert not s.badge("high-achiever").acquired
    # 10 x 10 completion + 100 first-task + 500 task-master
    assert s.total_points == 700
    assert s.total_points == sum(e.delta for e in s.history)


def test_perfect_week_after_seven_day_streak(engine: PointsEngine, clock: FakeClock) -> None:
    for _ in range(7):
        clock.advance(days=1)
        engine.record_completion(make_task(created_at=clock.now - timedelta(days=2)))
    assert engine.snapshot.streak_days == 7
    assert engine.snapshot.badge("perfect-week").acquired


def test_badges_are_configuration_driven(kv: FlakyKeyValueStore, clock: FakeClock) -> None:
    tagged = BadgeRule(
        id="tagger",
        name="Tagger",
        description="Complete a task with three tags",
        reward=50,
        predicate=lambda task, ledger, now: len(task.tags) >= 3,
    )
    engine = PointsEngine(kv, badge_rules=(*DEFAULT_BADGE_RULES, tagged), clock=clock)

    s = engine.check_badges(make_task(tags=["a", "b"], created_at=clock.now - timedelta(days=2)))
    assert not s.badge("tagger").acquired

    s = engine.check_badges(make_task(tags=["a", "b", "c"], created_at=clock.now - timedelta(days=2)))
    assert s.badge("tagger").acquired
    assert s.total_points == 150


def test_new_rule_appears_on_existing_ledger(kv: FlakyKeyValueStore, clock: FakeClock) -> None:
    PointsEngine(kv, clock=clock).add_points("seed", 10)
    extra = BadgeRule(id="extra", name="Extra", description="", reward=1, predicate=lambda task, ledger, now: False)
    engine = PointsEngine(kv, badge_rules=(*DEFAULT_BADGE_RULES, extra), clock=clock)
    assert engine.snapshot.badge("extra") is not None
    assert not engine.snapshot.badge("extra").acquired
