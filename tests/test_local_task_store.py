# tests/test_local_task_store.py

from __future__ import annotations

from datetime import date
from pathlib import Path

import pytest

from taskquest.errors import StoreUnavailable
from taskquest.storage.kv_store import SQLiteKeyValueStore
from taskquest.tasks.task_models import Priority, TaskCreateInput, TaskStatus
from taskquest.tasks.task_store import LocalTaskStore
from taskquest.tasks.task_views import FilterSortSpec, SortField

from .fakes import FakeClock, FlakyKeyValueStore


@pytest.mark.asyncio
async def test_create_assigns_defaults(task_store: LocalTaskStore, clock: FakeClock) -> None:
    task = await task_store.create(
        TaskCreateInput(title="Write report", priority=Priority.HIGH, deadline=date(2026, 10, 21), tags=["work"])
    )
    assert task.id
    assert task.progress == 0
    assert task.status == TaskStatus.TODO
    assert task.created_at == clock.now

    listed = await task_store.list()
    assert len(listed) == 1
    assert listed[0] == task


@pytest.mark.asyncio
async def test_partial_update_touches_only_given_fields(task_store: LocalTaskStore) -> None:
    task = await task_store.create(TaskCreateInput(title="Old", description="keep me", tags=["a"]))

    updated = await task_store.update(task.id, title="New", tags=["b", "c"])
    assert updated is not None
    assert updated.title == "New"
    assert updated.description == "keep me"
    assert updated.tags == ["b", "c"]
    assert updated.status == TaskStatus.TODO

    assert (await task_store.list())[0].title == "New"


@pytest.mark.asyncio
async def test_unknown_id_is_not_an_error(task_store: LocalTaskStore, kv: FlakyKeyValueStore) -> None:
    await task_store.create(TaskCreateInput(title="x"))
    writes = len(kv.writes)

    assert await task_store.update("missing", title="y") is None
    await task_store.update_progress("missing", 50)
    await task_store.delete("missing")

    assert len(kv.writes) == writes


@pytest.mark.asyncio
@pytest.mark.parametrize(
    ("progress", "status"),
    [(0, TaskStatus.TODO), (1, TaskStatus.IN_PROGRESS), (99, TaskStatus.IN_PROGRESS), (100, TaskStatus.DONE)],
)
async def test_progress_drives_status(task_store: LocalTaskStore, progress: int, status: TaskStatus) -> None:
    task = await task_store.create(TaskCreateInput(title="x"))
    await task_store.update_progress(task.id, progress)
    stored = (await task_store.list())[0]
    assert stored.progress == progress
    assert stored.status == status


@pytest.mark.asyncio
async def test_delete_and_clear(task_store: LocalTaskStore) -> None:
    a = await task_store.create(TaskCreateInput(title="a"))
    await task_store.create(TaskCreateInput(title="b"))
    await task_store.create(TaskCreateInput(title="c"))

    await task_store.delete(a.id)
    assert [t.title for t in await task_store.list()] == ["b", "c"]

    assert await task_store.clear() == 2
    assert await task_store.list() == []


@pytest.mark.asyncio
async def test_query_filtered_uses_derived_view(task_store: LocalTaskStore) -> None:
    await task_store.create(TaskCreateInput(title="late", priority=Priority.LOW, deadline=date(2026, 12, 1)))
    await task_store.create(TaskCreateInput(title="soon", priority=Priority.HIGH, deadline=date(2026, 10, 20)))
    await task_store.create(TaskCreateInput(title="mid", priority=Priority.HIGH, deadline=date(2026, 11, 1)))

    out = await task_store.query_filtered(FilterSortSpec(priority=Priority.HIGH, sort_field=SortField.DEADLINE))
    assert [t.title for t in out] == ["soon", "mid"]


@pytest.mark.asyncio
async def test_failed_write_raises_store_unavailable(task_store: LocalTaskStore, kv: FlakyKeyValueStore) -> None:
    await task_store.create(TaskCreateInput(title="kept"))
    kv.fail = True
    with pytest.raises(StoreUnavailable):
        await task_store.create(TaskCreateInput(title="lost"))
    kv.fail = False
    assert [t.title for t in await task_store.list()] == ["kept"]


@pytest.mark.asyncio
async def test_tasks_persist_in_sqlite(tmp_path: Path) -> None:
    kv = SQLiteKeyValueStore(tmp_path / "kv.sqlite3")
    kv.open()
    store = LocalTaskStore(kv)
    task = await store.create(TaskCreateInput(title="persist me", deadline=date(2026, 10, 30), tags=["x", "y"]))
    await store.update_progress(task.id, 30)
    kv.close()

    kv2 = SQLiteKeyValueStore(tmp_path / "kv.sqlite3")
    kv2.open()
    loaded = await LocalTaskStore(kv2).list()
    assert len(loaded) == 1
    assert loaded[0].id == task.id
    assert loaded[0].deadline == date(2026, 10, 30)
    assert loaded[0].tags == ["x", "y"]
    assert loaded[0].status == TaskStatus.IN_PROGRESS


@pytest.mark.asyncio
async def test_deadline_can_be_cleared_but_is_kept_when_omitted(task_store: LocalTaskStore) -> None:
    task = await task_store.create(TaskCreateInput(title="trip", deadline=date(2026, 11, 5)))

    kept = await task_store.update(task.id, title="trip to Oslo")
    assert kept is not None and kept.deadline == date(2026, 11, 5)

    cleared = await task_store.update(task.id, deadline=None)
    assert cleared is not None and cleared.deadline is None
    assert (await task_store.list())[0].deadline is None
