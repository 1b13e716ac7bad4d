# tests/test_notion_store.py

from __future__ import annotations

from datetime import date

import httpx
import pytest

from taskquest.errors import StoreUnavailable
from taskquest.tasks.notion_store import NotionTaskStore, build_query, page_to_task
from taskquest.tasks.task_models import Priority, TaskCreateInput, TaskStatus
from taskquest.tasks.task_views import FilterSortSpec, SortDirection, SortField

from .fakes import FakeNotionClient, notion_page


def _store(client: FakeNotionClient) -> NotionTaskStore:
    return NotionTaskStore(client, "db-1")  # type: ignore[arg-type]


def test_page_to_task_maps_properties() -> None:
    page = notion_page(
        "p1",
        title="Ship release",
        description="tag and publish",
        priority="High",
        status="In Progress",
        deadline="2026-10-21",
        tags=["work", "release"],
        progress=60,
    )
    task = page_to_task(page)
    assert task.id == "p1"
    assert task.title == "Ship release"
    assert task.description == "tag and publish"
    assert task.priority == Priority.HIGH
    assert task.status == TaskStatus.IN_PROGRESS
    assert task.deadline == date(2026, 10, 21)
    assert task.tags == ["work", "release"]
    assert task.progress == 60
    assert task.created_at is not None


def test_page_to_task_tolerates_missing_values() -> None:
    page = notion_page("p2", title="", priority=None, status=None, progress=None)
    task = page_to_task(page)
    assert task.title == ""
    assert task.priority == Priority.LOW
    assert task.status == TaskStatus.TODO
    assert task.deadline is None
    assert task.progress == 0


def test_status_is_read_back_as_stored() -> None:
    task = page_to_task(notion_page("p3", status="Done", progress=20))
    assert task.status == TaskStatus.DONE
    assert task.progress == 20


def test_build_query_translates_filters_and_sort() -> None:
    spec = FilterSortSpec(
        priority=Priority.HIGH,
        status=TaskStatus.TODO,
        search_text="Report",
        sort_field=SortField.DEADLINE,
        sort_direction=SortDirection.DESCENDING,
    )
    query = build_query(spec)
    conditions = query["filter"]["and"]
    assert {"property": "priority", "select": {"equals": "High"}} in conditions
    assert {"property": "status", "select": {"equals": "To Do"}} in conditions
    search = conditions[2]["or"]
    assert search[0] == {"property": "title", "title": {"contains": "report"}}
    assert search[1] == {"property": "description", "rich_text": {"contains": "report"}}
    assert query["sorts"] == [{"property": "deadline", "direction": "descending"}]


def test_build_query_empty_spec() -> None:
    assert build_query(FilterSortSpec()) == {}


def test_database_id_is_required() -> None:
    with pytest.raises(ValueError):
        NotionTaskStore(FakeNotionClient(), "")  # type: ignore[arg-type]


@pytest.mark.asyncio
async def test_create_writes_defaults() -> None:
    client = FakeNotionClient()
    store = _store(client)

    task = await store.create(
        TaskCreateInput(title="Pay rent", priority=Priority.HIGH, deadline=date(2026, 11, 1), tags=["home"])
    )
    assert task.id == "page-1"
    assert task.status == TaskStatus.TODO
    assert task.progress == 0
    assert task.created_at is not None

    name, kwargs = client.calls[-1]
    assert name == "pages.create"
    assert kwargs["parent"] == {"database_id": "db-1"}
    props = kwargs["properties"]
    assert props["status"] == {"select": {"name": "To Do"}}
    assert props["progress"] == {"number": 0}
    assert props["deadline"] == {"date": {"start": "2026-11-01"}}

    listed = await store.list()
    assert [t.title for t in listed] == ["Pay rent"]


@pytest.mark.asyncio
async def test_update_progress_writes_derived_status() -> None:
    client = FakeNotionClient()
    client.add_page(notion_page("p1", progress=0))
    store = _store(client)

    await store.update_progress("p1", 100)

    props = client.store["p1"]["properties"]
    assert props["progress"] == {"number": 100}
    assert props["status"] == {"select": {"name": "Done"}}


@pytest.mark.asyncio
async def test_partial_update_sends_only_given_fields() -> None:
    client = FakeNotionClient()
    client.add_page(notion_page("p1", title="Old", description="keep"))
    store = _store(client)

    task = await store.update("p1", title="New")
    assert task is not None
    assert task.title == "New"
    assert task.description == "keep"
    _, kwargs = client.calls[-1]
    assert set(kwargs["properties"]) == {"title"}


@pytest.mark.asyncio
async def test_unknown_page_is_not_an_error() -> None:
    store = _store(FakeNotionClient())
    assert await store.update("nope", title="x") is None
    await store.update_progress("nope", 10)
    await store.delete("nope")


@pytest.mark.asyncio
async def test_delete_archives_page() -> None:
    client = FakeNotionClient()
    client.add_page(notion_page("p1"))
    client.add_page(notion_page("p2"))
    store = _store(client)

    await store.delete("p1")

    assert client.store["p1"]["archived"] is True
    assert [t.id for t in await store.list()] == ["p2"]


@pytest.mark.asyncio
async def test_list_follows_pagination() -> None:
    client = FakeNotionClient(page_size=2)
    for i in range(5):
        client.add_page(notion_page(f"p{i}", title=f"task {i}"))
    store = _store(client)

    tasks = await store.list()

    assert [t.id for t in tasks] == ["p0", "p1", "p2", "p3", "p4"]
    queries = [kw for name, kw in client.calls if name == "databases.query"]
    assert len(queries) == 3
    assert "start_cursor" not in queries[0]
    assert queries[1]["start_cursor"] == "2"
    assert all(q["sorts"] == [{"property": "deadline", "direction": "ascending"}] for q in queries)


@pytest.mark.asyncio
async def test_query_filtered_sends_translated_query() -> None:
    client = FakeNotionClient()
    store = _store(client)

    await store.query_filtered(FilterSortSpec(priority=Priority.LOW, sort_field=SortField.PROGRESS))

    _, kwargs = client.calls[-1]
    assert kwargs["database_id"] == "db-1"
    assert kwargs["filter"] == {"and": [{"property": "priority", "select": {"equals": "Low"}}]}
    assert kwargs["sorts"] == [{"property": "progress", "direction": "ascending"}]


@pytest.mark.asyncio
async def test_transport_failure_becomes_store_unavailable() -> None:
    client = FakeNotionClient()
    client.error = httpx.ConnectError("connection refused")
    store = _store(client)

    with pytest.raises(StoreUnavailable):
        await store.list()
    with pytest.raises(StoreUnavailable):
        await store.create(TaskCreateInput(title="x"))
    with pytest.raises(StoreUnavailable):
        await store.update_progress("p1", 10)
    with pytest.raises(StoreUnavailable):
        await store.delete("p1")


@pytest.mark.asyncio
async def test_clear_archives_everything() -> None:
    client = FakeNotionClient(page_size=2)
    for i in range(3):
        client.add_page(notion_page(f"p{i}"))
    store = _store(client)

    assert await store.clear() == 3
    assert all(page["archived"] for page in client.store.values())
    assert await store.list() == []


@pytest.mark.asyncio
async def test_update_can_clear_deadline() -> None:
    client = FakeNotionClient()
    client.add_page(notion_page("p1", deadline="2026-11-05"))
    store = _store(client)

    task = await store.update("p1", deadline=None)

    assert task is not None and task.deadline is None
    _, kwargs = client.calls[-1]
    assert kwargs["properties"] == {"deadline": {"date": None}}
