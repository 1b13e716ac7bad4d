# src/taskquest/tasks/notion_store.py

"""
Notion-backed task store.

Each task is a page in a Notion database with these properties:

    title        title
    description  rich_text
    priority     select      (High / Medium / Low)
    status       select      (To Do / In Progress / Done)
    deadline     date
    tags         multi_select
    progress     number

Deleting a task archives the page. Status is stored independently from progress:
update_progress() writes both, but status read back from Notion is never corrected.
"""

from __future__ import annotations

import logging
from collections.abc import Awaitable, Callable
from datetime import date
from typing import Any, TypeVar

import httpx
from notion_client import APIErrorCode, AsyncClient
from notion_client.errors import APIResponseError, HTTPResponseError, RequestTimeoutError

from ..errors import StoreUnavailable
from .task_models import (
    UNSET,
    Priority,
    Task,
    TaskCreateInput,
    TaskStatus,
    parse_date,
    parse_timestamp,
    status_from_progress,
)
from .task_views import FilterSortSpec

logger = logging.getLogger(__name__)

T = TypeVar("T")

_BACKEND_ERRORS = (HTTPResponseError, RequestTimeoutError, httpx.HTTPError)


def _plain_text(items: Any) -> str:
    if not isinstance(items, list) or not items:
        return ""
    first = items[0]
    if not isinstance(first, dict):
        return ""
    return str(first.get("plain_text") or (first.get("text") or {}).get("content") or "")


def page_to_task(page: dict[str, Any]) -> Task:
    props = page.get("properties") or {}

    def prop(name: str) -> dict[str, Any]:
        val = props.get(name)
        return val if isinstance(val, dict) else {}

    select_priority = prop("priority").get("select") or {}
    select_status = prop("status").get("select") or {}
    deadline = prop("deadline").get("date") or {}
    tags = prop("tags").get("multi_select") or []

    return Task(
        id=str(page.get("id") or ""),
        title=_plain_text(prop("title").get("title")),
        description=_plain_text(prop("description").get("rich_text")),
        priority=Priority.from_db(select_priority.get("name")),
        status=TaskStatus.from_db(select_status.get("name")),
        deadline=parse_date(deadline.get("start")),
        tags=[str(t.get("name")) for t in tags if isinstance(t, dict) and t.get("name")],
        progress=int(prop("progress").get("number") or 0),
        created_at=parse_timestamp(page.get("created_time")),
    )


def _text(content: str) -> list[dict[str, Any]]:
    return [{"text": {"content": content}}]


def build_properties(
    *,
    title: str | None = None,
    description: str | None = None,
    priority: Priority | None = None,
    status: TaskStatus | None = None,
    deadline: date | None = UNSET,
    tags: list[str] | None = None,
    progress: int | None = None,
) -> dict[str, Any]:
    """Notion property payload for the given fields (None means "not given", except deadline=None clears)."""
    props: dict[str, Any] = {}
    if title is not None:
        props["title"] = {"title": _text(title)}
    if description is not None:
        props["description"] = {"rich_text": _text(description)}
    if priority is not None:
        props["priority"] = {"select": {"name": priority.value}}
    if status is not None:
        props["status"] = {"select": {"name": status.value}}
    if deadline is not UNSET:
        props["deadline"] = {"date": {"start": deadline.isoformat()} if deadline else None}
    if tags is not None:
        props["tags"] = {"multi_select": [{"name": t} for t in tags]}
    if progress is not None:
        props["progress"] = {"number": int(progress)}
    return props


def build_query(spec: FilterSortSpec) -> dict[str, Any]:
    """Translate a FilterSortSpec into databases.query() keyword arguments."""
    conditions: list[dict[str, Any]] = []
    if spec.priority is not None:
        conditions.append({"property": "priority", "select": {"equals": spec.priority.value}})
    if spec.status is not None:
        conditions.append({"property": "status", "select": {"equals": spec.status.value}})
    if spec.search_text:
        needle = spec.search_text.lower()
        conditions.append(
            {
                "or": [
                    {"property": "title", "title": {"contains": needle}},
                    {"property": "description", "rich_text": {"contains": needle}},
                ]
            }
        )

    query: dict[str, Any] = {}
    if conditions:
        query["filter"] = {"and": conditions}
    if spec.sort_field is not None:
        query["sorts"] = [{"property": spec.sort_field.value, "direction": spec.sort_direction.value}]
    return query


class NotionTaskStore:
    """Async TaskRepo over a Notion database (notion_client.AsyncClient)."""

    def __init__(self, client: AsyncClient, database_id: str) -> None:
        if not database_id:
            raise ValueError("database_id is required")
        self._client = client
        self._database_id = database_id
        logger.info("NotionTaskStore ready database=%s", database_id)

    @classmethod
    def from_token(cls, token: str, database_id: str) -> NotionTaskStore:
        return cls(AsyncClient(auth=token), database_id)

    async def aclose(self) -> None:
        close = getattr(self._client, "aclose", None)
        if close is not None:
            await close()

    # ---- low-level helpers ----

    async def _call(self, what: str, fn: Callable[[], Awaitable[T]]) -> T:
        try:
            return await fn()
        except _BACKEND_ERRORS as exc:
            logger.error("Notion %s failed: %s", what, exc)
            raise StoreUnavailable(f"Notion {what} failed: {exc}") from exc

    async def _query_all(self, **query: Any) -> list[Task]:
        tasks: list[Task] = []
        cursor: str | None = None
        while True:
            kwargs = dict(query, database_id=self._database_id)
            if cursor:
                kwargs["start_cursor"] = cursor
            response = await self._call("query", lambda: self._client.databases.query(**kwargs))
            for page in response.get("results") or []:
                if isinstance(page, dict):
                    tasks.append(page_to_task(page))
            if not response.get("has_more"):
                break
            cursor = response.get("next_cursor")
            if not cursor:
                break
        return tasks

    @staticmethod
    def _is_not_found(exc: APIResponseError) -> bool:
        return exc.code == APIErrorCode.ObjectNotFound

    # ---- public API ----

    async def list(self) -> list[Task]:
        return await self._query_all(sorts=[{"property": "deadline", "direction": "ascending"}])

    async def create(self, data: TaskCreateInput) -> Task:
        properties = build_properties(
            title=data.title,
            description=data.description,
            priority=data.priority,
            status=TaskStatus.TODO,
            deadline=data.deadline,
            tags=list(data.tags),
            progress=0,
        )
        page = await self._call(
            "create",
            lambda: self._client.pages.create(
                parent={"database_id": self._database_id},
                properties=properties,
            ),
        )
        task = Task(
            id=str(page.get("id") or ""),
            title=data.title,
            description=data.description,
            priority=data.priority,
            status=TaskStatus.TODO,
            deadline=data.deadline,
            tags=list(data.tags),
            progress=0,
            created_at=parse_timestamp(page.get("created_time")),
        )
        logger.debug("Notion task created id=%s", task.id)
        return task

    async def _update_page(self, task_id: str, properties: dict[str, Any]) -> dict[str, Any] | None:
        try:
            return await self._client.pages.update(page_id=task_id, properties=properties)
        except APIResponseError as exc:
            if self._is_not_found(exc):
                logger.debug("Notion page %s not found", task_id)
                return None
            logger.error("Notion update failed id=%s: %s", task_id, exc)
            raise StoreUnavailable(f"Notion update failed: {exc}") from exc
        except _BACKEND_ERRORS as exc:
            logger.error("Notion update failed id=%s: %s", task_id, exc)
            raise StoreUnavailable(f"Notion update failed: {exc}") from exc

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
    ) -> Task | None:
        properties = build_properties(
            title=title,
            description=description,
            priority=priority,
            deadline=deadline,
            tags=tags,
            progress=progress,
            status=status_from_progress(progress) if progress is not None else None,
        )
        page = await self._update_page(task_id, properties)
        if page is None:
            return None
        return page_to_task(page)

    async def update_progress(self, task_id: str, progress: int) -> None:
        await self._update_page(
            task_id,
            build_properties(progress=progress, status=status_from_progress(progress)),
        )

    async def delete(self, task_id: str) -> None:
        try:
            await self._client.pages.update(page_id=task_id, archived=True)
        except APIResponseError as exc:
            if self._is_not_found(exc):
                return
            logger.error("Notion archive failed id=%s: %s", task_id, exc)
            raise StoreUnavailable(f"Notion archive failed: {exc}") from exc
        except _BACKEND_ERRORS as exc:
            logger.error("Notion archive failed id=%s: %s", task_id, exc)
            raise StoreUnavailable(f"Notion archive failed: {exc}") from exc

    async def query_filtered(self, spec: FilterSortSpec) -> list[Task]:
        return await self._query_all(**build_query(spec))

    async def clear(self) -> int:
        """Archive every page in the database."""
        tasks = await self._query_all()
        for task in tasks:
            await self.delete(task.id)
        logger.info("Notion database cleared (%d page(s) archived)", len(tasks))
        return len(tasks)
