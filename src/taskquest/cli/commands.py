# src/taskquest/cli/commands.py

from __future__ import annotations

import inspect
import logging
import shlex
from collections.abc import Awaitable, Callable
from datetime import date
from typing import Any, cast

from ..core.state import AppState
from ..errors import InvalidFilterError, StoreUnavailable
from ..tasks.task_models import Priority, Task, TaskCreateInput, TaskStatus, parse_date
from ..tasks.task_views import FilterSortSpec, SortDirection, SortField, TaskTab, filter_tab

CommandEmitter = Callable[[str], None]
CommandHandler2 = Callable[[AppState, list[str]], Awaitable[str]]
CommandHandler3 = Callable[[AppState, list[str], CommandEmitter | None], Awaitable[str]]
CommandHandler = CommandHandler2 | CommandHandler3

logger = logging.getLogger(__name__)


class CommandRegistry:
    """Simple slash-command registry used by the console connector (/help, /add, ...)."""

    def __init__(self) -> None:
        self._handlers: dict[str, CommandHandler] = {}
        self._help: dict[str, str] = {}

    def register(
        self,
        name: str,
        handler: CommandHandler,
        help_text: str,
        aliases: list[str] | None = None,
    ) -> None:
        aliases = aliases or []
        key = name.lower()
        self._handlers[key] = handler
        self._help[key] = help_text
        for alias in aliases:
            self._handlers[alias.lower()] = handler

    async def handle(
        self,
        state: AppState,
        line: str,
        emit: CommandEmitter | None = None,
    ) -> str | None:
        """
        Handle a string like "/command args".
        Returns a reply string or None if not a command.
        """
        if not line.startswith("/"):
            return None

        try:
            parts = shlex.split(line[1:])
        except ValueError:
            return "Unbalanced quotes in command."
        if not parts:
            return "Empty command. Use /help to list available commands."

        name = parts[0].lower()
        args = parts[1:]

        handler = self._handlers.get(name)
        if not handler:
            return f"Unknown command: /{name}. Use /help to list available commands."

        try:
            nparams = len(inspect.signature(handler).parameters)
        except (TypeError, ValueError):
            nparams = 3

        try:
            if nparams >= 3:
                h3 = cast(CommandHandler3, handler)
                return await h3(state, args, emit)
            h2 = cast(CommandHandler2, handler)
            return await h2(state, args)
        except StoreUnavailable as e:
            logger.warning("Command /%s failed: %s", name, e)
            return f"Storage is unavailable: {e}"
        except InvalidFilterError as e:
            return str(e)

    def build_help(self) -> str:
        lines = ["Available commands:"]
        for name, help_text in self._help.items():
            lines.append(f"  /{name} - {help_text}")
        return "\n".join(lines)


registry = CommandRegistry()


# ---- helpers ----

def format_task(task: Task) -> str:
    due = f", due {task.deadline.isoformat()}" if task.deadline else ""
    tags = (" " + " ".join(f"#{t}" for t in task.tags)) if task.tags else ""
    return f"[{task.id[:8]}] ({task.priority.value}) {task.title} | {task.progress}% {task.status.value}{due}{tags}"


async def _resolve_task(state: AppState, ref: str) -> Task | None:
    """Find a task by full id or unique id prefix."""
    tasks = await state.task_store.list()
    exact = [t for t in tasks if t.id == ref]
    if exact:
        return exact[0]
    matches = [t for t in tasks if t.id.startswith(ref)]
    return matches[0] if len(matches) == 1 else None


def _parse_assignments(args: list[str]) -> dict[str, str]:
    out: dict[str, str] = {}
    for arg in args:
        key, sep, value = arg.partition("=")
        if sep:
            out[key.strip().lower()] = value.strip()
    return out


def _parse_tags(raw: str) -> list[str]:
    return [t.strip() for t in raw.replace("#", "").split(",") if t.strip()]


async def _tasks_changed(state: AppState) -> None:
    if state.notifier is not None:
        await state.notifier.refresh()


async def _restore_progress(state: AppState, task: Task) -> None:
    try:
        await state.task_store.update(task.id, progress=task.progress)
    except StoreUnavailable:
        logger.exception("Could not restore progress of task %s after a failed completion", task.id)


# ---- commands ----

async def cmd_help(state: AppState, args: list[str]) -> str:
    return registry.build_help()


async def cmd_add(state: AppState, args: list[str]) -> str:
    """
    /add <title> [| priority [| deadline [| tags [| description]]]]
    e.g. /add Write report | High | 2024-05-01 | work,q2 | quarterly numbers
    """
    raw = " ".join(args).strip()
    if not raw:
        return "Usage: /add <title> | [priority] | [YYYY-MM-DD] | [tag1,tag2] | [description]"

    fields = [f.strip() for f in raw.split("|")]
    fields += [""] * (5 - len(fields))
    title, priority_raw, deadline_raw, tags_raw, description = fields[:5]

    try:
        priority = Priority(priority_raw.capitalize()) if priority_raw else Priority.MEDIUM
    except ValueError:
        return f"Unknown priority: {priority_raw}. Use High, Medium or Low."

    deadline: date | None = None
    if deadline_raw:
        deadline = parse_date(deadline_raw)
        if deadline is None:
            return f"Bad deadline: {deadline_raw}. Use YYYY-MM-DD."

    task = await state.task_store.create(
        TaskCreateInput(
            title=title,
            description=description,
            priority=priority,
            deadline=deadline,
            tags=_parse_tags(tags_raw),
        )
    )
    await _tasks_changed(state)
    return f"Added {format_task(task)}"


async def cmd_list(state: AppState, args: list[str]) -> str:
    """
    /list            -> current tab with the active filter/sort
    /list <tab>      -> switch tab: all | todo | inprogress | done
    """
    if args:
        try:
            state.tab = TaskTab(args[0].lower())
        except ValueError:
            return "Usage: /list [all|todo|inprogress|done]"

    tasks = await state.task_store.query_filtered(state.view_spec)
    tasks = filter_tab(tasks, state.tab)
    if not tasks:
        return f"No tasks ({state.tab.value})."
    lines = [f"Tasks ({state.tab.value}, {len(tasks)}):"]
    lines.extend(format_task(t) for t in tasks)
    return "\n".join(lines)


async def cmd_filter(state: AppState, args: list[str]) -> str:
    """
    /filter                         -> show active filter
    /filter priority=High status=todo
    /filter clear
    """
    spec = state.view_spec
    if not args:
        return (
            "Active view:\n"
            f"  priority={spec.priority or '-'} status={spec.status or '-'} search={spec.search_text or '-'}\n"
            f"  sort={spec.sort_field or '-'} {spec.sort_direction.value}"
        )

    if args[0].lower() == "clear":
        state.view_spec = FilterSortSpec(sort_field=spec.sort_field, sort_direction=spec.sort_direction)
        return "Filter cleared."

    params: dict[str, Any] = {
        "priority": spec.priority,
        "status": spec.status,
        "search": spec.search_text,
        "sortField": spec.sort_field,
        "sortDirection": spec.sort_direction,
    }
    aliases = {"sortfield": "sortField", "sort": "sortField", "sortdirection": "sortDirection", "direction": "sortDirection"}
    for key, value in _parse_assignments(args).items():
        params[aliases.get(key, key)] = value or None
    state.view_spec = FilterSortSpec.from_params(params)
    return "Filter updated."


async def cmd_sort(state: AppState, args: list[str]) -> str:
    """/sort deadline|priority|progress [asc|desc], /sort off"""
    if not args:
        return "Usage: /sort deadline|priority|progress [asc|desc] | /sort off"

    if args[0].lower() in ("off", "none", "clear"):
        state.view_spec = FilterSortSpec(
            priority=state.view_spec.priority,
            status=state.view_spec.status,
            search_text=state.view_spec.search_text,
        )
        return "Sorting disabled."

    try:
        field = SortField(args[0].lower())
    except ValueError:
        return "Sort field must be deadline, priority or progress."

    direction = SortDirection.ASCENDING
    if len(args) > 1 and args[1].lower().startswith("desc"):
        direction = SortDirection.DESCENDING

    state.view_spec = FilterSortSpec(
        priority=state.view_spec.priority,
        status=state.view_spec.status,
        search_text=state.view_spec.search_text,
        sort_field=field,
        sort_direction=direction,
    )
    return f"Sorting by {field.value} ({direction.value})."


async def cmd_search(state: AppState, args: list[str]) -> str:
    text = " ".join(args).strip() or None
    spec = state.view_spec
    state.view_spec = FilterSortSpec(
        priority=spec.priority,
        status=spec.status,
        search_text=text,
        sort_field=spec.sort_field,
        sort_direction=spec.sort_direction,
    )
    return f"Searching for {text!r}." if text else "Search cleared."


async def cmd_reset_view(state: AppState, args: list[str]) -> str:
    state.view_spec = FilterSortSpec()
    state.tab = TaskTab.ALL
    return "View reset."


async def cmd_edit(state: AppState, args: list[str]) -> str:
    """/edit <id> title="New title" priority=High deadline=2024-05-01|none tags=a,b description="..." """
    if len(args) < 2:
        return "Usage: /edit <id> field=value ... (title, description, priority, deadline, tags)"

    task = await _resolve_task(state, args[0])
    if task is None:
        return f"No task matches {args[0]!r}."

    fields = _parse_assignments(args[1:])
    kwargs: dict[str, Any] = {}
    if "title" in fields:
        kwargs["title"] = fields["title"]
    if "description" in fields:
        kwargs["description"] = fields["description"]
    if "priority" in fields:
        try:
            kwargs["priority"] = Priority(fields["priority"].capitalize())
        except ValueError:
            return f"Unknown priority: {fields['priority']}."
    if "deadline" in fields and fields["deadline"].lower() in ("", "none", "-"):
        kwargs["deadline"] = None
    elif "deadline" in fields:
        deadline = parse_date(fields["deadline"])
        if deadline is None:
            return f"Bad deadline: {fields['deadline']}. Use YYYY-MM-DD."
        kwargs["deadline"] = deadline
    if "tags" in fields:
        kwargs["tags"] = _parse_tags(fields["tags"])
    if not kwargs:
        return "Nothing to update."

    updated = await state.task_store.update(task.id, **kwargs)
    if updated is None:
        return f"Task {task.id[:8]} no longer exists."
    await _tasks_changed(state)
    return f"Updated {format_task(updated)}"


async def cmd_progress(state: AppState, args: list[str], emit: CommandEmitter | None = None) -> str:
    """/progress <id> <0..100>; reaching 100 completes the task and awards points."""
    if len(args) < 2:
        return "Usage: /progress <id> <0..100>"

    task = await _resolve_task(state, args[0])
    if task is None:
        return f"No task matches {args[0]!r}."
    try:
        progress = int(args[1].rstrip("%"))
    except ValueError:
        return "Progress must be a number between 0 and 100."

    updated = await state.task_store.update(task.id, progress=progress)
    if updated is None:
        return f"Task {task.id[:8]} no longer exists."

    completing = progress >= 100 and task.status != TaskStatus.DONE and state.points is not None
    after = before = None
    if completing:
        before = state.points.snapshot
        try:
            after = state.points.record_completion(task)
        except StoreUnavailable:
            # Undo the progress so a retried /done still counts as a completion.
            await _restore_progress(state, task)
            raise
    await _tasks_changed(state)

    reply = f"Progress of {task.title!r} set to {progress}%."
    if before is not None and after is not None:
        gained = after.total_points - before.total_points
        reply += f" Completed! +{gained} pt (total {after.total_points}, level {after.level})."
        had = {b.id for b in before.acquired_badges()}
        new_badges = [b for b in after.acquired_badges() if b.id not in had]
        if emit is not None:
            for b in new_badges:
                emit(f"Badge unlocked: {b.icon} {b.name}")
        if after.level > before.level:
            reply += f" Level up -> {after.level}!"
    return reply


async def cmd_done(state: AppState, args: list[str], emit: CommandEmitter | None = None) -> str:
    if not args:
        return "Usage: /done <id>"
    return await cmd_progress(state, [args[0], "100"], emit)


async def cmd_delete(state: AppState, args: list[str]) -> str:
    if not args:
        return "Usage: /delete <id>"
    task = await _resolve_task(state, args[0])
    if task is None:
        return f"No task matches {args[0]!r}."
    await state.task_store.delete(task.id)
    await _tasks_changed(state)
    return f"Deleted {task.title!r}."


async def cmd_clear(state: AppState, args: list[str]) -> str:
    if not args or args[0].lower() != "yes":
        return "This removes every task. Confirm with /clear yes"
    n = await state.task_store.clear()
    await _tasks_changed(state)
    return f"Removed {n} task(s)."


async def cmd_notify(state: AppState, args: list[str]) -> str:
    if state.notifier is None:
        return "Deadline notifications are disabled."
    notes = await state.notifier.refresh()
    if not notes:
        return "No notifications."
    lines = [f"Notifications ({len(notes)}):"]
    lines.extend(f"  {n.message}" for n in notes)
    return "\n".join(lines)


async def cmd_profile(state: AppState, args: list[str]) -> str:
    if state.points is None:
        return "Points are disabled."
    s = state.points.snapshot
    return (
        "Profile:\n"
        f"  Level {s.level} ({s.current_points} pt into this level, "
        f"{s.points_to_next_level} pt to level {s.level + 1})\n"
        f"  Total: {s.total_points} pt\n"
        f"  Streak: {s.streak_days} day(s)\n"
        f"  Completed: {s.tasks_completed} (high priority: {s.high_priority_completed})\n"
        f"  Badges: {len(s.acquired_badges())}/{len(s.badges)}"
    )


async def cmd_history(state: AppState, args: list[str]) -> str:
    if state.points is None:
        return "Points are disabled."
    limit = 10
    if args:
        try:
            limit = max(1, int(args[0]))
        except ValueError:
            return "Usage: /history [n]"
    entries = list(state.points.snapshot.history)[-limit:]
    if not entries:
        return "No points yet."
    lines = ["Point history (newest first):"]
    for e in reversed(entries):
        sign = "+" if e.delta > 0 else ""
        lines.append(f"  {e.timestamp:%Y-%m-%d %H:%M} {sign}{e.delta} pt  {e.action}")
    return "\n".join(lines)


async def cmd_badges(state: AppState, args: list[str]) -> str:
    if state.points is None:
        return "Points are disabled."
    lines = ["Badges:"]
    for b in state.points.snapshot.badges:
        mark = f"acquired {b.acquired_at:%Y-%m-%d}" if b.acquired and b.acquired_at else "locked"
        lines.append(f"  {b.icon} {b.name}: {b.description} ({mark})")
    return "\n".join(lines)


registry.register("help", cmd_help, help_text="Show available commands.", aliases=["h", "?"])
registry.register("add", cmd_add, help_text="Add a task: /add title | priority | YYYY-MM-DD | tags | description.")
registry.register("list", cmd_list, help_text="List tasks: /list [all|todo|inprogress|done].", aliases=["ls"])
registry.register("filter", cmd_filter, help_text="Filter: /filter priority=High status=todo | /filter clear.")
registry.register("sort", cmd_sort, help_text="Sort: /sort deadline|priority|progress [asc|desc] | /sort off.")
registry.register("search", cmd_search, help_text="Search title/description: /search text (empty clears).")
registry.register("reset", cmd_reset_view, help_text="Reset filter, sort, search and tab.")
registry.register("edit", cmd_edit, help_text="Edit a task: /edit <id> field=value ...")
registry.register("progress", cmd_progress, help_text="Set progress: /progress <id> <0..100>.")
registry.register("done", cmd_done, help_text="Complete a task: /done <id>.")
registry.register("delete", cmd_delete, help_text="Delete a task: /delete <id>.", aliases=["rm"])
registry.register("clear", cmd_clear, help_text="Remove every task: /clear yes.")
registry.register("notify", cmd_notify, help_text="Show upcoming deadlines (next 3 days).")
registry.register("profile", cmd_profile, help_text="Show level, points and streak.")
registry.register("history", cmd_history, help_text="Show point history: /history [n].")
registry.register("badges", cmd_badges, help_text="Show badges.")
