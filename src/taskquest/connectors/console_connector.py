# src/taskquest/connectors/console_connector.py

from __future__ import annotations

import asyncio
import logging
from datetime import datetime

from ..cli.commands import registry as command_registry
from ..core.state import AppState
from ..tasks.notifier import Notification

logger = logging.getLogger(__name__)

PROMPT = "taskquest> "
EXIT_COMMANDS = frozenset({"/exit", "/quit", "/q"})


def _say(text: str) -> None:
    stamp = datetime.now().strftime("%H:%M:%S")
    print(f"[{stamp}] {text}", flush=True)


class _NotificationPrinter:
    """on_change callback for the notifier: prints the reminder list only when it changes."""

    def __init__(self) -> None:
        self._last: tuple[str, ...] = ()

    def __call__(self, notes: list[Notification]) -> None:
        messages = tuple(n.message for n in notes)
        if messages == self._last:
            return
        self._last = messages
        if messages:
            _say(f"Reminders ({len(messages)}):")
            for m in messages:
                print(f"  * {m}", flush=True)


async def _read_line() -> str | None:
    """One line from stdin without blocking the event loop; None on EOF or Ctrl+C."""
    try:
        return (await asyncio.to_thread(input, PROMPT)).strip()
    except (EOFError, KeyboardInterrupt):
        print()
        return None


async def _dispatch(state: AppState, line: str) -> str | None:
    try:
        return await command_registry.handle(state, line, emit=_say)
    except Exception:
        logger.exception("Command crashed: %s", line.split(maxsplit=1)[0])
        return "Internal error while handling the command (see taskquest.log)."


async def run_console_loop(state: AppState) -> None:
    """
    Interactive REPL over the slash-command registry.

    The deadline notifier runs in the background for the whole session and
    prints reminders between prompts.
    """
    _say("taskquest ready. Type /help for commands, /exit to leave.")

    if state.notifier is not None:
        state.notifier.on_change = _NotificationPrinter()
        state.notifier.start()

    while (line := await _read_line()) is not None:
        if not line:
            continue
        if line.lower() in EXIT_COMMANDS:
            break
        if not line.startswith("/"):
            _say("Commands start with '/'. Try /help.")
            continue

        reply = await _dispatch(state, line)
        if reply is not None:
            _say(reply)

    logger.info("Console session ended.")
