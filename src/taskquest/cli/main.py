# src/taskquest/cli/main.py

"""
CLI entrypoint.

Initializes logging, builds AppState, runs the console REPL with the deadline
notifier in the background, and shuts everything down on exit.
"""

from __future__ import annotations

import asyncio
import logging
import sys

from ..cli.bootstrap import create_initial_state, shutdown_state
from ..config import get_settings
from ..connectors.console_connector import run_console_loop
from ..errors import ConfigError, StoreUnavailable
from ..logging_setup import level_from_name, setup_logging

logger = logging.getLogger(__name__)


async def _run(settings) -> None:
    state = create_initial_state(settings=settings)
    try:
        await run_console_loop(state)
    finally:
        await shutdown_state(state)


def main() -> None:
    try:
        settings = get_settings()
    except ConfigError as e:
        # Logging is not configured yet.
        print(f"Configuration error: {e}", file=sys.stderr)
        sys.exit(2)

    console_level = level_from_name(settings.log_level)
    try:
        log_file = setup_logging(log_dir=settings.data_dir, console_level=console_level)
    except OSError as e:
        print(f"Storage unavailable: cannot write logs under {settings.data_dir}: {e}", file=sys.stderr)
        sys.exit(1)

    logger.info("Starting %s (backend=%s, log=%s)...", settings.app_name, settings.storage_backend, log_file)

    try:
        asyncio.run(_run(settings))
    except ConfigError as e:
        logger.error("Configuration error: %s", e)
        sys.exit(2)
    except StoreUnavailable as e:
        logger.error("Storage unavailable: %s", e)
        sys.exit(1)
    except KeyboardInterrupt:
        logger.info("Interrupted, shutting down...")

    logger.info("Bye.")


if __name__ == "__main__":
    main()
