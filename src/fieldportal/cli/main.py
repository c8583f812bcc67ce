# src/fieldportal/cli/main.py

"""
CLI entrypoint.

Initializes logging, builds AppState with the console view/navigator, then
runs the console REPL on an asyncio event loop.
"""

from __future__ import annotations

import asyncio
import logging

from ..cli.bootstrap import create_app_state
from ..config import get_settings
from ..connectors.console_connector import ConsoleNavigator, ConsoleTaskView, run_console_loop
from ..logging_setup import setup_logging

logger = logging.getLogger(__name__)


async def _run(settings) -> None:
    state = create_app_state(
        settings=settings,
        view=ConsoleTaskView(),
        navigator=ConsoleNavigator(),
    )
    try:
        await run_console_loop(state)
    finally:
        await state.aclose()


def main() -> None:
    settings = get_settings()

    level_name = str(getattr(settings, "log_level", "INFO")).upper()
    console_level = getattr(logging, level_name, logging.INFO)
    log_file = setup_logging(log_dir=settings.data_dir, console_level=console_level)

    logger.info("Starting %s (log file: %s)...", settings.app_name, log_file)
    try:
        asyncio.run(_run(settings))
    except KeyboardInterrupt:
        logger.info("Interrupted.")
    logger.info("Bye.")


if __name__ == "__main__":
    main()
