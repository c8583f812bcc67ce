# src/fieldportal/connectors/console_connector.py

from __future__ import annotations

import asyncio
import logging
from datetime import datetime

from ..cli.commands import registry as command_registry
from ..core.errors import FieldPortalError
from ..core.ports import SyncStatus, TaskRecord
from ..core.state import AppState
from ..tasks.task_models import task_date

logger = logging.getLogger(__name__)


def _ts_local() -> str:
    return datetime.now().astimezone().strftime("%Y-%m-%d %H:%M:%S")


def _print_ts(text: str) -> None:
    print(f"[{_ts_local()}] {text}")


def format_task_line(task: TaskRecord) -> str:
    name = task.get("name") or task.get("display_name") or "Task"
    project = task.get("project_name") or ""
    address = task.get("address_full") or task.get("address_name") or ""
    workers = ", ".join(str(w) for w in (task.get("workers") or []))

    parts = [task_date(task) or "----------", project or "-", str(name)]
    if address:
        parts.append(address)
    if workers:
        parts.append(f"({workers})")
    return "  ".join(parts)


class ConsoleTaskView:
    """Prints task lists and status lines to stdout."""

    def render(self, tasks: list[TaskRecord]) -> None:
        if not tasks:
            return
        # Sort a copy; the synchronizer owns the collection order.
        for task in sorted(tasks, key=task_date):
            print("  " + format_task_line(task))

    def show_status(self, status: SyncStatus, message: str) -> None:
        if status is SyncStatus.ERROR:
            _print_ts(f"[ERROR] {message}")
        else:
            _print_ts(message)


class ConsoleNavigator:
    def show_login(self) -> None:
        _print_ts("Session expired. Log in again with /login <access_token> <refresh_token>.")


async def run_console_loop(state: AppState) -> None:
    logger.info("Console connector started (authenticated=%s).", state.auth.is_authenticated())
    _print_ts("[CONSOLE] Use /tasks to list tasks, /help for commands, /exit to quit.\n")

    def emit(text: str) -> None:
        print(f"[{_ts_local()}] {text}", flush=True)

    while True:
        try:
            user_input = (await asyncio.to_thread(input, ">>> ")).strip()
        except EOFError:
            logger.info("Console EOF received, exiting.")
            break
        except KeyboardInterrupt:
            logger.info("Console KeyboardInterrupt, exiting.")
            print()
            break

        if not user_input:
            continue

        if user_input.lower() in ("/exit", "/quit"):
            logger.info("Console exit command received.")
            break

        if not user_input.startswith("/"):
            emit("Commands start with '/'. Use /help.")
            continue

        try:
            reply = await command_registry.handle(state, user_input, emit=emit)
        except FieldPortalError as e:
            logger.exception("Command failed: %s", user_input)
            emit(f"[ERROR] {e.message}")
            continue

        if reply:
            print(reply)
