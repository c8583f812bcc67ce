# src/fieldportal/cli/commands.py

from __future__ import annotations

import logging
from collections.abc import Awaitable, Callable

from ..core.state import AppState
from ..tasks.task_models import PAST_DAYS_CHOICES, TaskScope

CommandEmitter = Callable[[str], None]
CommandHandler = Callable[[AppState, list[str], CommandEmitter | None], Awaitable[str]]

logger = logging.getLogger(__name__)


class CommandRegistry:
    """Simple slash-command registry used by the console connector (/help, /tasks, ...)."""

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

        parts = line[1:].split()
        if not parts:
            return "Empty command. Use /help to list available commands."

        name = parts[0].lower()
        handler = self._handlers.get(name)
        if not handler:
            return f"Unknown command: /{name}. Use /help to list available commands."

        return await handler(state, parts[1:], emit)

    def build_help(self) -> str:
        lines = ["Available commands:"]
        for name, help_text in self._help.items():
            lines.append(f"  /{name} - {help_text}")
        return "\n".join(lines)


registry = CommandRegistry()


def _scope_from_args(state: AppState, args: list[str]) -> TaskScope:
    if args:
        return TaskScope.parse(args[0])
    if state.tasks.scope is not None:
        return state.tasks.scope
    return TaskScope.parse(getattr(state.settings, "default_past_days", 0))


async def cmd_help(state: AppState, args: list[str], emit: CommandEmitter | None = None) -> str:
    return registry.build_help()


async def cmd_tasks(state: AppState, args: list[str], emit: CommandEmitter | None = None) -> str:
    try:
        scope = _scope_from_args(state, args)
    except ValueError:
        choices = ", ".join(str(c) for c in PAST_DAYS_CHOICES)
        return f"Usage: /tasks [past_days]  (e.g. {choices})"
    await state.tasks.load(scope)
    return ""


async def cmd_refresh(state: AppState, args: list[str], emit: CommandEmitter | None = None) -> str:
    try:
        scope = _scope_from_args(state, args)
    except ValueError:
        return "Usage: /refresh [past_days]"
    if emit is not None:
        emit("Clearing cached tasks and lookups…")
    await state.tasks.reload(scope)
    return ""


async def cmd_whoami(state: AppState, args: list[str], emit: CommandEmitter | None = None) -> str:
    user = state.auth.get_user()
    if user is None:
        return "Not logged in. Use /login <access_token> <refresh_token>."
    roles = ", ".join(user["roles"]) or "-"
    return f"{user['name'] or '?'} <{user['email'] or '?'}> roles: {roles}"


async def cmd_login(state: AppState, args: list[str], emit: CommandEmitter | None = None) -> str:
    if len(args) < 2:
        return "Usage: /login <access_token> <refresh_token> [expires_in_seconds]"
    token_response: dict[str, object] = {"access_token": args[0], "refresh_token": args[1]}
    if len(args) > 2:
        try:
            token_response["expires_in"] = int(args[2])
        except ValueError:
            return "expires_in must be a number of seconds."
    try:
        state.auth.establish(token_response)
    except ValueError as e:
        return f"Login failed: {e}"
    user = state.auth.get_user() or {}
    return f"Logged in as {user.get('name') or '?'}."


async def cmd_logout(state: AppState, args: list[str], emit: CommandEmitter | None = None) -> str:
    state.auth.clear_session()
    state.lookups.clear()
    return "Logged out."


async def cmd_link(state: AppState, args: list[str], emit: CommandEmitter | None = None) -> str:
    if not args:
        return "Usage: /link <project_id>"
    endpoint = str(getattr(state.settings, "serve_file_endpoint", ""))
    return state.gateway.url(endpoint, {"project_id": args[0]})


registry.register("help", cmd_help, "Show this help")
registry.register("tasks", cmd_tasks, "Show tasks (optionally include N past days)", aliases=["t"])
registry.register("refresh", cmd_refresh, "Drop cached tasks + lookups and fetch again")
registry.register("whoami", cmd_whoami, "Show the logged-in user and roles")
registry.register("login", cmd_login, "Install a token pair from the login flow")
registry.register("logout", cmd_logout, "Forget the session and cached lookups")
registry.register("link", cmd_link, "Print the document download link for a project")
