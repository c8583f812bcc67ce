# src/fieldportal/core/ports.py

from __future__ import annotations

"""
Ports (interfaces) used by the core.

The core depends on Protocols instead of concrete implementations.
This keeps the UI, the storage backend and the identity provider swappable
and makes testing easier.
"""

from enum import StrEnum
from typing import Any, Mapping, Protocol

import httpx

TaskRecord = dict[str, Any]
# Opaque backend task: at least {"id", "date", project ref, foreign keys...}.

QueryParams = Mapping[str, Any]


class SyncStatus(StrEnum):
    LOADING = "loading"
    UPDATING = "updating"
    READY = "ready"
    ERROR = "error"


class Navigator(Protocol):
    """Whatever hosts the UI; the gateway asks it to show the login surface."""

    def show_login(self) -> None: ...


class TaskView(Protocol):
    """Presentation side of the task list (cards, status line, ...)."""

    def render(self, tasks: list[TaskRecord]) -> None: ...
    def show_status(self, status: SyncStatus, message: str) -> None: ...


class AuthProvider(Protocol):
    async def ensure_valid_token(self) -> bool: ...
    async def refresh_access_token(self) -> bool: ...
    def auth_header(self) -> str: ...
    def clear_session(self) -> None: ...

    # Read-only accessors for callers outside the core.
    def get_user(self) -> dict[str, Any] | None: ...
    def has_role(self, role: str) -> bool: ...


class HttpGateway(Protocol):
    """Authenticated transport used by the lookup cache and the task synchronizer."""

    async def get(self, endpoint: str, params: QueryParams | None = None) -> httpx.Response: ...

    async def post(
            self,
            endpoint: str,
            body: Any = None,
            params: QueryParams | None = None,
    ) -> httpx.Response: ...

    async def delete(
            self,
            endpoint: str,
            body: Any = None,
            params: QueryParams | None = None,
    ) -> httpx.Response: ...

    def url(self, endpoint: str, params: QueryParams | None = None) -> str: ...


class KeyValueStore(Protocol):
    """
    Persistent text storage addressed by key (the local equivalent of browser storage).

    Values are JSON documents serialized by the caller; the store never parses them.
    """

    def get_text(self, key: str) -> str | None: ...
    def set_text(self, key: str, value: str) -> None: ...
    def delete(self, key: str) -> None: ...
