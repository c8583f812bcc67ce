# src/fieldportal/core/state.py

from __future__ import annotations

from dataclasses import dataclass

import httpx

from ..api.gateway import RequestGateway
from ..auth.session import SessionGuard
from ..lookups.cache import ResourceLookupCache
from ..tasks.synchronizer import TaskListSynchronizer


@dataclass
class AppState:
    # Settings object (real Settings in the app, a SimpleNamespace in tests).
    settings: object

    http: httpx.AsyncClient
    auth: SessionGuard
    gateway: RequestGateway
    lookups: ResourceLookupCache
    tasks: TaskListSynchronizer

    async def aclose(self) -> None:
        await self.http.aclose()
