# src/fieldportal/tasks/synchronizer.py

from __future__ import annotations

"""
Task list synchronizer (stale-while-revalidate).

load(scope):
1) show the persisted collection for this exact scope instantly (status "updating"),
2) fetch the same scope from the backend,
3) enrich from in-memory lookups and render (no network),
4) resolve missing lookups, enrich again,
5) re-render only if something actually changed,
6) persist the final collection for the scope (replacing, not merging).

A failed fetch never wipes a cached render; it only flips the status to error.
AuthExpired has already sent the user to login and is not reported again.
"""

import json
import logging
from typing import Any

import httpx

from ..core.errors import AuthExpired, FieldPortalError, MalformedResponse
from ..core.ports import HttpGateway, KeyValueStore, SyncStatus, TaskRecord, TaskView
from ..lookups.cache import ResourceLookupCache
from .task_models import TaskScope, parse_task_payload

logger = logging.getLogger(__name__)


def _snapshot(tasks: list[TaskRecord]) -> str:
    return json.dumps(tasks, sort_keys=True, ensure_ascii=False, default=str)


def _count(n: int) -> str:
    return f"{n} task{'' if n == 1 else 's'}"


class TaskListSynchronizer:
    def __init__(
            self,
            gateway: HttpGateway,
            lookups: ResourceLookupCache,
            store: KeyValueStore,
            view: TaskView,
            *,
            tasks_endpoint: str,
    ) -> None:
        self._gateway = gateway
        self._lookups = lookups
        self._store = store
        self._view = view
        self._endpoint = tasks_endpoint

        self._tasks: list[TaskRecord] = []
        self._scope: TaskScope | None = None
        self._rendered: str | None = None
        # Bumped by every load(); an older load that wakes up after a newer one
        # started must not touch the view.
        self._generation = 0

    @property
    def tasks(self) -> list[TaskRecord]:
        return list(self._tasks)

    @property
    def scope(self) -> TaskScope | None:
        return self._scope

    # ---- persisted collections ----

    def read_cache(self, scope: TaskScope) -> list[TaskRecord] | None:
        raw = self._store.get_text(scope.storage_key)
        if not raw:
            return None
        try:
            cache = json.loads(raw)
        except ValueError:
            logger.warning("Ignoring unreadable task cache for scope %s", scope.tag)
            return None
        if not isinstance(cache, dict) or cache.get("past_days") != scope.tag:
            return None
        tasks = cache.get("tasks")
        if not isinstance(tasks, list):
            return None
        return [t for t in tasks if isinstance(t, dict)]

    def write_cache(self, scope: TaskScope, tasks: list[TaskRecord]) -> None:
        payload = {"past_days": scope.tag, "tasks": tasks}
        self._store.set_text(scope.storage_key, json.dumps(payload, ensure_ascii=False, default=str))

    def drop_cache(self, scope: TaskScope) -> None:
        self._store.delete(scope.storage_key)

    # ---- view helpers ----

    def _show(self, tasks: list[TaskRecord]) -> bool:
        """Render unless the view already shows exactly this data."""
        snap = _snapshot(tasks)
        self._tasks = tasks
        if snap == self._rendered:
            return False
        self._rendered = snap
        self._view.render(tasks)
        return True

    def _status(self, status: SyncStatus, message: str) -> None:
        self._view.show_status(status, message)

    # ---- main flow ----

    async def load(self, scope: Any = 0) -> list[TaskRecord] | None:
        """
        Show cached tasks for `scope`, then reconcile with the backend.

        Returns the fresh, enriched collection, or None when no fresh data could
        be obtained (the view then shows why).
        """
        scope = TaskScope.parse(scope)
        self._generation += 1
        gen = self._generation
        self._scope = scope

        # Every load is a fresh screen: the first render always goes through.
        had_render = self._rendered is not None
        self._rendered = None

        # 1) Cached data for exactly this scope.
        cached = self.read_cache(scope)
        if cached:
            self._lookups.enrich_tasks(cached)
            self._show(cached)
            self._status(SyncStatus.UPDATING, f"{_count(len(cached))} (updating…)")
        else:
            cached = None
            if scope.past_days == 0:
                self._status(SyncStatus.LOADING, "Loading tasks…")
            else:
                self._status(SyncStatus.LOADING, f"Loading tasks (+ last {scope.past_days} days)…")
            if had_render:
                # Do not leave another scope's tasks on screen while loading.
                self._show([])

        # 2) Fresh data.
        try:
            res = await self._gateway.get(self._endpoint, scope.query_params())
        except AuthExpired:
            return None
        except (FieldPortalError, httpx.HTTPError) as e:
            return self._fail(gen, cached, f"Network error: {e}")

        if not res.is_success:
            return self._fail(gen, cached, f"HTTP {res.status_code}")

        try:
            tasks = parse_task_payload(res.json())
        except (ValueError, MalformedResponse) as e:
            logger.warning("Unreadable task listing for scope %s: %s", scope.tag, e)
            return self._fail(gen, cached, "Unreadable response from server")

        # 3) Fast pass with whatever is already cached.
        self._lookups.enrich_tasks(tasks)
        if gen == self._generation:
            self._show(tasks)

        before = _snapshot(tasks)

        # 4) Fetch missing lookups.
        try:
            await self._lookups.resolve_for_tasks(tasks)
        except AuthExpired:
            return None
        self._lookups.enrich_tasks(tasks)

        # 5) Re-render only if lookups added something.
        if gen == self._generation:
            if _snapshot(tasks) != before:
                self._show(tasks)
            self._status(SyncStatus.READY, f"{_count(len(tasks))} found." if tasks else "No tasks found.")
        else:
            logger.debug("Load for scope %s superseded, not rendering", scope.tag)

        # 6) Persist for the next instant render.
        self.write_cache(scope, tasks)
        return tasks

    async def reload(self, scope: Any = 0) -> list[TaskRecord] | None:
        """User-initiated full refresh: forget cached tasks for the scope and all lookups."""
        scope = TaskScope.parse(scope)
        self.drop_cache(scope)
        self._lookups.clear()
        return await self.load(scope)

    def _fail(self, gen: int, cached: list[TaskRecord] | None, message: str) -> None:
        logger.warning("Task fetch failed: %s", message)
        if gen != self._generation:
            return None
        if cached:
            # Keep the stale render on screen.
            self._status(SyncStatus.ERROR, f"{_count(len(cached))} (update failed: {message})")
        else:
            self._status(SyncStatus.ERROR, message)
        return None
