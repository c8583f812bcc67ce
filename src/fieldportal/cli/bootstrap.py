# src/fieldportal/cli/bootstrap.py

"""
CLI bootstrap helpers.

This module is the "composition root":
- loads settings once,
- ensures local (gitignored) directories exist,
- wires one HTTP client, one session guard, one gateway, one lookup cache and
  one task synchronizer into AppState,
- restores a persisted session if there is one.
"""

from __future__ import annotations

import logging

import httpx

from ..api.gateway import RequestGateway
from ..auth.session import SessionGuard
from ..config import get_settings
from ..core.ports import Navigator, TaskView
from ..core.state import AppState
from ..lookups.cache import ResourceLookupCache
from ..lookups.kinds import LookupKind
from ..storage.kv_store import SqliteKeyValueStore
from ..tasks.synchronizer import TaskListSynchronizer

logger = logging.getLogger(__name__)


def _ensure_local_dirs(settings) -> None:
    settings.data_dir.mkdir(parents=True, exist_ok=True)
    settings.storage_db_path.parent.mkdir(parents=True, exist_ok=True)
    settings.session_path.parent.mkdir(parents=True, exist_ok=True)


def create_app_state(
    *,
    view: TaskView,
    navigator: Navigator,
    settings=None,
    http_client: httpx.AsyncClient | None = None,
) -> AppState:
    """
    Create AppState from the provided settings.

    Keeping settings and the HTTP client injectable makes the app easy to test
    (httpx.MockTransport) and avoids hidden global config reads.
    """
    if settings is None:
        settings = get_settings()

    _ensure_local_dirs(settings)

    http = http_client or httpx.AsyncClient(timeout=float(settings.http_timeout_seconds))
    store = SqliteKeyValueStore(settings.storage_db_path)

    auth = SessionGuard(
        http,
        token_url=settings.oidc_token_url,
        client_id=settings.oidc_client_id,
        refresh_margin_seconds=settings.token_refresh_margin_seconds,
        session_path=settings.session_path,
    )
    auth.restore()

    gateway = RequestGateway(http, auth, navigator, base_url=settings.api_base_url)
    lookups = ResourceLookupCache(
        gateway,
        store,
        {kind: kind.endpoint(settings) for kind in LookupKind},
    )
    tasks = TaskListSynchronizer(
        gateway,
        lookups,
        store,
        view,
        tasks_endpoint=settings.tasks_endpoint,
    )

    logger.info(
        "App wired: api=%s authenticated=%s",
        settings.api_base_url,
        auth.is_authenticated(),
    )
    return AppState(
        settings=settings,
        http=http,
        auth=auth,
        gateway=gateway,
        lookups=lookups,
        tasks=tasks,
    )
