# tests/conftest.py

from __future__ import annotations

from pathlib import Path
from types import SimpleNamespace

import pytest

from fieldportal.lookups.kinds import LookupKind
from fieldportal.storage.kv_store import SqliteKeyValueStore

from .fakes import BASE_URL

TASKS_PATH = "/webhook/tasks/tasks-quick"
INSTALLERS_PATH = "/webhook/lookup/installers"
SALES_ORDERS_PATH = "/webhook/lookup/sales-orders"
ADDRESSES_PATH = "/webhook/lookup/addresses"
TOKEN_URL = "http://idp.test/realms/portal/protocol/openid-connect/token"

ENDPOINTS = {
    LookupKind.INSTALLER: INSTALLERS_PATH,
    LookupKind.SALES_ORDER: SALES_ORDERS_PATH,
    LookupKind.ADDRESS: ADDRESSES_PATH,
}


@pytest.fixture()
def settings(tmp_path: Path) -> SimpleNamespace:
    """
    Minimal settings object compatible with the composition root.

    We intentionally use a SimpleNamespace rather than importing real config,
    to keep unit tests isolated and deterministic.
    """
    return SimpleNamespace(
        app_name="fieldportal-test",
        log_level="DEBUG",
        api_base_url=BASE_URL,
        http_timeout_seconds=5.0,
        oidc_token_url=TOKEN_URL,
        oidc_client_id="field-portal",
        token_refresh_margin_seconds=60,
        tasks_endpoint=TASKS_PATH,
        lookup_installers_endpoint=INSTALLERS_PATH,
        lookup_sales_orders_endpoint=SALES_ORDERS_PATH,
        lookup_addresses_endpoint=ADDRESSES_PATH,
        serve_file_endpoint="/webhook/files/serve",
        default_past_days=0,
        data_dir=tmp_path,
        storage_db_path=tmp_path / "cache.sqlite3",
        session_path=tmp_path / "session.json",
    )


@pytest.fixture()
def store(tmp_path: Path) -> SqliteKeyValueStore:
    return SqliteKeyValueStore(tmp_path / "cache.sqlite3")
