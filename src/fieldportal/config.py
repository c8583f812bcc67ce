# src/fieldportal/config.py

"""Centralized settings loaded from environment variables (+ optional .env).

Design goals:
- One Settings object for the whole app (normal "settings layer").
- No secrets required at import time (tokens come from the login flow, not from env).
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path

from dotenv import load_dotenv

ENV_PREFIX = "FIELDPORTAL"


def _k(suffix: str) -> str:
    """Build env var name with the project prefix."""
    return f"{ENV_PREFIX}_{suffix}"


# Local .env never overrides variables already set in the environment.
load_dotenv(override=False)


def _env(name: str, default: str = "") -> str:
    v = os.getenv(name)
    return default if v is None else v


def _env_int(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        return int(raw)
    except ValueError:
        return default


def _env_float(name: str, default: float) -> float:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        return float(raw)
    except ValueError:
        return default


def _env_path(name: str, default: Path) -> Path:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    return Path(raw).expanduser()


@dataclass(frozen=True, slots=True)
class Settings:
    # ---- App / logging ----
    app_name: str
    log_level: str

    # ---- Backend ----
    api_base_url: str
    http_timeout_seconds: float

    # ---- OIDC ----
    oidc_token_url: str
    oidc_client_id: str
    token_refresh_margin_seconds: int

    # ---- Endpoints (relative to api_base_url unless absolute) ----
    tasks_endpoint: str
    lookup_installers_endpoint: str
    lookup_sales_orders_endpoint: str
    lookup_addresses_endpoint: str
    serve_file_endpoint: str

    # ---- Task list ----
    default_past_days: int

    # ---- Local data paths (ignored by git) ----
    data_dir: Path
    storage_db_path: Path
    session_path: Path

    @staticmethod
    def from_env() -> "Settings":
        app_name = _env(_k("APP_NAME"), "fieldportal")
        log_level = _env(_k("LOG_LEVEL"), "INFO")

        api_base_url = _env(_k("API_BASE_URL"), "http://localhost:5678").rstrip("/")
        http_timeout_seconds = _env_float(_k("HTTP_TIMEOUT_SECONDS"), 30.0)

        oidc_token_url = _env(_k("OIDC_TOKEN_URL"), "").strip()
        oidc_client_id = _env(_k("OIDC_CLIENT_ID"), "field-portal").strip()
        token_refresh_margin_seconds = _env_int(_k("TOKEN_REFRESH_MARGIN_SECONDS"), 60)

        tasks_endpoint = _env(_k("TASKS_ENDPOINT"), "/webhook/tasks/tasks-quick")
        lookup_installers_endpoint = _env(_k("LOOKUP_INSTALLERS_ENDPOINT"), "/webhook/lookup/installers")
        lookup_sales_orders_endpoint = _env(_k("LOOKUP_SALES_ORDERS_ENDPOINT"), "/webhook/lookup/sales-orders")
        lookup_addresses_endpoint = _env(_k("LOOKUP_ADDRESSES_ENDPOINT"), "/webhook/lookup/addresses")
        serve_file_endpoint = _env(_k("SERVE_FILE_ENDPOINT"), "/webhook/files/serve")

        default_past_days = max(0, _env_int(_k("DEFAULT_PAST_DAYS"), 0))

        data_dir = _env_path(_k("DATA_DIR"), Path(".local/fieldportal"))
        storage_db_path = _env_path(_k("STORAGE_DB_PATH"), data_dir / "cache.sqlite3")
        session_path = _env_path(_k("SESSION_PATH"), data_dir / "session.json")

        return Settings(
            app_name=app_name,
            log_level=log_level,
            api_base_url=api_base_url,
            http_timeout_seconds=http_timeout_seconds,
            oidc_token_url=oidc_token_url,
            oidc_client_id=oidc_client_id,
            token_refresh_margin_seconds=token_refresh_margin_seconds,
            tasks_endpoint=tasks_endpoint,
            lookup_installers_endpoint=lookup_installers_endpoint,
            lookup_sales_orders_endpoint=lookup_sales_orders_endpoint,
            lookup_addresses_endpoint=lookup_addresses_endpoint,
            serve_file_endpoint=serve_file_endpoint,
            default_past_days=default_past_days,
            data_dir=data_dir,
            storage_db_path=storage_db_path,
            session_path=session_path,
        )


SETTINGS = Settings.from_env()


def get_settings() -> Settings:
    return SETTINGS
