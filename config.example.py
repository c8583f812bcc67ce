# config.example.py

"""
Documentation-only module (safe to commit).

The real configuration is loaded from environment variables (optionally via a local .env file).
Tokens are never configured here: they come from the login flow and live in the
session file under the data directory.
"""

ENV_VARS = {
    # App / logging
    "FIELDPORTAL_APP_NAME": "App display name (default: fieldportal).",
    "FIELDPORTAL_LOG_LEVEL": "Logging level (default: INFO).",
    # Backend
    "FIELDPORTAL_API_BASE_URL": "Workflow backend base URL (default: http://localhost:5678).",
    "FIELDPORTAL_HTTP_TIMEOUT_SECONDS": "Timeout for every backend call (default: 30).",
    # OIDC
    "FIELDPORTAL_OIDC_TOKEN_URL": "Identity provider token endpoint used for refresh_token grants.",
    "FIELDPORTAL_OIDC_CLIENT_ID": "OIDC client id (default: field-portal).",
    "FIELDPORTAL_TOKEN_REFRESH_MARGIN_SECONDS": "Refresh this long before expiry (default: 60).",
    # Endpoints (relative to the base URL unless absolute)
    "FIELDPORTAL_TASKS_ENDPOINT": "Task listing (default: /webhook/tasks/tasks-quick).",
    "FIELDPORTAL_LOOKUP_INSTALLERS_ENDPOINT": "Installer lookup (default: /webhook/lookup/installers).",
    "FIELDPORTAL_LOOKUP_SALES_ORDERS_ENDPOINT": "Sales order lookup (default: /webhook/lookup/sales-orders).",
    "FIELDPORTAL_LOOKUP_ADDRESSES_ENDPOINT": "Address lookup (default: /webhook/lookup/addresses).",
    "FIELDPORTAL_SERVE_FILE_ENDPOINT": "Document download link (default: /webhook/files/serve).",
    # Task list
    "FIELDPORTAL_DEFAULT_PAST_DAYS": "Past days included when /tasks gets no argument (default: 0).",
    # Paths (gitignored)
    "FIELDPORTAL_DATA_DIR": "Local data directory (default: .local/fieldportal).",
    "FIELDPORTAL_STORAGE_DB_PATH": "Cache SQLite path (default: <data_dir>/cache.sqlite3).",
    "FIELDPORTAL_SESSION_PATH": "Session JSON path (default: <data_dir>/session.json).",
}
