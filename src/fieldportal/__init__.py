"""
Field portal client: synchronization core.

Components:
- auth/session.py: session guard (token pair, validity window, refresh)
- api/gateway.py: request gateway (bearer header, single 401 retry, soft-401)
- lookups/: lookup cache for installer / sales order / address ids
- tasks/: task scope, payload parsing, stale-while-revalidate synchronizer
- storage/kv_store.py: SQLite-backed JSON text storage
"""

__version__ = "0.1.0"
