# src/fieldportal/lookups/cache.py

"""
Lookup cache.

Batch-fetches and caches installer names, sales order project names and
delivery addresses behind the numeric foreign keys embedded in task records.

Entries are persisted per kind and never expire: only ids that have never been
seen trigger a fetch, and a known id is never fetched again. clear() is the only
way to drop entries (full refresh / logout).

Usage (from the task synchronizer after fetching tasks):
    await lookups.resolve_for_tasks(tasks)
    lookups.enrich_tasks(tasks)
"""

from __future__ import annotations

import asyncio
import json
import logging
from collections.abc import Iterable, Mapping
from typing import Any

import httpx

from ..core.errors import AuthExpired, FieldPortalError, MalformedResponse, PartialResolutionFailure
from ..core.ports import HttpGateway, KeyValueStore, TaskRecord
from .kinds import LookupKind

logger = logging.getLogger(__name__)

LookupEntry = dict[str, Any]


def as_id(value: Any) -> int | None:
    """Positive integer id, or None. Odoo sends False for an empty relation."""
    if isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value if value > 0 else None
    if isinstance(value, str) and value.strip().isdigit():
        n = int(value.strip())
        return n if n > 0 else None
    return None


def extract_ids(value: Any) -> list[int]:
    """
    Ids referenced by one foreign-key field.

    Accepted shapes: 7, "7", [7, "Jan Peeters"] (id + label), [7, 9],
    [[7, "Jan"], [9, "Piet"]]. Labels are skipped because they are not ids.
    """
    if isinstance(value, (list, tuple)):
        out: list[int] = []
        for item in value:
            if isinstance(item, (list, tuple)):
                iid = as_id(item[0]) if item else None
            else:
                iid = as_id(item)
            if iid is not None and iid not in out:
                out.append(iid)
        return out
    iid = as_id(value)
    return [iid] if iid is not None else []


def collect_ids(tasks: Iterable[TaskRecord]) -> dict[LookupKind, set[int]]:
    wanted: dict[LookupKind, set[int]] = {kind: set() for kind in LookupKind}
    for task in tasks:
        for kind in LookupKind:
            wanted[kind].update(extract_ids(task.get(kind.task_field)))
    return wanted


def _is_blank(value: Any) -> bool:
    return value is None or value is False or value == "" or value == []


def parse_lookup_payload(payload: Any) -> list[LookupEntry]:
    """Accept a bare list or a {"data": [...]} envelope of {id, ...} records."""
    if isinstance(payload, dict):
        payload = payload.get("data")
    if not isinstance(payload, list):
        raise MalformedResponse("lookup payload is not a list")
    return [item for item in payload if isinstance(item, dict)]


class ResourceLookupCache:
    def __init__(
        self,
        gateway: HttpGateway,
        store: KeyValueStore,
        endpoints: Mapping[LookupKind, str],
    ) -> None:
        self._gateway = gateway
        self._store = store
        self._endpoints = dict(endpoints)
        self._entries: dict[LookupKind, dict[int, LookupEntry]] = {kind: {} for kind in LookupKind}
        self.load()

    # ---- persistence ----

    def load(self) -> None:
        """(Re)load every kind from storage. Absent or damaged data means an empty mapping."""
        for kind in LookupKind:
            self._entries[kind] = self._read(kind)

    def _read(self, kind: LookupKind) -> dict[int, LookupEntry]:
        raw = self._store.get_text(kind.storage_key)
        if not raw:
            return {}
        try:
            data = json.loads(raw)
        except ValueError:
            logger.warning("Ignoring unreadable %s cache", kind.value)
            return {}
        if not isinstance(data, dict):
            return {}

        out: dict[int, LookupEntry] = {}
        for key, entry in data.items():
            iid = as_id(key)
            if iid is not None and isinstance(entry, dict):
                out[iid] = entry
        return out

    def _save(self, kind: LookupKind) -> None:
        data = {str(k): v for k, v in self._entries[kind].items()}
        self._store.set_text(kind.storage_key, json.dumps(data, ensure_ascii=False))

    def clear(self) -> None:
        for kind in LookupKind:
            self._entries[kind] = {}
            self._store.delete(kind.storage_key)
        logger.info("Lookup caches cleared")

    # ---- resolution ----

    def missing_ids(self, kind: LookupKind, ids: Iterable[int]) -> list[int]:
        known = self._entries[kind]
        return sorted({i for i in ids if i not in known})

    async def resolve_for_tasks(self, tasks: Iterable[TaskRecord]) -> None:
        """
        Fetch every referenced id not yet known, one batched request per kind.

        Kinds are fetched concurrently and all of them are awaited. A failing
        kind is logged and leaves its ids unresolved; it is retried naturally on
        the next call because "missing" is recomputed from the current mappings.
        """
        wanted = collect_ids(tasks)

        kinds: list[LookupKind] = []
        jobs = []
        for kind in LookupKind:
            missing = self.missing_ids(kind, wanted[kind])
            if missing:
                kinds.append(kind)
                jobs.append(self._fetch_missing(kind, missing))

        if not jobs:
            return

        results = await asyncio.gather(*jobs, return_exceptions=True)

        auth_error: AuthExpired | None = None
        for kind, result in zip(kinds, results):
            if isinstance(result, AuthExpired):
                logger.info("Lookup %s stopped: session expired", kind)
                auth_error = result
            elif isinstance(result, PartialResolutionFailure):
                logger.warning("Lookup %s failed: %s", result.kind, result.message)
            elif isinstance(result, BaseException):
                raise result

        if auth_error is not None:
            raise auth_error

    async def _fetch_missing(self, kind: LookupKind, ids: list[int]) -> None:
        endpoint = self._endpoints[kind]
        logger.debug("Fetching %d missing %s: %s", len(ids), kind.value, ids)
        try:
            res = await self._gateway.get(endpoint, {"ids": ",".join(str(i) for i in ids)})
            if not res.is_success:
                raise PartialResolutionFailure(kind.value, f"HTTP {res.status_code}")
            try:
                items = parse_lookup_payload(res.json())
            except ValueError as e:
                raise MalformedResponse("body is not JSON") from e
        except (AuthExpired, PartialResolutionFailure):
            raise
        except (FieldPortalError, httpx.HTTPError) as e:
            raise PartialResolutionFailure(kind.value, str(e)) from e

        entries = self._entries[kind]
        added = 0
        for item in items:
            iid = as_id(item.get("id"))
            if iid is not None and iid not in entries:
                entries[iid] = item
                added += 1
        self._save(kind)
        logger.info("Resolved %d/%d %s", added, len(ids), kind.value)

    # ---- enrichment ----

    def enrich_tasks(self, tasks: Iterable[TaskRecord]) -> None:
        """Fill only absent display fields from cached entries. Safe to call repeatedly."""
        for task in tasks:
            self._enrich_project(task)
            self._enrich_address(task)
            self._enrich_workers(task)

    def _enrich_project(self, task: TaskRecord) -> None:
        if not _is_blank(task.get("project_name")):
            return
        for so_id in extract_ids(task.get(LookupKind.SALES_ORDER.task_field)):
            so = self._entries[LookupKind.SALES_ORDER].get(so_id)
            if so and so.get("project_name"):
                task["project_name"] = so["project_name"]
                return

    def _enrich_address(self, task: TaskRecord) -> None:
        ids = extract_ids(task.get(LookupKind.ADDRESS.task_field))
        addr = self._entries[LookupKind.ADDRESS].get(ids[0]) if ids else None
        if not addr:
            return

        street = addr.get("street") or ""
        zip_code = addr.get("zip") or ""
        city = addr.get("city") or ""

        city_line = " ".join(str(p) for p in (zip_code, city) if p)
        full = ", ".join(str(p) for p in (street, city_line) if p)

        for name, value in (
            ("address_full", full),
            ("address_street", street),
            ("address_zip", zip_code),
            ("address_city", city),
            ("address_name", street),
        ):
            if value and _is_blank(task.get(name)):
                task[name] = value

    def _enrich_workers(self, task: TaskRecord) -> None:
        if not _is_blank(task.get("workers")):
            return
        installers = self._entries[LookupKind.INSTALLER]
        names = [
            installers[iid]["name"]
            for iid in extract_ids(task.get(LookupKind.INSTALLER.task_field))
            if iid in installers and installers[iid].get("name")
        ]
        if names:
            task["workers"] = names

    # ---- single-item getters ----

    def _get(self, kind: LookupKind, iid: Any) -> LookupEntry | None:
        key = as_id(iid)
        entry = self._entries[kind].get(key) if key is not None else None
        return dict(entry) if entry is not None else None

    def get_installer(self, installer_id: Any) -> LookupEntry | None:
        return self._get(LookupKind.INSTALLER, installer_id)

    def get_sales_order(self, sales_order_id: Any) -> LookupEntry | None:
        return self._get(LookupKind.SALES_ORDER, sales_order_id)

    def get_address(self, address_id: Any) -> LookupEntry | None:
        return self._get(LookupKind.ADDRESS, address_id)

    def size(self, kind: LookupKind) -> int:
        return len(self._entries[kind])
