# tests/test_kv_store.py

from __future__ import annotations

from pathlib import Path

from fieldportal.storage.kv_store import SqliteKeyValueStore


def test_set_get_overwrite_delete(tmp_path: Path) -> None:
    store = SqliteKeyValueStore(tmp_path / "kv.sqlite3")

    assert store.get_text("missing") is None

    store.set_text("lookupInstallers", '{"7": {"id": 7, "name": "Jan"}}')
    assert store.get_text("lookupInstallers") == '{"7": {"id": 7, "name": "Jan"}}'

    store.set_text("lookupInstallers", "{}")
    assert store.get_text("lookupInstallers") == "{}"
    assert store.count_keys() == 1

    store.delete("lookupInstallers")
    assert store.get_text("lookupInstallers") is None

    # deleting twice is fine
    store.delete("lookupInstallers")


def test_values_survive_a_new_instance(tmp_path: Path) -> None:
    db = tmp_path / "nested" / "kv.sqlite3"
    SqliteKeyValueStore(db).set_text("tasksCache:0", '{"past_days": "0", "tasks": []}')

    again = SqliteKeyValueStore(db)
    assert again.get_text("tasksCache:0") == '{"past_days": "0", "tasks": []}'
