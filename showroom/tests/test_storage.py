"""Tests for the client-local key-value stores."""

from showroom.storage import JsonFileStore, MemoryStore


def test_memory_store_roundtrip():
    store = MemoryStore()
    assert store.get("k") is None
    store.set("k", "v")
    assert store.get("k") == "v"
    store.remove("k")
    store.remove("k")
    assert store.get("k") is None


def test_json_store_persists_across_instances(tmp_path):
    path = tmp_path / "nested" / "state.json"
    JsonFileStore(str(path)).set("last_stats_reset", "2026-01-01T00:00:00+00:00")

    assert JsonFileStore(str(path)).get("last_stats_reset") == "2026-01-01T00:00:00+00:00"


def test_json_store_ignores_corrupt_file(tmp_path):
    path = tmp_path / "state.json"
    path.write_text("{not json", encoding="utf-8")
    store = JsonFileStore(str(path))

    assert store.get("anything") is None
    store.set("a", "1")
    assert store.get("a") == "1"


def test_json_store_remove(tmp_path):
    store = JsonFileStore(str(tmp_path / "state.json"))
    store.set("a", "1")
    store.set("b", "2")
    store.remove("a")
    assert store.get("a") is None
    assert store.get("b") == "2"
