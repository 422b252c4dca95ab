"""Tests for the SQLite key-value store."""

import threading

import pytest

from keepsake.errors import StoreUnavailable
from keepsake.kv_store import KeyValueStore


class TestReadWrite:

    def test_set_and_get(self, kv_store):
        kv_store.set("user:a:profile:p1", {"id": "p1", "name": "Mom"})
        assert kv_store.get("user:a:profile:p1") == {"id": "p1", "name": "Mom"}

    def test_get_missing(self, kv_store):
        assert kv_store.get("nope") is None

    def test_set_overwrites(self, kv_store):
        kv_store.set("k", {"v": 1})
        kv_store.set("k", {"v": 2})
        assert kv_store.get("k") == {"v": 2}
        assert kv_store.count() == 1

    def test_unicode_and_nested_values(self, kv_store):
        value = {"entry": "aime le jardinage 🌱", "embedding": [0.1, -0.2], "categoryId": None}
        kv_store.set("k", value)
        assert kv_store.get("k") == value

    def test_delete(self, kv_store):
        kv_store.set("k", {"v": 1})
        assert kv_store.delete("k") is True
        assert kv_store.delete("k") is False
        assert kv_store.get("k") is None

    def test_delete_many(self, kv_store):
        for i in range(5):
            kv_store.set(f"k{i}", {"i": i})
        assert kv_store.delete_many(["k0", "k2", "k4", "missing"]) == 3
        assert kv_store.count() == 2
        assert kv_store.delete_many([]) == 0

    def test_persists_across_reopen(self, tmp_path):
        path = tmp_path / "kv.db"
        with KeyValueStore(path) as store:
            store.set("k", {"v": 1})
        with KeyValueStore(path) as store:
            assert store.get("k") == {"v": 1}


class TestPrefixListing:

    def test_lists_matching_prefix_in_insertion_order(self, kv_store):
        kv_store.set("user:a:profile:p2", {"n": 2})
        kv_store.set("user:a:profile:p1", {"n": 1})
        kv_store.set("user:a:profile:p3", {"n": 3})
        assert kv_store.list_by_prefix("user:a:profile:") == [{"n": 2}, {"n": 1}, {"n": 3}]

    def test_overwrite_keeps_position(self, kv_store):
        kv_store.set("p:1", {"v": "first"})
        kv_store.set("p:2", {"v": "second"})
        kv_store.set("p:1", {"v": "first-updated"})
        assert [v["v"] for v in kv_store.list_by_prefix("p:")] == ["first-updated", "second"]

    def test_prefix_does_not_leak_to_other_users(self, kv_store):
        kv_store.set("user:a:profile:p1", {"owner": "a"})
        kv_store.set("user:ab:profile:p2", {"owner": "ab"})
        kv_store.set("user:A:profile:p3", {"owner": "A"})
        assert kv_store.list_by_prefix("user:a:profile:") == [{"owner": "a"}]

    def test_wildcard_characters_are_literal(self, kv_store):
        kv_store.set("user:%:profile:x", {"v": "percent"})
        kv_store.set("user:b:profile:y", {"v": "b"})
        kv_store.set("user:_:profile:z", {"v": "underscore"})
        assert kv_store.list_by_prefix("user:%:") == [{"v": "percent"}]
        assert kv_store.list_by_prefix("user:_:") == [{"v": "underscore"}]

    def test_items_by_prefix_returns_keys(self, kv_store):
        kv_store.set("x:1", {"v": 1})
        kv_store.set("y:1", {"v": 2})
        assert kv_store.items_by_prefix("x:") == [("x:1", {"v": 1})]

    def test_empty_prefix_lists_everything(self, kv_store):
        kv_store.set("a", {})
        kv_store.set("b", {})
        assert len(kv_store.list_by_prefix("")) == 2


class TestFailures:

    def test_closed_store_raises_store_unavailable(self, tmp_path):
        store = KeyValueStore(tmp_path / "kv.db")
        store.close()
        with pytest.raises(StoreUnavailable):
            store.get("k")
        with pytest.raises(StoreUnavailable):
            store.set("k", {})

    def test_unopenable_path_raises_store_unavailable(self, tmp_path):
        blocker = tmp_path / "file"
        blocker.write_text("not a directory")
        with pytest.raises(StoreUnavailable):
            KeyValueStore(blocker / "kv.db")

    def test_close_is_idempotent(self, tmp_path):
        store = KeyValueStore(tmp_path / "kv.db")
        store.close()
        store.close()


def test_concurrent_writers_from_threads(kv_store):
    """Many threads writing through one connection lose nothing."""
    def write(worker: int):
        for i in range(25):
            kv_store.set(f"w:{worker}:{i}", {"worker": worker, "i": i})

    threads = [threading.Thread(target=write, args=(n,)) for n in range(8)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()

    assert kv_store.count() == 200
    assert len(kv_store.list_by_prefix("w:3:")) == 25
