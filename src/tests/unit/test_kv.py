"""Tests for nvault.storage key-value stores."""

import sqlite3

import pytest

from nvault.core.errors import StorageFailureError
from nvault.storage import MemoryKeyValueStore, SqliteKeyValueStore, init_db


@pytest.fixture
def sqlite_store(tmp_path):
    kv = SqliteKeyValueStore(tmp_path / "test.db")
    yield kv
    kv.close()


@pytest.fixture(params=["memory", "sqlite"])
def any_store(request, tmp_path):
    """Both store implementations behind the same contract."""
    if request.param == "memory":
        yield MemoryKeyValueStore()
        return
    kv = SqliteKeyValueStore(tmp_path / "contract.db")
    yield kv
    kv.close()


class TestContract:
    """Behaviour shared by every store."""

    def test_get_missing(self, any_store):
        assert any_store.get("nope") is None

    def test_set_get_overwrite(self, any_store):
        any_store.set("k", b"one")
        any_store.set("k", b"two")

        assert any_store.get("k") == b"two"

    def test_delete(self, any_store):
        any_store.set("k", b"v")
        any_store.delete("k")
        any_store.delete("never-there")

        assert any_store.get("k") is None

    def test_prefix_listing(self, any_store):
        for key in ("vault:a:notes", "vault:b:notes", "VAULT:c:notes", "registry:profiles"):
            any_store.set(key, b"x")

        assert any_store.list_keys_with_prefix("vault:") == ["vault:a:notes", "vault:b:notes"]

    def test_prefix_with_wildcard_chars(self, any_store):
        any_store.set("a%b", b"1")
        any_store.set("axb", b"2")

        assert any_store.list_keys_with_prefix("a%") == ["a%b"]

    def test_atomic_commits(self, any_store):
        with any_store.atomic():
            any_store.set("a", b"1")
            any_store.set("b", b"2")

        assert any_store.get("a") == b"1"
        assert any_store.get("b") == b"2"

    def test_atomic_rolls_back(self, any_store):
        any_store.set("keep", b"old")

        with pytest.raises(RuntimeError):
            with any_store.atomic():
                any_store.set("keep", b"new")
                any_store.set("extra", b"x")
                raise RuntimeError("boom")

        assert any_store.get("keep") == b"old"
        assert any_store.get("extra") is None

    def test_nested_atomic(self, any_store):
        with pytest.raises(RuntimeError):
            with any_store.atomic():
                any_store.set("outer", b"1")
                with any_store.atomic():
                    any_store.set("inner", b"2")
                raise RuntimeError("boom")

        assert any_store.get("outer") is None
        assert any_store.get("inner") is None


class TestSqlite:
    """SQLite specifics."""

    def test_persists_across_instances(self, tmp_path):
        path = tmp_path / "persist.db"
        first = SqliteKeyValueStore(path)
        first.set("k", b"\x00\xffbinary")
        first.close()

        second = SqliteKeyValueStore(path)
        assert second.get("k") == b"\x00\xffbinary"
        second.close()

    def test_init_db_creates_table(self, tmp_path):
        path = init_db(tmp_path / "nested" / "init.db")

        conn = sqlite3.connect(path)
        tables = {
            row[0] for row in conn.execute("SELECT name FROM sqlite_master WHERE type='table'")
        }
        conn.close()
        assert "kv_store" in tables

    def test_unopenable_path(self, tmp_path):
        blocker = tmp_path / "file"
        blocker.write_text("not a directory")

        with pytest.raises(StorageFailureError):
            SqliteKeyValueStore(blocker / "sub" / "db.sqlite")

    def test_sqlite_errors_are_wrapped(self, sqlite_store):
        sqlite_store.set("k", b"v")
        with sqlite_store._get_connection() as conn:
            conn.execute("DROP TABLE kv_store")

        with pytest.raises(StorageFailureError):
            sqlite_store.get("k")


class TestMemory:
    def test_len_and_copy(self):
        seed = {"a": b"1"}
        kv = MemoryKeyValueStore(seed)
        kv.set("b", b"2")

        assert len(kv) == 2
        assert seed == {"a": b"1"}
