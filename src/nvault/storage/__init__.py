"""Storage layer for Neural Vault - key-value stores over SQLite or memory."""

from nvault.storage.db import init_db
from nvault.storage.kv import KeyValueStore, MemoryKeyValueStore, SqliteKeyValueStore

__all__ = [
    "init_db",
    "KeyValueStore",
    "MemoryKeyValueStore",
    "SqliteKeyValueStore",
]
