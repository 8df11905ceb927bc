"""Key-value stores backing the vault registry.

The core only needs ``get``/``set``/``delete``/``list_keys_with_prefix`` plus
an ``atomic()`` block for multi-key writes. All failures of the underlying
medium surface as :class:`StorageFailureError`.
"""

import logging
import sqlite3
from contextlib import AbstractContextManager, contextmanager
from pathlib import Path
from threading import RLock
from typing import Generator, Protocol

from nvault.core.config import DATABASE_PATH
from nvault.core.errors import StorageFailureError
from nvault.storage.db import init_db

logger = logging.getLogger(__name__)


class KeyValueStore(Protocol):
    """Durable byte store addressed by string keys."""

    def get(self, key: str) -> bytes | None:
        pass

    def set(self, key: str, value: bytes) -> None:
        pass

    def delete(self, key: str) -> None:
        pass

    def list_keys_with_prefix(self, prefix: str) -> list[str]:
        pass

    def atomic(self) -> AbstractContextManager[None]:
        pass


class MemoryKeyValueStore:
    """Volatile store, useful for throwaway vaults and tests."""

    def __init__(self, data: dict[str, bytes] | None = None):
        self._data: dict[str, bytes] = dict(data or {})
        self._lock = RLock()

    def get(self, key: str) -> bytes | None:
        with self._lock:
            return self._data.get(key)

    def set(self, key: str, value: bytes) -> None:
        with self._lock:
            self._data[key] = bytes(value)

    def delete(self, key: str) -> None:
        with self._lock:
            self._data.pop(key, None)

    def list_keys_with_prefix(self, prefix: str) -> list[str]:
        with self._lock:
            return sorted(k for k in self._data if k.startswith(prefix))

    @contextmanager
    def atomic(self) -> Generator[None, None, None]:
        with self._lock:
            snapshot = dict(self._data)
            try:
                yield
            except Exception:
                self._data = snapshot
                raise

    def __len__(self) -> int:
        return len(self._data)


class SqliteKeyValueStore:
    """SQLite-backed store with a single shared connection."""

    def __init__(self, db_path: Path | str | None = None):
        """
        Initialize the store.

        Args:
            db_path: Path to SQLite database (defaults to ~/.neuralvault/nvault.db)
        """
        self.db_path = Path(db_path) if db_path else DATABASE_PATH
        self._connection: sqlite3.Connection | None = None
        self._lock = RLock()
        self._tx_depth = 0
        try:
            init_db(self.db_path)
        except (sqlite3.Error, OSError) as exc:
            raise StorageFailureError(f"Cannot open store at {self.db_path}: {exc}") from exc

    @contextmanager
    def _get_connection(self) -> Generator[sqlite3.Connection, None, None]:
        """Yield the shared connection, committing unless inside atomic()."""
        with self._lock:
            try:
                if self._connection is None:
                    self._connection = sqlite3.connect(
                        self.db_path, check_same_thread=False
                    )
                    self._connection.row_factory = sqlite3.Row
                yield self._connection
                if self._tx_depth == 0:
                    self._connection.commit()
            except sqlite3.Error as exc:
                if self._connection is not None and self._tx_depth == 0:
                    self._connection.rollback()
                raise StorageFailureError(f"Storage error: {exc}") from exc

    def get(self, key: str) -> bytes | None:
        with self._get_connection() as conn:
            row = conn.execute(
                "SELECT value FROM kv_store WHERE key = ?", (key,)
            ).fetchone()
        return bytes(row["value"]) if row is not None else None

    def set(self, key: str, value: bytes) -> None:
        with self._get_connection() as conn:
            conn.execute(
                """
                INSERT INTO kv_store (key, value, updated_at)
                VALUES (?, ?, CURRENT_TIMESTAMP)
                ON CONFLICT(key) DO UPDATE SET
                    value = excluded.value,
                    updated_at = excluded.updated_at
                """,
                (key, sqlite3.Binary(value)),
            )

    def delete(self, key: str) -> None:
        with self._get_connection() as conn:
            conn.execute("DELETE FROM kv_store WHERE key = ?", (key,))

    def list_keys_with_prefix(self, prefix: str) -> list[str]:
        with self._get_connection() as conn:
            rows = conn.execute(
                "SELECT key FROM kv_store WHERE substr(key, 1, ?) = ? ORDER BY key",
                (len(prefix), prefix),
            ).fetchall()
        return [row["key"] for row in rows]

    @contextmanager
    def atomic(self) -> Generator[None, None, None]:
        """Group writes so they all land or none do."""
        with self._lock:
            with self._get_connection():
                pass
            self._tx_depth += 1
            try:
                yield
            except Exception:
                self._tx_depth -= 1
                if self._tx_depth == 0 and self._connection is not None:
                    self._connection.rollback()
                raise
            self._tx_depth -= 1
            if self._tx_depth == 0 and self._connection is not None:
                try:
                    self._connection.commit()
                except sqlite3.Error as exc:
                    self._connection.rollback()
                    raise StorageFailureError(f"Storage error: {exc}") from exc

    def close(self) -> None:
        """Close the shared database connection."""
        with self._lock:
            if self._connection is not None:
                self._connection.close()
                self._connection = None
