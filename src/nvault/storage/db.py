"""SQLite database connection and initialization."""

import logging
import sqlite3
from pathlib import Path

from nvault.core.config import DATABASE_PATH

logger = logging.getLogger(__name__)

SCHEMA = """
    CREATE TABLE IF NOT EXISTS kv_store (
        key TEXT PRIMARY KEY,
        value BLOB NOT NULL,
        updated_at TEXT DEFAULT CURRENT_TIMESTAMP
    );
"""


def init_db(db_path: Path | str | None = None) -> Path:
    """
    Initialize database with schema.

    Args:
        db_path: Path to SQLite database (defaults to DATABASE_PATH)

    Returns:
        The resolved database path
    """
    path = Path(db_path) if db_path else DATABASE_PATH
    path.parent.mkdir(parents=True, exist_ok=True)

    conn = sqlite3.connect(path)
    try:
        # Enable WAL mode for better concurrent access
        conn.execute("PRAGMA journal_mode=WAL")
        conn.execute("PRAGMA synchronous=NORMAL")
        conn.executescript(SCHEMA)
        conn.commit()
        logger.debug("Database ready at %s", path)
    finally:
        conn.close()
    return path

