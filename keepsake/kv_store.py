"""
Key-value store using SQLite.

The key-value store is the system of record for profiles, categories and
notes. Keys are namespaced strings; each maps to one JSON record:

    user:{user_id}:profile:{profile_id}
    user:{user_id}:profile:{profile_id}:category:{category_id}
    user:{user_id}:profile:{profile_id}:note:{note_id}

Listing by ``user:{user_id}:profile:`` returns a user's profiles,
categories and notes intermixed. Callers select by record kind
(see ``types.record_kind``).
"""

import json
import sqlite3
import threading
from contextlib import contextmanager
from pathlib import Path
from typing import Any, Iterator, Optional

from .errors import StoreUnavailable


class KeyValueStore:
    """
    SQLite-backed store of namespaced JSON records.

    Writes are upserts. Listing returns records in insertion order;
    overwriting a key keeps its original position.
    """

    def __init__(self, db_path: Path, timeout: float = 30.0):
        """
        Args:
            db_path: Path to SQLite database file
            timeout: Seconds to wait on a locked database before failing
        """
        self._db_path = db_path
        self._timeout = timeout
        self._lock = threading.Lock()
        self._conn: Optional[sqlite3.Connection] = None
        self._init_db()

    def _init_db(self) -> None:
        """Initialize the SQLite database."""
        try:
            self._db_path.parent.mkdir(parents=True, exist_ok=True)
            self._conn = sqlite3.connect(
                str(self._db_path),
                timeout=self._timeout,
                check_same_thread=False,
            )
            self._conn.row_factory = sqlite3.Row
            self._conn.execute("PRAGMA journal_mode=WAL")
            self._conn.execute("""
                CREATE TABLE IF NOT EXISTS kv_store (
                    key TEXT PRIMARY KEY,
                    value TEXT NOT NULL
                )
            """)
            self._conn.commit()
        except (sqlite3.Error, OSError) as e:
            raise StoreUnavailable(f"Cannot open key-value store at {self._db_path}: {e}") from e

    @contextmanager
    def _cursor(self) -> Iterator[sqlite3.Connection]:
        """Serialize access and translate SQLite errors."""
        if self._conn is None:
            raise StoreUnavailable("Key-value store is closed")
        with self._lock:
            try:
                yield self._conn
                self._conn.commit()
            except sqlite3.Error as e:
                self._conn.rollback()
                raise StoreUnavailable(f"Key-value store error: {e}") from e

    # -------------------------------------------------------------------------
    # Write Operations
    # -------------------------------------------------------------------------

    def set(self, key: str, value: dict[str, Any]) -> None:
        """Insert or replace the record at ``key``."""
        payload = json.dumps(value, ensure_ascii=False)
        with self._cursor() as conn:
            conn.execute("""
                INSERT INTO kv_store (key, value) VALUES (?, ?)
                ON CONFLICT(key) DO UPDATE SET value = excluded.value
            """, (key, payload))

    def delete(self, key: str) -> bool:
        """Delete one record. Returns True if it existed."""
        with self._cursor() as conn:
            cursor = conn.execute("DELETE FROM kv_store WHERE key = ?", (key,))
            return cursor.rowcount > 0

    def delete_many(self, keys: list[str]) -> int:
        """Delete several records in one transaction. Returns the count removed."""
        if not keys:
            return 0
        placeholders = ",".join("?" * len(keys))
        with self._cursor() as conn:
            cursor = conn.execute(
                f"DELETE FROM kv_store WHERE key IN ({placeholders})", keys
            )
            return cursor.rowcount

    # -------------------------------------------------------------------------
    # Read Operations
    # -------------------------------------------------------------------------

    def get(self, key: str) -> Optional[dict[str, Any]]:
        """Get the record at ``key``, or None."""
        with self._cursor() as conn:
            row = conn.execute(
                "SELECT value FROM kv_store WHERE key = ?", (key,)
            ).fetchone()
        if row is None:
            return None
        return json.loads(row["value"])

    def list_by_prefix(self, prefix: str) -> list[dict[str, Any]]:
        """All records whose key starts with ``prefix``."""
        return [value for _, value in self.items_by_prefix(prefix)]

    def items_by_prefix(self, prefix: str) -> list[tuple[str, dict[str, Any]]]:
        """(key, record) pairs whose key starts with ``prefix``."""
        with self._cursor() as conn:
            rows = conn.execute("""
                SELECT key, value FROM kv_store
                WHERE substr(key, 1, ?) = ?
                ORDER BY rowid
            """, (len(prefix), prefix)).fetchall()
        return [(row["key"], json.loads(row["value"])) for row in rows]

    def count(self) -> int:
        with self._cursor() as conn:
            return conn.execute("SELECT COUNT(*) FROM kv_store").fetchone()[0]

    # -------------------------------------------------------------------------
    # Lifecycle
    # -------------------------------------------------------------------------

    def close(self) -> None:
        """Close the database connection."""
        if self._conn is not None:
            with self._lock:
                self._conn.close()
                self._conn = None

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()
        return False
