"""
Relational mirror using SQLite.

Holds a denormalized, query-friendly projection of profiles and notes:

- ``profiles``: one row per profile, for display-name lookup
- ``memory_items``: one row per note, with its embedding and the profile
  display name captured at write time

The key-value store is the source of truth. Rows here are kept in step
by the ingestion and delete paths; there are no foreign keys between
the two stores.
"""

import json
import sqlite3
import threading
from contextlib import contextmanager
from pathlib import Path
from typing import Iterator, Optional

from .errors import StoreUnavailable
from .types import MemoryRow, Profile, profile_name_key


class MirrorStore:
    """SQLite-backed mirror of profiles and notes."""

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
                CREATE TABLE IF NOT EXISTS profiles (
                    id TEXT NOT NULL,
                    user_id TEXT NOT NULL,
                    name TEXT NOT NULL,
                    avatar TEXT NOT NULL DEFAULT '',
                    description TEXT NOT NULL DEFAULT '',
                    created_at TEXT NOT NULL,
                    PRIMARY KEY (user_id, id)
                )
            """)
            self._conn.execute("""
                CREATE INDEX IF NOT EXISTS idx_profiles_user
                ON profiles(user_id)
            """)

            self._conn.execute("""
                CREATE TABLE IF NOT EXISTS memory_items (
                    id TEXT NOT NULL,
                    user_id TEXT NOT NULL,
                    profile_id TEXT NOT NULL,
                    profile_name TEXT,
                    profile_name_key TEXT,
                    entry TEXT,
                    embedding_json TEXT,
                    created_at TEXT NOT NULL,
                    updated_at TEXT NOT NULL,
                    PRIMARY KEY (user_id, profile_id, id)
                )
            """)
            self._conn.execute("""
                CREATE INDEX IF NOT EXISTS idx_memory_items_profile
                ON memory_items(user_id, profile_id)
            """)
            self._migrate_name_key()
            self._conn.execute("""
                CREATE INDEX IF NOT EXISTS idx_memory_items_name_key
                ON memory_items(user_id, profile_name_key)
            """)

            self._conn.commit()
        except (sqlite3.Error, OSError) as e:
            raise StoreUnavailable(f"Cannot open mirror store at {self._db_path}: {e}") from e

    def _migrate_name_key(self) -> None:
        """Add and backfill profile_name_key on mirrors created without it."""
        columns = {r["name"] for r in self._conn.execute("PRAGMA table_info(memory_items)")}
        if "profile_name_key" in columns:
            return
        self._conn.execute("ALTER TABLE memory_items ADD COLUMN profile_name_key TEXT")
        self._conn.execute("DROP INDEX IF EXISTS idx_memory_items_profile_name")
        rows = self._conn.execute(
            "SELECT rowid, profile_name FROM memory_items WHERE profile_name IS NOT NULL"
        ).fetchall()
        self._conn.executemany(
            "UPDATE memory_items SET profile_name_key = ? WHERE rowid = ?",
            [(profile_name_key(r["profile_name"]), r["rowid"]) for r in rows],
        )

    @contextmanager
    def _cursor(self) -> Iterator[sqlite3.Connection]:
        """Serialize access and translate SQLite errors."""
        if self._conn is None:
            raise StoreUnavailable("Mirror store is closed")
        with self._lock:
            try:
                yield self._conn
                self._conn.commit()
            except sqlite3.Error as e:
                self._conn.rollback()
                raise StoreUnavailable(f"Mirror store error: {e}") from e

    # -------------------------------------------------------------------------
    # Profiles
    # -------------------------------------------------------------------------

    def upsert_profile(self, profile: Profile) -> None:
        with self._cursor() as conn:
            conn.execute("""
                INSERT INTO profiles (id, user_id, name, avatar, description, created_at)
                VALUES (?, ?, ?, ?, ?, ?)
                ON CONFLICT(user_id, id) DO UPDATE SET
                    name = excluded.name,
                    avatar = excluded.avatar,
                    description = excluded.description
            """, (
                profile.id, profile.user_id, profile.name,
                profile.avatar, profile.description, profile.created_at,
            ))

    def get_profile_name(self, user_id: str, profile_id: str) -> Optional[str]:
        """Display name of a mirrored profile, or None if not mirrored."""
        with self._cursor() as conn:
            row = conn.execute(
                "SELECT name FROM profiles WHERE user_id = ? AND id = ?",
                (user_id, profile_id),
            ).fetchone()
        return row["name"] if row else None

    def delete_profile(self, user_id: str, profile_id: str) -> int:
        """
        Delete a profile and all of its memory rows.

        Returns:
            Number of memory rows removed
        """
        with self._cursor() as conn:
            cursor = conn.execute(
                "DELETE FROM memory_items WHERE user_id = ? AND profile_id = ?",
                (user_id, profile_id),
            )
            removed = cursor.rowcount
            conn.execute(
                "DELETE FROM profiles WHERE user_id = ? AND id = ?",
                (user_id, profile_id),
            )
        return removed

    # -------------------------------------------------------------------------
    # Memory rows
    # -------------------------------------------------------------------------

    def upsert_memory(self, row: MemoryRow) -> None:
        """Insert or overwrite the mirror row for a note."""
        embedding_json = json.dumps(row.embedding) if row.embedding is not None else None
        name_key = profile_name_key(row.profile_name) if row.profile_name is not None else None
        with self._cursor() as conn:
            conn.execute("""
                INSERT INTO memory_items
                (id, user_id, profile_id, profile_name, profile_name_key,
                 entry, embedding_json, created_at, updated_at)
                VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)
                ON CONFLICT(user_id, profile_id, id) DO UPDATE SET
                    profile_name = excluded.profile_name,
                    profile_name_key = excluded.profile_name_key,
                    entry = excluded.entry,
                    embedding_json = excluded.embedding_json,
                    created_at = excluded.created_at,
                    updated_at = excluded.updated_at
            """, (
                row.id, row.user_id, row.profile_id, row.profile_name, name_key,
                row.entry, embedding_json, row.created_at, row.updated_at,
            ))

    def delete_memory(self, user_id: str, profile_id: str, note_id: str) -> bool:
        with self._cursor() as conn:
            cursor = conn.execute("""
                DELETE FROM memory_items
                WHERE user_id = ? AND profile_id = ? AND id = ?
            """, (user_id, profile_id, note_id))
            return cursor.rowcount > 0

    def list_memories(
        self,
        user_id: str,
        profile_id: Optional[str] = None,
        profile_name: Optional[str] = None,
    ) -> list[MemoryRow]:
        """
        Memory rows owned by a user, optionally narrowed to one profile.

        ``profile_name`` matches the denormalized display name,
        case-insensitively and ignoring surrounding whitespace.
        """
        sql = "SELECT * FROM memory_items WHERE user_id = ?"
        params: list = [user_id]
        if profile_id is not None:
            sql += " AND profile_id = ?"
            params.append(profile_id)
        if profile_name is not None:
            sql += " AND profile_name_key = ?"
            params.append(profile_name_key(profile_name))
        sql += " ORDER BY rowid"

        with self._cursor() as conn:
            rows = conn.execute(sql, params).fetchall()

        return [
            MemoryRow(
                id=r["id"],
                user_id=r["user_id"],
                profile_id=r["profile_id"],
                profile_name=r["profile_name"],
                entry=r["entry"],
                embedding=json.loads(r["embedding_json"]) if r["embedding_json"] else None,
                created_at=r["created_at"],
                updated_at=r["updated_at"],
            )
            for r in rows
        ]

    def count(self, user_id: Optional[str] = None) -> int:
        """Count memory rows, optionally for one user."""
        with self._cursor() as conn:
            if user_id is None:
                return conn.execute("SELECT COUNT(*) FROM memory_items").fetchone()[0]
            return conn.execute(
                "SELECT COUNT(*) FROM memory_items WHERE user_id = ?", (user_id,)
            ).fetchone()[0]

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
