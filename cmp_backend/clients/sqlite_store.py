"""SQLite-backed key-value store with expiring entries."""

from __future__ import annotations

import sqlite3
import time
from pathlib import Path
from typing import Optional

from cmp_backend.clients.kv import KVListPage
from cmp_backend.core.errors import StoreUnavailable


class SQLiteKVStore:
    """Key-value namespace stored in a single table keyed by name.

    Expired rows are invisible to ``get`` and ``list`` and are pruned lazily
    on write.
    """

    def __init__(self, db_path: str) -> None:
        self._db_path = Path(db_path)
        if self._db_path.parent and not self._db_path.parent.exists():
            self._db_path.parent.mkdir(parents=True, exist_ok=True)
        self._ensure_schema()

    def _connect(self) -> sqlite3.Connection:
        conn = sqlite3.connect(self._db_path, check_same_thread=False)
        conn.row_factory = sqlite3.Row
        return conn

    def _ensure_schema(self) -> None:
        with self._connect() as conn:
            conn.execute(
                """
                CREATE TABLE IF NOT EXISTS kv_entries (
                    key TEXT PRIMARY KEY,
                    value TEXT NOT NULL,
                    expires_at REAL
                )
                """
            )

    def get(self, key: str) -> Optional[str]:
        try:
            with self._connect() as conn:
                row = conn.execute(
                    """
                    SELECT value FROM kv_entries
                    WHERE key = ? AND (expires_at IS NULL OR expires_at > ?)
                    """,
                    (key, time.time()),
                ).fetchone()
        except sqlite3.Error as exc:
            raise StoreUnavailable() from exc
        if not row:
            return None
        return row["value"]

    def put(
        self, key: str, value: str, *, expiration_ttl: Optional[int] = None
    ) -> None:
        if not key:
            raise ValueError("Key must be a non-empty string")

        now = time.time()
        expires_at = now + expiration_ttl if expiration_ttl else None
        try:
            with self._connect() as conn:
                conn.execute(
                    """
                    INSERT INTO kv_entries (key, value, expires_at)
                    VALUES (?, ?, ?)
                    ON CONFLICT(key) DO UPDATE SET
                        value = excluded.value,
                        expires_at = excluded.expires_at
                    """,
                    (key, value, expires_at),
                )
                conn.execute(
                    "DELETE FROM kv_entries WHERE expires_at IS NOT NULL AND expires_at <= ?",
                    (now,),
                )
        except sqlite3.Error as exc:
            raise StoreUnavailable() from exc

    def list(
        self,
        *,
        prefix: str = "",
        cursor: Optional[str] = None,
        limit: int = 100,
    ) -> KVListPage:
        # One extra row tells us whether another page exists.
        try:
            with self._connect() as conn:
                rows = conn.execute(
                    """
                    SELECT key FROM kv_entries
                    WHERE substr(key, 1, ?) = ?
                      AND key > ?
                      AND (expires_at IS NULL OR expires_at > ?)
                    ORDER BY key
                    LIMIT ?
                    """,
                    (len(prefix), prefix, cursor or "", time.time(), limit + 1),
                ).fetchall()
        except sqlite3.Error as exc:
            raise StoreUnavailable() from exc

        keys = [row["key"] for row in rows[:limit]]
        if len(rows) > limit:
            return KVListPage(keys=keys, cursor=keys[-1], list_complete=False)
        return KVListPage(keys=keys, cursor=None, list_complete=True)

    def delete(self, key: str) -> None:
        try:
            with self._connect() as conn:
                conn.execute("DELETE FROM kv_entries WHERE key = ?", (key,))
        except sqlite3.Error as exc:
            raise StoreUnavailable() from exc


__all__ = ["SQLiteKVStore"]
