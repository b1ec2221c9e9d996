# src/todo_companion/tasks/blob_store.py

from __future__ import annotations

import contextlib
import logging
import sqlite3
import time
from pathlib import Path

logger = logging.getLogger(__name__)


class SqliteBlobStore:
    """
    SQLite-backed key-value blob store.

    One row per key; the value is an opaque byte string (the task store puts
    JSON arrays there). put() is an upsert, delete() removes the row.

    Thread-safety:
    - each method opens its own SQLite connection
    """

    def __init__(self, db_path: str | Path = "store.sqlite3") -> None:
        self._db_path = Path(db_path)
        self._db_path.parent.mkdir(parents=True, exist_ok=True)
        self._ensure_schema()
        logger.info("BlobStore ready db=%s", self._db_path)

    @property
    def db_path(self) -> Path:
        return self._db_path

    def _get_conn(self) -> sqlite3.Connection:
        conn = sqlite3.connect(str(self._db_path), timeout=30.0)
        self._configure_conn(conn)
        return conn

    @staticmethod
    def _configure_conn(conn: sqlite3.Connection) -> None:
        with contextlib.suppress(sqlite3.DatabaseError):
            conn.execute("PRAGMA journal_mode=WAL")

    def _ensure_schema(self) -> None:
        conn = self._get_conn()
        try:
            conn.execute(
                """
                CREATE TABLE IF NOT EXISTS blobs (
                    key TEXT PRIMARY KEY,
                    value BLOB NOT NULL,
                    updated_at REAL NOT NULL
                )
                """
            )
            conn.commit()
        finally:
            conn.close()

    def put(self, key: str, data: bytes) -> None:
        conn = self._get_conn()
        try:
            conn.execute(
                """
                INSERT INTO blobs(key, value, updated_at)
                VALUES (?, ?, ?)
                ON CONFLICT(key) DO UPDATE SET
                    value = excluded.value,
                    updated_at = excluded.updated_at
                """,
                (key, sqlite3.Binary(data), time.time()),
            )
            conn.commit()
        finally:
            conn.close()
        logger.debug("Blob written key=%s bytes=%d", key, len(data))

    def get(self, key: str) -> bytes | None:
        conn = self._get_conn()
        try:
            cur = conn.execute("SELECT value FROM blobs WHERE key = ?", (key,))
            row = cur.fetchone()
            return bytes(row[0]) if row else None
        finally:
            conn.close()

    def delete(self, key: str) -> None:
        conn = self._get_conn()
        try:
            conn.execute("DELETE FROM blobs WHERE key = ?", (key,))
            conn.commit()
        finally:
            conn.close()
        logger.debug("Blob deleted key=%s", key)

    def keys(self) -> list[str]:
        conn = self._get_conn()
        try:
            cur = conn.execute("SELECT key FROM blobs ORDER BY key ASC")
            return [str(r[0]) for r in cur.fetchall()]
        finally:
            conn.close()
