"""SQLite key-value storage for cached layouts."""

import asyncio
from pathlib import Path
import sqlite3
import time

from errors import StorageError


def create_database(db_path: Path | str) -> sqlite3.Connection:
    """Create SQLite database with the layout_cache table."""
    conn = sqlite3.connect(db_path, check_same_thread=False)
    cursor = conn.cursor()

    cursor.execute("""
        CREATE TABLE IF NOT EXISTS layout_cache (
            key TEXT PRIMARY KEY,
            value TEXT NOT NULL,
            updated_at REAL NOT NULL
        )
    """)

    conn.commit()
    return conn


class SQLiteStore:
    """
    Async key-value store over one SQLite table.

    Queries run in a worker thread so cache I/O never blocks the event loop.
    sqlite3 errors are re-raised as StorageError.
    """

    def __init__(self, db_path: Path | str):
        self.conn = create_database(db_path)
        self._lock = asyncio.Lock()

    def _get(self, key: str) -> str | None:
        row = self.conn.execute("SELECT value FROM layout_cache WHERE key = ?", (key,)).fetchone()
        return row[0] if row else None

    def _set(self, key: str, value: str):
        self.conn.execute(
            """
            INSERT OR REPLACE INTO layout_cache (key, value, updated_at)
            VALUES (?, ?, ?)
            """,
            (key, value, time.time()),
        )
        self.conn.commit()

    def _delete(self, key: str):
        self.conn.execute("DELETE FROM layout_cache WHERE key = ?", (key,))
        self.conn.commit()

    async def _run(self, func, *args):
        async with self._lock:
            try:
                return await asyncio.to_thread(func, *args)
            except sqlite3.Error as e:
                raise StorageError(str(e)) from e

    async def get(self, key: str) -> str | None:
        return await self._run(self._get, key)

    async def set(self, key: str, value: str) -> None:
        await self._run(self._set, key, value)

    async def delete(self, key: str) -> None:
        await self._run(self._delete, key)

    def keys(self) -> list[str]:
        return [row[0] for row in self.conn.execute("SELECT key FROM layout_cache")]

    def close(self):
        self.conn.close()
