"""Durable key-value storage for persisted client state.

This module provides a small SQLite-backed key-value store used to persist
the signed-in session between process runs, plus an in-memory variant with
the same interface for tests.
"""

import time
from pathlib import Path
from typing import Any

import aiosqlite

from restbase.utils.telemetry import get_logger


class SessionStore:
    """SQLite-based key-value store local to the process.

    Each key holds one opaque text blob. Writes are committed immediately so
    a crash never loses a saved session.
    """

    def __init__(self, db_path: str | Path = ":memory:"):
        """Initialize session store.

        Args:
            db_path: Path to SQLite database file (":memory:" for in-memory)
        """
        self.db_path = str(db_path)
        self._db: aiosqlite.Connection | None = None
        self._logger = get_logger("restbase.storage.session")

    async def initialize(self) -> None:
        """Open the database connection and create the schema."""
        if self._db is not None:
            return

        self._db = await aiosqlite.connect(self.db_path)

        await self._db.execute("PRAGMA journal_mode=WAL")
        await self._db.execute("PRAGMA synchronous=NORMAL")

        await self._db.execute(
            """
            CREATE TABLE IF NOT EXISTS kv_store (
                key TEXT PRIMARY KEY,
                value TEXT NOT NULL,
                updated_at REAL NOT NULL
            )
        """
        )
        await self._db.commit()

        self._logger.info("SessionStore initialized", db_path=self.db_path)

    async def close(self) -> None:
        """Close the database connection."""
        if self._db:
            await self._db.close()
            self._db = None

        self._logger.info("SessionStore closed")

    def _require_db(self) -> aiosqlite.Connection:
        if not self._db:
            raise RuntimeError("SessionStore not initialized")
        return self._db

    async def get(self, key: str) -> str | None:
        """Return the blob stored under ``key``, or None if absent.

        Raises:
            RuntimeError: If the store is not initialized
        """
        db = self._require_db()
        async with db.execute(
            "SELECT value FROM kv_store WHERE key = ?", (key,)
        ) as cursor:
            row = await cursor.fetchone()
        return str(row[0]) if row else None

    async def set(self, key: str, value: str) -> None:
        """Store ``value`` under ``key``, replacing any previous blob.

        Raises:
            RuntimeError: If the store is not initialized
            ValueError: If key is empty
        """
        if not key.strip():
            raise ValueError("key cannot be empty")

        db = self._require_db()
        await db.execute(
            """
            INSERT OR REPLACE INTO kv_store (key, value, updated_at)
            VALUES (?, ?, ?)
            """,
            (key, value, time.time()),
        )
        await db.commit()

        self._logger.debug("Entry saved", key=key, size=len(value))

    async def delete(self, key: str) -> bool:
        """Delete ``key``.

        Returns:
            True if an entry was removed
        """
        db = self._require_db()
        async with db.execute("DELETE FROM kv_store WHERE key = ?", (key,)) as cursor:
            deleted = cursor.rowcount > 0
        await db.commit()

        if deleted:
            self._logger.debug("Entry deleted", key=key)
        return deleted

    async def __aenter__(self) -> "SessionStore":
        await self.initialize()
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: Any,
    ) -> None:
        await self.close()


class InMemorySessionStore:
    """In-memory key-value store for testing.

    Provides the same interface as SessionStore without SQLite.
    """

    def __init__(self) -> None:
        self._entries: dict[str, str] = {}

    async def initialize(self) -> None:
        pass

    async def close(self) -> None:
        pass

    async def get(self, key: str) -> str | None:
        return self._entries.get(key)

    async def set(self, key: str, value: str) -> None:
        if not key.strip():
            raise ValueError("key cannot be empty")
        self._entries[key] = value

    async def delete(self, key: str) -> bool:
        return self._entries.pop(key, None) is not None

    async def __aenter__(self) -> "InMemorySessionStore":
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: Any,
    ) -> None:
        pass
