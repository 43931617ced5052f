"""
Database Adapter

Embedded SQLite store for drafts, queued mutations and cached snapshots.

Features:
- Single shared aiosqlite connection (WAL journal, foreign keys on)
- PostgreSQL-style $1, $2 placeholders translated to ?
- Physical writes serialized inside the adapter
- Versioned SQL migrations applied on connect
- sqlite errors surfaced as StorageFailure
"""

from __future__ import annotations

import re
import sqlite3
import asyncio
import logging
from contextlib import asynccontextmanager
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, List, Optional, Union

import aiosqlite

from ..errors import StorageFailure

logger = logging.getLogger(__name__)

MIGRATIONS_DIR = Path(__file__).parent / "migrations"


class DatabaseConfig:
    """Database configuration."""

    def __init__(self, path: Union[str, Path], migrations_dir: Optional[Path] = None):
        self.path = str(path)
        self.migrations_dir = migrations_dir or MIGRATIONS_DIR

    def __repr__(self) -> str:
        return f"DatabaseConfig(path={self.path})"


class DatabaseAdapter:
    """
    Async SQLite adapter shared by every component.

    Usage:
        db = DatabaseAdapter(DatabaseConfig(settings.db_path))
        await db.connect()

        rows = await db.fetch("SELECT * FROM outbox WHERE id = $1", entry_id)
        await db.execute("DELETE FROM drafts WHERE context_key = $1", key)

        await db.disconnect()
    """

    def __init__(self, config: DatabaseConfig):
        self.config = config
        self._conn: Optional[aiosqlite.Connection] = None
        self._write_lock = asyncio.Lock()
        self._connected = False

    @property
    def connected(self) -> bool:
        return self._connected

    async def connect(self) -> None:
        """Open the database file and apply pending migrations."""
        if self._connected:
            return

        logger.info(f"Connecting to database: {self.config}")

        try:
            self._conn = await aiosqlite.connect(self.config.path)
            self._conn.row_factory = aiosqlite.Row
            await self._conn.execute("PRAGMA journal_mode = WAL")
            await self._conn.execute("PRAGMA foreign_keys = ON")
            await self._conn.commit()
        except sqlite3.Error as e:
            raise StorageFailure(f"failed to open sqlite database: {e}") from e

        self._connected = True
        await self.migrate()

    async def disconnect(self) -> None:
        """Close the connection."""
        if self._conn:
            await self._conn.close()
            self._conn = None
            logger.info("Disconnected from SQLite")
        self._connected = False

    async def migrate(self) -> List[str]:
        """Apply every migration file not yet recorded in schema_migrations."""
        await self.execute(
            """
            CREATE TABLE IF NOT EXISTS schema_migrations (
                version TEXT PRIMARY KEY,
                applied_at TEXT NOT NULL
            )
            """
        )
        applied = {row["version"] for row in await self.fetch("SELECT version FROM schema_migrations")}

        migration_files = sorted(self.config.migrations_dir.glob("*.sql"))
        ran = []
        for path in migration_files:
            version = path.stem.split("_")[0]
            if version in applied:
                continue

            logger.info(f"Running migration {path.name}")
            sql = path.read_text(encoding="utf-8")
            async with self.transaction() as conn:
                await conn.executescript(sql)
                await conn.execute(
                    "INSERT INTO schema_migrations (version, applied_at) VALUES (?, ?)",
                    (version, datetime.now(timezone.utc).isoformat()),
                )
            ran.append(version)

        return ran

    async def fetch(self, query: str, *args) -> List[Dict[str, Any]]:
        """
        Fetch multiple rows.

        Args:
            query: SQL query with $1, $2, etc. placeholders
            *args: Query parameters

        Returns:
            List of dictionaries representing rows
        """
        conn = await self._connection()
        try:
            async with conn.execute(self._convert_to_sqlite(query), args) as cursor:
                rows = await cursor.fetchall()
                return [dict(row) for row in rows]
        except sqlite3.Error as e:
            raise StorageFailure(f"query failed: {e}") from e

    async def fetchrow(self, query: str, *args) -> Optional[Dict[str, Any]]:
        """Fetch a single row."""
        rows = await self.fetch(query, *args)
        return rows[0] if rows else None

    async def fetchval(self, query: str, *args) -> Any:
        """Fetch a single value from the first column of the first row."""
        row = await self.fetchrow(query, *args)
        if row:
            return list(row.values())[0]
        return None

    async def execute(self, query: str, *args) -> int:
        """
        Execute a write (INSERT, UPDATE, DELETE) and commit it.

        Returns:
            Number of rows affected
        """
        conn = await self._connection()
        async with self._write_lock:
            try:
                cursor = await conn.execute(self._convert_to_sqlite(query), args)
                await conn.commit()
                return cursor.rowcount
            except sqlite3.Error as e:
                await conn.rollback()
                raise StorageFailure(f"write failed: {e}") from e

    @asynccontextmanager
    async def transaction(self):
        """
        Context manager for multi-statement writes.

        Usage:
            async with db.transaction() as conn:
                await conn.execute("INSERT ...", (a, b))
                await conn.execute("UPDATE ...", (c,))
        """
        conn = await self._connection()
        async with self._write_lock:
            try:
                yield conn
                await conn.commit()
            except sqlite3.Error as e:
                await conn.rollback()
                raise StorageFailure(f"transaction failed: {e}") from e
            except Exception:
                await conn.rollback()
                raise

    async def _connection(self) -> aiosqlite.Connection:
        if not self._connected:
            await self.connect()
        return self._conn

    def _convert_to_sqlite(self, query: str) -> str:
        """Convert PostgreSQL placeholder syntax to SQLite."""
        return re.sub(r'\$\d+', '?', query)
