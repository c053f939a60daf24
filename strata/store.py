"""Metadata store — schema markers and the migration audit log.

Two tables live side by side in the same SQLite file:

  schema_metadata   one row per recorded schema marker {version, recorded_at}
  migration_runs    one row per orchestrator run (append-only)
"""

from __future__ import annotations

from datetime import datetime, timezone

import aiosqlite

from strata.exceptions import PersistenceFailure
from strata.types import ExecutionRecord


class MetadataStore:
    """Durable version markers and run history backed by SQLite."""

    def __init__(self, db_path: str) -> None:
        self._db_path = db_path
        self._db: aiosqlite.Connection | None = None

    @property
    def db_path(self) -> str:
        return self._db_path

    async def initialize(self) -> None:
        """Open the connection and create tables if needed."""
        if self._db is not None:
            return
        self._db = await aiosqlite.connect(self._db_path)
        await self._db.execute("""
            CREATE TABLE IF NOT EXISTS schema_metadata (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                version TEXT NOT NULL,
                recorded_at TEXT NOT NULL
            )
        """)
        await self._db.execute("""
            CREATE TABLE IF NOT EXISTS migration_runs (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                initial_version TEXT NOT NULL,
                target_version TEXT NOT NULL,
                details TEXT,
                created_at TEXT NOT NULL
            )
        """)
        await self._db.commit()

    async def close(self) -> None:
        if self._db is not None:
            await self._db.close()
            self._db = None

    def _conn(self) -> aiosqlite.Connection:
        if self._db is None:
            raise RuntimeError("MetadataStore.initialize() was not called")
        return self._db

    async def latest_schema_version(self) -> str | None:
        """Most recently recorded schema marker, or None on a fresh store."""
        cursor = await self._conn().execute(
            "SELECT version FROM schema_metadata ORDER BY id DESC LIMIT 1"
        )
        row = await cursor.fetchone()
        return row[0] if row else None

    async def _write(self, sql: str, params: tuple) -> None:
        db = self._conn()
        try:
            await db.execute(sql, params)
            await db.commit()
        except aiosqlite.Error as e:
            raise PersistenceFailure(f"{type(e).__name__}: {e}") from e

    async def record_schema_version(self, version: str) -> None:
        await self._write(
            "INSERT INTO schema_metadata (version, recorded_at) VALUES (?, ?)",
            (version, datetime.now(timezone.utc).isoformat()),
        )

    async def insert_run(self, record: ExecutionRecord) -> None:
        await self._write(
            """INSERT INTO migration_runs
               (initial_version, target_version, details, created_at)
               VALUES (?, ?, ?, ?)""",
            (
                record.initial_version,
                record.target_version,
                record.details_text(),
                record.created_at.isoformat(),
            ),
        )

    async def list_runs(self, limit: int = 20) -> list[ExecutionRecord]:
        """Recorded runs, most recent first."""
        cursor = await self._conn().execute(
            """SELECT initial_version, target_version, details, created_at
               FROM migration_runs ORDER BY id DESC LIMIT ?""",
            (limit,),
        )
        rows = await cursor.fetchall()
        return [
            ExecutionRecord(
                initial_version=row[0],
                target_version=row[1],
                details=(row[2] or "").split("\n") if row[2] else [],
                created_at=datetime.fromisoformat(row[3]),
            )
            for row in rows
        ]

    def __repr__(self) -> str:
        return f"MetadataStore(db_path={self._db_path!r})"
