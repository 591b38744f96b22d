"""
SQLite-backed content hash store.

Persists one ContentHash record per indexed document reference using
``aiosqlite``. Each write is committed immediately, so records written
before a crash survive it and the next pass resumes from them.
"""

import asyncio
import logging
from datetime import datetime
from pathlib import Path

import aiosqlite

from incremental_rag.core.interfaces import IHashStore
from incremental_rag.models import ContentHash, HashStoreError

logger = logging.getLogger(__name__)

_CREATE_TABLE_SQL = """\
CREATE TABLE IF NOT EXISTS content_hashes (
    reference      TEXT PRIMARY KEY,
    source_prefix  TEXT NOT NULL,
    hash           TEXT NOT NULL,
    last_seen      TEXT NOT NULL
);
"""

_CREATE_INDEX_SQL = "CREATE INDEX IF NOT EXISTS idx_content_hashes_source ON content_hashes(source_prefix);"

_UPSERT_SQL = """\
INSERT INTO content_hashes (reference, source_prefix, hash, last_seen)
VALUES (?, ?, ?, ?)
ON CONFLICT(reference)
DO UPDATE SET source_prefix = excluded.source_prefix,
              hash          = excluded.hash,
              last_seen     = excluded.last_seen;
"""


class SQLiteHashStore(IHashStore):
    """
    Content hash records in a local SQLite database.

    The store has an explicit lifecycle: ``open()`` at the start of a pass and
    ``close()`` at the end. Reads may run concurrently; writes are serialized.
    """

    def __init__(self, db_path: str | Path):
        self._db_path = Path(db_path)
        self._db: aiosqlite.Connection | None = None
        self._write_lock = asyncio.Lock()

    @property
    def is_open(self) -> bool:
        return self._db is not None

    async def open(self) -> None:
        """Open the database, creating the schema on first use."""
        if self._db is not None:
            return

        try:
            self._db_path.parent.mkdir(parents=True, exist_ok=True)
            self._db = await aiosqlite.connect(str(self._db_path))
            self._db.row_factory = aiosqlite.Row
            await self._db.execute(_CREATE_TABLE_SQL)
            await self._db.execute(_CREATE_INDEX_SQL)
            await self._db.commit()
        except (aiosqlite.Error, OSError) as e:
            raise HashStoreError(
                f"Failed to open hash store at {self._db_path}: {e}",
                operation="open",
                underlying_error=e,
            ) from e

        logger.info("Hash store opened: %s", self._db_path)

    async def flush(self) -> None:
        """Commit any outstanding writes."""
        if self._db is not None:
            async with self._write_lock:
                await self._db.commit()

    async def close(self) -> None:
        if self._db is None:
            return

        await self.flush()
        await self._db.close()
        self._db = None
        logger.info("Hash store closed: %s", self._db_path)

    async def __aenter__(self) -> "SQLiteHashStore":
        await self.open()
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.close()

    def _connection(self, operation: str) -> aiosqlite.Connection:
        if self._db is None:
            raise HashStoreError("Hash store is not open", operation=operation)
        return self._db

    async def get(self, reference: str) -> ContentHash | None:
        db = self._connection("get")
        try:
            cursor = await db.execute(
                "SELECT reference, source_prefix, hash, last_seen FROM content_hashes WHERE reference = ?",
                (reference,),
            )
            row = await cursor.fetchone()
        except aiosqlite.Error as e:
            raise HashStoreError(
                f"Failed to read hash for {reference}: {e}", operation="get", reference=reference, underlying_error=e
            ) from e

        if row is None:
            return None
        return ContentHash(
            reference=row["reference"],
            source_prefix=row["source_prefix"],
            hash=row["hash"],
            last_seen=datetime.fromisoformat(row["last_seen"]),
        )

    async def put(self, record: ContentHash) -> None:
        db = self._connection("put")
        async with self._write_lock:
            try:
                await db.execute(
                    _UPSERT_SQL,
                    (record.reference, record.source_prefix, record.hash, record.last_seen.isoformat()),
                )
                await db.commit()
            except aiosqlite.Error as e:
                raise HashStoreError(
                    f"Failed to store hash for {record.reference}: {e}",
                    operation="put",
                    reference=record.reference,
                    underlying_error=e,
                ) from e

    async def delete(self, reference: str) -> None:
        db = self._connection("delete")
        async with self._write_lock:
            try:
                await db.execute("DELETE FROM content_hashes WHERE reference = ?", (reference,))
                await db.commit()
            except aiosqlite.Error as e:
                raise HashStoreError(
                    f"Failed to delete hash for {reference}: {e}",
                    operation="delete",
                    reference=reference,
                    underlying_error=e,
                ) from e

    async def touch(self, reference: str, seen_at: datetime) -> bool:
        db = self._connection("touch")
        async with self._write_lock:
            try:
                cursor = await db.execute(
                    "UPDATE content_hashes SET last_seen = ? WHERE reference = ?",
                    (seen_at.isoformat(), reference),
                )
                await db.commit()
            except aiosqlite.Error as e:
                raise HashStoreError(
                    f"Failed to update last seen time for {reference}: {e}",
                    operation="touch",
                    reference=reference,
                    underlying_error=e,
                ) from e
        return bool(cursor.rowcount)

    async def all_references(self, source_prefix: str) -> set[str]:
        db = self._connection("all_references")
        try:
            cursor = await db.execute(
                "SELECT reference FROM content_hashes WHERE source_prefix = ?",
                (source_prefix,),
            )
            rows = await cursor.fetchall()
        except aiosqlite.Error as e:
            raise HashStoreError(
                f"Failed to list references for {source_prefix}: {e}",
                operation="all_references",
                underlying_error=e,
            ) from e
        return {row["reference"] for row in rows}

    async def clear(self, source_prefix: str | None = None) -> int:
        db = self._connection("clear")
        async with self._write_lock:
            try:
                if source_prefix is None:
                    cursor = await db.execute("DELETE FROM content_hashes")
                else:
                    cursor = await db.execute("DELETE FROM content_hashes WHERE source_prefix = ?", (source_prefix,))
                await db.commit()
            except aiosqlite.Error as e:
                raise HashStoreError(f"Failed to clear hashes: {e}", operation="clear", underlying_error=e) from e

        removed = cursor.rowcount if cursor.rowcount is not None else 0
        if removed:
            logger.info("Cleared %d hash records%s", removed, f" for {source_prefix}" if source_prefix else "")
        return removed
