"""
Local Persistent Embedding Store

DuckDB file database holding the embeddings-cache table. Survives process
restarts; the multi-tier cache uses it as the middle tier.

Table: embedding_cache
    key            VARCHAR               "{model_version}:{text}"
    text           VARCHAR
    model_version  VARCHAR
    vector         DOUBLE[]
    created_at     DOUBLE                creation time (epoch seconds)
    last_accessed  DOUBLE
    access_count   INTEGER

Non-unique indexes on created_at, model_version and last_accessed; key is
not constrained, so put() replaces with delete + insert.

Thread safety:
    Uses thread-local cursors since DuckDB connections are not thread-safe
    and asyncio.to_thread() may use different threads.
"""

from __future__ import annotations

import asyncio
import threading
import time
from pathlib import Path

import duckdb

from vector_intel.types import EmbeddingVector

TABLE = "embedding_cache"
DB_FILENAME = "embeddings_cache.duckdb"
INDEXED_COLUMNS = ("created_at", "model_version", "last_accessed")


def cache_key(text: str, model_version: str) -> str:
    """Content address for a (text, model_version) pair."""
    return f"{model_version}:{text}"


class LocalEmbeddingStore:
    """
    DuckDB-backed embeddings cache store.

    Args:
        path: Directory that holds the database file
    """

    def __init__(self, path: Path | str) -> None:
        self.path = Path(path)
        self.db_path = self.path / DB_FILENAME
        self._db: duckdb.DuckDBPyConnection | None = None
        self._local = threading.local()

    async def initialize(self) -> None:
        """Open the database and create the table."""
        if self._db is not None:
            return

        def _init() -> duckdb.DuckDBPyConnection:
            self.path.mkdir(parents=True, exist_ok=True)
            db = duckdb.connect(str(self.db_path))
            db.execute(f"""
                CREATE TABLE IF NOT EXISTS {TABLE} (
                    key VARCHAR NOT NULL,
                    text VARCHAR,
                    model_version VARCHAR,
                    vector DOUBLE[],
                    created_at DOUBLE,
                    last_accessed DOUBLE,
                    access_count INTEGER
                )
            """)
            for column in INDEXED_COLUMNS:
                db.execute(f"CREATE INDEX IF NOT EXISTS idx_{TABLE}_{column} ON {TABLE} ({column})")
            return db

        self._db = await asyncio.to_thread(_init)

    async def close(self) -> None:
        if self._db is None:
            return
        db, self._db = self._db, None
        self._local = threading.local()
        await asyncio.to_thread(db.close)

    def _cursor(self) -> duckdb.DuckDBPyConnection:
        """Get thread-local cursor, creating if needed."""
        if self._db is None:
            raise RuntimeError("Local embedding store not initialized. Call initialize() first.")
        cursor = getattr(self._local, "cursor", None)
        if cursor is None:
            cursor = self._db.cursor()
            self._local.cursor = cursor
        return cursor

    async def get(self, text: str, model_version: str) -> EmbeddingVector | None:
        """Fetch one entry and bump its access statistics."""
        key = cache_key(text, model_version)

        def _get() -> EmbeddingVector | None:
            cursor = self._cursor()
            row = cursor.execute(
                f"SELECT text, model_version, vector, created_at FROM {TABLE} WHERE key = ?",
                [key],
            ).fetchone()
            if row is None:
                return None
            cursor.execute(
                f"UPDATE {TABLE} SET last_accessed = ?, access_count = access_count + 1 "
                "WHERE key = ?",
                [time.time(), key],
            )
            return EmbeddingVector(
                text=row[0],
                model_version=row[1],
                vector=list(row[2]),
                timestamp=row[3],
            )

        return await asyncio.to_thread(_get)

    async def put(self, vector: EmbeddingVector) -> None:
        key = cache_key(vector.text, vector.model_version)

        def _put() -> None:
            now = time.time()
            cursor = self._cursor()
            # Last writer wins: replace any existing row for the key
            cursor.execute("BEGIN TRANSACTION")
            try:
                cursor.execute(f"DELETE FROM {TABLE} WHERE key = ?", [key])
                cursor.execute(
                    f"INSERT INTO {TABLE} "
                    "(key, text, model_version, vector, created_at, last_accessed, access_count) "
                    "VALUES (?, ?, ?, ?, ?, ?, ?)",
                    [key, vector.text, vector.model_version, vector.vector, vector.timestamp, now, 0],
                )
            except Exception:
                cursor.execute("ROLLBACK")
                raise
            cursor.execute("COMMIT")

        await asyncio.to_thread(_put)

    async def delete(self, text: str, model_version: str) -> None:
        key = cache_key(text, model_version)
        await asyncio.to_thread(
            lambda: self._cursor().execute(f"DELETE FROM {TABLE} WHERE key = ?", [key])
        )

    async def delete_expired(self, cutoff: float) -> int:
        """Delete entries created before cutoff. Returns count removed."""

        def _delete() -> int:
            cursor = self._cursor()
            row = cursor.execute(
                f"SELECT COUNT(*) FROM {TABLE} WHERE created_at < ?", [cutoff]
            ).fetchone()
            count = int(row[0]) if row else 0
            if count:
                cursor.execute(f"DELETE FROM {TABLE} WHERE created_at < ?", [cutoff])
            return count

        return await asyncio.to_thread(_delete)

    async def clear(self) -> None:
        await asyncio.to_thread(lambda: self._cursor().execute(f"DELETE FROM {TABLE}"))

    async def count(self) -> int:
        def _count() -> int:
            row = self._cursor().execute(f"SELECT COUNT(*) FROM {TABLE}").fetchone()
            return int(row[0]) if row else 0

        return await asyncio.to_thread(_count)
