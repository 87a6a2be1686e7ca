"""
LanceDB Vector Index

Persistent storage for StoredVector rows, plus a small key/value sidecar
for store metadata.
"""

from __future__ import annotations

import asyncio
import json
import threading
from pathlib import Path
from typing import Any

import lancedb
import numpy as np
import pyarrow as pa
import pyarrow.compute as pc
from filelock import FileLock

from vector_intel.types import StoredVector

TABLE_NAME = "vectors"
METADATA_FILE = "metadata.json"


def vector_schema(dimensions: int) -> pa.Schema:
    return pa.schema(
        [
            pa.field("id", pa.string(), nullable=False),
            pa.field("document_id", pa.string(), nullable=False),
            pa.field("paragraph_id", pa.string()),
            pa.field("text", pa.string()),
            pa.field("model_version", pa.string()),
            pa.field("metadata", pa.string()),
            pa.field("timestamp", pa.float64()),
            pa.field("vector", pa.list_(pa.float64(), dimensions)),
        ]
    )


class VectorIndex:
    """
    LanceDB table of stored vectors.

    Table:
        - vectors: id, document_id, paragraph_id, text, model_version,
          metadata (JSON string), timestamp, vector (fixed-size list)

    Writes go through merge-insert on id, so storing an existing id
    replaces it. The vector column is fixed-size: the first write fixes
    the dimension of the table.

    Thread safety:
        Uses thread-local storage for connections since LanceDB connections
        may not be thread-safe and asyncio.to_thread() may use different threads.
    """

    @staticmethod
    def _escape_sql_string(value: str) -> str:
        """Escape single quotes for SQL WHERE clauses."""
        return value.replace("'", "''")

    def __init__(self, path: Path | str):
        self.path = Path(path)
        self._local = threading.local()
        self._initialized = False
        self._metadata_lock = FileLock(str(self.path / (METADATA_FILE + ".lock")))

    async def initialize(self) -> None:
        """Create the directory (connections are created per-thread)."""
        if self._initialized:
            return

        def _init() -> None:
            self.path.mkdir(parents=True, exist_ok=True)

        await asyncio.to_thread(_init)
        self._initialized = True

    async def close(self) -> None:
        self._initialized = False
        if hasattr(self._local, "db"):
            self._local.db = None

    def _get_db(self) -> lancedb.DBConnection:
        """Get thread-local LanceDB connection, creating if needed."""
        if not self._initialized:
            raise RuntimeError("VectorIndex not initialized. Call initialize() first.")

        db = getattr(self._local, "db", None)
        if db is None:
            db = lancedb.connect(str(self.path))
            self._local.db = db
        return db

    @staticmethod
    def _table_names(db: lancedb.DBConnection) -> set[str]:
        """
        Return table names across LanceDB API variants.

        Recent LanceDB returns a response object from list_tables() with a
        `tables` attribute, while older versions return a plain list.
        """
        listed = db.list_tables()
        tables = getattr(listed, "tables", listed)
        return {str(name) for name in tables}

    def _open(self) -> Any:
        db = self._get_db()
        if TABLE_NAME not in self._table_names(db):
            return None
        return db.open_table(TABLE_NAME)

    # -------------------------------------------------------------------------
    # Row conversion
    # -------------------------------------------------------------------------

    @staticmethod
    def _to_row(vector: StoredVector) -> dict[str, Any]:
        return {
            "id": vector.id,
            "document_id": vector.document_id,
            "paragraph_id": vector.paragraph_id,
            "text": vector.text,
            "model_version": vector.model_version,
            "metadata": json.dumps(vector.metadata),
            "timestamp": vector.timestamp,
            "vector": [float(v) for v in vector.vector],
        }

    @staticmethod
    def _from_arrow(table: pa.Table) -> list[StoredVector]:
        rows = table.to_pylist()
        return [
            StoredVector(
                id=row["id"],
                document_id=row["document_id"],
                paragraph_id=row["paragraph_id"],
                text=row["text"] or "",
                model_version=row["model_version"] or "",
                metadata=json.loads(row["metadata"]) if row["metadata"] else {},
                timestamp=row["timestamp"],
                vector=list(row["vector"]),
            )
            for row in rows
        ]

    # -------------------------------------------------------------------------
    # Writes
    # -------------------------------------------------------------------------

    async def upsert(self, vectors: list[StoredVector]) -> None:
        """Insert or replace vectors by id. All vectors must share one dimension."""
        if not vectors:
            return

        def _upsert() -> None:
            db = self._get_db()
            schema = vector_schema(len(vectors[0].vector))
            if TABLE_NAME in self._table_names(db):
                table = db.open_table(TABLE_NAME)
                schema = table.schema
            else:
                table = db.create_table(TABLE_NAME, schema=schema)

            # Last write wins for repeated ids within one batch
            latest = {v.id: self._to_row(v) for v in vectors}
            data = pa.Table.from_pylist(list(latest.values()), schema=schema)
            (
                table.merge_insert("id")
                .when_matched_update_all()
                .when_not_matched_insert_all()
                .execute(data)
            )

        await asyncio.to_thread(_upsert)

    async def delete(self, ids: list[str]) -> None:
        if not ids:
            return

        def _delete() -> None:
            table = self._open()
            if table is None:
                return
            id_list = ", ".join(f"'{self._escape_sql_string(i)}'" for i in ids)
            table.delete(f"id IN ({id_list})")

        await asyncio.to_thread(_delete)

    async def delete_by_document(self, document_id: str) -> None:
        def _delete() -> None:
            table = self._open()
            if table is None:
                return
            table.delete(f"document_id = '{self._escape_sql_string(document_id)}'")

        await asyncio.to_thread(_delete)

    async def clear(self) -> None:
        def _clear() -> None:
            db = self._get_db()
            if TABLE_NAME in self._table_names(db):
                db.drop_table(TABLE_NAME)

        await asyncio.to_thread(_clear)

    # -------------------------------------------------------------------------
    # Reads
    # -------------------------------------------------------------------------

    def _read(self, column: str | None = None, values: list[str] | None = None) -> list[StoredVector]:
        table = self._open()
        if table is None:
            return []
        data = table.to_arrow()
        if column is not None and values is not None:
            mask = pc.is_in(data[column], value_set=pa.array(values, type=pa.string()))
            data = data.filter(mask)
        return self._from_arrow(data)

    def _read_matrix(self, document_id: str | None) -> tuple[list[str], np.ndarray]:
        table = self._open()
        if table is None:
            return [], np.empty((0, 0))
        data = table.to_arrow().select(["id", "document_id", "vector"])
        if document_id is not None:
            data = data.filter(pc.equal(data["document_id"], document_id))
        ids = data["id"].to_pylist()
        dimensions = data.schema.field("vector").type.list_size
        if not ids:
            return [], np.empty((0, dimensions))
        values = data["vector"].combine_chunks().flatten().to_numpy(zero_copy_only=False)
        return ids, values.reshape(len(ids), dimensions)

    async def vector_matrix(self, document_id: str | None = None) -> tuple[list[str], np.ndarray]:
        """
        Ids and vectors as an (n, dimensions) matrix, optionally for one document.

        Only the id, document_id and vector columns are read; rows are never
        converted to StoredVector.
        """
        return await asyncio.to_thread(self._read_matrix, document_id)

    async def get(self, ids: list[str]) -> list[StoredVector]:
        if not ids:
            return []
        return await asyncio.to_thread(self._read, "id", ids)

    async def get_by_document(self, document_id: str) -> list[StoredVector]:
        return await asyncio.to_thread(self._read, "document_id", [document_id])

    async def all(self) -> list[StoredVector]:
        return await asyncio.to_thread(self._read)

    async def count(self) -> int:
        def _count() -> int:
            table = self._open()
            return 0 if table is None else table.count_rows()

        return await asyncio.to_thread(_count)

    async def document_count(self) -> int:
        def _documents() -> int:
            table = self._open()
            if table is None:
                return 0
            return len(pc.unique(table.to_arrow()["document_id"]))

        return await asyncio.to_thread(_documents)

    async def dimensions(self) -> int | None:
        """Vector dimension of the stored table, or None before the first write."""
        def _dimensions() -> int | None:
            table = self._open()
            if table is None:
                return None
            vector_type = table.schema.field("vector").type
            return getattr(vector_type, "list_size", None)

        return await asyncio.to_thread(_dimensions)

    # -------------------------------------------------------------------------
    # Store metadata sidecar
    # -------------------------------------------------------------------------

    def _read_metadata(self) -> dict[str, Any]:
        path = self.path / METADATA_FILE
        if not path.exists():
            return {}
        return json.loads(path.read_text(encoding="utf-8"))

    async def get_metadata(self, key: str) -> Any:
        def _get() -> Any:
            with self._metadata_lock:
                return self._read_metadata().get(key)

        return await asyncio.to_thread(_get)

    async def set_metadata(self, key: str, value: Any) -> None:
        def _set() -> None:
            with self._metadata_lock:
                data = self._read_metadata()
                data[key] = value
                path = self.path / METADATA_FILE
                tmp = path.with_suffix(".json.tmp")
                tmp.write_text(json.dumps(data, indent=2, sort_keys=True), encoding="utf-8")
                tmp.replace(path)

        await asyncio.to_thread(_set)
