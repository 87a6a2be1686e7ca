"""
Remote Vector Service

Namespace-scoped vector operations against the remote service:

    upsert      POST   /v1/vector/upsert
    search      POST   /v1/vector/search
    delete      DELETE /v1/vector/delete
    get_by_ids  POST   /v1/vector/batch-get
    get_stats   GET    /v1/vector/stats

Responses may arrive bare or wrapped in {success, data, error}; both
shapes are accepted.
"""

from __future__ import annotations

import logging
import math
from typing import Any

from vector_intel.client import RemoteClient
from vector_intel.errors import RemoteOperationError
from vector_intel.types import VectorRecord, VectorSearchResult

logger = logging.getLogger(__name__)

DEFAULT_BATCH_SIZE = 50
DEFAULT_TOP_K = 10
DEFAULT_MIN_SIMILARITY = 0.5


def unwrap(payload: Any, operation: str) -> Any:
    """Strip a {success, data, error} envelope, raising on success=false."""
    if isinstance(payload, dict) and "success" in payload:
        if not payload["success"]:
            error = payload.get("error")
            if isinstance(error, dict):
                error = error.get("message", error)
            raise RemoteOperationError(operation, str(error or ""))
        return payload.get("data")
    return payload


def validate_records(records: list[VectorRecord]) -> None:
    """
    Check records before upload.

    Raises:
        ValueError: Missing id or text, empty or non-finite vector,
            or mixed dimensions
    """
    for record in records:
        if not record.id:
            raise ValueError("Vector record id is required")
        if not record.vector:
            raise ValueError(f"Empty vector for record {record.id}")
        if not record.text:
            raise ValueError(f"Text is required for record {record.id}")
        if not all(math.isfinite(v) for v in record.vector):
            raise ValueError(f"Vector must contain only finite numbers for record {record.id}")

    dimensions = {len(r.vector) for r in records}
    if len(dimensions) > 1:
        raise ValueError("All vector records must have the same dimension")


class RemoteVectorService:
    """
    Vector operations in one remote namespace.

    Args:
        client: Shared RemoteClient
        namespace: Namespace isolating this service's vectors
        batch_size: Records per upsert request
    """

    def __init__(
        self,
        client: RemoteClient,
        namespace: str | None = None,
        batch_size: int = DEFAULT_BATCH_SIZE,
    ) -> None:
        self.client = client
        self.namespace = namespace
        self.batch_size = max(1, batch_size)

    async def upsert(
        self,
        records: list[VectorRecord],
        metadata: dict[str, Any] | None = None,
    ) -> list[str]:
        """Upload records in batches. Returns the ids the service acknowledged."""
        if not records:
            return []
        validate_records(records)

        upserted: list[str] = []
        for i in range(0, len(records), self.batch_size):
            batch = records[i : i + self.batch_size]
            payload = await self.client.post(
                "/v1/vector/upsert",
                {
                    "embeddings": [r.model_dump() for r in batch],
                    "namespace": self.namespace,
                    "metadata": metadata or {},
                },
            )
            data = unwrap(payload, "Vector upsert") or {}
            upserted.extend(data.get("ids", [r.id for r in batch]))
            for failure in data.get("errors") or []:
                logger.warning("Vector upsert rejected %s: %s", failure.get("id"), failure.get("error"))

        self.client.invalidate_cache("/v1/vector/stats")
        return upserted

    async def search(
        self,
        vector: list[float],
        top_k: int = DEFAULT_TOP_K,
        min_similarity: float = DEFAULT_MIN_SIMILARITY,
        filter: dict[str, Any] | None = None,
    ) -> list[VectorSearchResult]:
        if not vector:
            raise ValueError("Query vector cannot be empty")

        payload = await self.client.post(
            "/v1/vector/search",
            {
                "vector": vector,
                "topK": top_k,
                "minSimilarity": min_similarity,
                "includeMetadata": True,
                "filter": filter,
                "namespace": self.namespace,
            },
        )
        data = unwrap(payload, "Vector search") or {}
        results = data.get("results", []) if isinstance(data, dict) else data
        return [VectorSearchResult.model_validate(r) for r in results]

    async def delete(
        self,
        ids: list[str] | None = None,
        filter: dict[str, Any] | None = None,
    ) -> None:
        """Delete by ids, by metadata filter, or both. No-op when neither is given."""
        if not ids and not filter:
            return
        payload = await self.client.delete(
            "/v1/vector/delete",
            {"ids": ids or [], "namespace": self.namespace, "filter": filter},
        )
        unwrap(payload, "Vector delete")
        self.client.invalidate_cache("/v1/vector/stats")

    async def get_by_ids(self, ids: list[str]) -> list[VectorRecord]:
        if not ids:
            return []
        payload = await self.client.post("/v1/vector/batch-get", {"ids": ids})
        data = unwrap(payload, "Vector batch get") or {}
        return [VectorRecord.model_validate(e) for e in data.get("embeddings", [])]

    async def get_stats(self) -> dict[str, Any]:
        params = {"namespace": self.namespace} if self.namespace else None
        payload = await self.client.get("/v1/vector/stats", params)
        return unwrap(payload, "Vector stats") or {}
