"""
Shared Remote Embedding Store

Third cache tier: embeddings shared across machines through the remote
service. Text is addressed by its SHA-256 hash; only a short preview of the
text is sent.

Endpoints:
    GET  /v1/embeddings/cache?text_hash=...&model_version=...  -> {embedding: {...}}
    POST /v1/embeddings/cache                                  -> upsert
"""

from __future__ import annotations

import hashlib
import time
from typing import TYPE_CHECKING, Any

from vector_intel.errors import ClientError
from vector_intel.types import EmbeddingVector

if TYPE_CHECKING:
    from vector_intel.client import RemoteClient

CACHE_PATH = "/v1/embeddings/cache"
TEXT_PREVIEW_CHARS = 200


def text_hash(text: str) -> str:
    return hashlib.sha256(text.encode("utf-8")).hexdigest()


class RemoteEmbeddingStore:
    """Remote tier backed by the RemoteClient."""

    def __init__(self, client: "RemoteClient") -> None:
        self.client = client

    async def get(self, text: str, model_version: str) -> EmbeddingVector | None:
        """Return the shared embedding, or None on a 404 / empty response."""
        try:
            payload = await self.client.get(
                CACHE_PATH,
                params={"text_hash": text_hash(text), "model_version": model_version},
            )
        except ClientError as e:
            if e.status == 404:
                return None
            raise

        record: dict[str, Any] | None = (payload or {}).get("embedding")
        if not record or not record.get("vector"):
            return None
        return EmbeddingVector(
            text=text,
            vector=record["vector"],
            model_version=record.get("model_version", model_version),
            timestamp=record.get("timestamp") or time.time(),
        )

    async def put(self, vector: EmbeddingVector) -> None:
        await self.client.post(
            CACHE_PATH,
            {
                "text_hash": text_hash(vector.text),
                "text_preview": vector.text[:TEXT_PREVIEW_CHARS],
                "model_version": vector.model_version,
                "vector": vector.vector,
                "timestamp": vector.timestamp,
            },
        )
        self.client.invalidate_cache(CACHE_PATH)
