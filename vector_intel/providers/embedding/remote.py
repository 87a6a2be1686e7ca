"""
Remote Embedding Provider

Delegates embedding to the remote service: POST /v1/embeddings {text}
returns {embedding}. Every call goes through RemoteClient, so it inherits
rate limiting, retries and the circuit breaker.

Batch calls fan out one request per text with bounded concurrency.
"""

from __future__ import annotations

import asyncio
import logging

from vector_intel.client import RemoteClient
from vector_intel.errors import DimensionMismatchError, NetworkError
from vector_intel.providers.base import EmbeddingProvider

logger = logging.getLogger(__name__)

EMBEDDINGS_PATH = "/v1/embeddings"


class RemoteEmbeddingProvider(EmbeddingProvider):
    """
    Embedding provider backed by the remote service.

    Args:
        client: Shared RemoteClient
        model: Model name reported by the service
        model_version: Version tag for cache keys
        dimensions: Expected output dimensionality
        concurrency: Maximum in-flight requests during embed()
    """

    def __init__(
        self,
        client: RemoteClient,
        *,
        model: str = "all-MiniLM-L6-v2",
        model_version: str = "remote-minilm-l6-v2",
        dimensions: int = 384,
        concurrency: int = 4,
    ) -> None:
        self.client = client
        self._model = model
        self._model_version = model_version
        self._dimensions = dimensions
        self._concurrency = max(1, concurrency)

    @property
    def dimensions(self) -> int:
        return self._dimensions

    @property
    def model_name(self) -> str:
        return self._model

    @property
    def model_version(self) -> str:
        return self._model_version

    async def embed_single(self, text: str) -> list[float]:
        payload = await self.client.post(EMBEDDINGS_PATH, {"text": text})
        if not isinstance(payload, dict) or "embedding" not in payload:
            raise NetworkError(f"Malformed embedding response from {EMBEDDINGS_PATH}")

        vector = [float(x) for x in payload["embedding"]]
        if len(vector) != self._dimensions:
            raise DimensionMismatchError(self._dimensions, len(vector))
        return vector

    async def embed(self, texts: list[str]) -> list[list[float]]:
        if not texts:
            return []

        semaphore = asyncio.Semaphore(self._concurrency)

        async def embed_one(text: str) -> list[float]:
            async with semaphore:
                return await self.embed_single(text)

        return list(await asyncio.gather(*(embed_one(t) for t in texts)))
