"""
Hashing Embedding Provider

Degraded-mode fallback used when the primary model cannot be loaded.
Terms are hashed into a fixed number of buckets (signed feature hashing),
weighted by sublinear term frequency (1 + log tf) and L2-normalized.

Vectors only capture lexical overlap, so this provider carries its own
model_version and never shares cache entries with a neural model.
"""

from __future__ import annotations

import hashlib
import math
import re
from collections import Counter

import numpy as np

from vector_intel.providers.base import EmbeddingProvider
from vector_intel.providers.embedding.pooling import l2_normalize

HASHING_MODEL_VERSION = "hashing-tf-v1"

_TOKEN_RE = re.compile(r"\w+", re.UNICODE)


def tokenize(text: str) -> list[str]:
    return _TOKEN_RE.findall(text.lower())


def _bucket(term: str, dimensions: int) -> tuple[int, float]:
    digest = hashlib.blake2b(term.encode("utf-8"), digest_size=8).digest()
    value = int.from_bytes(digest, "little")
    sign = 1.0 if value & 1 else -1.0
    return (value >> 1) % dimensions, sign


class HashingEmbeddingProvider(EmbeddingProvider):
    """Feature-hashing embeddings; no model files, no network."""

    def __init__(self, dimensions: int = 384, model_version: str = HASHING_MODEL_VERSION) -> None:
        if dimensions < 1:
            raise ValueError("dimensions must be positive")
        self._dimensions = dimensions
        self._model_version = model_version

    @property
    def dimensions(self) -> int:
        return self._dimensions

    @property
    def model_name(self) -> str:
        return "hashing-tf"

    @property
    def model_version(self) -> str:
        return self._model_version

    def vectorize(self, text: str) -> np.ndarray:
        vector = np.zeros(self._dimensions, dtype=np.float64)
        for term, count in Counter(tokenize(text)).items():
            index, sign = _bucket(term, self._dimensions)
            vector[index] += sign * (1.0 + math.log(count))
        return l2_normalize(vector)

    async def embed(self, texts: list[str]) -> list[list[float]]:
        return [self.vectorize(t).tolist() for t in texts]

    async def embed_single(self, text: str) -> list[float]:
        return self.vectorize(text).tolist()
