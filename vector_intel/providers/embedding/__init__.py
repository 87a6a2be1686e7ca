"""
Embedding Provider Implementations

Modules:
    onnx: Local ONNX model (all-MiniLM-L6-v2, 384 dimensions)
    remote: Remote embedding endpoint via RemoteClient
    hashing: Feature-hashing fallback (degraded mode)
    tokenizer: WordPiece tokenizer for the local model
    pooling: Mean pooling and L2 normalization

Each provider implements the EmbeddingProvider interface with:
    - embed(): Batch embedding generation
    - embed_single(): Single text embedding
    - dimensions / model_name / model_version

Example:
    >>> from vector_intel.providers.embedding import HashingEmbeddingProvider
    >>> provider = HashingEmbeddingProvider(dimensions=384)
    >>> vectors = await provider.embed(["Hello", "World"])
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from vector_intel.providers.embedding.hashing import HashingEmbeddingProvider

if TYPE_CHECKING:
    from vector_intel.providers.embedding.onnx import OnnxEmbeddingProvider
    from vector_intel.providers.embedding.remote import RemoteEmbeddingProvider


def __getattr__(name: str):
    """Lazy import of providers to avoid requiring all dependencies."""
    if name == "OnnxEmbeddingProvider":
        from vector_intel.providers.embedding.onnx import OnnxEmbeddingProvider
        return OnnxEmbeddingProvider
    if name == "RemoteEmbeddingProvider":
        from vector_intel.providers.embedding.remote import RemoteEmbeddingProvider
        return RemoteEmbeddingProvider
    raise AttributeError(f"module {__name__!r} has no attribute {name!r}")


__all__ = ["OnnxEmbeddingProvider", "RemoteEmbeddingProvider", "HashingEmbeddingProvider"]
