"""
Embedding Providers

Provider-agnostic interface for turning text into vectors.

Modules:
    base: Abstract EmbeddingProvider interface
    embedding/: Provider implementations (onnx, remote, hashing)
    model_loader: Checksum-verified model artifact downloads

Supported Providers:
    - "local": ONNX all-MiniLM-L6-v2 run in-process (default)
    - "remote": POST /v1/embeddings through RemoteClient
    - "hashing": Feature-hashing fallback, no model needed

Example:
    >>> provider = create_embedding_provider(IntelConfig(), client)
    >>> await provider.initialize()
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from vector_intel.providers.base import EmbeddingProvider
from vector_intel.providers.model_loader import ModelLoader

if TYPE_CHECKING:
    from vector_intel.client import RemoteClient
    from vector_intel.config import IntelConfig
    from vector_intel.providers.model_loader import ProgressCallback


def create_embedding_provider(
    config: "IntelConfig",
    client: "RemoteClient | None" = None,
    loader: ModelLoader | None = None,
    on_progress: "ProgressCallback | None" = None,
) -> EmbeddingProvider:
    """
    Build the provider named by config.embedding_provider.

    Raises:
        ValueError: Unknown provider name, or "remote" without a client
    """
    name = config.embedding_provider.lower()

    if name == "local":
        from vector_intel.providers.embedding.onnx import OnnxEmbeddingProvider
        return OnnxEmbeddingProvider.from_config(config, loader=loader, on_progress=on_progress)

    if name == "remote":
        if client is None:
            raise ValueError("The remote embedding provider requires a RemoteClient")
        from vector_intel.providers.embedding.remote import RemoteEmbeddingProvider
        return RemoteEmbeddingProvider(
            client,
            model=config.embedding_model,
            model_version=config.embedding_model_version,
            dimensions=config.embedding_dimensions,
            concurrency=config.embedding_concurrency,
        )

    if name == "hashing":
        from vector_intel.providers.embedding.hashing import HashingEmbeddingProvider
        return HashingEmbeddingProvider(dimensions=config.embedding_dimensions)

    raise ValueError(
        f"Unknown embedding provider {config.embedding_provider!r} "
        "(expected 'local', 'remote' or 'hashing')"
    )


__all__ = ["EmbeddingProvider", "ModelLoader", "create_embedding_provider"]
