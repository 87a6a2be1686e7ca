"""
Abstract Provider Interfaces

Base class for embedding providers.
"""

from abc import ABC, abstractmethod


class EmbeddingProvider(ABC):
    """Abstract interface for embedding providers."""

    async def initialize(self) -> None:
        """Load models or open connections. Called once before first use."""
        return None

    async def close(self) -> None:
        """Release resources."""
        return None

    @abstractmethod
    async def embed(self, texts: list[str]) -> list[list[float]]:
        """Generate embeddings for texts."""
        ...

    @abstractmethod
    async def embed_single(self, text: str) -> list[float]:
        """Generate embedding for a single text."""
        ...

    @property
    @abstractmethod
    def dimensions(self) -> int:
        """Embedding dimensions."""
        ...

    @property
    @abstractmethod
    def model_name(self) -> str:
        """Current model name."""
        ...

    @property
    @abstractmethod
    def model_version(self) -> str:
        """Version tag; embeddings from different versions never share cache keys."""
        ...
