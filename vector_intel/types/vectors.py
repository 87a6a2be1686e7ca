"""
Vector Types

Storage Models:
    - EmbeddingVector: Text plus its embedding under one model version
    - StoredVector: EmbeddingVector owned by the vector store (id, document)

Result Models:
    - SimilarityResult: One ranked hit from find_similar
    - BatchEmbeddingResult: Output of EmbeddingService.embed_batch
    - SimilarPassage: A source passage paired with a similar target passage
    - LinkSuggestion: A suggested link between two paragraphs
    - SimilarityStats: Summary of a set of similarity scores
"""

import time
from typing import Any

from pydantic import BaseModel, ConfigDict, Field


def _now() -> float:
    return time.time()


class EmbeddingVector(BaseModel):
    """
    A text span and its embedding.

    For a fixed model_version the vector dimension is constant, and the
    (text, model_version) pair addresses exactly one cached vector.

    Attributes:
        text: Source text
        vector: Embedding values
        model_version: Version tag of the model that produced the vector
        timestamp: Creation time (epoch seconds)
    """

    text: str
    vector: list[float]
    model_version: str
    timestamp: float = Field(default_factory=_now)

    @property
    def dimensions(self) -> int:
        return len(self.vector)


class StoredVector(EmbeddingVector):
    """
    A persisted vector with document linkage.

    Created on indexing; deleted when its document is deleted or it is
    explicitly evicted.
    """

    id: str
    document_id: str
    paragraph_id: str | None = None
    metadata: dict[str, Any] = Field(default_factory=dict)


class SimilarityResult(BaseModel):
    """A single similarity hit, ranked from 1."""

    id: str
    document_id: str
    paragraph_id: str | None = None
    text: str
    score: float
    rank: int = 0
    metadata: dict[str, Any] = Field(default_factory=dict)


class BatchEmbeddingResult(BaseModel):
    """Batch embedding output. ``embeddings`` preserves input order."""

    embeddings: list[EmbeddingVector]
    cached_count: int = 0
    computed_count: int = 0
    duration_ms: float = 0.0

    model_config = ConfigDict(frozen=True)


class SimilarPassage(BaseModel):
    """
    A pair of passages with similar meaning.

    Attributes:
        source_id: Stored vector id of the source ("source" for free text)
        target_id: Stored vector id of the matching passage
        score: Cosine similarity of the pair
        reason: Human-readable similarity band
    """

    source_id: str
    target_id: str
    source_document_id: str | None = None
    target_document_id: str
    source_paragraph_id: str | None = None
    target_paragraph_id: str | None = None
    source_text: str
    target_text: str
    score: float
    reason: str


class LinkSuggestion(BaseModel):
    source_paragraph_id: str
    target_paragraph_id: str
    score: float
    reason: str
    keywords: list[str] = Field(default_factory=list)


class SimilarityStats(BaseModel):
    """Mean, median, extremes and population standard deviation (all 0 when empty)."""

    count: int = 0
    mean: float = 0.0
    median: float = 0.0
    min: float = 0.0
    max: float = 0.0
    std_dev: float = 0.0
