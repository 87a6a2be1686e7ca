"""
Result and Monitoring Types

Models returned by the remote client, caches, stores and model loader.
"""

import time
from typing import Any, Generic, Literal, TypeVar

from pydantic import BaseModel, Field

T = TypeVar("T")

HealthStatus = Literal["healthy", "degraded", "unhealthy"]
ModelStatus = Literal["unloaded", "loading", "loaded", "error"]


class CacheEntry(BaseModel, Generic[T]):
    """
    A cached value with a time-to-live.

    Expires when now - created_at > ttl (seconds).
    """

    key: str
    value: T
    ttl: float
    created_at: float = Field(default_factory=time.time)

    def is_expired(self, now: float | None = None) -> bool:
        current = time.time() if now is None else now
        return current - self.created_at > self.ttl


class ServiceHealth(BaseModel):
    """Aggregated per-service health probes."""

    status: HealthStatus
    services: dict[str, bool] = Field(default_factory=dict)
    uptime: float = 0.0


class ServiceMetrics(BaseModel):
    """Running request metrics for the remote client."""

    request_count: int = 0
    error_count: int = 0
    avg_response_time: float = 0.0
    """Exponential moving average of request latency in milliseconds"""
    cache_hit_rate: float = 0.0
    active_connections: int = 0


class RateLimitUsage(BaseModel):
    current: int
    max: int
    reset_in: float
    """Seconds until the oldest call leaves the window"""


class CacheStats(BaseModel):
    """Hit/miss counters for the multi-tier embedding cache."""

    memory_hits: int = 0
    local_hits: int = 0
    remote_hits: int = 0
    misses: int = 0
    hit_rate: float = 0.0
    memory_size: int = 0
    local_size: int = 0


class VectorStoreStats(BaseModel):
    total_vectors: int = 0
    cached_vectors: int = 0
    documents: int = 0
    total_searches: int = 0
    avg_search_time_ms: float = 0.0
    slow_searches: int = 0


class ModelLoadProgress(BaseModel):
    """Streaming download progress."""

    loaded: int
    total: int | None = None
    percentage: float | None = None


class VectorRecord(BaseModel):
    """A vector sent to or read from the remote vector service."""

    id: str
    vector: list[float]
    text: str = ""
    metadata: dict[str, Any] = Field(default_factory=dict)


class VectorSearchResult(BaseModel):
    id: str
    score: float
    text: str = ""
    metadata: dict[str, Any] = Field(default_factory=dict)
    distance: float | None = None
