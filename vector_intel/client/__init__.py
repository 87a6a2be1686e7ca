"""
Resilient Remote Client

Modules:
    client: RemoteClient (cache, rate limit, retry, circuit breaker, metrics)
    circuit_breaker: CircuitBreaker state machine
    rate_limiter: SlidingWindowRateLimiter
    response_cache: TTL cache for GET responses
    http: httpx transport with error translation
"""

from vector_intel.client.circuit_breaker import CircuitBreaker, CircuitState
from vector_intel.client.client import RemoteClient
from vector_intel.client.rate_limiter import SlidingWindowRateLimiter
from vector_intel.client.response_cache import ResponseCache

__all__ = [
    "RemoteClient",
    "CircuitBreaker",
    "CircuitState",
    "SlidingWindowRateLimiter",
    "ResponseCache",
]
