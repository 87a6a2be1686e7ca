"""
Resilient Remote Client

Every outbound call to the remote vector/graph/entity/cluster service goes
through RemoteClient, which layers (outermost first):

    1. Response cache      - GET responses, keyed by method+path+params
    2. Rate limiter        - sliding window, waits for a free slot
    3. Retry loop          - exponential backoff, retry_delay * 2**attempt
    4. Circuit breaker     - fail fast while the service is down
    5. HTTP transport      - httpx, per-call timeout

Error policy:
    ClientError (4xx) and CircuitOpenError propagate immediately.
    NetworkError / RequestTimeoutError are retried until attempts run out,
    then the last error is raised.

Example:
    >>> async with RemoteClient(IntelConfig()) as client:
    ...     result = await client.post("/v1/vector/search", {"vector": v, "topK": 5})
    ...     health = await client.health_check()
"""

from __future__ import annotations

import asyncio
import json
import logging
import re
import time
from typing import Any

import httpx

from vector_intel.client.circuit_breaker import CircuitBreaker, CircuitState
from vector_intel.client.http import HttpTransport
from vector_intel.client.rate_limiter import SlidingWindowRateLimiter
from vector_intel.client.response_cache import ResponseCache
from vector_intel.config import IntelConfig
from vector_intel.errors import ClientError, is_retryable
from vector_intel.types import RateLimitUsage, ServiceHealth, ServiceMetrics

logger = logging.getLogger(__name__)

# Weight of the newest sample in the latency moving average
METRICS_EMA_ALPHA = 0.2

_API_KEY_PATTERN = re.compile(r"^rv_[a-zA-Z0-9]{32,}$")


def _is_breaker_failure(error: Exception) -> bool:
    # 4xx means the service answered; only the request was bad
    return not isinstance(error, ClientError)


class RemoteClient:
    """
    Resilient client for the remote vector/graph service.

    Breaker, limiter, response-cache and metrics state is owned by the
    instance and shared by every caller holding it. Construct one per
    application and pass it to the services that need it; call reset()
    between tests.

    Args:
        config: Configuration (defaults read from the environment)
        transport: Optional httpx transport, e.g. httpx.MockTransport
    """

    def __init__(
        self,
        config: IntelConfig | None = None,
        *,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.config = config or IntelConfig()
        self.local_mode = self.config.local_mode
        self._http = HttpTransport(
            self.config.remote_base_url,
            timeout=self.config.remote_timeout,
            api_key=self.config.remote_api_key,
            local_mode=self.local_mode,
            transport=transport,
        )
        self.circuit_breaker = CircuitBreaker(
            failure_threshold=self.config.circuit_failure_threshold,
            cooldown=self.config.circuit_cooldown,
            success_threshold=self.config.circuit_success_threshold,
        )
        self.rate_limiter = SlidingWindowRateLimiter(
            max_requests=self.config.remote_rate_limit_per_minute,
            window=60.0,
        )
        self.cache = ResponseCache(default_ttl=self.config.remote_cache_ttl)
        self._metrics = ServiceMetrics()
        self._cache_lookups = 0
        self._cache_hits = 0
        self._start_time = time.monotonic()

    async def __aenter__(self) -> "RemoteClient":
        return self

    async def __aexit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        await self.close()

    # -------------------------------------------------------------------------
    # Requests
    # -------------------------------------------------------------------------

    @staticmethod
    def cache_key(method: str, path: str, params: dict[str, Any] | None = None) -> str:
        return f"{method.upper()}:{path}:{json.dumps(params or {}, sort_keys=True)}"

    async def request(
        self,
        method: str,
        path: str,
        *,
        params: dict[str, Any] | None = None,
        body: Any = None,
        headers: dict[str, str] | None = None,
        timeout: float | None = None,
    ) -> Any:
        """
        Send a request through cache, limiter, retry and breaker.

        Args:
            method: HTTP method
            path: Path relative to the configured base URL
            params: Query parameters (part of the cache key)
            body: JSON body
            headers: Extra headers
            timeout: Per-call timeout override in seconds

        Returns:
            Decoded JSON response

        Raises:
            ClientError: 4xx response (not retried)
            CircuitOpenError: Breaker open (network not attempted)
            NetworkError / RequestTimeoutError: After retries are exhausted
        """
        method = method.upper()
        cacheable = method == "GET" and self.config.remote_cache_enabled
        key = self.cache_key(method, path, params)

        if cacheable:
            self._cache_lookups += 1
            cached = self.cache.get(key)
            if cached is not None:
                self._cache_hits += 1
                self._update_hit_rate()
                return cached
            self._update_hit_rate()

        await self.rate_limiter.wait_for_slot()

        start = time.perf_counter()
        attempts = max(1, self.config.remote_retry_attempts)
        last_error: Exception | None = None

        for attempt in range(attempts):
            try:
                result = await self.circuit_breaker.execute(
                    lambda: self._send(method, path, params, body, headers, timeout),
                    is_failure=_is_breaker_failure,
                )
            except ClientError:
                self._metrics.error_count += 1
                self._record_latency(start)
                raise
            except Exception as e:
                self._metrics.error_count += 1
                if not is_retryable(e):
                    self._record_latency(start)
                    raise
                last_error = e
                if attempt < attempts - 1:
                    delay = self.config.remote_retry_delay * (2 ** attempt)
                    logger.warning(
                        "%s %s failed (attempt %d/%d): %s; retrying in %.2fs",
                        method, path, attempt + 1, attempts, e, delay,
                    )
                    await asyncio.sleep(delay)
                continue

            self._record_latency(start)
            if cacheable and result is not None:
                self.cache.set(key, result)
                self.cache.start()
            return result

        self._record_latency(start)
        logger.error("%s %s failed after %d attempts: %s", method, path, attempts, last_error)
        if last_error is None:
            raise RuntimeError(f"{method} {path}: no attempts were made")
        raise last_error

    async def _send(
        self,
        method: str,
        path: str,
        params: dict[str, Any] | None,
        body: Any,
        headers: dict[str, str] | None,
        timeout: float | None,
    ) -> Any:
        self._metrics.active_connections += 1
        try:
            return await self._http.request(
                method, path, params=params, body=body, headers=headers, timeout=timeout
            )
        finally:
            self._metrics.active_connections -= 1

    async def get(self, path: str, params: dict[str, Any] | None = None, **kwargs: Any) -> Any:
        return await self.request("GET", path, params=params, **kwargs)

    async def post(self, path: str, body: Any = None, **kwargs: Any) -> Any:
        return await self.request("POST", path, body=body, **kwargs)

    async def delete(self, path: str, body: Any = None, **kwargs: Any) -> Any:
        return await self.request("DELETE", path, body=body, **kwargs)

    def invalidate_cache(self, prefix: str | None = None) -> int:
        """Drop cached GET responses; all of them, or those under a path prefix."""
        if prefix is None:
            removed = self.cache.size
            self.cache.clear()
            return removed
        return self.cache.invalidate(f"GET:{prefix}")

    # -------------------------------------------------------------------------
    # Metrics
    # -------------------------------------------------------------------------

    def _record_latency(self, start: float) -> None:
        duration_ms = (time.perf_counter() - start) * 1000
        self._metrics.request_count += 1
        if self._metrics.request_count == 1:
            self._metrics.avg_response_time = duration_ms
        else:
            self._metrics.avg_response_time = (
                METRICS_EMA_ALPHA * duration_ms
                + (1 - METRICS_EMA_ALPHA) * self._metrics.avg_response_time
            )

    def _update_hit_rate(self) -> None:
        if self._cache_lookups:
            self._metrics.cache_hit_rate = self._cache_hits / self._cache_lookups

    def get_metrics(self) -> ServiceMetrics:
        return self._metrics.model_copy()

    def get_rate_limit_usage(self) -> RateLimitUsage:
        return self.rate_limiter.get_usage()

    @property
    def circuit_state(self) -> CircuitState:
        return self.circuit_breaker.state

    # -------------------------------------------------------------------------
    # Health
    # -------------------------------------------------------------------------

    async def health_check(self) -> ServiceHealth:
        """
        Probe /v1/{service}/health for every enabled service concurrently.

        healthy: all probes pass; degraded: some pass; unhealthy: none pass.
        """
        services = list(self.config.remote_services)
        results = await asyncio.gather(
            *(
                self.request("GET", f"/v1/{service}/health")
                for service in services
            ),
            return_exceptions=True,
        )
        status_by_service = {
            service: not isinstance(result, BaseException)
            for service, result in zip(services, results)
        }
        for service, result in zip(services, results):
            if isinstance(result, BaseException):
                logger.warning("Health probe for %s failed: %s", service, result)

        healthy = sum(status_by_service.values())
        if healthy == len(services):
            status = "healthy"
        elif healthy > 0:
            status = "degraded"
        else:
            status = "unhealthy"

        return ServiceHealth(
            status=status,
            services=status_by_service,
            uptime=time.monotonic() - self._start_time,
        )

    # -------------------------------------------------------------------------
    # Lifecycle
    # -------------------------------------------------------------------------

    @staticmethod
    def validate_api_key(api_key: str) -> bool:
        return bool(_API_KEY_PATTERN.match(api_key))

    def reset(self) -> None:
        """Reset breaker, limiter, response cache and metrics."""
        self.circuit_breaker.reset()
        self.rate_limiter.reset()
        self.cache.clear()
        self._metrics = ServiceMetrics()
        self._cache_lookups = 0
        self._cache_hits = 0
        self._start_time = time.monotonic()

    async def close(self) -> None:
        await self.cache.stop()
        await self._http.close()
