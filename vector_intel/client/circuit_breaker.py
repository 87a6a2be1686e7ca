"""
Circuit Breaker

State machine guarding calls to the remote service:

    closed --(failures >= threshold)--> open
    open --(cooldown elapsed)--> half-open
    half-open --(successes >= success_threshold)--> closed
    half-open --(any failure)--> open (cooldown clock restarts)

While open, calls fail immediately with CircuitOpenError and the wrapped
operation is never invoked.
"""

from __future__ import annotations

import logging
import time
from collections.abc import Awaitable, Callable
from enum import Enum
from typing import TypeVar

from vector_intel.errors import CircuitOpenError

logger = logging.getLogger(__name__)

T = TypeVar("T")


class CircuitState(str, Enum):
    CLOSED = "closed"
    OPEN = "open"
    HALF_OPEN = "half-open"


class CircuitBreaker:
    """
    Consecutive-failure circuit breaker.

    Args:
        failure_threshold: Consecutive failures that open the circuit
        cooldown: Seconds to stay open before a half-open probe
        success_threshold: Consecutive half-open successes needed to close
        clock: Monotonic time source (injectable for tests)
    """

    def __init__(
        self,
        failure_threshold: int = 5,
        cooldown: float = 60.0,
        success_threshold: int = 3,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.failure_threshold = failure_threshold
        self.cooldown = cooldown
        self.success_threshold = success_threshold
        self._clock = clock
        self._state = CircuitState.CLOSED
        self._failures = 0
        self._successes = 0
        self._opened_at = 0.0

    @property
    def state(self) -> CircuitState:
        return self._state

    @property
    def failure_count(self) -> int:
        return self._failures

    def before_call(self) -> None:
        """
        Gate a call. Raises CircuitOpenError while open.

        The first call after the cooldown moves the breaker to half-open
        and is allowed through.
        """
        if self._state is not CircuitState.OPEN:
            return

        elapsed = self._clock() - self._opened_at
        if elapsed >= self.cooldown:
            logger.info("Circuit breaker half-open after %.1fs cooldown", elapsed)
            self._state = CircuitState.HALF_OPEN
            self._successes = 0
            return

        raise CircuitOpenError(retry_after=self.cooldown - elapsed)

    def record_success(self) -> None:
        self._failures = 0
        if self._state is CircuitState.HALF_OPEN:
            self._successes += 1
            if self._successes >= self.success_threshold:
                logger.info("Circuit breaker closed")
                self._state = CircuitState.CLOSED
                self._successes = 0

    def record_failure(self) -> None:
        if self._state is CircuitState.HALF_OPEN:
            self._trip()
            return

        self._failures += 1
        if self._state is CircuitState.CLOSED and self._failures >= self.failure_threshold:
            self._trip()

    def _trip(self) -> None:
        logger.warning(
            "Circuit breaker opened after %d failures (cooldown %.1fs)",
            self._failures,
            self.cooldown,
        )
        self._state = CircuitState.OPEN
        self._opened_at = self._clock()
        self._successes = 0

    async def execute(
        self,
        operation: Callable[[], Awaitable[T]],
        is_failure: Callable[[Exception], bool] | None = None,
    ) -> T:
        """
        Run an async operation through the breaker.

        Args:
            operation: Zero-argument coroutine factory
            is_failure: Classifies a raised exception. Exceptions it rejects
                are re-raised but recorded as a success. Defaults to
                treating every exception as a failure.
        """
        self.before_call()
        try:
            result = await operation()
        except Exception as e:
            if is_failure is None or is_failure(e):
                self.record_failure()
            else:
                self.record_success()
            raise
        self.record_success()
        return result

    def reset(self) -> None:
        """Reset circuit breaker state."""
        self._state = CircuitState.CLOSED
        self._failures = 0
        self._successes = 0
        self._opened_at = 0.0
