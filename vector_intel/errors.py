"""
Error Taxonomy

Every failure the subsystem surfaces is one of a closed set of tagged
variants. Callers branch on ``error.kind`` (or on the class) instead of
parsing messages.

Kinds:
    NETWORK            - transport failure or 5xx response (retryable)
    TIMEOUT            - per-call timeout elapsed (retryable)
    CLIENT             - 4xx response (never retried)
    CIRCUIT_OPEN       - breaker is open, network never attempted
    DIMENSION_MISMATCH - vectors of different lengths compared or stored
    CHECKSUM           - downloaded artifact failed SHA-256 verification
    MODEL_LOAD         - model artifact could not be fetched after retries
    CLUSTERING         - empty or degenerate clustering input
    NOT_FOUND          - referenced entity does not exist
    REMOTE_OPERATION   - remote service answered but reported failure
"""

from __future__ import annotations

from enum import Enum
from pathlib import Path


class ErrorKind(str, Enum):
    """Tag carried by every VectorIntelError."""

    NETWORK = "network"
    TIMEOUT = "timeout"
    CLIENT = "client"
    CIRCUIT_OPEN = "circuit_open"
    DIMENSION_MISMATCH = "dimension_mismatch"
    CHECKSUM = "checksum"
    MODEL_LOAD = "model_load"
    CLUSTERING = "clustering"
    NOT_FOUND = "not_found"
    REMOTE_OPERATION = "remote_operation"


class VectorIntelError(Exception):
    """Base class for all subsystem errors."""

    kind: ErrorKind

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class NetworkError(VectorIntelError):
    """Connectivity failure or server-side (5xx) error."""

    kind = ErrorKind.NETWORK

    def __init__(self, message: str, status: int | None = None) -> None:
        super().__init__(message)
        self.status = status


class RequestTimeoutError(VectorIntelError):
    """Remote call exceeded its timeout and was aborted."""

    kind = ErrorKind.TIMEOUT

    def __init__(self, timeout: float, path: str = "") -> None:
        super().__init__(f"Request timeout after {timeout:.1f}s" + (f": {path}" if path else ""))
        self.timeout = timeout
        self.path = path


class ClientError(VectorIntelError):
    """Request rejected by the server (4xx). Retrying will not help."""

    kind = ErrorKind.CLIENT

    def __init__(self, status: int, message: str) -> None:
        super().__init__(f"HTTP {status}: {message}")
        self.status = status


class CircuitOpenError(VectorIntelError):
    """Service unavailable: the circuit breaker is open."""

    kind = ErrorKind.CIRCUIT_OPEN

    def __init__(self, retry_after: float) -> None:
        super().__init__(
            f"Service unavailable: circuit breaker is open (retry in {retry_after:.1f}s)"
        )
        self.retry_after = retry_after


class DimensionMismatchError(VectorIntelError, ValueError):
    """Two vectors that must share a dimension do not."""

    kind = ErrorKind.DIMENSION_MISMATCH

    def __init__(self, expected: int, actual: int) -> None:
        super().__init__(f"Vector dimension mismatch: expected {expected}, got {actual}")
        self.expected = expected
        self.actual = actual


class ChecksumError(VectorIntelError):
    """Downloaded file does not match its expected SHA-256 digest."""

    kind = ErrorKind.CHECKSUM

    def __init__(self, path: Path, expected: str, actual: str, size: int) -> None:
        super().__init__(
            f"Checksum mismatch for {path} ({size} bytes): "
            f"expected sha256={expected}, got sha256={actual}"
        )
        self.path = path
        self.expected = expected
        self.actual = actual
        self.size = size


class ModelLoadError(VectorIntelError):
    """Model artifact could not be loaded after all retry attempts."""

    kind = ErrorKind.MODEL_LOAD

    def __init__(
        self,
        url: str,
        path: Path,
        attempts: int,
        reason: str,
        expected_size: int | None = None,
        actual_size: int | None = None,
    ) -> None:
        size_part = ""
        if expected_size is not None or actual_size is not None:
            size_part = f" (expected {expected_size} bytes, got {actual_size} bytes)"
        super().__init__(
            f"Failed to load model from {url} into {path} after {attempts} attempts"
            f"{size_part}: {reason}"
        )
        self.url = url
        self.path = path
        self.attempts = attempts
        self.reason = reason
        self.expected_size = expected_size
        self.actual_size = actual_size


class ClusteringError(VectorIntelError, ValueError):
    """Clustering input is empty or degenerate."""

    kind = ErrorKind.CLUSTERING


class EntityNotFoundError(VectorIntelError):
    """Referenced entity does not exist in the graph."""

    kind = ErrorKind.NOT_FOUND

    def __init__(self, entity_id: str) -> None:
        super().__init__(f"Entity not found: {entity_id}")
        self.entity_id = entity_id


class RemoteOperationError(VectorIntelError):
    """Remote service returned a well-formed response reporting failure."""

    kind = ErrorKind.REMOTE_OPERATION

    def __init__(self, operation: str, detail: str = "") -> None:
        super().__init__(f"{operation} failed" + (f": {detail}" if detail else ""))
        self.operation = operation
        self.detail = detail


_RETRYABLE = {ErrorKind.NETWORK, ErrorKind.TIMEOUT}


def is_retryable(error: BaseException) -> bool:
    """Return True if the retry loop should try again after this error."""
    if isinstance(error, VectorIntelError):
        return error.kind in _RETRYABLE
    return False


__all__ = [
    "ErrorKind",
    "VectorIntelError",
    "NetworkError",
    "RequestTimeoutError",
    "ClientError",
    "CircuitOpenError",
    "DimensionMismatchError",
    "ChecksumError",
    "ModelLoadError",
    "ClusteringError",
    "EntityNotFoundError",
    "RemoteOperationError",
    "is_retryable",
]
