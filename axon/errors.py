"""Unified error types for Axon backends.

Every component raises one of these so callers handle a single, small
vocabulary regardless of which engine (or which layer: OS process vs. HTTP
channel) produced the failure.
"""

from __future__ import annotations

from enum import Enum


class ErrorKind(str, Enum):
    INVALID_CONFIG = "invalid_config"
    MODEL_LOAD_FAILED = "model_load_failed"
    INFERENCE_FAILED = "inference_failed"
    BACKEND_NOT_RUNNING = "backend_not_running"
    UNHEALTHY = "unhealthy"
    TRANSPORT_ERROR = "transport_error"
    TIMEOUT = "timeout"
    BACKEND_ERROR = "backend_error"
    OTHER = "other"


class AxonError(RuntimeError):
    """Base exception for all Axon errors (kind: ``other``)."""

    kind: ErrorKind = ErrorKind.OTHER
    prefix = "Error"

    def __init__(self, message: str) -> None:
        self.message = message
        super().__init__(message)

    def __str__(self) -> str:
        return f"{self.prefix}: {self.message}"


class InvalidConfig(AxonError):
    """Caller input is malformed; raised before any side effect."""

    kind = ErrorKind.INVALID_CONFIG
    prefix = "Invalid configuration"


class ModelLoadFailed(AxonError):
    """The engine could not be spawned or never became ready."""

    kind = ErrorKind.MODEL_LOAD_FAILED
    prefix = "Model load failed"


class InferenceFailed(AxonError):
    """The engine rejected a request or answered with a malformed response."""

    kind = ErrorKind.INFERENCE_FAILED
    prefix = "Inference failed"

    def __init__(self, message: str, *, status_code: int | None = None, body: str | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code
        self.body = body

    def __str__(self) -> str:
        parts = [super().__str__()]
        if self.status_code is not None:
            parts.append(f"status={self.status_code}")
        if self.body:
            parts.append(f"body={self.body}")
        return " ".join(parts)


class BackendNotRunning(AxonError):
    kind = ErrorKind.BACKEND_NOT_RUNNING
    prefix = "Backend not running"

    def __init__(self, message: str = "backend process is not running") -> None:
        super().__init__(message)


class Unhealthy(AxonError):
    """The health probe answered with a non-success status."""

    kind = ErrorKind.UNHEALTHY
    prefix = "Backend unhealthy"

    def __init__(self, message: str, *, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code


class TransportError(AxonError):
    """Network or I/O failure underneath an HTTP call."""

    kind = ErrorKind.TRANSPORT_ERROR
    prefix = "Transport error"


class Timeout(AxonError):
    kind = ErrorKind.TIMEOUT
    prefix = "Timeout"


class BackendError(AxonError):
    """Opaque failure reported by (or about) the engine backend."""

    kind = ErrorKind.BACKEND_ERROR
    prefix = "Backend error"
