"""Backend request and response types.

These types are the stable contract between callers and any backend.
They are independent of the engine's wire protocol and of the HTTP layer.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any


class HealthStatus(str, Enum):
    """Health of a backend as seen from the caller."""

    HEALTHY = "healthy"  # probe answered 2xx
    STARTING = "starting"  # no client yet (model not loaded)
    DEGRADED = "degraded"  # process alive (if owned) but probe failed
    FAILED = "failed"  # owned process has exited


class BackendState(str, Enum):
    """Lifecycle state of a backend instance."""

    UNINITIALIZED = "uninitialized"
    LOADING = "loading"
    READY = "ready"
    DEGRADED = "degraded"
    SHUTTING_DOWN = "shutting_down"
    TERMINATED = "terminated"
    FAILED = "failed"


@dataclass(frozen=True)
class ModelConfig:
    """Generic model-loading configuration supplied by the caller."""

    model_name: str
    tensor_parallel_size: int | None = None
    max_batch_size: int | None = None
    max_sequence_length: int | None = None
    dtype: str | None = None  # precision mode: auto, half, bfloat16, float32, ...
    host: str | None = None
    port: int | None = None
    engine_options: dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class SamplingParams:
    """Sampling parameters; optional fields left as None are not sent."""

    max_tokens: int = 100
    temperature: float = 1.0
    top_p: float | None = None
    top_k: int | None = None
    presence_penalty: float | None = None
    frequency_penalty: float | None = None
    stop_sequences: list[str] = field(default_factory=list)


@dataclass(frozen=True)
class InferenceRequest:
    prompt: str
    sampling: SamplingParams = field(default_factory=SamplingParams)
    request_id: str | None = None  # opaque, echoed back unmodified


@dataclass(frozen=True)
class InferenceResponse:
    text: str
    tokens_generated: int
    inference_time: float  # seconds spent in the HTTP round trip
    tokens_per_second: float
    finish_reason: str  # "length", "stop", "error" or engine-reported
    request_id: str | None = None


@dataclass(frozen=True)
class BackendMetrics:
    pending_requests: int = 0
    total_requests: int = 0
    failed_requests: int = 0
    average_tps: float = 0.0
    memory_usage_percent: float | None = None
    gpu_utilization_percent: float | None = None
