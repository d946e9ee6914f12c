"""
Axon - one contract for driving model-serving engines.

Axon supervises an out-of-process engine (spawn, readiness, termination),
bridges to its OpenAI-style completions API, and folds process and network
signals into a small health model.

Quick Start:
    from axon import InferenceRequest, ModelConfig, VllmBackend

    backend = VllmBackend()
    await backend.load_model(ModelConfig(model_name="meta-llama/Llama-2-7b-hf"))
    response = await backend.infer(InferenceRequest(prompt="Hello, world!"))
    await backend.shutdown()

    # Or bind to a server that is already running:
    backend = VllmBackend.connect_to("http://localhost:8000")

Environment Variables:
    AXON_URL, AXON_BACKEND, AXON_VLLM_COMMAND, AXON_LOG_DIR (see axon.settings)
"""

from axon._version import __version__

from axon.errors import (
    AxonError,
    BackendError,
    BackendNotRunning,
    ErrorKind,
    InferenceFailed,
    InvalidConfig,
    ModelLoadFailed,
    Timeout,
    TransportError,
    Unhealthy,
)
from axon.engine.types import (
    BackendMetrics,
    BackendState,
    HealthStatus,
    InferenceRequest,
    InferenceResponse,
    ModelConfig,
    SamplingParams,
)
from axon.engine.backends.base import InferenceBackend
from axon.engine.backends.vllm import VllmBackend
from axon.engine.registry import create_backend, list_backends, register_backend

__all__ = [
    # Version
    "__version__",
    # Errors
    "AxonError",
    "BackendError",
    "BackendNotRunning",
    "ErrorKind",
    "InferenceFailed",
    "InvalidConfig",
    "ModelLoadFailed",
    "Timeout",
    "TransportError",
    "Unhealthy",
    # Types
    "BackendMetrics",
    "BackendState",
    "HealthStatus",
    "InferenceRequest",
    "InferenceResponse",
    "ModelConfig",
    "SamplingParams",
    # Backends
    "InferenceBackend",
    "VllmBackend",
    "create_backend",
    "list_backends",
    "register_backend",
]
