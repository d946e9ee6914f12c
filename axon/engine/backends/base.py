"""Base interface for inference backends."""

from abc import ABC, abstractmethod

from axon.engine.types import (
    BackendMetrics,
    BackendState,
    HealthStatus,
    InferenceRequest,
    InferenceResponse,
    ModelConfig,
)


class InferenceBackend(ABC):
    """
    Abstract base class for engine backends.

    Each supported serving engine implements this interface so callers can
    switch engines via configuration without code changes.

    Lifecycle:
        1. Create the backend (owning its process, or bound to an endpoint).
        2. `await load_model(config)`.
        3. `await infer(request)` / `await health_check()`.
        4. `await shutdown()`; the backend may then be loaded again.
    """

    name: str

    @abstractmethod
    async def load_model(self, config: ModelConfig) -> None:
        """
        Load a model and make the backend ready to serve.

        May spawn an engine process and wait for it; large models can take
        minutes.

        Raises:
            InvalidConfig: If the configuration is malformed (no side effects).
            ModelLoadFailed: If the engine could not be started or never
                became ready.
        """
        pass

    @abstractmethod
    async def infer(self, request: InferenceRequest) -> InferenceResponse:
        """
        Run inference for a single request.

        Raises:
            BackendNotRunning: If no model is loaded or the engine died.
            InferenceFailed: If the engine rejected the request.
        """
        pass

    @abstractmethod
    async def health_check(self) -> HealthStatus:
        """Return the current health; never raises."""
        pass

    @abstractmethod
    def metrics(self) -> BackendMetrics:
        """Return a snapshot of the backend's counters; never blocks."""
        pass

    @abstractmethod
    async def shutdown(self) -> None:
        """
        Release the engine (terminating an owned process).

        Idempotent; leaves the backend re-loadable.
        """
        pass

    @property
    @abstractmethod
    def state(self) -> BackendState:
        """Current lifecycle state."""
        pass

    @property
    @abstractmethod
    def current_model(self) -> str | None:
        """Identifier of the loaded model, if any."""
        pass
