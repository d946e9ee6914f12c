"""vLLM backend.

Spawns and manages a vLLM server process (or binds to an already running
one) and talks to it through its OpenAI-compatible HTTP API.

Example:
    backend = VllmBackend()
    await backend.load_model(ModelConfig(model_name="meta-llama/Llama-2-7b-hf"))
    response = await backend.infer(InferenceRequest(prompt="Explain Rust in one sentence."))
    await backend.shutdown()
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass

import httpx

from axon.engine.backends.base import InferenceBackend
from axon.engine.metrics import MetricsTracker
from axon.engine.types import (
    BackendMetrics,
    BackendState,
    HealthStatus,
    InferenceRequest,
    InferenceResponse,
    ModelConfig,
)
from axon.errors import AxonError, BackendError, BackendNotRunning, InvalidConfig
from axon.settings import load_settings

from .client import VllmClient
from .config import VllmLaunchConfig
from .process import ProcessHandle, VllmProcessSupervisor

logger = logging.getLogger(__name__)

_LOADABLE_STATES = {BackendState.UNINITIALIZED, BackendState.TERMINATED}
_SERVING_STATES = {BackendState.READY, BackendState.DEGRADED}


@dataclass(frozen=True)
class _Runtime:
    """What infer/health_check read; replaced as a whole under the lifecycle lock."""

    process: ProcessHandle | None = None
    client: VllmClient | None = None
    model: str | None = None


def _require_positive(name: str, value: int | None) -> None:
    if value is None:
        return
    if isinstance(value, bool) or not isinstance(value, int) or value <= 0:
        raise InvalidConfig(f"{name} must be a positive integer, got {value!r}")


def validate_model_config(config: ModelConfig) -> None:
    if not isinstance(config.model_name, str) or not config.model_name.strip():
        raise InvalidConfig("model_name cannot be empty")
    _require_positive("tensor_parallel_size", config.tensor_parallel_size)
    _require_positive("max_batch_size", config.max_batch_size)
    _require_positive("max_sequence_length", config.max_sequence_length)
    if config.port is not None:
        _require_positive("port", config.port)
        if config.port > 65535:
            raise InvalidConfig(f"port must be <= 65535, got {config.port}")
    if config.host is not None and not config.host.strip():
        raise InvalidConfig("host cannot be blank")


class VllmBackend(InferenceBackend):
    name = "vllm"

    def __init__(
        self,
        *,
        base_url: str | None = None,
        supervisor: VllmProcessSupervisor | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        """
        Args:
            base_url: Bind to an already running vLLM server instead of
                spawning one (e.g. "http://localhost:8000").
            supervisor: Process supervisor used when spawning; built from
                settings when omitted.
            transport: Optional httpx transport for the API client.
        """
        self._owns_process = base_url is None
        self._endpoint = base_url.rstrip("/") if base_url is not None else None
        self._transport = transport
        if supervisor is None and self._owns_process:
            settings = load_settings()
            supervisor = VllmProcessSupervisor(engine_command=settings.vllm_command, log_dir=settings.log_dir)
        self._supervisor = supervisor

        self._lock = asyncio.Lock()
        self._state = BackendState.UNINITIALIZED
        self._metrics = MetricsTracker()
        self._runtime = _Runtime()
        if self._endpoint is not None:
            self._runtime = _Runtime(client=VllmClient(self._endpoint, transport=transport))

    @classmethod
    def connect_to(cls, base_url: str, *, transport: httpx.AsyncBaseTransport | None = None) -> VllmBackend:
        """Create a backend bound to an existing vLLM server."""
        return cls(base_url=base_url, transport=transport)

    @property
    def owns_process(self) -> bool:
        return self._owns_process

    @property
    def state(self) -> BackendState:
        return self._state

    @property
    def current_model(self) -> str | None:
        return self._runtime.model

    @property
    def endpoint(self) -> str | None:
        client = self._runtime.client
        return client.base_url if client is not None else self._endpoint

    @property
    def process(self) -> ProcessHandle | None:
        return self._runtime.process

    @property
    def supervisor(self) -> VllmProcessSupervisor | None:
        return self._supervisor

    def _process_alive(self, runtime: _Runtime) -> bool:
        if runtime.process is None or self._supervisor is None:
            return False
        return self._supervisor.is_running(runtime.process)

    def _observe(self, status: HealthStatus, runtime: _Runtime) -> None:
        # Results from a runtime that has since been replaced are dropped.
        if self._runtime is not runtime or self._state not in _SERVING_STATES:
            return
        if status is HealthStatus.FAILED:
            logger.error("vLLM process exited; backend failed (model=%s)", runtime.model)
            self._state = BackendState.FAILED
        elif status is HealthStatus.DEGRADED:
            self._state = BackendState.DEGRADED
        elif status is HealthStatus.HEALTHY:
            self._state = BackendState.READY

    # -------------------------------------------------------------------------
    # Lifecycle
    # -------------------------------------------------------------------------

    async def load_model(self, config: ModelConfig) -> None:
        validate_model_config(config)

        async with self._lock:
            if self._state not in _LOADABLE_STATES:
                raise BackendError(
                    f"backend is {self._state.value} (model={self._runtime.model!r}); "
                    "call shutdown() before loading another model"
                )
            self._state = BackendState.LOADING
            logger.info("loading model=%s owns_process=%s", config.model_name, self._owns_process)
            try:
                if self._owns_process:
                    runtime = await self._start_engine(config)
                else:
                    runtime = await self._bind_endpoint(config)
            except Exception:
                self._state = BackendState.FAILED
                raise
            self._runtime = runtime
            self._state = BackendState.READY
            logger.info("model=%s ready at %s", config.model_name, runtime.client.base_url if runtime.client else None)

    async def _start_engine(self, config: ModelConfig) -> _Runtime:
        supervisor = self._supervisor
        if supervisor is None:
            raise BackendError("backend owns its process but has no supervisor")
        launch = VllmLaunchConfig.from_model_config(config)
        handle = supervisor.spawn(launch)

        client: VllmClient | None = None
        try:
            await supervisor.wait_until_ready(handle, launch.base_url)
            client = VllmClient(launch.base_url, model=config.model_name, transport=self._transport)
            await client.health_check()
        except Exception:
            if client is not None:
                await client.aclose()
            await supervisor.terminate(handle)
            raise
        return _Runtime(process=handle, client=client, model=config.model_name)

    async def _bind_endpoint(self, config: ModelConfig) -> _Runtime:
        endpoint = self._endpoint
        if endpoint is None:
            raise BackendError("backend is not bound to an endpoint")
        client = VllmClient(endpoint, model=config.model_name, transport=self._transport)
        try:
            await client.health_check()
        except Exception:
            await client.aclose()
            raise

        previous = self._runtime.client
        if previous is not None:
            await previous.aclose()
        return _Runtime(client=client, model=config.model_name)

    async def shutdown(self) -> None:
        async with self._lock:
            runtime = self._runtime
            self._state = BackendState.SHUTTING_DOWN
            try:
                if runtime.process is not None and self._supervisor is not None:
                    await self._supervisor.terminate(runtime.process)
            finally:
                self._runtime = _Runtime()
                if runtime.client is not None:
                    await runtime.client.aclose()
                self._state = BackendState.TERMINATED
                if runtime.model is not None:
                    logger.info("backend shut down (model=%s)", runtime.model)

    # -------------------------------------------------------------------------
    # Requests
    # -------------------------------------------------------------------------

    async def infer(self, request: InferenceRequest) -> InferenceResponse:
        runtime = self._runtime
        response: InferenceResponse | None = None
        self._metrics.request_started()
        try:
            if runtime.client is None:
                raise BackendNotRunning("no client configured; call load_model() first")
            # A crashed engine would otherwise surface as a network timeout.
            if self._owns_process and not self._process_alive(runtime):
                self._observe(HealthStatus.FAILED, runtime)
                raise BackendNotRunning()
            response = await runtime.client.infer(request)
            return response
        finally:
            if response is None:
                self._metrics.request_failed()
            else:
                self._metrics.request_succeeded(response.tokens_per_second)

    async def health_check(self) -> HealthStatus:
        runtime = self._runtime
        if self._owns_process and runtime.process is not None and not self._process_alive(runtime):
            self._observe(HealthStatus.FAILED, runtime)
            return HealthStatus.FAILED
        if runtime.client is None:
            return HealthStatus.STARTING

        try:
            await runtime.client.health_check()
        except AxonError as exc:
            logger.debug("health probe failed for %s: %s", runtime.client.base_url, exc)
            status = HealthStatus.DEGRADED
        except Exception as exc:
            logger.warning("unexpected health probe failure for %s: %r", runtime.client.base_url, exc)
            status = HealthStatus.DEGRADED
        else:
            status = HealthStatus.HEALTHY
        self._observe(status, runtime)
        return status

    def metrics(self) -> BackendMetrics:
        return self._metrics.snapshot()
