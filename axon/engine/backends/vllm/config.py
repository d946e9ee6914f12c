"""vLLM launch configuration derived from a generic ModelConfig."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

from axon.engine.types import ModelConfig

DEFAULT_HOST = "127.0.0.1"
DEFAULT_PORT = 8000

_WILDCARD_HOSTS = {"0.0.0.0", "::", "[::]", ""}


@dataclass(frozen=True)
class VllmLaunchConfig:
    model_name: str
    host: str = DEFAULT_HOST
    port: int = DEFAULT_PORT
    tensor_parallel_size: int | None = None
    max_sequence_length: int | None = None
    dtype: str | None = None
    max_batch_size: int | None = None
    engine_options: dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_model_config(cls, config: ModelConfig) -> VllmLaunchConfig:
        return cls(
            model_name=config.model_name,
            host=config.host if config.host is not None else DEFAULT_HOST,
            port=config.port if config.port is not None else DEFAULT_PORT,
            tensor_parallel_size=config.tensor_parallel_size,
            max_sequence_length=config.max_sequence_length,
            dtype=config.dtype,
            max_batch_size=config.max_batch_size,
            engine_options=dict(config.engine_options),
        )

    @property
    def probe_host(self) -> str:
        """Host a client should connect to (wildcard binds map to loopback)."""
        host = self.host.strip()
        if host in _WILDCARD_HOSTS:
            return "127.0.0.1"
        if host.lower() == "localhost":
            return "127.0.0.1"
        if ":" in host and not host.startswith("["):
            return f"[{host}]"
        return host

    @property
    def base_url(self) -> str:
        return f"http://{self.probe_host}:{int(self.port)}"
