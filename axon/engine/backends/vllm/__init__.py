"""vLLM backend: process supervision plus the OpenAI-compatible completions API."""

from .backend import VllmBackend
from .client import VllmClient
from .config import VllmLaunchConfig
from .process import ProcessHandle, VllmProcessSupervisor, build_command

__all__ = [
    "VllmBackend",
    "VllmClient",
    "VllmLaunchConfig",
    "ProcessHandle",
    "VllmProcessSupervisor",
    "build_command",
]
