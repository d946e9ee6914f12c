"""Environment-driven settings.

Variables:
    AXON_URL: Default engine endpoint (default: http://127.0.0.1:8000).
    AXON_BACKEND: Backend name used by the registry (default: vllm).
    AXON_VLLM_COMMAND: Command that starts the vLLM OpenAI server, shell-split
        (default: `<current python> -m vllm.entrypoints.openai.api_server`).
    AXON_LOG_DIR: Directory for spawned engine logs
        (default: $XDG_CONFIG_HOME/axon/engines or ~/.config/axon/engines).
"""

from __future__ import annotations

import os
import shlex
import sys
from dataclasses import dataclass, field
from pathlib import Path


DEFAULT_URL = "http://127.0.0.1:8000"
DEFAULT_BACKEND = "vllm"
DEFAULT_VLLM_COMMAND = (sys.executable, "-m", "vllm.entrypoints.openai.api_server")


class SettingsError(ValueError):
    pass


@dataclass(frozen=True)
class Settings:
    url: str = DEFAULT_URL
    backend: str = DEFAULT_BACKEND
    vllm_command: tuple[str, ...] = DEFAULT_VLLM_COMMAND
    log_dir: Path = field(default_factory=lambda: config_dir() / "engines")


def config_dir() -> Path:
    xdg_config_home = os.environ.get("XDG_CONFIG_HOME")
    base = Path(xdg_config_home) if xdg_config_home else (Path.home() / ".config")
    return base / "axon"


def _env(name: str) -> str | None:
    raw = os.environ.get(name)
    if raw is None:
        return None
    raw = raw.strip()
    return raw or None


def load_settings() -> Settings:
    url = _env("AXON_URL") or DEFAULT_URL
    backend = (_env("AXON_BACKEND") or DEFAULT_BACKEND).lower()

    command: tuple[str, ...] = DEFAULT_VLLM_COMMAND
    raw_command = _env("AXON_VLLM_COMMAND")
    if raw_command is not None:
        try:
            command = tuple(shlex.split(raw_command))
        except ValueError as exc:
            raise SettingsError(f"Invalid AXON_VLLM_COMMAND: {raw_command!r}") from exc
        if not command:
            raise SettingsError("AXON_VLLM_COMMAND is empty")

    raw_log_dir = _env("AXON_LOG_DIR")
    log_dir = Path(raw_log_dir).expanduser() if raw_log_dir else config_dir() / "engines"

    return Settings(url=url.rstrip("/"), backend=backend, vllm_command=command, log_dir=log_dir)
