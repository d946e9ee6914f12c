"""vLLM process management.

Spawns, monitors and terminates the vLLM OpenAI-compatible server process.
"""

from __future__ import annotations

import asyncio
import logging
import subprocess
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Sequence

import httpx

from axon.engine import process_control
from axon.engine.polling import Sleep, poll_until
from axon.errors import AxonError, ModelLoadFailed
from axon.settings import DEFAULT_VLLM_COMMAND

from .client import HEALTH_TIMEOUT_S, VllmClient
from .config import VllmLaunchConfig

logger = logging.getLogger(__name__)

READY_POLL_INTERVAL_S = 2.0
READY_MAX_ATTEMPTS = 60
TERMINATE_GRACE_S = 5.0

_REAP_POLL_INTERVAL_S = 0.1
_REAP_MAX_ATTEMPTS = 50


@dataclass
class ProcessHandle:
    """A spawned engine process."""

    pid: int
    popen: subprocess.Popen | None = None
    launch_config: VllmLaunchConfig | None = None
    log_path: Path | None = None

    @property
    def returncode(self) -> int | None:
        if self.popen is None:
            return None
        return self.popen.poll()


def _option_flag(key: str) -> str:
    return "--" + str(key).strip().lstrip("-").replace("_", "-")


def build_command(
    launch_config: VllmLaunchConfig,
    *,
    engine_command: Sequence[str] = DEFAULT_VLLM_COMMAND,
) -> list[str]:
    cmd = [
        *engine_command,
        "--model",
        launch_config.model_name,
        "--host",
        launch_config.host,
        "--port",
        str(int(launch_config.port)),
    ]

    if launch_config.tensor_parallel_size is not None:
        cmd.extend(["--tensor-parallel-size", str(int(launch_config.tensor_parallel_size))])
    if launch_config.max_sequence_length is not None:
        cmd.extend(["--max-model-len", str(int(launch_config.max_sequence_length))])
    if launch_config.dtype is not None and launch_config.dtype != "auto":
        cmd.extend(["--dtype", launch_config.dtype])
    if launch_config.max_batch_size is not None:
        cmd.extend(["--max-num-seqs", str(int(launch_config.max_batch_size))])

    for key, value in launch_config.engine_options.items():
        flag = _option_flag(key)
        if value is None or value is False:
            continue
        if value is True:
            cmd.append(flag)
        elif isinstance(value, (list, tuple)):
            cmd.append(flag)
            cmd.extend(str(v) for v in value)
        else:
            cmd.extend([flag, str(value)])
    return cmd


def _log_path(log_dir: Path, launch_config: VllmLaunchConfig) -> Path:
    safe_host = launch_config.host.strip().lower().replace(":", "_").replace("/", "_") or "any"
    return log_dir / f"vllm_{safe_host}_{int(launch_config.port)}.log"


class VllmProcessSupervisor:
    """Owns the OS-level lifecycle of vLLM server processes."""

    def __init__(
        self,
        *,
        engine_command: Sequence[str] | None = None,
        log_dir: Path | None = None,
        ready_interval_s: float = READY_POLL_INTERVAL_S,
        ready_max_attempts: int = READY_MAX_ATTEMPTS,
        grace_period_s: float = TERMINATE_GRACE_S,
        sleep: Sleep = asyncio.sleep,
        probe_transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.engine_command = tuple(engine_command) if engine_command else DEFAULT_VLLM_COMMAND
        self.log_dir = log_dir
        self.ready_interval_s = float(ready_interval_s)
        self.ready_max_attempts = int(ready_max_attempts)
        self.grace_period_s = float(grace_period_s)
        self._sleep = sleep
        self._probe_transport = probe_transport

    def spawn(self, launch_config: VllmLaunchConfig) -> ProcessHandle:
        cmd = build_command(launch_config, engine_command=self.engine_command)
        log_path: Path | None = None
        try:
            if self.log_dir is not None:
                log_path = _log_path(self.log_dir, launch_config)
                log_path.parent.mkdir(parents=True, exist_ok=True)
                with open(log_path, "ab") as logf:
                    popen = subprocess.Popen(
                        cmd,
                        stdin=subprocess.DEVNULL,
                        stdout=logf,
                        stderr=logf,
                        start_new_session=True,
                    )
            else:
                popen = subprocess.Popen(
                    cmd,
                    stdin=subprocess.DEVNULL,
                    stdout=subprocess.DEVNULL,
                    stderr=subprocess.DEVNULL,
                    start_new_session=True,
                )
        except OSError as exc:
            raise ModelLoadFailed(f"Failed to spawn vLLM: {exc}") from exc

        logger.info(
            "spawned vLLM pid=%s model=%s endpoint=%s logs=%s",
            popen.pid,
            launch_config.model_name,
            launch_config.base_url,
            log_path,
        )
        return ProcessHandle(pid=popen.pid, popen=popen, launch_config=launch_config, log_path=log_path)

    def is_running(self, handle: ProcessHandle) -> bool:
        if handle.popen is not None:
            try:
                if handle.popen.poll() is not None:
                    return False
            except OSError:
                return False
        return process_control.exists(handle.pid)

    async def wait_until_ready(self, handle: ProcessHandle, endpoint: str) -> None:
        async with VllmClient(endpoint, timeout_s=HEALTH_TIMEOUT_S, transport=self._probe_transport) as probe:

            async def _ready() -> bool:
                try:
                    await probe.health_check()
                except AxonError as exc:
                    logger.debug("vLLM not ready yet at %s: %s", endpoint, exc)
                    return False
                return True

            ready = await poll_until(
                _ready,
                interval_s=self.ready_interval_s,
                max_attempts=self.ready_max_attempts,
                sleep=self._sleep,
                stop=lambda: not self.is_running(handle),
            )

        if ready:
            logger.info("vLLM ready pid=%s endpoint=%s", handle.pid, endpoint)
            return
        if not self.is_running(handle):
            raise ModelLoadFailed(
                f"vLLM process exited before becoming ready (code={handle.returncode}). "
                f"Check logs: {handle.log_path}"
            )
        raise ModelLoadFailed(
            "vLLM did not become ready in time "
            f"({self.ready_max_attempts} attempts every {self.ready_interval_s:g}s)"
        )

    async def terminate(self, handle: ProcessHandle) -> None:
        """SIGTERM, wait the grace period, SIGKILL if still alive. Best-effort."""
        if not self.is_running(handle):
            logger.info("vLLM pid=%s already exited (code=%s)", handle.pid, handle.returncode)
            return

        process_control.request_graceful_stop(handle.pid)
        await self._sleep(self.grace_period_s)

        if self.is_running(handle):
            logger.warning(
                "vLLM pid=%s still running after %.1fs grace period; sending SIGKILL",
                handle.pid,
                self.grace_period_s,
            )
            process_control.force_stop(handle.pid)

            async def _exited() -> bool:
                return not self.is_running(handle)

            await poll_until(_exited, interval_s=_REAP_POLL_INTERVAL_S, max_attempts=_REAP_MAX_ATTEMPTS)

        logger.info("vLLM pid=%s terminated (code=%s)", handle.pid, handle.returncode)

    def describe(self, handle: ProcessHandle) -> dict[str, Any]:
        return {
            "pid": handle.pid,
            "running": self.is_running(handle),
            "returncode": handle.returncode,
            "log_path": str(handle.log_path) if handle.log_path else None,
        }
