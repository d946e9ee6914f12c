from __future__ import annotations

import asyncio
import sys
import urllib.parse
from dataclasses import asdict
from typing import Any

from apps.cli.output import format_table, print_json
from axon.engine.backends.base import InferenceBackend
from axon.engine.registry import create_backend
from axon.engine.types import BackendState, HealthStatus, InferenceRequest, InferenceResponse, ModelConfig
from axon.errors import AxonError

SERVE_HEALTH_INTERVAL_S = 5.0


class CommandError(RuntimeError):
    pass


def normalize_base_url(url: str) -> str:
    url = url.strip()
    if not url:
        raise CommandError("Engine URL is empty")
    if "://" not in url:
        url = "http://" + url
    parsed = urllib.parse.urlparse(url)
    if parsed.scheme not in {"http", "https"}:
        raise CommandError(f"Unsupported URL scheme: {parsed.scheme!r}")
    if not parsed.netloc or parsed.hostname is None:
        raise CommandError(f"Invalid engine URL: {url!r}")
    if parsed.path not in {"", "/"} or parsed.params or parsed.query or parsed.fragment:
        raise CommandError("Engine URL must not include a path/query/fragment")
    return f"{parsed.scheme}://{parsed.netloc}".rstrip("/")


def _response_dict(response: InferenceResponse) -> dict[str, Any]:
    return asdict(response)


def _print_response(response: InferenceResponse) -> None:
    print(response.text)
    print()
    print(
        format_table(
            ["metric", "value"],
            [
                ["tokens_generated", str(response.tokens_generated)],
                ["inference_time_s", f"{response.inference_time:.2f}"],
                ["tokens_per_second", f"{response.tokens_per_second:.1f}"],
                ["finish_reason", response.finish_reason],
                ["request_id", response.request_id or "-"],
            ],
        )
    )


async def _health(backend: InferenceBackend) -> HealthStatus:
    try:
        return await backend.health_check()
    finally:
        await backend.shutdown()


def health(*, url: str, backend_name: str, json_output: bool = False) -> int:
    url = normalize_base_url(url)
    backend = create_backend(backend_name, base_url=url)
    status = asyncio.run(_health(backend))
    if json_output:
        print_json({"url": url, "status": status.value})
    else:
        print(f"{status.value} url={url}")
    return 0 if status is HealthStatus.HEALTHY else 1


async def _infer(backend: InferenceBackend, request: InferenceRequest, model: str | None) -> InferenceResponse:
    try:
        if model:
            await backend.load_model(ModelConfig(model_name=model))
        return await backend.infer(request)
    finally:
        await backend.shutdown()


def infer(
    *,
    url: str,
    backend_name: str,
    request: InferenceRequest,
    model: str | None = None,
    json_output: bool = False,
) -> int:
    url = normalize_base_url(url)
    backend = create_backend(backend_name, base_url=url)
    try:
        response = asyncio.run(_infer(backend, request, model))
    except AxonError as exc:
        print(str(exc), file=sys.stderr)
        if "connect" in str(exc).lower():
            print(f"hint: make sure the engine is running at {url}", file=sys.stderr)
        return 1
    if json_output:
        print_json(_response_dict(response))
    else:
        _print_response(response)
    return 0


async def _serve(backend: InferenceBackend, config: ModelConfig) -> int:
    try:
        await backend.load_model(config)
        endpoint = getattr(backend, "endpoint", None)
        line = f"ready url={endpoint} model={config.model_name}"
        supervisor = getattr(backend, "supervisor", None)
        process = getattr(backend, "process", None)
        if supervisor is not None and process is not None:
            info = supervisor.describe(process)
            line += f" pid={info['pid']}"
            if info["log_path"]:
                line += f" log={info['log_path']}"
        print(line, flush=True)
        print(f"openai api-compatible endpoint: {endpoint}/v1/completions", flush=True)

        while True:
            await asyncio.sleep(SERVE_HEALTH_INTERVAL_S)
            status = await backend.health_check()
            if status is HealthStatus.FAILED or backend.state is BackendState.FAILED:
                print(f"engine process exited; status={status.value}", file=sys.stderr)
                return 1
    finally:
        await backend.shutdown()
        print("stopped", flush=True)


def serve(*, backend_name: str, config: ModelConfig) -> int:
    backend = create_backend(backend_name)
    print(f"starting engine model={config.model_name} (this can take a few minutes)", flush=True)
    try:
        return asyncio.run(_serve(backend, config))
    except KeyboardInterrupt:
        print("\n(interrupted)")
        return 0
    except AxonError as exc:
        print(str(exc), file=sys.stderr)
        return 1


async def _run_once(backend: InferenceBackend, config: ModelConfig, request: InferenceRequest) -> InferenceResponse:
    try:
        await backend.load_model(config)
        return await backend.infer(request)
    finally:
        await backend.shutdown()


def run(*, backend_name: str, config: ModelConfig, request: InferenceRequest, json_output: bool = False) -> int:
    backend = create_backend(backend_name)
    try:
        response = asyncio.run(_run_once(backend, config, request))
    except AxonError as exc:
        print(str(exc), file=sys.stderr)
        return 1
    if json_output:
        print_json(_response_dict(response))
    else:
        _print_response(response)
    return 0
