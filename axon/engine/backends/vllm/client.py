"""Async HTTP client for vLLM's OpenAI-compatible completions API."""

from __future__ import annotations

import logging
import time
from typing import Any, Callable

import httpx

from axon.engine.types import InferenceRequest, InferenceResponse
from axon.errors import BackendNotRunning, InferenceFailed, Timeout, TransportError, Unhealthy

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT_S = 120.0
HEALTH_TIMEOUT_S = 5.0

# Model name sent before a model identifier is known (connect_to without load_model).
DEFAULT_MODEL_ALIAS = "default"


def build_completion_payload(request: InferenceRequest, *, model: str) -> dict[str, Any]:
    """Map a generic request onto the completions body; unset fields are omitted."""
    sampling = request.sampling
    payload: dict[str, Any] = {
        "model": model,
        "prompt": request.prompt,
        "max_tokens": sampling.max_tokens,
        "temperature": sampling.temperature,
    }
    optional = {
        "top_p": sampling.top_p,
        "top_k": sampling.top_k,
        "presence_penalty": sampling.presence_penalty,
        "frequency_penalty": sampling.frequency_penalty,
    }
    for key, value in optional.items():
        if value is not None:
            payload[key] = value
    if sampling.stop_sequences:
        payload["stop"] = list(sampling.stop_sequences)
    return payload


def tokens_per_second(tokens_generated: int, elapsed_s: float) -> float:
    if elapsed_s > 0:
        return tokens_generated / elapsed_s
    return 0.0


def _int_or_none(value: Any) -> int | None:
    if isinstance(value, bool) or not isinstance(value, int):
        return None
    return value


def _tokens_generated(choice: dict[str, Any], body: dict[str, Any]) -> int:
    text_tokens = _int_or_none(choice.get("text_tokens"))
    if text_tokens is not None:
        return text_tokens
    usage = body.get("usage")
    if isinstance(usage, dict):
        completion_tokens = _int_or_none(usage.get("completion_tokens"))
        if completion_tokens is not None:
            return completion_tokens
    return 0


class VllmClient:
    def __init__(
        self,
        base_url: str,
        *,
        model: str | None = None,
        timeout_s: float = DEFAULT_TIMEOUT_S,
        transport: httpx.AsyncBaseTransport | None = None,
        clock: Callable[[], float] = time.perf_counter,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self.model = model
        self.timeout_s = float(timeout_s)
        self._clock = clock
        self._http = httpx.AsyncClient(
            base_url=self.base_url,
            timeout=self.timeout_s,
            transport=transport,
            headers={"Accept": "application/json"},
        )

    async def __aenter__(self) -> VllmClient:
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        await self._http.aclose()

    async def _send(self, method: str, path: str, **kwargs: Any) -> httpx.Response:
        url = f"{self.base_url}{path}"
        if self._http.is_closed:
            raise BackendNotRunning(f"client for {self.base_url} is closed")
        try:
            return await self._http.request(method, path, **kwargs)
        except httpx.TimeoutException as exc:
            raise Timeout(f"{method} {url} timed out") from exc
        except httpx.RequestError as exc:
            raise TransportError(f"{method} {url} failed: {exc}") from exc

    async def health_check(self) -> None:
        """Raise Unhealthy unless GET /health answers 2xx."""
        resp = await self._send("GET", "/health", timeout=min(self.timeout_s, HEALTH_TIMEOUT_S))
        if not resp.is_success:
            raise Unhealthy(f"Status: {resp.status_code}", status_code=resp.status_code)

    async def infer(self, request: InferenceRequest) -> InferenceResponse:
        payload = build_completion_payload(request, model=self.model or DEFAULT_MODEL_ALIAS)

        start = self._clock()
        resp = await self._send("POST", "/v1/completions", json=payload)
        elapsed = max(self._clock() - start, 0.0)

        if not resp.is_success:
            raise InferenceFailed("engine rejected request", status_code=resp.status_code, body=resp.text)

        try:
            body = resp.json()
        except ValueError as exc:
            raise InferenceFailed("invalid JSON response", status_code=resp.status_code, body=resp.text) from exc
        if not isinstance(body, dict):
            raise InferenceFailed("response must be a JSON object", status_code=resp.status_code, body=resp.text)

        choices = body.get("choices")
        if not isinstance(choices, list) or not choices:
            raise InferenceFailed("No choices in response", status_code=resp.status_code, body=resp.text)
        choice = choices[0]
        if not isinstance(choice, dict) or not isinstance(choice.get("text"), str):
            raise InferenceFailed("malformed choice in response", status_code=resp.status_code, body=resp.text)

        tokens = _tokens_generated(choice, body)
        finish_reason = choice.get("finish_reason")
        if not isinstance(finish_reason, str) or not finish_reason:
            finish_reason = "stop"

        logger.debug(
            "completion id=%s tokens=%d elapsed=%.3fs finish_reason=%s",
            body.get("id"),
            tokens,
            elapsed,
            finish_reason,
        )
        return InferenceResponse(
            text=choice["text"],
            tokens_generated=tokens,
            inference_time=elapsed,
            tokens_per_second=tokens_per_second(tokens, elapsed),
            finish_reason=finish_reason,
            request_id=request.request_id,
        )
