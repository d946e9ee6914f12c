"""FastAPI app imitating an OpenAI-style completions engine.

Serves the two endpoints Axon relies on (`GET /health`,
`POST /v1/completions`) with deterministic output, so backends can be
exercised end-to-end without GPUs or model weights.
"""

from __future__ import annotations

import asyncio
import time
import uuid
from dataclasses import dataclass
from typing import Any

from fastapi import FastAPI, HTTPException, Request
from starlette.responses import JSONResponse


@dataclass
class MockEngineState:
    healthy: bool = True
    requests_served: int = 0


def _complete(prompt: str, *, max_tokens: int, stop: list[str]) -> tuple[str, int, str]:
    """Echo the prompt's words back, honouring max_tokens and stop sequences."""
    words = prompt.split() or ["ok"]
    finish_reason = "length" if len(words) > max_tokens else "stop"
    text = " ".join(words[:max_tokens])
    for s in stop:
        idx = text.find(s) if s else -1
        if idx >= 0:
            text = text[:idx]
            finish_reason = "stop"
    return text, len(text.split()), finish_reason


def create_app(
    *,
    model_id: str,
    state: MockEngineState | None = None,
    latency_s: float = 0.0,
) -> FastAPI:
    app = FastAPI(title="Axon Mock Engine", version="0.1.0")
    engine_state = state or MockEngineState()
    app.state.engine = engine_state

    @app.get("/health")
    async def health() -> Any:
        if not engine_state.healthy:
            return JSONResponse({"status": "unavailable"}, status_code=503)
        return {"status": "ok"}

    @app.post("/v1/completions")
    async def completions(request: Request) -> Any:
        try:
            payload = await request.json()
        except Exception as exc:
            raise HTTPException(status_code=400, detail="Request body must be JSON.") from exc
        if not isinstance(payload, dict):
            raise HTTPException(status_code=400, detail="Request body must be a JSON object.")

        model = payload.get("model")
        if model not in {model_id, "default"}:
            raise HTTPException(status_code=404, detail=f"The model `{model}` does not exist.")

        prompt = payload.get("prompt")
        if not isinstance(prompt, str):
            raise HTTPException(status_code=400, detail="'prompt' must be a string.")

        max_tokens = payload.get("max_tokens", 16)
        if isinstance(max_tokens, bool) or not isinstance(max_tokens, int) or max_tokens <= 0:
            raise HTTPException(status_code=400, detail="'max_tokens' must be a positive integer.")

        stop = payload.get("stop") or []
        if isinstance(stop, str):
            stop = [stop]
        if not isinstance(stop, list) or not all(isinstance(s, str) for s in stop):
            raise HTTPException(status_code=400, detail="'stop' must be a string or list of strings.")

        if latency_s > 0:
            await asyncio.sleep(latency_s)

        text, completion_tokens, finish_reason = _complete(prompt, max_tokens=max_tokens, stop=stop)
        prompt_tokens = len(prompt.split())
        engine_state.requests_served += 1
        return {
            "id": f"cmpl-{uuid.uuid4().hex}",
            "object": "text_completion",
            "created": int(time.time()),
            "model": model_id,
            "choices": [
                {
                    "index": 0,
                    "text": text,
                    "logprobs": None,
                    "finish_reason": finish_reason,
                }
            ],
            "usage": {
                "prompt_tokens": prompt_tokens,
                "completion_tokens": completion_tokens,
                "total_tokens": prompt_tokens + completion_tokens,
            },
        }

    return app
