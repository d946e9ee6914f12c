import json

import httpx
import pytest

from axon.engine.backends.vllm.client import VllmClient, build_completion_payload, tokens_per_second
from axon.engine.types import InferenceRequest, SamplingParams
from axon.errors import BackendNotRunning, InferenceFailed, Timeout, TransportError, Unhealthy


def _completion(text="Hello there", finish_reason="stop", text_tokens=None, completion_tokens=3):
    choice = {"index": 0, "text": text, "finish_reason": finish_reason}
    if text_tokens is not None:
        choice["text_tokens"] = text_tokens
    return {
        "id": "cmpl-1",
        "choices": [choice],
        "usage": {"prompt_tokens": 2, "completion_tokens": completion_tokens, "total_tokens": 2 + completion_tokens},
    }


class Recorder:
    """MockTransport handler that records requests and replays one response."""

    def __init__(self, response: httpx.Response):
        self.response = response
        self.requests: list[httpx.Request] = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        return self.response

    @property
    def last_payload(self) -> dict:
        return json.loads(self.requests[-1].content)


def _client(handler, **kwargs) -> VllmClient:
    return VllmClient("http://engine:8000", transport=httpx.MockTransport(handler), **kwargs)


class StepClock:
    def __init__(self, *values: float):
        self._values = list(values)

    def __call__(self) -> float:
        return self._values.pop(0)


def test_payload_omits_unset_top_k():
    payload = build_completion_payload(InferenceRequest(prompt="Hello"), model="m")
    assert payload == {"model": "m", "prompt": "Hello", "max_tokens": 100, "temperature": 1.0}
    assert "top_k" not in payload
    assert "stop" not in payload


def test_payload_includes_set_fields():
    request = InferenceRequest(
        prompt="Hello",
        sampling=SamplingParams(
            max_tokens=16,
            temperature=0.7,
            top_p=0.9,
            top_k=40,
            presence_penalty=0.0,
            frequency_penalty=0.5,
            stop_sequences=["\n\n", "###"],
        ),
    )
    payload = build_completion_payload(request, model="m")
    assert payload["top_k"] == 40
    assert payload["top_p"] == 0.9
    # Zero is a value, not "unset".
    assert payload["presence_penalty"] == 0.0
    assert payload["frequency_penalty"] == 0.5
    assert payload["stop"] == ["\n\n", "###"]
    assert payload["max_tokens"] == 16
    assert payload["temperature"] == 0.7


def test_tokens_per_second():
    assert tokens_per_second(50, 0.0) == 0.0
    assert tokens_per_second(50, 2.0) == 25.0
    assert tokens_per_second(0, 2.0) == 0.0


@pytest.mark.anyio
async def test_infer_sends_payload_and_maps_response():
    recorder = Recorder(httpx.Response(200, json=_completion(text_tokens=50)))
    async with _client(recorder, model="meta-llama/Llama-2-7b", clock=StepClock(10.0, 12.0)) as client:
        response = await client.infer(
            InferenceRequest(prompt="Hi", sampling=SamplingParams(top_k=40), request_id="example-001")
        )

    sent = recorder.requests[-1]
    assert sent.method == "POST"
    assert sent.url.path == "/v1/completions"
    assert recorder.last_payload["model"] == "meta-llama/Llama-2-7b"
    assert recorder.last_payload["top_k"] == 40

    assert response.text == "Hello there"
    assert response.tokens_generated == 50
    assert response.inference_time == 2.0
    assert response.tokens_per_second == 25.0
    assert response.finish_reason == "stop"
    assert response.request_id == "example-001"


@pytest.mark.anyio
async def test_zero_elapsed_time_gives_zero_throughput():
    recorder = Recorder(httpx.Response(200, json=_completion(text_tokens=7)))
    async with _client(recorder, clock=StepClock(5.0, 5.0)) as client:
        response = await client.infer(InferenceRequest(prompt="Hi"))
    assert response.inference_time == 0.0
    assert response.tokens_per_second == 0.0
    assert response.request_id is None


@pytest.mark.anyio
async def test_model_alias_used_before_model_is_known():
    recorder = Recorder(httpx.Response(200, json=_completion()))
    async with _client(recorder) as client:
        await client.infer(InferenceRequest(prompt="Hi"))
    assert recorder.last_payload["model"] == "default"


@pytest.mark.anyio
async def test_tokens_fall_back_to_usage():
    recorder = Recorder(httpx.Response(200, json=_completion(completion_tokens=12)))
    async with _client(recorder) as client:
        response = await client.infer(InferenceRequest(prompt="Hi"))
    assert response.tokens_generated == 12


@pytest.mark.anyio
async def test_engine_reported_finish_reason_passes_through():
    recorder = Recorder(httpx.Response(200, json=_completion(finish_reason="length")))
    async with _client(recorder) as client:
        response = await client.infer(InferenceRequest(prompt="Hi"))
    assert response.finish_reason == "length"


@pytest.mark.anyio
async def test_non_success_status_raises_inference_failed():
    recorder = Recorder(httpx.Response(400, text='{"message": "max_tokens too large"}'))
    async with _client(recorder) as client:
        with pytest.raises(InferenceFailed) as exc_info:
            await client.infer(InferenceRequest(prompt="Hi"))
    assert exc_info.value.status_code == 400
    assert "max_tokens too large" in exc_info.value.body


@pytest.mark.anyio
async def test_empty_choices_raise_inference_failed():
    body = {"id": "cmpl-1", "choices": [], "usage": {"prompt_tokens": 1, "completion_tokens": 0, "total_tokens": 1}}
    async with _client(Recorder(httpx.Response(200, json=body))) as client:
        with pytest.raises(InferenceFailed, match="No choices") as exc_info:
            await client.infer(InferenceRequest(prompt="Hi"))
    assert exc_info.value.status_code == 200
    assert '"choices":[]' in exc_info.value.body.replace(" ", "")


@pytest.mark.anyio
async def test_malformed_choice_carries_status_and_body():
    body = {"id": "cmpl-2", "choices": [{"index": 0, "text": None}]}
    async with _client(Recorder(httpx.Response(200, json=body))) as client:
        with pytest.raises(InferenceFailed, match="malformed choice") as exc_info:
            await client.infer(InferenceRequest(prompt="Hi"))
    assert exc_info.value.status_code == 200
    assert "cmpl-2" in exc_info.value.body


@pytest.mark.anyio
async def test_invalid_json_raises_inference_failed():
    async with _client(Recorder(httpx.Response(200, text="not json"))) as client:
        with pytest.raises(InferenceFailed, match="invalid JSON"):
            await client.infer(InferenceRequest(prompt="Hi"))


@pytest.mark.anyio
async def test_health_check_success_and_failure():
    ok = Recorder(httpx.Response(200, json={"status": "ok"}))
    async with _client(ok) as client:
        await client.health_check()
    assert ok.requests[-1].method == "GET"
    assert ok.requests[-1].url.path == "/health"

    async with _client(Recorder(httpx.Response(503))) as client:
        with pytest.raises(Unhealthy) as exc_info:
            await client.health_check()
    assert exc_info.value.status_code == 503


@pytest.mark.anyio
async def test_transport_failures_are_mapped():
    def refuse(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("connection refused", request=request)

    def stall(request: httpx.Request) -> httpx.Response:
        raise httpx.ReadTimeout("timed out", request=request)

    async with _client(refuse) as client:
        with pytest.raises(TransportError):
            await client.infer(InferenceRequest(prompt="Hi"))
        with pytest.raises(TransportError):
            await client.health_check()

    async with _client(stall) as client:
        with pytest.raises(Timeout):
            await client.infer(InferenceRequest(prompt="Hi"))


@pytest.mark.anyio
async def test_closed_client_reports_not_running():
    client = _client(Recorder(httpx.Response(200, json=_completion())))
    await client.aclose()
    with pytest.raises(BackendNotRunning):
        await client.infer(InferenceRequest(prompt="Hi"))


@pytest.mark.anyio
async def test_against_mock_engine():
    pytest.importorskip("fastapi", reason="fastapi not installed")
    from apps.mock_engine.app import create_app

    transport = httpx.ASGITransport(app=create_app(model_id="mock-model"))
    async with VllmClient("http://engine", model="mock-model", transport=transport) as client:
        await client.health_check()
        response = await client.infer(
            InferenceRequest(prompt="one two three four", sampling=SamplingParams(max_tokens=2))
        )
    assert response.text == "one two"
    assert response.tokens_generated == 2
    assert response.finish_reason == "length"
    assert response.inference_time >= 0.0
