from __future__ import annotations

import asyncio
import json
from collections.abc import Callable

import httpx
import pytest

from lpsnap.adapters.http_resilience import ResilienceConfig, ResilientClient, RetryPolicy
from lpsnap.adapters.vision import AnthropicVisionExtractor
from lpsnap.config.vision import VisionConfig, default_vision_resilience
from lpsnap.domain.model import Capture, Observation, ObservationSource
from lpsnap.domain.ports import VisionExtractionError
from tests.helpers.positions import T0, at, make_capture, make_observation

type Handler = Callable[[httpx.Request], httpx.Response]

IMAGE = "data:image/jpeg;base64,/9j/4AAQ"


def _text_response(text: str) -> httpx.Response:
    return httpx.Response(
        200,
        json={
            "id": "msg_1",
            "model": "claude-test",
            "content": [{"type": "text", "text": text}],
            "stop_reason": "end_turn",
        },
    )


def _extractor(handler: Handler, *, retry: RetryPolicy | None = None) -> AnthropicVisionExtractor:
    resilience = default_vision_resilience()
    if retry is not None:
        resilience = resilience.with_retry(retry)
    config = VisionConfig(api_key="test-key", model="claude-test", resilience=resilience)

    def factory(settings: ResilienceConfig) -> ResilientClient:
        return ResilientClient(settings, transport=httpx.MockTransport(handler))

    return AnthropicVisionExtractor(config=config, client_factory=factory, clock=lambda: at(3))


def _extract(
    extractor: AnthropicVisionExtractor, capture: Capture | None = None
) -> list[Observation]:
    return asyncio.run(
        extractor(IMAGE, capture=capture or make_capture(), context=[make_observation()])
    )


def test_extractor_sends_image_and_known_pairs() -> None:
    requests: list[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        requests.append(request)
        answer = {
            "pair": "USDC/SOL",
            "token0Amount": 500,
            "token1Amount": 2.5,
            "token0Percentage": 50,
            "token1Percentage": 50,
        }
        return _text_response(json.dumps(answer))

    observations = _extract(_extractor(handler))

    assert len(requests) == 1
    request = requests[0]
    assert str(request.url) == "https://api.anthropic.com/v1/messages"
    assert request.headers["x-api-key"] == "test-key"
    assert request.headers["anthropic-version"] == "2023-06-01"
    body = json.loads(request.content)
    assert body["model"] == "claude-test"
    image, prompt = body["messages"][0]["content"]
    assert image["source"] == {"type": "base64", "media_type": "image/jpeg", "data": "/9j/4AAQ"}
    assert "- SOL/USDC" in prompt["text"]

    assert len(observations) == 1
    observation = observations[0]
    assert observation.source is ObservationSource.VISION
    assert observation.raw_pair_label == "USDC/SOL"
    assert observation.protocol == "Orca"
    assert observation.capture_id == "cap-1"
    assert observation.captured_at == at(3)
    assert observation.fields.token1_amount == 2.5


def test_refusal_yields_no_observations() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        return _text_response('{"error": "no breakdown expanded"}')

    assert _extract(_extractor(handler)) == []


def test_api_error_is_reported() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(
            400,
            json={
                "type": "error",
                "error": {"type": "invalid_request_error", "message": "image too large"},
            },
        )

    with pytest.raises(VisionExtractionError, match="invalid_request_error"):
        _extract(_extractor(handler))


def test_unstructured_error_body_is_reported() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(401, text="unauthorized")

    with pytest.raises(VisionExtractionError, match="401: unauthorized"):
        _extract(_extractor(handler))


def test_transport_failure_is_reported() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("connection refused", request=request)

    extractor = _extractor(handler, retry=RetryPolicy.disabled())

    with pytest.raises(VisionExtractionError, match="Vision request failed"):
        _extract(extractor)


def test_response_without_text_is_rejected() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, json={"content": []})

    with pytest.raises(VisionExtractionError, match="No text content"):
        _extract(_extractor(handler))


def test_capture_without_protocol_is_rejected_before_calling() -> None:
    calls: list[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        calls.append(request)
        return _text_response("{}")

    with pytest.raises(VisionExtractionError, match="no protocol"):
        _extract(_extractor(handler), Capture(id="cap-x", timestamp=T0))

    assert calls == []
