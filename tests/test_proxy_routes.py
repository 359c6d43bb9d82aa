import json

import httpx
import pytest
from fastapi.testclient import TestClient

from oneapi.background import background_tasks
from oneapi.routes import create_app
from tests.utils import (
    DEFAULT_TOKEN,
    auth_headers,
    get_token_usage,
    install_inmemory_db,
    install_upstream,
    seed_channel,
    seed_global_pricing,
    seed_token,
    sse_body,
)

CHAT_RESPONSE = {
    "id": "chatcmpl-1",
    "object": "chat.completion",
    "choices": [{"index": 0, "message": {"role": "assistant", "content": "Hello"}, "finish_reason": "stop"}],
    "usage": {"prompt_tokens": 10, "completion_tokens": 20, "total_tokens": 30},
}


def _ok(request: httpx.Request) -> httpx.Response:
    return httpx.Response(200, json=CHAT_RESPONSE)


def _build(handler=_ok):
    app = create_app()
    _, SessionLocal = install_inmemory_db(app)
    spy = install_upstream(app, handler)
    return app, SessionLocal, spy


def _chat(client: TestClient, body=None, headers=None) -> httpx.Response:
    return client.post(
        "/v1/chat/completions",
        json=body if body is not None else {"model": "gpt-4o", "messages": [{"role": "user", "content": "hi"}]},
        headers=headers if headers is not None else auth_headers(),
    )


def test_health() -> None:
    app, _, _ = _build()
    client = TestClient(app, base_url="http://test")

    resp = client.get("/health")

    assert resp.status_code == 200
    assert resp.json() == {"status": "ok"}


def test_missing_credentials_is_unauthorized() -> None:
    app, _, spy = _build()
    client = TestClient(app, base_url="http://test")

    resp = _chat(client, headers={})

    assert resp.status_code == 401
    assert resp.text == "Authorization header or x-api-key not found"
    assert spy.requests == []


def test_unknown_key_is_unauthorized() -> None:
    app, SessionLocal, _ = _build()
    seed_token(SessionLocal)
    client = TestClient(app, base_url="http://test")

    resp = _chat(client, headers=auth_headers("sk-not-issued"))

    assert resp.status_code == 401
    assert resp.text == "Invalid API key"


def test_chat_completion_is_routed_and_billed() -> None:
    app, SessionLocal, spy = _build()
    seed_token(SessionLocal)
    seed_channel(SessionLocal, "primary", endpoint="https://api.openai.test", deployment_mapper={"gpt-4o": "gpt-4o-prod"})
    seed_global_pricing(SessionLocal, {"gpt-4o": {"input": 1, "output": 2}})
    client = TestClient(app, base_url="http://test")

    resp = _chat(client)

    assert resp.status_code == 200
    assert resp.json() == CHAT_RESPONSE
    request = spy.requests[0]
    assert str(request.url) == "https://api.openai.test/v1/chat/completions"
    assert request.headers["authorization"] == "Bearer sk-upstream"
    assert spy.last_json["model"] == "gpt-4o-prod"
    assert get_token_usage(SessionLocal) == pytest.approx(50.0)


def test_x_api_key_header_is_accepted() -> None:
    app, SessionLocal, spy = _build()
    seed_token(SessionLocal)
    seed_channel(SessionLocal, "primary", deployment_mapper={"gpt-*": "gpt-any"})
    client = TestClient(app, base_url="http://test")

    resp = _chat(client, headers={"x-api-key": DEFAULT_TOKEN})

    assert resp.status_code == 200
    assert spy.last_json["model"] == "gpt-any"


def test_channel_pricing_applies_to_requested_model() -> None:
    app, SessionLocal, _ = _build()
    seed_token(SessionLocal)
    seed_channel(
        SessionLocal,
        "primary",
        deployment_mapper={"gpt-4o": "gpt-4o-prod"},
        model_pricing={"gpt-4o": {"input": 3, "output": 4}},
    )
    seed_global_pricing(SessionLocal, {"gpt-4o": {"input": 1, "output": 2}})
    client = TestClient(app, base_url="http://test")

    _chat(client)

    assert get_token_usage(SessionLocal) == pytest.approx(10 * 3 + 20 * 4)


def test_unpriced_model_is_served_but_not_billed() -> None:
    app, SessionLocal, _ = _build()
    seed_token(SessionLocal)
    seed_channel(SessionLocal, "primary", deployment_mapper={"gpt-4o": "gpt-4o-prod"})
    client = TestClient(app, base_url="http://test")

    resp = _chat(client)

    assert resp.status_code == 200
    assert get_token_usage(SessionLocal) == 0.0


def test_channel_with_malformed_pricing_is_still_served() -> None:
    app, SessionLocal, spy = _build()
    seed_token(SessionLocal)
    seed_channel(
        SessionLocal,
        "primary",
        deployment_mapper={"gpt-4o": "gpt-4o"},
        model_pricing={"gpt-4o": {"input": 1}},
    )
    client = TestClient(app, base_url="http://test")

    resp = _chat(client)

    assert resp.status_code == 200
    assert resp.json() == CHAT_RESPONSE
    assert len(spy.requests) == 1
    assert get_token_usage(SessionLocal) == 0.0


def test_exhausted_quota_never_reaches_upstream() -> None:
    app, SessionLocal, spy = _build()
    seed_token(SessionLocal, total_quota=100.0, usage=100.0)
    seed_channel(SessionLocal, "primary", deployment_mapper={"gpt-4o": "gpt-4o-prod"})
    client = TestClient(app, base_url="http://test")

    resp = _chat(client)

    assert resp.status_code == 402
    assert resp.text == "Quota exceeded"
    assert spy.requests == []


def test_no_channels_for_token() -> None:
    app, SessionLocal, _ = _build()
    seed_token(SessionLocal)
    client = TestClient(app, base_url="http://test")

    resp = _chat(client)

    assert resp.status_code == 404
    assert resp.text == "No available channels for this token"


def test_token_channel_keys_limit_routing() -> None:
    app, SessionLocal, spy = _build()
    seed_token(SessionLocal, channel_keys=["restricted"])
    seed_channel(SessionLocal, "restricted", endpoint="https://restricted.test", deployment_mapper={"gpt-4o": "r"})
    seed_channel(SessionLocal, "other", endpoint="https://other.test", deployment_mapper={"gpt-4o": "o"})
    client = TestClient(app, base_url="http://test")

    for _ in range(5):
        assert _chat(client).status_code == 200

    assert {request.url.host for request in spy.requests} == {"restricted.test"}


def test_invalid_json_body() -> None:
    app, SessionLocal, _ = _build()
    seed_token(SessionLocal)
    seed_channel(SessionLocal, "primary", deployment_mapper={"gpt-4o": "gpt-4o-prod"})
    client = TestClient(app, base_url="http://test")

    resp = client.post(
        "/v1/chat/completions",
        content=b"{not json",
        headers={**auth_headers(), "content-type": "application/json"},
    )

    assert resp.status_code == 400
    assert resp.text == "Invalid JSON body"


def test_model_is_required() -> None:
    app, SessionLocal, _ = _build()
    seed_token(SessionLocal)
    seed_channel(SessionLocal, "primary", deployment_mapper={"gpt-4o": "gpt-4o-prod"})
    client = TestClient(app, base_url="http://test")

    resp = _chat(client, body={"messages": []})

    assert resp.status_code == 400
    assert resp.text == "Model is required"


def test_unmapped_model() -> None:
    app, SessionLocal, spy = _build()
    seed_token(SessionLocal)
    seed_channel(SessionLocal, "primary", deployment_mapper={"gpt-4o": "gpt-4o-prod"})
    client = TestClient(app, base_url="http://test")

    resp = _chat(client, body={"model": "gpt-5"})

    assert resp.status_code == 400
    assert resp.text == "Model not mapped: gpt-5. Please configure deployment_mapper."
    assert spy.requests == []


def test_channel_without_type() -> None:
    app, SessionLocal, _ = _build()
    seed_token(SessionLocal)
    seed_channel(SessionLocal, "primary", type=None, deployment_mapper={"gpt-4o": "gpt-4o-prod"})
    client = TestClient(app, base_url="http://test")

    resp = _chat(client)

    assert resp.status_code == 400
    assert resp.text == "Channel type invalid"


def test_unsupported_channel_type() -> None:
    app, SessionLocal, _ = _build()
    seed_token(SessionLocal)
    seed_channel(SessionLocal, "primary", type="bedrock", deployment_mapper={"gpt-4o": "gpt-4o-prod"})
    client = TestClient(app, base_url="http://test")

    resp = _chat(client)

    assert resp.status_code == 400
    assert resp.text == "Channel type not supported"


def test_upstream_error_is_relayed_and_not_billed() -> None:
    app, SessionLocal, _ = _build(
        lambda request: httpx.Response(503, json={"error": {"message": "overloaded"}})
    )
    seed_token(SessionLocal)
    seed_channel(SessionLocal, "primary", deployment_mapper={"gpt-4o": "gpt-4o-prod"})
    seed_global_pricing(SessionLocal, {"gpt-4o": {"input": 1, "output": 2}})
    client = TestClient(app, base_url="http://test")

    resp = _chat(client)

    assert resp.status_code == 503
    assert resp.json() == {"error": {"message": "overloaded"}}
    assert get_token_usage(SessionLocal) == 0.0


def test_unreachable_upstream_is_bad_gateway() -> None:
    def refuse(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("connection refused", request=request)

    app, SessionLocal, _ = _build(refuse)
    seed_token(SessionLocal)
    seed_channel(SessionLocal, "primary", deployment_mapper={"gpt-4o": "gpt-4o-prod"})
    client = TestClient(app, base_url="http://test")

    resp = _chat(client)

    assert resp.status_code == 502
    assert resp.text == "Upstream request failed"


def test_responses_route_only_uses_responses_channels() -> None:
    app, SessionLocal, spy = _build(
        lambda request: httpx.Response(200, json={"id": "resp_1", "usage": {"input_tokens": 4, "output_tokens": 1}})
    )
    seed_token(SessionLocal)
    seed_channel(SessionLocal, "chat", type="openai", deployment_mapper={"gpt-4.1": "chat-deployment"})
    client = TestClient(app, base_url="http://test")

    resp = client.post("/v1/responses", json={"model": "gpt-4.1", "input": "hi"}, headers=auth_headers())
    assert resp.status_code == 400
    assert resp.text == "Model not mapped: gpt-4.1. Please configure deployment_mapper."

    seed_channel(
        SessionLocal,
        "responses",
        type="openai-responses",
        endpoint="https://responses.test",
        deployment_mapper={"gpt-4.1": "gpt-4.1-prod"},
    )
    resp = client.post("/v1/responses", json={"model": "gpt-4.1", "input": "hi"}, headers=auth_headers())

    assert resp.status_code == 200
    assert str(spy.requests[-1].url) == "https://responses.test/v1/responses"
    assert spy.last_json["model"] == "gpt-4.1-prod"


@pytest.mark.asyncio
async def test_streaming_chat_is_billed_after_the_stream() -> None:
    upstream_body = sse_body(
        {"id": "c1", "choices": [{"index": 0, "delta": {"content": "Hel"}}]},
        {"id": "c1", "choices": [{"index": 0, "delta": {"content": "lo"}, "finish_reason": "stop"}]},
        {"id": "c1", "choices": [], "usage": {"prompt_tokens": 10, "completion_tokens": 20, "total_tokens": 30}},
    )
    app, SessionLocal, spy = _build(
        lambda request: httpx.Response(200, content=upstream_body, headers={"content-type": "text/event-stream"})
    )
    seed_token(SessionLocal)
    seed_channel(SessionLocal, "primary", deployment_mapper={"gpt-4o": "gpt-4o-prod"})
    seed_global_pricing(SessionLocal, {"gpt-4o": {"input": 1, "output": 2}})

    async with httpx.AsyncClient(transport=httpx.ASGITransport(app=app), base_url="http://test") as client:
        resp = await client.post(
            "/v1/chat/completions",
            json={"model": "gpt-4o", "stream": True, "messages": [{"role": "user", "content": "hi"}]},
            headers=auth_headers(),
        )
    await background_tasks.drain(5)

    assert resp.status_code == 200
    assert resp.content == upstream_body
    assert spy.last_json["stream_options"] == {"include_usage": True}
    assert get_token_usage(SessionLocal) == pytest.approx(50.0)


@pytest.mark.asyncio
async def test_messages_route_translates_for_openai_upstream() -> None:
    upstream_body = sse_body(
        {"id": "c2", "model": "gpt-4o", "choices": [{"index": 0, "delta": {"role": "assistant", "content": "Hi"}}]},
        {"id": "c2", "model": "gpt-4o", "choices": [{"index": 0, "delta": {}, "finish_reason": "stop"}]},
        {"id": "c2", "model": "gpt-4o", "choices": [], "usage": {"prompt_tokens": 8, "completion_tokens": 2}},
    )
    app, SessionLocal, spy = _build(
        lambda request: httpx.Response(200, content=upstream_body, headers={"content-type": "text/event-stream"})
    )
    seed_token(SessionLocal)
    seed_channel(
        SessionLocal,
        "bridge",
        type="claude-to-openai",
        endpoint="https://openai-compatible.test/",
        deployment_mapper={"claude-3-5-sonnet": "gpt-4o"},
    )
    seed_global_pricing(SessionLocal, {"claude-3-5-sonnet": {"input": 1, "output": 1}})

    async with httpx.AsyncClient(transport=httpx.ASGITransport(app=app), base_url="http://test") as client:
        resp = await client.post(
            "/v1/messages",
            json={
                "model": "claude-3-5-sonnet",
                "max_tokens": 32,
                "stream": True,
                "messages": [{"role": "user", "content": "Hello"}],
            },
            headers={"x-api-key": DEFAULT_TOKEN, "anthropic-version": "2023-06-01"},
        )
    await background_tasks.drain(5)

    events = [
        line[len("event: ") :] for line in resp.text.splitlines() if line.startswith("event: ")
    ]
    assert events == [
        "message_start",
        "content_block_start",
        "content_block_delta",
        "content_block_stop",
        "message_delta",
        "message_stop",
    ]
    request = spy.requests[0]
    assert str(request.url) == "https://openai-compatible.test/v1/chat/completions"
    assert "anthropic-version" not in request.headers
    assert json.loads(request.content)["messages"] == [{"role": "user", "content": "Hello"}]
    assert get_token_usage(SessionLocal) == pytest.approx(10.0)
