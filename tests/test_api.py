"""Test suite for the relay endpoints."""

import json
from typing import Callable, List, Optional, Tuple

import httpx
import pytest
from fastapi import FastAPI
from httpx import AsyncClient

from energy_assistant_chat.api.app import create_app
from energy_assistant_chat.config import RelaySettings

COMPLETION = {"choices": [{"message": {"role": "assistant", "content": "Solar is great."}}]}
CHAT_BODY = {"messages": [{"role": "user", "content": "Tell me about solar"}]}


def build_app(
    api_key: Optional[str] = "sk-test",
    upstream: Optional[Callable[[httpx.Request], httpx.Response]] = None,
) -> Tuple[FastAPI, List[httpx.Request]]:
    """Create an app whose upstream calls are recorded and answered locally."""
    calls: List[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        calls.append(request)
        if upstream is not None:
            return upstream(request)
        return httpx.Response(200, json=COMPLETION)

    app = create_app(RelaySettings(api_key=api_key), transport=httpx.MockTransport(handler))
    return app, calls


def client_for(app: FastAPI) -> AsyncClient:
    return AsyncClient(transport=httpx.ASGITransport(app=app), base_url="http://test")


def assert_cors(response: httpx.Response) -> None:
    assert response.headers["access-control-allow-origin"] == "*"
    assert response.headers["access-control-allow-headers"] == "Content-Type"
    assert response.headers["access-control-allow-methods"] == "POST,OPTIONS"


@pytest.mark.asyncio
async def test_successful_relay():
    """Test a well-formed request returns the completion text."""
    app, calls = build_app()
    async with client_for(app) as client:
        response = await client.post("/api/chat", json=CHAT_BODY)
        assert response.status_code == 200
        assert response.json() == {"text": "Solar is great."}
        assert response.headers["content-type"].startswith("application/json")
        assert_cors(response)
        assert len(calls) == 1


@pytest.mark.asyncio
async def test_upstream_request_shape():
    """Test the outbound call carries the credential and fixed parameters."""
    app, calls = build_app()
    async with client_for(app) as client:
        await client.post("/api/chat", json=CHAT_BODY)

    upstream_request = calls[0]
    assert upstream_request.method == "POST"
    assert str(upstream_request.url) == "https://api.openai.com/v1/chat/completions"
    assert upstream_request.headers["authorization"] == "Bearer sk-test"
    assert json.loads(upstream_request.content) == {
        "model": "gpt-4o-mini",
        "messages": CHAT_BODY["messages"],
        "max_tokens": 900,
        "temperature": 0.7,
    }


@pytest.mark.asyncio
async def test_messages_default_to_empty():
    """Test a body without messages forwards an empty sequence."""
    app, calls = build_app()
    async with client_for(app) as client:
        response = await client.post("/api/chat", json={})
        assert response.status_code == 200
    assert json.loads(calls[0].content)["messages"] == []


@pytest.mark.asyncio
async def test_empty_body_is_treated_as_empty_object():
    """Test an empty POST body is accepted."""
    app, calls = build_app()
    async with client_for(app) as client:
        response = await client.post("/api/chat", content=b"")
        assert response.status_code == 200
    assert json.loads(calls[0].content)["messages"] == []


@pytest.mark.asyncio
async def test_preflight():
    """Test OPTIONS returns an empty 200 with CORS headers."""
    app, calls = build_app(api_key=None)
    async with client_for(app) as client:
        response = await client.request("OPTIONS", "/api/chat", content=b"{not json")
        assert response.status_code == 200
        assert response.content == b""
        assert_cors(response)
    assert calls == []


@pytest.mark.asyncio
async def test_method_not_allowed():
    """Test methods other than POST and OPTIONS are rejected."""
    app, calls = build_app()
    async with client_for(app) as client:
        for method in ("GET", "PUT", "PATCH", "DELETE"):
            response = await client.request(method, "/api/chat")
            assert response.status_code == 405
            assert response.json() == {"error": "Method not allowed"}
            assert_cors(response)
    assert calls == []


@pytest.mark.asyncio
async def test_unrouted_method_not_allowed():
    """Test methods outside the route table get the relay error body."""
    app, calls = build_app()
    async with client_for(app) as client:
        for path in ("/api/chat", "/.netlify/functions/chatgpt"):
            response = await client.request("TRACE", path)
            assert response.status_code == 405
            assert response.json() == {"error": "Method not allowed"}
            assert_cors(response)
    assert calls == []


@pytest.mark.asyncio
async def test_missing_credential():
    """Test a missing API key fails before any upstream call."""
    app, calls = build_app(api_key=None)
    async with client_for(app) as client:
        response = await client.post("/api/chat", json=CHAT_BODY)
        assert response.status_code == 500
        assert "OPENAI_API_KEY" in response.json()["error"]
        assert_cors(response)
    assert calls == []


@pytest.mark.asyncio
async def test_invalid_json_body():
    """Test undecodable bodies are rejected with 400."""
    app, calls = build_app()
    async with client_for(app) as client:
        response = await client.post("/api/chat", content=b"{not json")
        assert response.status_code == 400
        assert response.json() == {"error": "Invalid JSON body"}
        assert_cors(response)
    assert calls == []


@pytest.mark.asyncio
async def test_null_or_non_object_body_forwards_empty_messages():
    """Test null messages and non-object bodies forward an empty sequence."""
    app, calls = build_app()
    async with client_for(app) as client:
        response = await client.post("/api/chat", json={"messages": None})
        assert response.status_code == 200
        response = await client.post("/api/chat", json=["not", "an", "object"])
        assert response.status_code == 200
    assert [json.loads(c.content)["messages"] for c in calls] == [[], []]


@pytest.mark.asyncio
async def test_messages_forwarded_unchanged():
    """Test messages reach upstream exactly as the client sent them."""
    messages = [
        {"role": "user", "content": "hi", "name": "alice"},
        {
            "role": "user",
            "content": [
                {"type": "text", "text": "What does this meter show?"},
                {"type": "image_url", "image_url": {"url": "https://example.org/meter.png"}},
            ],
        },
        {"role": "assistant", "content": None},
    ]
    app, calls = build_app()
    async with client_for(app) as client:
        response = await client.post("/api/chat", json={"messages": messages})
        assert response.status_code == 200
    assert json.loads(calls[0].content)["messages"] == messages


@pytest.mark.asyncio
async def test_upstream_error_passthrough():
    """Test upstream failures keep their status and body byte-for-byte."""
    raw = b'{"error": {"message": "Rate limit reached", "type": "requests"}}'
    app, _ = build_app(upstream=lambda request: httpx.Response(429, content=raw))
    async with client_for(app) as client:
        response = await client.post("/api/chat", json=CHAT_BODY)
        assert response.status_code == 429
        assert response.content == raw
        assert_cors(response)


@pytest.mark.asyncio
async def test_upstream_error_with_empty_body():
    """Test an empty upstream error body gets a generic error."""
    app, _ = build_app(upstream=lambda request: httpx.Response(503))
    async with client_for(app) as client:
        response = await client.post("/api/chat", json=CHAT_BODY)
        assert response.status_code == 503
        assert response.json() == {"error": "OpenAI error"}


@pytest.mark.asyncio
async def test_missing_completion_path():
    """Test a success body without choices yields empty text."""
    app, _ = build_app(upstream=lambda request: httpx.Response(200, json={"id": "cmpl-1"}))
    async with client_for(app) as client:
        response = await client.post("/api/chat", json=CHAT_BODY)
        assert response.status_code == 200
        assert response.json() == {"text": ""}


@pytest.mark.asyncio
async def test_unparseable_upstream_body():
    """Test a non-JSON success body is reported as a parse error."""
    app, _ = build_app(upstream=lambda request: httpx.Response(200, content=b"<html>oops</html>"))
    async with client_for(app) as client:
        response = await client.post("/api/chat", json=CHAT_BODY)
        assert response.status_code == 500
        assert response.json() == {"error": "Failed to parse OpenAI response JSON"}
        assert_cors(response)


@pytest.mark.asyncio
async def test_upstream_unreachable():
    """Test transport failures report the underlying error."""

    def refuse(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("Connection refused", request=request)

    app, _ = build_app(upstream=refuse)
    async with client_for(app) as client:
        response = await client.post("/api/chat", json=CHAT_BODY)
        assert response.status_code == 500
        assert "Connection refused" in response.json()["error"]
        assert_cors(response)


@pytest.mark.asyncio
async def test_serverless_function_path():
    """Test the relay is reachable on the function path too."""
    app, calls = build_app()
    async with client_for(app) as client:
        response = await client.post("/.netlify/functions/chatgpt", json=CHAT_BODY)
        assert response.status_code == 200
        assert response.json() == {"text": "Solar is great."}
    assert len(calls) == 1


@pytest.mark.asyncio
async def test_metrics_endpoint():
    """Test relay counters are exposed for Prometheus."""
    app, _ = build_app(api_key=None)
    async with client_for(app) as client:
        await client.post("/api/chat", json=CHAT_BODY)
        response = await client.get("/metrics")
        assert response.status_code == 200
        assert "relay_requests_total" in response.text
        assert 'relay_errors_total{kind="misconfigured"} 1.0' in response.text
