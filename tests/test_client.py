"""Tests for VeniceClient against httpx.MockTransport."""

from __future__ import annotations

import json
from typing import Callable
from unittest.mock import AsyncMock

import httpx
import pytest

from venice_cli import __version__
from venice_cli.config import VeniceConfig
from venice_cli.llm.client import VeniceClient, build_chat_payload
from venice_cli.llm.errors import (
    AuthenticationError,
    MissingApiKeyError,
    OfflineError,
    RequestFailedError,
)
from venice_cli.llm.retry import RetryEngine
from venice_cli.llm.transport import HttpTransport
from venice_cli.progress import RecordingProgress
from venice_cli.types import Message, UsageTotals

BASE_URL = "https://api.test/api/v1"


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

class StaticCredentials:
    def __init__(self, key: str | None = "test-key") -> None:
        self.key = key

    def current_api_key(self) -> str | None:
        return self.key


def _make_client(
    handler: Callable[[httpx.Request], httpx.Response],
    key: str | None = "test-key",
    probe: bool = True,
) -> VeniceClient:
    config = VeniceConfig(base_url=BASE_URL)
    transport = HttpTransport(BASE_URL, transport=httpx.MockTransport(handler))
    client = VeniceClient(config, StaticCredentials(key), transport=transport)
    client._retry = RetryEngine(
        max_attempts=4,
        base_delay=0,
        probe=client.check_online if probe else None,
        sleep=AsyncMock(),
    )
    return client


def _completion(content: str = "Hello!", tool_calls: list | None = None) -> dict:
    message: dict = {"role": "assistant", "content": content}
    if tool_calls:
        message["tool_calls"] = tool_calls
    return {
        "choices": [{"message": message, "finish_reason": "tool_calls" if tool_calls else "stop"}],
        "usage": {"prompt_tokens": 10, "completion_tokens": 20, "total_tokens": 30},
        "model": "llama-3.3-70b",
    }


def _sse(*payloads: dict) -> bytes:
    body = "".join(f"data: {json.dumps(p)}\n\n" for p in payloads)
    return (body + "data: [DONE]\n\n").encode()


# ---------------------------------------------------------------------------
# Tests
# ---------------------------------------------------------------------------

class TestPayload:
    def test_minimal(self):
        payload = build_chat_payload([Message(role="user", content="Hi")], "m", stream=False)
        assert payload == {
            "model": "m",
            "messages": [{"role": "user", "content": "Hi"}],
            "stream": False,
        }

    def test_tools_default_to_auto(self):
        tools = [{"type": "function", "function": {"name": "calculator"}}]
        payload = build_chat_payload([], "m", stream=True, tools=tools)
        assert payload["tool_choice"] == "auto"
        assert payload["stream_options"] == {"include_usage": True}

    def test_explicit_tool_choice(self):
        choice = {"type": "function", "function": {"name": "hash"}}
        payload = build_chat_payload([], "m", stream=False, tools=[{}], tool_choice=choice)
        assert payload["tool_choice"] == choice


class TestChat:
    @pytest.mark.asyncio
    async def test_request_shape_and_response(self):
        seen: list[httpx.Request] = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(request)
            return httpx.Response(200, json=_completion("World"))

        client = _make_client(handler)
        result = await client.chat([Message(role="user", content="Hi")], model="llama-3.3-70b")
        await client.close()

        assert result.content == "World"
        assert result.usage == UsageTotals(10, 20, 30)
        request = seen[0]
        assert request.url == f"{BASE_URL}/chat/completions"
        assert request.headers["Authorization"] == "Bearer test-key"
        assert request.headers["User-Agent"] == f"venice-cli/{__version__}"
        body = json.loads(request.content)
        assert body == {
            "model": "llama-3.3-70b",
            "messages": [{"role": "user", "content": "Hi"}],
            "stream": False,
        }

    @pytest.mark.asyncio
    async def test_tool_calls_parsed(self):
        calls = [{
            "id": "call_1",
            "type": "function",
            "function": {"name": "calculator", "arguments": '{"expression": "2+2"}'},
        }]

        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(200, json=_completion("", tool_calls=calls))

        client = _make_client(handler)
        result = await client.chat([Message(role="user", content="2+2?")])
        await client.close()

        assert result.has_tool_calls
        assert result.tool_calls[0].name == "calculator"
        assert result.tool_calls[0].arguments == '{"expression": "2+2"}'

    @pytest.mark.asyncio
    async def test_wrongly_shaped_body_fields_treated_as_absent(self):
        body = {
            "choices": [{"message": {"content": 5, "tool_calls": ["x", {"function": "y"}]}}],
            "usage": {"prompt_tokens": "abc"},
            "model": 3,
        }

        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(200, json=body)

        client = _make_client(handler)
        result = await client.chat([Message(role="user", content="Hi")], model="llama-3.3-70b")
        await client.close()

        assert result.content == ""
        assert result.tool_calls == []
        assert result.usage is None
        assert result.model == "llama-3.3-70b"
        assert result.finish_reason == "stop"

    @pytest.mark.asyncio
    async def test_usage_that_is_not_an_object_ignored(self):
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(200, json={**_completion("ok"), "usage": 7})

        client = _make_client(handler)
        result = await client.chat([Message(role="user", content="Hi")])
        await client.close()

        assert result.content == "ok"
        assert result.usage is None

    @pytest.mark.asyncio
    async def test_missing_api_key_fails_before_request(self):
        handler = AsyncMock()
        client = _make_client(handler, key=None)

        with pytest.raises(MissingApiKeyError):
            await client.chat([Message(role="user", content="Hi")])
        await client.close()
        handler.assert_not_called()

    @pytest.mark.asyncio
    async def test_server_error_retried(self):
        responses = iter([
            httpx.Response(503, text="busy"),
            httpx.Response(200, json=_completion("recovered")),
        ])

        def handler(request: httpx.Request) -> httpx.Response:
            return next(responses)

        client = _make_client(handler)
        progress = RecordingProgress()
        result = await client.chat([Message(role="user", content="Hi")], progress=progress)
        await client.close()

        assert result.content == "recovered"
        assert progress.reports == ["Thinking...", "Retrying... (attempt 2/4)"]

    @pytest.mark.asyncio
    async def test_unauthorized(self):
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(401, json={"error": {"message": "bad key"}})

        client = _make_client(handler)
        with pytest.raises(AuthenticationError):
            await client.chat([Message(role="user", content="Hi")])
        await client.close()

    @pytest.mark.asyncio
    async def test_client_error_message(self):
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(400, json={"error": {"message": "Unknown model"}})

        client = _make_client(handler)
        with pytest.raises(RequestFailedError, match="Unknown model"):
            await client.chat([Message(role="user", content="Hi")], model="nope")
        await client.close()

    @pytest.mark.asyncio
    async def test_network_fault_with_failed_probe_is_offline(self):
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("unreachable", request=request)

        client = _make_client(handler)
        with pytest.raises(OfflineError):
            await client.chat([Message(role="user", content="Hi")])
        await client.close()


class TestProbe:
    @pytest.mark.asyncio
    async def test_probe_uses_head_models(self):
        seen: list[httpx.Request] = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(request)
            return httpx.Response(401)

        client = _make_client(handler)
        assert await client.check_online() is True
        await client.close()
        assert seen[0].method == "HEAD"
        assert seen[0].url == f"{BASE_URL}/models"


class TestChatStream:
    @pytest.mark.asyncio
    async def test_stream_chunks(self):
        seen: list[httpx.Request] = []
        body = _sse(
            {"choices": [{"delta": {"content": "Hel"}}]},
            {"choices": [{"delta": {"content": "lo"}}]},
            {"choices": [], "usage": {"prompt_tokens": 3, "completion_tokens": 2, "total_tokens": 5}},
        )

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(request)
            return httpx.Response(200, content=body)

        client = _make_client(handler)
        chunks = [c async for c in client.chat_stream([Message(role="user", content="Hi")])]
        await client.close()

        assert "".join(c.content for c in chunks if c.content) == "Hello"
        assert chunks[-1].done
        assert chunks[-1].usage == UsageTotals(3, 2, 5)
        sent = json.loads(seen[0].content)
        assert sent["stream"] is True
        assert sent["stream_options"] == {"include_usage": True}

    @pytest.mark.asyncio
    async def test_stream_open_error_is_retried(self):
        responses = iter([
            httpx.Response(500, text="oops"),
            httpx.Response(200, content=_sse({"choices": [{"delta": {"content": "ok"}}]})),
        ])

        def handler(request: httpx.Request) -> httpx.Response:
            return next(responses)

        client = _make_client(handler)
        chunks = [c async for c in client.chat_stream([Message(role="user", content="Hi")])]
        await client.close()
        assert chunks[0].content == "ok"


class TestOtherEndpoints:
    @pytest.mark.asyncio
    async def test_list_models(self):
        def handler(request: httpx.Request) -> httpx.Response:
            assert request.method == "GET"
            return httpx.Response(200, json={"data": [{"id": "llama-3.3-70b"}]})

        client = _make_client(handler)
        assert await client.list_models() == [{"id": "llama-3.3-70b"}]
        await client.close()

    @pytest.mark.asyncio
    async def test_embeddings_wraps_single_input(self):
        seen: list[dict] = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(json.loads(request.content))
            return httpx.Response(200, json={"data": [{"index": 0, "embedding": [0.1, 0.2]}]})

        client = _make_client(handler)
        data = await client.embeddings("hello")
        await client.close()
        assert data[0]["embedding"] == [0.1, 0.2]
        assert seen[0] == {"model": "text-embedding-bge-m3", "input": ["hello"]}

    @pytest.mark.asyncio
    async def test_web_search_parameters(self):
        seen: list[dict] = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(json.loads(request.content))
            return httpx.Response(200, json=_completion("found it"))

        client = _make_client(handler)
        result = await client.web_search("news", max_results=3)
        await client.close()
        assert result.content == "found it"
        assert seen[0]["venice_parameters"] == {
            "enable_web_search": "always",
            "web_search_max_results": 3,
        }
