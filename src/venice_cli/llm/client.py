"""Async client for the Venice (OpenAI-compatible) API.

Builds request payloads, attaches credentials and routes every request
through the retry engine.  ``chat()`` returns a parsed ``ChatResponse``;
``chat_stream()`` yields ``StreamChunk`` objects as the server sends them.
"""

from __future__ import annotations

import logging
from typing import Any, AsyncIterator, Protocol

import httpx

from venice_cli import __version__
from venice_cli.config import VeniceConfig
from venice_cli.llm.errors import ApiError, MissingApiKeyError, RequestFailedError
from venice_cli.llm.retry import RetryEngine
from venice_cli.llm.sse import decode_sse
from venice_cli.llm.transport import HttpTransport, TransportResponse
from venice_cli.progress import ProgressSink
from venice_cli.types import (
    ChatResponse,
    FailureKind,
    Message,
    StreamChunk,
    ToolCall,
    UsageTotals,
)

_logger = logging.getLogger(__name__)

ToolChoice = str | dict[str, Any]


class CredentialProvider(Protocol):
    def current_api_key(self) -> str | None: ...


def _wire_messages(messages: list[Message] | list[dict[str, Any]]) -> list[dict[str, Any]]:
    return [m.to_dict() if isinstance(m, Message) else dict(m) for m in messages]


def build_chat_payload(
    messages: list[Message] | list[dict[str, Any]],
    model: str,
    stream: bool,
    tools: list[dict[str, Any]] | None = None,
    tool_choice: ToolChoice | None = None,
    extra: dict[str, Any] | None = None,
) -> dict[str, Any]:
    """Request body for ``/chat/completions``."""
    payload: dict[str, Any] = {
        "model": model,
        "messages": _wire_messages(messages),
        "stream": stream,
    }
    if tools:
        payload["tools"] = tools
        payload["tool_choice"] = tool_choice or "auto"
    if stream:
        payload["stream_options"] = {"include_usage": True}
    if extra:
        payload.update(extra)
    return payload


def parse_chat_response(data: dict[str, Any], model: str) -> ChatResponse:
    """Turn a non-streamed completion body into a ``ChatResponse``.

    Fields of the wrong type are treated as absent.
    """
    if not isinstance(data, dict):
        _logger.debug("Unexpected completion body: %.80r", data)
        data = {}
    choices = data.get("choices")
    choice = choices[0] if isinstance(choices, list) and choices else {}
    if not isinstance(choice, dict):
        choice = {}
    message = choice.get("message")
    if not isinstance(message, dict):
        message = {}

    content = message.get("content")
    raw_calls = message.get("tool_calls")
    if not isinstance(raw_calls, list):
        raw_calls = []
    tool_calls = []
    for raw in raw_calls:
        try:
            tool_calls.append(ToolCall.from_dict(raw))
        except (TypeError, ValueError, AttributeError):
            _logger.debug("Dropping malformed tool call: %.80r", raw)

    finish_reason = choice.get("finish_reason")
    response_model = data.get("model")
    return ChatResponse(
        content=content if isinstance(content, str) else "",
        tool_calls=tool_calls,
        finish_reason=finish_reason if isinstance(finish_reason, str) and finish_reason else "stop",
        usage=_parse_usage(data.get("usage")),
        model=response_model if isinstance(response_model, str) else model,
    )


def _parse_usage(raw: Any) -> UsageTotals | None:
    if not isinstance(raw, dict):
        return None
    try:
        return UsageTotals.from_dict(raw)
    except (TypeError, ValueError):
        _logger.debug("Ignoring malformed usage: %.80r", raw)
        return None


class VeniceClient:
    """Client for the chat, model and embedding endpoints.

    Parameters
    ----------
    config:
        Loaded settings (base URL, timeouts, retry budget).
    credentials:
        Provider asked for the API key right before each request.
    transport:
        HTTP envelope; built from *config* when omitted.
    retry:
        Retry engine; built from *config* (with the connectivity probe)
        when omitted.
    """

    def __init__(
        self,
        config: VeniceConfig,
        credentials: CredentialProvider,
        transport: HttpTransport | None = None,
        retry: RetryEngine | None = None,
    ) -> None:
        self.config = config
        self._credentials = credentials
        self._transport = transport or HttpTransport(
            config.base_url,
            timeout=config.request_timeout,
            stream_read_timeout=config.stream_read_timeout,
        )
        self._retry = retry or RetryEngine(
            max_attempts=config.max_attempts,
            base_delay=config.retry_base_delay,
            attempt_timeout=config.request_timeout,
            probe=self.check_online,
        )

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _headers(self) -> dict[str, str]:
        api_key = self._credentials.current_api_key()
        if not api_key:
            raise MissingApiKeyError()
        return {
            "Authorization": f"Bearer {api_key}",
            "Content-Type": "application/json",
            "User-Agent": f"venice-cli/{__version__}",
        }

    async def _request_json(
        self,
        method: str,
        path: str,
        body: Any = None,
        progress: ProgressSink | None = None,
        label: str | None = None,
    ) -> Any:
        headers = self._headers()

        async def _call() -> Any:
            resp = await self._transport.send(method, path, headers=headers, body=body)
            return await resp.json()

        return await self._retry.run(_call, progress=progress, label=label)

    async def check_online(self) -> bool:
        """Short, independently timed reachability probe."""
        try:
            await self._transport.send(
                "HEAD", "/models", timeout=self.config.probe_timeout,
            )
        except ApiError:
            # An error status is still an answer
            return True
        except httpx.HTTPError:
            return False
        return True

    # ------------------------------------------------------------------
    # Chat
    # ------------------------------------------------------------------

    async def chat(
        self,
        messages: list[Message] | list[dict[str, Any]],
        model: str | None = None,
        tools: list[dict[str, Any]] | None = None,
        tool_choice: ToolChoice | None = None,
        progress: ProgressSink | None = None,
        extra: dict[str, Any] | None = None,
    ) -> ChatResponse:
        """Non-streaming chat completion."""
        model = model or self.config.default_model
        payload = build_chat_payload(
            messages, model, stream=False,
            tools=tools, tool_choice=tool_choice, extra=extra,
        )
        data = await self._request_json(
            "POST", "/chat/completions", body=payload,
            progress=progress, label="Thinking...",
        )
        return parse_chat_response(data, model)

    async def chat_stream(
        self,
        messages: list[Message] | list[dict[str, Any]],
        model: str | None = None,
        tools: list[dict[str, Any]] | None = None,
        tool_choice: ToolChoice | None = None,
        progress: ProgressSink | None = None,
        extra: dict[str, Any] | None = None,
    ) -> AsyncIterator[StreamChunk]:
        """Streaming chat completion.

        Retries only cover opening the stream.  Once bytes flow, chunks are
        decoded lazily and a broken connection propagates to the caller.
        """
        model = model or self.config.default_model
        payload = build_chat_payload(
            messages, model, stream=True,
            tools=tools, tool_choice=tool_choice, extra=extra,
        )
        headers = self._headers()

        async def _open() -> TransportResponse:
            return await self._transport.send(
                "POST", "/chat/completions",
                headers=headers, body=payload, stream=True,
            )

        resp = await self._retry.run(_open, progress=progress, label="Thinking...")
        try:
            async for chunk in decode_sse(resp.aiter_bytes()):
                yield chunk
        except httpx.HTTPError as e:
            raise RequestFailedError(
                f"Stream interrupted: {e}", FailureKind.TRANSIENT,
            ) from e
        finally:
            await resp.aclose()

    # ------------------------------------------------------------------
    # Other endpoints
    # ------------------------------------------------------------------

    async def list_models(self, progress: ProgressSink | None = None) -> list[dict[str, Any]]:
        data = await self._request_json(
            "GET", "/models", progress=progress, label="Fetching models...",
        )
        return list(data.get("data") or [])

    async def embeddings(
        self,
        inputs: str | list[str],
        model: str = "text-embedding-bge-m3",
        progress: ProgressSink | None = None,
    ) -> list[dict[str, Any]]:
        body = {
            "model": model,
            "input": inputs if isinstance(inputs, list) else [inputs],
        }
        data = await self._request_json(
            "POST", "/embeddings", body=body,
            progress=progress, label="Generating embeddings...",
        )
        return list(data.get("data") or [])

    async def web_search(
        self,
        query: str,
        model: str | None = None,
        max_results: int = 5,
        progress: ProgressSink | None = None,
    ) -> ChatResponse:
        """Chat completion with the provider's web search enabled."""
        return await self.chat(
            [Message(role="user", content=query)],
            model=model,
            progress=progress,
            extra={
                "venice_parameters": {
                    "enable_web_search": "always",
                    "web_search_max_results": max_results,
                },
            },
        )

    async def close(self) -> None:
        await self._transport.close()
