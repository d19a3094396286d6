"""Tests for the SSE stream decoder."""

from __future__ import annotations

import json
from typing import AsyncIterator

import pytest

from venice_cli.llm.sse import SSEDecoder, decode_sse
from venice_cli.types import StreamChunk, UsageTotals


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

async def _stream(*parts: bytes) -> AsyncIterator[bytes]:
    for part in parts:
        yield part


async def _collect(*parts: bytes) -> list[StreamChunk]:
    return [chunk async for chunk in decode_sse(_stream(*parts))]


def _record(payload: dict) -> bytes:
    return f"data: {json.dumps(payload, ensure_ascii=False)}\n\n".encode()


def _content(text: str) -> bytes:
    return _record({"choices": [{"delta": {"content": text}}]})


# ---------------------------------------------------------------------------
# Tests
# ---------------------------------------------------------------------------

class TestDecodeSSE:
    @pytest.mark.asyncio
    async def test_single_content_delta(self):
        chunks = await _collect(
            b'data: {"choices":[{"delta":{"content":"Hi"}}]}\n\ndata: [DONE]\n\n'
        )
        assert chunks == [StreamChunk(content="Hi"), StreamChunk(done=True)]

    @pytest.mark.asyncio
    async def test_empty_stream_yields_only_terminal(self):
        assert await _collect() == [StreamChunk(done=True)]

    @pytest.mark.asyncio
    async def test_done_only(self):
        assert await _collect(b"data: [DONE]\n\n") == [StreamChunk(done=True)]

    @pytest.mark.asyncio
    async def test_malformed_record_is_skipped(self):
        chunks = await _collect(b"data: {not json\n\ndata: [DONE]\n\n")
        assert chunks == [StreamChunk(done=True)]

    @pytest.mark.asyncio
    async def test_records_split_across_reads(self):
        raw = _content("Hello") + _content(", world") + b"data: [DONE]\n\n"
        whole = await _collect(raw)
        pieces = await _collect(*(raw[i:i + 3] for i in range(0, len(raw), 3)))
        assert pieces == whole
        assert [c.content for c in whole if c.content] == ["Hello", ", world"]

    @pytest.mark.asyncio
    async def test_multibyte_character_split_across_reads(self):
        raw = _content("héllo ✓") + b"data: [DONE]\n"
        split_at = raw.index("✓".encode()) + 1
        chunks = await _collect(raw[:split_at], raw[split_at:])
        assert chunks[0].content == "héllo ✓"

    @pytest.mark.asyncio
    async def test_crlf_line_endings(self):
        raw = b'data: {"choices":[{"delta":{"content":"x"}}]}\r\n\r\ndata: [DONE]\r\n'
        assert await _collect(raw) == [StreamChunk(content="x"), StreamChunk(done=True)]

    @pytest.mark.asyncio
    async def test_trailing_record_without_newline(self):
        raw = b'data: {"choices":[{"delta":{"content":"tail"}}]}'
        assert await _collect(raw) == [StreamChunk(content="tail"), StreamChunk(done=True)]

    @pytest.mark.asyncio
    async def test_non_data_lines_ignored(self):
        raw = b": keep-alive\nevent: ping\n" + _content("a") + b"data: [DONE]\n"
        assert [c.content for c in await _collect(raw)] == ["a", None]

    @pytest.mark.asyncio
    async def test_usage_latest_wins_on_terminal_chunk(self):
        raw = (
            _record({"choices": [], "usage": {"prompt_tokens": 1, "completion_tokens": 1, "total_tokens": 2}})
            + _content("ok")
            + _record({"choices": [], "usage": {"prompt_tokens": 5, "completion_tokens": 7, "total_tokens": 12}})
            + b"data: [DONE]\n\n"
        )
        chunks = await _collect(raw)
        assert chunks[-1] == StreamChunk(done=True, usage=UsageTotals(5, 7, 12))
        assert all(c.usage is None for c in chunks[:-1])

    @pytest.mark.asyncio
    async def test_tool_call_fragments_passed_through(self):
        fragment = {"index": 0, "id": "call_1", "function": {"name": "calculator", "arguments": ""}}
        raw = _record({"choices": [{"delta": {"tool_calls": [fragment]}}]}) + b"data: [DONE]\n"
        chunks = await _collect(raw)
        assert chunks[0].tool_calls == [fragment]

    @pytest.mark.parametrize("bad", [
        {"usage": 7},
        {"usage": {"prompt_tokens": "abc"}},
        {"choices": [{"delta": {"tool_calls": {"index": 0, "function": {"name": "hash"}}}}]},
        {"choices": [{"delta": {"content": 5}}]},
        {"choices": [{"delta": {"tool_calls": ["index"]}}]},
        {"choices": {"0": {"delta": {"content": "x"}}}},
    ])
    @pytest.mark.asyncio
    async def test_wrongly_shaped_record_is_skipped(self, bad):
        raw = _record(bad) + _content("Hi") + b"data: [DONE]\n\n"
        assert await _collect(raw) == [StreamChunk(content="Hi"), StreamChunk(done=True)]

    @pytest.mark.asyncio
    async def test_bad_usage_keeps_earlier_totals(self):
        raw = (
            _record({"choices": [], "usage": {"prompt_tokens": 1, "completion_tokens": 2, "total_tokens": 3}})
            + _record({"choices": [], "usage": {"prompt_tokens": "abc"}})
            + b"data: [DONE]\n\n"
        )
        chunks = await _collect(raw)
        assert chunks == [StreamChunk(done=True, usage=UsageTotals(1, 2, 3))]

    @pytest.mark.asyncio
    async def test_nothing_read_after_done(self):
        pulled: list[bytes] = []

        async def stream() -> AsyncIterator[bytes]:
            for part in (b"data: [DONE]\n", _content("late")):
                pulled.append(part)
                yield part

        chunks = [c async for c in decode_sse(stream())]
        assert chunks == [StreamChunk(done=True)]
        assert len(pulled) == 1

    @pytest.mark.asyncio
    async def test_lazy_pull(self):
        pulled = 0

        async def stream() -> AsyncIterator[bytes]:
            nonlocal pulled
            for text in ("a", "b", "c"):
                pulled += 1
                yield _content(text)

        gen = decode_sse(stream())
        first = await gen.__anext__()
        assert first.content == "a"
        assert pulled == 1
        await gen.aclose()


class TestSSEDecoder:
    def test_partial_line_buffered(self):
        decoder = SSEDecoder()
        assert decoder.feed(b'data: {"choices":[{"delta":{"content":"x"') == []
        assert decoder.feed(b"}}]}\n") == [StreamChunk(content="x")]

    def test_flush_after_done_is_empty(self):
        decoder = SSEDecoder()
        decoder.feed(b"data: [DONE]\ndata: {}")
        assert decoder.done
        assert decoder.flush() == []

    def test_non_object_payload_ignored(self):
        assert SSEDecoder().feed(b"data: [1, 2]\n") == []
