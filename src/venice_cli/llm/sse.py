"""Server-sent event decoder for streamed chat completions.

The wire format is newline-delimited ``data: <json>`` records separated by
blank lines and closed by ``data: [DONE]``.  ``decode_sse`` turns the raw
byte stream into ``StreamChunk`` objects, pulling from the transport only
when its consumer asks for the next chunk.
"""

from __future__ import annotations

import codecs
import json
import logging
from typing import Any, AsyncIterator

from venice_cli.types import StreamChunk, UsageTotals

_logger = logging.getLogger(__name__)

DATA_PREFIX = "data: "
DONE_SENTINEL = "[DONE]"


class _Done(Exception):
    """Internal signal: the terminal record was seen."""


class SSEDecoder:
    """Incremental record decoder.

    ``feed()`` accepts raw bytes and returns the chunks completed by them;
    partial lines are buffered until the next feed.  Usage totals are kept
    "latest wins" and only surfaced through ``usage``.
    """

    def __init__(self) -> None:
        self._utf8 = codecs.getincrementaldecoder("utf-8")(errors="replace")
        self._buffer = ""
        self.usage: UsageTotals | None = None
        self.done = False

    def feed(self, data: bytes) -> list[StreamChunk]:
        if self.done:
            return []
        self._buffer += self._utf8.decode(data)
        *lines, self._buffer = self._buffer.split("\n")
        return self._process(lines)

    def flush(self) -> list[StreamChunk]:
        """Process whatever is left once the byte stream has ended."""
        if self.done:
            return []
        tail = self._buffer + self._utf8.decode(b"", final=True)
        self._buffer = ""
        return self._process([tail]) if tail else []

    def _process(self, lines: list[str]) -> list[StreamChunk]:
        chunks: list[StreamChunk] = []
        for line in lines:
            try:
                chunks.extend(self._parse_line(line.rstrip("\r")))
            except _Done:
                self.done = True
                break
        return chunks

    def _parse_line(self, line: str) -> list[StreamChunk]:
        if not line.startswith(DATA_PREFIX):
            return []
        payload = line[len(DATA_PREFIX):].strip()
        if payload == DONE_SENTINEL:
            raise _Done()

        try:
            data = json.loads(payload)
        except json.JSONDecodeError:
            _logger.debug("Skipping malformed SSE record: %.80s", payload)
            return []
        if not isinstance(data, dict):
            return []

        try:
            usage, chunks = _record_chunks(data)
        except (TypeError, ValueError, AttributeError):
            _logger.debug("Skipping SSE record with unexpected shape: %.80s", payload)
            return []
        if usage is not None:
            self.usage = usage
        return chunks


def _record_chunks(data: dict[str, Any]) -> tuple[UsageTotals | None, list[StreamChunk]]:
    """Usage and chunks of one record; raises on a field of the wrong type."""
    usage = None
    if data.get("usage"):
        if not isinstance(data["usage"], dict):
            raise TypeError("usage must be an object")
        usage = UsageTotals.from_dict(data["usage"])

    delta = _first_delta(data)
    chunks: list[StreamChunk] = []
    content = delta.get("content")
    if content:
        if not isinstance(content, str):
            raise TypeError("delta.content must be a string")
        chunks.append(StreamChunk(content=content))
    tool_calls = delta.get("tool_calls")
    if tool_calls:
        if not isinstance(tool_calls, list) or not all(isinstance(tc, dict) for tc in tool_calls):
            raise TypeError("delta.tool_calls must be a list of objects")
        chunks.append(StreamChunk(tool_calls=list(tool_calls)))
    return usage, chunks


def _first_delta(data: dict[str, Any]) -> dict[str, Any]:
    choices = data.get("choices")
    if not isinstance(choices, list) or not choices or not isinstance(choices[0], dict):
        return {}
    delta = choices[0].get("delta")
    return delta if isinstance(delta, dict) else {}


async def decode_sse(byte_stream: AsyncIterator[bytes]) -> AsyncIterator[StreamChunk]:
    """Lazily decode *byte_stream* into chunks.

    Yields content and tool-call chunks in arrival order, then exactly one
    terminal chunk (``done=True``) carrying the last usage totals seen.
    Reading stops at ``[DONE]``; anything after it is never pulled.
    """
    decoder = SSEDecoder()
    async for data in byte_stream:
        for chunk in decoder.feed(data):
            yield chunk
        if decoder.done:
            break
    else:
        for chunk in decoder.flush():
            yield chunk
    yield StreamChunk(done=True, usage=decoder.usage)
