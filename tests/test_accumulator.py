"""Tests for streamed tool-call accumulation."""

from __future__ import annotations

from venice_cli.core.accumulator import ToolCallAccumulator
from venice_cli.types import ToolCall


class TestToolCallAccumulator:
    def test_fragments_merged_by_index(self):
        acc = ToolCallAccumulator()
        acc.feed([{"index": 0, "id": "call_a", "function": {"name": "calculator", "arguments": ""}}])
        acc.feed([{"index": 0, "function": {"arguments": '{"expres'}}])
        acc.feed([{"index": 0, "function": {"arguments": 'sion": "2+2"}'}}])

        assert acc.finalize() == [
            ToolCall(id="call_a", name="calculator", arguments='{"expression": "2+2"}'),
        ]

    def test_interleaved_calls_keep_index_order(self):
        acc = ToolCallAccumulator()
        acc.feed([
            {"index": 1, "id": "b", "function": {"name": "hash", "arguments": "{"}},
            {"index": 0, "id": "a", "function": {"name": "datetime", "arguments": "{}"}},
        ])
        acc.feed([{"index": 1, "function": {"arguments": "}"}}])

        calls = acc.finalize()
        assert [c.id for c in calls] == ["a", "b"]
        assert calls[1].arguments == "{}"

    def test_missing_id_gets_default(self):
        acc = ToolCallAccumulator()
        acc.feed([{"index": 2, "function": {"name": "random", "arguments": "{}"}}])
        assert acc.finalize()[0].id == "call_2"

    def test_nameless_entry_dropped(self):
        acc = ToolCallAccumulator()
        acc.feed([{"index": 0, "function": {"arguments": "{}"}}])
        assert acc.has_calls()
        assert acc.finalize() == []

    def test_empty(self):
        acc = ToolCallAccumulator()
        assert not acc.has_calls()
        assert acc.finalize() == []

    def test_wrongly_typed_fragments_ignored(self):
        acc = ToolCallAccumulator()
        acc.feed(["index", {"index": 0, "function": "calculator"}])
        acc.feed([{"index": 0, "id": "call_a", "function": {"name": "hash", "arguments": 7}}])
        acc.feed([{"index": 0, "function": {"arguments": "{}"}}])
        assert acc.finalize() == [ToolCall(id="call_a", name="hash", arguments="{}")]
