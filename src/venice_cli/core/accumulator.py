"""Accumulate streamed tool-call fragments into complete calls."""

from __future__ import annotations

import logging
from typing import Any

from venice_cli.types import ToolCall

_logger = logging.getLogger(__name__)


class ToolCallAccumulator:
    """Merge ``delta.tool_calls`` fragments by call index.

    OpenAI-compatible providers send tool calls as incremental chunks:
    each fragment has an ``index``, the ``id`` and ``function.name`` on the
    first fragment only, and ``function.arguments`` pieces that must be
    concatenated in arrival order.  Fragments that are not objects are
    dropped, as are fields of the wrong type.
    """

    def __init__(self) -> None:
        self._calls: dict[int, dict[str, str]] = {}

    def feed(self, fragments: list[dict[str, Any]]) -> None:
        for frag in fragments:
            if not isinstance(frag, dict):
                _logger.debug("Dropping tool-call fragment: %r", frag)
                continue
            idx = frag.get("index")
            if not isinstance(idx, int):
                idx = len(self._calls)
            func = frag.get("function")
            if not isinstance(func, dict):
                func = {}
            entry = self._calls.setdefault(idx, {"id": "", "name": "", "arguments": ""})
            if isinstance(frag.get("id"), str) and frag["id"]:
                entry["id"] = frag["id"]
            if isinstance(func.get("name"), str) and func["name"]:
                entry["name"] = func["name"]
            if isinstance(func.get("arguments"), str):
                entry["arguments"] += func["arguments"]

    def has_calls(self) -> bool:
        return bool(self._calls)

    def finalize(self) -> list[ToolCall]:
        """Complete calls in index order; nameless fragments are dropped."""
        result: list[ToolCall] = []
        for idx in sorted(self._calls):
            entry = self._calls[idx]
            if not entry["name"]:
                continue
            result.append(
                ToolCall(
                    id=entry["id"] or f"call_{idx}",
                    name=entry["name"],
                    arguments=entry["arguments"],
                )
            )
        return result
