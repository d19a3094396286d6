"""Tool registry and soft-failing dispatch."""

from __future__ import annotations

import inspect
import json
import logging
from typing import Any, Mapping

from venice_cli.tools.approval import Approver
from venice_cli.tools.base import Tool

_logger = logging.getLogger(__name__)

CANCELLED_TEXT = "Tool execution cancelled by user"


class ToolRegistry:
    """Registry of available tools.

    ``dispatch()`` never raises for tool-level problems: unknown names,
    bad arguments, declined approvals and handler faults all come back as
    text for the model to read.
    """

    def __init__(self) -> None:
        self._tools: dict[str, Tool] = {}
        self._frozen = False

    def register(self, tool: Tool) -> None:
        """Register a tool instance."""
        if self._frozen:
            raise RuntimeError("Tool registry is read-only after initialization")
        if tool.name in self._tools:
            raise ValueError(f"Tool already registered: {tool.name}")
        self._tools[tool.name] = tool

    def freeze(self) -> None:
        self._frozen = True

    def get(self, name: str) -> Tool | None:
        """Look up a tool by name."""
        return self._tools.get(name)

    def list_tools(self) -> list[Tool]:
        return list(self._tools.values())

    def tool_names(self) -> list[str]:
        return list(self._tools.keys())

    def definitions(self, names: list[str]) -> list[dict[str, Any]]:
        """OpenAI schemas for *names*, in the order given; unknown names are skipped."""
        schemas: list[dict[str, Any]] = []
        for name in names:
            tool = self._tools.get(name)
            if tool is None:
                _logger.warning("Ignoring unknown tool: %s", name)
                continue
            schemas.append(tool.to_openai_schema())
        return schemas

    async def dispatch(
        self,
        name: str,
        arguments: str | Mapping[str, Any] | None,
        interactive: bool = False,
        approver: Approver | None = None,
    ) -> str:
        """Run tool *name* and return its textual result.

        *arguments* is the raw JSON text from the model (or an already
        decoded mapping).  With *interactive* set, the approver is asked
        first and a decline returns ``CANCELLED_TEXT`` without running the
        tool.
        """
        tool = self._tools.get(name)
        if tool is None:
            return f"Unknown tool: {name}"

        args, error = _parse_arguments(arguments)
        if error is None:
            error = tool.validate(args)
        if error is not None:
            _logger.debug("Rejected arguments for %s: %s", name, error)
            return f"Tool error: {error}"

        if interactive:
            if approver is None or not await _ask(approver, name, args):
                return CANCELLED_TEXT

        _logger.debug("Dispatching tool %s(%s)", name, args)
        try:
            result = await tool.execute(**args)
        except Exception as e:
            _logger.warning("Tool %s raised: %s", name, e)
            return f"Tool error: {type(e).__name__}: {e}"
        return result.to_message()


def _parse_arguments(
    arguments: str | Mapping[str, Any] | None,
) -> tuple[dict[str, Any], str | None]:
    if arguments is None or arguments == "":
        return {}, None
    if isinstance(arguments, Mapping):
        return dict(arguments), None
    try:
        parsed = json.loads(arguments)
    except json.JSONDecodeError as e:
        return {}, f"invalid arguments: {e.msg}"
    if not isinstance(parsed, dict):
        return {}, "invalid arguments: expected a JSON object"
    return parsed, None


async def _ask(approver: Approver, name: str, args: dict[str, Any]) -> bool:
    answer = approver.ask(name, args)
    if inspect.isawaitable(answer):
        answer = await answer
    return bool(answer)


_default: ToolRegistry | None = None


def default_registry() -> ToolRegistry:
    """Process-wide registry holding the built-in tools, frozen on creation."""
    global _default
    if _default is None:
        from venice_cli.tools.builtin import register_builtins

        registry = ToolRegistry()
        register_builtins(registry)
        registry.freeze()
        _default = registry
    return _default
