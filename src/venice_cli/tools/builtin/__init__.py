"""Built-in tools."""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from venice_cli.tools.registry import ToolRegistry


def register_builtins(registry: ToolRegistry) -> None:
    """Register all built-in tools with the given registry."""
    from venice_cli.tools.builtin.calculator import CalculatorTool
    from venice_cli.tools.builtin.utility import (
        Base64Tool,
        DateTimeTool,
        HashTool,
        RandomTool,
        WeatherTool,
    )

    for tool_cls in [
        CalculatorTool,
        WeatherTool,
        DateTimeTool,
        RandomTool,
        Base64Tool,
        HashTool,
    ]:
        registry.register(tool_cls())
