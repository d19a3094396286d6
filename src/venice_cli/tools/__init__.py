"""Tool system for venice-cli."""

from venice_cli.tools.approval import Approver, ConsoleApprover, StaticApprover
from venice_cli.tools.base import Tool
from venice_cli.tools.registry import CANCELLED_TEXT, ToolRegistry, default_registry

__all__ = [
    "CANCELLED_TEXT",
    "Approver",
    "ConsoleApprover",
    "StaticApprover",
    "Tool",
    "ToolRegistry",
    "default_registry",
]
