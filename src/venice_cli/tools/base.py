"""Async Tool abstract base class."""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any

from venice_cli.types import ToolParameter, ToolResult


class Tool(ABC):
    """Base class for all tools.

    Subclasses set ``name``, ``description`` and ``parameters`` as class
    attributes and implement the async ``execute()`` method.  ``execute``
    receives arguments that already passed ``validate()``.
    """

    name: str
    description: str
    parameters: list[ToolParameter]

    @abstractmethod
    async def execute(self, **kwargs: Any) -> ToolResult:
        """Execute the tool asynchronously."""

    def validate(self, arguments: dict[str, Any]) -> str | None:
        """Return an error message if *arguments* do not fit the schema."""
        for p in self.parameters:
            if p.required and p.name not in arguments:
                return f"missing required argument '{p.name}'"
            value = arguments.get(p.name)
            if value is not None and p.enum and value not in p.enum:
                return (
                    f"invalid value for '{p.name}': {value!r} "
                    f"(expected one of: {', '.join(p.enum)})"
                )
        return None

    def to_openai_schema(self) -> dict[str, Any]:
        """Convert to OpenAI function calling format."""
        properties: dict[str, Any] = {}
        required: list[str] = []
        for p in self.parameters:
            prop: dict[str, Any] = {
                "type": p.type,
                "description": p.description,
            }
            if p.enum:
                prop["enum"] = p.enum
            if p.items:
                prop["items"] = p.items
            properties[p.name] = prop
            if p.required:
                required.append(p.name)

        return {
            "type": "function",
            "function": {
                "name": self.name,
                "description": self.description,
                "parameters": {
                    "type": "object",
                    "properties": properties,
                    "required": required,
                },
            },
        }
