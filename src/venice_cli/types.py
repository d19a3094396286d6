"""Shared data types for venice-cli."""

from __future__ import annotations

import enum
import json
from dataclasses import dataclass, field
from typing import Any


# ---------------------------------------------------------------------------
# Message types
# ---------------------------------------------------------------------------

ROLES = ("system", "user", "assistant", "tool")


@dataclass
class ToolCall:
    """A function call requested by the model.

    ``arguments`` is kept as the raw JSON text sent by the model; it is only
    parsed by the tool dispatcher.
    """

    id: str
    name: str
    arguments: str = ""

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "type": "function",
            "function": {"name": self.name, "arguments": self.arguments},
        }

    @classmethod
    def from_dict(cls, raw: dict[str, Any]) -> ToolCall:
        func = raw.get("function") or {}
        args = func.get("arguments", "")
        if not isinstance(args, str):
            # Some providers send arguments already decoded
            args = json.dumps(args)
        return cls(id=raw.get("id", ""), name=func.get("name", ""), arguments=args)


@dataclass
class Message:
    """One entry of a conversation transcript."""

    role: str
    content: str = ""
    tool_calls: list[ToolCall] | None = None
    tool_call_id: str | None = None
    name: str | None = None

    def __post_init__(self) -> None:
        if self.role not in ROLES:
            raise ValueError(f"Invalid message role: {self.role!r}")

    def to_dict(self) -> dict[str, Any]:
        """Wire shape; optional keys are omitted when unset."""
        data: dict[str, Any] = {"role": self.role, "content": self.content}
        if self.tool_calls:
            data["tool_calls"] = [tc.to_dict() for tc in self.tool_calls]
        if self.tool_call_id is not None:
            data["tool_call_id"] = self.tool_call_id
        if self.name is not None:
            data["name"] = self.name
        return data

    @classmethod
    def from_dict(cls, raw: dict[str, Any]) -> Message:
        calls = raw.get("tool_calls")
        return cls(
            role=raw["role"],
            content=raw.get("content") or "",
            tool_calls=[ToolCall.from_dict(tc) for tc in calls] if calls else None,
            tool_call_id=raw.get("tool_call_id"),
            name=raw.get("name"),
        )


# ---------------------------------------------------------------------------
# Tool types
# ---------------------------------------------------------------------------

@dataclass
class ToolParameter:
    """Definition of a tool parameter."""

    name: str
    type: str  # string, number, integer, boolean, array, object
    description: str
    required: bool = True
    enum: list[str] | None = None
    items: dict[str, Any] | None = None


@dataclass
class ToolResult:
    """Result of a tool execution."""

    success: bool
    output: str
    error: str = ""

    def to_message(self) -> str:
        if self.success:
            return self.output
        return f"Tool error: {self.error}"


# ---------------------------------------------------------------------------
# Streaming / usage types
# ---------------------------------------------------------------------------

@dataclass
class UsageTotals:
    """Token usage of one sub-exchange."""

    prompt_tokens: int = 0
    completion_tokens: int = 0
    total_tokens: int = 0

    @classmethod
    def from_dict(cls, raw: dict[str, Any] | None) -> UsageTotals | None:
        if not raw:
            return None
        return cls(
            prompt_tokens=int(raw.get("prompt_tokens") or 0),
            completion_tokens=int(raw.get("completion_tokens") or 0),
            total_tokens=int(raw.get("total_tokens") or 0),
        )

    def to_dict(self) -> dict[str, int]:
        return {
            "prompt_tokens": self.prompt_tokens,
            "completion_tokens": self.completion_tokens,
            "total_tokens": self.total_tokens,
        }


@dataclass
class StreamChunk:
    """One decoded unit of a streamed completion."""

    content: str | None = None
    tool_calls: list[dict[str, Any]] | None = None
    usage: UsageTotals | None = None
    done: bool = False


class FailureKind(enum.Enum):
    """Classification of a failed request; drives retry eligibility."""

    TRANSIENT = "transient"
    RATE_LIMITED = "rate_limited"
    AUTH_ERROR = "auth_error"
    CLIENT_ERROR = "client_error"
    UNKNOWN = "unknown"


# ---------------------------------------------------------------------------
# Exchange types
# ---------------------------------------------------------------------------

@dataclass
class ChatResponse:
    """Response of a single non-streamed chat completion."""

    content: str = ""
    tool_calls: list[ToolCall] = field(default_factory=list)
    finish_reason: str = "stop"
    usage: UsageTotals | None = None
    model: str = ""

    @property
    def has_tool_calls(self) -> bool:
        return len(self.tool_calls) > 0


@dataclass
class ExchangeOptions:
    """Caller configuration of one exchange."""

    model: str = "llama-3.3-70b"
    tool_names: list[str] = field(default_factory=list)
    streaming: bool = False
    interactive_approval: bool = False
    command: str = "chat"


@dataclass
class ExchangeResult:
    """Outcome of one user-prompt-to-final-answer cycle."""

    content: str = ""
    messages: list[Message] = field(default_factory=list)
    usage: UsageTotals | None = None
    usages: list[UsageTotals] = field(default_factory=list)

    def with_answer(self) -> list[Message]:
        """Transcript with the final answer appended as an assistant message."""
        return [*self.messages, Message(role="assistant", content=self.content)]
