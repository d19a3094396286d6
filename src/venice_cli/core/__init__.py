"""Conversation loop and its helpers."""

from venice_cli.core.accumulator import ToolCallAccumulator
from venice_cli.core.conversation import (
    Conversation,
    ExchangeState,
    UsageSink,
    build_messages,
)
from venice_cli.core.personas import available_characters, get_character_prompt

__all__ = [
    "Conversation",
    "ExchangeState",
    "ToolCallAccumulator",
    "UsageSink",
    "available_characters",
    "build_messages",
    "get_character_prompt",
]
