"""Conversation loop: one user prompt to one final answer.

    AWAITING_RESPONSE -> TERMINAL
    AWAITING_RESPONSE -> EXECUTING_TOOLS -> AWAITING_FOLLOW_UP -> TERMINAL

The loop owns no I/O of its own.  Requests go through the client (and so
through the retry engine), tool calls through the registry, usage to an
injected sink.  Tool calls found in the initial response are executed one
at a time and followed by exactly one follow-up request with no tools
offered; tool calls requested by that follow-up are dropped.
"""

from __future__ import annotations

import enum
import logging
from dataclasses import dataclass, field
from typing import Any, AsyncIterator, Callable, Protocol

from venice_cli.core.accumulator import ToolCallAccumulator
from venice_cli.core.personas import get_character_prompt
from venice_cli.llm.client import VeniceClient
from venice_cli.llm.errors import ExchangeError, VeniceError
from venice_cli.progress import NullProgress, ProgressSink
from venice_cli.tools.approval import Approver
from venice_cli.tools.registry import ToolRegistry, default_registry
from venice_cli.types import (
    ExchangeOptions,
    ExchangeResult,
    Message,
    ToolCall,
    UsageTotals,
)

_logger = logging.getLogger(__name__)


class ExchangeState(enum.Enum):
    AWAITING_RESPONSE = "awaiting_response"
    EXECUTING_TOOLS = "executing_tools"
    AWAITING_FOLLOW_UP = "awaiting_follow_up"
    TERMINAL = "terminal"


class UsageSink(Protocol):
    """Receives the usage of every sub-exchange.  Fire-and-forget."""

    def record(self, command: str, model: str, usage: UsageTotals) -> None: ...


@dataclass
class _Turn:
    """What one sub-exchange produced."""

    content: str = ""
    tool_calls: list[ToolCall] = field(default_factory=list)
    usage: UsageTotals | None = None


def build_messages(
    prompt: str,
    system: str | None = None,
    character: str | None = None,
    prior: list[Message] | None = None,
) -> list[Message]:
    """Initial message list for a prompt.

    Order: the prior conversation (for ``--continue``), then the system
    prompt or, when no explicit one is given, the persona preamble, then
    the user message.  An unknown *character* adds no preamble.
    """
    messages: list[Message] = list(prior or [])
    if system:
        messages.append(Message(role="system", content=system))
    elif character:
        preamble = get_character_prompt(character)
        if preamble:
            messages.append(Message(role="system", content=preamble))
        else:
            _logger.warning("Unknown character: %s", character)
    messages.append(Message(role="user", content=prompt))
    return messages


class Conversation:
    """Runs exchanges against the chat API.

    Parameters
    ----------
    client:
        API client used for every sub-exchange.
    registry:
        Tool registry; the process-wide default registry when omitted.
    approver:
        Asked before each tool call when ``interactive_approval`` is set.
    usage_sink:
        Receives usage per sub-exchange (optional).
    progress:
        Progress sink handed down to the retry engine.
    """

    def __init__(
        self,
        client: VeniceClient,
        registry: ToolRegistry | None = None,
        approver: Approver | None = None,
        usage_sink: UsageSink | None = None,
        progress: ProgressSink | None = None,
    ) -> None:
        self._client = client
        self._registry = registry or default_registry()
        self._approver = approver
        self._usage_sink = usage_sink
        self._progress = progress or NullProgress()
        self.last_result: ExchangeResult | None = None

    async def exchange(
        self,
        messages: list[Message],
        options: ExchangeOptions | None = None,
    ) -> ExchangeResult:
        """Run one exchange and return its aggregate result.

        Raises ``ExchangeError`` on a fatal failure; its ``partial``
        attribute holds what had been accumulated up to that point.
        """
        result = self._start(messages)
        async for _ in self._run(result, options or ExchangeOptions()):
            pass
        return result

    async def exchange_stream(
        self,
        messages: list[Message],
        options: ExchangeOptions | None = None,
        on_follow_up: Callable[[], None] | None = None,
    ) -> AsyncIterator[str]:
        """Like ``exchange()`` but yields content deltas as they arrive.

        Without ``options.streaming`` each sub-exchange's content is
        yielded at once.  *on_follow_up* is called after the tool calls
        have run, before the follow-up request.  The aggregate is in
        ``last_result`` afterwards.
        """
        result = self._start(messages)
        async for delta in self._run(result, options or ExchangeOptions(), on_follow_up):
            yield delta

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _start(self, messages: list[Message]) -> ExchangeResult:
        self.last_result = None
        working = [m if isinstance(m, Message) else Message.from_dict(m) for m in messages]
        return ExchangeResult(messages=working)

    async def _run(
        self,
        result: ExchangeResult,
        options: ExchangeOptions,
        on_follow_up: Callable[[], None] | None = None,
    ) -> AsyncIterator[str]:
        working = result.messages
        tools = self._registry.definitions(options.tool_names) if options.tool_names else None

        state = self._transition(None, ExchangeState.AWAITING_RESPONSE)
        try:
            first = _Turn()
            async for delta in self._request(working, options, tools, first):
                result.content += delta
                yield delta
            self._record_usage(options, first.usage, result)

            if not first.tool_calls:
                result.content = first.content
                self._transition(state, ExchangeState.TERMINAL)
                self.last_result = result
                return

            state = self._transition(state, ExchangeState.EXECUTING_TOOLS)
            for call in first.tool_calls:
                output = await self._registry.dispatch(
                    call.name,
                    call.arguments,
                    interactive=options.interactive_approval,
                    approver=self._approver,
                )
                working.append(
                    Message(role="assistant", content=first.content, tool_calls=[call])
                )
                working.append(Message(role="tool", content=output, tool_call_id=call.id))

            state = self._transition(state, ExchangeState.AWAITING_FOLLOW_UP)
            if on_follow_up is not None:
                on_follow_up()
            result.content = ""
            follow_up = _Turn()
            async for delta in self._request(working, options, None, follow_up):
                result.content += delta
                yield delta
            self._record_usage(options, follow_up.usage, result)
            if follow_up.tool_calls:
                _logger.warning(
                    "Ignoring %d tool call(s) requested by the follow-up response",
                    len(follow_up.tool_calls),
                )
            result.content = follow_up.content
            self._transition(state, ExchangeState.TERMINAL)
        except VeniceError as e:
            _logger.debug("Exchange failed in state %s: %s", state.value, e)
            raise ExchangeError(e, result) from e
        self.last_result = result

    async def _request(
        self,
        messages: list[Message],
        options: ExchangeOptions,
        tools: list[dict[str, Any]] | None,
        turn: _Turn,
    ) -> AsyncIterator[str]:
        """One sub-exchange; fills *turn* and yields its content."""
        if not options.streaming:
            response = await self._client.chat(
                messages, model=options.model, tools=tools, progress=self._progress,
            )
            turn.content = response.content
            turn.tool_calls = list(response.tool_calls)
            turn.usage = response.usage
            if turn.content:
                yield turn.content
            return

        accumulator = ToolCallAccumulator()
        async for chunk in self._client.chat_stream(
            messages, model=options.model, tools=tools, progress=self._progress,
        ):
            if chunk.content:
                turn.content += chunk.content
                yield chunk.content
            if chunk.tool_calls:
                accumulator.feed(chunk.tool_calls)
            if chunk.done:
                turn.usage = chunk.usage
        turn.tool_calls = accumulator.finalize()

    def _record_usage(
        self,
        options: ExchangeOptions,
        usage: UsageTotals | None,
        result: ExchangeResult,
    ) -> None:
        if usage is None:
            return
        result.usage = usage
        result.usages.append(usage)
        if self._usage_sink is None:
            return
        try:
            self._usage_sink.record(options.command, options.model, usage)
        except Exception:
            _logger.warning("Failed to record usage", exc_info=True)

    @staticmethod
    def _transition(
        current: ExchangeState | None, new: ExchangeState,
    ) -> ExchangeState:
        _logger.debug(
            "Exchange state: %s -> %s",
            current.value if current else "start",
            new.value,
        )
        return new
