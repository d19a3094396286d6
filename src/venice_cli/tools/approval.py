"""Interactive approval of tool calls."""

from __future__ import annotations

import json
from typing import Any, Awaitable, Protocol

from prompt_toolkit import PromptSession
from rich.console import Console
from rich.syntax import Syntax


class Approver(Protocol):
    """Asks whether a tool call may run.  May be sync or async."""

    def ask(self, tool_name: str, arguments: dict[str, Any]) -> bool | Awaitable[bool]: ...


class StaticApprover:
    """Always gives the same answer."""

    def __init__(self, answer: bool) -> None:
        self.answer = answer
        self.asked: list[tuple[str, dict[str, Any]]] = []

    def ask(self, tool_name: str, arguments: dict[str, Any]) -> bool:
        self.asked.append((tool_name, arguments))
        return self.answer


class ConsoleApprover:
    """Shows the pending call and reads ``y/N`` from the terminal."""

    def __init__(self, console: Console | None = None) -> None:
        self._console = console or Console(stderr=True)
        self._session: PromptSession[str] = PromptSession()

    async def ask(self, tool_name: str, arguments: dict[str, Any]) -> bool:
        self._console.print("\n[yellow]Tool Call Request[/yellow]")
        self._console.print(f"[cyan]Tool:[/cyan] {tool_name}")
        self._console.print("[cyan]Args:[/cyan]")
        self._console.print(Syntax(json.dumps(arguments, indent=2), "json"))
        try:
            answer = await self._session.prompt_async("Approve? [y/N] ")
        except EOFError:
            return False
        return answer.strip().lower() in ("y", "yes")
