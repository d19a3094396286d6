"""Command-line interface for venice-cli."""

from __future__ import annotations

import asyncio
import dataclasses
import json
import logging
import math
import sys
import time
from pathlib import Path
from typing import Any, Coroutine, TypeVar

import click
from pydantic import ValidationError
from rich.console import Console
from rich.markdown import Markdown
from rich.markup import escape
from rich.table import Table

from venice_cli import __version__
from venice_cli.config import ConfigStore, EnvCredentials, VeniceConfig, load_config
from venice_cli.core.conversation import Conversation, build_messages
from venice_cli.core.personas import available_characters, character_info
from venice_cli.llm.client import VeniceClient
from venice_cli.llm.errors import VeniceError
from venice_cli.progress import NullProgress, RichProgress
from venice_cli.stores import (
    ConversationEntry,
    HistoryStore,
    StoreUsageSink,
    UsageStore,
    summarize_usage,
)
from venice_cli.tools.approval import ConsoleApprover
from venice_cli.tools.registry import default_registry
from venice_cli.types import ExchangeOptions, UsageTotals

console = Console()
err_console = Console(stderr=True)

T = TypeVar("T")

_FORMATS = click.Choice(["pretty", "json", "raw"])

_MODEL_TYPES: dict[str, list[str]] = {
    "text": ["text", "chat", "llm"],
    "image": ["image", "diffusion", "flux", "sdxl"],
    "audio": ["audio", "tts", "stt", "whisper", "speech"],
    "embedding": ["embedding", "embed"],
    "code": ["code", "codestral", "deepseek-coder"],
}


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

def _run(coro: Coroutine[Any, Any, T]) -> T:
    """Run *coro*; library errors become one red line and exit code 1."""
    try:
        return asyncio.run(coro)
    except VeniceError as e:
        err_console.print(f"[red]Error:[/red] {escape(str(e))}")
        sys.exit(1)
    except KeyboardInterrupt:
        err_console.print("\n[dim]Interrupted[/dim]")
        sys.exit(130)


def _config(ctx: click.Context) -> VeniceConfig:
    try:
        config, _ = load_config(ctx.obj.get("config_path"))
    except FileNotFoundError as e:
        raise click.ClickException(str(e)) from e
    except ValidationError as e:
        raise click.ClickException(f"Invalid config: {e}") from e
    return config


def _client(config: VeniceConfig) -> VeniceClient:
    return VeniceClient(config, EnvCredentials(config))


def _stdout_is_terminal() -> bool:
    return sys.stdout.isatty()


def _progress(fmt: str) -> RichProgress | NullProgress:
    return RichProgress(err_console) if fmt == "pretty" else NullProgress()


def _read_prompt(parts: tuple[str, ...]) -> str:
    prompt = " ".join(parts).strip()
    if not prompt and not sys.stdin.isatty():
        prompt = sys.stdin.read().strip()
    return prompt


def _print_usage(usage: UsageTotals) -> None:
    console.print(
        f"[dim]Tokens: {usage.prompt_tokens:,} prompt + "
        f"{usage.completion_tokens:,} completion = {usage.total_tokens:,} total[/dim]"
    )


def _print_answer(content: str, fmt: str) -> None:
    if fmt == "json":
        click.echo(json.dumps({"content": content}, indent=2))
    elif fmt == "raw":
        click.echo(content)
    else:
        console.print(Markdown(content))


# ---------------------------------------------------------------------------
# Root group
# ---------------------------------------------------------------------------

@click.group()
@click.option("--config", "config_path", default=None,
              help="Path to config.yaml (default: ./venice.yaml or ~/.venice/config.yaml)")
@click.option("--verbose", "-v", is_flag=True, help="Verbose logging")
@click.version_option(__version__, prog_name="venice")
@click.pass_context
def main(ctx: click.Context, config_path: str | None, verbose: bool) -> None:
    """Venice AI - chat, search and embeddings from the terminal."""
    if verbose:
        logging.basicConfig(level=logging.DEBUG)
    else:
        logging.basicConfig(level=logging.WARNING)
    ctx.ensure_object(dict)
    ctx.obj["config_path"] = config_path


# ---------------------------------------------------------------------------
# chat
# ---------------------------------------------------------------------------

@main.command()
@click.argument("prompt", nargs=-1)
@click.option("--model", "-m", default=None, help="Model to use")
@click.option("--system", "-s", default=None, help="System prompt")
@click.option("--character", "-c", default=None, help="Character/persona to use")
@click.option("--tools", "-t", "tool_list", default=None,
              help="Comma-separated list of tools to enable")
@click.option("--interactive-tools", is_flag=True, help="Require approval for each tool call")
@click.option("--continue", "continue_", is_flag=True, help="Continue the last conversation")
@click.option("--no-stream", is_flag=True, help="Disable streaming output")
@click.option("--format", "-f", "fmt", type=_FORMATS, default="pretty", help="Output format")
@click.pass_context
def chat(
    ctx: click.Context,
    prompt: tuple[str, ...],
    model: str | None,
    system: str | None,
    character: str | None,
    tool_list: str | None,
    interactive_tools: bool,
    continue_: bool,
    no_stream: bool,
    fmt: str,
) -> None:
    """Chat with an AI model."""
    text = _read_prompt(prompt)
    if not text:
        raise click.UsageError('No prompt provided. Usage: venice chat "Your message"')
    if character and character.lower() not in available_characters():
        raise click.BadParameter(
            f"unknown character (available: {', '.join(available_characters())})",
            param_hint="--character",
        )

    config = _config(ctx)
    streaming = (
        config.stream and not no_stream and fmt == "pretty" and _stdout_is_terminal()
    )
    tool_names = [t.strip() for t in tool_list.split(",") if t.strip()] if tool_list else []
    _run(_chat(
        config,
        text,
        ExchangeOptions(
            model=model or config.default_model,
            tool_names=tool_names,
            streaming=streaming,
            interactive_approval=interactive_tools,
            command="chat",
        ),
        system=system,
        character=character,
        continue_=continue_,
        fmt=fmt,
    ))


async def _chat(
    config: VeniceConfig,
    prompt: str,
    options: ExchangeOptions,
    system: str | None,
    character: str | None,
    continue_: bool,
    fmt: str,
) -> None:
    history = HistoryStore(config.db_path)
    usage_store = UsageStore(config.db_path)
    client = _client(config)
    try:
        prior = None
        if continue_:
            last = history.last()
            if last is not None:
                prior = last.messages
                if fmt == "pretty":
                    console.print(
                        f"[dim]Continuing conversation "
                        f"({len(prior)} previous messages)[/dim]\n"
                    )
        messages = build_messages(prompt, system=system, character=character, prior=prior)
        conversation = Conversation(
            client,
            registry=default_registry(),
            approver=ConsoleApprover(err_console) if options.interactive_approval else None,
            usage_sink=StoreUsageSink(usage_store),
            progress=_progress(fmt),
        )

        if options.streaming:
            printed = False

            def _separate() -> None:
                # The follow-up answer starts on its own line
                if printed:
                    console.print()

            async for delta in conversation.exchange_stream(
                messages, options, on_follow_up=_separate,
            ):
                console.print(delta, end="", markup=False, highlight=False)
                printed = True
            console.print()
            result = conversation.last_result
            if result is None:
                raise RuntimeError("streamed exchange finished without a result")
        else:
            result = await conversation.exchange(messages, options)
            _print_answer(result.content, fmt)

        history.append(ConversationEntry(
            messages=result.with_answer(), model=options.model, character=character,
        ))
        if config.show_usage and fmt == "pretty" and result.usage:
            _print_usage(result.usage)
    finally:
        await client.close()
        history.close()
        usage_store.close()


# ---------------------------------------------------------------------------
# tools
# ---------------------------------------------------------------------------

@main.command("tools")
def list_tools() -> None:
    """List the tools available to chat --tools."""
    table = Table(title="Available Tools")
    table.add_column("Tool", style="cyan")
    table.add_column("Description")
    table.add_column("Parameters", style="dim")
    for tool in default_registry().list_tools():
        params = ", ".join(
            p.name if p.required else f"{p.name}?" for p in tool.parameters
        )
        table.add_row(tool.name, tool.description, params)
    console.print(table)
    console.print('[dim]Usage: venice chat --tools calculator,datetime "What is 2^10?"[/dim]')



# ---------------------------------------------------------------------------
# characters
# ---------------------------------------------------------------------------

@main.command("characters")
@click.option("--format", "-f", "fmt", type=click.Choice(["pretty", "json"]), default="pretty")
def list_characters(fmt: str) -> None:
    """List the personas available to chat --character."""
    characters = available_characters()
    if fmt == "json":
        data = [
            {"id": cid, **dataclasses.asdict(character_info(cid))} for cid in characters
        ]
        click.echo(json.dumps(data, indent=2))
        return

    console.print("\n[bold]Available Characters[/bold]\n")
    console.print("[dim]Use these personas to customize how the AI responds.[/dim]\n")
    for cid in characters:
        info = character_info(cid)
        console.print(f"[bold cyan]{cid}[/bold cyan] - {escape(info.name)}")
        if info.description:
            console.print(f"  [dim]{escape(info.description)}[/dim]")
        if info.sample:
            console.print(f"  [italic]\"{escape(info.sample)}\"[/italic]")
        console.print()
    console.print('[dim]Usage: venice chat --character pirate "Tell me about the ocean"[/dim]')


# ---------------------------------------------------------------------------
# config
# ---------------------------------------------------------------------------

@main.group("config")
def config_group() -> None:
    """Manage configuration."""


def _store(ctx: click.Context) -> ConfigStore:
    root = ctx.find_root()
    return ConfigStore(root.obj.get("config_path") if root.obj else None)


@config_group.command("get")
@click.argument("key")
@click.pass_context
def config_get(ctx: click.Context, key: str) -> None:
    """Print one config value."""
    value = _store(ctx).get(key)
    if value is None:
        console.print(f"[dim]{escape(key)} is not set[/dim]")
        return
    click.echo(value)


@config_group.command("set")
@click.argument("key")
@click.argument("value")
@click.pass_context
def config_set(ctx: click.Context, key: str, value: str) -> None:
    """Set a config value."""
    try:
        stored = _store(ctx).set(key, value)
    except (KeyError, ValueError) as e:
        raise click.ClickException(str(e.args[0]) if e.args else str(e)) from e
    shown = "********" if key == "api_key" else stored
    console.print(f"[green]Set {escape(key)} = {escape(str(shown))}[/green]")


@config_group.command("unset")
@click.argument("key")
@click.pass_context
def config_unset(ctx: click.Context, key: str) -> None:
    """Remove a config value."""
    if _store(ctx).delete(key):
        console.print(f"[green]Removed {escape(key)}[/green]")
    else:
        console.print(f"[dim]{escape(key)} was not set[/dim]")


@config_group.command("path")
@click.pass_context
def config_path(ctx: click.Context) -> None:
    """Print the config file used by get/set/unset."""
    click.echo(str(_store(ctx).path))


@config_group.command("show")
@click.pass_context
def config_show(ctx: click.Context) -> None:
    """Show all settings, with defaults for unset keys."""
    store = _store(ctx)
    stored = store.all()
    effective = VeniceConfig.model_validate(stored).model_dump()
    table = Table(title=f"Config ({store.path})")
    table.add_column("Key", style="cyan")
    table.add_column("Value")
    table.add_column("Source", style="dim")
    for key, value in effective.items():
        if key == "api_key" and value:
            value = value[:4] + "..." + value[-4:] if len(value) > 8 else "********"
        table.add_row(key, str(value), "file" if key in stored else "default")
    console.print(table)


# ---------------------------------------------------------------------------
# history
# ---------------------------------------------------------------------------

@main.group("history")
def history_group() -> None:
    """View and manage conversation history."""


@history_group.command("list")
@click.option("--limit", "-n", default=10, show_default=True, help="Number of conversations")
@click.option("--format", "-f", "fmt", type=_FORMATS, default="pretty")
@click.pass_context
def history_list(ctx: click.Context, limit: int, fmt: str) -> None:
    """List recent conversations, newest first."""
    store = HistoryStore(_config(ctx).db_path)
    try:
        entries = store.list()
    finally:
        store.close()
    recent = list(reversed(entries[-limit:])) if limit > 0 else []

    if fmt == "json":
        click.echo(json.dumps([_entry_dict(e) for e in recent], indent=2))
        return
    if not recent:
        console.print("[dim]No conversation history found.[/dim]")
        return

    table = Table(title=f"Recent Conversations ({len(recent)}/{len(entries)})")
    table.add_column("ID", style="dim")
    table.add_column("When")
    table.add_column("Model", style="cyan")
    table.add_column("First message")
    for entry in recent:
        first = next((m.content for m in entry.messages if m.role == "user"), "")
        preview = first[:50] + "..." if len(first) > 50 else first or "(no content)"
        table.add_row(
            entry.id[:8],
            time.strftime("%Y-%m-%d %H:%M", time.localtime(entry.timestamp)),
            entry.model,
            preview,
        )
    console.print(table)


@history_group.command("show")
@click.argument("entry_id")
@click.pass_context
def history_show(ctx: click.Context, entry_id: str) -> None:
    """Show one conversation by id (or unique id prefix)."""
    store = HistoryStore(_config(ctx).db_path)
    try:
        entry = store.get(entry_id)
    finally:
        store.close()
    if entry is None:
        raise click.ClickException(f"Conversation not found: {entry_id}")

    console.print(f"[bold]{entry.model}[/bold] [dim]{entry.id}[/dim]")
    if entry.character:
        console.print(f"[dim]Character: {escape(entry.character)}[/dim]")
    for msg in entry.messages:
        if msg.role == "tool":
            console.print(f"[dim]tool> {escape(msg.content)}[/dim]")
        elif msg.tool_calls:
            for call in msg.tool_calls:
                console.print(f"[yellow]assistant> [Tool: {call.name}] {escape(call.arguments)}[/yellow]")
        else:
            console.print(f"[cyan]{msg.role}>[/cyan] {escape(msg.content)}")


@history_group.command("clear")
@click.option("--yes", is_flag=True, help="Do not ask for confirmation")
@click.pass_context
def history_clear(ctx: click.Context, yes: bool) -> None:
    """Delete all saved conversations."""
    if not yes:
        click.confirm("Clear all conversation history?", abort=True)
    store = HistoryStore(_config(ctx).db_path)
    try:
        store.clear()
    finally:
        store.close()
    console.print("[green]Conversation history cleared[/green]")


@history_group.command("export")
@click.argument("file", type=click.Path(dir_okay=False, writable=True, path_type=Path))
@click.pass_context
def history_export(ctx: click.Context, file: Path) -> None:
    """Write all saved conversations to FILE as JSON."""
    store = HistoryStore(_config(ctx).db_path)
    try:
        entries = store.list()
    finally:
        store.close()
    file.write_text(json.dumps([_entry_dict(e) for e in entries], indent=2) + "\n")
    console.print(f"[green]Exported {len(entries)} conversations to {escape(str(file))}[/green]")


def _entry_dict(entry: ConversationEntry) -> dict[str, Any]:
    return {
        "id": entry.id,
        "timestamp": entry.timestamp,
        "model": entry.model,
        "character": entry.character,
        "messages": [m.to_dict() for m in entry.messages],
    }


# ---------------------------------------------------------------------------
# usage
# ---------------------------------------------------------------------------

@main.command()
@click.option("--days", "-d", default=7, show_default=True, help="Number of days to show")
@click.option("--today", is_flag=True, help="Only today's usage")
@click.option("--month", is_flag=True, help="This month's usage")
@click.option("--format", "-f", "fmt", type=_FORMATS, default="pretty")
@click.pass_context
def usage(ctx: click.Context, days: int, today: bool, month: bool, fmt: str) -> None:
    """Show API usage statistics."""
    now = time.localtime()
    if today:
        since = time.mktime((now.tm_year, now.tm_mon, now.tm_mday, 0, 0, 0, 0, 0, -1))
        label = "Today"
    elif month:
        since = time.mktime((now.tm_year, now.tm_mon, 1, 0, 0, 0, 0, 0, -1))
        label = "This Month"
    else:
        since = time.time() - days * 86400
        label = f"Last {days} days"

    store = UsageStore(_config(ctx).db_path)
    try:
        entries = store.list(since=since)
    finally:
        store.close()
    summary = summarize_usage(entries)

    if fmt == "json":
        click.echo(json.dumps(summary.to_dict(), indent=2))
        return
    if not entries:
        console.print("[dim]No usage data recorded yet.[/dim]")
        return

    console.print(f"\n[bold]Usage Summary - {label}[/bold]\n")
    console.print(f"[dim]Total Tokens:[/dim] [bold]{summary.total_tokens:,}[/bold]")
    console.print(f"  [dim]Prompt:[/dim] {summary.prompt_tokens:,}")
    console.print(f"  [dim]Completion:[/dim] {summary.completion_tokens:,}\n")

    for title, bucket in (("By Command", summary.by_command), ("By Model", summary.by_model)):
        table = Table(title=title, title_justify="left")
        table.add_column("Name", style="cyan")
        table.add_column("Calls", justify="right")
        table.add_column("Tokens", justify="right")
        for name, stats in bucket.items():
            table.add_row(name, str(stats["calls"]), f"{stats['tokens']:,}")
        console.print(table)

    console.print("[bold]Daily:[/bold]")
    for day in sorted(summary.daily)[-7:]:
        tokens = summary.daily[day]
        bar = "█" * min(20, math.ceil(tokens / 1000))
        console.print(f"  [dim]{day}[/dim] {bar} {tokens:,}")


# ---------------------------------------------------------------------------
# models / search / embed
# ---------------------------------------------------------------------------

@main.command()
@click.option("--type", "-t", "model_type", default=None,
              help="Filter by type (text|image|audio|embedding|code)")
@click.option("--search", "-s", "query", default=None, help="Search models by name")
@click.option("--format", "-f", "fmt", type=_FORMATS, default="pretty")
@click.pass_context
def models(ctx: click.Context, model_type: str | None, query: str | None, fmt: str) -> None:
    """List available models."""
    config = _config(ctx)

    async def _list() -> list[dict[str, Any]]:
        client = _client(config)
        try:
            return await client.list_models(progress=_progress(fmt))
        finally:
            await client.close()

    found = _run(_list())
    if model_type:
        terms = _MODEL_TYPES.get(model_type.lower(), [model_type.lower()])
        found = [
            m for m in found
            if any(t in str(m.get("id", "")).lower() or t in str(m.get("type", "")).lower()
                   for t in terms)
        ]
    if query:
        q = query.lower()
        found = [
            m for m in found
            if q in str(m.get("id", "")).lower()
            or q in str((m.get("model_spec") or {}).get("description", "")).lower()
        ]
    found.sort(key=lambda m: str(m.get("id", "")))

    if fmt == "json":
        click.echo(json.dumps(found, indent=2))
        return
    if not found:
        console.print("[yellow]No models found matching your criteria.[/yellow]")
        return
    table = Table(title=f"Available Models ({len(found)})")
    table.add_column("ID", style="cyan")
    table.add_column("Type")
    table.add_column("Description", style="dim")
    for m in found:
        desc = str((m.get("model_spec") or {}).get("description", ""))
        table.add_row(
            str(m.get("id", "")),
            str(m.get("type", "")),
            desc[:60] + "..." if len(desc) > 60 else desc,
        )
    console.print(table)


@main.command()
@click.argument("query", nargs=-1)
@click.option("--model", "-m", default=None, help="Model to use")
@click.option("--max-results", "-n", default=5, show_default=True, help="Search results to use")
@click.option("--format", "-f", "fmt", type=_FORMATS, default="pretty")
@click.pass_context
def search(
    ctx: click.Context, query: tuple[str, ...], model: str | None, max_results: int, fmt: str,
) -> None:
    """Answer a question using web search."""
    text = _read_prompt(query)
    if not text:
        raise click.UsageError('No query provided. Usage: venice search "Your question"')
    config = _config(ctx)

    async def _search() -> None:
        client = _client(config)
        usage_store = UsageStore(config.db_path)
        try:
            response = await client.web_search(
                text, model=model, max_results=max_results, progress=_progress(fmt),
            )
            if response.usage:
                StoreUsageSink(usage_store).record(
                    "search", model or config.default_model, response.usage,
                )
        finally:
            await client.close()
            usage_store.close()
        _print_answer(response.content, fmt)
        if config.show_usage and fmt == "pretty" and response.usage:
            _print_usage(response.usage)

    _run(_search())


@main.command()
@click.argument("text", nargs=-1)
@click.option("--model", "-m", default="text-embedding-bge-m3", show_default=True)
@click.option("--file", "input_file", type=click.Path(exists=True, dir_okay=False),
              default=None, help="Read text from file instead")
@click.option("--output", "-o", type=click.Path(dir_okay=False), default=None,
              help="Save embeddings to JSON file")
@click.option("--format", "-f", "fmt", type=_FORMATS, default="pretty")
@click.pass_context
def embed(
    ctx: click.Context,
    text: tuple[str, ...],
    model: str,
    input_file: str | None,
    output: str | None,
    fmt: str,
) -> None:
    """Generate text embeddings."""
    content = Path(input_file).read_text().strip() if input_file else _read_prompt(text)
    if not content:
        raise click.UsageError('No text provided. Usage: venice embed "Your text"')
    config = _config(ctx)

    async def _embed() -> list[dict[str, Any]]:
        client = _client(config)
        try:
            return await client.embeddings(content, model=model, progress=_progress(fmt))
        finally:
            await client.close()

    result = _run(_embed())
    if output:
        Path(output).write_text(json.dumps(result, indent=2))
        dim = len(result[0].get("embedding", [])) if result else 0
        console.print(f"[green]Saved embeddings to {escape(output)}[/green] [dim](dimension {dim})[/dim]")
        return
    if fmt == "json":
        click.echo(json.dumps(result, indent=2))
        return
    for i, item in enumerate(result):
        vector = item.get("embedding") or []
        magnitude = math.sqrt(sum(v * v for v in vector))
        first = ", ".join(f"{v:.4f}" for v in vector[:5])
        console.print(f"[bold]Embedding {item.get('index', i) + 1}:[/bold]")
        console.print(f"  [dim]Dimension:[/dim] {len(vector)}")
        console.print(f"  [dim]First 5 values:[/dim] [{first}...]")
        console.print(f"  [dim]Magnitude:[/dim] {magnitude:.6f}")


if __name__ == "__main__":
    main()
