"""SQLite-backed history and usage logs."""

from __future__ import annotations

import json
import logging
import sqlite3
import time
import uuid
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Generic, Protocol, TypeVar

from venice_cli.types import Message, UsageTotals

_logger = logging.getLogger(__name__)

DEFAULT_DB_PATH = "~/.venice/venice.db"
HISTORY_LIMIT = 100
USAGE_RETENTION_DAYS = 30

T = TypeVar("T")


class AppendLog(Protocol, Generic[T]):
    def append(self, entry: T) -> None: ...

    def list(self) -> list[T]: ...

    def clear(self) -> None: ...


class KeyValueStore(Protocol):
    def get(self, key: str) -> Any: ...

    def set(self, key: str, value: Any) -> None: ...

    def delete(self, key: str) -> None: ...


@dataclass
class ConversationEntry:
    """A finished conversation as saved to history."""

    messages: list[Message]
    model: str
    character: str | None = None
    id: str = field(default_factory=lambda: str(uuid.uuid4()))
    timestamp: float = field(default_factory=time.time)


@dataclass
class UsageEntry:
    command: str
    model: str
    prompt_tokens: int = 0
    completion_tokens: int = 0
    total_tokens: int = 0
    timestamp: float = field(default_factory=time.time)


def _connect(db_path: str) -> sqlite3.Connection:
    if db_path != ":memory:":
        path = Path(db_path).expanduser()
        path.parent.mkdir(parents=True, exist_ok=True)
        db_path = str(path)
    return sqlite3.connect(db_path)


class HistoryStore:
    """Conversation history; only the most recent ``limit`` entries are kept."""

    def __init__(self, db_path: str = DEFAULT_DB_PATH, limit: int = HISTORY_LIMIT):
        self._conn = _connect(db_path)
        self._limit = limit
        self._conn.executescript("""
            CREATE TABLE IF NOT EXISTS conversations (
                seq INTEGER PRIMARY KEY AUTOINCREMENT,
                id TEXT UNIQUE NOT NULL,
                model TEXT NOT NULL,
                character TEXT,
                messages TEXT NOT NULL,
                created_at REAL NOT NULL
            );
        """)
        self._conn.commit()

    def append(self, entry: ConversationEntry) -> None:
        self._conn.execute(
            "INSERT INTO conversations (id, model, character, messages, created_at) "
            "VALUES (?, ?, ?, ?, ?)",
            (entry.id, entry.model, entry.character,
             json.dumps([m.to_dict() for m in entry.messages]), entry.timestamp),
        )
        self._conn.execute(
            "DELETE FROM conversations WHERE seq NOT IN "
            "(SELECT seq FROM conversations ORDER BY seq DESC LIMIT ?)",
            (self._limit,),
        )
        self._conn.commit()

    def list(self) -> list[ConversationEntry]:
        """All kept conversations, oldest first."""
        rows = self._conn.execute(
            "SELECT id, model, character, messages, created_at "
            "FROM conversations ORDER BY seq",
        ).fetchall()
        return [self._row_to_entry(row) for row in rows]

    def last(self) -> ConversationEntry | None:
        row = self._conn.execute(
            "SELECT id, model, character, messages, created_at "
            "FROM conversations ORDER BY seq DESC LIMIT 1",
        ).fetchone()
        return self._row_to_entry(row) if row else None

    def get(self, entry_id: str) -> ConversationEntry | None:
        """Look up a conversation by id or unique id prefix."""
        rows = self._conn.execute(
            "SELECT id, model, character, messages, created_at "
            "FROM conversations WHERE id LIKE ? ORDER BY seq",
            (f"{entry_id}%",),
        ).fetchall()
        if len(rows) != 1:
            return None
        return self._row_to_entry(rows[0])

    def clear(self) -> None:
        self._conn.execute("DELETE FROM conversations")
        self._conn.commit()

    def close(self) -> None:
        self._conn.close()

    @staticmethod
    def _row_to_entry(row: tuple[Any, ...]) -> ConversationEntry:
        entry_id, model, character, messages, created_at = row
        return ConversationEntry(
            id=entry_id,
            model=model,
            character=character,
            messages=[Message.from_dict(m) for m in json.loads(messages)],
            timestamp=created_at,
        )


class UsageStore:
    """Token usage log; rows older than ``retention_days`` are pruned on write."""

    def __init__(
        self,
        db_path: str = DEFAULT_DB_PATH,
        retention_days: int = USAGE_RETENTION_DAYS,
    ):
        self._conn = _connect(db_path)
        self._retention = retention_days * 86400
        self._conn.executescript("""
            CREATE TABLE IF NOT EXISTS usage (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                command TEXT NOT NULL,
                model TEXT NOT NULL,
                prompt_tokens INTEGER NOT NULL,
                completion_tokens INTEGER NOT NULL,
                total_tokens INTEGER NOT NULL,
                created_at REAL NOT NULL
            );
            CREATE INDEX IF NOT EXISTS idx_usage_created ON usage(created_at);
        """)
        self._conn.commit()

    def append(self, entry: UsageEntry) -> None:
        self._conn.execute(
            "INSERT INTO usage (command, model, prompt_tokens, completion_tokens, "
            "total_tokens, created_at) VALUES (?, ?, ?, ?, ?, ?)",
            (entry.command, entry.model, entry.prompt_tokens,
             entry.completion_tokens, entry.total_tokens, entry.timestamp),
        )
        self._conn.execute(
            "DELETE FROM usage WHERE created_at <= ?", (time.time() - self._retention,),
        )
        self._conn.commit()

    def list(self, since: float | None = None) -> list[UsageEntry]:
        """Usage rows, oldest first; only those at or after *since* if given."""
        query = (
            "SELECT command, model, prompt_tokens, completion_tokens, "
            "total_tokens, created_at FROM usage"
        )
        params: tuple[Any, ...] = ()
        if since is not None:
            query += " WHERE created_at >= ?"
            params = (since,)
        rows = self._conn.execute(query + " ORDER BY id", params).fetchall()
        return [
            UsageEntry(
                command=command, model=model, prompt_tokens=prompt,
                completion_tokens=completion, total_tokens=total, timestamp=ts,
            )
            for command, model, prompt, completion, total, ts in rows
        ]

    def clear(self) -> None:
        self._conn.execute("DELETE FROM usage")
        self._conn.commit()

    def close(self) -> None:
        self._conn.close()


class StoreUsageSink:
    """Usage sink writing to a ``UsageStore``."""

    def __init__(self, store: UsageStore) -> None:
        self._store = store

    def record(self, command: str, model: str, usage: UsageTotals) -> None:
        _logger.debug("Recording usage for %s/%s: %s", command, model, usage)
        self._store.append(UsageEntry(
            command=command,
            model=model,
            prompt_tokens=usage.prompt_tokens,
            completion_tokens=usage.completion_tokens,
            total_tokens=usage.total_tokens,
        ))


@dataclass
class UsageSummary:
    total_tokens: int = 0
    prompt_tokens: int = 0
    completion_tokens: int = 0
    total_calls: int = 0
    by_command: dict[str, dict[str, int]] = field(default_factory=dict)
    by_model: dict[str, dict[str, int]] = field(default_factory=dict)
    daily: dict[str, int] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        return {
            "total_tokens": self.total_tokens,
            "prompt_tokens": self.prompt_tokens,
            "completion_tokens": self.completion_tokens,
            "total_calls": self.total_calls,
            "by_command": self.by_command,
            "by_model": self.by_model,
            "daily": self.daily,
        }


def summarize_usage(entries: list[UsageEntry]) -> UsageSummary:
    """Aggregate usage rows per command, per model and per day."""
    summary = UsageSummary(total_calls=len(entries))
    for entry in entries:
        summary.total_tokens += entry.total_tokens
        summary.prompt_tokens += entry.prompt_tokens
        summary.completion_tokens += entry.completion_tokens
        for bucket, key in (
            (summary.by_command, entry.command),
            (summary.by_model, entry.model),
        ):
            stats = bucket.setdefault(key, {"calls": 0, "tokens": 0})
            stats["calls"] += 1
            stats["tokens"] += entry.total_tokens
        day = time.strftime("%Y-%m-%d", time.localtime(entry.timestamp))
        summary.daily[day] = summary.daily.get(day, 0) + entry.total_tokens
    return summary
