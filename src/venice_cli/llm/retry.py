"""Retry engine: classify -> wait -> retry or escalate.

Every request the client makes goes through ``RetryEngine.run``.  The
engine keeps no state between calls; the progress sink is passed in per
call and belongs to the caller.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Awaitable, Callable, TypeVar

from venice_cli.llm.errors import (
    ApiError,
    AuthenticationError,
    OfflineError,
    RequestFailedError,
    classify_exception,
    is_network_fault,
)
from venice_cli.progress import NullProgress, ProgressSink
from venice_cli.types import FailureKind

_logger = logging.getLogger(__name__)

T = TypeVar("T")

# Retry configuration
DEFAULT_MAX_ATTEMPTS = 4
DEFAULT_BASE_DELAY = 1.0  # seconds -- linear: 1, 2, 3 (x2 when rate limited)

ProbeFn = Callable[[], Awaitable[bool]]
SleepFn = Callable[[float], Awaitable[None]]


class RetryEngine:
    """Wraps an async operation in the classify/wait/retry loop.

    Parameters
    ----------
    max_attempts:
        Total number of attempts, the first one included.
    base_delay:
        Base wait in seconds.  Transient faults wait ``base * (n + 1)``,
        rate limits ``base * (n + 1) * 2`` where *n* is the 0-based attempt.
    attempt_timeout:
        Upper bound in seconds for a single attempt (``None`` = unbounded).
        A timed out attempt counts as a network fault.
    probe:
        Connectivity check run before retrying a network fault.  ``None``
        skips the check.
    sleep:
        Awaitable used for the waits; injectable for tests.
    """

    def __init__(
        self,
        max_attempts: int = DEFAULT_MAX_ATTEMPTS,
        base_delay: float = DEFAULT_BASE_DELAY,
        attempt_timeout: float | None = None,
        probe: ProbeFn | None = None,
        sleep: SleepFn = asyncio.sleep,
    ) -> None:
        if max_attempts < 1:
            raise ValueError("max_attempts must be at least 1")
        self.max_attempts = max_attempts
        self.base_delay = base_delay
        self.attempt_timeout = attempt_timeout
        self._probe = probe
        self._sleep = sleep

    async def run(
        self,
        operation: Callable[[], Awaitable[T]],
        progress: ProgressSink | None = None,
        label: str | None = None,
    ) -> T:
        """Run *operation* until it succeeds or a fatal error is raised.

        *label* is reported once before the first attempt; every retry adds
        one more report.  ``progress.clear()`` runs however the call ends.
        """
        sink = progress or NullProgress()
        if label:
            sink.report(label)
        try:
            return await self._run(operation, sink)
        finally:
            sink.clear()

    async def _run(
        self,
        operation: Callable[[], Awaitable[T]],
        sink: ProgressSink,
    ) -> T:
        total = self.max_attempts
        last_kind = FailureKind.UNKNOWN
        last_message = "Request failed after retries"
        last_status: int | None = None
        last_exc: Exception | None = None

        for attempt in range(total):
            try:
                return await self._attempt(operation)
            except Exception as exc:
                kind, message = classify_exception(exc)
                last_kind, last_message, last_exc = kind, message, exc
                last_status = exc.status_code if isinstance(exc, ApiError) else None
                has_next = attempt < total - 1

                if kind is FailureKind.AUTH_ERROR:
                    _logger.warning("Authentication failed: %s", message)
                    raise AuthenticationError() from exc

                if kind is FailureKind.CLIENT_ERROR:
                    raise RequestFailedError(message, kind, last_status) from exc

                if not has_next:
                    break

                if kind is FailureKind.RATE_LIMITED:
                    delay = self.base_delay * (attempt + 1) * 2
                    _logger.warning(
                        "Rate limited (attempt %d/%d), waiting %.1fs",
                        attempt + 1, total, delay,
                    )
                    sink.report(
                        f"Rate limited, waiting... (attempt {attempt + 1}/{total})"
                    )
                    await self._sleep(delay)
                    continue

                delay = self.base_delay * (attempt + 1)
                if kind is FailureKind.TRANSIENT and is_network_fault(exc):
                    if self._probe is not None and not await self._probe():
                        _logger.warning("Connectivity probe failed: %s", message)
                        raise OfflineError() from exc
                    _logger.warning(
                        "Network error (attempt %d/%d): %s",
                        attempt + 1, total, message,
                    )
                    sink.report(
                        f"Connection error, retrying... (attempt {attempt + 2}/{total})"
                    )
                else:
                    _logger.warning(
                        "Request failed with %s (attempt %d/%d): %s",
                        kind.value, attempt + 1, total, message,
                    )
                    sink.report(f"Retrying... (attempt {attempt + 2}/{total})")
                await self._sleep(delay)

        raise RequestFailedError(last_message, last_kind, last_status) from last_exc

    async def _attempt(self, operation: Callable[[], Awaitable[T]]) -> T:
        if self.attempt_timeout is None:
            return await operation()
        return await asyncio.wait_for(operation(), timeout=self.attempt_timeout)
