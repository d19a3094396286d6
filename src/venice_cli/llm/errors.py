"""Failure classification and the error hierarchy.

``classify()`` is the only place that decides whether a failed request is
worth retrying; the retry engine acts on the ``FailureKind`` it returns.
"""

from __future__ import annotations

import asyncio
import json
from typing import TYPE_CHECKING

import httpx

from venice_cli.types import FailureKind

if TYPE_CHECKING:
    from venice_cli.types import ExchangeResult


# ---------------------------------------------------------------------------
# Classifier
# ---------------------------------------------------------------------------

def _extract_message(body: str) -> tuple[str | None, str | None]:
    """Pull ``(message, code)`` out of a structured error envelope."""
    try:
        data = json.loads(body)
    except (json.JSONDecodeError, TypeError):
        return None, None
    if not isinstance(data, dict):
        return None, None
    error = data.get("error")
    if isinstance(error, dict):
        return error.get("message") or data.get("message"), error.get("code")
    if isinstance(error, str) and error:
        return error, None
    return data.get("message"), None


def classify(status_code: int | None, body: str = "") -> tuple[FailureKind, str]:
    """Map a response status (``None`` for a network fault) to a failure kind.

    Returns ``(kind, message)``.  The message comes from a JSON error
    envelope when there is one, else the raw body, else ``"HTTP <code>"``.
    """
    message, _ = _extract_message(body)
    if not message:
        message = body.strip() or (
            f"HTTP {status_code}" if status_code is not None else "network error"
        )

    if status_code is None:
        return FailureKind.TRANSIENT, message
    if status_code in (401, 403):
        return FailureKind.AUTH_ERROR, message
    if status_code == 429:
        return FailureKind.RATE_LIMITED, message
    if 500 <= status_code < 600:
        return FailureKind.TRANSIENT, message
    if 400 <= status_code < 500:
        return FailureKind.CLIENT_ERROR, message
    return FailureKind.UNKNOWN, message


# ---------------------------------------------------------------------------
# Errors
# ---------------------------------------------------------------------------

class VeniceError(Exception):
    """Base class for all errors surfaced by venice-cli."""


class ApiError(VeniceError):
    """A single failed request, before the retry engine decides what to do."""

    def __init__(
        self,
        message: str,
        status_code: int | None = None,
        code: str | None = None,
        kind: FailureKind | None = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.status_code = status_code
        self.code = code
        self.kind = kind or classify(status_code, "")[0]

    @classmethod
    def from_response(cls, status_code: int, body: str) -> ApiError:
        kind, message = classify(status_code, body)
        _, code = _extract_message(body)
        return cls(message, status_code=status_code, code=code, kind=kind)


def classify_exception(exc: BaseException) -> tuple[FailureKind, str]:
    """Classify any exception raised by an attempt."""
    if isinstance(exc, ApiError):
        return exc.kind, exc.message
    if isinstance(exc, (httpx.TransportError, httpx.TimeoutException)):
        return FailureKind.TRANSIENT, str(exc) or type(exc).__name__
    if isinstance(exc, (asyncio.TimeoutError, TimeoutError)):
        return FailureKind.TRANSIENT, "request timed out"
    return FailureKind.UNKNOWN, f"{type(exc).__name__}: {exc}"


def is_network_fault(exc: BaseException) -> bool:
    """True when the failure carries no HTTP status at all."""
    if isinstance(exc, ApiError):
        return exc.status_code is None
    return classify_exception(exc)[0] is FailureKind.TRANSIENT


class AuthenticationError(VeniceError):
    """Credentials were rejected; reconfiguration is needed."""

    kind = FailureKind.AUTH_ERROR
    hint = "Update with: venice config set api_key <your-key>"

    def __init__(self, message: str = "Authentication failed. Please check your API key.") -> None:
        super().__init__(f"{message}\n{self.hint}")


class MissingApiKeyError(AuthenticationError):
    """No API key is configured; raised before any request is made."""

    def __init__(self) -> None:
        VeniceError.__init__(
            self,
            "No API key found.\n\n"
            "Set your API key using one of these methods:\n"
            "  1. venice config set api_key <your-key>\n"
            "  2. export VENICE_API_KEY=<your-key>",
        )


class OfflineError(VeniceError):
    """The connectivity probe failed while retrying a network fault."""

    kind = FailureKind.TRANSIENT

    def __init__(self) -> None:
        super().__init__(
            "Unable to connect to Venice API.\n"
            "Please check your internet connection."
        )


class RequestFailedError(VeniceError):
    """A request failed for good: client error or retry budget exhausted."""

    def __init__(
        self,
        message: str,
        kind: FailureKind,
        status_code: int | None = None,
    ) -> None:
        super().__init__(message)
        self.kind = kind
        self.status_code = status_code


class ExchangeError(VeniceError):
    """A conversation exchange failed; ``partial`` keeps what was accumulated."""

    def __init__(self, cause: VeniceError, partial: ExchangeResult) -> None:
        super().__init__(str(cause))
        self.cause = cause
        self.partial = partial

    @property
    def kind(self) -> FailureKind:
        return getattr(self.cause, "kind", FailureKind.UNKNOWN)
