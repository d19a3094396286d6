"""API client, retry engine and stream decoding for venice-cli."""

from venice_cli.llm.client import VeniceClient
from venice_cli.llm.errors import (
    ApiError,
    AuthenticationError,
    ExchangeError,
    MissingApiKeyError,
    OfflineError,
    RequestFailedError,
    VeniceError,
    classify,
)
from venice_cli.llm.retry import RetryEngine
from venice_cli.llm.sse import SSEDecoder, decode_sse
from venice_cli.llm.transport import HttpTransport, TransportResponse

__all__ = [
    "ApiError",
    "AuthenticationError",
    "ExchangeError",
    "HttpTransport",
    "MissingApiKeyError",
    "OfflineError",
    "RequestFailedError",
    "RetryEngine",
    "SSEDecoder",
    "TransportResponse",
    "VeniceClient",
    "VeniceError",
    "classify",
    "decode_sse",
]
