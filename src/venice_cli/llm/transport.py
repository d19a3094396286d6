"""HTTP transport envelope on top of ``httpx.AsyncClient``.

``HttpTransport.send`` issues exactly one request.  A non-2xx status is
turned into an ``ApiError`` carrying the status and body; network faults
surface as the underlying ``httpx`` exceptions so the retry engine can
classify them.
"""

from __future__ import annotations

import json
import logging
from typing import Any, AsyncIterator, Mapping

import httpx

from venice_cli.llm.errors import ApiError

_logger = logging.getLogger(__name__)


class TransportResponse:
    """Status, headers and body access for one HTTP response."""

    def __init__(self, response: httpx.Response, streaming: bool = False) -> None:
        self._response = response
        self._streaming = streaming

    @property
    def status_code(self) -> int:
        return self._response.status_code

    @property
    def headers(self) -> httpx.Headers:
        return self._response.headers

    async def text(self) -> str:
        if self._streaming:
            await self._response.aread()
        return self._response.text

    async def json(self) -> Any:
        return json.loads(await self.text())

    async def aiter_bytes(self) -> AsyncIterator[bytes]:
        async for chunk in self._response.aiter_bytes():
            yield chunk

    async def aclose(self) -> None:
        await self._response.aclose()


class HttpTransport:
    """Thin request/response layer shared by every API call.

    Parameters
    ----------
    base_url:
        API root, e.g. ``https://api.venice.ai/api/v1``.
    timeout:
        Overall ``httpx`` timeout for a request.
    stream_read_timeout:
        Idle bound between two reads of a streamed body.
    transport:
        Optional ``httpx`` transport (``httpx.MockTransport`` in tests).
    """

    def __init__(
        self,
        base_url: str,
        timeout: float = 120,
        stream_read_timeout: float = 60,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self._client = httpx.AsyncClient(
            base_url=self.base_url,
            timeout=httpx.Timeout(timeout, connect=30),
            transport=transport,
        )
        self._stream_timeout = httpx.Timeout(timeout, connect=30, read=stream_read_timeout)

    async def send(
        self,
        method: str,
        path: str,
        headers: Mapping[str, str] | None = None,
        body: Any = None,
        stream: bool = False,
        timeout: float | None = None,
    ) -> TransportResponse:
        """Send one request and return the (possibly unread) response.

        With ``stream=True`` the body is left unread and the caller must
        ``aclose()`` the response.
        """
        request_timeout: Any = httpx.USE_CLIENT_DEFAULT
        if timeout is not None:
            request_timeout = httpx.Timeout(timeout)
        elif stream:
            request_timeout = self._stream_timeout

        request = self._client.build_request(
            method,
            path,
            headers=dict(headers or {}),
            json=body,
            timeout=request_timeout,
        )
        _logger.debug("%s %s%s", method, self.base_url, path)
        response = await self._client.send(request, stream=stream)

        if response.is_success:
            return TransportResponse(response, streaming=stream)

        try:
            if stream:
                await response.aread()
            error_body = response.text
        finally:
            await response.aclose()
        raise ApiError.from_response(response.status_code, error_body)

    async def close(self) -> None:
        """Close the underlying HTTP client."""
        await self._client.aclose()
