#!/usr/bin/env python3
"""Wire transport abstraction for the MEV-Share client.

Two capability interfaces isolate everything HTTP-specific from the protocol
layer:

- RpcTransport: request/response exchanges (signed JSON-RPC POSTs and
  history GETs).
- EventSource: a lazy, infinite sequence of raw push frames. Every call to
  `subscribe` opens a fresh connection.

The default implementations use a shared httpx.AsyncClient.
"""

import logging
from collections.abc import AsyncIterator, Mapping
from typing import Protocol

import httpx

from .errors import MevShareTimeoutError, TransportError
from .utils.sse_utility import iter_sse_frames

logger = logging.getLogger(__name__)


class RpcTransport(Protocol):
    """Sends request bodies and returns raw response bodies."""

    async def send(self, url: str, body: bytes, headers: Mapping[str, str]) -> bytes:
        ...

    async def get(self, url: str, params: Mapping[str, str] | None = None) -> bytes:
        ...

    async def aclose(self) -> None:
        ...


class EventSource(Protocol):
    """Produces raw push frames from a streaming endpoint."""

    def subscribe(self, url: str) -> AsyncIterator[str]:
        ...

    async def aclose(self) -> None:
        ...


def _raise_for_status(response: httpx.Response, body: bytes | None = None) -> None:
    if response.is_success:
        return
    raise TransportError(
        f"{response.request.method} {response.request.url} returned HTTP {response.status_code}",
        status_code=response.status_code,
        body=body,
    )


class HttpxRpcTransport:
    """
    RpcTransport over HTTPS using httpx.

    Safe for concurrent use; all requests share one connection pool.
    """

    def __init__(
        self,
        timeout: float = 30.0,
        client: httpx.AsyncClient | None = None
    ) -> None:
        """
        Initialize the transport.

        Args:
            timeout: Per-request timeout in seconds
            client: Optional pre-configured client (its lifecycle stays with the caller)
        """
        self._owns_client = client is None
        self._client = client or httpx.AsyncClient(timeout=timeout)

    async def send(self, url: str, body: bytes, headers: Mapping[str, str]) -> bytes:
        """
        POST a body and return the response body.

        Raises:
            TransportError: On network failure or non-success status
            MevShareTimeoutError: If the request times out
        """
        request_headers = {"Content-Type": "application/json", **headers}
        logger.debug(f"POST {url} ({len(body)} bytes)")
        try:
            response = await self._client.post(url, content=body, headers=request_headers)
        except httpx.TimeoutException as e:
            raise MevShareTimeoutError(f"POST {url} timed out: {e}") from e
        except httpx.HTTPError as e:
            raise TransportError(f"POST {url} failed: {e}") from e
        _raise_for_status(response, response.content)
        return response.content

    async def get(self, url: str, params: Mapping[str, str] | None = None) -> bytes:
        """
        GET a resource and return the response body.

        Raises:
            TransportError: On network failure or non-success status
            MevShareTimeoutError: If the request times out
        """
        logger.debug(f"GET {url} params={dict(params or {})}")
        try:
            response = await self._client.get(url, params=params)
        except httpx.TimeoutException as e:
            raise MevShareTimeoutError(f"GET {url} timed out: {e}") from e
        except httpx.HTTPError as e:
            raise TransportError(f"GET {url} failed: {e}") from e
        _raise_for_status(response, response.content)
        return response.content

    async def aclose(self) -> None:
        if self._owns_client:
            await self._client.aclose()


class SseEventSource:
    """
    EventSource reading server-sent events over HTTPS using httpx.

    The read timeout is disabled by default because the stream may be idle
    between blocks.
    """

    def __init__(
        self,
        read_timeout: float | None = None,
        client: httpx.AsyncClient | None = None
    ) -> None:
        self._owns_client = client is None
        self._client = client or httpx.AsyncClient(
            timeout=httpx.Timeout(10.0, read=read_timeout)
        )

    async def subscribe(self, url: str) -> AsyncIterator[str]:
        """
        Open a new connection and yield each event record's data.

        The iterator ends when the server closes the connection.

        Raises:
            TransportError: On connection failure or non-success status
        """
        try:
            async with self._client.stream(
                "GET", url, headers={"Accept": "text/event-stream"}
            ) as response:
                _raise_for_status(response)
                logger.debug(f"Event stream opened: {url}")
                async for frame in iter_sse_frames(response.aiter_lines()):
                    yield frame
        except httpx.HTTPError as e:
            raise TransportError(f"Event stream {url} failed: {e}") from e

    async def aclose(self) -> None:
        if self._owns_client:
            await self._client.aclose()
