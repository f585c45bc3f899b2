#!/usr/bin/env python3
"""Exception hierarchy for the MEV-Share client.

Every failure surfaced by this package derives from MevShareError so callers
can catch the whole family at once, while the concrete subclasses keep the
distinction between configuration, transport, protocol and timing problems.
"""

from typing import Any


class MevShareError(Exception):
    """Base class for all client errors."""


class ConfigError(MevShareError, ValueError):
    """Malformed key, URL or setting detected at construction time."""


class TransportError(MevShareError):
    """Network failure or non-success HTTP status.

    Attributes:
        status_code: HTTP status when the server answered, None otherwise
        body: Response body when the server answered, None otherwise
    """

    def __init__(
        self,
        message: str,
        status_code: int | None = None,
        body: bytes | None = None
    ) -> None:
        super().__init__(message)
        self.status_code = status_code
        self.body = body


class RpcError(MevShareError):
    """Protocol-level rejection returned in a JSON-RPC error object.

    Attributes:
        code: JSON-RPC error code
        message: Error message from the server
        data: Optional additional error data
    """

    def __init__(self, code: int, message: str, data: Any = None) -> None:
        super().__init__(f"RPC error {code}: {message}")
        self.code = code
        self.message = message
        self.data = data


class SerializationError(MevShareError):
    """Request or response payload could not be encoded or decoded."""


class MevShareTimeoutError(MevShareError, TimeoutError):
    """A landing watcher or simulation did not finish in time."""


class StreamError(MevShareError):
    """A single push frame could not be parsed or classified."""

    def __init__(self, message: str, frame: str | None = None) -> None:
        super().__init__(message)
        self.frame = frame
