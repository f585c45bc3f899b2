"""
Server-sent events framing.

Splits a line stream into event records: consecutive `data:` lines are joined
with newlines and emitted when a blank line terminates the record.
"""

from collections.abc import AsyncIterable, AsyncIterator


class SseFrameParser:
    """
    Incremental parser for the server-sent events line protocol.

    Only the `data` field is retained; `event`, `id` and `retry` fields and
    comment lines (starting with ':') are ignored.
    """

    def __init__(self) -> None:
        self._data: list[str] = []

    def feed(self, line: str) -> str | None:
        """
        Consume one line (without its terminator).

        Returns:
            The completed record's data when `line` ends a record, else None
        """
        line = line.rstrip("\r\n")
        if not line:
            return self.flush()
        if line.startswith(":"):
            return None

        name, _, value = line.partition(":")
        if value.startswith(" "):
            value = value[1:]
        if name == "data":
            self._data.append(value)
        return None

    def flush(self) -> str | None:
        """Emit any buffered record and reset."""
        if not self._data:
            return None
        frame = "\n".join(self._data)
        self._data = []
        return frame


async def iter_sse_frames(lines: AsyncIterable[str]) -> AsyncIterator[str]:
    """
    Turn an async line stream into an async stream of record payloads.

    A record left unterminated when the line stream ends is discarded, since
    the connection dropped before it was complete.
    """
    parser = SseFrameParser()
    async for line in lines:
        if (frame := parser.feed(line)) is not None:
            yield frame
