#!/usr/bin/env python3
"""Event history queries against the Event API's REST surface."""

import json
import logging
from typing import Any

from .errors import SerializationError, StreamError
from .event_stream import classify_event
from .models import EventHistoryEntry, HistoryInfo, HistoryPage, HistoryParams
from .transport import RpcTransport

logger = logging.getLogger(__name__)

HISTORY_PATH = "/api/v1/history"
HISTORY_INFO_PATH = "/api/v1/history/info"


def _decode(body: bytes) -> Any:
    try:
        return json.loads(body)
    except (json.JSONDecodeError, UnicodeDecodeError) as e:
        raise SerializationError(f"History response is not valid JSON: {e}") from e


class HistoryClient:
    """Read-only client for historical event hints."""

    def __init__(self, stream_url: str, transport: RpcTransport) -> None:
        self.base_url = stream_url.rstrip("/")
        self.transport = transport

    async def get_event_history_info(self) -> HistoryInfo:
        """Fetch the block and timestamp range covered by the history."""
        data = _decode(await self.transport.get(self.base_url + HISTORY_INFO_PATH))
        try:
            return HistoryInfo.from_dict(data)
        except (KeyError, TypeError, ValueError) as e:
            raise SerializationError(f"Unexpected history info: {data!r}") from e

    async def get_event_history(self, params: HistoryParams | None = None) -> HistoryPage:
        """
        Fetch historical hints matching the query.

        At most `params.limit` entries are returned even if the server sends more.

        Raises:
            TransportError: On network failure or HTTP error
            SerializationError: If the response is malformed
        """
        params = params or HistoryParams()
        data = _decode(
            await self.transport.get(self.base_url + HISTORY_PATH, params.to_query())
        )
        if not isinstance(data, list):
            raise SerializationError(f"History response must be a list, got {type(data).__name__}")

        if params.limit is not None and len(data) > params.limit:
            logger.debug(f"Server returned {len(data)} entries for limit {params.limit}")
            data = data[:params.limit]

        entries = []
        for item in data:
            try:
                entries.append(EventHistoryEntry(
                    block=int(item["block"]),
                    timestamp=int(item["timestamp"]),
                    hint=classify_event(item["hint"]),
                ))
            except (KeyError, TypeError, ValueError, StreamError) as e:
                raise SerializationError(f"Malformed history entry {item!r}: {e}") from e

        return HistoryPage(entries=entries, params=params)
