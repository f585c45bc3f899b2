#!/usr/bin/env python3
"""Tests for event history queries."""

import json

import pytest

from mev_share_client.errors import SerializationError
from mev_share_client.history import HISTORY_INFO_PATH, HISTORY_PATH, HistoryClient
from mev_share_client.models import BundleEvent, HistoryParams, TransactionEvent

from conftest import HASH_A, HASH_B

STREAM_URL = "https://mev-share.test/"


def history_entry(block: int, tx_hash: str, bundle: bool = False) -> dict:
    return {
        "block": block,
        "timestamp": 1_700_000_000 + block,
        "hint": {"hash": tx_hash, "logs": None, "txs": [] if bundle else None},
    }


@pytest.fixture
def history(mock_transport):
    return HistoryClient(STREAM_URL, mock_transport)


class TestHistoryParams:
    """Tests for query encoding."""

    def test_only_set_fields(self):
        assert HistoryParams(block_start=10, limit=5).to_query() == {"blockStart": "10", "limit": "5"}

    def test_all_fields(self):
        params = HistoryParams(
            block_start=1, block_end=2, timestamp_start=3, timestamp_end=4, limit=5, offset=6
        )
        assert params.to_query() == {
            "blockStart": "1",
            "blockEnd": "2",
            "timestampStart": "3",
            "timestampEnd": "4",
            "limit": "5",
            "offset": "6",
        }

    def test_negative_limit(self):
        with pytest.raises(ValueError):
            HistoryParams(limit=-1)


class TestHistoryClient:
    """Tests for HistoryClient."""

    @pytest.mark.asyncio
    async def test_info(self, history, mock_transport):
        mock_transport.get.return_value = json.dumps({
            "count": 1200,
            "minBlock": 100,
            "maxBlock": 200,
            "minTimestamp": 1_700_000_000,
            "maxTimestamp": 1_700_001_200,
            "maxLimit": 500,
        }).encode()

        info = await history.get_event_history_info()

        assert info.count == 1200
        assert info.max_limit == 500
        mock_transport.get.assert_awaited_once_with("https://mev-share.test" + HISTORY_INFO_PATH)

    @pytest.mark.asyncio
    async def test_info_missing_field(self, history, mock_transport):
        mock_transport.get.return_value = b'{"count": 1}'
        with pytest.raises(SerializationError):
            await history.get_event_history_info()

    @pytest.mark.asyncio
    async def test_entries_classified(self, history, mock_transport):
        mock_transport.get.return_value = json.dumps([
            history_entry(100, HASH_A),
            history_entry(101, HASH_B, bundle=True),
        ]).encode()

        page = await history.get_event_history(HistoryParams(block_start=100))

        assert len(page) == 2
        first, second = list(page)
        assert isinstance(first.hint, TransactionEvent)
        assert first.block == 100
        assert isinstance(second.hint, BundleEvent)
        assert second.timestamp == 1_700_000_101
        mock_transport.get.assert_awaited_once_with(
            "https://mev-share.test" + HISTORY_PATH, {"blockStart": "100"}
        )

    @pytest.mark.asyncio
    async def test_limit_enforced(self, history, mock_transport):
        """A server ignoring the limit still yields at most `limit` entries."""
        mock_transport.get.return_value = json.dumps(
            [history_entry(100 + i, HASH_A) for i in range(25)]
        ).encode()

        page = await history.get_event_history(HistoryParams(limit=10))

        assert len(page) == 10
        assert [entry.block for entry in page] == list(range(100, 110))
        assert page.params.limit == 10

    @pytest.mark.asyncio
    async def test_empty_history(self, history):
        page = await history.get_event_history()
        assert len(page) == 0

    @pytest.mark.asyncio
    @pytest.mark.parametrize("body", [
        b"not json",
        b'{"entries": []}',
        b'[{"block": 1}]',
        b'[{"block": 1, "timestamp": 2, "hint": {"txs": null}}]',
    ])
    async def test_malformed_response(self, history, mock_transport, body):
        mock_transport.get.return_value = body
        with pytest.raises(SerializationError):
            await history.get_event_history()
