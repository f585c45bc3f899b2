#!/usr/bin/env python3
"""Shared fixtures and fakes for the MEV-Share client tests."""

import asyncio
import json
from unittest.mock import AsyncMock

import pytest

from mev_share_client.config import ClientConfig, StreamConfig, WatcherConfig

# Well-known eth_account documentation key; never holds funds
TEST_PRIVATE_KEY = "0x4c0883a69102937d6231471b5dbb6204fe5129617082792ae468d01a3f362318"
TEST_ADDRESS = "0x2c7536E3605D9C16a7a3D7b1898e529396a65c23"

HASH_A = "0x" + "aa" * 32
HASH_B = "0x" + "bb" * 32
HASH_C = "0x" + "cc" * 32


def tx_frame(tx_hash: str, **extra) -> str:
    """A raw transaction-event frame (txs is null)."""
    return json.dumps({"hash": tx_hash, "logs": None, "txs": None, **extra})


def bundle_frame(bundle_hash: str, txs: list | None = None) -> str:
    """A raw bundle-event frame (txs is non-null)."""
    return json.dumps({
        "hash": bundle_hash,
        "logs": None,
        "txs": txs if txs is not None else [{"to": "0x" + "11" * 20, "functionSelector": "0xa9059cbb"}],
    })


def rpc_response(result) -> bytes:
    return json.dumps({"jsonrpc": "2.0", "id": 1, "result": result}).encode()


SIM_RESULT = {
    "success": True,
    "stateBlock": "0x63",
    "mevGasPrice": "0x3b9aca00",
    "profit": "0x10",
    "refundableValue": "0x8",
    "gasUsed": "0x5208",
    "logs": [],
}


class ScriptedEventSource:
    """EventSource replaying one script per connection.

    Each script is a list of frames; an Exception item drops the connection
    at that point. A script that runs out without an exception keeps the
    connection open forever. Once all scripts are used, new connections
    stay open and silent.
    """

    def __init__(self, *connections: list) -> None:
        self.connections = list(connections)
        self.subscriptions = 0
        self.closed = False

    async def subscribe(self, url: str):
        self.subscriptions += 1
        script = self.connections.pop(0) if self.connections else []
        for item in script:
            if isinstance(item, Exception):
                raise item
            yield item
        await asyncio.Event().wait()

    async def aclose(self) -> None:
        self.closed = True


class QueueEventSource:
    """EventSource fed by the test through an asyncio.Queue."""

    def __init__(self) -> None:
        self.queue: asyncio.Queue[str] = asyncio.Queue()

    async def subscribe(self, url: str):
        while True:
            yield await self.queue.get()

    async def aclose(self) -> None:
        pass


async def wait_until(predicate, timeout: float = 2.0) -> None:
    """Poll until predicate() is true or fail the test."""
    loop = asyncio.get_running_loop()
    deadline = loop.time() + timeout
    while not predicate():
        if loop.time() > deadline:
            pytest.fail("Condition not reached in time")
        await asyncio.sleep(0.005)


@pytest.fixture
def fast_stream_config():
    """Reconnect settings short enough for tests."""
    return StreamConfig(reconnect_base_delay=0.01, reconnect_max_delay=0.02)


@pytest.fixture
def fast_watcher_config():
    return WatcherConfig(poll_interval=0.01, landing_timeout=1.0)


@pytest.fixture
def client_config(fast_stream_config, fast_watcher_config):
    return ClientConfig(
        private_key=TEST_PRIVATE_KEY,
        stream=fast_stream_config,
        watcher=fast_watcher_config,
    )


@pytest.fixture
def mock_transport():
    """RpcTransport mock answering every POST with a simulation result."""
    transport = AsyncMock()
    transport.send = AsyncMock(return_value=rpc_response(SIM_RESULT))
    transport.get = AsyncMock(return_value=b"[]")
    transport.aclose = AsyncMock()
    return transport
