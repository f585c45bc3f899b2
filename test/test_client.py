#!/usr/bin/env python3
"""Tests for the MevShareClient facade."""

import asyncio
import json
import os
from unittest.mock import AsyncMock, patch

import pytest

from mev_share_client import MevShareClient
from mev_share_client.config import ClientConfig
from mev_share_client.errors import ConfigError, MevShareTimeoutError
from mev_share_client.event_stream import ConnectionState
from mev_share_client.models import (
    BundleParams,
    EventKind,
    HashRef,
    HistoryParams,
    Inclusion,
    LiteralTx,
)
from mev_share_client.signing import sign_payload
from mev_share_client.transport import HttpxRpcTransport, SseEventSource

from conftest import (
    HASH_A,
    HASH_B,
    TEST_PRIVATE_KEY,
    QueueEventSource,
    bundle_frame,
    rpc_response,
    tx_frame,
    wait_until,
)
from test_watcher import RAW_A, FakeChain


@pytest.fixture
def event_source():
    source = QueueEventSource()
    source.aclose = AsyncMock()
    return source


@pytest.fixture
def client(client_config, mock_transport, event_source):
    return MevShareClient(client_config, transport=mock_transport, event_source=event_source)


class TestMevShareClient:
    """Tests for MevShareClient."""

    @pytest.mark.asyncio
    async def test_send_bundle_signed(self, client, mock_transport):
        """The signature header reaching the transport matches the body and key."""
        mock_transport.send.return_value = rpc_response({"bundleHash": HASH_B})
        params = BundleParams(body=(LiteralTx("0x02f8"),), inclusion=Inclusion(block=1))

        result = await client.send_bundle(params)

        assert result.bundle_hash == HASH_B
        url, body, headers = mock_transport.send.call_args[0]
        assert url == "https://relay.flashbots.net"
        assert headers["X-Flashbots-Signature"] == sign_payload(body, TEST_PRIVATE_KEY)
        await client.close()

    @pytest.mark.asyncio
    async def test_custom_signer_without_key(self, mock_transport, event_source):
        """A client built around its own signer needs no private key in the config."""

        class StaticSigner:
            header_name = "X-Flashbots-Signature"

            def sign(self, payload: bytes) -> str:
                return "0xabc:0xdef"

        mock_transport.send.return_value = rpc_response({"bundleHash": HASH_B})
        client = MevShareClient(
            ClientConfig(),
            transport=mock_transport,
            event_source=event_source,
            signer=StaticSigner(),
        )

        await client.send_bundle(BundleParams(body=(LiteralTx("0x02f8"),), inclusion=Inclusion(block=1)))

        _, _, headers = mock_transport.send.call_args[0]
        assert headers == {"X-Flashbots-Signature": "0xabc:0xdef"}
        await client.close()

    def test_no_key_and_no_signer(self, mock_transport, event_source):
        with pytest.raises(ConfigError, match="custom signer"):
            MevShareClient(ClientConfig(), transport=mock_transport, event_source=event_source)

    @pytest.mark.asyncio
    async def test_stream_starts_on_first_listener(self, client, event_source):
        received = []
        assert not client.dispatcher.is_running

        client.on_transaction(lambda e: received.append(e.hash))

        assert client.dispatcher.is_running
        event_source.queue.put_nowait(tx_frame(HASH_A))
        await wait_until(lambda: received == [HASH_A])
        await client.close()

    def test_no_start_outside_loop(self, client):
        client.on_bundle(lambda e: None)
        assert not client.dispatcher.is_running
        assert client.dispatcher.state is ConnectionState.IDLE

    @pytest.mark.asyncio
    async def test_string_kind(self, client, event_source):
        bundles = []
        client.on("bundle", lambda e: bundles.append(e.hash))

        event_source.queue.put_nowait(bundle_frame(HASH_B))
        await wait_until(lambda: bundles == [HASH_B])
        assert client.dispatcher.listeners(EventKind.BUNDLE)
        await client.close()

    def test_unknown_kind(self, client):
        with pytest.raises(ValueError):
            client.on("block", lambda e: None)

    @pytest.mark.asyncio
    async def test_explicit_start(self, client):
        await client.start()
        assert client.dispatcher.is_running
        await client.close()
        assert client.dispatcher.state is ConnectionState.CLOSED

    @pytest.mark.asyncio
    async def test_close_cancels_watchers(self, client_config, mock_transport, event_source):
        client = MevShareClient(
            client_config,
            transport=mock_transport,
            event_source=event_source,
            chain_provider=FakeChain({}),
        )
        params = BundleParams(body=(HashRef(HASH_A),), inclusion=Inclusion(block=1))
        simulation = asyncio.ensure_future(client.simulate_bundle(params))
        await wait_until(lambda: client.watcher.inflight == 1)

        await client.close()

        assert client.watcher.inflight == 0
        with pytest.raises(asyncio.CancelledError):
            await simulation
        mock_transport.send.assert_not_called()

    @pytest.mark.asyncio
    async def test_injected_components_not_closed(self, client, mock_transport, event_source):
        async with client:
            pass

        mock_transport.aclose.assert_not_called()
        event_source.aclose.assert_not_called()

    @pytest.mark.asyncio
    async def test_owned_components_closed(self, client_config):
        with patch.object(HttpxRpcTransport, "aclose", new_callable=AsyncMock) as transport_close, \
                patch.object(SseEventSource, "aclose", new_callable=AsyncMock) as source_close:
            async with MevShareClient(client_config):
                pass

        transport_close.assert_awaited_once()
        source_close.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_simulate_hash_ref_without_chain_provider(self, client, mock_transport):
        params = BundleParams(body=(HashRef(HASH_A),), inclusion=Inclusion(block=1))

        with pytest.raises(ConfigError, match="CHAIN_RPC_URL"):
            await client.simulate_bundle(params)

        mock_transport.send.assert_not_called()
        await client.close()

    @pytest.mark.asyncio
    async def test_simulate_after_landing(self, client_config, mock_transport, event_source):
        chain = FakeChain({HASH_A: (1, 100, RAW_A)})
        client = MevShareClient(
            client_config,
            transport=mock_transport,
            event_source=event_source,
            chain_provider=chain,
        )
        # FakeChain serves no block headers
        client.resolver.provider = None
        params = BundleParams(body=(HashRef(HASH_A),), inclusion=Inclusion(block=100))

        async with client:
            result = await client.simulate_bundle(params)

        assert result.success
        _, body, _ = mock_transport.send.call_args[0]
        assert json.loads(body)["params"][0]["body"] == [{"tx": RAW_A, "canRevert": False}]

    @pytest.mark.asyncio
    async def test_simulate_landing_timeout(self, client_config, mock_transport, event_source):
        client = MevShareClient(
            client_config,
            transport=mock_transport,
            event_source=event_source,
            chain_provider=FakeChain({}),
        )
        params = BundleParams(body=(HashRef(HASH_A),), inclusion=Inclusion(block=100))

        async with client:
            with pytest.raises(MevShareTimeoutError):
                await client.simulate_bundle(params, landing_timeout=0.05)

        mock_transport.send.assert_not_called()

    @pytest.mark.asyncio
    async def test_history(self, client, mock_transport):
        page = await client.get_event_history(HistoryParams(limit=10))

        assert len(page) == 0
        url, query = mock_transport.get.call_args[0]
        assert url == "https://mev-share.flashbots.net/api/v1/history"
        assert query == {"limit": "10"}
        await client.close()

    def test_from_env(self, mock_transport, event_source):
        env = {"MEV_SHARE_PRIVATE_KEY": TEST_PRIVATE_KEY, "NETWORK": "sepolia"}
        with patch.dict(os.environ, env, clear=True):
            client = MevShareClient.from_env(transport=mock_transport, event_source=event_source)

        assert client.config.network == "sepolia"
        assert client.watcher is None
        assert client.rpc.api_url == "https://relay-sepolia.flashbots.net"
