#!/usr/bin/env python3
"""MEV-Share client facade.

Composition root that builds the signer, transports, dispatcher, watcher and
resolver from a ClientConfig and exposes the public operations.
"""

import asyncio
import logging
from collections.abc import Callable

from .config import ClientConfig
from .errors import ConfigError
from .event_stream import ConnectionState, ErrorListener, EventDispatcher, Listener
from .history import HistoryClient
from .models import (
    BundleParams,
    EventKind,
    HistoryInfo,
    HistoryPage,
    HistoryParams,
    PrivateTxOptions,
    SendBundleResult,
    SimOptions,
    SimulationResult,
)
from .resolver import BundleResolver
from .rpc import JsonRpcClient
from .signing import FlashbotsSigner, RequestSigner
from .transport import EventSource, HttpxRpcTransport, RpcTransport, SseEventSource
from .utils.chain_utility import ChainStateProvider, Web3ChainProvider
from .watcher import TransactionWatcher

# Get logger for this module
logger = logging.getLogger(__name__)


class MevShareClient:
    """
    Client for the MEV-Share Bundle API and Event API.

    The event stream starts lazily when the first listener is registered from
    inside a running event loop, or explicitly via start(). Use the client as
    an async context manager (or call close()) to release the stream, cancel
    in-flight landing watchers and close HTTP connections.
    """

    def __init__(
        self,
        config: ClientConfig,
        *,
        transport: RpcTransport | None = None,
        event_source: EventSource | None = None,
        chain_provider: ChainStateProvider | None = None,
        signer: RequestSigner | None = None
    ) -> None:
        """
        Initialize the client.

        Args:
            config: Client configuration
            transport: Request/response transport (httpx by default)
            event_source: Push-frame source (server-sent events by default)
            chain_provider: Chain state for landing watches (built from
                config.chain_rpc_url when omitted)
            signer: Request signer (FlashbotsSigner over config.private_key by default)

        Raises:
            ConfigError: If the signer key is malformed, or neither a key nor
                a signer is given
        """
        self.config = config
        if signer is None:
            if config.private_key is None:
                raise ConfigError(
                    "A signer private key is required unless a custom signer is supplied"
                )
            signer = FlashbotsSigner(config.private_key)
        self.signer = signer

        self._owned: list[object] = []
        if transport is None:
            transport = HttpxRpcTransport(timeout=config.request_timeout)
            self._owned.append(transport)
        if event_source is None:
            event_source = SseEventSource(read_timeout=config.stream.read_timeout)
            self._owned.append(event_source)
        if chain_provider is None and config.chain_rpc_url:
            chain_provider = Web3ChainProvider(config.chain_rpc_url, config.request_timeout)
            self._owned.append(chain_provider)

        self.transport = transport
        self.event_source = event_source
        self.chain_provider = chain_provider

        self.rpc = JsonRpcClient(config.api_url, transport, self.signer)
        self.history = HistoryClient(config.stream_url, transport)
        self.dispatcher = EventDispatcher(config.stream_url, event_source, config.stream)
        self.watcher = (
            TransactionWatcher(chain_provider, config.watcher) if chain_provider else None
        )
        self.resolver = BundleResolver(self.rpc, self.watcher, chain_provider)

        logger.info(
            f"MevShareClient initialized ({config.network}, signer {getattr(self.signer, 'address', 'custom')})"
        )

    @classmethod
    def from_env(cls, **components) -> "MevShareClient":
        """
        Create a client from environment variables.

        Args:
            **components: Optional transport, event_source, chain_provider or signer

        Raises:
            ConfigError: If required environment variables are missing or invalid
        """
        config = ClientConfig.from_env()
        config.log_config()
        return cls(config, **components)

    async def __aenter__(self) -> "MevShareClient":
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.close()

    # Event API

    def on(self, kind: EventKind | str, listener: Listener) -> Callable[[], None]:
        """
        Register a listener for transaction or bundle events.

        Args:
            kind: EventKind or its value ("transaction" / "bundle")
            listener: Function or coroutine function receiving the event

        Returns:
            A function that removes the listener
        """
        unsubscribe = self.dispatcher.on(EventKind(kind), listener)
        self._start_if_possible()
        return unsubscribe

    def on_transaction(self, listener: Listener) -> Callable[[], None]:
        return self.on(EventKind.TRANSACTION, listener)

    def on_bundle(self, listener: Listener) -> Callable[[], None]:
        return self.on(EventKind.BUNDLE, listener)

    def on_error(self, listener: ErrorListener) -> None:
        """Register a listener for malformed frames and failing listeners."""
        self.dispatcher.on_error(listener)

    def _start_if_possible(self) -> None:
        if self.dispatcher.is_running or self.dispatcher.state is ConnectionState.CLOSED:
            return
        try:
            asyncio.get_running_loop()
        except RuntimeError:
            logger.debug("No running event loop; event stream will start on start()")
            return
        self.dispatcher.start()

    async def start(self) -> None:
        """Start the event stream if it is not already running."""
        self.dispatcher.start()

    # Bundle API

    async def send_bundle(self, params: BundleParams) -> SendBundleResult:
        """Submit a bundle to the Bundle API."""
        return await self.rpc.send_bundle(params)

    async def simulate_bundle(
        self,
        params: BundleParams,
        sim_options: SimOptions | None = None,
        landing_timeout: float | None = None
    ) -> SimulationResult:
        """
        Simulate a bundle, first waiting for any hash-only entries to land.

        Args:
            params: Bundle to simulate; may contain HashRef entries
            sim_options: Simulation overrides; unset fields are derived from
                the parent block
            landing_timeout: Seconds to wait for each hash-only entry
                (config.watcher.landing_timeout if None)

        Raises:
            MevShareTimeoutError: If a referenced transaction does not land in time
            ConfigError: If hash-only entries are present but no chain provider is configured
        """
        return await self.resolver.simulate_bundle(
            params, sim_options, landing_timeout=landing_timeout
        )

    async def send_private_transaction(
        self,
        signed_tx: str,
        options: PrivateTxOptions | None = None
    ) -> str:
        """Send a signed transaction privately; returns its hash."""
        return await self.rpc.send_private_transaction(signed_tx, options)

    # History

    async def get_event_history_info(self) -> HistoryInfo:
        return await self.history.get_event_history_info()

    async def get_event_history(self, params: HistoryParams | None = None) -> HistoryPage:
        return await self.history.get_event_history(params)

    # Lifecycle

    async def close(self) -> None:
        """Stop the event stream, cancel watchers and close owned connections."""
        logger.info("Shutting down MevShareClient...")
        await self.dispatcher.stop()
        if self.watcher is not None:
            await self.watcher.cancel_all()
        for component in self._owned:
            await component.aclose()
        self._owned.clear()
        logger.info("MevShareClient shutdown complete")
