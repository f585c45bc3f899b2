#!/usr/bin/env python3
"""Configuration management for the MEV-Share client.

This module provides type-safe configuration dataclasses with validation.
Configuration is immutable after construction and can be built directly or
loaded from environment variables with defaults pointing at the production
Flashbots endpoints.
"""

import logging
import os
from dataclasses import dataclass, field
from typing import ClassVar
from urllib.parse import urlparse

from .errors import ConfigError

# Get logger for this module
logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class NetworkEndpoints:
    """Stream and API endpoints for a supported network."""
    stream_url: str
    api_url: str


SUPPORTED_NETWORKS: dict[str, NetworkEndpoints] = {
    "mainnet": NetworkEndpoints(
        stream_url="https://mev-share.flashbots.net",
        api_url="https://relay.flashbots.net",
    ),
    "sepolia": NetworkEndpoints(
        stream_url="https://mev-share-sepolia.flashbots.net",
        api_url="https://relay-sepolia.flashbots.net",
    ),
    "holesky": NetworkEndpoints(
        stream_url="https://mev-share-holesky.flashbots.net",
        api_url="https://relay-holesky.flashbots.net",
    ),
}


def _validate_url(url: str, name: str) -> None:
    parsed = urlparse(url)
    if parsed.scheme not in ("http", "https"):
        raise ConfigError(
            f"Invalid {name} scheme: {parsed.scheme or '(none)'}. Expected http or https"
        )
    if not parsed.netloc:
        raise ConfigError(f"Invalid {name}: {url}")


def _env_float(name: str, default: float) -> float:
    raw = os.environ.get(name)
    if raw is None or raw == "":
        return default
    try:
        return float(raw)
    except ValueError:
        raise ConfigError(f"{name} must be a number, got {raw!r}") from None


@dataclass(frozen=True, slots=True)
class StreamConfig:
    """Reconnect behaviour of the event stream."""
    reconnect_base_delay: float = 1.0  # seconds before the first retry
    reconnect_max_delay: float = 30.0  # cap on exponential backoff
    read_timeout: float | None = None  # None waits indefinitely between frames

    def __post_init__(self) -> None:
        if self.reconnect_base_delay <= 0:
            raise ConfigError(
                f"Reconnect base delay must be positive, got {self.reconnect_base_delay}"
            )
        if self.reconnect_max_delay < self.reconnect_base_delay:
            raise ConfigError(
                f"Reconnect max delay ({self.reconnect_max_delay}) must be at least "
                f"the base delay ({self.reconnect_base_delay})"
            )
        if self.reconnect_max_delay > 300:
            raise ConfigError(
                f"Reconnect max delay too long (max 300s), got {self.reconnect_max_delay}"
            )
        if self.read_timeout is not None and self.read_timeout <= 0:
            raise ConfigError(f"Read timeout must be positive, got {self.read_timeout}")

    def backoff(self, attempt: int) -> float:
        """Delay before reconnect attempt number `attempt` (starting at 1)."""
        return min(self.reconnect_base_delay * (2 ** (attempt - 1)), self.reconnect_max_delay)


@dataclass(frozen=True, slots=True)
class WatcherConfig:
    """Polling behaviour of the transaction landing watcher."""
    poll_interval: float = 1.0  # seconds between receipt lookups
    landing_timeout: float = 120.0  # seconds to wait for a hash to land

    def __post_init__(self) -> None:
        if self.poll_interval <= 0:
            raise ConfigError(f"Poll interval must be positive, got {self.poll_interval}")
        if self.landing_timeout <= 0:
            raise ConfigError(f"Landing timeout must be positive, got {self.landing_timeout}")
        if self.poll_interval > self.landing_timeout:
            raise ConfigError(
                f"Poll interval ({self.poll_interval}) exceeds landing timeout "
                f"({self.landing_timeout})"
            )


@dataclass(frozen=True, slots=True)
class ClientConfig:
    """Main configuration for the MEV-Share client.

    Attributes:
        private_key: Hex private key identifying the signer of API requests
            (optional when the client is given a custom signer)
        stream_url: Base URL of the Event API
        api_url: URL of the Bundle API
        network: Name of the network preset the URLs came from
        chain_rpc_url: Ethereum JSON-RPC endpoint used to watch for landed
            transactions (optional; required to simulate hash-only bundles)
        request_timeout: HTTP request timeout in seconds
        stream: Event stream reconnect settings
        watcher: Landing watcher settings
    """

    private_key: str | None = None
    stream_url: str = SUPPORTED_NETWORKS["mainnet"].stream_url
    api_url: str = SUPPORTED_NETWORKS["mainnet"].api_url
    network: str = "mainnet"
    chain_rpc_url: str | None = None
    request_timeout: float = 30.0
    stream: StreamConfig = field(default_factory=StreamConfig)
    watcher: WatcherConfig = field(default_factory=WatcherConfig)

    KEY_HEX_LENGTH: ClassVar[int] = 64

    def __post_init__(self) -> None:
        """Validate client configuration."""
        if self.private_key is not None:
            self._validate_private_key(self.private_key)

        if self.network not in SUPPORTED_NETWORKS:
            raise ConfigError(
                f"Unsupported network: {self.network}. "
                f"Supported networks: {', '.join(sorted(SUPPORTED_NETWORKS))}"
            )

        _validate_url(self.stream_url, "stream URL")
        _validate_url(self.api_url, "API URL")
        if self.chain_rpc_url is not None:
            _validate_url(self.chain_rpc_url, "chain RPC URL")

        if self.request_timeout <= 0:
            raise ConfigError(f"Request timeout must be positive, got {self.request_timeout}")
        if self.request_timeout > 120:
            raise ConfigError(
                f"Request timeout too long (max 120s), got {self.request_timeout}"
            )

    @classmethod
    def _validate_private_key(cls, private_key: str) -> None:
        if not private_key:
            raise ConfigError("Signer private key must not be empty (MEV_SHARE_PRIVATE_KEY)")

        key = private_key.removeprefix("0x")
        if len(key) != cls.KEY_HEX_LENGTH:
            raise ConfigError(
                f"Invalid private key length. Expected {cls.KEY_HEX_LENGTH} hex characters, "
                f"got {len(key)}"
            )
        try:
            int(key, 16)
        except ValueError:
            raise ConfigError("Invalid private key format. Must be hexadecimal") from None

    @classmethod
    def for_network(
        cls,
        private_key: str | None,
        network: str,
        **overrides,
    ) -> "ClientConfig":
        """Build a configuration from a network preset.

        Args:
            private_key: Signer private key (None when a custom signer is used)
            network: One of SUPPORTED_NETWORKS
            **overrides: Any other ClientConfig field, including explicit URLs

        Returns:
            ClientConfig pointing at the preset's endpoints unless overridden

        Raises:
            ConfigError: If the network is unknown or a value is invalid
        """
        if (endpoints := SUPPORTED_NETWORKS.get(network)) is None:
            raise ConfigError(
                f"Unsupported network: {network}. "
                f"Supported networks: {', '.join(sorted(SUPPORTED_NETWORKS))}"
            )
        overrides.setdefault("stream_url", endpoints.stream_url)
        overrides.setdefault("api_url", endpoints.api_url)
        return cls(private_key=private_key, network=network, **overrides)

    @classmethod
    def from_env(cls) -> "ClientConfig":
        """Load configuration from environment variables.

        Returns:
            ClientConfig instance with loaded values

        Raises:
            ConfigError: If required environment variables are missing or invalid
        """
        private_key = os.environ.get("MEV_SHARE_PRIVATE_KEY", "")
        if not private_key:
            raise ConfigError(
                "MEV_SHARE_PRIVATE_KEY environment variable is required. "
                "This key only identifies the searcher; it never holds funds."
            )

        stream = StreamConfig(
            reconnect_base_delay=_env_float("RECONNECT_BASE_DELAY", 1.0),
            reconnect_max_delay=_env_float("RECONNECT_MAX_DELAY", 30.0),
        )
        watcher = WatcherConfig(
            poll_interval=_env_float("POLL_INTERVAL", 1.0),
            landing_timeout=_env_float("LANDING_TIMEOUT", 120.0),
        )
        request_timeout = _env_float("REQUEST_TIMEOUT", 30.0)

        overrides: dict = {
            "chain_rpc_url": os.environ.get("CHAIN_RPC_URL") or None,
            "request_timeout": request_timeout,
            "stream": stream,
            "watcher": watcher,
        }
        if stream_url := os.environ.get("MEV_SHARE_STREAM_URL"):
            overrides["stream_url"] = stream_url
        if api_url := os.environ.get("MEV_SHARE_API_URL"):
            overrides["api_url"] = api_url

        return cls.for_network(
            private_key,
            os.environ.get("NETWORK", "mainnet"),
            **overrides,
        )

    def log_config(self) -> None:
        """Log the configuration in a readable format for debugging."""
        logger.info("=" * 60)
        logger.info("MEV-Share Client Configuration")
        logger.info("=" * 60)

        logger.info("Endpoints:")
        logger.info(f"  Network: {self.network}")
        logger.info(f"  Stream URL: {self.stream_url}")
        logger.info(f"  API URL: {self.api_url}")
        logger.info(f"  Chain RPC: {self.chain_rpc_url or '[NOT CONFIGURED]'}")

        logger.info("Stream Settings:")
        logger.info(f"  Reconnect Base Delay: {self.stream.reconnect_base_delay} seconds")
        logger.info(f"  Reconnect Max Delay: {self.stream.reconnect_max_delay} seconds")

        logger.info("Watcher Settings:")
        logger.info(f"  Poll Interval: {self.watcher.poll_interval} seconds")
        logger.info(f"  Landing Timeout: {self.watcher.landing_timeout} seconds")

        logger.info(f"Request Timeout: {self.request_timeout} seconds")
        logger.info(f"Signer Key: {'[CONFIGURED]' if self.private_key else '[NOT SET]'}")
        logger.info("=" * 60)
