"""
MEV-Share client package.

Signed access to the Flashbots Bundle API, the MEV-Share event stream and
its history endpoints.
"""

from .client import MevShareClient
from .config import ClientConfig, StreamConfig, WatcherConfig
from .errors import (
    ConfigError,
    MevShareError,
    MevShareTimeoutError,
    RpcError,
    SerializationError,
    StreamError,
    TransportError,
)
from .models import (
    BundleEvent,
    BundleParams,
    EventKind,
    HashRef,
    HintPreferences,
    HistoryParams,
    Inclusion,
    LiteralTx,
    PrivateTxOptions,
    SimOptions,
    SimulationResult,
    TransactionEvent,
)
from .signing import FlashbotsSigner, sign_payload

__all__ = [
    "MevShareClient",
    "ClientConfig",
    "StreamConfig",
    "WatcherConfig",
    "MevShareError",
    "ConfigError",
    "TransportError",
    "RpcError",
    "SerializationError",
    "MevShareTimeoutError",
    "StreamError",
    "EventKind",
    "TransactionEvent",
    "BundleEvent",
    "BundleParams",
    "Inclusion",
    "LiteralTx",
    "HashRef",
    "HintPreferences",
    "HistoryParams",
    "PrivateTxOptions",
    "SimOptions",
    "SimulationResult",
    "FlashbotsSigner",
    "sign_payload",
]
__version__ = "0.1.0"
