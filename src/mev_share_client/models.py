#!/usr/bin/env python3
"""Data models for the MEV-Share client.

This module provides immutable data classes for stream events, bundle
parameters, simulation options and history records. Models that travel over
the wire carry a `to_dict` (request side) or `from_dict` (response side)
method producing or consuming the API's camelCase JSON shape.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, ClassVar

from web3 import Web3


def parse_quantity(value: Any) -> int | None:
    """Parse a JSON-RPC quantity (hex string or integer) into an int.

    Args:
        value: Hex string such as "0x1a", decimal string, int, or None

    Returns:
        Integer value, or None if value is None
    """
    if value is None:
        return None
    if isinstance(value, bool):
        raise ValueError(f"Boolean is not a quantity: {value}")
    if isinstance(value, int):
        return value
    if isinstance(value, str):
        if value.startswith(("0x", "0X")):
            return int(value, 16) if len(value) > 2 else 0
        return int(value)
    raise ValueError(f"Unsupported quantity type: {type(value).__name__}")


def to_quantity(value: int) -> str:
    """Encode an integer as a 0x-prefixed hex quantity."""
    return Web3.to_hex(value)


class EventKind(Enum):
    """Closed set of stream event kinds listeners can register for."""
    TRANSACTION = "transaction"
    BUNDLE = "bundle"


@dataclass(frozen=True, slots=True)
class EventLog:
    """A log entry revealed in an event hint."""
    address: str
    topics: tuple[str, ...]
    data: str | None = None


@dataclass(frozen=True, slots=True)
class TxDescriptor:
    """A constituent transaction hint inside a bundle event.

    Attributes:
        to: Recipient address, if revealed
        function_selector: 4-byte selector, if revealed
        call_data: Full calldata, if revealed
    """
    to: str | None = None
    function_selector: str | None = None
    call_data: str | None = None


@dataclass(frozen=True, slots=True)
class TransactionEvent:
    """A pending transaction hint (the event's `txs` field was null)."""
    hash: str
    logs: tuple[EventLog, ...] | None = None
    mev_gas_price: int | None = None
    gas_used: int | None = None

    @property
    def kind(self) -> EventKind:
        return EventKind.TRANSACTION


@dataclass(frozen=True, slots=True)
class BundleEvent:
    """A pending bundle hint (the event's `txs` field was non-null)."""
    hash: str
    txs: tuple[TxDescriptor, ...]
    logs: tuple[EventLog, ...] | None = None
    mev_gas_price: int | None = None
    gas_used: int | None = None

    @property
    def kind(self) -> EventKind:
        return EventKind.BUNDLE


Event = TransactionEvent | BundleEvent


@dataclass(frozen=True, slots=True)
class LiteralTx:
    """A bundle body entry carrying a signed, serialized transaction."""
    tx: str
    can_revert: bool = False

    def to_dict(self) -> dict[str, Any]:
        return {"tx": self.tx, "canRevert": self.can_revert}


@dataclass(frozen=True, slots=True)
class HashRef:
    """A bundle body entry referencing a transaction by hash only."""
    hash: str

    def to_dict(self) -> dict[str, Any]:
        return {"hash": self.hash}


BundleBodyEntry = LiteralTx | HashRef


@dataclass(frozen=True, slots=True)
class HintPreferences:
    """Which parts of a transaction or bundle to reveal to searchers."""
    calldata: bool = False
    contract_address: bool = False
    function_selector: bool = False
    logs: bool = False
    default_logs: bool = False
    tx_hash: bool = False
    full: bool = False

    def to_list(self) -> list[str]:
        """Encode enabled hints as wire names; "hash" is always revealed."""
        hints = [
            name for name in (
                "calldata",
                "contract_address",
                "function_selector",
                "logs",
                "default_logs",
                "tx_hash",
                "full",
            )
            if getattr(self, name)
        ]
        hints.append("hash")
        return hints


@dataclass(frozen=True, slots=True)
class Inclusion:
    """Block range in which a bundle is valid."""
    block: int
    max_block: int | None = None

    def __post_init__(self) -> None:
        if self.block < 0:
            raise ValueError(f"Inclusion block must be non-negative, got {self.block}")
        if self.max_block is not None and self.max_block < self.block:
            raise ValueError(
                f"max_block ({self.max_block}) must not precede block ({self.block})"
            )

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {"block": to_quantity(self.block)}
        if self.max_block is not None:
            data["maxBlock"] = to_quantity(self.max_block)
        return data


@dataclass(frozen=True, slots=True)
class Refund:
    """Share of a body entry's MEV refunded to its sender."""
    body_idx: int
    percent: int


@dataclass(frozen=True, slots=True)
class RefundConfig:
    """Share of the refund paid to a specific address."""
    address: str
    percent: int


@dataclass(frozen=True, slots=True)
class Validity:
    """Refund requirements the bundle must satisfy."""
    refund: tuple[Refund, ...] = ()
    refund_config: tuple[RefundConfig, ...] = ()

    def to_dict(self) -> dict[str, Any]:
        return {
            "refund": [{"bodyIdx": r.body_idx, "percent": r.percent} for r in self.refund],
            "refundConfig": [
                {"address": r.address, "percent": r.percent} for r in self.refund_config
            ],
        }


@dataclass(frozen=True, slots=True)
class Privacy:
    """Hint and builder preferences for a bundle."""
    hints: HintPreferences | None = None
    builders: tuple[str, ...] | None = None

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {}
        if self.hints is not None:
            data["hints"] = self.hints.to_list()
        if self.builders is not None:
            data["builders"] = list(self.builders)
        return data


@dataclass(frozen=True, slots=True)
class BundleParams:
    """Parameters of an mev_sendBundle / mev_simBundle request (schema v0.1).

    Attributes:
        body: Ordered body entries; order is preserved end-to-end
        inclusion: Block constraints
        validity: Optional refund requirements
        privacy: Optional hint and builder preferences
        origin_id: Optional metadata identifying the sender
    """

    body: tuple[BundleBodyEntry, ...]
    inclusion: Inclusion
    validity: Validity | None = None
    privacy: Privacy | None = None
    origin_id: str | None = None

    VERSION: ClassVar[str] = "v0.1"

    def __post_init__(self) -> None:
        if not isinstance(self.body, tuple):
            object.__setattr__(self, "body", tuple(self.body))

    @property
    def hash_refs(self) -> list[tuple[int, HashRef]]:
        """Body positions holding hash-only entries."""
        return [(i, e) for i, e in enumerate(self.body) if isinstance(e, HashRef)]

    def with_body(self, body: tuple[BundleBodyEntry, ...]) -> "BundleParams":
        """Create a copy of these parameters with a different body."""
        return BundleParams(
            body=body,
            inclusion=self.inclusion,
            validity=self.validity,
            privacy=self.privacy,
            origin_id=self.origin_id,
        )

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {
            "version": self.VERSION,
            "inclusion": self.inclusion.to_dict(),
            "body": [entry.to_dict() for entry in self.body],
        }
        if self.validity is not None:
            data["validity"] = self.validity.to_dict()
        if self.privacy is not None:
            data["privacy"] = self.privacy.to_dict()
        if self.origin_id is not None:
            data["metadata"] = {"originId": self.origin_id}
        return data


@dataclass(frozen=True, slots=True)
class SimOptions:
    """Overrides for mev_simBundle.

    Unset fields are derived from the parent block header: block_number is
    parent + 1, coinbase, gas_limit and base_fee are inherited, timestamp is
    parent + 12, and timeout defaults to 5 seconds.
    """

    parent_block: int | str | None = None
    block_number: int | None = None
    coinbase: str | None = None
    timestamp: int | None = None
    gas_limit: int | None = None
    base_fee: int | None = None
    timeout: int = 5

    def __post_init__(self) -> None:
        if self.timeout <= 0:
            raise ValueError(f"Simulation timeout must be positive, got {self.timeout}")

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {"timeout": self.timeout}
        match self.parent_block:
            case None:
                pass
            case int() as number:
                data["parentBlock"] = to_quantity(number)
            case str() as block_hash:
                data["parentBlock"] = block_hash
        if self.block_number is not None:
            data["blockNumber"] = to_quantity(self.block_number)
        if self.coinbase is not None:
            data["coinbase"] = self.coinbase
        if self.timestamp is not None:
            data["timestamp"] = to_quantity(self.timestamp)
        if self.gas_limit is not None:
            data["gasLimit"] = to_quantity(self.gas_limit)
        if self.base_fee is not None:
            data["baseFee"] = to_quantity(self.base_fee)
        return data


@dataclass(frozen=True, slots=True)
class SimulationResult:
    """Outcome of mev_simBundle."""
    success: bool
    state_block: int
    mev_gas_price: int
    profit: int
    refundable_value: int
    gas_used: int
    error: str | None = None
    logs: list[Any] | None = None

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "SimulationResult":
        return cls(
            success=bool(data["success"]),
            error=data.get("error"),
            state_block=parse_quantity(data.get("stateBlock")) or 0,
            mev_gas_price=parse_quantity(data.get("mevGasPrice")) or 0,
            profit=parse_quantity(data.get("profit")) or 0,
            refundable_value=parse_quantity(data.get("refundableValue")) or 0,
            gas_used=parse_quantity(data.get("gasUsed")) or 0,
            logs=data.get("logs"),
        )


@dataclass(frozen=True, slots=True)
class SendBundleResult:
    """Response of mev_sendBundle."""
    bundle_hash: str


@dataclass(frozen=True, slots=True)
class PrivateTxOptions:
    """Options for eth_sendPrivateTransaction."""
    hints: HintPreferences | None = None
    max_block_number: int | None = None
    builders: tuple[str, ...] | None = None


@dataclass(frozen=True, slots=True)
class HistoryParams:
    """Query parameters for the event history endpoint."""
    block_start: int | None = None
    block_end: int | None = None
    timestamp_start: int | None = None
    timestamp_end: int | None = None
    limit: int | None = None
    offset: int | None = None

    def __post_init__(self) -> None:
        if self.limit is not None and self.limit < 0:
            raise ValueError(f"History limit must be non-negative, got {self.limit}")
        if self.offset is not None and self.offset < 0:
            raise ValueError(f"History offset must be non-negative, got {self.offset}")

    def to_query(self) -> dict[str, str]:
        """Encode set fields as camelCase query parameters."""
        names = {
            "block_start": "blockStart",
            "block_end": "blockEnd",
            "timestamp_start": "timestampStart",
            "timestamp_end": "timestampEnd",
            "limit": "limit",
            "offset": "offset",
        }
        return {
            wire: str(value)
            for attr, wire in names.items()
            if (value := getattr(self, attr)) is not None
        }


@dataclass(frozen=True, slots=True)
class HistoryInfo:
    """Summary of the available event history."""
    count: int
    min_block: int
    max_block: int
    min_timestamp: int
    max_timestamp: int
    max_limit: int

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "HistoryInfo":
        return cls(
            count=int(data["count"]),
            min_block=int(data["minBlock"]),
            max_block=int(data["maxBlock"]),
            min_timestamp=int(data["minTimestamp"]),
            max_timestamp=int(data["maxTimestamp"]),
            max_limit=int(data["maxLimit"]),
        )


@dataclass(frozen=True, slots=True)
class EventHistoryEntry:
    """A historical hint with the block it was observed in."""
    block: int
    timestamp: int
    hint: Event


@dataclass(slots=True)
class HistoryPage:
    """One page of event history results."""
    entries: list[EventHistoryEntry] = field(default_factory=list)
    params: HistoryParams | None = None

    def __len__(self) -> int:
        return len(self.entries)

    def __iter__(self):
        return iter(self.entries)


@dataclass(frozen=True, slots=True)
class LandedTransaction:
    """A transaction observed on-chain together with its signed serialization."""
    hash: str
    block_number: int
    raw_transaction: str
