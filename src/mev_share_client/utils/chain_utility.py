"""
Chain-state access for the landing watcher.

Wraps an Ethereum JSON-RPC endpoint behind the small surface the watcher and
simulation resolver need: receipts, raw signed transactions and block headers.
"""

import logging
from collections.abc import Mapping
from typing import Any, Protocol

from web3 import AsyncHTTPProvider, AsyncWeb3, Web3
from web3.exceptions import TransactionNotFound, Web3Exception

from ..errors import TransportError

logger = logging.getLogger(__name__)


class ChainStateProvider(Protocol):
    """Read-only view of chain state."""

    async def get_transaction_receipt(self, tx_hash: str) -> Mapping[str, Any] | None:
        ...

    async def get_raw_transaction(self, tx_hash: str) -> str:
        ...

    async def get_block(self, block_id: int | str) -> Mapping[str, Any]:
        ...


class Web3ChainProvider:
    """
    ChainStateProvider backed by web3's AsyncWeb3 over HTTP.

    Web3 and network failures are reported as TransportError.
    """

    def __init__(self, rpc_url: str, request_timeout: float = 30.0) -> None:
        """
        Initialize the provider.

        Args:
            rpc_url: HTTP(S) Ethereum JSON-RPC endpoint
            request_timeout: Per-request timeout in seconds
        """
        if not rpc_url:
            raise ValueError("RPC URL is required")

        self.rpc_url = rpc_url
        self.w3 = AsyncWeb3(AsyncHTTPProvider(rpc_url, request_kwargs={"timeout": request_timeout}))

    async def get_transaction_receipt(self, tx_hash: str) -> Mapping[str, Any] | None:
        """
        Fetch a transaction receipt.

        Returns:
            Receipt data, or None if the transaction has not been mined yet
        """
        try:
            receipt = await self.w3.eth.get_transaction_receipt(tx_hash)
        except TransactionNotFound:
            return None
        except (Web3Exception, OSError) as e:
            raise TransportError(f"Receipt lookup for {tx_hash} failed: {e}") from e
        return dict(receipt)

    async def get_raw_transaction(self, tx_hash: str) -> str:
        """Fetch the signed, serialized transaction as 0x-prefixed hex."""
        try:
            raw = await self.w3.eth.get_raw_transaction(tx_hash)
        except (Web3Exception, OSError) as e:
            raise TransportError(f"Raw transaction lookup for {tx_hash} failed: {e}") from e
        return Web3.to_hex(raw)

    async def get_block(self, block_id: int | str) -> Mapping[str, Any]:
        """Fetch a block header by number, hash or tag."""
        try:
            block = await self.w3.eth.get_block(block_id)
        except (Web3Exception, OSError) as e:
            raise TransportError(f"Block lookup for {block_id} failed: {e}") from e
        return dict(block)

    async def aclose(self) -> None:
        """Release the provider's HTTP session."""
        provider = self.w3.provider
        if hasattr(provider, "disconnect"):
            try:
                await provider.disconnect()
            except Exception as e:
                logger.warning(f"Error during chain provider cleanup: {e}")
