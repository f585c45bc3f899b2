#!/usr/bin/env python3
"""Transaction landing watcher.

Polls a chain-state provider until a transaction hash shows up in a mined
block, then fetches its signed serialization. Each wait is bounded by a
timeout and every in-flight wait can be cancelled from the owner.
"""

import asyncio
import logging
from typing import Any

from web3 import Web3

from .config import WatcherConfig
from .errors import MevShareTimeoutError, TransportError
from .models import LandedTransaction, parse_quantity
from .utils.chain_utility import ChainStateProvider


class TransactionWatcher:
    """
    Waits for transactions to land on-chain.

    Watches for distinct hashes are independent and may run concurrently.
    """

    def __init__(
        self,
        provider: ChainStateProvider,
        config: WatcherConfig | None = None
    ) -> None:
        """
        Initialize the watcher.

        Args:
            provider: Source of receipts and raw transactions
            config: Default poll interval and landing timeout
        """
        self.provider = provider
        self.config = config or WatcherConfig()
        self._inflight: set[asyncio.Task] = set()
        self.polls = 0

        self.logger = logging.getLogger(f"{__name__}.{self.__class__.__name__}")

    @property
    def inflight(self) -> int:
        """Number of waits currently in progress."""
        return len(self._inflight)

    async def await_landing(
        self,
        tx_hash: str,
        poll_interval: float | None = None,
        timeout: float | None = None
    ) -> LandedTransaction:
        """
        Wait until a transaction is mined and return its signed serialization.

        Args:
            tx_hash: Hash of the transaction to watch
            poll_interval: Seconds between receipt lookups (config default if None)
            timeout: Seconds before giving up (config default if None)

        Returns:
            The landed transaction

        Raises:
            MevShareTimeoutError: If the transaction does not land in time
            asyncio.CancelledError: If the wait is cancelled via cancel_all()
        """
        interval = poll_interval if poll_interval is not None else self.config.poll_interval
        limit = timeout if timeout is not None else self.config.landing_timeout

        task = asyncio.ensure_future(self._wait(tx_hash, interval, limit))
        self._inflight.add(task)
        task.add_done_callback(self._inflight.discard)
        return await task

    async def _wait(self, tx_hash: str, interval: float, limit: float) -> LandedTransaction:
        self.logger.info(f"Waiting for {tx_hash} to land (timeout {limit}s)")
        try:
            return await asyncio.wait_for(self._poll(tx_hash, interval), limit)
        except asyncio.TimeoutError:
            self.logger.warning(f"Transaction {tx_hash} did not land within {limit}s")
            raise MevShareTimeoutError(
                f"Transaction {tx_hash} did not land within {limit} seconds"
            ) from None

    async def _poll(self, tx_hash: str, interval: float) -> LandedTransaction:
        while True:
            self.polls += 1
            try:
                receipt = await self.provider.get_transaction_receipt(tx_hash)
            except TransportError as e:
                # Keep polling; the timeout bounds how long transient failures can last
                self.logger.warning(f"Receipt lookup for {tx_hash} failed: {e}")
                receipt = None

            if (block_number := _block_number(receipt)) is not None:
                raw = await self.provider.get_raw_transaction(tx_hash)
                self.logger.info(f"Transaction {tx_hash} landed in block {block_number}")
                return LandedTransaction(
                    hash=tx_hash,
                    block_number=block_number,
                    raw_transaction=raw if isinstance(raw, str) else Web3.to_hex(raw),
                )

            await asyncio.sleep(interval)

    async def cancel_all(self) -> None:
        """Cancel every in-flight wait and wait for the cancellations to finish."""
        tasks = list(self._inflight)
        for task in tasks:
            task.cancel()
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)
            self.logger.info(f"Cancelled {len(tasks)} landing watcher(s)")


def _block_number(receipt: Any) -> int | None:
    if not receipt:
        return None
    return parse_quantity(receipt.get("blockNumber"))
