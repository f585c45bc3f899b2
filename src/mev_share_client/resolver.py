#!/usr/bin/env python3
"""Bundle simulation resolver.

mev_simBundle rejects bundles whose body still references transactions by
hash only, since simulating them would reveal what the sender chose to hide.
Once such a transaction has landed its content is public, so the resolver
waits for every hash-only entry to land, substitutes the signed transaction,
and only then simulates.
"""

import asyncio
import dataclasses
import logging
from dataclasses import dataclass

from .errors import ConfigError
from .models import (
    BundleBodyEntry,
    BundleParams,
    LandedTransaction,
    LiteralTx,
    SimOptions,
    SimulationResult,
    parse_quantity,
)
from .rpc import JsonRpcClient
from .utils.chain_utility import ChainStateProvider
from .watcher import TransactionWatcher

logger = logging.getLogger(__name__)

SLOT_SECONDS = 12


@dataclass(frozen=True, slots=True)
class ResolvedBundle:
    """Bundle parameters with every hash-only entry replaced.

    Attributes:
        params: Rewritten parameters; body order matches the input
        landed: Landed transactions in body order of the entries they replaced
    """
    params: BundleParams
    landed: tuple[LandedTransaction, ...] = ()


class BundleResolver:
    """Rewrites hash-only bundle entries and simulates the result."""

    def __init__(
        self,
        rpc: JsonRpcClient,
        watcher: TransactionWatcher | None = None,
        provider: ChainStateProvider | None = None
    ) -> None:
        """
        Initialize the resolver.

        Args:
            rpc: Client used for the final mev_simBundle call
            watcher: Landing watcher (needed only for hash-only entries)
            provider: Chain state used to derive simulation defaults
                (defaults to the watcher's provider)
        """
        self.rpc = rpc
        self.watcher = watcher
        self.provider = provider or (watcher.provider if watcher else None)

    async def resolve(
        self,
        params: BundleParams,
        poll_interval: float | None = None,
        timeout: float | None = None
    ) -> ResolvedBundle:
        """
        Replace every hash-only entry with its landed, signed transaction.

        Entries are awaited concurrently; literal entries pass through
        unchanged and the body keeps its original order. If any hash fails
        to land the remaining waits are cancelled and nothing is returned.

        Raises:
            ConfigError: If the bundle has hash-only entries but no watcher is configured
            MevShareTimeoutError: If any referenced transaction does not land in time
        """
        refs = params.hash_refs
        if not refs:
            return ResolvedBundle(params=params)
        if self.watcher is None:
            raise ConfigError(
                "Simulating hash-only bundle entries requires a chain RPC provider (CHAIN_RPC_URL)"
            )

        logger.info(f"Resolving {len(refs)} hash-only bundle entr{'y' if len(refs) == 1 else 'ies'}")
        tasks = [
            asyncio.ensure_future(self.watcher.await_landing(ref.hash, poll_interval, timeout))
            for _, ref in refs
        ]
        try:
            landed: list[LandedTransaction] = await asyncio.gather(*tasks)
        except BaseException:
            for task in tasks:
                task.cancel()
            await asyncio.gather(*tasks, return_exceptions=True)
            raise

        body: list[BundleBodyEntry] = list(params.body)
        for (index, _), tx in zip(refs, landed):
            body[index] = LiteralTx(tx=tx.raw_transaction, can_revert=False)

        return ResolvedBundle(params=params.with_body(tuple(body)), landed=tuple(landed))

    async def derive_sim_options(
        self,
        sim_options: SimOptions,
        landed: tuple[LandedTransaction, ...] = ()
    ) -> SimOptions:
        """
        Fill unset simulation options from the parent block header.

        The parent block defaults to the block before the earliest landed
        transaction, so the simulation runs on state that does not yet include
        any of them. Without a parent block or provider the options are
        returned unchanged and the API applies the same defaults itself.
        """
        parent = sim_options.parent_block
        if parent is None and landed:
            parent = min(tx.block_number for tx in landed) - 1
        if parent is None or self.provider is None:
            return sim_options

        header = await self.provider.get_block(parent)
        parent_number = parse_quantity(header["number"])
        parent_timestamp = parse_quantity(header["timestamp"])

        return dataclasses.replace(
            sim_options,
            parent_block=parent,
            block_number=_first_set(sim_options.block_number, parent_number + 1),
            coinbase=_first_set(sim_options.coinbase, header.get("miner")),
            timestamp=_first_set(sim_options.timestamp, parent_timestamp + SLOT_SECONDS),
            gas_limit=_first_set(sim_options.gas_limit, parse_quantity(header.get("gasLimit"))),
            base_fee=_first_set(sim_options.base_fee, parse_quantity(header.get("baseFeePerGas"))),
        )

    async def simulate_bundle(
        self,
        params: BundleParams,
        sim_options: SimOptions | None = None,
        poll_interval: float | None = None,
        landing_timeout: float | None = None
    ) -> SimulationResult:
        """
        Resolve hash-only entries, then simulate via mev_simBundle.

        Raises:
            MevShareTimeoutError: If a referenced transaction never lands; no
                simulation request is sent in that case
        """
        resolved = await self.resolve(params, poll_interval, landing_timeout)
        options = await self.derive_sim_options(sim_options or SimOptions(), resolved.landed)
        logger.info(
            f"Simulating bundle with {len(resolved.params.body)} entries "
            f"(parent block {options.parent_block if options.parent_block is not None else 'latest'})"
        )
        return await self.rpc.sim_bundle(resolved.params, options)


def _first_set(value, fallback):
    return value if value is not None else fallback
