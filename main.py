#!/usr/bin/env python3
"""Entry point for the MEV-Share hint listener.

Connects to the configured MEV-Share event stream and logs every pending
transaction and bundle hint until interrupted.
"""

import argparse
import asyncio
import logging
import os
import sys

from dotenv import load_dotenv


# Configure logging before any other imports create loggers
def setup_logging(level: str = "INFO") -> None:
    """Configure logging for the application.

    Args:
        level: Logging level as string (DEBUG, INFO, WARNING, ERROR, CRITICAL)
    """
    log_level: int = getattr(logging, level.upper(), logging.INFO)
    logging.basicConfig(
        level=log_level,
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
    )

# Get logger for this module
logger = logging.getLogger(__name__)

from mev_share_client import ConfigError, MevShareClient
from mev_share_client.config import SUPPORTED_NETWORKS
from mev_share_client.models import BundleEvent, Event, TransactionEvent


async def log_transaction(event: TransactionEvent) -> None:
    logger.info(
        f"Transaction {event.hash} "
        f"logs={len(event.logs) if event.logs is not None else '-'} "
        f"mevGasPrice={event.mev_gas_price} gasUsed={event.gas_used}"
    )


async def log_bundle(event: BundleEvent) -> None:
    selectors = [tx.function_selector for tx in event.txs if tx.function_selector]
    logger.info(f"Bundle {event.hash} txs={len(event.txs)} selectors={selectors}")


def log_error(error: Exception, event: Event | None) -> None:
    logger.error(f"Stream error{f' on {event.hash}' if event else ''}: {error}")


async def main() -> None:
    """Main entry point for the hint listener.

    Parses startup arguments, loads configuration from the environment and
    streams events until interrupted.

    Raises:
        SystemExit: On configuration or runtime errors
    """
    parser: argparse.ArgumentParser = argparse.ArgumentParser(
        description="MEV-Share hint listener - Log pending transaction and bundle hints",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""Environment Variables:
  MEV_SHARE_PRIVATE_KEY  - Searcher identity key used to sign API requests
  NETWORK                - Network preset (default: mainnet)
  MEV_SHARE_STREAM_URL   - Override the event stream URL
  MEV_SHARE_API_URL      - Override the Bundle API URL
  CHAIN_RPC_URL          - Ethereum RPC used to watch for landed transactions
  LOG_LEVEL              - Logging level (can be overridden with --log-level)
        """
    )
    parser.add_argument(
        "--network",
        choices=sorted(SUPPORTED_NETWORKS),
        help="Network preset (overrides NETWORK)"
    )
    parser.add_argument(
        "--log-level",
        default=os.environ.get("LOG_LEVEL", "INFO"),
        choices=["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"],
        help="Set the logging level (default: INFO)"
    )
    args: argparse.Namespace = parser.parse_args()

    setup_logging(args.log_level)
    if args.network:
        os.environ["NETWORK"] = args.network

    logger.info("=== MEV-Share Hint Listener Starting ===")

    try:
        async with MevShareClient.from_env() as client:
            client.on_error(log_error)
            client.on_transaction(log_transaction)
            client.on_bundle(log_bundle)
            await client.start()

            # Run until cancelled
            await asyncio.Event().wait()

    except ConfigError as e:
        logger.error(f"Configuration Error: {e}")
        logger.error("Please check your environment variables:")
        logger.error("  - MEV_SHARE_PRIVATE_KEY: 64 hex character signer key")
        logger.error(f"  - NETWORK: one of {', '.join(sorted(SUPPORTED_NETWORKS))}")
        sys.exit(1)

    except Exception as e:
        logger.error(f"Fatal Error: {e}", exc_info=True)
        sys.exit(1)


if __name__ == "__main__":
    load_dotenv()
    try:
        asyncio.run(main())
    except KeyboardInterrupt:
        logger.info("Received interrupt signal, shutting down...")
