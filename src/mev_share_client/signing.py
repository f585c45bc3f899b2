#!/usr/bin/env python3
"""Request signing for the Flashbots Bundle API.

Every POST to the Bundle API carries an `X-Flashbots-Signature` header of the
form `{address}:{signature}`. The signature is an EIP-191 personal-message
signature over the 0x-prefixed hex keccak256 digest of the exact request body.
"""

import logging
from typing import Protocol

from eth_account import Account
from eth_account.messages import encode_defunct
from eth_account.signers.local import LocalAccount
from web3 import Web3

from .errors import ConfigError

logger = logging.getLogger(__name__)

SIGNATURE_HEADER = "X-Flashbots-Signature"


class RequestSigner(Protocol):
    """Anything able to turn a serialized request body into a header value."""

    header_name: str

    def sign(self, payload: bytes) -> str:
        ...


def _load_account(private_key: str) -> LocalAccount:
    try:
        return Account.from_key(private_key)
    except (ValueError, TypeError) as e:
        raise ConfigError(f"Malformed signer private key: {e}") from e


def payload_digest(payload: bytes) -> str:
    """Return the 0x-prefixed keccak256 hex digest of a request body."""
    return Web3.to_hex(Web3.keccak(payload))


def sign_payload(payload: bytes, private_key: str) -> str:
    """Compute the Flashbots signature header value for a request body.

    Pure and deterministic: the same payload and key always produce the same
    header.

    Args:
        payload: Serialized request body exactly as sent on the wire
        private_key: Hex private key of the signer

    Returns:
        Header value `{checksum address}:{0x signature hex}`

    Raises:
        ConfigError: If the private key is malformed
    """
    return _sign_with_account(payload, _load_account(private_key))


def _sign_with_account(payload: bytes, account: LocalAccount) -> str:
    message = encode_defunct(text=payload_digest(payload))
    signed = account.sign_message(message)
    return f"{account.address}:{Web3.to_hex(signed.signature)}"


class FlashbotsSigner:
    """Signs request bodies with a fixed searcher identity key.

    The key is parsed once at construction, so a malformed key fails fast.
    """

    header_name = SIGNATURE_HEADER

    def __init__(self, private_key: str) -> None:
        """
        Initialize the signer.

        Args:
            private_key: Hex private key identifying the searcher

        Raises:
            ConfigError: If the private key is malformed
        """
        self._account = _load_account(private_key)
        logger.debug(f"Request signer initialized for {self._account.address}")

    @property
    def address(self) -> str:
        """Checksummed address of the signing identity."""
        return self._account.address

    def sign(self, payload: bytes) -> str:
        return _sign_with_account(payload, self._account)
