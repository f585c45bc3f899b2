#!/usr/bin/env python3
"""JSON-RPC codec and signed Bundle API client.

The codec owns the JSON envelope format; the client signs each serialized
envelope, hands it to an RpcTransport and maps results to typed models.
"""

import itertools
import json
import logging
from typing import Any

from .errors import RpcError, SerializationError, TransportError
from .models import (
    BundleParams,
    PrivateTxOptions,
    SendBundleResult,
    SimOptions,
    SimulationResult,
    to_quantity,
)
from .signing import RequestSigner
from .transport import RpcTransport

logger = logging.getLogger(__name__)


class JsonRpcCodec:
    """Encodes JSON-RPC 2.0 requests and decodes their responses."""

    VERSION = "2.0"

    def __init__(self) -> None:
        self._ids = itertools.count(1)

    def encode(self, method: str, params: list[Any]) -> bytes:
        """
        Serialize a request envelope.

        Raises:
            SerializationError: If params are not JSON-serializable
        """
        envelope = {
            "jsonrpc": self.VERSION,
            "id": next(self._ids),
            "method": method,
            "params": params,
        }
        try:
            return json.dumps(envelope, separators=(",", ":")).encode()
        except (TypeError, ValueError) as e:
            raise SerializationError(f"Cannot encode {method} request: {e}") from e

    def decode(self, body: bytes) -> Any:
        """
        Extract the result from a response envelope.

        Raises:
            RpcError: If the response carries an error object
            SerializationError: If the body is not a valid response envelope
        """
        try:
            data = json.loads(body)
        except (json.JSONDecodeError, UnicodeDecodeError) as e:
            raise SerializationError(f"Response is not valid JSON: {e}") from e

        match data:
            case {"error": {"code": code, "message": message, **rest}}:
                raise RpcError(code, message, rest.get("data"))
            case {"error": error} if error is not None:
                raise RpcError(-32603, str(error))
            case {"result": result}:
                return result
            case _:
                raise SerializationError(f"Response has neither result nor error: {data!r}")


def encode_private_tx(signed_tx: str, options: PrivateTxOptions | None = None) -> dict[str, Any]:
    """Build the eth_sendPrivateTransaction parameter object."""
    options = options or PrivateTxOptions()
    privacy: dict[str, Any] = {}
    if options.hints is not None:
        privacy["hints"] = options.hints.to_list()
    if options.builders is not None:
        privacy["builders"] = list(options.builders)

    params: dict[str, Any] = {
        "tx": signed_tx,
        "preferences": {"fast": True, "privacy": privacy},
    }
    if options.max_block_number is not None:
        params["maxBlockNumber"] = to_quantity(options.max_block_number)
    return params


class JsonRpcClient:
    """
    Signed JSON-RPC client for the Bundle API.

    Every request body is signed and the signature sent in the signer's
    header. Safe for concurrent use if the transport is.
    """

    def __init__(
        self,
        api_url: str,
        transport: RpcTransport,
        signer: RequestSigner,
        codec: JsonRpcCodec | None = None
    ) -> None:
        """
        Initialize the client.

        Args:
            api_url: Bundle API endpoint
            transport: Transport used to deliver requests
            signer: Produces the authentication header for each body
            codec: Envelope codec (a fresh JsonRpcCodec by default)
        """
        self.api_url = api_url
        self.transport = transport
        self.signer = signer
        self.codec = codec or JsonRpcCodec()

    async def call(self, method: str, params: list[Any]) -> Any:
        """
        Sign and send a request, returning the decoded result.

        Raises:
            TransportError: On network failure or HTTP error without an RPC error body
            RpcError: If the API rejects the request
            SerializationError: On malformed request or response payloads
        """
        body = self.codec.encode(method, params)
        headers = {self.signer.header_name: self.signer.sign(body)}
        logger.debug(f"Calling {method} on {self.api_url}")

        try:
            response = await self.transport.send(self.api_url, body, headers)
        except TransportError as e:
            # Rejections often arrive with a 4xx status and a JSON-RPC error body
            if e.body:
                try:
                    self.codec.decode(e.body)
                except RpcError as rpc_error:
                    raise rpc_error from e
                except SerializationError:
                    pass
            raise

        return self.codec.decode(response)

    async def send_bundle(self, params: BundleParams) -> SendBundleResult:
        """Submit a bundle via mev_sendBundle."""
        result = await self.call("mev_sendBundle", [params.to_dict()])
        try:
            return SendBundleResult(bundle_hash=result["bundleHash"])
        except (KeyError, TypeError) as e:
            raise SerializationError(f"Unexpected mev_sendBundle result: {result!r}") from e

    async def sim_bundle(
        self,
        params: BundleParams,
        sim_options: SimOptions | None = None
    ) -> SimulationResult:
        """
        Simulate a fully matched bundle via mev_simBundle.

        Raises:
            SerializationError: If the body still contains hash-only entries
        """
        if params.hash_refs:
            raise SerializationError(
                "Cannot simulate a bundle with hash-only entries; resolve it first"
            )
        sim_options = sim_options or SimOptions()
        result = await self.call("mev_simBundle", [params.to_dict(), sim_options.to_dict()])
        try:
            return SimulationResult.from_dict(result)
        except (KeyError, TypeError, ValueError) as e:
            raise SerializationError(f"Unexpected mev_simBundle result: {result!r}") from e

    async def send_private_transaction(
        self,
        signed_tx: str,
        options: PrivateTxOptions | None = None
    ) -> str:
        """Send a signed transaction via eth_sendPrivateTransaction; returns its hash."""
        result = await self.call("eth_sendPrivateTransaction", [encode_private_tx(signed_tx, options)])
        if not isinstance(result, str):
            raise SerializationError(f"Unexpected eth_sendPrivateTransaction result: {result!r}")
        return result
