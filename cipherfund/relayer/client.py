# cipherfund/relayer/client.py
"""
CipherFund Relayer: Public Decryption Client

Turns an encrypted handle that a contract marked publicly decryptable into
its plaintext plus the KMS proof the contract verifies on submission.

    RelayerClient        - abstract interface
    HTTPRelayerClient    - talks to the relayer's public-decrypt endpoint
    MockRelayerClient    - decrypts against a MockChainClient

The relayer is a process-wide resource: install it once with init_relayer()
and fetch it with get_relayer().

Usage:
    init_relayer(HTTPRelayerClient("https://relayer.testnet.zama.cloud"))

    value = await get_relayer().public_decrypt(handle, contract_address)
    value.cleartext   # int
    value.proof       # bytes, passed to submit<Kind>Decryption
"""

from __future__ import annotations

import asyncio
import json
import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Optional, Dict, List, Any, TYPE_CHECKING

import aiohttp
from web3 import Web3

from ..errors import RelayerError, RelayerNotInitialized, DecryptionRejected

if TYPE_CHECKING:
    from ..chain.mock import MockChainClient


logger = logging.getLogger("cipherfund.relayer")


# =============================================================================
# Constants
# =============================================================================

PUBLIC_DECRYPT_PATH = "/v1/public-decrypt"
DEFAULT_EXTRA_DATA = b"\x00"


# =============================================================================
# Types
# =============================================================================

@dataclass(frozen=True)
class DecryptedValue:
    """Plaintext of a handle and the proof of correct decryption."""
    cleartext: int
    proof: bytes

    def __repr__(self) -> str:
        return f"DecryptedValue(cleartext={self.cleartext}, proof={len(self.proof)}B)"


def build_decryption_proof(signatures: List[bytes], extra_data: bytes = DEFAULT_EXTRA_DATA) -> bytes:
    """
    Pack KMS signatures into the proof layout the contracts verify:

        uint8(numSigners) || sig_0 || ... || sig_n || extraData
    """
    if len(signatures) > 255:
        raise ValueError("Too many signatures")
    return bytes([len(signatures)]) + b"".join(signatures) + extra_data


# =============================================================================
# HTTP Transport
# =============================================================================

class HTTPTransport(ABC):
    """Abstract HTTP transport for relayer calls."""

    @abstractmethod
    async def post(self, url: str, data: bytes, headers: Dict[str, str]) -> bytes:
        """Send POST request and return response body."""
        pass

    async def close(self) -> None:
        pass


class AiohttpTransport(HTTPTransport):
    """
    aiohttp transport with a lazily created, reusable session.

    No total timeout unless one is given; a slow decryption waits for the
    relayer to answer or fail.
    """

    def __init__(self, timeout: Optional[float] = None):
        self._timeout = aiohttp.ClientTimeout(total=timeout)
        self._session: Optional[aiohttp.ClientSession] = None

    async def post(self, url: str, data: bytes, headers: Dict[str, str]) -> bytes:
        if self._session is None or self._session.closed:
            self._session = aiohttp.ClientSession(timeout=self._timeout)
        try:
            async with self._session.post(url, data=data, headers=headers) as resp:
                body = await resp.read()
                if resp.status >= 400:
                    raise RelayerError(
                        f"Relayer returned HTTP {resp.status}: {body[:200].decode(errors='replace')}"
                    )
                return body
        except asyncio.TimeoutError:
            raise RelayerError("Decryption timeout")
        except aiohttp.ClientError as e:
            raise RelayerError(f"Relayer request failed: {e}")

    async def close(self) -> None:
        if self._session is not None and not self._session.closed:
            await self._session.close()


class MockHTTPTransport(HTTPTransport):
    """Mock HTTP transport for testing."""

    def __init__(self):
        self.requests: List[Dict] = []
        self._response_queue: List[bytes] = []

    def queue_response(self, response: Any) -> None:
        """Queue a response (dict is JSON-encoded)."""
        if isinstance(response, (dict, list)):
            response = json.dumps(response).encode()
        self._response_queue.append(response)

    async def post(self, url: str, data: bytes, headers: Dict[str, str]) -> bytes:
        self.requests.append({
            "url": url,
            "data": data,
            "headers": headers,
        })
        if not self._response_queue:
            raise RelayerError("No response queued")
        return self._response_queue.pop(0)


# =============================================================================
# Relayer Clients
# =============================================================================

class RelayerClient(ABC):
    """Public decryption service."""

    @abstractmethod
    async def public_decrypt(self, handle: str, owner_contract: str) -> DecryptedValue:
        """
        Decrypt a publicly decryptable handle.

        Args:
            handle: bytes32 handle as 0x-hex
            owner_contract: Contract that owns the ciphertext

        Raises:
            DecryptionRejected: No cleartext or no proof in the result
            RelayerError: Transport failure
        """
        pass

    async def close(self) -> None:
        pass


class HTTPRelayerClient(RelayerClient):
    """
    Relayer HTTP client.

    POSTs {"ciphertextHandles": [...], "extraData": "0x00"} to
    {base_url}/v1/public-decrypt and expects
    {"response": [{"decrypted_value": "0x...", "signatures": ["0x...", ...]}]}.
    """

    def __init__(
        self,
        base_url: str,
        transport: Optional[HTTPTransport] = None,
        extra_data: bytes = DEFAULT_EXTRA_DATA,
        timeout: Optional[float] = None,
    ):
        self.base_url = base_url.rstrip("/")
        self._transport = transport or AiohttpTransport(timeout=timeout)
        self._extra_data = extra_data

    async def public_decrypt(self, handle: str, owner_contract: str) -> DecryptedValue:
        logger.info(f"🔓 Public decryption of {handle} (contract {owner_contract})")

        body = json.dumps({
            "ciphertextHandles": [handle],
            "extraData": Web3.to_hex(self._extra_data),
        }).encode()

        raw = await self._transport.post(
            self.base_url + PUBLIC_DECRYPT_PATH,
            body,
            {"Content-Type": "application/json"},
        )
        try:
            data = json.loads(raw)
        except ValueError:
            raise DecryptionRejected(handle, "relayer returned invalid JSON")

        value = self._parse(handle, data)
        logger.info(f"✅ Decryption successful, proof {len(value.proof)} bytes")
        return value

    def _parse(self, handle: str, data: Any) -> DecryptedValue:
        if not data:
            raise DecryptionRejected(handle, "publicDecrypt returned null or undefined")

        if isinstance(data, dict) and data.get("status") == "failure":
            raise DecryptionRejected(handle, str(data.get("message") or data.get("error") or "failure"))

        result = data.get("response") if isinstance(data, dict) else data
        if isinstance(result, list):
            result = result[0] if result else None
        if not isinstance(result, dict):
            raise DecryptionRejected(handle, "publicDecrypt returned null or undefined")

        decrypted = result.get("decrypted_value")
        if decrypted in (None, ""):
            raise DecryptionRejected(handle, "Cleartext not found in decryption result")
        if not isinstance(decrypted, str):
            raise DecryptionRejected(handle, "Cleartext is not a hex string")

        signatures = result.get("signatures") or []
        if not signatures:
            raise DecryptionRejected(handle, "Proof not found in decryption result")
        if not isinstance(signatures, list) or not all(isinstance(s, str) for s in signatures):
            raise DecryptionRejected(handle, "Signatures are not hex strings")

        try:
            # ABI-encoded clear values: one 32-byte word per handle
            word = Web3.to_bytes(hexstr=decrypted if decrypted.startswith("0x") else "0x" + decrypted)
            sig_bytes = [
                Web3.to_bytes(hexstr=s if s.startswith("0x") else "0x" + s) for s in signatures
            ]
            extra = result.get("extra_data")
            extra_data = Web3.to_bytes(hexstr=extra) if extra else self._extra_data
        except (ValueError, TypeError):
            raise DecryptionRejected(handle, "Malformed hex in decryption result")
        cleartext = int.from_bytes(word[:32], "big")
        return DecryptedValue(cleartext=cleartext, proof=build_decryption_proof(sig_bytes, extra_data))

    async def close(self) -> None:
        await self._transport.close()


class MockRelayerClient(RelayerClient):
    """Relayer backed by a MockChainClient's ciphertext store."""

    def __init__(self, chain: "MockChainClient"):
        self._chain = chain
        self.calls: List[Dict[str, str]] = []
        self._fail_next: Optional[Exception] = None
        self._drop_proof = False

    def fail_next(self, exc: Exception) -> None:
        """Raise `exc` on the next call."""
        self._fail_next = exc

    def drop_proof(self, enabled: bool = True) -> None:
        """Return results without a proof."""
        self._drop_proof = enabled

    async def public_decrypt(self, handle: str, owner_contract: str) -> DecryptedValue:
        from ..chain.mock import mock_decryption_proof

        self.calls.append({"handle": handle, "contract": owner_contract})
        if self._fail_next is not None:
            exc, self._fail_next = self._fail_next, None
            raise exc
        try:
            cleartext = self._chain.lookup_public(handle)
        except KeyError as e:
            raise DecryptionRejected(handle, str(e))
        if self._drop_proof:
            raise DecryptionRejected(handle, "Proof not found in decryption result")
        return DecryptedValue(cleartext=cleartext, proof=mock_decryption_proof(handle, cleartext))


# =============================================================================
# Process-wide Relayer
# =============================================================================

_relayer: Optional[RelayerClient] = None


def init_relayer(client: RelayerClient) -> RelayerClient:
    """Install the process-wide relayer client."""
    global _relayer
    _relayer = client
    return client


def get_relayer() -> RelayerClient:
    """Installed relayer client, or RelayerNotInitialized."""
    if _relayer is None:
        raise RelayerNotInitialized()
    return _relayer


def is_relayer_initialized() -> bool:
    return _relayer is not None


def reset_relayer() -> None:
    global _relayer
    _relayer = None
