# cipherfund/chain/client.py
"""
CipherFund Chain: Contract Client

Reads and writes contract state on an EVM chain and waits for finality.

    ChainClient       - abstract interface the workflows depend on
    Web3ChainClient   - web3.py implementation, signs locally with eth_account

Requirements:
    pip install web3

Usage:
    client = Web3ChainClient(
        rpc_url="https://...",
        contracts={campaign_address: CAMPAIGN_ABI, vault_address: VAULT_ABI},
        private_key="0x...",        # Optional, for write ops
        chain_id=11155111,
    )

    await client.switch_chain(11155111)
    receipt = await client.transact(campaign_address, "claimTokens", [3])
    status = await client.read(campaign_address, "getTotalRaisedStatus", [3])
"""

from __future__ import annotations

import asyncio
import json
import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional, List, Dict, Any, Sequence

import aiohttp
from eth_account import Account
from eth_utils import ValidationError
from web3 import AsyncWeb3, AsyncHTTPProvider, Web3
from web3.exceptions import (
    ContractCustomError,
    ContractLogicError,
    ProviderConnectionError,
    TimeExhausted,
    Web3RPCError,
)
from web3.logs import DISCARD
from web3.middleware import ExtraDataToPOAMiddleware

from ..errors import ChainError, ConfigError, NoWalletConnected, TransactionReverted, NetworkMismatchError


logger = logging.getLogger("cipherfund.chain")


# =============================================================================
# ABI Loading
# =============================================================================

ABI_DIR = Path(__file__).parent / "abi"


def load_abi(name: str) -> List[Dict]:
    """Load contract ABI from abi/<name>.json."""
    with open(ABI_DIR / f"{name}.json") as f:
        data = json.load(f)
    return data.get("abi", data) if isinstance(data, dict) else data


CAMPAIGN_ABI = load_abi("ConfidentialFundraising")
VAULT_ABI = load_abi("ShareVault")


def error_selectors(abi: Sequence[Dict]) -> Dict[str, str]:
    """Map 4-byte custom error selectors ("0x" + 8 hex) to error names."""
    selectors = {}
    for entry in abi:
        if entry.get("type") != "error":
            continue
        types = ",".join(i["type"] for i in entry.get("inputs", []))
        signature = f"{entry['name']}({types})"
        selector = Web3.to_hex(Web3.keccak(text=signature)[:4])
        selectors[selector.lower()] = entry["name"]
    return selectors


# Node and transport failures that are not contract reverts
RPC_ERRORS = (Web3RPCError, ProviderConnectionError, aiohttp.ClientError, asyncio.TimeoutError)


def rpc_failure(action: str, exc: Exception) -> ChainError:
    """ChainError whose reason is the node's error message."""
    message = getattr(exc, "message", None) or str(exc) or type(exc).__name__
    return ChainError(f"{action} failed: {message}", reason=str(message))


# =============================================================================
# Types
# =============================================================================

@dataclass
class Receipt:
    """
    Transaction receipt.

    Attributes:
        tx_hash: 0x-prefixed transaction hash
        status: 1 success, 0 reverted
        block_number: Block the transaction landed in
        gas_used: Gas consumed
        logs: Raw logs (web3) or decoded events (mock)
    """
    tx_hash: str
    status: int
    block_number: Optional[int] = None
    gas_used: Optional[int] = None
    logs: List[Any] = field(default_factory=list)

    @property
    def succeeded(self) -> bool:
        return self.status == 1

    @classmethod
    def from_web3(cls, receipt: Any) -> Receipt:
        """Create from a web3 TxReceipt."""
        tx_hash = receipt["transactionHash"]
        return cls(
            tx_hash=tx_hash if isinstance(tx_hash, str) else Web3.to_hex(tx_hash),
            status=int(receipt["status"]),
            block_number=receipt.get("blockNumber"),
            gas_used=receipt.get("gasUsed"),
            logs=list(receipt.get("logs", [])),
        )


# =============================================================================
# Abstract Client
# =============================================================================

class ChainClient(ABC):
    """
    Contract access used by the decryption engine and the workflows.

    Writes return as soon as the transaction is submitted; use
    wait_for_receipt() or transact() to block until it is mined.
    """

    @property
    @abstractmethod
    def account_address(self) -> Optional[str]:
        """Signing account, or None when read-only."""
        pass

    @abstractmethod
    async def read(
        self,
        address: str,
        method: str,
        args: Sequence[Any] = (),
    ) -> Any:
        """Call a view function (msg.sender is the signing account, if any)."""
        pass

    @abstractmethod
    async def write(
        self,
        address: str,
        method: str,
        args: Sequence[Any] = (),
        value: int = 0,
    ) -> str:
        """
        Sign and submit a transaction.

        Returns:
            Transaction hash

        Raises:
            NoWalletConnected: No signing account
            TransactionReverted: Rejected at submission (revert during estimation)
        """
        pass

    @abstractmethod
    async def wait_for_receipt(self, tx_hash: str) -> Receipt:
        """Block until the transaction is mined."""
        pass

    @abstractmethod
    async def switch_chain(self, chain_id: int) -> None:
        """
        Make `chain_id` the active network for subsequent writes.

        Raises:
            NetworkMismatchError: Endpoint serves a different chain
        """
        pass

    @abstractmethod
    async def block_timestamp(self) -> int:
        """Timestamp of the latest block."""
        pass

    @abstractmethod
    def decode_events(self, address: str, event: str, receipt: Receipt) -> List[Dict[str, Any]]:
        """Decoded args of every `event` emitted by `address` in the receipt."""
        pass

    def require_account(self) -> str:
        """Signing account address, or NoWalletConnected."""
        address = self.account_address
        if not address:
            raise NoWalletConnected()
        return address

    async def transact(
        self,
        address: str,
        method: str,
        args: Sequence[Any] = (),
        value: int = 0,
    ) -> Receipt:
        """Write, wait for the receipt, and fail on a reverted status."""
        tx_hash = await self.write(address, method, args, value)
        logger.debug(f"{method} submitted: {tx_hash}")
        receipt = await self.wait_for_receipt(tx_hash)
        if not receipt.succeeded:
            raise TransactionReverted(method, tx_hash=tx_hash)
        logger.debug(f"{method} confirmed in block {receipt.block_number}")
        return receipt

    async def close(self) -> None:
        """Release network resources."""
        pass


# =============================================================================
# Web3ChainClient
# =============================================================================

class Web3ChainClient(ChainClient):
    """
    web3.py chain client.

    Contracts must be registered up front (address -> ABI) so that calls
    can be encoded and custom errors decoded.
    """

    def __init__(
        self,
        rpc_url: str,
        contracts: Dict[str, List[Dict]],
        private_key: Optional[str] = None,
        chain_id: Optional[int] = None,
        confirmation_timeout: float = 120.0,
        poll_latency: float = 1.0,
        poa: bool = False,
    ):
        """
        Initialize client.

        Args:
            rpc_url: RPC endpoint URL
            contracts: Contract address -> ABI
            private_key: Private key for write operations (optional)
            chain_id: Expected chain ID (checked by switch_chain)
            confirmation_timeout: Seconds to wait for a receipt
            poll_latency: Receipt polling interval
            poa: Inject the extraData middleware for PoA networks
        """
        self.rpc_url = rpc_url
        self._chain_id = chain_id
        self._timeout = confirmation_timeout
        self._poll_latency = poll_latency

        self._w3 = AsyncWeb3(AsyncHTTPProvider(rpc_url))
        if poa:
            self._w3.middleware_onion.inject(ExtraDataToPOAMiddleware, layer=0)

        self._contracts = {}
        self._errors: Dict[str, Dict[str, str]] = {}
        for address, abi in contracts.items():
            checksum = Web3.to_checksum_address(address)
            self._contracts[checksum] = self._w3.eth.contract(address=checksum, abi=abi)
            self._errors[checksum] = error_selectors(abi)

        try:
            self._account = Account.from_key(private_key) if private_key else None
        except (ValueError, TypeError, ValidationError):
            raise ConfigError("Invalid private key: expected 32 bytes of hex")

    @property
    def account_address(self) -> Optional[str]:
        return self._account.address if self._account else None

    def _contract(self, address: str):
        checksum = Web3.to_checksum_address(address)
        try:
            return checksum, self._contracts[checksum]
        except KeyError:
            raise ChainError(f"No ABI registered for contract {checksum}")

    def _decode_revert(self, address: str, exc: ContractLogicError) -> str:
        """Revert reason: custom error name when known, else the raw message."""
        if isinstance(exc, ContractCustomError):
            data = exc.data if isinstance(exc.data, str) else str(exc.message or "")
            selector = data[:10].lower()
            name = self._errors.get(address, {}).get(selector)
            if name:
                return name
        return str(exc.message or exc)

    # =========================================================================
    # Read
    # =========================================================================

    async def read(self, address: str, method: str, args: Sequence[Any] = ()) -> Any:
        checksum, contract = self._contract(address)
        call_params = {"from": self._account.address} if self._account else {}
        try:
            return await getattr(contract.functions, method)(*args).call(call_params)
        except ContractLogicError as e:
            reason = self._decode_revert(checksum, e)
            raise ChainError(f"{method} call reverted: {reason}", reason=reason)
        except RPC_ERRORS as e:
            raise rpc_failure(f"{method} call", e)

    async def block_timestamp(self) -> int:
        try:
            block = await self._w3.eth.get_block("latest")
        except RPC_ERRORS as e:
            raise rpc_failure("get_block", e)
        return int(block["timestamp"])

    # =========================================================================
    # Write
    # =========================================================================

    async def write(
        self,
        address: str,
        method: str,
        args: Sequence[Any] = (),
        value: int = 0,
    ) -> str:
        sender = self.require_account()
        checksum, contract = self._contract(address)

        try:
            if self._chain_id is None:
                self._chain_id = await self._w3.eth.chain_id

            tx_params = {
                "from": sender,
                "chainId": self._chain_id,
                "nonce": await self._w3.eth.get_transaction_count(sender, "pending"),
            }
            if value:
                tx_params["value"] = value

            # Gas estimation runs the call, so contract reverts surface here
            tx = await getattr(contract.functions, method)(*args).build_transaction(tx_params)

            signed = self._account.sign_transaction(tx)
            tx_hash = await self._w3.eth.send_raw_transaction(signed.raw_transaction)
        except ContractLogicError as e:
            raise TransactionReverted(method, reason=self._decode_revert(checksum, e))
        except RPC_ERRORS as e:
            raise rpc_failure(method, e)
        return Web3.to_hex(tx_hash)

    async def wait_for_receipt(self, tx_hash: str) -> Receipt:
        try:
            receipt = await self._w3.eth.wait_for_transaction_receipt(
                tx_hash,
                timeout=self._timeout,
                poll_latency=self._poll_latency,
            )
        except TimeExhausted:
            raise ChainError(
                f"Transaction {tx_hash} not mined within {self._timeout}s",
                reason="ConfirmationTimeout",
            )
        except RPC_ERRORS as e:
            raise rpc_failure("wait_for_transaction_receipt", e)
        return Receipt.from_web3(receipt)

    async def switch_chain(self, chain_id: int) -> None:
        try:
            actual = await self._w3.eth.chain_id
        except RPC_ERRORS as e:
            raise rpc_failure("eth_chainId", e)
        if actual != chain_id:
            raise NetworkMismatchError(expected=chain_id, actual=actual)
        self._chain_id = chain_id

    def decode_events(self, address: str, event: str, receipt: Receipt) -> List[Dict[str, Any]]:
        _, contract = self._contract(address)
        processed = getattr(contract.events, event)().process_receipt(
            {"logs": receipt.logs}, errors=DISCARD
        )
        return [dict(ev["args"]) for ev in processed]

    async def close(self) -> None:
        await self._w3.provider.disconnect()
