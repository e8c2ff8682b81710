# cipherfund/decrypt/engine.py
"""
CipherFund Decrypt: Self-Relaying Decryption Engine

Drives the 4-step protocol that turns an on-chain ciphertext into a
verified on-chain plaintext, for any QuantityKind:

    Step 1  request<Kind>Decryption    (tx)   mark handle publicly decryptable
    Step 2  <handle getter>            (call) fetch the encrypted handle
    Step 3  relayer.public_decrypt     (off-chain) cleartext + KMS proof
    Step 4  submit<Kind>Decryption     (tx)   contract verifies, caches value

Before running, the on-chain DecryptionRecord is probed:

    NONE, or DECRYPTED but stale     -> FULL     (steps 1-4)
    PROCESSING                       -> RESUME   (steps 2-4)
    DECRYPTED and fresh              -> CACHED   (no writes)

Each step is a single attempt and errors propagate unchanged. Re-invoking
resolve_plaintext() after a failure is always safe: the status probe skips
whatever an earlier attempt already confirmed.

Usage:
    engine = DecryptionEngine(chain, campaign_address, vault_address, relayer)

    result = await engine.resolve_plaintext(TOTAL_RAISED, ScopeKey(campaign_id=3))
    result.cleartext    # int
    result.action       # PlannedAction.FULL / RESUME / CACHED

    task = engine.start(MY_CONTRIBUTION, ScopeKey(campaign_id=3))
    result = await task
"""

from __future__ import annotations

import asyncio
import logging
import time
from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Optional, List, Callable, Any

from web3 import Web3

from ..errors import (
    PreconditionError,
    RelayerNotInitialized,
    RelayerUnavailable,
    DecryptionRejected,
)
from ..chain.client import ChainClient, Receipt
from ..relayer.client import RelayerClient, get_relayer
from .kinds import QuantityKind, ScopeKey, ContractRole
from .status import DecryptStatus, DecryptionRecord


logger = logging.getLogger("cipherfund.decrypt")

ZERO_HANDLE = "0x" + "00" * 32


# =============================================================================
# Types
# =============================================================================

class PlannedAction(Enum):
    """What resolve_plaintext() does for a given record."""
    FULL = "full"          # steps 1-4
    RESUME = "resume"      # steps 2-4
    CACHED = "cached"      # return cached value


@dataclass
class DecryptionResult:
    """
    Outcome of one resolve_plaintext() call.

    Attributes:
        cleartext: Verified plaintext
        receipt: Receipt of the submit transaction (None when cached)
        action: Path that was taken
        tx_hashes: Hashes of the transactions sent, in order
    """
    cleartext: int
    receipt: Optional[Receipt]
    action: PlannedAction
    tx_hashes: List[str] = field(default_factory=list)

    @property
    def from_cache(self) -> bool:
        return self.action == PlannedAction.CACHED


def normalize_handle(handle: Any) -> str:
    """bytes32 handle as lowercase 0x-hex."""
    if isinstance(handle, (bytes, bytearray)):
        return Web3.to_hex(bytes(handle))
    handle = str(handle)
    if not handle.startswith("0x"):
        handle = "0x" + handle
    return handle.lower()


# =============================================================================
# Engine
# =============================================================================

class DecryptionEngine:
    """
    Resumable decryption of encrypted contract quantities.

    Args:
        chain: ChainClient used for status reads and the two writes
        campaign_address: ConfidentialFundraising contract
        vault_address: ShareVault contract
        relayer: RelayerClient (default: the process-wide relayer)
        clock: Returns current unix time in seconds
    """

    def __init__(
        self,
        chain: ChainClient,
        campaign_address: str,
        vault_address: str,
        relayer: Optional[RelayerClient] = None,
        clock: Callable[[], float] = time.time,
    ):
        self.chain = chain
        self.campaign_address = Web3.to_checksum_address(campaign_address)
        self.vault_address = Web3.to_checksum_address(vault_address)
        self._relayer = relayer
        self._clock = clock

    # =========================================================================
    # Helpers
    # =========================================================================

    def address_for(self, kind: QuantityKind) -> str:
        """Address of the contract owning `kind`."""
        if kind.contract == ContractRole.CAMPAIGN:
            return self.campaign_address
        return self.vault_address

    def _relayer_client(self) -> RelayerClient:
        if self._relayer is not None:
            return self._relayer
        try:
            return get_relayer()
        except RelayerNotInitialized:
            raise RelayerUnavailable("FHEVM relayer is not initialized")

    def _bind_scope(self, kind: QuantityKind, scope: ScopeKey, account: Optional[str]) -> ScopeKey:
        """Fill in the sender for sender-scoped kinds and check it matches."""
        if not kind.sender_scoped:
            return scope
        if scope.user is None:
            if account is None:
                return scope
            return replace(scope, user=account)
        if account is not None and Web3.to_checksum_address(scope.user) != account:
            raise PreconditionError(
                f"{kind.name} can only be decrypted by its owner {scope.user}"
            )
        return replace(scope, user=Web3.to_checksum_address(scope.user))

    # =========================================================================
    # Status
    # =========================================================================

    def plan(self, kind: QuantityKind, record: DecryptionRecord, now: Optional[float] = None) -> PlannedAction:
        """Freshness decision for a probed record."""
        if now is None:
            now = self._clock()
        if record.status == DecryptStatus.PROCESSING:
            return PlannedAction.RESUME
        if record.is_fresh(now, kind.unset_value):
            return PlannedAction.CACHED
        return PlannedAction.FULL

    async def get_status(self, kind: QuantityKind, scope: ScopeKey) -> DecryptionRecord:
        """Read the on-chain DecryptionRecord for (kind, scope)."""
        scope = self._bind_scope(kind, scope, self.chain.account_address)
        data = await self.chain.read(self.address_for(kind), kind.status_method, kind.status_args(scope))
        return DecryptionRecord.from_contract_tuple(data)

    async def cache_timeout(self, kind: QuantityKind) -> int:
        """CACHE_TIMEOUT (seconds) of the contract owning `kind`."""
        return int(await self.chain.read(self.address_for(kind), "CACHE_TIMEOUT"))

    # =========================================================================
    # Protocol
    # =========================================================================

    async def resolve_plaintext(self, kind: QuantityKind, scope: ScopeKey) -> DecryptionResult:
        """
        Guarantee a fresh, verified plaintext for (kind, scope).

        Raises:
            NoWalletConnected: No signing account
            RelayerUnavailable: No relayer configured or initialized
            DecryptionRejected: Relayer returned no cleartext or no proof
            TransactionReverted: Request or submit transaction failed
        """
        account = self.chain.require_account()
        relayer = self._relayer_client()
        scope = self._bind_scope(kind, scope, account)
        address = self.address_for(kind)

        try:
            record = await self.get_status(kind, scope)
            action = self.plan(kind, record)
            logger.debug(
                f"{kind} [{scope}] status={record.status.name} value={record.value} "
                f"expiry={record.cache_expiry} -> {action.name}"
            )

            if action == PlannedAction.CACHED:
                logger.info(f"✅ {kind} [{scope}] cached: {record.value}")
                return DecryptionResult(cleartext=record.value, receipt=None, action=action)

            tx_hashes: List[str] = []

            if action == PlannedAction.FULL:
                logger.info(f"Step 1/4: requesting {kind} decryption [{scope}]")
                receipt = await self.chain.transact(address, kind.request_method, kind.request_args(scope))
                tx_hashes.append(receipt.tx_hash)
            else:
                logger.info(f"Step 1/4: {kind} [{scope}] already processing, resuming")

            logger.info(f"Step 2/4: fetching {kind} handle")
            raw_handle = await self.chain.read(address, kind.handle_method, kind.handle_args(scope))
            handle = normalize_handle(raw_handle)
            if handle == ZERO_HANDLE:
                raise DecryptionRejected(handle, "contract returned an empty handle")

            logger.info(f"Step 3/4: public decryption of {handle}")
            value = await relayer.public_decrypt(handle, address)
            if value is None:
                raise DecryptionRejected(handle, "publicDecrypt returned null or undefined")
            if value.cleartext is None:
                raise DecryptionRejected(handle, "Cleartext not found in decryption result")
            if not value.proof:
                raise DecryptionRejected(handle, "Proof not found in decryption result")

            logger.info(f"Step 4/4: submitting {kind} proof")
            receipt = await self.chain.transact(
                address,
                kind.submit_method,
                kind.submit_args(scope, int(value.cleartext), bytes(value.proof)),
            )
            tx_hashes.append(receipt.tx_hash)

        except Exception as e:
            logger.error(f"❌ {kind} [{scope}] decryption failed: {e}")
            raise

        logger.info(f"✅ {kind} [{scope}] decrypted: {value.cleartext}")
        return DecryptionResult(
            cleartext=int(value.cleartext),
            receipt=receipt,
            action=action,
            tx_hashes=tx_hashes,
        )

    def start(self, kind: QuantityKind, scope: ScopeKey) -> "asyncio.Task[DecryptionResult]":
        """
        Schedule resolve_plaintext() and return its task.

        Each call gets its own task; callers track their own pending state.
        Must be called from a running event loop.
        """
        return asyncio.create_task(self.resolve_plaintext(kind, scope))
