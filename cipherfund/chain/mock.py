# cipherfund/chain/mock.py
"""
CipherFund Chain: In-Memory Contracts

MockChainClient plays both deployed contracts (ConfidentialFundraising and
ShareVault) through the ChainClient interface. No blockchain required.

Encrypted values are modelled as opaque handles mapped to plaintexts; a
handle only becomes decryptable (see MockRelayerClient) once the matching
request*Decryption transaction marked it publicly decryptable. Submitted
proofs are checked against mock_decryption_proof().

Usage:
    chain = MockChainClient()
    chain.set_account("0x" + "A" * 40)
    chain.fund("0x" + "A" * 40, 10**18)

    relayer = MockRelayerClient(chain)
    encryptor = MockInputEncryptor(chain)
"""

from __future__ import annotations

import itertools
from dataclasses import dataclass, field
from typing import Optional, List, Dict, Any, Sequence, Tuple, Set, Callable

from web3 import Web3

from ..errors import ChainError, TransactionReverted
from ..decrypt.status import DecryptStatus
from .client import ChainClient, Receipt


# =============================================================================
# Constants
# =============================================================================

MOCK_CAMPAIGN_ADDRESS = Web3.to_checksum_address("0x" + "c5" * 20)
MOCK_VAULT_ADDRESS = Web3.to_checksum_address("0x" + "5a" * 20)
MOCK_CHAIN_ID = 11155111
MOCK_CACHE_TIMEOUT = 600        # seconds
MOCK_START_TIME = 1_700_000_000

ZERO_HANDLE = "0x" + "00" * 32
ZERO_ADDRESS = "0x" + "00" * 20
UINT64_MAX = 2**64 - 1


def mock_decryption_proof(handle: str, cleartext: int) -> bytes:
    """Proof the mock contracts accept for (handle, cleartext)."""
    return bytes(Web3.keccak(text=f"kms:{handle.lower()}:{cleartext}"))


class _Revert(Exception):
    """Internal: contract reverted with a custom error name."""
    def __init__(self, reason: str):
        super().__init__(reason)
        self.reason = reason


# =============================================================================
# Contract State
# =============================================================================

@dataclass
class MockRecord:
    """Decryption record plus the handle it was requested for."""
    status: DecryptStatus = DecryptStatus.NONE
    value: int = 0
    cache_expiry: int = 0
    pending_handle: Optional[str] = None

    def as_tuple(self) -> Tuple[int, int, int]:
        return (int(self.status), self.value, self.cache_expiry)

    def reset(self) -> None:
        self.status = DecryptStatus.NONE
        self.value = 0
        self.cache_expiry = 0
        self.pending_handle = None


@dataclass
class MockCampaign:
    """One fundraising campaign."""
    owner: str
    title: str
    description: str
    target: int
    deadline: int
    finalized: bool = False
    cancelled: bool = False
    token_address: str = ZERO_ADDRESS
    target_reached: bool = False
    total_handle: Optional[str] = None
    contributions: Dict[str, str] = field(default_factory=dict)      # user -> handle
    contributors: List[str] = field(default_factory=list)
    claimed: Set[str] = field(default_factory=set)
    total_record: MockRecord = field(default_factory=MockRecord)
    contribution_records: Dict[str, MockRecord] = field(default_factory=dict)

    def as_tuple(self) -> Tuple:
        return (
            self.owner, self.title, self.description, self.target,
            self.deadline, self.finalized, self.cancelled, self.token_address,
        )


@dataclass
class MockVaultAccount:
    """Vault position of one user."""
    balance: int = 0
    locked: Dict[int, int] = field(default_factory=dict)        # campaign -> amount
    record: MockRecord = field(default_factory=MockRecord)

    @property
    def total_locked(self) -> int:
        return sum(self.locked.values())

    @property
    def available(self) -> int:
        return self.balance - self.total_locked


# =============================================================================
# MockChainClient
# =============================================================================

class MockChainClient(ChainClient):
    """
    In-memory ChainClient backed by simulated contracts.

    Every call is recorded in `calls` as (kind, method, args) where kind is
    "read" or "write". Time only moves through advance().
    """

    def __init__(
        self,
        campaign_address: str = MOCK_CAMPAIGN_ADDRESS,
        vault_address: str = MOCK_VAULT_ADDRESS,
        chain_id: int = MOCK_CHAIN_ID,
        cache_timeout: int = MOCK_CACHE_TIMEOUT,
        start_time: int = MOCK_START_TIME,
    ):
        self.campaign_address = Web3.to_checksum_address(campaign_address)
        self.vault_address = Web3.to_checksum_address(vault_address)
        self.chain_id = chain_id
        self.connected_chain_id = chain_id
        self.cache_timeout = cache_timeout
        self.now = start_time

        self._account: Optional[str] = None
        self._tx_counter = itertools.count(1)
        self._handle_counter = itertools.count(1)
        self._block = 1

        # Ciphertext store: handle -> plaintext
        self.ciphertexts: Dict[str, int] = {}
        self.public_handles: Set[str] = set()
        self.input_proofs: Dict[str, bytes] = {}

        self.campaigns: Dict[int, MockCampaign] = {}
        self.vault: Dict[str, MockVaultAccount] = {}
        self.vault_owner: Optional[str] = None
        self.vault_campaign_contract: str = ZERO_ADDRESS

        self.calls: List[Tuple[str, str, Tuple]] = []
        self._receipts: Dict[str, Receipt] = {}
        self._revert_receipt: Dict[str, int] = {}      # method -> remaining failures
        self._fail_writes: Dict[str, str] = {}          # method -> revert reason
        self._pending_events: List[Dict[str, Any]] = []
        self.closed = False

    # =========================================================================
    # Test Controls
    # =========================================================================

    def set_account(self, address: Optional[str]) -> None:
        """Set signing account (None = no wallet)."""
        self._account = Web3.to_checksum_address(address) if address else None
        if self._account and self.vault_owner is None:
            self.vault_owner = self._account

    def advance(self, seconds: int) -> None:
        """Move block time forward."""
        self.now += seconds

    def time(self) -> float:
        """Clock callable matching the simulated block time."""
        return float(self.now)

    def fund(self, user: str, amount: int) -> None:
        """Credit a vault balance directly."""
        self._vault_account(Web3.to_checksum_address(user)).balance += amount

    def fail_receipt(self, method: str, times: int = 1) -> None:
        """Next `times` writes of `method` mine with status 0 (no state change)."""
        self._revert_receipt[method] = times

    def fail_write(self, method: str, reason: str) -> None:
        """Every write of `method` reverts with `reason` until cleared."""
        self._fail_writes[method] = reason

    def clear_failures(self) -> None:
        self._revert_receipt.clear()
        self._fail_writes.clear()

    def writes(self, method: Optional[str] = None) -> List[Tuple[str, Tuple]]:
        """Recorded writes as (method, args), optionally filtered."""
        return [
            (m, a) for kind, m, a in self.calls
            if kind == "write" and (method is None or m == method)
        ]

    def reads(self, method: Optional[str] = None) -> List[Tuple[str, Tuple]]:
        return [
            (m, a) for kind, m, a in self.calls
            if kind == "read" and (method is None or m == method)
        ]

    def reset_calls(self) -> None:
        self.calls.clear()

    # =========================================================================
    # Ciphertexts
    # =========================================================================

    def new_handle(self, plaintext: int) -> str:
        """Store a plaintext under a fresh opaque handle."""
        handle = Web3.to_hex(Web3.keccak(text=f"handle:{next(self._handle_counter)}"))
        self.ciphertexts[handle] = plaintext
        return handle

    def register_input(self, plaintext: int, proof: bytes) -> str:
        """Register an encrypted input (used by MockInputEncryptor)."""
        handle = self.new_handle(plaintext)
        self.input_proofs[handle] = proof
        return handle

    def lookup_public(self, handle: str) -> int:
        """Plaintext of a publicly decryptable handle."""
        handle = handle.lower()
        if handle not in self.public_handles:
            raise KeyError(f"Handle {handle} is not publicly decryptable")
        return self.ciphertexts[handle]

    def _plaintext(self, handle: Optional[str]) -> int:
        return self.ciphertexts.get(handle, 0) if handle else 0

    def _mark_public(self, handle: str) -> None:
        self.public_handles.add(handle.lower())

    # =========================================================================
    # ChainClient
    # =========================================================================

    @property
    def account_address(self) -> Optional[str]:
        return self._account

    async def read(self, address: str, method: str, args: Sequence[Any] = ()) -> Any:
        self.calls.append(("read", method, tuple(args)))
        handler = self._handler(address, method, "view")
        try:
            return handler(self._account, *args)
        except _Revert as e:
            raise ChainError(f"{method} call reverted: {e.reason}", reason=e.reason)

    async def write(
        self,
        address: str,
        method: str,
        args: Sequence[Any] = (),
        value: int = 0,
    ) -> str:
        sender = self.require_account()
        self.calls.append(("write", method, tuple(args)))
        if self.connected_chain_id != self.chain_id:
            raise ChainError(
                f"Wallet on chain {self.connected_chain_id}, transaction for {self.chain_id}",
                reason="ChainMismatch",
            )

        if method in self._fail_writes:
            raise TransactionReverted(method, reason=self._fail_writes[method])

        handler = self._handler(address, method, "tx")
        tx_hash = "0x" + f"{next(self._tx_counter):064x}"

        if self._revert_receipt.get(method, 0) > 0:
            self._revert_receipt[method] -= 1
            self._receipts[tx_hash] = Receipt(tx_hash=tx_hash, status=0, block_number=self._block)
            return tx_hash

        self._pending_events = []
        try:
            if method == "deposit":
                handler(sender, value)
            else:
                if value:
                    raise TransactionReverted(method, reason="non-payable function")
                handler(sender, *args)
        except _Revert as e:
            raise TransactionReverted(method, reason=e.reason)

        self._block += 1
        self._receipts[tx_hash] = Receipt(
            tx_hash=tx_hash,
            status=1,
            block_number=self._block,
            gas_used=21000,
            logs=self._pending_events,
        )
        return tx_hash

    async def wait_for_receipt(self, tx_hash: str) -> Receipt:
        try:
            return self._receipts[tx_hash]
        except KeyError:
            raise ChainError(f"Unknown transaction {tx_hash}")

    async def switch_chain(self, chain_id: int) -> None:
        self.connected_chain_id = chain_id

    async def block_timestamp(self) -> int:
        return self.now

    def decode_events(self, address: str, event: str, receipt: Receipt) -> List[Dict[str, Any]]:
        address = Web3.to_checksum_address(address)
        return [
            dict(log["args"]) for log in receipt.logs
            if log["event"] == event and log["address"] == address
        ]

    async def close(self) -> None:
        self.closed = True

    # =========================================================================
    # Dispatch
    # =========================================================================

    def _handler(self, address: str, method: str, mode: str) -> Callable:
        address = Web3.to_checksum_address(address)
        if address == self.campaign_address:
            prefix = "_campaign"
        elif address == self.vault_address:
            prefix = "_vault"
        else:
            raise ChainError(f"No contract at {address}")
        handler = getattr(self, f"{prefix}_{mode}_{method}", None)
        if handler is None:
            raise ChainError(f"{method} is not a {mode} function of {address}")
        return handler

    def _emit(self, address: str, event: str, **args) -> None:
        self._pending_events.append({"address": address, "event": event, "args": args})

    def _get_campaign(self, campaign_id: int) -> MockCampaign:
        campaign = self.campaigns.get(int(campaign_id))
        if campaign is None:
            raise _Revert("CampaignNotExist")
        return campaign

    def _vault_account(self, user: str) -> MockVaultAccount:
        return self.vault.setdefault(user, MockVaultAccount())

    def _submit_proof(self, record: MockRecord, cleartext: int, proof: bytes, not_requested: str) -> None:
        if record.status == DecryptStatus.NONE or record.pending_handle is None:
            raise _Revert(not_requested)
        handle = record.pending_handle
        if bytes(proof) != mock_decryption_proof(handle, cleartext):
            raise _Revert("InvalidKMSSignatures")
        if cleartext != self._plaintext(handle):
            raise _Revert("InvalidKMSSignatures")
        record.status = DecryptStatus.DECRYPTED
        record.value = cleartext
        record.cache_expiry = self.now + self.cache_timeout

    def _require_fresh(self, record: MockRecord, not_decrypted: str, expired: str) -> int:
        if record.status != DecryptStatus.DECRYPTED:
            raise _Revert(not_decrypted)
        if record.cache_expiry <= self.now:
            raise _Revert(expired)
        return record.value

    # =========================================================================
    # Campaign Contract: Transactions
    # =========================================================================

    def _campaign_tx_createCampaign(self, sender, title, description, target, duration):
        if not title:
            raise _Revert("EmptyTitle")
        if target <= 0 or target > UINT64_MAX:
            raise _Revert("InvalidTarget")
        if duration <= 0:
            raise _Revert("InvalidDuration")
        campaign_id = len(self.campaigns)
        campaign = MockCampaign(
            owner=sender,
            title=title,
            description=description,
            target=target,
            deadline=self.now + duration,
        )
        campaign.total_handle = self.new_handle(0)
        self.campaigns[campaign_id] = campaign
        self._emit(
            self.campaign_address, "CampaignCreated",
            campaignId=campaign_id, owner=sender, title=title,
            targetAmount=target, deadline=campaign.deadline,
        )
        return campaign_id

    def _campaign_tx_contribute(self, sender, campaign_id, encrypted_amount, input_proof):
        campaign = self._get_campaign(campaign_id)
        if campaign.finalized or campaign.cancelled or self.now >= campaign.deadline:
            raise _Revert("CampaignEnded")
        handle = Web3.to_hex(encrypted_amount) if isinstance(encrypted_amount, bytes) else encrypted_amount
        handle = handle.lower()
        if self.input_proofs.get(handle) != bytes(input_proof):
            raise _Revert("InvalidKMSSignatures")

        account = self._vault_account(sender)
        if account.balance == 0:
            raise _Revert("UserHasNoBalance")

        # Encrypted select: an over-budget contribution locks zero
        amount = self.ciphertexts[handle]
        if amount > account.available:
            amount = 0
        account.locked[int(campaign_id)] = account.locked.get(int(campaign_id), 0) + amount
        account.record.reset()

        previous = self._plaintext(campaign.contributions.get(sender))
        campaign.contributions[sender] = self.new_handle(previous + amount)
        if sender not in campaign.contributors:
            campaign.contributors.append(sender)
        campaign.total_handle = self.new_handle(self._plaintext(campaign.total_handle) + amount)
        campaign.contribution_records.setdefault(sender, MockRecord()).reset()
        campaign.total_record.reset()
        self._emit(self.campaign_address, "ContributionMade", campaignId=int(campaign_id), contributor=sender)

    def _campaign_tx_requestMyContributionDecryption(self, sender, campaign_id):
        campaign = self._get_campaign(campaign_id)
        handle = campaign.contributions.get(sender)
        if handle is None:
            raise _Revert("ContributionNotFound")
        record = campaign.contribution_records.setdefault(sender, MockRecord())
        record.status = DecryptStatus.PROCESSING
        record.pending_handle = handle
        self._mark_public(handle)

    def _campaign_tx_submitMyContributionDecryption(self, sender, campaign_id, cleartext, proof):
        campaign = self._get_campaign(campaign_id)
        record = campaign.contribution_records.setdefault(sender, MockRecord())
        self._submit_proof(record, cleartext, proof, "MyContributionNotDecrypted")

    def _campaign_tx_requestTotalRaisedDecryption(self, sender, campaign_id):
        campaign = self._get_campaign(campaign_id)
        campaign.total_record.status = DecryptStatus.PROCESSING
        campaign.total_record.pending_handle = campaign.total_handle
        self._mark_public(campaign.total_handle)

    def _campaign_tx_submitTotalRaisedDecryption(self, sender, campaign_id, cleartext, proof):
        campaign = self._get_campaign(campaign_id)
        self._submit_proof(campaign.total_record, cleartext, proof, "TotalRaisedNotDecrypted")

    def _campaign_tx_finalizeCampaign(self, sender, campaign_id, token_name, token_symbol):
        campaign = self._get_campaign(campaign_id)
        if sender != campaign.owner:
            raise _Revert("OnlyOwner")
        if campaign.finalized:
            raise _Revert("AlreadyFinalized")
        if campaign.cancelled:
            raise _Revert("AlreadyCancelled")
        if self.now < campaign.deadline:
            raise _Revert("CampaignStillActive")
        if not token_name:
            raise _Revert("TokenNameRequired")
        if not token_symbol:
            raise _Revert("TokenSymbolRequired")
        total = self._require_fresh(campaign.total_record, "TotalRaisedNotDecrypted", "CacheExpired")

        campaign.finalized = True
        campaign.target_reached = total >= campaign.target
        if campaign.target_reached:
            campaign.token_address = Web3.to_checksum_address(
                Web3.keccak(text=f"token:{campaign_id}:{token_symbol}")[-20:]
            )
            # Locked funds move to the campaign owner
            for user in campaign.contributors:
                account = self._vault_account(user)
                amount = account.locked.pop(int(campaign_id), 0)
                account.balance -= amount
                account.record.reset()
                self._vault_account(campaign.owner).balance += amount
        else:
            self._unlock_all(campaign_id, campaign)
        self._emit(
            self.campaign_address, "CampaignFinalized",
            campaignId=int(campaign_id), targetReached=campaign.target_reached,
        )

    def _campaign_tx_cancelCampaign(self, sender, campaign_id):
        campaign = self._get_campaign(campaign_id)
        if sender != campaign.owner:
            raise _Revert("OnlyOwner")
        if campaign.finalized:
            raise _Revert("AlreadyFinalized")
        if campaign.cancelled:
            raise _Revert("AlreadyCancelled")
        campaign.cancelled = True
        self._unlock_all(campaign_id, campaign)
        self._emit(self.campaign_address, "CampaignCancelled", campaignId=int(campaign_id))

    def _campaign_tx_claimTokens(self, sender, campaign_id):
        campaign = self._get_campaign(campaign_id)
        if not campaign.finalized:
            raise _Revert("CampaignNotFinalized")
        if sender in campaign.claimed:
            raise _Revert("AlreadyClaimed")
        record = campaign.contribution_records.get(sender, MockRecord())
        amount = self._require_fresh(record, "MyContributionNotDecrypted", "CacheExpired")
        if not campaign.target_reached or amount == 0:
            raise _Revert("NoTokensToClaim")
        campaign.claimed.add(sender)
        self._emit(self.campaign_address, "TokensClaimed", campaignId=int(campaign_id), contributor=sender)

    def _unlock_all(self, campaign_id: int, campaign: MockCampaign) -> None:
        for user in campaign.contributors:
            account = self._vault_account(user)
            if account.locked.pop(int(campaign_id), None) is not None:
                account.record.reset()

    # =========================================================================
    # Campaign Contract: Views
    # =========================================================================

    def _campaign_view_CACHE_TIMEOUT(self, sender):
        return self.cache_timeout

    def _campaign_view_campaignCount(self, sender):
        return len(self.campaigns)

    def _campaign_view_shareVault(self, sender):
        return self.vault_address

    def _campaign_view_getCampaign(self, sender, campaign_id):
        return self._get_campaign(campaign_id).as_tuple()

    def _campaign_view_getCampaignContributors(self, sender, campaign_id):
        return list(self._get_campaign(campaign_id).contributors)

    def _campaign_view_getContributionStatus(self, sender, campaign_id, user):
        campaign = self._get_campaign(campaign_id)
        user = Web3.to_checksum_address(user)
        return campaign.contribution_records.get(user, MockRecord()).as_tuple()

    def _campaign_view_getTotalRaisedStatus(self, sender, campaign_id):
        return self._get_campaign(campaign_id).total_record.as_tuple()

    def _campaign_view_getEncryptedContribution(self, sender, campaign_id, user):
        campaign = self._get_campaign(campaign_id)
        return campaign.contributions.get(Web3.to_checksum_address(user), ZERO_HANDLE)

    def _campaign_view_getEncryptedTotalRaised(self, sender, campaign_id):
        return self._get_campaign(campaign_id).total_handle or ZERO_HANDLE

    def _campaign_view_hasClaimed(self, sender, campaign_id, user):
        return Web3.to_checksum_address(user) in self._get_campaign(campaign_id).claimed

    def _campaign_view_hasContribution(self, sender, campaign_id, user):
        return Web3.to_checksum_address(user) in self._get_campaign(campaign_id).contributions

    # =========================================================================
    # Vault Contract: Transactions
    # =========================================================================

    def _vault_tx_deposit(self, sender, value):
        if value <= 0:
            raise _Revert("InvalidDepositAmount")
        if value > UINT64_MAX:
            raise _Revert("DepositAmountTooLarge")
        account = self._vault_account(sender)
        account.balance += value
        account.record.reset()
        self._emit(self.vault_address, "Deposited", user=sender, amount=value)

    def _vault_tx_withdraw(self, sender, amount):
        if amount <= 0:
            raise _Revert("InvalidWithdrawalAmount")
        account = self._vault_account(sender)
        record = account.record
        if record.status == DecryptStatus.NONE:
            raise _Revert("MustDecryptFirst")
        if record.status == DecryptStatus.PROCESSING:
            raise _Revert("DecryptionProcessing")
        available = self._require_fresh(record, "MustDecryptFirst", "DecryptionCacheExpired")
        if amount > available:
            raise _Revert("InsufficientAvailableBalance")
        account.balance -= amount
        record.reset()
        self._emit(self.vault_address, "Withdrawn", user=sender, amount=amount)

    def _vault_tx_requestAvailableBalanceDecryption(self, sender):
        account = self._vault_account(sender)
        if account.balance == 0:
            raise _Revert("NoBalance")
        handle = self.new_handle(account.available)
        account.record.status = DecryptStatus.PROCESSING
        account.record.pending_handle = handle
        self._mark_public(handle)

    def _vault_tx_submitAvailableBalanceDecryption(self, sender, cleartext, proof):
        account = self._vault_account(sender)
        self._submit_proof(account.record, cleartext, proof, "MustDecryptFirst")
        self._emit(self.vault_address, "AvailableBalanceDecrypted", user=sender, amount=cleartext)

    def _vault_tx_setCampaignContract(self, sender, campaign_contract):
        if sender != self.vault_owner:
            raise _Revert("OnlyOwner")
        if self.vault_campaign_contract != ZERO_ADDRESS:
            raise _Revert("CampaignContractAlreadySet")
        self.vault_campaign_contract = Web3.to_checksum_address(campaign_contract)

    # =========================================================================
    # Vault Contract: Views
    # =========================================================================

    def _vault_view_CACHE_TIMEOUT(self, sender):
        return self.cache_timeout

    def _vault_view_campaignContract(self, sender):
        return self.vault_campaign_contract

    def _vault_view_owner(self, sender):
        return self.vault_owner or ZERO_ADDRESS

    def _vault_view_getAvailableBalanceStatus(self, sender):
        if sender is None:
            return MockRecord().as_tuple()
        return self._vault_account(sender).record.as_tuple()

    def _vault_view_getPendingAvailableBalanceHandle(self, sender):
        if sender is None:
            return ZERO_HANDLE
        return self._vault_account(sender).record.pending_handle or ZERO_HANDLE

    def _vault_view_getEncryptedBalance(self, sender):
        account = self._vault_account(sender) if sender else MockVaultAccount()
        return self.new_handle(account.balance)

    def _vault_view_getEncryptedBalanceAndLocked(self, sender):
        account = self._vault_account(sender) if sender else MockVaultAccount()
        return (self.new_handle(account.balance), self.new_handle(account.total_locked))
