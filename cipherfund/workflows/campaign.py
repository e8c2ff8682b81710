# cipherfund/workflows/campaign.py
"""
CipherFund Workflows: Campaigns

High-level actions on the ConfidentialFundraising contract.

    create_campaign    direct write
    contribute         encrypted input, direct write
    claim_tokens       resolve MyContribution, gate on non-zero, claim
    finalize_campaign  validate token metadata, resolve TotalRaised, finalize
    cancel_campaign    direct write

Campaign lifecycle (observed, owned by the contract):

    ACTIVE -> FINALIZED | CANCELLED | ENDED (deadline passed, not finalized)

Usage:
    campaigns = CampaignWorkflow(chain, config, encryptor=encryptor)

    campaign_id = await campaigns.create_campaign("Solar", "Roof panels", "5", 30)
    await campaigns.contribute(campaign_id, "0.5")
    ...
    await campaigns.finalize_campaign(campaign_id, "Solar Token", "SOL")
    await campaigns.claim_tokens(campaign_id)
"""

from __future__ import annotations

import logging
import re
import time
from dataclasses import dataclass
from enum import Enum
from typing import Optional, List, Tuple, Callable

from web3 import Web3

from ..config import NetworkConfig
from ..errors import (
    PreconditionError,
    InvalidCampaignError,
    InvalidTokenMetadataError,
    NoContributionFound,
)
from ..units import Amount, parse_amount
from ..chain.client import ChainClient, Receipt
from ..decrypt import (
    DecryptionEngine,
    DecryptionRecord,
    ScopeKey,
    MY_CONTRIBUTION,
    TOTAL_RAISED,
)
from .encryption import InputEncryptor


logger = logging.getLogger("cipherfund.campaign")

SECONDS_PER_DAY = 24 * 60 * 60
MAX_SYMBOL_LENGTH = 10

_SYMBOL_PATTERN = re.compile(r"[A-Za-z0-9]+")


# =============================================================================
# Types
# =============================================================================

class CampaignState(Enum):
    """Observed lifecycle state."""
    ACTIVE = "active"
    ENDED = "ended"             # deadline passed, not yet finalized
    FINALIZED = "finalized"
    CANCELLED = "cancelled"


@dataclass
class Campaign:
    """Campaign as returned by getCampaign()."""
    id: int
    owner: str
    title: str
    description: str
    target_amount: int
    deadline: int
    finalized: bool
    cancelled: bool
    token_address: str

    @classmethod
    def from_contract_tuple(cls, campaign_id: int, data) -> Campaign:
        return cls(
            id=campaign_id,
            owner=data[0],
            title=data[1],
            description=data[2],
            target_amount=int(data[3]),
            deadline=int(data[4]),
            finalized=bool(data[5]),
            cancelled=bool(data[6]),
            token_address=data[7],
        )

    def state(self, now: Optional[float] = None) -> CampaignState:
        if self.cancelled:
            return CampaignState.CANCELLED
        if self.finalized:
            return CampaignState.FINALIZED
        if now is None:
            now = time.time()
        if now >= self.deadline:
            return CampaignState.ENDED
        return CampaignState.ACTIVE

    def can_finalize(self, now: Optional[float] = None) -> bool:
        return self.state(now) == CampaignState.ENDED

    def can_cancel(self) -> bool:
        return not (self.finalized or self.cancelled)

    @property
    def has_token(self) -> bool:
        return int(self.token_address, 16) != 0


def validate_token_metadata(token_name: str, token_symbol: str) -> Tuple[str, str]:
    """
    Check reward token metadata before finalization.

    Returns:
        (name, SYMBOL) stripped, symbol upper-cased

    Raises:
        InvalidTokenMetadataError
    """
    name = (token_name or "").strip()
    symbol = (token_symbol or "").strip()
    if not name:
        raise InvalidTokenMetadataError("Token name is required")
    if not symbol:
        raise InvalidTokenMetadataError("Token symbol is required")
    if len(symbol) > MAX_SYMBOL_LENGTH:
        raise InvalidTokenMetadataError(
            f"Token symbol should be {MAX_SYMBOL_LENGTH} characters or less"
        )
    if not _SYMBOL_PATTERN.fullmatch(symbol):
        raise InvalidTokenMetadataError("Token symbol should only contain letters and numbers")
    return name, symbol.upper()


# =============================================================================
# Workflow
# =============================================================================

class CampaignWorkflow:
    """
    Campaign actions for one signer.

    Args:
        chain: ChainClient bound to the signer
        config: Contract addresses and target chain id
        engine: DecryptionEngine (built from chain/config if omitted)
        encryptor: FHE input encryptor, required by contribute()
        clock: Unix time in seconds
    """

    def __init__(
        self,
        chain: ChainClient,
        config: NetworkConfig,
        engine: Optional[DecryptionEngine] = None,
        encryptor: Optional[InputEncryptor] = None,
        clock: Callable[[], float] = time.time,
    ):
        self.chain = chain
        self.config = config
        self.address = config.campaign_address
        self.engine = engine or DecryptionEngine(
            chain, config.campaign_address, config.vault_address, clock=clock,
        )
        self.encryptor = encryptor

    async def _prepare_write(self) -> str:
        account = self.chain.require_account()
        await self.chain.switch_chain(self.config.chain_id)
        return account

    # =========================================================================
    # Writes
    # =========================================================================

    async def create_campaign(
        self,
        title: str,
        description: str,
        target: Amount,
        duration_days: float,
    ) -> Optional[int]:
        """
        Create a campaign.

        Args:
            title: Non-empty title
            description: Free text
            target: Target amount (ether string, or int base units)
            duration_days: Days until the deadline

        Returns:
            New campaign id (from CampaignCreated), or None if not emitted
        """
        title = (title or "").strip()
        if not title:
            raise InvalidCampaignError("Please fill in all fields")
        target_wei = parse_amount(target)
        if duration_days is None or duration_days <= 0:
            raise InvalidCampaignError("Duration must be greater than 0 days")
        duration_seconds = int(duration_days * SECONDS_PER_DAY)

        await self._prepare_write()
        logger.info(f"Creating campaign '{title}' target={target_wei} duration={duration_seconds}s")
        receipt = await self.chain.transact(
            self.address,
            "createCampaign",
            [title, description or "", target_wei, duration_seconds],
        )

        events = self.chain.decode_events(self.address, "CampaignCreated", receipt)
        if not events:
            logger.warning(f"No CampaignCreated event in {receipt.tx_hash}")
            return None
        campaign_id = int(events[0]["campaignId"])
        logger.info(f"✅ Campaign {campaign_id} created")
        return campaign_id

    async def contribute(self, campaign_id: int, amount: Amount) -> Receipt:
        """Encrypt `amount` and contribute it from the vault."""
        account = self.chain.require_account()
        amount_wei = parse_amount(amount)
        if self.encryptor is None:
            raise PreconditionError("No input encryptor configured")

        await self.chain.switch_chain(self.config.chain_id)
        logger.info(f"💰 Contributing {amount_wei} wei to campaign {campaign_id}")
        handle, proof = await self.encryptor.encrypt64(amount_wei, self.address, account)
        receipt = await self.chain.transact(self.address, "contribute", [campaign_id, handle, proof])
        logger.info(f"✅ Contribution confirmed: {receipt.tx_hash}")
        return receipt

    async def claim_tokens(self, campaign_id: int) -> Receipt:
        """
        Claim reward tokens.

        The contribution is decrypted first; a zero contribution raises
        NoContributionFound and no claim is sent.
        """
        account = await self._prepare_write()
        result = await self.engine.resolve_plaintext(
            MY_CONTRIBUTION, ScopeKey(campaign_id=campaign_id, user=account),
        )
        if result.cleartext == 0:
            raise NoContributionFound(campaign_id)

        logger.info(f"Claiming tokens for campaign {campaign_id} (contribution {result.cleartext})")
        receipt = await self.chain.transact(self.address, "claimTokens", [campaign_id])
        logger.info(f"✅ Tokens claimed: {receipt.tx_hash}")
        return receipt

    async def finalize_campaign(
        self,
        campaign_id: int,
        token_name: str,
        token_symbol: str,
    ) -> Receipt:
        """Decrypt the total raised, then finalize with the reward token."""
        token_name, token_symbol = validate_token_metadata(token_name, token_symbol)
        await self._prepare_write()

        result = await self.engine.resolve_plaintext(TOTAL_RAISED, ScopeKey(campaign_id=campaign_id))
        logger.info(f"Finalizing campaign {campaign_id}: total raised {result.cleartext}")

        receipt = await self.chain.transact(
            self.address, "finalizeCampaign", [campaign_id, token_name, token_symbol],
        )
        logger.info(f"✅ Campaign {campaign_id} finalized")
        return receipt

    async def cancel_campaign(self, campaign_id: int) -> Receipt:
        await self._prepare_write()
        receipt = await self.chain.transact(self.address, "cancelCampaign", [campaign_id])
        logger.info(f"✅ Campaign {campaign_id} cancelled")
        return receipt

    # =========================================================================
    # Reads
    # =========================================================================

    async def get_campaign(self, campaign_id: int) -> Campaign:
        data = await self.chain.read(self.address, "getCampaign", [campaign_id])
        return Campaign.from_contract_tuple(campaign_id, data)

    async def get_campaign_count(self) -> int:
        return int(await self.chain.read(self.address, "campaignCount"))

    async def list_campaigns(self) -> List[Campaign]:
        """All campaigns, oldest first."""
        count = await self.get_campaign_count()
        return [await self.get_campaign(i) for i in range(count)]

    def _user(self, user: Optional[str]) -> str:
        if user is None:
            return self.chain.require_account()
        return Web3.to_checksum_address(user)

    async def has_contribution(self, campaign_id: int, user: Optional[str] = None) -> bool:
        return bool(await self.chain.read(self.address, "hasContribution", [campaign_id, self._user(user)]))

    async def has_claimed(self, campaign_id: int, user: Optional[str] = None) -> bool:
        return bool(await self.chain.read(self.address, "hasClaimed", [campaign_id, self._user(user)]))

    async def get_contributors(self, campaign_id: int) -> List[str]:
        return list(await self.chain.read(self.address, "getCampaignContributors", [campaign_id]))

    async def get_contribution_status(self, campaign_id: int, user: Optional[str] = None) -> DecryptionRecord:
        data = await self.chain.read(
            self.address, "getContributionStatus", [campaign_id, self._user(user)],
        )
        return DecryptionRecord.from_contract_tuple(data)

    async def get_total_raised_status(self, campaign_id: int) -> DecryptionRecord:
        data = await self.chain.read(self.address, "getTotalRaisedStatus", [campaign_id])
        return DecryptionRecord.from_contract_tuple(data)

    async def get_encrypted_contribution(self, campaign_id: int, user: Optional[str] = None) -> str:
        handle = await self.chain.read(
            self.address, "getEncryptedContribution", [campaign_id, self._user(user)],
        )
        return Web3.to_hex(handle) if isinstance(handle, bytes) else handle

    async def get_encrypted_total_raised(self, campaign_id: int) -> str:
        handle = await self.chain.read(self.address, "getEncryptedTotalRaised", [campaign_id])
        return Web3.to_hex(handle) if isinstance(handle, bytes) else handle
