# cipherfund/workflows/vault.py
"""
CipherFund Workflows: Vault

Deposits and withdrawals on the ShareVault contract.

    deposit     value-carrying write, range-checked against uint64
    withdraw    resolve AvailableBalance, then withdraw the requested amount

The withdrawal argument is always the requested amount. Resolving the
available balance only makes the contract's cached value fresh enough for
its own sufficiency check.

Usage:
    vault = VaultWorkflow(chain, config)
    await vault.deposit("1.0")
    await vault.withdraw("0.25")
"""

from __future__ import annotations

import logging
import time
from typing import Optional, Tuple, Callable

from web3 import Web3

from ..config import NetworkConfig
from ..units import Amount, parse_amount
from ..chain.client import ChainClient, Receipt
from ..decrypt import (
    DecryptionEngine,
    DecryptionRecord,
    DecryptionResult,
    ScopeKey,
    AVAILABLE_BALANCE,
)


logger = logging.getLogger("cipherfund.vault")


class VaultWorkflow:
    """
    Vault actions for one signer.

    Args:
        chain: ChainClient bound to the signer
        config: Contract addresses and target chain id
        engine: DecryptionEngine (built from chain/config if omitted)
    """

    def __init__(
        self,
        chain: ChainClient,
        config: NetworkConfig,
        engine: Optional[DecryptionEngine] = None,
        clock: Callable[[], float] = time.time,
    ):
        self.chain = chain
        self.config = config
        self.address = config.vault_address
        self.engine = engine or DecryptionEngine(
            chain, config.campaign_address, config.vault_address, clock=clock,
        )

    async def _prepare_write(self) -> str:
        account = self.chain.require_account()
        await self.chain.switch_chain(self.config.chain_id)
        return account

    # =========================================================================
    # Writes
    # =========================================================================

    async def deposit(self, amount: Amount) -> Receipt:
        """Deposit ETH (ether string, or int base units)."""
        self.chain.require_account()
        amount_wei = parse_amount(amount)
        await self.chain.switch_chain(self.config.chain_id)

        logger.info(f"Depositing {amount_wei} wei into vault")
        receipt = await self.chain.transact(self.address, "deposit", value=amount_wei)
        logger.info(f"✅ Deposit confirmed: {receipt.tx_hash}")
        return receipt

    async def withdraw(self, amount: Amount) -> Receipt:
        """
        Withdraw `amount` of unlocked funds.

        Insufficient balance is checked by the contract and surfaces as
        TransactionReverted (InsufficientAvailableBalance).
        """
        self.chain.require_account()
        amount_wei = parse_amount(amount)
        await self.chain.switch_chain(self.config.chain_id)

        result = await self.engine.resolve_plaintext(AVAILABLE_BALANCE, ScopeKey())
        logger.info(f"Withdrawing {amount_wei} wei (available {result.cleartext})")

        receipt = await self.chain.transact(self.address, "withdraw", [amount_wei])
        logger.info(f"✅ Withdrawal confirmed: {receipt.tx_hash}")
        return receipt

    async def resolve_available_balance(self) -> DecryptionResult:
        """Decrypt the signer's available balance on-chain."""
        await self._prepare_write()
        return await self.engine.resolve_plaintext(AVAILABLE_BALANCE, ScopeKey())

    async def set_campaign_contract(self, campaign_address: Optional[str] = None) -> Receipt:
        """
        Point the vault at the campaign contract (vault owner only, once).

        Defaults to the configured campaign address.
        """
        target = Web3.to_checksum_address(campaign_address or self.config.campaign_address)
        await self._prepare_write()
        logger.info(f"🔧 Setting vault campaign contract to {target}")
        receipt = await self.chain.transact(self.address, "setCampaignContract", [target])
        logger.info("✅ ShareVault configured")
        return receipt

    # =========================================================================
    # Reads
    # =========================================================================

    async def get_available_balance_status(self) -> DecryptionRecord:
        return await self.engine.get_status(AVAILABLE_BALANCE, ScopeKey())

    async def get_encrypted_balance_and_locked(self) -> Tuple[str, str]:
        """(encrypted balance, encrypted locked total) handles of the signer."""
        self.chain.require_account()
        balance, locked = await self.chain.read(self.address, "getEncryptedBalanceAndLocked")
        return (
            Web3.to_hex(balance) if isinstance(balance, bytes) else balance,
            Web3.to_hex(locked) if isinstance(locked, bytes) else locked,
        )

    async def get_campaign_contract(self) -> str:
        return await self.chain.read(self.address, "campaignContract")
