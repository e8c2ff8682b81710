# cipherfund/tests/support.py
"""
Shared test fixtures: an in-memory deployment (mock chain, relayer and
input encryptor) wired into the workflows, plus the output helpers.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional, Dict

from web3 import Web3

from ..config import NetworkConfig
from ..chain.mock import MockChainClient, MOCK_CAMPAIGN_ADDRESS, MOCK_VAULT_ADDRESS
from ..relayer.client import MockRelayerClient
from ..decrypt import DecryptionEngine
from ..workflows import CampaignWorkflow, VaultWorkflow, MockInputEncryptor


ALICE = Web3.to_checksum_address("0x" + "a" * 40)
BOB = Web3.to_checksum_address("0x" + "b" * 40)

ETHER = 10**18

MOCK_ENV = {
    "CIPHERFUND_CAMPAIGN_ADDRESS": MOCK_CAMPAIGN_ADDRESS,
    "CIPHERFUND_VAULT_ADDRESS": MOCK_VAULT_ADDRESS,
}


# =============================================================================
# Output
# =============================================================================

def print_header(title: str) -> None:
    """Print test section header."""
    print(f"\n{'=' * 70}")
    print(f"  {title}")
    print('=' * 70)


def print_step(step: str) -> None:
    """Print test step."""
    print(f"\n  → {step}")


def print_result(passed: bool, details: str = "") -> None:
    """Print test result."""
    status = "✅ PASS" if passed else "❌ FAIL"
    if details:
        print(f"    {status}: {details}")
    else:
        print(f"    {status}")


# =============================================================================
# Deployment
# =============================================================================

@dataclass
class Deployment:
    chain: MockChainClient
    relayer: MockRelayerClient
    config: NetworkConfig
    engine: DecryptionEngine
    campaigns: CampaignWorkflow
    vault: VaultWorkflow
    encryptor: MockInputEncryptor

    def writes(self):
        return [m for m, _ in self.chain.writes()]


def make_deployment(
    account: Optional[str] = ALICE,
    funds: Optional[Dict[str, int]] = None,
) -> Deployment:
    """Mock deployment with `account` signing and optional vault balances."""
    chain = MockChainClient()
    chain.set_account(account)
    for user, amount in (funds or {}).items():
        chain.fund(user, amount)

    relayer = MockRelayerClient(chain)
    config = NetworkConfig(
        campaign_address=chain.campaign_address,
        vault_address=chain.vault_address,
        chain_id=chain.chain_id,
    )
    engine = DecryptionEngine(
        chain, config.campaign_address, config.vault_address,
        relayer=relayer, clock=chain.time,
    )
    encryptor = MockInputEncryptor(chain)
    return Deployment(
        chain=chain,
        relayer=relayer,
        config=config,
        engine=engine,
        campaigns=CampaignWorkflow(chain, config, engine=engine, encryptor=encryptor, clock=chain.time),
        vault=VaultWorkflow(chain, config, engine=engine, clock=chain.time),
        encryptor=encryptor,
    )
