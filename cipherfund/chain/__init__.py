"""
CipherFund Chain Layer

Contract access for the campaign registry and the vault.

Components:
    ChainClient: Abstract read/write/receipt interface
    Web3ChainClient: web3.py implementation (local signing)
    MockChainClient: In-memory simulation of both contracts

Usage:
    from cipherfund.chain import Web3ChainClient, CAMPAIGN_ABI, VAULT_ABI

    chain = Web3ChainClient(
        rpc_url="https://ethereum-sepolia-rpc.publicnode.com",
        contracts={campaign_address: CAMPAIGN_ABI, vault_address: VAULT_ABI},
        private_key="0x...",
    )
    count = await chain.read(campaign_address, "campaignCount")
"""

from .client import (
    ChainClient,
    Web3ChainClient,
    Receipt,
    load_abi,
    error_selectors,
    CAMPAIGN_ABI,
    VAULT_ABI,
)

from .mock import (
    MockChainClient,
    mock_decryption_proof,
    MOCK_CAMPAIGN_ADDRESS,
    MOCK_VAULT_ADDRESS,
    MOCK_CACHE_TIMEOUT,
    ZERO_HANDLE,
)

__all__ = [
    # Client
    "ChainClient",
    "Web3ChainClient",
    "Receipt",
    "load_abi",
    "error_selectors",
    "CAMPAIGN_ABI",
    "VAULT_ABI",
    # Mock
    "MockChainClient",
    "mock_decryption_proof",
    "MOCK_CAMPAIGN_ADDRESS",
    "MOCK_VAULT_ADDRESS",
    "MOCK_CACHE_TIMEOUT",
    "ZERO_HANDLE",
]
