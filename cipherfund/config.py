# cipherfund/config.py
"""
CipherFund: Network Configuration

Where the contracts live and how to reach the chain and the relayer.

Usage:
    config = NetworkConfig.from_env()        # CIPHERFUND_* variables
    config = NetworkConfig(
        campaign_address="0x...",
        vault_address="0x...",
        private_key="0x...",
    )
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from typing import Optional, Mapping

from web3 import Web3

from .errors import ConfigError


# =============================================================================
# Constants
# =============================================================================

SEPOLIA_CHAIN_ID = 11155111
SEPOLIA_RPC_URL = "https://ethereum-sepolia-rpc.publicnode.com"
SEPOLIA_RELAYER_URL = "https://relayer.testnet.zama.cloud"

DEFAULT_CONFIRMATION_TIMEOUT = 120.0    # seconds to wait for a receipt
DEFAULT_POLL_LATENCY = 1.0

ENV_PREFIX = "CIPHERFUND_"


# =============================================================================
# NetworkConfig
# =============================================================================

@dataclass
class NetworkConfig:
    """
    Deployment and endpoint settings.

    Attributes:
        campaign_address: ConfidentialFundraising contract
        vault_address: ShareVault contract
        chain_id: Chain every write must target
        rpc_url: JSON-RPC endpoint
        relayer_url: Decryption relayer base URL
        private_key: Signing key; None for read-only use
        confirmation_timeout: Seconds to wait for a receipt
        poll_latency: Receipt polling interval
    """
    campaign_address: str
    vault_address: str
    chain_id: int = SEPOLIA_CHAIN_ID
    rpc_url: str = SEPOLIA_RPC_URL
    relayer_url: str = SEPOLIA_RELAYER_URL
    private_key: Optional[str] = None
    confirmation_timeout: float = DEFAULT_CONFIRMATION_TIMEOUT
    poll_latency: float = DEFAULT_POLL_LATENCY

    def __post_init__(self):
        for name in ("campaign_address", "vault_address"):
            value = getattr(self, name)
            if not value or not Web3.is_address(value):
                raise ConfigError(f"{name} is not a valid address: {value!r}")
            setattr(self, name, Web3.to_checksum_address(value))
        if self.confirmation_timeout <= 0:
            raise ConfigError("confirmation_timeout must be positive")

    @property
    def can_sign(self) -> bool:
        return bool(self.private_key)

    @classmethod
    def from_env(
        cls,
        environ: Optional[Mapping[str, str]] = None,
        prefix: str = ENV_PREFIX,
    ) -> NetworkConfig:
        """
        Build from environment variables.

        Required: {prefix}CAMPAIGN_ADDRESS, {prefix}VAULT_ADDRESS
        Optional: {prefix}CHAIN_ID, RPC_URL, RELAYER_URL, PRIVATE_KEY,
                  CONFIRMATION_TIMEOUT
        """
        env = os.environ if environ is None else environ

        def get(name: str) -> Optional[str]:
            value = env.get(prefix + name)
            return value.strip() if value and value.strip() else None

        missing = [
            prefix + name
            for name in ("CAMPAIGN_ADDRESS", "VAULT_ADDRESS")
            if get(name) is None
        ]
        if missing:
            raise ConfigError(
                "Please set " + " and ".join(missing) + " environment variables"
            )

        kwargs = {
            "campaign_address": get("CAMPAIGN_ADDRESS"),
            "vault_address": get("VAULT_ADDRESS"),
            "private_key": get("PRIVATE_KEY"),
        }
        if get("RPC_URL"):
            kwargs["rpc_url"] = get("RPC_URL")
        if get("RELAYER_URL"):
            kwargs["relayer_url"] = get("RELAYER_URL")
        try:
            if get("CHAIN_ID"):
                kwargs["chain_id"] = int(get("CHAIN_ID"), 0)
            if get("CONFIRMATION_TIMEOUT"):
                kwargs["confirmation_timeout"] = float(get("CONFIRMATION_TIMEOUT"))
        except ValueError as e:
            raise ConfigError(f"Invalid numeric setting: {e}")

        return cls(**kwargs)
