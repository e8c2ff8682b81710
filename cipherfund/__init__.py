# cipherfund/__init__.py
"""
CipherFund: Confidential Fundraising Client v0.1

Client for an encrypted campaign registry (ConfidentialFundraising) and an
encrypted value vault (ShareVault). Contribution amounts, campaign totals
and vault balances live on-chain as FHE ciphertexts; reading any of them
runs the self-relaying decryption protocol.

Submodules:
    chain/      - Contract access
                  - Web3ChainClient: web3.py, local signing
                  - MockChainClient: in-memory contracts
    relayer/    - Public decryption
                  - HTTPRelayerClient: relayer HTTP API (aiohttp)
                  - init_relayer / get_relayer: process-wide client
    decrypt/    - Self-relaying decryption
                  - DecryptionEngine: resumable 4-step protocol
                  - MY_CONTRIBUTION / TOTAL_RAISED / AVAILABLE_BALANCE
    workflows/  - High-level actions
                  - CampaignWorkflow: create, contribute, claim, finalize, cancel
                  - VaultWorkflow: deposit, withdraw

Quick Start:
    from cipherfund import (
        NetworkConfig, Web3ChainClient, HTTPRelayerClient, init_relayer,
        CampaignWorkflow, VaultWorkflow, CAMPAIGN_ABI, VAULT_ABI,
    )

    config = NetworkConfig.from_env()
    chain = Web3ChainClient(
        rpc_url=config.rpc_url,
        contracts={config.campaign_address: CAMPAIGN_ABI, config.vault_address: VAULT_ABI},
        private_key=config.private_key,
        chain_id=config.chain_id,
    )
    init_relayer(HTTPRelayerClient(config.relayer_url))

    vault = VaultWorkflow(chain, config)
    await vault.deposit("1.0")
    await vault.withdraw("0.25")       # decrypts available balance first

    campaigns = CampaignWorkflow(chain, config)
    await campaigns.finalize_campaign(0, "Solar Token", "SOL")
    await campaigns.claim_tokens(0)

Version: 0.1.0
"""

# =============================================================================
# Errors
# =============================================================================
from .errors import (
    CipherFundError,
    ConfigError,
    PreconditionError,
    NoWalletConnected,
    InvalidAmountError,
    InvalidTokenMetadataError,
    InvalidCampaignError,
    NoContributionFound,
    RelayerError,
    RelayerNotInitialized,
    RelayerUnavailable,
    DecryptionRejected,
    ChainError,
    TransactionReverted,
    NetworkMismatchError,
    describe_error,
)

# =============================================================================
# Config / Units
# =============================================================================
from .config import (
    NetworkConfig,
    SEPOLIA_CHAIN_ID,
    SEPOLIA_RPC_URL,
    SEPOLIA_RELAYER_URL,
)

from .units import (
    MAX_UINT64,
    parse_amount,
    validate_uint64_amount,
    format_amount,
)

# =============================================================================
# Chain
# =============================================================================
from .chain import (
    ChainClient,
    Web3ChainClient,
    MockChainClient,
    Receipt,
    CAMPAIGN_ABI,
    VAULT_ABI,
)

# =============================================================================
# Relayer
# =============================================================================
from .relayer import (
    RelayerClient,
    HTTPRelayerClient,
    MockRelayerClient,
    DecryptedValue,
    init_relayer,
    get_relayer,
    reset_relayer,
)

# =============================================================================
# Decrypt
# =============================================================================
from .decrypt import (
    DecryptStatus,
    DecryptionRecord,
    QuantityKind,
    ScopeKey,
    MY_CONTRIBUTION,
    TOTAL_RAISED,
    AVAILABLE_BALANCE,
    DecryptionEngine,
    DecryptionResult,
    PlannedAction,
)

# =============================================================================
# Workflows
# =============================================================================
from .workflows import (
    CampaignWorkflow,
    VaultWorkflow,
    Campaign,
    CampaignState,
    InputEncryptor,
    MockInputEncryptor,
)


__all__ = [
    # Errors
    "CipherFundError", "ConfigError", "PreconditionError", "NoWalletConnected",
    "InvalidAmountError", "InvalidTokenMetadataError", "InvalidCampaignError",
    "NoContributionFound", "RelayerError", "RelayerNotInitialized",
    "RelayerUnavailable", "DecryptionRejected", "ChainError",
    "TransactionReverted", "NetworkMismatchError", "describe_error",
    # Config / Units
    "NetworkConfig", "SEPOLIA_CHAIN_ID", "SEPOLIA_RPC_URL", "SEPOLIA_RELAYER_URL",
    "MAX_UINT64", "parse_amount", "validate_uint64_amount", "format_amount",
    # Chain
    "ChainClient", "Web3ChainClient", "MockChainClient", "Receipt",
    "CAMPAIGN_ABI", "VAULT_ABI",
    # Relayer
    "RelayerClient", "HTTPRelayerClient", "MockRelayerClient", "DecryptedValue",
    "init_relayer", "get_relayer", "reset_relayer",
    # Decrypt
    "DecryptStatus", "DecryptionRecord", "QuantityKind", "ScopeKey",
    "MY_CONTRIBUTION", "TOTAL_RAISED", "AVAILABLE_BALANCE",
    "DecryptionEngine", "DecryptionResult", "PlannedAction",
    # Workflows
    "CampaignWorkflow", "VaultWorkflow", "Campaign", "CampaignState",
    "InputEncryptor", "MockInputEncryptor",
]

__version__ = "0.1.0"
