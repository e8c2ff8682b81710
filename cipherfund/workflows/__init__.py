"""
CipherFund Workflows

Campaign and vault actions built on the decryption engine.

Components:
    CampaignWorkflow: create / contribute / claim / finalize / cancel
    VaultWorkflow: deposit / withdraw
    InputEncryptor: External FHE input encryption
"""

from .encryption import (
    InputEncryptor,
    MockInputEncryptor,
)

from .campaign import (
    Campaign,
    CampaignState,
    CampaignWorkflow,
    validate_token_metadata,
)

from .vault import (
    VaultWorkflow,
)

__all__ = [
    "InputEncryptor",
    "MockInputEncryptor",
    "Campaign",
    "CampaignState",
    "CampaignWorkflow",
    "validate_token_metadata",
    "VaultWorkflow",
]
