"""
CipherFund Decrypt Layer

Self-relaying decryption of encrypted contract quantities.

Components:
    DecryptStatus, DecryptionRecord: On-chain decryption state
    QuantityKind: Method descriptor per encrypted quantity
    DecryptionEngine: Resumable 4-step protocol

Usage:
    from cipherfund.decrypt import DecryptionEngine, TOTAL_RAISED, ScopeKey

    engine = DecryptionEngine(chain, campaign_address, vault_address)
    result = await engine.resolve_plaintext(TOTAL_RAISED, ScopeKey(campaign_id=0))
"""

from .status import (
    DecryptStatus,
    DecryptionRecord,
)

from .kinds import (
    QuantityKind,
    ScopeKey,
    ContractRole,
    MY_CONTRIBUTION,
    TOTAL_RAISED,
    AVAILABLE_BALANCE,
    KINDS,
    get_kind,
)

from .engine import (
    DecryptionEngine,
    DecryptionResult,
    PlannedAction,
    normalize_handle,
)

__all__ = [
    # Status
    "DecryptStatus",
    "DecryptionRecord",
    # Kinds
    "QuantityKind",
    "ScopeKey",
    "ContractRole",
    "MY_CONTRIBUTION",
    "TOTAL_RAISED",
    "AVAILABLE_BALANCE",
    "KINDS",
    "get_kind",
    # Engine
    "DecryptionEngine",
    "DecryptionResult",
    "PlannedAction",
    "normalize_handle",
]
