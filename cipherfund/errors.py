# cipherfund/errors.py
"""
CipherFund: Error Taxonomy

Three families of failure, none of them fatal to the process:

    Precondition  - detected before any chain call, surfaced verbatim
    Relayer       - decryption service unavailable or returned nothing usable
    Chain         - reverted / rejected transactions, wrong network

Every workflow call can be re-invoked after any of these: all state lives
on-chain and the decryption engine resumes from the recorded status.

describe_error() turns known contract revert reasons into user-facing text.
"""

from __future__ import annotations

from typing import Optional, Tuple


# =============================================================================
# Base
# =============================================================================

class CipherFundError(Exception):
    """Base error for all CipherFund failures."""
    pass


class ConfigError(CipherFundError):
    """Configuration incomplete or invalid."""
    pass


# =============================================================================
# Precondition Errors
# =============================================================================

class PreconditionError(CipherFundError):
    """Client-side validation failed before any chain interaction."""
    pass


class NoWalletConnected(PreconditionError):
    """Operation needs a signing account and none is configured."""
    def __init__(self, message: str = "No wallet connected"):
        super().__init__(message)


class InvalidAmountError(PreconditionError):
    """Amount is not a positive value representable as uint64."""
    pass


class InvalidTokenMetadataError(PreconditionError):
    """Token name / symbol rejected."""
    pass


class InvalidCampaignError(PreconditionError):
    """Campaign parameters rejected (title, target, duration)."""
    pass


class NoContributionFound(PreconditionError):
    """Decrypted contribution is zero; nothing to claim."""
    def __init__(self, campaign_id: int):
        self.campaign_id = campaign_id
        super().__init__(f"Contribution amount is 0 for campaign {campaign_id}")


# =============================================================================
# Relayer Errors
# =============================================================================

class RelayerError(CipherFundError):
    """Base relayer error."""
    pass


class RelayerNotInitialized(RelayerError):
    """Relayer singleton used before init_relayer()."""
    def __init__(self):
        super().__init__("Relayer not initialized. Call init_relayer() first.")


class RelayerUnavailable(RelayerError):
    """Decryption engine has no relayer client to talk to."""
    def __init__(self, message: str = "Relayer client is not available"):
        super().__init__(message)


class DecryptionRejected(RelayerError):
    """Relayer answered without a usable cleartext or proof."""
    def __init__(self, handle: str, detail: str):
        self.handle = handle
        self.detail = detail
        super().__init__(f"Public decryption of {handle} rejected: {detail}")


# =============================================================================
# Chain Errors
# =============================================================================

class ChainError(CipherFundError):
    """Base chain error. `reason` holds the decoded revert name or raw message."""
    def __init__(self, message: str, reason: Optional[str] = None):
        super().__init__(message)
        self.reason = reason or message


class TransactionReverted(ChainError):
    """Transaction reverted at submission or in its receipt."""
    def __init__(
        self,
        method: str,
        reason: Optional[str] = None,
        tx_hash: Optional[str] = None,
    ):
        self.method = method
        self.tx_hash = tx_hash
        detail = reason or "Transaction reverted"
        where = f" ({tx_hash})" if tx_hash else ""
        super().__init__(f"{method} failed{where}: {detail}", reason=detail)


class NetworkMismatchError(ChainError):
    """Connected network is not the configured one."""
    def __init__(self, expected: int, actual: int):
        self.expected = expected
        self.actual = actual
        super().__init__(
            f"Wrong network: connected to chain {actual}, expected {expected}",
            reason="NetworkMismatch",
        )


# =============================================================================
# Revert Reason Mapping
# =============================================================================

# (substring to look for, user-facing message); first match wins
KNOWN_REASONS: Tuple[Tuple[str, str], ...] = (
    ("AlreadyClaimed", "You have already claimed your tokens."),
    ("NoTokensToClaim", "No tokens available to claim (campaign may have failed)."),
    ("CampaignStillActive", "Campaign deadline has not passed yet"),
    ("CampaignEnded", "Campaign has already ended"),
    ("CampaignNotExist", "Campaign does not exist"),
    ("CampaignNotFinalized", "Campaign has not been finalized yet"),
    ("AlreadyFinalized", "Campaign is already finalized"),
    ("AlreadyCancelled", "Campaign is already cancelled"),
    ("OnlyOwner", "Only the campaign owner can perform this action"),
    ("MyContributionNotDecrypted", "Unable to decrypt contribution. Please try again."),
    ("ContributionNotDecrypted", "Unable to decrypt contribution. Please try again."),
    ("TotalRaisedNotDecrypted", "Unable to decrypt total raised. Please try again."),
    ("InsufficientAvailableBalance", "Insufficient available balance for this withdrawal"),
    ("DecryptionCacheExpired", "Your balance cache expired. Please refresh and try again."),
    ("CacheExpired", "Decrypted value expired. Please try again."),
    ("DecryptionProcessing", "Balance decryption is still processing. Please wait..."),
    ("DataProcessing", "Decryption is still processing. Please wait..."),
    ("MustDecryptFirst", "Unable to decrypt available balance. Please try again."),
    ("UserHasNoBalance", "You have no balance in the vault. Please deposit first."),
    ("InsufficientBalance", "Insufficient vault balance. Please deposit more funds."),
    ("InvalidTarget", "Target must be greater than 0"),
    ("InvalidDuration", "Duration must be greater than 0"),
    ("EmptyTitle", "Title cannot be empty"),
    ("TokenNameRequired", "Token name is required"),
    ("TokenSymbolRequired", "Token symbol is required"),
    ("InvalidKMSSignatures", "Decryption proof was rejected by the contract"),
    ("Decryption timeout", "Decryption took too long. Please try again."),
    ("insufficient funds", "Make sure you have enough ETH to pay for gas"),
    ("user rejected", "Transaction was cancelled."),
    ("denied", "Transaction was cancelled."),
)


def describe_error(exc: BaseException) -> str:
    """
    User-facing message for an error.

    Chain errors are matched on their decoded reason, everything else on
    its message. Unrecognized errors pass through with their raw text.
    """
    if isinstance(exc, NoContributionFound):
        return "No contribution found to claim tokens for."

    if isinstance(exc, DecryptionRejected):
        return "Unable to decrypt value. Please try again."

    text = exc.reason if isinstance(exc, ChainError) else str(exc)
    for needle, message in KNOWN_REASONS:
        if needle in text:
            return message

    return str(exc) or type(exc).__name__
