# cipherfund/decrypt/status.py
"""
CipherFund Decrypt: Status Model

The contract keeps one DecryptionRecord per encrypted quantity instance.
The client only observes it and triggers transitions:

    NONE --request--> PROCESSING --submit proof--> DECRYPTED (cacheExpiry set)

A DECRYPTED record whose cacheExpiry has passed is stale. The contract does
not reset it, so staleness is judged here.
"""

from __future__ import annotations

import time
from dataclasses import dataclass
from enum import IntEnum
from typing import Optional, Sequence


class DecryptStatus(IntEnum):
    """Decryption status (matches Solidity CommonStruct.DecryptStatus)."""
    NONE = 0
    PROCESSING = 1
    DECRYPTED = 2


@dataclass(frozen=True)
class DecryptionRecord:
    """
    On-chain decryption state of one encrypted quantity.

    Attributes:
        status: NONE / PROCESSING / DECRYPTED
        value: Cached plaintext (meaningful only when fresh)
        cache_expiry: Unix timestamp (seconds) the cached value expires at
    """
    status: DecryptStatus
    value: int
    cache_expiry: int

    @classmethod
    def from_contract_tuple(cls, data: Sequence[int]) -> DecryptionRecord:
        """Create from a get<Kind>Status() return tuple."""
        return cls(
            status=DecryptStatus(int(data[0])),
            value=int(data[1]),
            cache_expiry=int(data[2]),
        )

    @classmethod
    def empty(cls) -> DecryptionRecord:
        return cls(DecryptStatus.NONE, 0, 0)

    def is_expired(self, now: Optional[float] = None) -> bool:
        """Cache expiry reached (expiry <= now)."""
        if now is None:
            now = time.time()
        return self.cache_expiry <= now

    def is_fresh(self, now: Optional[float] = None, unset_value: Optional[int] = None) -> bool:
        """DECRYPTED, not expired, and not holding the kind's unset sentinel."""
        if self.status != DecryptStatus.DECRYPTED:
            return False
        if unset_value is not None and self.value == unset_value:
            return False
        return not self.is_expired(now)
