# cipherfund/decrypt/kinds.py
"""
CipherFund Decrypt: Quantity Kinds

The three encrypted quantities share one 4-step protocol and differ only in
which contract owns them and which arguments each method takes. A
QuantityKind captures exactly that, so the engine is written once.

    Kind               Contract   Scope
    MY_CONTRIBUTION    campaign   (campaign_id, user)
    TOTAL_RAISED       campaign   (campaign_id,)
    AVAILABLE_BALANCE  vault      (user,)  - user is the transaction sender
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Optional, Tuple, List, Any, Dict


class ContractRole(Enum):
    """Which deployed contract owns a quantity."""
    CAMPAIGN = "campaign"
    VAULT = "vault"


@dataclass(frozen=True)
class ScopeKey:
    """Identifies one encrypted value: campaign id and/or user address."""
    campaign_id: Optional[int] = None
    user: Optional[str] = None

    def __str__(self) -> str:
        parts = []
        if self.campaign_id is not None:
            parts.append(f"campaign={self.campaign_id}")
        if self.user is not None:
            parts.append(f"user={self.user}")
        return ",".join(parts) or "-"


@dataclass(frozen=True)
class QuantityKind:
    """
    Method descriptor for one encrypted quantity.

    Each *_scope tuple lists which ScopeKey fields are passed, in order,
    to the corresponding contract method. Fields not listed are implied
    by the transaction sender.
    """
    name: str
    contract: ContractRole
    request_method: str
    handle_method: str
    submit_method: str
    status_method: str
    request_scope: Tuple[str, ...]
    handle_scope: Tuple[str, ...]
    submit_scope: Tuple[str, ...]
    status_scope: Tuple[str, ...]
    sender_scoped: bool = False     # scope.user must be the signer
    unset_value: Optional[int] = None

    @property
    def scope_fields(self) -> Tuple[str, ...]:
        fields: List[str] = []
        for group in (self.request_scope, self.handle_scope, self.submit_scope, self.status_scope):
            for f in group:
                if f not in fields:
                    fields.append(f)
        if self.sender_scoped and "user" not in fields:
            fields.append("user")
        return tuple(fields)

    @staticmethod
    def _args(fields: Tuple[str, ...], scope: ScopeKey) -> List[Any]:
        args = []
        for f in fields:
            value = getattr(scope, f)
            if value is None:
                raise ValueError(f"Scope is missing '{f}'")
            args.append(value)
        return args

    def request_args(self, scope: ScopeKey) -> List[Any]:
        return self._args(self.request_scope, scope)

    def handle_args(self, scope: ScopeKey) -> List[Any]:
        return self._args(self.handle_scope, scope)

    def status_args(self, scope: ScopeKey) -> List[Any]:
        return self._args(self.status_scope, scope)

    def submit_args(self, scope: ScopeKey, cleartext: int, proof: bytes) -> List[Any]:
        return self._args(self.submit_scope, scope) + [cleartext, proof]

    def __str__(self) -> str:
        return self.name


# =============================================================================
# Kinds
# =============================================================================

MY_CONTRIBUTION = QuantityKind(
    name="MyContribution",
    contract=ContractRole.CAMPAIGN,
    request_method="requestMyContributionDecryption",
    handle_method="getEncryptedContribution",
    submit_method="submitMyContributionDecryption",
    status_method="getContributionStatus",
    request_scope=("campaign_id",),
    handle_scope=("campaign_id", "user"),
    submit_scope=("campaign_id",),
    status_scope=("campaign_id", "user"),
    sender_scoped=True,
)

TOTAL_RAISED = QuantityKind(
    name="TotalRaised",
    contract=ContractRole.CAMPAIGN,
    request_method="requestTotalRaisedDecryption",
    handle_method="getEncryptedTotalRaised",
    submit_method="submitTotalRaisedDecryption",
    status_method="getTotalRaisedStatus",
    request_scope=("campaign_id",),
    handle_scope=("campaign_id",),
    submit_scope=("campaign_id",),
    status_scope=("campaign_id",),
)

AVAILABLE_BALANCE = QuantityKind(
    name="AvailableBalance",
    contract=ContractRole.VAULT,
    request_method="requestAvailableBalanceDecryption",
    handle_method="getPendingAvailableBalanceHandle",
    submit_method="submitAvailableBalanceDecryption",
    status_method="getAvailableBalanceStatus",
    request_scope=(),
    handle_scope=(),
    submit_scope=(),
    status_scope=(),
    sender_scoped=True,
)

KINDS: Dict[str, QuantityKind] = {
    k.name: k for k in (MY_CONTRIBUTION, TOTAL_RAISED, AVAILABLE_BALANCE)
}


def get_kind(name: str) -> QuantityKind:
    """Look up a kind by name (case-insensitive, '-' and '_' ignored)."""
    key = name.replace("-", "").replace("_", "").lower()
    for kind_name, kind in KINDS.items():
        if kind_name.lower() == key:
            return kind
    raise ValueError(f"Unknown quantity kind: {name}")
