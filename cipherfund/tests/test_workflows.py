# cipherfund/tests/test_workflows.py
"""
CipherFund Workflows: Campaign and Vault Tests

End-to-end scenarios against the in-memory contracts:
    1. Campaign lifecycle (create, contribute, finalize, claim)
    2. Claim gating on a zero contribution
    3. Token metadata validation before any chain call
    4. Range validation for deposit / withdraw / contribute
    5. Withdraw with a stale available-balance cache
    6. Vault configuration and network switching

Run:
    python -m cipherfund.tests.test_workflows
"""

from __future__ import annotations

import asyncio

import pytest

from ..errors import (
    InvalidAmountError,
    InvalidCampaignError,
    InvalidTokenMetadataError,
    NoContributionFound,
    NoWalletConnected,
    PreconditionError,
    TransactionReverted,
    describe_error,
)
from ..units import MAX_UINT64
from ..chain.mock import MockRecord
from ..decrypt import DecryptStatus, PlannedAction, ScopeKey, MY_CONTRIBUTION
from ..workflows import CampaignState, CampaignWorkflow, validate_token_metadata
from .support import (
    ALICE,
    BOB,
    ETHER,
    make_deployment,
    print_header,
    print_step,
    print_result,
)


DAY = 24 * 60 * 60


# =============================================================================
# Campaign Lifecycle
# =============================================================================

def test_campaign_lifecycle():
    print_header("Campaign: create → contribute → finalize → claim")
    d = make_deployment(funds={BOB: 5000})

    print_step("Alice creates a campaign")
    campaign_id = asyncio.run(d.campaigns.create_campaign("Solar", "Roof panels", 1000, 1))
    campaign = asyncio.run(d.campaigns.get_campaign(campaign_id))
    print_result(campaign_id == 0, f"id={campaign_id} deadline={campaign.deadline}")
    assert campaign_id == 0
    assert campaign.owner == ALICE
    assert campaign.target_amount == 1000
    assert campaign.deadline == int(d.chain.time()) + DAY
    assert campaign.state(d.chain.time()) == CampaignState.ACTIVE
    assert asyncio.run(d.campaigns.get_campaign_count()) == 1

    print_step("Bob contributes 1500 wei")
    d.chain.set_account(BOB)
    asyncio.run(d.campaigns.contribute(campaign_id, 1500))
    assert asyncio.run(d.campaigns.has_contribution(campaign_id))
    assert asyncio.run(d.campaigns.get_contributors(campaign_id)) == [BOB]
    assert asyncio.run(d.campaigns.get_encrypted_contribution(campaign_id)).startswith("0x")

    print_step("Deadline passes, Alice finalizes")
    d.chain.advance(DAY)
    campaign = asyncio.run(d.campaigns.get_campaign(campaign_id))
    assert campaign.state(d.chain.time()) == CampaignState.ENDED
    assert campaign.can_finalize(d.chain.time())

    d.chain.set_account(ALICE)
    d.chain.reset_calls()
    asyncio.run(d.campaigns.finalize_campaign(campaign_id, "Solar Token", "sol"))
    assert d.writes() == [
        "requestTotalRaisedDecryption",
        "submitTotalRaisedDecryption",
        "finalizeCampaign",
    ]
    assert d.chain.writes("finalizeCampaign")[0][1] == (0, "Solar Token", "SOL")
    total = asyncio.run(d.campaigns.get_total_raised_status(campaign_id))
    assert total.status == DecryptStatus.DECRYPTED and total.value == 1500
    campaign = asyncio.run(d.campaigns.get_campaign(campaign_id))
    assert campaign.state(d.chain.time()) == CampaignState.FINALIZED
    assert campaign.has_token
    assert not campaign.can_cancel()

    print_step("Bob claims his tokens")
    d.chain.set_account(BOB)
    d.chain.reset_calls()
    asyncio.run(d.campaigns.claim_tokens(campaign_id))
    print_result(d.writes()[-1] == "claimTokens", str(d.writes()))
    assert d.writes() == [
        "requestMyContributionDecryption",
        "submitMyContributionDecryption",
        "claimTokens",
    ]
    assert asyncio.run(d.campaigns.has_claimed(campaign_id))

    print_step("Claiming twice surfaces AlreadyClaimed")
    with pytest.raises(TransactionReverted) as info:
        asyncio.run(d.campaigns.claim_tokens(campaign_id))
    assert info.value.reason == "AlreadyClaimed"
    assert describe_error(info.value) == "You have already claimed your tokens."


def test_finalize_before_deadline_reverts():
    d = make_deployment()
    asyncio.run(d.campaigns.create_campaign("Solar", "", 1000, 1))
    with pytest.raises(TransactionReverted) as info:
        asyncio.run(d.campaigns.finalize_campaign(0, "Solar Token", "SOL"))
    assert info.value.reason == "CampaignStillActive"
    assert describe_error(info.value) == "Campaign deadline has not passed yet"


def test_cancel_campaign():
    d = make_deployment(funds={BOB: 5000})
    asyncio.run(d.campaigns.create_campaign("Solar", "", 1000, 1))
    d.chain.set_account(BOB)
    asyncio.run(d.campaigns.contribute(0, 1500))
    assert d.chain.vault[BOB].total_locked == 1500

    print_step("Only the owner can cancel")
    with pytest.raises(TransactionReverted) as info:
        asyncio.run(d.campaigns.cancel_campaign(0))
    assert info.value.reason == "OnlyOwner"

    d.chain.set_account(ALICE)
    asyncio.run(d.campaigns.cancel_campaign(0))
    campaign = asyncio.run(d.campaigns.get_campaign(0))
    assert campaign.state() == CampaignState.CANCELLED
    assert d.chain.vault[BOB].total_locked == 0

    with pytest.raises(TransactionReverted) as info:
        asyncio.run(d.campaigns.cancel_campaign(0))
    assert info.value.reason == "AlreadyCancelled"


def test_list_campaigns():
    d = make_deployment()
    for title in ("One", "Two", "Three"):
        asyncio.run(d.campaigns.create_campaign(title, "", "1", 3))
    listed = asyncio.run(d.campaigns.list_campaigns())
    assert [c.title for c in listed] == ["One", "Two", "Three"]
    assert [c.id for c in listed] == [0, 1, 2]
    assert listed[0].target_amount == ETHER


def test_create_campaign_validation():
    d = make_deployment()
    with pytest.raises(InvalidCampaignError):
        asyncio.run(d.campaigns.create_campaign("  ", "", "1", 3))
    with pytest.raises(InvalidAmountError):
        asyncio.run(d.campaigns.create_campaign("Solar", "", "0", 3))
    with pytest.raises(InvalidAmountError):
        asyncio.run(d.campaigns.create_campaign("Solar", "", MAX_UINT64 + 1, 3))
    with pytest.raises(InvalidCampaignError):
        asyncio.run(d.campaigns.create_campaign("Solar", "", "1", 0))
    assert d.chain.calls == []


# =============================================================================
# Claim Gating
# =============================================================================

def test_claim_gated_on_zero_contribution():
    print_header("Campaign: claim gating")
    d = make_deployment(funds={BOB: 100})
    asyncio.run(d.campaigns.create_campaign("Solar", "", 1000, 1))

    print_step("Bob's over-budget contribution is encrypted-selected to 0")
    d.chain.set_account(BOB)
    asyncio.run(d.campaigns.contribute(0, 500))
    d.chain.reset_calls()

    with pytest.raises(NoContributionFound) as info:
        asyncio.run(d.campaigns.claim_tokens(0))
    print_result("claimTokens" not in d.writes(), str(d.writes()))
    assert "claimTokens" not in d.writes()
    assert info.value.campaign_id == 0
    assert describe_error(info.value) == "No contribution found to claim tokens for."


def test_claim_uses_cached_contribution():
    d = make_deployment(funds={BOB: 5000})
    asyncio.run(d.campaigns.create_campaign("Solar", "", 1000, 1))
    d.chain.set_account(BOB)
    asyncio.run(d.campaigns.contribute(0, 1500))
    d.chain.advance(DAY)
    d.chain.set_account(ALICE)
    asyncio.run(d.campaigns.finalize_campaign(0, "Solar Token", "SOL"))

    d.chain.set_account(BOB)
    result = asyncio.run(d.engine.resolve_plaintext(MY_CONTRIBUTION, ScopeKey(campaign_id=0)))
    assert result.cleartext == 1500
    d.chain.reset_calls()
    asyncio.run(d.campaigns.claim_tokens(0))
    assert d.writes() == ["claimTokens"]


# =============================================================================
# Token Metadata
# =============================================================================

def test_token_metadata_validation():
    print_header("Campaign: token metadata")
    assert validate_token_metadata(" Solar Token ", "sol1") == ("Solar Token", "SOL1")

    bad = [
        ("", "SOL", "Token name is required"),
        ("Solar", "  ", "Token symbol is required"),
        ("Solar", "ABCDEFGHIJK", "Token symbol should be 10 characters or less"),
        ("Solar", "SO-L", "Token symbol should only contain letters and numbers"),
        ("Solar", "SÖL", "Token symbol should only contain letters and numbers"),
    ]
    for name, symbol, message in bad:
        with pytest.raises(InvalidTokenMetadataError) as info:
            validate_token_metadata(name, symbol)
        print_step(f"{name!r}/{symbol!r}")
        print_result(str(info.value) == message, str(info.value))
        assert str(info.value) == message


def test_finalize_validates_before_chain_calls():
    d = make_deployment()
    d.chain.set_account(None)
    with pytest.raises(InvalidTokenMetadataError):
        asyncio.run(d.campaigns.finalize_campaign(0, "Solar", "TOO-LONG-SYMBOL"))
    assert d.chain.calls == []


# =============================================================================
# Range Validation
# =============================================================================

def test_range_validation():
    print_header("Vault/Campaign: range validation")
    d = make_deployment(funds={ALICE: ETHER})
    asyncio.run(d.campaigns.create_campaign("Solar", "", 1000, 1))
    d.chain.reset_calls()

    calls = [
        lambda: d.vault.deposit(MAX_UINT64 + 1),
        lambda: d.vault.deposit("19"),
        lambda: d.vault.deposit(0),
        lambda: d.vault.deposit("-1"),
        lambda: d.vault.withdraw(2**64),
        lambda: d.vault.withdraw("0"),
        lambda: d.campaigns.contribute(0, MAX_UINT64 + 1),
        lambda: d.campaigns.contribute(0, "abc"),
    ]
    for make_call in calls:
        with pytest.raises(InvalidAmountError):
            asyncio.run(make_call())
    print_result(d.chain.calls == [], f"{len(calls)} amounts rejected, no chain calls")
    assert d.chain.calls == []

    print_step("The ceiling itself is accepted")
    asyncio.run(d.vault.deposit(MAX_UINT64))
    assert d.writes() == ["deposit"]


def test_writes_need_wallet():
    d = make_deployment(account=None)
    with pytest.raises(NoWalletConnected):
        asyncio.run(d.vault.deposit("1"))
    with pytest.raises(NoWalletConnected):
        asyncio.run(d.campaigns.claim_tokens(0))


def test_contribute_needs_encryptor():
    d = make_deployment(funds={ALICE: ETHER})
    asyncio.run(d.campaigns.create_campaign("Solar", "", 1000, 1))
    campaigns = CampaignWorkflow(d.chain, d.config, engine=d.engine)
    with pytest.raises(PreconditionError):
        asyncio.run(campaigns.contribute(0, 10))


def test_contribute_without_vault_balance():
    d = make_deployment()
    asyncio.run(d.campaigns.create_campaign("Solar", "", 1000, 1))
    with pytest.raises(TransactionReverted) as info:
        asyncio.run(d.campaigns.contribute(0, 10))
    assert describe_error(info.value) == "You have no balance in the vault. Please deposit first."


# =============================================================================
# Vault
# =============================================================================

def test_withdraw_with_stale_balance():
    print_header("Vault: withdraw 2.5 with stale available balance")
    d = make_deployment(funds={ALICE: 3 * ETHER})
    now = int(d.chain.time())
    d.chain.vault[ALICE].record = MockRecord(
        status=DecryptStatus.DECRYPTED, value=ETHER, cache_expiry=now - 1,
    )

    status = asyncio.run(d.vault.get_available_balance_status())
    assert status.status == DecryptStatus.DECRYPTED and not status.is_fresh(now)

    asyncio.run(d.vault.withdraw("2.5"))
    print_result(True, str(d.chain.writes()))
    assert d.writes() == [
        "requestAvailableBalanceDecryption",
        "submitAvailableBalanceDecryption",
        "withdraw",
    ]
    submitted = d.chain.writes("submitAvailableBalanceDecryption")[0][1]
    assert submitted[0] == 3 * ETHER
    assert d.chain.writes("withdraw")[0][1] == (2_500_000_000_000_000_000,)
    assert d.chain.vault[ALICE].balance == ETHER // 2


def test_withdraw_insufficient_balance():
    d = make_deployment(funds={ALICE: ETHER})
    with pytest.raises(TransactionReverted) as info:
        asyncio.run(d.vault.withdraw("2"))
    assert info.value.reason == "InsufficientAvailableBalance"
    assert describe_error(info.value) == "Insufficient available balance for this withdrawal"


def test_withdraw_with_fresh_cache_skips_decryption():
    d = make_deployment(funds={ALICE: 2 * ETHER})
    result = asyncio.run(d.vault.resolve_available_balance())
    assert result.cleartext == 2 * ETHER
    d.chain.reset_calls()
    asyncio.run(d.vault.withdraw("1"))
    assert d.writes() == ["withdraw"]


def test_available_balance_excludes_locked_funds():
    d = make_deployment(funds={ALICE: ETHER})
    asyncio.run(d.campaigns.create_campaign("Solar", "", ETHER, 1))
    asyncio.run(d.campaigns.contribute(0, "0.25"))
    result = asyncio.run(d.vault.resolve_available_balance())
    assert result.action == PlannedAction.FULL
    assert result.cleartext == ETHER * 3 // 4

    balance, locked = asyncio.run(d.vault.get_encrypted_balance_and_locked())
    assert d.chain.ciphertexts[balance] == ETHER
    assert d.chain.ciphertexts[locked] == ETHER // 4


def test_deposit():
    d = make_deployment()
    receipt = asyncio.run(d.vault.deposit("1.5"))
    assert receipt.succeeded
    assert d.chain.vault[ALICE].balance == 1_500_000_000_000_000_000


def test_writes_switch_to_configured_chain():
    d = make_deployment()
    d.chain.connected_chain_id = 1
    asyncio.run(d.vault.deposit("1"))
    assert d.chain.connected_chain_id == d.config.chain_id


def test_set_campaign_contract():
    d = make_deployment()
    asyncio.run(d.vault.set_campaign_contract())
    assert asyncio.run(d.vault.get_campaign_contract()) == d.config.campaign_address

    with pytest.raises(TransactionReverted) as info:
        asyncio.run(d.vault.set_campaign_contract())
    assert info.value.reason == "CampaignContractAlreadySet"

    d.chain.set_account(BOB)
    with pytest.raises(TransactionReverted) as info:
        asyncio.run(d.vault.set_campaign_contract())
    assert info.value.reason == "OnlyOwner"


# =============================================================================
# Runner
# =============================================================================

def run_tests() -> bool:
    """Run all workflow tests."""
    tests = [v for k, v in sorted(globals().items()) if k.startswith("test_") and callable(v)]
    failed = 0
    for test in tests:
        try:
            test()
        except Exception as e:
            failed += 1
            print_result(False, f"{test.__name__}: {e}")
    print(f"\n  Result: {len(tests) - failed}/{len(tests)} workflow tests passed")
    return failed == 0


if __name__ == "__main__":
    run_tests()
