# cipherfund/cli.py
"""
CipherFund Command Line

Configuration comes from CIPHERFUND_* environment variables
(see NetworkConfig.from_env).

Usage:
    cipherfund deposit 1.5
    cipherfund create-campaign "Solar" --description "Roof panels" --target 5 --days 30
    cipherfund finalize 0 --name "Solar Token" --symbol SOL
    cipherfund claim 0
    cipherfund withdraw 0.25
    cipherfund status available-balance
    cipherfund campaign
    cipherfund configure-vault
"""

from __future__ import annotations

import argparse
import asyncio
import logging
import sys
import time
from typing import Optional, List, Mapping, Callable

from .config import NetworkConfig
from .errors import CipherFundError, PreconditionError, describe_error
from .units import format_amount
from .chain.client import ChainClient, Web3ChainClient, CAMPAIGN_ABI, VAULT_ABI
from .relayer.client import HTTPRelayerClient, init_relayer, is_relayer_initialized, get_relayer
from .decrypt import (
    DecryptionEngine,
    DecryptionRecord,
    ScopeKey,
    MY_CONTRIBUTION,
    TOTAL_RAISED,
    AVAILABLE_BALANCE,
)
from .workflows import CampaignWorkflow, VaultWorkflow, InputEncryptor, Campaign


logger = logging.getLogger("cipherfund.cli")

STATUS_KINDS = {
    "contribution": MY_CONTRIBUTION,
    "total-raised": TOTAL_RAISED,
    "available-balance": AVAILABLE_BALANCE,
}


# =============================================================================
# Parser
# =============================================================================

def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="cipherfund",
        description="Confidential fundraising client (encrypted campaign registry + vault)",
    )
    parser.add_argument("-v", "--verbose", action="count", default=0,
                        help="More logging (-v info, -vv debug)")
    sub = parser.add_subparsers(dest="command", required=True)

    p = sub.add_parser("create-campaign", help="Create a campaign")
    p.add_argument("title")
    p.add_argument("--description", default="")
    p.add_argument("--target", required=True, help="Target amount in ETH")
    p.add_argument("--days", type=float, required=True, help="Duration in days")

    p = sub.add_parser("contribute", help="Contribute to a campaign from the vault")
    p.add_argument("campaign_id", type=int)
    p.add_argument("amount", help="Amount in ETH")

    p = sub.add_parser("claim", help="Claim reward tokens")
    p.add_argument("campaign_id", type=int)

    p = sub.add_parser("finalize", help="Finalize an ended campaign")
    p.add_argument("campaign_id", type=int)
    p.add_argument("--name", required=True, help="Reward token name")
    p.add_argument("--symbol", required=True, help="Reward token symbol")

    p = sub.add_parser("cancel", help="Cancel a campaign")
    p.add_argument("campaign_id", type=int)

    p = sub.add_parser("deposit", help="Deposit ETH into the vault")
    p.add_argument("amount", help="Amount in ETH")

    p = sub.add_parser("withdraw", help="Withdraw unlocked ETH from the vault")
    p.add_argument("amount", help="Amount in ETH")

    p = sub.add_parser("status", help="Show a decryption record")
    p.add_argument("kind", choices=sorted(STATUS_KINDS))
    p.add_argument("--campaign", type=int, dest="campaign_id")
    p.add_argument("--decrypt", action="store_true",
                   help="Run the decryption protocol if the value is not fresh")

    p = sub.add_parser("campaign", help="Show one campaign, or list all")
    p.add_argument("campaign_id", type=int, nargs="?")

    p = sub.add_parser("configure-vault", help="Point the vault at the campaign contract")
    p.add_argument("--campaign-address", default=None)

    return parser


# =============================================================================
# Output
# =============================================================================

def _print_campaign(campaign: Campaign, now: float) -> None:
    print(f"[{campaign.id}] {campaign.title}")
    print(f"    Owner:    {campaign.owner}")
    print(f"    Target:   {format_amount(campaign.target_amount)} ETH")
    print(f"    Deadline: {time.strftime('%Y-%m-%d %H:%M:%S', time.gmtime(campaign.deadline))} UTC")
    print(f"    State:    {campaign.state(now).value}")
    if campaign.has_token:
        print(f"    Token:    {campaign.token_address}")


def _print_record(label: str, record: DecryptionRecord, now: float) -> None:
    print(f"{label}: {record.status.name}")
    if record.is_fresh(now):
        print(f"    Value:   {format_amount(record.value)} ETH ({record.value} wei)")
        print(f"    Expires: in {int(record.cache_expiry - now)}s")
    elif record.cache_expiry:
        print("    Cached value expired")


# =============================================================================
# Commands
# =============================================================================

async def run_command(
    args: argparse.Namespace,
    chain: ChainClient,
    config: NetworkConfig,
    encryptor: Optional[InputEncryptor] = None,
    clock: Callable[[], float] = time.time,
) -> int:
    engine = DecryptionEngine(chain, config.campaign_address, config.vault_address, clock=clock)
    campaigns = CampaignWorkflow(chain, config, engine=engine, encryptor=encryptor, clock=clock)
    vault = VaultWorkflow(chain, config, engine=engine, clock=clock)
    now = clock()
    cmd = args.command

    if cmd == "create-campaign":
        campaign_id = await campaigns.create_campaign(args.title, args.description, args.target, args.days)
        print(f"✅ Campaign created: {campaign_id}")

    elif cmd == "contribute":
        if encryptor is None:
            raise PreconditionError("Contributing requires an FHE input encryptor, none is available")
        receipt = await campaigns.contribute(args.campaign_id, args.amount)
        print(f"✅ Contribution confirmed: {receipt.tx_hash}")

    elif cmd == "claim":
        receipt = await campaigns.claim_tokens(args.campaign_id)
        print(f"✅ Tokens claimed: {receipt.tx_hash}")

    elif cmd == "finalize":
        receipt = await campaigns.finalize_campaign(args.campaign_id, args.name, args.symbol)
        print(f"✅ Campaign finalized: {receipt.tx_hash}")

    elif cmd == "cancel":
        receipt = await campaigns.cancel_campaign(args.campaign_id)
        print(f"✅ Campaign cancelled: {receipt.tx_hash}")

    elif cmd == "deposit":
        receipt = await vault.deposit(args.amount)
        print(f"✅ Deposit confirmed: {receipt.tx_hash}")

    elif cmd == "withdraw":
        receipt = await vault.withdraw(args.amount)
        print(f"✅ Withdrawal confirmed: {receipt.tx_hash}")

    elif cmd == "status":
        kind = STATUS_KINDS[args.kind]
        if kind.request_scope and args.campaign_id is None:
            raise PreconditionError(f"--campaign is required for {args.kind}")
        scope = ScopeKey(campaign_id=args.campaign_id)
        if kind.sender_scoped:
            chain.require_account()
        if args.decrypt:
            await chain.switch_chain(config.chain_id)
            result = await engine.resolve_plaintext(kind, scope)
            print(f"{kind}: {format_amount(result.cleartext)} ETH ({result.cleartext} wei) [{result.action.value}]")
        else:
            _print_record(str(kind), await engine.get_status(kind, scope), now)

    elif cmd == "campaign":
        if args.campaign_id is not None:
            _print_campaign(await campaigns.get_campaign(args.campaign_id), now)
        else:
            listed = await campaigns.list_campaigns()
            if not listed:
                print("No campaigns")
            for campaign in listed:
                _print_campaign(campaign, now)

    elif cmd == "configure-vault":
        receipt = await vault.set_campaign_contract(args.campaign_address)
        print(f"✅ ShareVault configured: {receipt.tx_hash}")

    return 0


def connect(config: NetworkConfig) -> ChainClient:
    """Web3 chain client for a configuration."""
    return Web3ChainClient(
        rpc_url=config.rpc_url,
        contracts={
            config.campaign_address: CAMPAIGN_ABI,
            config.vault_address: VAULT_ABI,
        },
        private_key=config.private_key,
        chain_id=config.chain_id,
        confirmation_timeout=config.confirmation_timeout,
        poll_latency=config.poll_latency,
    )


async def _run(
    args: argparse.Namespace,
    chain: Optional[ChainClient],
    config: NetworkConfig,
    encryptor: Optional[InputEncryptor],
    clock: Callable[[], float],
) -> int:
    owns_chain = chain is None
    if owns_chain:
        chain = connect(config)
    owns_relayer = not is_relayer_initialized()
    if owns_relayer:
        init_relayer(HTTPRelayerClient(config.relayer_url))
    try:
        return await run_command(args, chain, config, encryptor, clock)
    finally:
        if owns_relayer:
            await get_relayer().close()
        if owns_chain:
            await chain.close()


def main(
    argv: Optional[List[str]] = None,
    chain: Optional[ChainClient] = None,
    encryptor: Optional[InputEncryptor] = None,
    environ: Optional[Mapping[str, str]] = None,
    clock: Callable[[], float] = time.time,
) -> int:
    args = build_parser().parse_args(argv)

    level = logging.WARNING
    if args.verbose == 1:
        level = logging.INFO
    elif args.verbose >= 2:
        level = logging.DEBUG
    logging.basicConfig(level=level, format="%(asctime)s %(name)s %(levelname)s %(message)s")

    try:
        config = NetworkConfig.from_env(environ)
        return asyncio.run(_run(args, chain, config, encryptor, clock))
    except CipherFundError as e:
        logger.debug("Command failed", exc_info=True)
        print(f"❌ {describe_error(e)}", file=sys.stderr)
        return 1


if __name__ == "__main__":
    sys.exit(main())
