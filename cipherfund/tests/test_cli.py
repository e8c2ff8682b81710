# cipherfund/tests/test_cli.py
"""
CipherFund: Command Line Tests

Commands run end-to-end against MockChainClient with the mock relayer
installed as the process-wide client.

Run:
    python -m cipherfund.tests.test_cli
"""

from __future__ import annotations

import pytest

from .. import cli
from ..cli import build_parser, main
from ..chain.mock import MockChainClient
from ..relayer.client import MockRelayerClient, init_relayer
from ..workflows import MockInputEncryptor
from .support import ALICE, BOB, ETHER, MOCK_ENV, print_header, print_result


def _chain(account: str = ALICE) -> MockChainClient:
    chain = MockChainClient()
    chain.set_account(account)
    init_relayer(MockRelayerClient(chain))
    return chain


def _run(chain: MockChainClient, *argv: str, encryptor=None) -> int:
    return main(list(argv), chain=chain, encryptor=encryptor, environ=MOCK_ENV, clock=chain.time)


def test_parser_wiring():
    parser = build_parser()
    args = parser.parse_args(["finalize", "3", "--name", "Solar Token", "--symbol", "SOL"])
    assert (args.command, args.campaign_id, args.name, args.symbol) == ("finalize", 3, "Solar Token", "SOL")

    args = parser.parse_args(["-vv", "create-campaign", "Solar", "--target", "5", "--days", "30"])
    assert args.verbose == 2
    assert args.days == 30.0

    args = parser.parse_args(["status", "contribution", "--campaign", "1", "--decrypt"])
    assert args.kind == "contribution" and args.campaign_id == 1 and args.decrypt

    with pytest.raises(SystemExit):
        parser.parse_args(["status", "everything"])


def test_deposit_and_withdraw(capsys):
    print_header("CLI: deposit / withdraw")
    chain = _chain()
    assert _run(chain, "deposit", "1.5") == 0
    assert chain.vault[ALICE].balance == 1_500_000_000_000_000_000

    assert _run(chain, "withdraw", "0.5") == 0
    assert chain.vault[ALICE].balance == ETHER
    out = capsys.readouterr().out
    print_result("Withdrawal confirmed" in out, out.strip().splitlines()[-1])
    assert "Deposit confirmed" in out
    assert "Withdrawal confirmed" in out


def test_status_available_balance(capsys):
    chain = _chain()
    chain.fund(ALICE, 2 * ETHER)

    assert _run(chain, "status", "available-balance") == 0
    assert "AvailableBalance: NONE" in capsys.readouterr().out

    assert _run(chain, "status", "available-balance", "--decrypt") == 0
    assert "2 ETH" in capsys.readouterr().out

    assert _run(chain, "status", "available-balance") == 0
    out = capsys.readouterr().out
    assert "DECRYPTED" in out and "Value:" in out


def test_campaign_commands(capsys):
    chain = _chain()
    assert _run(chain, "campaign") == 0
    assert "No campaigns" in capsys.readouterr().out

    assert _run(chain, "create-campaign", "Solar", "--description", "Roof", "--target", "5", "--days", "1") == 0
    assert "Campaign created: 0" in capsys.readouterr().out

    assert _run(chain, "campaign", "0") == 0
    out = capsys.readouterr().out
    assert "[0] Solar" in out and "State:    active" in out

    assert _run(chain, "cancel", "0") == 0
    assert _run(chain, "campaign") == 0
    assert "cancelled" in capsys.readouterr().out


def test_contribute_finalize_claim(capsys):
    print_header("CLI: contribute → finalize → claim")
    chain = _chain()
    encryptor = MockInputEncryptor(chain)
    assert _run(chain, "create-campaign", "Solar", "--target", "0.5", "--days", "1") == 0

    chain.set_account(BOB)
    chain.fund(BOB, ETHER)
    assert _run(chain, "contribute", "0", "0.75", encryptor=encryptor) == 0

    chain.advance(24 * 60 * 60)
    chain.set_account(ALICE)
    assert _run(chain, "finalize", "0", "--name", "Solar Token", "--symbol", "sol") == 0

    chain.set_account(BOB)
    assert _run(chain, "claim", "0") == 0
    out = capsys.readouterr().out
    print_result("Tokens claimed" in out)
    assert "Tokens claimed" in out


def test_errors_are_described(capsys):
    print_header("CLI: error reporting")
    chain = _chain()

    assert _run(chain, "deposit", "19") == 1
    assert "Amount too large" in capsys.readouterr().err

    assert _run(chain, "contribute", "0", "1") == 1
    assert "input encryptor" in capsys.readouterr().err

    assert _run(chain, "finalize", "0", "--name", "Solar", "--symbol", "S-1") == 1
    assert "letters and numbers" in capsys.readouterr().err

    assert _run(chain, "claim", "7") == 1
    assert "Campaign does not exist" in capsys.readouterr().err

    assert _run(chain, "status", "contribution") == 1
    assert "--campaign" in capsys.readouterr().err


def test_missing_configuration(capsys):
    chain = _chain()
    assert main(["campaign"], chain=chain, environ={}) == 1
    assert "Please set" in capsys.readouterr().err


def test_configure_vault(capsys):
    chain = _chain()
    assert _run(chain, "configure-vault") == 0
    assert chain.vault_campaign_contract == chain.campaign_address
    assert "ShareVault configured" in capsys.readouterr().out


def test_connected_chain_is_closed(monkeypatch, capsys):
    chain = _chain()
    monkeypatch.setattr(cli, "connect", lambda config: chain)
    assert main(["campaign"], environ=MOCK_ENV, clock=chain.time) == 0
    assert chain.closed
    assert "No campaigns" in capsys.readouterr().out

    # A chain handed in by the caller stays open
    supplied = _chain()
    assert _run(supplied, "campaign") == 0
    assert not supplied.closed
