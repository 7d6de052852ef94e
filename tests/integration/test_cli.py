"""
Tests for the `blinks` command-line interface.

Commands are invoked through typer's CliRunner; network-facing clients are patched
at the cli module boundary.
"""
from unittest.mock import AsyncMock, MagicMock, patch

import pytest
from solders.keypair import Keypair
from typer.testing import CliRunner

from solana_blinks.cli import app
from solana_blinks.models import BlinkTransaction, SimulationResult

from .conftest import json_from_output

runner = CliRunner()


@pytest.fixture
def wallet_env(clean_env):
    keypair = Keypair()
    clean_env.setenv("SOLANA_PRIVATE_KEY", str(keypair))
    return keypair


@pytest.fixture
def mock_executor():
    with patch('solana_blinks.cli.BlinksExecutor') as MockExecutor:
        executor = MockExecutor.return_value
        executor.fetcher = MagicMock()
        executor.fetcher.fetch = AsyncMock(
            return_value=BlinkTransaction(transaction="AQID", message="Deposit 10 USDC")
        )
        executor.simulate = AsyncMock(
            return_value=SimulationResult(success=True, logs=["Program log: ok"], units_consumed=4200)
        )
        executor.close = AsyncMock()
        yield executor


# --- Global Options ---

def test_protocols_json():
    result = runner.invoke(app, ["protocols"])

    assert result.exit_code == 0
    rows = json_from_output(result.stdout)
    by_name = {row["name"]: row for row in rows}
    assert len(rows) == 12
    assert by_name["kamino"]["blinks"] == "✓"
    assert by_name["dflow"]["blinks"] == "soon"


def test_quiet_switches_to_minimal_output():
    result = runner.invoke(app, ["-q", "protocols"])

    assert result.exit_code == 0
    assert result.stdout.splitlines()[0].startswith("kamino Kamino Finance lending-yield")


def test_unknown_format_exits_with_error():
    result = runner.invoke(app, ["--format", "xml", "protocols"])

    assert result.exit_code == 1
    assert "Unknown output format 'xml'" in result.output


# --- Wallet ---

def test_wallet_address(wallet_env):
    result = runner.invoke(app, ["wallet", "address"])

    assert result.exit_code == 0
    assert json_from_output(result.stdout) == {"address": str(wallet_env.pubkey())}


def test_wallet_address_without_configuration():
    result = runner.invoke(app, ["wallet", "address"])

    assert result.exit_code == 1
    assert "No wallet configured" in result.output


# --- Execute ---

def test_execute_dry_run(wallet_env, mock_executor):
    """A dry run fetches for the configured wallet, simulates and never signs."""
    result = runner.invoke(app, [
        "execute", "blink:https://kamino.dial.to/api/v0/lend/usdc-prime/deposit",
        "--amount", "10", "--params", '{"slippage": 50}', "--dry-run",
    ])

    assert result.exit_code == 0, result.output
    assert json_from_output(result.stdout) == {
        "success": True,
        "unitsConsumed": 4200,
        "error": None,
        "logs": ["Program log: ok"],
        "message": "Deposit 10 USDC",
    }
    action, account = mock_executor.fetcher.fetch.call_args.args
    assert action.url == "blink:https://kamino.dial.to/api/v0/lend/usdc-prime/deposit"
    assert action.params == {"amount": "10", "slippage": 50}
    assert account == str(wallet_env.pubkey())
    mock_executor.sign_and_send.assert_not_called()
    mock_executor.close.assert_awaited_once()


def test_execute_rejects_non_object_params(wallet_env, mock_executor):
    result = runner.invoke(app, ["execute", "https://host/deposit", "--params", "[1, 2]", "--dry-run"])

    assert result.exit_code == 1
    assert "--params must be a JSON object" in result.output
    mock_executor.fetcher.fetch.assert_not_awaited()


def test_kamino_deposit_builds_vault_blink(wallet_env, mock_executor):
    result = runner.invoke(app, ["kamino", "deposit", "--vault", "usdc-prime", "--amount", "25", "--dry-run"])

    assert result.exit_code == 0, result.output
    action = mock_executor.fetcher.fetch.call_args.args[0]
    assert action.url == "blink:https://kamino.dial.to/api/v0/lend/usdc-prime/deposit"
    assert action.params == {"amount": "25"}


@patch('solana_blinks.cli.DialectClient')
def test_market_deposit_unknown_market(MockDialect, wallet_env):
    dialect = MockDialect.return_value
    dialect.get_market = AsyncMock(return_value=None)
    dialect.close = AsyncMock()

    result = runner.invoke(app, ["marginfi", "deposit", "--market", "nope", "--amount", "1"])

    assert result.exit_code == 1
    assert "Market not found or deposit not supported" in result.output
    dialect.close.assert_awaited_once()


# --- RPC ---

def test_rpc_endpoints_from_environment(clean_env):
    clean_env.setenv("SOLANA_RPC_URLS", "https://a.example,https://b.example")

    result = runner.invoke(app, ["rpc", "endpoints"])

    assert result.exit_code == 0
    assert json_from_output(result.stdout) == [
        {"index": 0, "url": "https://a.example"},
        {"index": 1, "url": "https://b.example"},
    ]


def test_rpc_flag_pins_single_endpoint(clean_env):
    clean_env.setenv("SOLANA_RPC_URLS", "https://a.example,https://b.example")

    result = runner.invoke(app, ["--rpc", "https://pinned.example", "rpc", "endpoints"])

    assert json_from_output(result.stdout) == [{"index": 0, "url": "https://pinned.example"}]


def test_pools_notice():
    result = runner.invoke(app, ["raydium", "pools"])

    assert result.exit_code == 0
    assert "coming soon" in result.output
