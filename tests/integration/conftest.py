import base64
import json
import sys
from pathlib import Path
from typing import Callable, Dict, List
from unittest.mock import AsyncMock, MagicMock

import httpx
import pytest
from pytest import MonkeyPatch
from solders.hash import Hash
from solders.instruction import Instruction
from solders.keypair import Keypair
from solders.message import Message, MessageV0
from solders.pubkey import Pubkey
from solders.rpc.responses import GetSignatureStatusesResp, SimulateTransactionResp
from solders.signature import Signature
from solders.system_program import TransferParams, transfer
from solders.transaction import Transaction, VersionedTransaction

# Ensure the package can be imported without installation
ROOT_DIR = Path(__file__).parent.parent.parent
sys.path.insert(0, str(ROOT_DIR))

from solana_blinks.models import BlinkTransaction  # noqa: E402

RPC_ENV_VARS = ("SOLANA_RPC_URLS", "SOLANA_RPC_URL")
WALLET_ENV_VARS = ("SOLANA_PRIVATE_KEY", "SOLANA_KEYPAIR_PATH")


# --- Helpers ---

def to_b64(tx) -> str:
    return base64.b64encode(bytes(tx)).decode("ascii")


def transfer_ix(sender: Pubkey, lamports: int = 1_000) -> Instruction:
    return transfer(TransferParams(from_pubkey=sender, to_pubkey=Pubkey.new_unique(), lamports=lamports))


def rpc_value(**fields) -> MagicMock:
    """Mimics a solders RPC response: an object with a `.value` attribute."""
    return MagicMock(value=MagicMock(**fields))


def simulate_resp(err=None, logs=("Program log: ok",), units_consumed=4200) -> SimulateTransactionResp:
    """A simulateTransaction reply parsed from the JSON an RPC node sends."""
    return SimulateTransactionResp.from_json(json.dumps({
        "jsonrpc": "2.0",
        "id": 1,
        "result": {
            "context": {"slot": 218},
            "value": {
                "err": err,
                "logs": list(logs) if logs is not None else None,
                "accounts": None,
                "unitsConsumed": units_consumed,
                "returnData": None,
                "innerInstructions": None,
                "replacementBlockhash": None,
            },
        },
    }))


def statuses_resp(err=None, missing=False) -> GetSignatureStatusesResp:
    """A getSignatureStatuses reply, as returned by confirm_transaction."""
    status = None if missing else {
        "slot": 72,
        "confirmations": 10,
        "err": err,
        "status": {"Ok": None} if err is None else {"Err": err},
        "confirmationStatus": "confirmed",
    }
    return GetSignatureStatusesResp.from_json(json.dumps({
        "jsonrpc": "2.0",
        "id": 1,
        "result": {"context": {"slot": 82}, "value": [status]},
    }))


def json_from_output(output: str):
    """Parses the JSON document printed after any status lines."""
    lines = output.splitlines()
    for i, line in enumerate(lines):
        if line.startswith("{") or line.startswith("["):
            return json.loads("\n".join(lines[i:]))
    raise AssertionError(f"No JSON document in output:\n{output}")


# --- Environment ---

@pytest.fixture(autouse=True)
def clean_env(monkeypatch: MonkeyPatch) -> MonkeyPatch:
    """Keeps RPC and wallet settings from the developer's shell out of every test."""
    for name in RPC_ENV_VARS + WALLET_ENV_VARS:
        monkeypatch.delenv(name, raising=False)
    return monkeypatch


@pytest.fixture(scope="function")
def mock_context() -> MagicMock:
    """Provides a mock MCP Context object."""
    return MagicMock()


# --- Transactions ---

@pytest.fixture(scope="function")
def payer() -> Keypair:
    return Keypair()


@pytest.fixture(scope="function")
def versioned_tx(payer: Keypair) -> VersionedTransaction:
    message = MessageV0.try_compile(payer.pubkey(), [transfer_ix(payer.pubkey())], [], Hash.new_unique())
    return VersionedTransaction.populate(message, [Signature.default()])


@pytest.fixture(scope="function")
def legacy_tx(payer: Keypair) -> Transaction:
    message = Message.new_with_blockhash([transfer_ix(payer.pubkey())], payer.pubkey(), Hash.new_unique())
    return Transaction.new_unsigned(message)


@pytest.fixture(scope="function")
def blink_tx(versioned_tx: VersionedTransaction) -> BlinkTransaction:
    return BlinkTransaction(transaction=to_b64(versioned_tx), message="Deposit 10 USDC")


# --- RPC ---

@pytest.fixture(scope="function")
def mock_rpc() -> AsyncMock:
    """An AsyncClient stand-in whose calls succeed by default."""
    client = AsyncMock()
    client.get_slot.return_value = MagicMock(value=250_000_000)
    client.get_version.return_value = rpc_value(solana_core="1.18.22")
    client.simulate_transaction.return_value = simulate_resp()
    client.send_raw_transaction.return_value = MagicMock(value=Keypair().sign_message(b"sent"))
    client.get_latest_blockhash.return_value = rpc_value(blockhash=Hash.new_unique(), last_valid_block_height=1_000)
    client.confirm_transaction.return_value = statuses_resp()
    return client


# --- HTTP ---

@pytest.fixture(scope="function")
def http_log() -> List[httpx.Request]:
    return []


@pytest.fixture(scope="function")
def make_http_client(http_log: List[httpx.Request]) -> Callable[..., httpx.AsyncClient]:
    """Builds an httpx client whose responses come from a route table keyed by (method, path)."""

    def factory(routes: Dict[tuple, httpx.Response]) -> httpx.AsyncClient:
        def handler(request: httpx.Request) -> httpx.Response:
            http_log.append(request)
            response = routes.get((request.method, request.url.path))
            if response is None:
                return httpx.Response(404, text="no route")
            # Fresh copy so a route can answer more than once
            return httpx.Response(response.status_code, headers=response.headers, content=response.content)

        return httpx.AsyncClient(transport=httpx.MockTransport(handler))

    return factory
