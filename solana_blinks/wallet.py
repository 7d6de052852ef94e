"""
Local keypair wallet: configuration loading, transaction signing and balances.

The secret key is read from ``SOLANA_PRIVATE_KEY`` (base58 string or JSON byte array)
or from the solana-keygen file named by ``SOLANA_KEYPAIR_PATH``.
"""

import json
import os
from pathlib import Path
from typing import List, Mapping, Optional

from solana.rpc.async_api import AsyncClient
from solana.rpc.types import TokenAccountOpts
from solders.keypair import Keypair
from solders.message import to_bytes_versioned
from solders.pubkey import Pubkey
from solders.transaction import Transaction, VersionedTransaction
from spl.token.constants import TOKEN_PROGRAM_ID

from mcp.server.fastmcp.utilities.logging import get_logger

from .config import KEYPAIR_PATH_ENV, LAMPORTS_PER_SOL, PRIVATE_KEY_ENV
from .errors import ConfigurationError
from .models import TokenBalance, WalletBalances
from .transactions import TransactionVariant

logger = get_logger(__name__)


def keypair_from_secret(secret: str) -> Keypair:
    """Parses a base58 secret key or a JSON array of 64 bytes."""
    secret = secret.strip()
    try:
        if secret.startswith("["):
            return Keypair.from_bytes(bytes(json.loads(secret)))
        return Keypair.from_base58_string(secret)
    except (ValueError, TypeError) as e:
        raise ConfigurationError(f"Invalid wallet secret key: {e}") from e


def sign_transaction(keypair: Keypair, tx: TransactionVariant) -> TransactionVariant:
    """Adds ``keypair``'s signature, keeping any signatures already present."""
    if isinstance(tx, VersionedTransaction):
        message = tx.message
        signer_count = message.header.num_required_signatures
        signers = list(message.account_keys[:signer_count])
        if keypair.pubkey() not in signers:
            raise ValueError(f"Wallet {keypair.pubkey()} is not a required signer of this transaction")
        signatures = list(tx.signatures)
        signatures[signers.index(keypair.pubkey())] = keypair.sign_message(to_bytes_versioned(message))
        return VersionedTransaction.populate(message, signatures)

    if isinstance(tx, Transaction):
        signer_count = tx.message.header.num_required_signatures
        if keypair.pubkey() not in tx.message.account_keys[:signer_count]:
            raise ValueError(f"Wallet {keypair.pubkey()} is not a required signer of this transaction")
        tx.partial_sign([keypair], tx.message.recent_blockhash)
        return tx

    raise TypeError(f"Unsupported transaction type: {type(tx).__name__}")


async def get_wallet_token_balances(connection: AsyncClient, address: str) -> List[TokenBalance]:
    """SPL token balances of any wallet."""
    owner = Pubkey.from_string(address)
    resp = await connection.get_token_accounts_by_owner_json_parsed(
        owner, TokenAccountOpts(program_id=TOKEN_PROGRAM_ID)
    )
    balances = []
    for keyed_account in resp.value:
        info = keyed_account.account.data.parsed["info"]
        token_amount = info["tokenAmount"]
        balances.append(TokenBalance(
            mint=info["mint"],
            amount=token_amount["amount"],
            decimals=token_amount["decimals"],
            ui_amount=token_amount.get("uiAmount"),
        ))
    return balances


class Wallet:
    def __init__(self, keypair: Keypair):
        self.keypair = keypair

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None) -> "Wallet":
        env = os.environ if environ is None else environ
        secret = env.get(PRIVATE_KEY_ENV)
        if secret:
            return cls(keypair_from_secret(secret))

        keypair_path = env.get(KEYPAIR_PATH_ENV)
        if keypair_path:
            path = Path(keypair_path).expanduser()
            try:
                contents = path.read_text(encoding="utf-8")
            except OSError as e:
                raise ConfigurationError(f"Cannot read keypair file {path}: {e}") from e
            return cls(keypair_from_secret(contents))

        raise ConfigurationError(
            f"No wallet configured. Set {PRIVATE_KEY_ENV} or {KEYPAIR_PATH_ENV}."
        )

    @property
    def pubkey(self) -> Pubkey:
        return self.keypair.pubkey()

    @property
    def address(self) -> str:
        return str(self.keypair.pubkey())

    def get_signer(self):
        """Signing callable for ``BlinksExecutor.sign_and_send``."""

        async def sign(tx: TransactionVariant) -> TransactionVariant:
            logger.debug(f"Signing transaction with {self.address}")
            return sign_transaction(self.keypair, tx)

        return sign

    async def get_balance(self, connection: AsyncClient) -> int:
        """Lamports held by the wallet."""
        resp = await connection.get_balance(self.pubkey)
        return resp.value

    async def get_token_balances(self, connection: AsyncClient) -> List[TokenBalance]:
        return await get_wallet_token_balances(connection, self.address)

    async def get_all_balances(self, connection: AsyncClient) -> WalletBalances:
        lamports = await self.get_balance(connection)
        tokens = await self.get_token_balances(connection)
        return WalletBalances(
            address=self.address,
            sol=lamports / LAMPORTS_PER_SOL,
            lamports=lamports,
            tokens=tokens,
        )
