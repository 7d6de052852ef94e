"""
Solana Blinks Package

This package provides a command-line tool and thin library for browsing Solana DeFi
markets through the Dialect API and for executing Blinks: pre-built transactions that
protocols expose as Solana Actions HTTP endpoints.

Main components:
- connection.py: Round-robin RPC endpoint pool, shared/fresh connections, health checks
- blinks.py: Action fetcher for the describe (GET) / build (POST) exchange
- transactions.py: Versioned-first transaction decoding
- executor.py: Simulate and sign-and-send pipeline
- wallet.py: Local keypair wallet, signing and balances
- dialect.py: Markets and positions API client
- protocols.py: Supported protocols and blink URL templates
- cli.py: The `blinks` command-line interface
- server.py: MCP tool server exposing read-only and dry-run tools
"""

from .blinks import ActionFetcher, build_action_url, parse_blink_url
from .connection import ConnectionManager, RpcEndpointPool, check_health, create_connection
from .dialect import DialectClient
from .errors import (
    BlinksError,
    BroadcastError,
    ConfigurationError,
    ConfirmationError,
    DecodeError,
    DialectApiError,
    MetadataFetchError,
    TransactionBuildError,
)
from .executor import BlinksExecutor
from .models import BlinkAction, BlinkMetadata, BlinkTransaction, InspectResult, SimulationResult
from .protocols import PROTOCOLS
from .transactions import DecodedTransaction, TransactionKind, decode_transaction
from .wallet import Wallet

__version__ = "1.0.0"
