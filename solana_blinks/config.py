import os
from pathlib import Path

from dotenv import find_dotenv, load_dotenv

# Load environment variables from the project .env, then one found from the cwd
dotenv_path = Path(__file__).parent.parent / '.env'
load_dotenv(dotenv_path=dotenv_path)
load_dotenv(find_dotenv(usecwd=True))

# Names of the variables the RPC endpoint pool reads on first use
RPC_URLS_ENV = "SOLANA_RPC_URLS"
RPC_URL_ENV = "SOLANA_RPC_URL"

NETWORK_ENDPOINTS = {
    "mainnet": "https://api.mainnet-beta.solana.com",
    "devnet": "https://api.devnet.solana.com",
    "testnet": "https://api.testnet.solana.com",
}
DEFAULT_RPC_ENDPOINT = NETWORK_ENDPOINTS["mainnet"]
DEFAULT_COMMITMENT = "confirmed"
# Transport-level retries handed to sendTransaction
SEND_MAX_RETRIES = 3

PRIVATE_KEY_ENV = "SOLANA_PRIVATE_KEY"
KEYPAIR_PATH_ENV = "SOLANA_KEYPAIR_PATH"

DIALECT_API_BASE = os.getenv("DIALECT_API_BASE", "https://api.dialect.to")
DIALECT_API_KEY = os.getenv("DIALECT_API_KEY")

HTTP_TIMEOUT = float(os.getenv("BLINKS_HTTP_TIMEOUT", "30"))

EXPLORER_TX_URL = "https://solscan.io/tx/{signature}"
LAMPORTS_PER_SOL = 1_000_000_000
