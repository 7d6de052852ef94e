import json
from typing import Any, Dict, Optional

from pydantic import Field
from solders.pubkey import Pubkey

from mcp.server.fastmcp import Context, FastMCP
from mcp.server.fastmcp.utilities.logging import get_logger

from .blinks import ActionFetcher
from .connection import ConnectionManager
from .dialect import DialectClient
from .executor import BlinksExecutor
from .models import BlinkAction, MarketFilter, PositionFilter
from .output import to_plain

logger = get_logger(__name__)

# --- Server Setup ---
mcp = FastMCP(name="Solana Blinks Server")

# Process-wide RPC pool and shared connection for every tool call
connections = ConnectionManager()


def _dump(data: Any) -> str:
    return json.dumps(to_plain(data), indent=2)


# --- MCP Tools ---
# Tools never sign: execution stays with a local wallet (see the `blinks` CLI).

@mcp.tool()
async def inspect_blink(
    context: Context,
    url: str = Field(..., description="Blink or action URL, with or without the 'blink:' prefix."),
) -> str:
    """Describes a blink and lists the actions it offers."""
    logger.info(f"Received inspect_blink request for {url}")
    try:
        async with ActionFetcher() as fetcher:
            result = await fetcher.inspect(url)
        return _dump(result)
    except Exception as e:
        logger.exception(f"Error inspecting blink: {e}")
        return f"An error occurred while inspecting the blink: {e}"


@mcp.tool()
async def simulate_blink(
    context: Context,
    url: str = Field(..., description="Blink or action URL."),
    account: str = Field(..., description="Public key of the wallet the transaction is built for."),
    params: Optional[Dict[str, Any]] = Field(None, description="Query parameters such as {'amount': 10}."),
) -> str:
    """Builds the blink transaction for `account` and dry-runs it without broadcasting."""
    # Handle FieldInfo defaults when called directly
    effective_params = params if isinstance(params, dict) else {}
    logger.info(f"Received simulate_blink request for {url}, account={account}, params={effective_params}")
    try:
        Pubkey.from_string(account)
    except ValueError:
        return "Invalid account public key format."
    try:
        action = BlinkAction(url=url, params=effective_params)
        executor = BlinksExecutor(connections.get_shared())
        try:
            result = await executor.execute(action, account, dry_run=True)
        finally:
            await executor.close()
        return _dump(result)
    except Exception as e:
        logger.exception(f"Error simulating blink: {e}")
        return f"An error occurred while simulating the blink: {e}"


@mcp.tool()
async def list_markets(
    context: Context,
    market_type: Optional[str] = Field(None, description="lending, yield, loop, perp or prediction."),
    provider: Optional[str] = Field(None, description="Protocol name such as kamino or marginfi."),
    token: Optional[str] = Field(None, description="Token symbol."),
    limit: Optional[int] = Field(None, description="Maximum number of markets to return (default 20)."),
) -> str:
    """Lists DeFi markets from the Dialect API."""
    effective_limit = limit if isinstance(limit, int) else 20
    market_filter = MarketFilter(
        type=market_type if isinstance(market_type, str) else None,
        provider=provider if isinstance(provider, str) else None,
        token=token if isinstance(token, str) else None,
    )
    logger.debug(f"list_markets called with {market_filter}, limit={effective_limit}")
    try:
        async with DialectClient() as dialect:
            markets = await dialect.get_markets(market_filter)
        return _dump({"markets": markets[:effective_limit]})
    except Exception as e:
        logger.exception(f"Error listing markets: {e}")
        return f"An error occurred while listing markets: {e}"


@mcp.tool()
async def get_positions(
    context: Context,
    wallet: str = Field(..., description="Wallet public key."),
    provider: Optional[str] = Field(None, description="Filter by protocol."),
) -> str:
    """Retrieves a wallet's positions across protocols."""
    try:
        Pubkey.from_string(wallet)
    except ValueError:
        return "Invalid wallet public key format."
    position_filter = PositionFilter(provider=provider if isinstance(provider, str) else None)
    try:
        async with DialectClient() as dialect:
            found = await dialect.get_positions(wallet, position_filter)
        return _dump({"wallet": wallet, "positions": found})
    except Exception as e:
        logger.exception(f"Error fetching positions: {e}")
        return f"An error occurred while fetching positions: {e}"


@mcp.tool()
async def rpc_health(context: Context) -> str:
    """Checks every configured Solana RPC endpoint."""
    results = await connections.check_all_health()
    return _dump({"endpoints": results})


if __name__ == "__main__":
    print(f"Using RPC endpoints: {', '.join(connections.pool.urls)}")
    # Example: python -m solana_blinks.server
    mcp.run(transport="stdio")
