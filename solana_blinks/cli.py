"""
Solana Blinks CLI
=================
Browse DeFi markets through the Dialect API and execute protocol blinks.

    blinks markets best-yield --limit 5
    blinks inspect blink:https://kamino.dial.to/api/v0/lend/usdc-prime/deposit
    blinks kamino deposit --vault usdc-prime --amount 10 --dry-run
"""

import asyncio
import json
from typing import Any, Awaitable, Callable, Dict, Optional

import typer

from mcp.server.fastmcp.utilities.logging import configure_logging, get_logger

from .config import DIALECT_API_BASE, EXPLORER_TX_URL
from .connection import ConnectionManager, RpcEndpointPool
from .dialect import DialectClient
from .errors import BlinksError, ConfigurationError
from .executor import BlinksExecutor
from .models import BlinkAction, Market, MarketFilter, PositionFilter
from .output import (
    OUTPUT_FORMATS,
    error,
    format_percent,
    format_usd,
    info,
    join_keys,
    print_output,
    success,
)
from .protocols import (
    PROTOCOLS,
    kamino_lend_blink,
    kamino_multiply_blink,
    kamino_reserve_blink,
    lulo_withdraw_cooldown,
)
from .wallet import Wallet, get_wallet_token_balances

logger = get_logger(__name__)

app = typer.Typer(
    name="blinks",
    help="Solana Blinks CLI - DeFi markets and blink execution",
    no_args_is_help=True,
    rich_markup_mode="rich",
)
wallet_app = typer.Typer(help="Wallet operations", no_args_is_help=True)
markets_app = typer.Typer(help="Browse DeFi markets", no_args_is_help=True)
rpc_app = typer.Typer(help="RPC endpoint diagnostics", no_args_is_help=True)
kamino_app = typer.Typer(help="Kamino Finance operations", no_args_is_help=True)
marginfi_app = typer.Typer(help="MarginFi operations", no_args_is_help=True)
jupiter_app = typer.Typer(help="Jupiter lending operations", no_args_is_help=True)
lulo_app = typer.Typer(help="Lulo yield operations", no_args_is_help=True)
drift_app = typer.Typer(help="Drift strategy vault operations", no_args_is_help=True)
raydium_app = typer.Typer(help="Raydium AMM operations", no_args_is_help=True)
orca_app = typer.Typer(help="Orca Whirlpool operations", no_args_is_help=True)
meteora_app = typer.Typer(help="Meteora DLMM operations", no_args_is_help=True)

app.add_typer(wallet_app, name="wallet")
app.add_typer(markets_app, name="markets")
app.add_typer(rpc_app, name="rpc")
app.add_typer(kamino_app, name="kamino")
app.add_typer(marginfi_app, name="marginfi")
app.add_typer(jupiter_app, name="jupiter-lend")
app.add_typer(lulo_app, name="lulo")
app.add_typer(drift_app, name="drift")
app.add_typer(raydium_app, name="raydium")
app.add_typer(orca_app, name="orca")
app.add_typer(meteora_app, name="meteora")

DRY_RUN_HELP = "Simulate without executing"


class CliState:
    """Per-invocation options and lazily created clients."""

    def __init__(self, fmt: str = "json", rpc_url: Optional[str] = None):
        self.fmt = fmt
        self.rpc_url = rpc_url
        self._connections: Optional[ConnectionManager] = None
        self._dialect: Optional[DialectClient] = None
        self._executor: Optional[BlinksExecutor] = None

    @property
    def connections(self) -> ConnectionManager:
        if self._connections is None:
            # --rpc pins this run to a single endpoint
            pool = RpcEndpointPool([self.rpc_url]) if self.rpc_url else RpcEndpointPool()
            self._connections = ConnectionManager(pool)
        return self._connections

    @property
    def dialect(self) -> DialectClient:
        if self._dialect is None:
            self._dialect = DialectClient()
        return self._dialect

    @property
    def executor(self) -> BlinksExecutor:
        if self._executor is None:
            self._executor = BlinksExecutor(self.connections.get_shared())
        return self._executor

    def print(self, data: Any) -> None:
        print_output(data, self.fmt)

    async def aclose(self) -> None:
        if self._executor is not None:
            await self._executor.close()
        if self._dialect is not None:
            await self._dialect.close()
        if self._connections is not None:
            await self._connections.close()


def _run(ctx: typer.Context, handler: Callable[[CliState], Awaitable[None]]) -> None:
    state: CliState = ctx.obj

    async def runner() -> None:
        try:
            await handler(state)
        finally:
            await state.aclose()

    try:
        asyncio.run(runner())
    except Exception as e:
        logger.debug("Command failed", exc_info=True)
        error(str(e) or type(e).__name__)
        raise typer.Exit(1)


def _market_row(m: Market) -> Dict[str, Any]:
    return {
        "id": m.id,
        "type": m.type,
        "provider": m.provider.name,
        "token": m.token_label,
        "apy": format_percent(m.deposit_apy),
        "tvl": format_usd(m.total_deposit_usd),
        "actions": join_keys(m.actions),
    }


async def _execute_blink(
    state: CliState,
    blink_url: str,
    params: Dict[str, Any],
    dry_run: bool,
    confirmed_message: str,
) -> None:
    """Fetches one transaction for the wallet, then simulates it or signs and sends it."""
    wallet = Wallet.from_env()
    action = BlinkAction(url=blink_url, params=params)
    executor = state.executor

    info("Fetching transaction from blink...")
    blink_tx = await executor.fetcher.fetch(action, wallet.address)

    if dry_run:
        result = await executor.simulate(blink_tx)
        state.print({
            "success": result.success,
            "unitsConsumed": result.units_consumed,
            "error": result.error,
            "logs": result.logs,
            "message": blink_tx.message,
        })
        return

    info("Signing and sending transaction...")
    signature = await executor.sign_and_send(blink_tx, wallet.get_signer())
    success(confirmed_message)
    state.print({
        "signature": signature,
        "explorer": EXPLORER_TX_URL.format(signature=signature),
        "message": blink_tx.message,
    })


async def _market_blink_url(state: CliState, market_id: str, action: str, noun: str = "Market") -> str:
    market = await state.dialect.get_market(market_id)
    blink_url = market.blink_url(action) if market else None
    if not blink_url:
        raise BlinksError(f"{noun} not found or {action} not supported")
    return blink_url


@app.callback()
def main_callback(
    ctx: typer.Context,
    fmt: str = typer.Option("json", "--format", "-f", help="Output format: json, table, minimal"),
    rpc: Optional[str] = typer.Option(None, "--rpc", "-r", help="Solana RPC URL"),
    quiet: bool = typer.Option(False, "--quiet", "-q", help="Minimal output"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Debug logging"),
):
    configure_logging("DEBUG" if verbose else "WARNING")
    if fmt not in OUTPUT_FORMATS:
        error(f"Unknown output format '{fmt}'. Use one of: {', '.join(OUTPUT_FORMATS)}")
        raise typer.Exit(1)
    ctx.obj = CliState(fmt="minimal" if quiet else fmt, rpc_url=rpc)


# --- Wallet ---

@wallet_app.command("address")
def wallet_address(ctx: typer.Context):
    """Show configured wallet address"""
    async def handler(state: CliState) -> None:
        state.print({"address": Wallet.from_env().address})

    _run(ctx, handler)


@wallet_app.command("balance")
def wallet_balance(
    ctx: typer.Context,
    wallet: Optional[str] = typer.Option(None, "--wallet", "-w", help="Wallet address (defaults to configured)"),
):
    """Show wallet balances"""
    async def handler(state: CliState) -> None:
        connection = state.connections.get_shared()
        if wallet:
            state.print(await get_wallet_token_balances(connection, wallet))
        else:
            state.print(await Wallet.from_env().get_all_balances(connection))

    _run(ctx, handler)


# --- Markets ---

@markets_app.command("list")
def markets_list(
    ctx: typer.Context,
    market_type: Optional[str] = typer.Option(None, "--type", "-t", help="lending, yield, loop, perp, prediction"),
    provider: Optional[str] = typer.Option(None, "--provider", "-p", help="Filter by protocol"),
    token: Optional[str] = typer.Option(None, "--token", help="Filter by token symbol"),
    min_apy: Optional[float] = typer.Option(None, "--min-apy", help="Minimum APY (decimal, 0.05 for 5%)"),
    min_tvl: Optional[float] = typer.Option(None, "--min-tvl", help="Minimum TVL in USD"),
    limit: int = typer.Option(20, "--limit", "-l", help="Limit results"),
):
    """List markets by type"""
    async def handler(state: CliState) -> None:
        markets = await state.dialect.get_markets(MarketFilter(
            type=market_type, provider=provider, token=token, min_apy=min_apy, min_tvl=min_tvl,
        ))
        state.print([_market_row(m) for m in markets[:limit]])

    _run(ctx, handler)


@markets_app.command("best-yield")
def markets_best_yield(ctx: typer.Context, limit: int = typer.Option(10, "--limit", "-l")):
    """Show best yield opportunities"""
    async def handler(state: CliState) -> None:
        markets = await state.dialect.get_best_yield_markets(limit)
        state.print([
            {
                "provider": m.provider.name,
                "token": m.token_label,
                "apy": format_percent(m.deposit_apy),
                "tvl": format_usd(m.total_deposit_usd),
                "blinkUrl": m.blink_url("deposit") or "-",
            }
            for m in markets
        ])

    _run(ctx, handler)


@markets_app.command("best-borrow")
def markets_best_borrow(ctx: typer.Context, limit: int = typer.Option(10, "--limit", "-l")):
    """Show lowest borrow rates"""
    async def handler(state: CliState) -> None:
        markets = await state.dialect.get_best_borrow_rates(limit)
        state.print([
            {
                "provider": m.provider.name,
                "token": m.token_label,
                "borrowApy": format_percent(m.borrow_apy),
                "maxLtv": format_percent(m.max_ltv),
                "blinkUrl": m.blink_url("borrow") or "-",
            }
            for m in markets
        ])

    _run(ctx, handler)


@markets_app.command("search")
def markets_search(ctx: typer.Context, token: str = typer.Argument(..., help="Token symbol")):
    """Search markets by token symbol"""
    async def handler(state: CliState) -> None:
        markets = await state.dialect.search_markets_by_token(token)
        state.print([
            {"id": m.id, "type": m.type, "provider": m.provider.name,
             "token": m.token_label, "apy": format_percent(m.deposit_apy)}
            for m in markets
        ])

    _run(ctx, handler)


# --- Positions ---

@app.command("positions")
def positions(
    ctx: typer.Context,
    wallet: Optional[str] = typer.Option(None, "--wallet", "-w", help="Wallet address"),
    provider: Optional[str] = typer.Option(None, "--provider", "-p", help="Filter by protocol"),
    market_type: Optional[str] = typer.Option(None, "--type", "-t", help="Filter by market type"),
):
    """View wallet positions across protocols"""
    async def handler(state: CliState) -> None:
        address = wallet or Wallet.from_env().address
        found = await state.dialect.get_positions(address, PositionFilter(provider=provider, type=market_type))
        state.print([
            {
                "marketId": p.market_id,
                "type": p.type,
                "side": p.side,
                "amount": p.amount,
                "amountUsd": format_usd(p.amount_usd),
                "ltv": format_percent(p.ltv),
                "actions": join_keys(p.actions),
            }
            for p in found
        ])

    _run(ctx, handler)


# --- Blinks ---

@app.command("inspect")
def inspect_blink(ctx: typer.Context, url: str = typer.Argument(..., help="Blink or action URL")):
    """Inspect a blink URL"""
    async def handler(state: CliState) -> None:
        state.print(await state.executor.inspect(url))

    _run(ctx, handler)


@app.command("execute")
def execute_blink(
    ctx: typer.Context,
    url: str = typer.Argument(..., help="Blink or action URL"),
    amount: Optional[str] = typer.Option(None, "--amount", help="Amount parameter"),
    params: Optional[str] = typer.Option(None, "--params", "-p", help="Additional params as JSON"),
    dry_run: bool = typer.Option(False, "--dry-run", help=DRY_RUN_HELP),
):
    """Execute a blink action"""
    async def handler(state: CliState) -> None:
        action_params: Dict[str, Any] = {}
        if amount:
            action_params["amount"] = amount
        if params:
            extra = json.loads(params)
            if not isinstance(extra, dict):
                raise ValueError("--params must be a JSON object")
            action_params.update(extra)
        await _execute_blink(state, url, action_params, dry_run, "Transaction confirmed!")

    _run(ctx, handler)


# --- Protocols ---

@app.command("protocols")
def protocols(ctx: typer.Context):
    """List all supported protocols"""
    def mark(flag: bool) -> str:
        return "✓" if flag else "soon"

    async def handler(state: CliState) -> None:
        state.print([
            {
                "name": p.name,
                "displayName": p.display_name,
                "category": p.category,
                "marketTypes": join_keys(p.market_types),
                "actions": join_keys(p.actions),
                "marketsApi": mark(p.markets_api_supported),
                "positionsApi": mark(p.positions_api_supported),
                "blinks": mark(p.blinks_supported),
            }
            for p in PROTOCOLS.values()
        ])

    _run(ctx, handler)


# --- Kamino ---

@kamino_app.command("markets")
def kamino_markets(
    ctx: typer.Context,
    market_type: Optional[str] = typer.Option(None, "--type", "-t", help="lend, borrow or multiply"),
):
    """List Kamino markets"""
    dialect_types = {"lend": "yield", "borrow": "lending", "multiply": "loop"}

    async def handler(state: CliState) -> None:
        markets = await state.dialect.get_markets(
            MarketFilter(provider="kamino", type=dialect_types.get(market_type or ""))
        )
        state.print([
            {k: v for k, v in _market_row(m).items() if k not in ("provider", "actions")}
            for m in markets
        ])

    _run(ctx, handler)


@kamino_app.command("deposit")
def kamino_deposit(
    ctx: typer.Context,
    vault: str = typer.Option(..., "--vault", help="Vault slug (e.g. usdc-prime)"),
    amount: str = typer.Option(..., "--amount", help="Amount to deposit"),
    dry_run: bool = typer.Option(False, "--dry-run", help=DRY_RUN_HELP),
):
    """Deposit to Kamino Lend vault"""
    async def handler(state: CliState) -> None:
        info(f"Depositing {amount} to {vault}...")
        await _execute_blink(state, kamino_lend_blink(vault, "deposit"), {"amount": amount}, dry_run,
                             "Deposit confirmed!")

    _run(ctx, handler)


@kamino_app.command("withdraw")
def kamino_withdraw(
    ctx: typer.Context,
    vault: str = typer.Option(..., "--vault", help="Vault slug"),
    amount: str = typer.Option(..., "--amount", help="Amount to withdraw"),
    dry_run: bool = typer.Option(False, "--dry-run", help=DRY_RUN_HELP),
):
    """Withdraw from Kamino Lend vault"""
    async def handler(state: CliState) -> None:
        info(f"Withdrawing {amount} from {vault}...")
        await _execute_blink(state, kamino_lend_blink(vault, "withdraw"), {"amount": amount}, dry_run,
                             "Withdrawal confirmed!")

    _run(ctx, handler)


@kamino_app.command("borrow")
def kamino_borrow(
    ctx: typer.Context,
    market: str = typer.Option(..., "--market", help="Market address"),
    reserve: str = typer.Option(..., "--reserve", help="Reserve address"),
    amount: str = typer.Option(..., "--amount", help="Amount to borrow"),
    dry_run: bool = typer.Option(False, "--dry-run", help=DRY_RUN_HELP),
):
    """Borrow from Kamino lending market"""
    async def handler(state: CliState) -> None:
        info(f"Borrowing {amount}...")
        await _execute_blink(state, kamino_reserve_blink(market, reserve, "borrow"), {"amount": amount},
                             dry_run, "Borrow confirmed!")

    _run(ctx, handler)


@kamino_app.command("repay")
def kamino_repay(
    ctx: typer.Context,
    market: str = typer.Option(..., "--market", help="Market address"),
    reserve: str = typer.Option(..., "--reserve", help="Reserve address"),
    amount: str = typer.Option(..., "--amount", help="Amount to repay"),
    dry_run: bool = typer.Option(False, "--dry-run", help=DRY_RUN_HELP),
):
    """Repay Kamino loan"""
    async def handler(state: CliState) -> None:
        info(f"Repaying {amount}...")
        await _execute_blink(state, kamino_reserve_blink(market, reserve, "repay"), {"amount": amount},
                             dry_run, "Repayment confirmed!")

    _run(ctx, handler)


@kamino_app.command("multiply")
def kamino_multiply(
    ctx: typer.Context,
    market: str = typer.Option(..., "--market", help="Market address"),
    coll_token: str = typer.Option(..., "--coll-token", help="Collateral token mint"),
    debt_token: str = typer.Option(..., "--debt-token", help="Debt token mint"),
    amount: str = typer.Option(..., "--amount", help="Amount"),
    leverage: Optional[str] = typer.Option(None, "--leverage", help="Leverage multiplier"),
    dry_run: bool = typer.Option(False, "--dry-run", help=DRY_RUN_HELP),
):
    """Open Kamino multiply position"""
    async def handler(state: CliState) -> None:
        params: Dict[str, Any] = {"amount": amount}
        if leverage:
            params["leverage"] = leverage
        info("Opening multiply position...")
        await _execute_blink(state, kamino_multiply_blink(market, coll_token, debt_token), params, dry_run,
                             "Position opened!")

    _run(ctx, handler)


# --- MarginFi ---

@marginfi_app.command("markets")
def marginfi_markets(ctx: typer.Context):
    """List MarginFi lending markets"""
    async def handler(state: CliState) -> None:
        markets = await state.dialect.get_markets_by_protocol("marginfi")
        state.print([
            {
                "id": m.id,
                "token": m.token_label,
                "depositApy": format_percent(m.deposit_apy),
                "borrowApy": format_percent(m.borrow_apy),
                "maxLtv": format_percent(m.max_ltv),
            }
            for m in markets
        ])

    _run(ctx, handler)


@marginfi_app.command("deposit")
def marginfi_deposit(
    ctx: typer.Context,
    market: str = typer.Option(..., "--market", help="Market ID"),
    amount: str = typer.Option(..., "--amount", help="Amount"),
    dry_run: bool = typer.Option(False, "--dry-run", help=DRY_RUN_HELP),
):
    """Deposit to MarginFi"""
    async def handler(state: CliState) -> None:
        blink_url = await _market_blink_url(state, market, "deposit")
        await _execute_blink(state, blink_url, {"amount": amount}, dry_run, "Deposit confirmed!")

    _run(ctx, handler)


# --- Jupiter Lend ---

@jupiter_app.command("markets")
def jupiter_markets(
    ctx: typer.Context,
    market_type: Optional[str] = typer.Option(None, "--type", "-t", help="earn or borrow"),
):
    """List Jupiter lending markets"""
    async def handler(state: CliState) -> None:
        markets = await state.dialect.get_markets_by_protocol("jupiter")
        if market_type:
            wanted = "yield" if market_type == "earn" else "lending"
            markets = [m for m in markets if m.type == wanted]
        state.print([
            {"id": m.id, "type": m.type, "token": m.token_label, "apy": format_percent(m.deposit_apy)}
            for m in markets
        ])

    _run(ctx, handler)


# --- Lulo ---

@lulo_app.command("markets")
def lulo_markets(
    ctx: typer.Context,
    market_type: Optional[str] = typer.Option(None, "--type", "-t", help="protected or boosted"),
):
    """List Lulo markets"""
    async def handler(state: CliState) -> None:
        markets = await state.dialect.get_markets_by_protocol("lulo")
        rows = []
        for m in markets:
            cooldown = lulo_withdraw_cooldown(m)
            rows.append({
                "id": m.id,
                "token": m.token_label,
                "apy": format_percent(m.deposit_apy),
                "type": "boosted" if cooldown else "protected",
                "cooldown": cooldown or "-",
            })
        if market_type:
            rows = [row for row in rows if row["type"] == market_type]
        state.print(rows)

    _run(ctx, handler)


@lulo_app.command("deposit")
def lulo_deposit(
    ctx: typer.Context,
    market: str = typer.Option(..., "--market", help="Market ID"),
    amount: str = typer.Option(..., "--amount", help="Amount"),
    dry_run: bool = typer.Option(False, "--dry-run", help=DRY_RUN_HELP),
):
    """Deposit to Lulo"""
    async def handler(state: CliState) -> None:
        blink_url = await _market_blink_url(state, market, "deposit")
        await _execute_blink(state, blink_url, {"amount": amount}, dry_run, "Deposit confirmed!")

    _run(ctx, handler)


# --- Drift ---

@drift_app.command("vaults")
def drift_vaults(ctx: typer.Context):
    """List Drift strategy vaults"""
    async def handler(state: CliState) -> None:
        markets = await state.dialect.get_markets_by_protocol("drift")
        state.print([
            {"id": m.id, "token": m.token_label, "apy": format_percent(m.deposit_apy)}
            for m in markets
        ])

    _run(ctx, handler)


@drift_app.command("vault-deposit")
def drift_vault_deposit(
    ctx: typer.Context,
    vault: str = typer.Option(..., "--vault", help="Vault ID"),
    amount: str = typer.Option(..., "--amount", help="Amount"),
    dry_run: bool = typer.Option(False, "--dry-run", help=DRY_RUN_HELP),
):
    """Deposit to Drift vault"""
    async def handler(state: CliState) -> None:
        blink_url = await _market_blink_url(state, vault, "deposit", noun="Vault")
        await _execute_blink(state, blink_url, {"amount": amount}, dry_run, "Vault deposit confirmed!")

    _run(ctx, handler)


# --- AMMs (no markets API coverage yet) ---

def _pools_notice(name: str) -> None:
    info(f"{name} pool listing via Dialect API coming soon")
    info(f"Use: blinks inspect <{name.lower()}-blink-url> to inspect specific pools")


@raydium_app.command("pools")
def raydium_pools():
    """List Raydium pools (coming soon)"""
    _pools_notice("Raydium")


@orca_app.command("pools")
def orca_pools():
    """List Orca Whirlpools (coming soon)"""
    _pools_notice("Orca")


@meteora_app.command("pools")
def meteora_pools():
    """List Meteora DLMM pools (coming soon)"""
    _pools_notice("Meteora")


# --- Status / RPC ---

@app.command("status")
def status(ctx: typer.Context):
    """Check connection and configuration status"""
    async def handler(state: CliState) -> None:
        health = await state.connections.check_health()
        try:
            wallet = Wallet.from_env().address
        except ConfigurationError:
            wallet = "Not configured"
        state.print({
            "rpc": {
                "url": health.url,
                "healthy": health.healthy,
                "slot": health.slot,
                "version": health.version,
                "error": health.error,
            },
            "wallet": wallet,
            "dialectApi": DIALECT_API_BASE,
        })

    _run(ctx, handler)


@rpc_app.command("health")
def rpc_health(ctx: typer.Context):
    """Check every configured RPC endpoint"""
    async def handler(state: CliState) -> None:
        state.print(await state.connections.check_all_health())

    _run(ctx, handler)


@rpc_app.command("endpoints")
def rpc_endpoints(ctx: typer.Context):
    """List configured RPC endpoints in round-robin order"""
    async def handler(state: CliState) -> None:
        state.print([{"index": i, "url": url} for i, url in enumerate(state.connections.pool.urls)])

    _run(ctx, handler)


def main() -> None:
    app()


if __name__ == "__main__":
    main()
