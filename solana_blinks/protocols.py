"""Supported protocols and their blink URL templates."""

from typing import Dict, List, Optional, Tuple

from pydantic import BaseModel, Field

from .models import Market

KAMINO_BLINK_BASE = "blink:https://kamino.dial.to/api/v0"


class ProtocolInfo(BaseModel):
    name: str
    display_name: str
    category: str
    website: str
    market_types: List[str] = Field(default_factory=list)
    actions: List[str] = Field(default_factory=list)
    blinks_supported: bool = True
    markets_api_supported: bool = False
    positions_api_supported: bool = False


PROTOCOLS: Dict[str, ProtocolInfo] = {p.name: p for p in [
    ProtocolInfo(
        name="kamino", display_name="Kamino Finance", category="lending-yield",
        website="https://kamino.finance", market_types=["yield", "lending", "loop"],
        actions=["deposit", "withdraw", "borrow", "repay", "multiply", "leverage"],
        markets_api_supported=True, positions_api_supported=True,
    ),
    ProtocolInfo(
        name="marginfi", display_name="MarginFi", category="lending",
        website="https://marginfi.com", market_types=["lending"],
        actions=["deposit", "withdraw", "borrow", "repay"],
        markets_api_supported=True,
    ),
    ProtocolInfo(
        name="jupiter", display_name="Jupiter", category="swap-lending",
        website="https://jup.ag", market_types=["yield", "lending"],
        actions=["deposit", "withdraw", "borrow", "repay", "swap"],
        markets_api_supported=True, positions_api_supported=True,
    ),
    ProtocolInfo(
        name="raydium", display_name="Raydium", category="amm",
        website="https://raydium.io", actions=["add-liquidity", "remove-liquidity"],
    ),
    ProtocolInfo(
        name="orca", display_name="Orca", category="amm",
        website="https://orca.so", actions=["add-liquidity", "remove-liquidity"],
    ),
    ProtocolInfo(
        name="meteora", display_name="Meteora", category="amm",
        website="https://meteora.ag", actions=["add-liquidity", "remove-liquidity"],
    ),
    ProtocolInfo(
        name="drift", display_name="Drift Protocol", category="perps",
        website="https://drift.trade", market_types=["perpetual"],
        actions=["vault-deposit", "vault-withdraw"],
    ),
    ProtocolInfo(
        name="lulo", display_name="Lulo", category="yield",
        website="https://lulo.fi", market_types=["yield"], actions=["deposit", "withdraw"],
        markets_api_supported=True, positions_api_supported=True,
    ),
    ProtocolInfo(
        name="save", display_name="Save Protocol", category="yield",
        website="https://save.finance", market_types=["yield"], actions=["deposit", "withdraw"],
    ),
    ProtocolInfo(
        name="defituna", display_name="DeFiTuna", category="lending",
        website="https://defituna.com", market_types=["yield"], actions=["deposit", "withdraw"],
        markets_api_supported=True,
    ),
    ProtocolInfo(
        name="deficarrot", display_name="DeFiCarrot", category="yield",
        website="https://deficarrot.com", market_types=["yield"], actions=["deposit", "withdraw"],
        markets_api_supported=True,
    ),
    ProtocolInfo(
        name="dflow", display_name="DFlow", category="prediction",
        website="https://dflow.net", market_types=["prediction"], actions=["bet", "claim"],
        blinks_supported=False, markets_api_supported=True, positions_api_supported=True,
    ),
]}


def get_protocol(name: str) -> ProtocolInfo:
    try:
        return PROTOCOLS[name]
    except KeyError:
        raise ValueError(f"Unknown protocol '{name}'")


# --- Kamino ---

def kamino_lend_blink(vault_slug: str, action: str) -> str:
    """Kamino Lend vault deposit/withdraw."""
    return f"{KAMINO_BLINK_BASE}/lend/{vault_slug}/{action}"


def kamino_reserve_blink(market: str, reserve: str, action: str) -> str:
    """Kamino lending reserve deposit/borrow/repay."""
    return f"{KAMINO_BLINK_BASE}/lending/reserve/{market}/{reserve}/{action}"


def kamino_multiply_blink(market: str, coll_token_mint: str, debt_token_mint: str) -> str:
    return (
        f"{KAMINO_BLINK_BASE}/multiply/{market}/deposit"
        f"?collTokenMint={coll_token_mint}&debtTokenMint={debt_token_mint}"
    )


# --- Lulo ---

def lulo_withdraw_cooldown(market: Market) -> Optional[float]:
    return (market.additional_data or {}).get("withdrawCooldownHours")


def split_lulo_markets(markets: List[Market]) -> Tuple[List[Market], List[Market]]:
    """Splits Lulo markets into (protected, boosted); boosted ones have a withdraw cooldown."""
    protected = [m for m in markets if not lulo_withdraw_cooldown(m)]
    boosted = [m for m in markets if lulo_withdraw_cooldown(m)]
    return protected, boosted
