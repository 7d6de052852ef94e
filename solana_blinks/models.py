from typing import Any, Dict, List, Optional, Union

from pydantic import BaseModel, ConfigDict, Field

# --- Blink / Solana Actions payloads ---

ParamValue = Union[str, int, float]


class ActionParameter(BaseModel):
    model_config = ConfigDict(extra="allow")

    name: str
    label: Optional[str] = None
    required: Optional[bool] = None
    type: Optional[str] = None


class LinkedAction(BaseModel):
    model_config = ConfigDict(extra="allow")

    label: str
    href: str
    parameters: Optional[List[ActionParameter]] = None


class ActionLinks(BaseModel):
    model_config = ConfigDict(extra="allow")

    actions: List[LinkedAction] = Field(default_factory=list)


class BlinkMetadata(BaseModel):
    """Response body of the describe (GET) request."""
    model_config = ConfigDict(extra="allow")

    label: Optional[str] = None
    icon: Optional[str] = None
    title: Optional[str] = None
    description: Optional[str] = None
    disabled: Optional[bool] = None
    links: Optional[ActionLinks] = None


class BlinkAction(BaseModel):
    """An action URL plus the parameters merged into its query string on build."""
    model_config = ConfigDict(frozen=True)

    url: str
    params: Dict[str, ParamValue] = Field(default_factory=dict)


class BlinkTransaction(BaseModel):
    """Response body of the build (POST) request: an unsigned, base64 encoded transaction."""
    model_config = ConfigDict(extra="allow")

    transaction: str
    message: Optional[str] = None


class InspectedAction(BaseModel):
    label: str
    href: str
    parameters: Optional[List[ActionParameter]] = None


class InspectResult(BaseModel):
    url: str
    metadata: BlinkMetadata
    actions: List[InspectedAction]


# --- Execution results ---

class SimulationResult(BaseModel):
    success: bool
    logs: Optional[List[str]] = None
    error: Optional[str] = None
    units_consumed: Optional[int] = None


class EndpointHealth(BaseModel):
    url: Optional[str] = None
    healthy: bool
    slot: Optional[int] = None
    version: Optional[str] = None
    latency_ms: Optional[int] = None
    error: Optional[str] = None


# --- Dialect markets & positions ---

class _ApiModel(BaseModel):
    # Dialect uses camelCase keys; keep unknown fields for display
    model_config = ConfigDict(extra="allow", populate_by_name=True)


class TokenInfo(_ApiModel):
    symbol: Optional[str] = None
    address: Optional[str] = None
    decimals: Optional[int] = None


class ProviderInfo(_ApiModel):
    id: Optional[str] = None
    name: str


class MarketAction(_ApiModel):
    blink_url: Optional[str] = Field(None, alias="blinkUrl")


class Market(_ApiModel):
    id: str
    type: str
    provider: ProviderInfo
    token: Optional[TokenInfo] = None
    token_a: Optional[TokenInfo] = Field(None, alias="tokenA")
    token_b: Optional[TokenInfo] = Field(None, alias="tokenB")
    deposit_apy: Optional[float] = Field(None, alias="depositApy")
    borrow_apy: Optional[float] = Field(None, alias="borrowApy")
    total_deposit_usd: Optional[float] = Field(None, alias="totalDepositUsd")
    max_ltv: Optional[float] = Field(None, alias="maxLtv")
    actions: Dict[str, MarketAction] = Field(default_factory=dict)
    additional_data: Optional[Dict[str, Any]] = Field(None, alias="additionalData")

    @property
    def token_label(self) -> str:
        if self.token is not None:
            return self.token.symbol or "-"
        if self.token_a is not None or self.token_b is not None:
            symbol_a = self.token_a.symbol if self.token_a else None
            symbol_b = self.token_b.symbol if self.token_b else None
            return f"{symbol_a}/{symbol_b}"
        return "-"

    def blink_url(self, action: str) -> Optional[str]:
        market_action = self.actions.get(action)
        return market_action.blink_url if market_action else None


class Position(_ApiModel):
    id: Optional[str] = None
    market_id: str = Field(alias="marketId")
    type: str
    side: Optional[str] = None
    amount: Optional[float] = None
    amount_usd: Optional[float] = Field(None, alias="amountUsd")
    ltv: Optional[float] = None
    actions: Dict[str, MarketAction] = Field(default_factory=dict)


class MarketFilter(BaseModel):
    type: Optional[Union[str, List[str]]] = None
    provider: Optional[Union[str, List[str]]] = None
    token: Optional[str] = None
    min_apy: Optional[float] = None
    max_apy: Optional[float] = None
    min_tvl: Optional[float] = None


class PositionFilter(BaseModel):
    type: Optional[Union[str, List[str]]] = None
    provider: Optional[Union[str, List[str]]] = None
    side: Optional[str] = None


# --- Wallet ---

class TokenBalance(BaseModel):
    mint: str
    amount: str
    decimals: int
    ui_amount: Optional[float] = None


class WalletBalances(BaseModel):
    address: str
    sol: float
    lamports: int
    tokens: List[TokenBalance] = Field(default_factory=list)
