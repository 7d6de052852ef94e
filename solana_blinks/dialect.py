"""Read-only client for the Dialect markets and positions API."""

from datetime import datetime
from typing import Any, Dict, List, Optional, Union

import httpx

from mcp.server.fastmcp.utilities.logging import get_logger

from .config import DIALECT_API_BASE, DIALECT_API_KEY, HTTP_TIMEOUT
from .errors import DialectApiError
from .models import Market, MarketFilter, Position, PositionFilter

logger = get_logger(__name__)


def _join(value: Union[str, List[str]]) -> str:
    return ",".join(value) if isinstance(value, list) else value


class DialectClient:
    def __init__(
        self,
        base_url: str = DIALECT_API_BASE,
        api_key: Optional[str] = DIALECT_API_KEY,
        http_client: Optional[httpx.AsyncClient] = None,
        timeout: float = HTTP_TIMEOUT,
    ):
        self.base_url = base_url.rstrip("/")
        self.api_key = api_key
        self._client = http_client
        self._owns_client = http_client is None
        self._timeout = timeout

    @property
    def client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(timeout=self._timeout)
        return self._client

    async def close(self) -> None:
        if self._client is not None and self._owns_client:
            await self._client.aclose()
            self._client = None

    async def __aenter__(self) -> "DialectClient":
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.close()

    async def _get(self, endpoint: str, params: Optional[Dict[str, str]] = None) -> Any:
        headers = {"Accept": "application/json"}
        if self.api_key:
            headers["Authorization"] = f"Bearer {self.api_key}"
        query = {k: v for k, v in (params or {}).items() if v is not None}

        url = f"{self.base_url}{endpoint}"
        logger.debug(f"GET {url} params={query}")
        response = await self.client.get(url, params=query, headers=headers)
        if not response.is_success:
            raise DialectApiError(response.status_code, response.text or "Unknown error")
        return response.json()

    # --- Markets ---

    async def get_markets(self, filter: Optional[MarketFilter] = None) -> List[Market]:
        """Lists markets. ``type``/``provider``/``token`` filter server side, APY and TVL locally."""
        filter = filter or MarketFilter()
        params: Dict[str, str] = {}
        if filter.type:
            params["type"] = _join(filter.type)
        if filter.provider:
            params["provider"] = _join(filter.provider)
        if filter.token:
            params["token"] = filter.token

        data = await self._get("/v1/markets", params)
        markets = [Market.model_validate(m) for m in data.get("markets", [])]

        if filter.min_apy is not None:
            markets = [m for m in markets if (m.deposit_apy or 0) >= filter.min_apy]
        if filter.max_apy is not None:
            markets = [m for m in markets if (m.deposit_apy or 0) <= filter.max_apy]
        if filter.min_tvl is not None:
            markets = [m for m in markets if (m.total_deposit_usd or 0) >= filter.min_tvl]
        return markets

    async def get_markets_grouped(self) -> Dict[str, Any]:
        return await self._get("/v1/markets/grouped")

    async def get_markets_by_protocol(self, protocol: str) -> List[Market]:
        return await self.get_markets(MarketFilter(provider=protocol))

    async def get_markets_by_type(self, market_type: str) -> List[Market]:
        return await self.get_markets(MarketFilter(type=market_type))

    async def get_market(self, market_id: str) -> Optional[Market]:
        markets = await self.get_markets()
        return next((m for m in markets if m.id == market_id), None)

    # --- Positions ---

    async def get_positions(self, wallet_address: str, filter: Optional[PositionFilter] = None) -> List[Position]:
        filter = filter or PositionFilter()
        params: Dict[str, str] = {}
        if filter.type:
            params["type"] = _join(filter.type)
        if filter.provider:
            params["provider"] = _join(filter.provider)
        if filter.side:
            params["side"] = filter.side

        data = await self._get(f"/v1/positions/{wallet_address}", params)
        return [Position.model_validate(p) for p in data.get("positions", [])]

    async def get_historical_positions(
        self,
        wallet_address: str,
        start_date: Optional[datetime] = None,
        end_date: Optional[datetime] = None,
    ) -> Dict[str, Any]:
        params: Dict[str, str] = {}
        if start_date:
            params["startDate"] = start_date.isoformat()
        if end_date:
            params["endDate"] = end_date.isoformat()
        return await self._get(f"/v1/positions/{wallet_address}/history", params)

    # --- Aggregated queries ---

    async def get_best_yield_markets(self, limit: int = 10) -> List[Market]:
        markets = await self.get_markets(MarketFilter(type="yield"))
        with_apy = [m for m in markets if m.deposit_apy is not None]
        return sorted(with_apy, key=lambda m: m.deposit_apy, reverse=True)[:limit]

    async def get_best_borrow_rates(self, limit: int = 10) -> List[Market]:
        markets = await self.get_markets(MarketFilter(type="lending"))
        with_rate = [m for m in markets if m.borrow_apy is not None]
        return sorted(with_rate, key=lambda m: m.borrow_apy)[:limit]

    async def get_top_tvl_markets(self, limit: int = 10) -> List[Market]:
        markets = await self.get_markets()
        with_tvl = [m for m in markets if m.total_deposit_usd is not None]
        return sorted(with_tvl, key=lambda m: m.total_deposit_usd, reverse=True)[:limit]

    async def search_markets_by_token(self, symbol: str) -> List[Market]:
        """Case-insensitive substring match on the market's token symbols."""
        needle = symbol.lower()
        markets = await self.get_markets()
        return [
            m for m in markets
            if any(
                token is not None and token.symbol and needle in token.symbol.lower()
                for token in (m.token, m.token_a, m.token_b)
            )
        ]
