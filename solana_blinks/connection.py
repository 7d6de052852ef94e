"""
Solana RPC connection management with round-robin endpoint selection.

Endpoints come from ``SOLANA_RPC_URLS`` (comma separated), then ``SOLANA_RPC_URL``,
then the public mainnet endpoint. The list is resolved once, on first use, and the
pool hands endpoints out in order, wrapping back to the first one.

``ConnectionManager`` keeps one shared ``AsyncClient``. A call without an explicit URL
still advances the round-robin cursor but keeps returning the cached client; only an
explicit URL that differs from the cached client's endpoint replaces it. Callers that
want rotation ask for a fresh connection instead.
"""

import asyncio
import os
import time
from typing import List, Mapping, Optional

from solana.rpc.async_api import AsyncClient
from solana.rpc.commitment import Commitment

from mcp.server.fastmcp.utilities.logging import get_logger

from .config import (
    DEFAULT_COMMITMENT,
    DEFAULT_RPC_ENDPOINT,
    NETWORK_ENDPOINTS,
    RPC_URL_ENV,
    RPC_URLS_ENV,
)
from .models import EndpointHealth

logger = get_logger(__name__)


class RpcEndpointPool:
    """Ordered RPC endpoint list with a round-robin cursor."""

    def __init__(self, urls: Optional[List[str]] = None, environ: Optional[Mapping[str, str]] = None):
        self._environ = environ
        self._urls: List[str] = [url for url in (urls or []) if url]
        self._index = 0

    def configure(self) -> List[str]:
        """Resolves the endpoint list on first call and returns the cached list afterwards."""
        if self._urls:
            return self._urls

        env = os.environ if self._environ is None else self._environ

        multiple = env.get(RPC_URLS_ENV)
        if multiple:
            self._urls = [url.strip() for url in multiple.split(',') if url.strip()]

        if not self._urls:
            single = env.get(RPC_URL_ENV)
            if single:
                self._urls = [single]

        if not self._urls:
            self._urls = [DEFAULT_RPC_ENDPOINT]

        logger.debug(f"RPC pool configured with {len(self._urls)} endpoint(s)")
        return self._urls

    @property
    def urls(self) -> List[str]:
        return list(self.configure())

    def next(self) -> str:
        urls = self.configure()
        url = urls[self._index]
        self._index = (self._index + 1) % len(urls)
        return url


def create_connection(url: str, commitment: Commitment = DEFAULT_COMMITMENT) -> AsyncClient:
    """Creates an uncached client for an explicit endpoint."""
    return AsyncClient(url, commitment=commitment)


async def check_health(connection: AsyncClient) -> EndpointHealth:
    """Queries slot and version concurrently. Failures are reported, never raised."""
    try:
        slot_resp, version_resp = await asyncio.gather(
            connection.get_slot(),
            connection.get_version(),
        )
        return EndpointHealth(
            healthy=True,
            slot=slot_resp.value,
            version=version_resp.value.solana_core,
        )
    except Exception as e:
        logger.warning(f"RPC health check failed: {e}")
        return EndpointHealth(healthy=False, error=str(e) or "Unknown error")


class ConnectionManager:
    """Owns the endpoint pool and the shared connection for one run."""

    def __init__(self, pool: Optional[RpcEndpointPool] = None, commitment: Commitment = DEFAULT_COMMITMENT):
        self.pool = pool or RpcEndpointPool()
        self.commitment = commitment
        self._shared: Optional[AsyncClient] = None
        self._shared_url: Optional[str] = None

    @property
    def shared_url(self) -> Optional[str]:
        return self._shared_url

    def get_shared(self, url: Optional[str] = None) -> AsyncClient:
        """Returns the cached connection, creating it if missing or if ``url`` names another endpoint."""
        target = url or self.pool.next()
        if self._shared is None or (url and url != self._shared_url):
            # The replaced client is dropped without closing; it may still be in use
            logger.debug(f"Creating shared RPC connection to {target}")
            self._shared = create_connection(target, self.commitment)
            self._shared_url = target
        return self._shared

    def get_fresh(self) -> AsyncClient:
        """Always a new, uncached connection on the next round-robin endpoint."""
        url = self.pool.next()
        logger.debug(f"Creating fresh RPC connection to {url}")
        return create_connection(url, self.commitment)

    def create(self, url: str) -> AsyncClient:
        return create_connection(url, self.commitment)

    def for_network(self, network: str) -> AsyncClient:
        try:
            url = NETWORK_ENDPOINTS[network]
        except KeyError:
            raise ValueError(f"Unknown network '{network}'. Expected one of: {', '.join(NETWORK_ENDPOINTS)}")
        return self.create(url)

    async def check_health(self, connection: Optional[AsyncClient] = None) -> EndpointHealth:
        """Checks ``connection``, or the shared connection when none is given."""
        if connection is not None:
            return await check_health(connection)
        health = await check_health(self.get_shared())
        health.url = self._shared_url
        return health

    async def check_all_health(self) -> List[EndpointHealth]:
        """Health of every configured endpoint, in configured order, with latency."""

        async def check_endpoint(url: str) -> EndpointHealth:
            start = time.perf_counter()
            async with self.create(url) as conn:
                health = await check_health(conn)
            health.url = url
            health.latency_ms = int((time.perf_counter() - start) * 1000)
            return health

        return list(await asyncio.gather(*(check_endpoint(url) for url in self.pool.urls)))

    async def get_current_slot(self, connection: Optional[AsyncClient] = None) -> int:
        conn = connection or self.get_shared()
        return (await conn.get_slot()).value

    async def get_recent_blockhash(self, connection: Optional[AsyncClient] = None) -> str:
        conn = connection or self.get_shared()
        resp = await conn.get_latest_blockhash()
        return str(resp.value.blockhash)

    async def close(self) -> None:
        if self._shared is not None:
            await self._shared.close()
            self._shared = None
            self._shared_url = None
