"""
Solana Actions (Blinks) resolution.

An action endpoint answers GET with display metadata and POST ``{"account": ...}``
with an unsigned transaction. References may carry a ``blink:`` prefix, which is
stripped before any request is made.
"""

from typing import List, Mapping, Optional

import httpx

from mcp.server.fastmcp.utilities.logging import get_logger

from .config import HTTP_TIMEOUT
from .errors import MetadataFetchError, TransactionBuildError
from .models import BlinkAction, BlinkMetadata, BlinkTransaction, InspectedAction, InspectResult, ParamValue

logger = get_logger(__name__)

BLINK_PREFIX = "blink:"
JSON_HEADERS = {"Accept": "application/json"}


def parse_blink_url(blink_url: str) -> str:
    """Returns the HTTP(S) URL behind a blink reference."""
    if blink_url.startswith(BLINK_PREFIX):
        return blink_url[len(BLINK_PREFIX):]
    return blink_url


def build_action_url(blink_url: str, params: Optional[Mapping[str, ParamValue]] = None) -> str:
    """Applies ``params`` to the query string; a param replaces any existing key of the same name."""
    url = parse_blink_url(blink_url)
    if not params:
        return url
    parsed = httpx.URL(url)
    for key, value in params.items():
        parsed = parsed.copy_set_param(key, str(value))
    return str(parsed)


def url_origin(url: str) -> str:
    parsed = httpx.URL(url)
    return f"{parsed.scheme}://{parsed.netloc.decode('ascii')}"


def resolve_href(href: str, base_url: str) -> str:
    """Absolute hrefs pass through; relative ones hang off the origin of ``base_url``."""
    if href.startswith("http"):
        return href
    if not href.startswith("/"):
        href = f"/{href}"
    return f"{url_origin(base_url)}{href}"


class ActionFetcher:
    """Performs the describe (GET) / build (POST) exchange against action endpoints."""

    def __init__(self, http_client: Optional[httpx.AsyncClient] = None, timeout: float = HTTP_TIMEOUT):
        self._client = http_client
        self._owns_client = http_client is None
        self._timeout = timeout

    @property
    def client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(timeout=self._timeout, follow_redirects=True)
        return self._client

    async def close(self) -> None:
        if self._client is not None and self._owns_client:
            await self._client.aclose()
            self._client = None

    async def __aenter__(self) -> "ActionFetcher":
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.close()

    async def describe(self, blink_url: str) -> BlinkMetadata:
        url = parse_blink_url(blink_url)
        logger.debug(f"GET {url}")
        response = await self.client.get(url, headers=JSON_HEADERS)
        if not response.is_success:
            raise MetadataFetchError(response.status_code, response.reason_phrase)
        return BlinkMetadata.model_validate(response.json())

    async def build(
        self,
        blink_url: str,
        account: str,
        params: Optional[Mapping[str, ParamValue]] = None,
    ) -> BlinkTransaction:
        url = build_action_url(blink_url, params)
        logger.debug(f"POST {url} for account {account}")
        response = await self.client.post(
            url,
            json={"account": account},
            headers={**JSON_HEADERS, "Content-Type": "application/json"},
        )
        if not response.is_success:
            try:
                detail = response.text
            except httpx.StreamError:
                detail = "Unknown error"
            raise TransactionBuildError(response.status_code, detail or "Unknown error")

        try:
            blink_tx = BlinkTransaction.model_validate(response.json())
        except ValueError as e:
            raise TransactionBuildError(response.status_code, f"Invalid transaction payload: {e}")
        logger.info(f"Received transaction from {url}")
        return blink_tx

    async def fetch(self, action: BlinkAction, account: str) -> BlinkTransaction:
        return await self.build(action.url, account, action.params)

    async def inspect(self, blink_url: str) -> InspectResult:
        """Describes an action and lists what can be executed from it."""
        url = parse_blink_url(blink_url)
        metadata = await self.describe(url)

        linked = metadata.links.actions if metadata.links else []
        actions: List[InspectedAction] = []
        if not linked:
            if metadata.label:
                actions.append(InspectedAction(label=metadata.label, href=url))
        else:
            for action in linked:
                actions.append(InspectedAction(
                    label=action.label,
                    href=resolve_href(action.href, url),
                    parameters=action.parameters,
                ))

        return InspectResult(url=url, metadata=metadata, actions=actions)
