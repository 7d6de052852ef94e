"""
Tests for blink URL handling and the action server describe/build exchange.
"""
import json

import httpx
import pytest

from solana_blinks.blinks import ActionFetcher, build_action_url, parse_blink_url, resolve_href
from solana_blinks.errors import MetadataFetchError, TransactionBuildError
from solana_blinks.models import BlinkAction

ACCOUNT = "9xQeWvG816bUx9EPjHmaT23yvVM2ZWbrrpZb9PusVFin"

METADATA = {
    "icon": "https://kamino.dial.to/icon.png",
    "title": "Kamino Lend",
    "description": "Deposit USDC into Kamino",
    "label": "Deposit",
    "links": {
        "actions": [
            {"label": "Deposit 10", "href": "/api/v0/lend/usdc/deposit?amount=10"},
            {
                "label": "Deposit",
                "href": "api/v0/lend/usdc/deposit?amount={amount}",
                "parameters": [{"name": "amount", "label": "Amount", "required": True}],
            },
            {"label": "Docs", "href": "https://docs.kamino.finance/deposit"},
        ]
    },
}


# --- URL Helpers ---

def test_parse_blink_url_strips_prefix():
    assert parse_blink_url("blink:https://x.com/a") == "https://x.com/a"
    assert parse_blink_url("https://x.com/a") == "https://x.com/a"


def test_build_action_url_merges_params():
    url = build_action_url("blink:https://host/path?x=1", {"amount": 100})

    assert url == "https://host/path?x=1&amount=100"


def test_build_action_url_replaces_existing_key():
    url = build_action_url("https://host/path?amount=1&x=2", {"amount": 5})

    assert httpx.URL(url).params["amount"] == "5"
    assert httpx.URL(url).params["x"] == "2"


def test_build_action_url_without_params_is_unchanged():
    assert build_action_url("https://host/path?x=1", {}) == "https://host/path?x=1"


def test_resolve_href_relative_and_absolute():
    base = "https://x.com/api/actions/thing?y=2"

    assert resolve_href("/foo", base) == "https://x.com/foo"
    assert resolve_href("foo", base) == "https://x.com/foo"
    assert resolve_href("https://other.io/bar", base) == "https://other.io/bar"


# --- Describe ---

@pytest.mark.asyncio
async def test_describe_returns_metadata(make_http_client, http_log):
    client = make_http_client({("GET", "/api/v0/lend/usdc"): httpx.Response(200, json=METADATA)})
    fetcher = ActionFetcher(http_client=client)

    metadata = await fetcher.describe("blink:https://kamino.dial.to/api/v0/lend/usdc")

    assert metadata.title == "Kamino Lend"
    assert len(metadata.links.actions) == 3
    assert str(http_log[0].url) == "https://kamino.dial.to/api/v0/lend/usdc"
    assert http_log[0].headers["accept"] == "application/json"


@pytest.mark.asyncio
async def test_describe_failure_raises_metadata_error(make_http_client):
    fetcher = ActionFetcher(http_client=make_http_client({}))

    with pytest.raises(MetadataFetchError) as exc_info:
        await fetcher.describe("https://kamino.dial.to/missing")

    assert exc_info.value.status == 404
    assert str(exc_info.value) == "Failed to fetch blink metadata: 404 Not Found"


# --- Build ---

@pytest.mark.asyncio
async def test_build_posts_account_to_parameterized_url(make_http_client, http_log):
    client = make_http_client({
        ("POST", "/path"): httpx.Response(200, json={"transaction": "AQID", "message": "Deposit 100"}),
    })
    fetcher = ActionFetcher(http_client=client)

    blink_tx = await fetcher.build("blink:https://host/path?x=1", ACCOUNT, {"amount": 100})

    assert blink_tx.transaction == "AQID"
    assert blink_tx.message == "Deposit 100"
    request = http_log[0]
    assert str(request.url) == "https://host/path?x=1&amount=100"
    assert json.loads(request.content) == {"account": ACCOUNT}
    assert request.headers["content-type"] == "application/json"


@pytest.mark.asyncio
async def test_build_rejection_carries_status_and_body(make_http_client):
    client = make_http_client({("POST", "/path"): httpx.Response(422, text="amount too small")})
    fetcher = ActionFetcher(http_client=client)

    with pytest.raises(TransactionBuildError) as exc_info:
        await fetcher.build("https://host/path", ACCOUNT, {"amount": 0})

    assert exc_info.value.status == 422
    assert "422" in str(exc_info.value)
    assert "amount too small" in str(exc_info.value)


@pytest.mark.asyncio
async def test_build_rejection_with_empty_body(make_http_client):
    client = make_http_client({("POST", "/path"): httpx.Response(500)})
    fetcher = ActionFetcher(http_client=client)

    with pytest.raises(TransactionBuildError, match="500 - Unknown error"):
        await fetcher.build("https://host/path", ACCOUNT)


@pytest.mark.asyncio
async def test_build_rejects_payload_without_transaction(make_http_client):
    client = make_http_client({("POST", "/path"): httpx.Response(200, json={"message": "nothing here"})})
    fetcher = ActionFetcher(http_client=client)

    with pytest.raises(TransactionBuildError, match="Invalid transaction payload"):
        await fetcher.build("https://host/path", ACCOUNT)


@pytest.mark.asyncio
async def test_fetch_uses_action_params(make_http_client, http_log):
    client = make_http_client({("POST", "/deposit"): httpx.Response(200, json={"transaction": "AQID"})})
    fetcher = ActionFetcher(http_client=client)
    action = BlinkAction(url="blink:https://host/deposit", params={"amount": 2.5})

    await fetcher.fetch(action, ACCOUNT)

    assert http_log[0].url.params["amount"] == "2.5"


# --- Inspect ---

@pytest.mark.asyncio
async def test_inspect_resolves_linked_actions(make_http_client):
    client = make_http_client({("GET", "/api/v0/lend/usdc"): httpx.Response(200, json=METADATA)})
    fetcher = ActionFetcher(http_client=client)

    result = await fetcher.inspect("blink:https://kamino.dial.to/api/v0/lend/usdc")

    assert result.url == "https://kamino.dial.to/api/v0/lend/usdc"
    assert [a.href for a in result.actions] == [
        "https://kamino.dial.to/api/v0/lend/usdc/deposit?amount=10",
        "https://kamino.dial.to/api/v0/lend/usdc/deposit?amount={amount}",
        "https://docs.kamino.finance/deposit",
    ]
    assert result.actions[1].parameters[0].name == "amount"


@pytest.mark.asyncio
async def test_inspect_without_links_uses_top_level_label(make_http_client):
    body = {"title": "Stake", "label": "Stake SOL"}
    client = make_http_client({("GET", "/stake"): httpx.Response(200, json=body)})
    fetcher = ActionFetcher(http_client=client)

    result = await fetcher.inspect("https://x.com/stake")

    assert len(result.actions) == 1
    assert result.actions[0].label == "Stake SOL"
    assert result.actions[0].href == "https://x.com/stake"


@pytest.mark.asyncio
async def test_inspect_without_links_or_label_has_no_actions(make_http_client):
    client = make_http_client({("GET", "/stake"): httpx.Response(200, json={"title": "Stake"})})
    fetcher = ActionFetcher(http_client=client)

    result = await fetcher.inspect("https://x.com/stake")

    assert result.actions == []


# --- Client Lifecycle ---

@pytest.mark.asyncio
async def test_close_leaves_injected_client_open(make_http_client):
    client = make_http_client({})

    async with ActionFetcher(http_client=client):
        pass

    assert client.is_closed is False
    await client.aclose()


@pytest.mark.asyncio
async def test_close_releases_owned_client():
    fetcher = ActionFetcher()
    client = fetcher.client

    await fetcher.close()

    assert client.is_closed is True
