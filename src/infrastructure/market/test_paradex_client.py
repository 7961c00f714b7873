import httpx
import pytest
from unittest.mock import MagicMock

from src.infrastructure.market.paradex_client import ParadexClient
from src.infrastructure.market.market_data_base import MarketDataError


def make_config():
    config = MagicMock()
    config.paradex_api_base_url = "https://api.testnet.paradex.trade/v1"
    config.paradex_timeout = 5.0
    return config


def make_client(handler) -> ParadexClient:
    return ParadexClient(config=make_config(), transport=httpx.MockTransport(handler))


@pytest.mark.asyncio
async def test_fetch_best_bid_offer():
    def handler(request: httpx.Request) -> httpx.Response:
        assert request.url.path == "/v1/bbo/ETH-USD-PERP"
        return httpx.Response(200, json={"market": "ETH-USD-PERP", "bid": "2500.5", "ask": "2501"})

    client = make_client(handler)
    bbo = await client.fetch_best_bid_offer("ETH-USD-PERP")
    await client.close()

    assert bbo.market == "ETH-USD-PERP"
    assert bbo.bid == "2500.5"
    assert bbo.ask == "2501"


@pytest.mark.asyncio
async def test_fetch_best_bid_offer_without_bid():
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, json={"market": "SOL-USD-PERP", "bid": None, "ask": "150"})

    client = make_client(handler)
    bbo = await client.fetch_best_bid_offer("SOL-USD-PERP")
    await client.close()

    assert bbo.bid is None
    assert bbo.ask == "150"


@pytest.mark.asyncio
async def test_http_error_raises_market_data_error():
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(404, json={"error": "MARKET_NOT_FOUND"})

    client = make_client(handler)
    with pytest.raises(MarketDataError):
        await client.fetch_best_bid_offer("NOPE-USD-PERP")
    await client.close()


@pytest.mark.asyncio
async def test_timeout_raises_market_data_error():
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ReadTimeout("timed out", request=request)

    client = make_client(handler)
    with pytest.raises(MarketDataError):
        await client.fetch_best_bid_offer("ETH-USD-PERP")
    await client.close()


@pytest.mark.asyncio
async def test_list_markets():
    def handler(request: httpx.Request) -> httpx.Response:
        assert request.url.path == "/v1/markets"
        return httpx.Response(200, json={"results": [
            {"symbol": "BTC-USD-PERP"},
            {"symbol": "ETH-USD-PERP"},
            {"base_currency": "XYZ"},
        ]})

    client = make_client(handler)
    markets = await client.list_markets()
    await client.close()

    assert markets == ["BTC-USD-PERP", "ETH-USD-PERP"]
