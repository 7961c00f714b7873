import pytest
from unittest.mock import AsyncMock, MagicMock

from src.domain.prices.market_registry import MarketRegistry, base_token
from src.infrastructure.market.market_data_base import MarketDataError


class FakeClock:
    def __init__(self, now: float = 1_000.0):
        self.now = now

    def __call__(self) -> float:
        return self.now


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def mock_gateway():
    gateway = MagicMock()
    gateway.list_markets = AsyncMock(return_value=[
        "BTC-USD-PERP",
        "ETH-USD-PERP",
        "ETH-USD-3000-C",
        "STRK-BTC",
        "LORDS-OPTION",
    ])
    return gateway


@pytest.fixture
def registry(mock_gateway, clock):
    return MarketRegistry(gateway=mock_gateway, validity_seconds=30 * 60, clock=clock)


def test_base_token():
    assert base_token("BTC-USD-PERP") == "BTC"
    assert base_token("eth-usd") == "ETH"


# ==================== TESTS DE LISTADO ====================


@pytest.mark.asyncio
async def test_refresh_groups_markets_by_token(registry):
    result = await registry.refresh()

    assert result.source == "api"
    assert result.tokens == ["BTC", "ETH", "LORDS", "STRK"]
    assert result.tradable_tokens == ["BTC", "ETH", "STRK"]
    assert registry.get_markets("eth") == ["ETH-USD-PERP", "ETH-USD-3000-C"]


@pytest.mark.asyncio
async def test_refresh_failure_keeps_fallback(registry, mock_gateway):
    mock_gateway.list_markets = AsyncMock(side_effect=MarketDataError("down"))

    result = await registry.refresh()

    assert result.source == "fallback"
    assert "BTC" in result.tokens
    assert registry.get_markets("BTC") is None


@pytest.mark.asyncio
async def test_listing_expires(registry, clock):
    await registry.refresh()
    assert registry.get_markets("BTC") == ["BTC-USD-PERP"]

    clock.now += 31 * 60
    assert registry.get_markets("BTC") is None


# ==================== TESTS DE VALIDACIÓN ====================


@pytest.mark.asyncio
async def test_is_supported_with_fresh_listing(registry):
    await registry.refresh()

    supported = registry.is_supported("strk")
    assert supported.is_supported is True
    assert supported.markets == ["STRK-BTC"]

    no_quote = registry.is_supported("LORDS")
    assert no_quote.is_supported is False
    assert "does not have active USD or BTC markets" in no_quote.message

    unknown = registry.is_supported("DOGE")
    assert unknown.is_supported is False
    assert unknown.markets == []


def test_is_supported_uses_fallback_without_listing(registry):
    assert registry.is_supported("ETH").is_supported is True
    assert registry.is_supported("reth").is_supported is True
    assert registry.is_supported("PEPE").is_supported is False
