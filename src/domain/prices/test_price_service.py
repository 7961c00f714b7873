import pytest
from unittest.mock import AsyncMock, MagicMock

from src.domain.prices.price_service import PriceService, format_age, is_excluded_market
from src.domain.prices.dtos.price_dto import BBODTO, CachedPrice, PriceRange
from src.infrastructure.market.market_data_base import MarketDataError


class FakeClock:
    def __init__(self, now: float = 1_700_000_000.0):
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


def bbo_gateway(quotes):
    """
    Gateway mock: `quotes` mapea market -> BBODTO | Exception.
    Mercados no listados fallan con MarketDataError.
    """
    gateway = MagicMock()

    async def fetch(market):
        value = quotes.get(market, MarketDataError(f"unknown market {market}"))
        if isinstance(value, Exception):
            raise value
        return value

    gateway.fetch_best_bid_offer = AsyncMock(side_effect=fetch)
    return gateway


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def mock_registry():
    registry = MagicMock()
    registry.get_markets.return_value = None
    return registry


@pytest.fixture
def mock_sleep():
    return AsyncMock(return_value=None)


@pytest.fixture
def price_ranges():
    return {
        "BTC": PriceRange(min=20_000, max=200_000, typical=100_000),
        "ETH": PriceRange(min=1_000, max=10_000, typical=3_000),
    }


def make_service(gateway, registry, clock, sleep, ranges=None):
    return PriceService(
        gateway=gateway,
        market_registry=registry,
        price_ranges=ranges or {},
        stable_tokens=["USDC", "USDT", "DAI"],
        ttl_seconds=30 * 60,
        retry_attempts=3,
        retry_delay_seconds=1.0,
        clock=clock,
        sleep=sleep,
    )


# ==================== TESTS DE STABLECOINS ====================


@pytest.mark.asyncio
async def test_stable_token_is_one_without_network(mock_registry, clock, mock_sleep):
    gateway = bbo_gateway({})
    service = make_service(gateway, mock_registry, clock, mock_sleep)

    assert await service.get_price("usdc") == 1.0
    assert await service.get_price("DAI", force_fresh=True) == 1.0
    gateway.fetch_best_bid_offer.assert_not_called()


def test_is_stable_is_case_insensitive(mock_registry, clock, mock_sleep):
    service = make_service(bbo_gateway({}), mock_registry, clock, mock_sleep)

    assert service.is_stable(" usdt ") is True
    assert service.is_stable("ETH") is False


# ==================== TESTS DE CACHE ====================


@pytest.mark.asyncio
async def test_fresh_cache_hit_skips_gateway(mock_registry, clock, mock_sleep, price_ranges):
    gateway = bbo_gateway({"ETH-USD-PERP": BBODTO(market="ETH-USD-PERP", bid="2500", ask="2501")})
    service = make_service(gateway, mock_registry, clock, mock_sleep, price_ranges)

    assert await service.get_price("ETH") == 2500.0
    calls = gateway.fetch_best_bid_offer.await_count

    clock.advance(29 * 60)
    assert await service.get_price("ETH") == 2500.0
    assert gateway.fetch_best_bid_offer.await_count == calls


@pytest.mark.asyncio
async def test_force_fresh_bypasses_cache(mock_registry, clock, mock_sleep, price_ranges):
    gateway = bbo_gateway({"ETH-USD-PERP": BBODTO(market="ETH-USD-PERP", bid="2500")})
    service = make_service(gateway, mock_registry, clock, mock_sleep, price_ranges)

    await service.get_price("ETH")
    calls = gateway.fetch_best_bid_offer.await_count

    await service.get_price("ETH", force_fresh=True)
    assert gateway.fetch_best_bid_offer.await_count == calls + 1


@pytest.mark.asyncio
async def test_expired_cache_triggers_refetch(mock_registry, clock, mock_sleep, price_ranges):
    gateway = bbo_gateway({"ETH-USD-PERP": BBODTO(market="ETH-USD-PERP", bid="2500")})
    service = make_service(gateway, mock_registry, clock, mock_sleep, price_ranges)

    await service.get_price("ETH")
    calls = gateway.fetch_best_bid_offer.await_count

    clock.advance(31 * 60)
    await service.get_price("ETH")
    assert gateway.fetch_best_bid_offer.await_count == calls + 1


@pytest.mark.asyncio
async def test_expired_cache_is_last_resort_fallback(mock_registry, clock, mock_sleep):
    quotes = {"SOL-USD-PERP": BBODTO(market="SOL-USD-PERP", bid="150")}
    gateway = bbo_gateway(quotes)
    service = make_service(gateway, mock_registry, clock, mock_sleep)

    assert await service.get_price("SOL") == 150.0

    # Todo el venue cae después de vencer el TTL
    quotes.clear()
    clock.advance(2 * 60 * 60)

    assert await service.get_price("SOL") == 150.0


def test_cache_status_and_clear(mock_registry, clock, mock_sleep):
    service = make_service(bbo_gateway({}), mock_registry, clock, mock_sleep)
    service._cache["ETH"] = CachedPrice(
        symbol="ETH", price=2500.0, fetched_at=clock.now - 185, source="ETH-USD"
    )

    status = service.get_cache_status()
    assert status["ETH"].age == "3m 5s"
    assert status["ETH"].source == "ETH-USD"

    service.clear_cache("eth")
    assert service.get_cache_status() == {}


def test_format_age():
    assert format_age(42) == "42s"
    assert format_age(185) == "3m 5s"
    assert format_age(3720) == "1h 2m"


# ==================== TESTS DE PLAUSIBILIDAD ====================


@pytest.mark.asyncio
async def test_out_of_range_price_is_never_accepted(mock_registry, clock, mock_sleep, price_ranges):
    gateway = bbo_gateway({
        "ETH-USD-PERP": BBODTO(market="ETH-USD-PERP", bid="50000"),
        "ETH-USD": BBODTO(market="ETH-USD", bid="12"),
    })
    service = make_service(gateway, mock_registry, clock, mock_sleep, price_ranges)

    price = await service.get_price("ETH")

    # Cae al precio típico, nunca al valor fuera de rango
    assert price == 3_000
    assert "ETH" not in service.get_cache_status()


def test_generic_ceiling_with_high_value_exemption(mock_registry, clock, mock_sleep):
    service = make_service(bbo_gateway({}), mock_registry, clock, mock_sleep)

    assert service.is_plausible("FOO", 9_999) is True
    assert service.is_plausible("FOO", 10_001) is False
    assert service.is_plausible("FOO", 0) is False
    assert service.is_plausible("BTC", 150_000) is True
    assert service.is_plausible("BTC", -1) is False


# ==================== TESTS DE MERCADOS CONOCIDOS ====================


@pytest.mark.asyncio
async def test_known_markets_spot_before_perp_and_exclusions(clock, mock_sleep, price_ranges):
    registry = MagicMock()
    registry.get_markets.return_value = [
        "ETH-USD-PERP",
        "ETH-USD-3000-C",
        "ETH-USDT",
        "ETH-USD",
    ]
    gateway = bbo_gateway({
        "ETH-USD": BBODTO(market="ETH-USD", bid="2400"),
        "ETH-USD-PERP": BBODTO(market="ETH-USD-PERP", bid="2450"),
    })
    service = make_service(gateway, registry, clock, mock_sleep, price_ranges)

    assert await service.get_price("ETH") == 2400.0

    called = [c.args[0] for c in gateway.fetch_best_bid_offer.await_args_list]
    assert called == ["ETH-USD"]


def test_exclusion_patterns():
    assert is_excluded_market("ETH-USD-3000-C")
    assert is_excluded_market("BTC-USD-95000-P")
    assert is_excluded_market("ETH-USDT")
    assert is_excluded_market("BTC-USD-123456")
    assert not is_excluded_market("ETH-USD-PERP")
    assert not is_excluded_market("ETH-USD")


@pytest.mark.asyncio
async def test_ask_fallback_when_no_bid(clock, mock_sleep):
    registry = MagicMock()
    registry.get_markets.return_value = ["SOL-USD-PERP"]
    gateway = bbo_gateway({"SOL-USD-PERP": BBODTO(market="SOL-USD-PERP", bid=None, ask="200")})
    service = make_service(gateway, registry, clock, mock_sleep)

    price = await service.get_price("SOL")

    assert price == pytest.approx(199.0)
    assert service.get_cache_status()["SOL"].source == "SOL-USD-PERP (adjusted ask)"


@pytest.mark.asyncio
async def test_btc_market_conversion(clock, mock_sleep, price_ranges):
    registry = MagicMock()
    registry.get_markets.side_effect = lambda s: {
        "STRK": ["STRK-BTC"],
        "BTC": ["BTC-USD-PERP"],
    }.get(s)
    gateway = bbo_gateway({
        "STRK-BTC": BBODTO(market="STRK-BTC", bid="0.00001"),
        "BTC-USD-PERP": BBODTO(market="BTC-USD-PERP", bid="60000"),
    })
    service = make_service(gateway, registry, clock, mock_sleep, price_ranges)

    price = await service.get_price("STRK")

    assert price == pytest.approx(0.6)
    assert service.get_cache_status()["STRK"].source == "STRK-BTC (via BTC)"


@pytest.mark.asyncio
async def test_btc_never_resolves_through_btc_markets(clock, mock_sleep):
    registry = MagicMock()
    registry.get_markets.return_value = ["BTC-BTC"]
    gateway = bbo_gateway({"BTC-BTC": BBODTO(market="BTC-BTC", bid="1")})
    service = make_service(gateway, registry, clock, mock_sleep)

    assert await service.get_price("BTC") is None
    gateway.fetch_best_bid_offer.assert_not_called()


# ==================== TESTS DE RETRY / UNRESOLVED ====================


@pytest.mark.asyncio
async def test_retry_then_success(mock_registry, clock, mock_sleep):
    gateway = MagicMock()
    gateway.fetch_best_bid_offer = AsyncMock(side_effect=[
        MarketDataError("timeout"),
        MarketDataError("timeout"),
        BBODTO(market="SOL-USD-PERP", bid="150"),
    ])
    service = make_service(gateway, mock_registry, clock, mock_sleep)

    assert await service.get_price("SOL") == 150.0
    assert gateway.fetch_best_bid_offer.await_count == 3
    assert mock_sleep.await_count == 2
    mock_sleep.assert_awaited_with(1.0)


@pytest.mark.asyncio
async def test_unknown_token_all_generic_markets_failing_is_unresolved(mock_registry, clock, mock_sleep):
    gateway = bbo_gateway({})
    service = make_service(gateway, mock_registry, clock, mock_sleep)

    price = await service.get_price("NOPE")

    assert price is None
    called = [c.args[0] for c in gateway.fetch_best_bid_offer.await_args_list]
    # 3 intentos por template; el template -BTC necesita antes el precio de BTC
    assert called.count("NOPE-USD-PERP") == 3
    assert called.count("NOPE-USD") == 3
    assert "NOPE" not in service.get_cache_status()


@pytest.mark.asyncio
async def test_empty_bbo_is_not_retried(clock, mock_sleep):
    registry = MagicMock()
    registry.get_markets.return_value = ["SOL-USD-PERP"]
    gateway = bbo_gateway({"SOL-USD-PERP": BBODTO(market="SOL-USD-PERP")})
    service = make_service(gateway, registry, clock, mock_sleep)

    assert await service.get_price("SOL") is None
    assert gateway.fetch_best_bid_offer.await_count == 1
    mock_sleep.assert_not_awaited()


@pytest.mark.asyncio
async def test_unexpected_gateway_error_never_raises(clock, mock_sleep, price_ranges):
    registry = MagicMock()
    registry.get_markets.side_effect = RuntimeError("boom")
    service = make_service(bbo_gateway({}), registry, clock, mock_sleep, price_ranges)

    assert await service.get_price("ETH") == 3_000
    assert await service.get_price("XYZ") is None
