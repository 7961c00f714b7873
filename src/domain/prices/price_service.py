import asyncio
import logging
import re
import time
from datetime import datetime, timezone
from typing import Awaitable, Callable, Dict, Iterable, List, Optional

from src.domain.prices.dtos.price_dto import (
    BBODTO,
    CachedPrice,
    CacheStatusDTO,
    PriceQuote,
    PriceRange,
)
from src.domain.prices.market_registry import MarketRegistry
from src.infrastructure.market.market_data_base import (
    MarketDataGateway,
    MarketDataError,
)

logger = logging.getLogger(__name__)

Clock = Callable[[], float]
Sleep = Callable[[float], Awaitable[None]]


# Opciones, pares en USDT y futuros con vencimiento (sufijo numérico largo)
EXCLUDED_MARKET_PATTERNS = (
    re.compile(r"-USD-\d+-(C|P)$"),
    re.compile(r"-USDT$"),
    re.compile(r"-\d{5,}$"),
)

GENERIC_MARKET_TEMPLATES = (
    "{symbol}-USD-PERP",
    "{symbol}-USD",
    "{symbol}-BTC",
)

REFERENCE_SOURCE = "reference_value"


def format_age(seconds: float) -> str:
    seconds = int(max(seconds, 0))
    if seconds < 60:
        return f"{seconds}s"

    minutes = seconds // 60
    if minutes < 60:
        return f"{minutes}m {seconds % 60}s"

    return f"{minutes // 60}h {minutes % 60}m"


def is_excluded_market(market: str) -> bool:
    return any(p.search(market) for p in EXCLUDED_MARKET_PATTERNS)


def prioritize_usd_markets(markets: Iterable[str]) -> List[str]:
    """Spot (X-USD) -> perp (X-USD-PERP) -> otros mercados cotizados en USD."""
    markets = list(markets)
    spot = [m for m in markets if "-USD" in m and "-USD-" not in m]
    perp = [m for m in markets if "-USD-PERP" in m]
    other = [m for m in markets if "-USD" in m and m not in spot and m not in perp]
    return spot + perp + other


class PriceService:
    """
    Resolución de precios en USD por token.

    Orden de resolución:
    1. Stablecoins -> 1.0 sin red.
    2. Cache (si no es force_fresh) mientras tenga menos de TTL y sea plausible.
    3. Fetch fresco: mercados conocidos del MarketRegistry (spot, perp, otros
       USD y por último cruce vía BTC) o, si no hay mercados conocidos, los
       templates genéricos. Cada llamada al gateway se reintenta ante errores
       de transporte.
    4. Fallbacks: último precio cacheado plausible (aunque esté vencido),
       precio típico configurado, o None.

    Nunca lanza excepciones: None significa "precio no resuelto".
    """

    def __init__(
        self,
        gateway: MarketDataGateway,
        market_registry: MarketRegistry,
        price_ranges: Optional[Dict[str, PriceRange]] = None,
        stable_tokens: Optional[Iterable[str]] = None,
        ttl_seconds: float = 30 * 60,
        retry_attempts: int = 3,
        retry_delay_seconds: float = 1.0,
        ask_discount: float = 0.995,
        generic_max_price: float = 10_000.0,
        high_value_token: str = "BTC",
        clock: Clock = time.time,
        sleep: Sleep = asyncio.sleep,
    ):
        self.gateway = gateway
        self.market_registry = market_registry
        self.price_ranges = {
            k.upper(): v for k, v in (price_ranges or {}).items()
        }
        self.stable_tokens = {
            s.upper() for s in (stable_tokens or ("USDC", "USDT", "DAI"))
        }
        self.ttl_seconds = ttl_seconds
        self.retry_attempts = max(1, retry_attempts)
        self.retry_delay_seconds = retry_delay_seconds
        self.ask_discount = ask_discount
        self.generic_max_price = generic_max_price
        self.high_value_token = high_value_token.upper()

        self._clock = clock
        self._sleep = sleep
        self._cache: Dict[str, CachedPrice] = {}

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------
    def is_stable(self, symbol: str) -> bool:
        return symbol.strip().upper() in self.stable_tokens

    async def get_price(self, symbol: str, force_fresh: bool = False) -> Optional[float]:
        symbol = symbol.strip().upper()

        try:
            return await self._resolve(symbol, force_fresh)
        except Exception as e:
            logger.error(f"❌ Unexpected error resolving price for {symbol}: {e}")
            return self._fallback_price(symbol)

    def is_plausible(self, symbol: str, price: float) -> bool:
        symbol = symbol.upper()

        if price is None or price <= 0:
            return False

        price_range = self.price_ranges.get(symbol)
        if price_range is not None:
            if price < price_range.min or price > price_range.max:
                logger.warning(
                    f"Price for {symbol} (${price}) is outside reasonable range: "
                    f"${price_range.min} - ${price_range.max}"
                )
                return False
            return True

        if price > self.generic_max_price and symbol != self.high_value_token:
            logger.warning(
                f"Price for {symbol} (${price}) is outside general acceptable range"
            )
            return False

        return True

    def clear_cache(self, symbol: Optional[str] = None) -> None:
        if symbol:
            self._cache.pop(symbol.upper(), None)
            logger.info(f"Cleared price cache for {symbol.upper()}")
        else:
            self._cache.clear()
            logger.info("Cleared all price cache")

    def get_cache_status(self) -> Dict[str, CacheStatusDTO]:
        now = self._clock()
        return {
            symbol: CacheStatusDTO(
                price=entry.price,
                age=format_age(now - entry.fetched_at),
                source=entry.source,
                fetched_at=datetime.fromtimestamp(entry.fetched_at, tz=timezone.utc),
            )
            for symbol, entry in self._cache.items()
        }

    # ------------------------------------------------------------------
    # Resolution
    # ------------------------------------------------------------------
    async def _resolve(self, symbol: str, force_fresh: bool) -> Optional[float]:
        if symbol in self.stable_tokens:
            return 1.0

        cached = self._cache.get(symbol)
        if not force_fresh and cached is not None and self._is_fresh(cached):
            if self.is_plausible(symbol, cached.price):
                logger.debug(f"Using cached price for {symbol}: ${cached.price} (from {cached.source})")
                return cached.price
            logger.warning(
                f"⚠️ Cached price for {symbol} (${cached.price}) is outside reasonable range. Forcing refresh."
            )

        quote = await self._fetch_fresh(symbol)
        if quote is not None:
            self._cache[symbol] = CachedPrice(
                symbol=symbol,
                price=quote.price,
                fetched_at=self._clock(),
                source=quote.source,
            )
            return quote.price

        return self._fallback_price(symbol)

    def _fallback_price(self, symbol: str) -> Optional[float]:
        cached = self._cache.get(symbol)
        if cached is not None and self.is_plausible(symbol, cached.price):
            logger.warning(
                f"Using expired cached price for {symbol}: ${cached.price} "
                f"(from {cached.source}, age: {format_age(self._clock() - cached.fetched_at)})"
            )
            return cached.price

        price_range = self.price_ranges.get(symbol)
        if price_range is not None:
            logger.warning(
                f"Using typical reference price for {symbol} as last resort: ${price_range.typical}"
            )
            return price_range.typical

        logger.error(f"Could not get any reliable price for {symbol} after trying all methods")
        return None

    def _is_fresh(self, cached: CachedPrice) -> bool:
        return (self._clock() - cached.fetched_at) < self.ttl_seconds

    # ------------------------------------------------------------------
    # Fresh fetch
    # ------------------------------------------------------------------
    async def _fetch_fresh(self, symbol: str) -> Optional[PriceQuote]:
        known_markets = self.market_registry.get_markets(symbol)

        if known_markets:
            return await self._fetch_from_known_markets(symbol, known_markets)

        logger.info(f"No known markets for {symbol}, trying generic market formats")
        return await self._fetch_from_templates(symbol)

    async def _fetch_from_known_markets(
        self,
        symbol: str,
        known_markets: List[str],
    ) -> Optional[PriceQuote]:
        filtered = [m for m in known_markets if not is_excluded_market(m)]
        if not filtered:
            logger.warning(
                f"⚠️ All {len(known_markets)} known markets for {symbol} were filtered out. Using original list."
            )
        markets = filtered or known_markets

        for market in prioritize_usd_markets(markets):
            quote = await self._quote_usd_market(symbol, market)
            if quote is not None:
                return quote

        btc_markets = [m for m in markets if "-BTC" in m]
        for market in btc_markets:
            quote = await self._quote_btc_market(symbol, market)
            if quote is not None:
                return quote

        return None

    async def _fetch_from_templates(self, symbol: str) -> Optional[PriceQuote]:
        for template in GENERIC_MARKET_TEMPLATES:
            market = template.format(symbol=symbol)

            if is_excluded_market(market):
                logger.debug(f"Skipping excluded market pattern: {market}")
                continue

            if market.endswith("-BTC"):
                quote = await self._quote_btc_market(symbol, market)
            else:
                quote = await self._quote_usd_market(symbol, market)

            if quote is not None:
                return quote

        return None

    async def _quote_usd_market(self, symbol: str, market: str) -> Optional[PriceQuote]:
        bbo = await self._fetch_bbo_with_retry(market)
        if bbo is None:
            return None

        quote = self._quote_from_bbo(bbo)
        if quote is None:
            return None

        if not self.is_plausible(symbol, quote.price):
            logger.warning(f"⚠️ Rejected unreasonable price for {symbol} from {market}: ${quote.price}")
            return None

        logger.info(f"Got price for {symbol} from {quote.source}: ${quote.price}")
        return quote

    async def _quote_btc_market(self, symbol: str, market: str) -> Optional[PriceQuote]:
        if symbol == self.high_value_token:
            return None

        btc_price = await self.get_price(self.high_value_token)
        if btc_price is None or not self.is_plausible(self.high_value_token, btc_price):
            logger.warning(f"Could not get reliable {self.high_value_token} price for conversion: {btc_price}")
            return None

        bbo = await self._fetch_bbo_with_retry(market)
        if bbo is None:
            return None

        quote = self._quote_from_bbo(bbo)
        if quote is None:
            return None

        price_usd = quote.price * btc_price
        if not self.is_plausible(symbol, price_usd):
            logger.warning(
                f"⚠️ Rejected unreasonable {self.high_value_token}-derived price for {symbol} from {market}: ${price_usd}"
            )
            return None

        logger.info(
            f"Got price for {symbol} from {self.high_value_token} market {market}: "
            f"{quote.price} {self.high_value_token} = ${price_usd}"
        )
        return PriceQuote(price=price_usd, source=f"{quote.source} (via {self.high_value_token})")

    def _quote_from_bbo(self, bbo: BBODTO) -> Optional[PriceQuote]:
        """
        Bid si existe; si no hay bid, ask con descuento como bid sintético.
        """
        if bbo.bid:
            bid = _parse_price(bbo.bid)
            if bid is None:
                return None
            return PriceQuote(price=bid, source=bbo.market)

        if bbo.ask:
            ask = _parse_price(bbo.ask)
            if ask is None:
                return None
            return PriceQuote(
                price=ask * self.ask_discount,
                source=f"{bbo.market} (adjusted ask)",
            )

        return None

    async def _fetch_bbo_with_retry(self, market: str) -> Optional[BBODTO]:
        """
        Reintenta solo ante fallas de transporte (MarketDataError / timeout).
        Una respuesta sin bid/ask utilizable no se reintenta.
        """
        for attempt in range(1, self.retry_attempts + 1):
            try:
                return await self.gateway.fetch_best_bid_offer(market)
            except (MarketDataError, asyncio.TimeoutError) as e:
                logger.warning(f"Error fetching market {market} on attempt {attempt}: {e}")
                if attempt < self.retry_attempts:
                    await self._sleep(self.retry_delay_seconds)

        return None


def _parse_price(raw: str) -> Optional[float]:
    try:
        value = float(raw)
    except (TypeError, ValueError):
        return None
    if value != value or value <= 0:  # NaN
        return None
    return value
