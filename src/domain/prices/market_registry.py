import logging
import time
from typing import Callable, Dict, List, Optional, Sequence

from src.domain.prices.dtos.price_dto import SupportedTokenDTO, SupportedTokensDTO
from src.infrastructure.market.market_data_base import (
    MarketDataGateway,
    MarketDataError,
)

logger = logging.getLogger(__name__)


# Lista de respaldo: no está garantizado que esté completa ni actualizada.
# Solo se usa mientras no haya un listado fresco de /markets.
FALLBACK_SUPPORTED_TOKENS: List[str] = [
    "BTC",
    "ETH",
    "STRK",
    "LORDS",
    "USDT",
    "USDC",
    "WBTC",
    "UNI",
    "DAI",
    "rETH",
    "LUSD",
    "xSTRK",
    "NSTR",
    "ZEND",
    "SWAY",
    "SSTR",
    "wstETH",
    "BROTHER",
]

TRADABLE_QUOTES = ("-USD", "-BTC", "/USD", "/BTC")


def base_token(market: str) -> str:
    """'BTC-USD-PERP' -> 'BTC'"""
    return market.split("-")[0].upper()


def is_tradable_market(market: str) -> bool:
    return any(quote in market for quote in TRADABLE_QUOTES)


class MarketRegistry:
    """
    Validador de tokens soportados a partir del listado de mercados del venue.

    El listado se considera válido `validity_seconds` (30 min por defecto);
    vencido ese plazo `get_markets` devuelve None y `is_supported` cae a la
    lista hardcodeada.
    """

    def __init__(
        self,
        gateway: MarketDataGateway,
        validity_seconds: float = 30 * 60,
        fallback_tokens: Optional[Sequence[str]] = None,
        clock: Callable[[], float] = time.time,
    ):
        self.gateway = gateway
        self.validity_seconds = validity_seconds
        self.fallback_tokens = [
            t.upper() for t in (fallback_tokens or FALLBACK_SUPPORTED_TOKENS)
        ]
        self._clock = clock

        self._token_markets: Dict[str, List[str]] = {}
        self._tradable_tokens: List[str] = []
        self._updated_at: Optional[float] = None

    # ------------------------------------------------------------------
    # Listing
    # ------------------------------------------------------------------
    def update_markets(self, markets: Sequence[str]) -> None:
        token_markets: Dict[str, List[str]] = {}
        for market in markets:
            if not market:
                continue
            token_markets.setdefault(base_token(market), []).append(market)

        self._token_markets = token_markets
        self._tradable_tokens = sorted(
            token
            for token, token_mkts in token_markets.items()
            if any(is_tradable_market(m) for m in token_mkts)
        )
        self._updated_at = self._clock()

        logger.info(
            f"📈 Market listing updated: {len(markets)} markets, "
            f"{len(self._tradable_tokens)} tradable tokens"
        )

    async def refresh(self) -> SupportedTokensDTO:
        """
        Trae /markets del gateway. Si falla, conserva lo que había y
        reporta la lista de respaldo.
        """
        try:
            markets = await self.gateway.list_markets()
        except MarketDataError as e:
            logger.warning(f"⚠️ Could not refresh market listing, using fallback list: {e}")
            return SupportedTokensDTO(
                success=True,
                source="fallback",
                tokens=list(self.fallback_tokens),
                tradable_tokens=list(self.fallback_tokens),
                message=(
                    "Using fallback list of supported tokens. "
                    "This list may not be up-to-date."
                ),
            )

        self.update_markets(markets)
        return SupportedTokensDTO(
            success=True,
            source="api",
            tokens=sorted(self._token_markets.keys()),
            tradable_tokens=list(self._tradable_tokens),
            message=(
                f"Found {len(self._token_markets)} tokens on Paradex, "
                f"{len(self._tradable_tokens)} with active USD or BTC markets"
            ),
        )

    def is_fresh(self) -> bool:
        if self._updated_at is None:
            return False
        return (self._clock() - self._updated_at) < self.validity_seconds

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------
    def get_markets(self, symbol: str) -> Optional[List[str]]:
        if not self.is_fresh():
            return None
        markets = self._token_markets.get(symbol.upper())
        return list(markets) if markets else None

    def is_supported(self, symbol: str) -> SupportedTokenDTO:
        token = symbol.upper()

        if self.is_fresh():
            markets = list(self._token_markets.get(token, []))

            if token in self._tradable_tokens:
                return SupportedTokenDTO(
                    symbol=token,
                    is_supported=True,
                    message=f"Token {token} is supported on Paradex with {len(markets)} active markets",
                    markets=markets,
                )
            if token in self._token_markets:
                return SupportedTokenDTO(
                    symbol=token,
                    is_supported=False,
                    message=(
                        f"Token {token} exists on Paradex but does not have "
                        f"active USD or BTC markets for trading"
                    ),
                    markets=markets,
                )
            return SupportedTokenDTO(
                symbol=token,
                is_supported=False,
                message=(
                    f"Token {token} is not supported on Paradex. "
                    f"Please check the supported tokens list."
                ),
            )

        supported = token in self.fallback_tokens
        return SupportedTokenDTO(
            symbol=token,
            is_supported=supported,
            message=(
                f"Token {token} is supported on Paradex (based on fallback list)"
                if supported
                else f"Token {token} may not be supported on Paradex. "
                f"Please check the supported tokens list."
            ),
        )
