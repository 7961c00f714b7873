from typing import Protocol, List

from src.domain.prices.dtos.price_dto import BBODTO


class MarketDataGateway(Protocol):
    async def fetch_best_bid_offer(self, market: str) -> BBODTO: ...
    async def list_markets(self) -> List[str]: ...
    async def close(self) -> None: ...


class MarketDataError(Exception):
    """Custom exception for market data venue errors."""
    pass
