import logging
from datetime import datetime

from src.domain.prices.market_registry import MarketRegistry


logger = logging.getLogger(__name__)


class RefreshMarketsJob:

    def __init__(self, market_registry: MarketRegistry) -> None:
        self.market_registry = market_registry

    async def run(self) -> None:
        logger.info("Starting RefreshMarketsJob at %s",
                    datetime.now().isoformat())

        result = await self.market_registry.refresh()

        logger.info("Finished RefreshMarketsJob at %s (source=%s, %d tradable tokens)",
                    datetime.now().isoformat(), result.source, len(result.tradable_tokens))
