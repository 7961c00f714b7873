import logging
from src.infrastructure.database.client import PostgresClient
from src.infrastructure.market.market_data_base import MarketDataGateway, MarketDataError

logger = logging.getLogger(__name__)


class HealthService:
    def __init__(self, db_client: PostgresClient, market_gateway: MarketDataGateway):
        self.db_client = db_client
        self.market_gateway = market_gateway

    async def check_database_health(self) -> bool:
        try:
            return await self.db_client.health_check()
        except Exception as e:
            logger.error(f"Database health check failed: {e}")
            return False

    async def check_market_data_health(self) -> bool:
        try:
            markets = await self.market_gateway.list_markets()
            return len(markets) > 0
        except MarketDataError as e:
            logger.error(f"Market data health check failed: {e}")
            return False
