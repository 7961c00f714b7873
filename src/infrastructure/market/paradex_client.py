import logging
from typing import Any, Dict, List, Optional

import httpx

from src.domain.prices.dtos.price_dto import BBODTO
from src.infrastructure.config.settings import Settings
from src.infrastructure.market.market_data_base import (
    MarketDataGateway,
    MarketDataError,
)

logger = logging.getLogger(__name__)


class ParadexClient(MarketDataGateway):
    """
    Cliente de solo lectura para la API pública de Paradex.

    Solo usa dos endpoints sin autenticación:
    - GET /bbo/{market}  -> best bid / offer
    - GET /markets       -> lista de mercados
    """

    def __init__(
        self,
        config: Settings,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.config = config
        self.base_url = config.paradex_api_base_url
        self.client = httpx.AsyncClient(
            base_url=self.base_url,
            timeout=config.paradex_timeout,
            transport=transport,
        )

    async def close(self) -> None:
        await self.client.aclose()

    # ------------------------------------------------------------------
    # BBO
    # ------------------------------------------------------------------
    async def fetch_best_bid_offer(self, market: str) -> BBODTO:
        data = await self._get(f"/bbo/{market}")

        bid = data.get("bid")
        ask = data.get("ask")

        return BBODTO(
            market=data.get("market") or market,
            bid=str(bid) if bid not in (None, "") else None,
            ask=str(ask) if ask not in (None, "") else None,
        )

    # ------------------------------------------------------------------
    # Markets
    # ------------------------------------------------------------------
    async def list_markets(self) -> List[str]:
        data = await self._get("/markets")

        results = data.get("results")
        if not isinstance(results, list):
            raise MarketDataError("Invalid /markets response: missing results")

        symbols = [m.get("symbol") for m in results if isinstance(m, dict)]
        symbols = [s for s in symbols if s]

        logger.debug(f"Fetched {len(symbols)} markets from Paradex")
        return symbols

    # ------------------------------------------------------------------
    # HTTP
    # ------------------------------------------------------------------
    async def _get(self, path: str) -> Dict[str, Any]:
        try:
            response = await self.client.get(path)
            response.raise_for_status()
            data = response.json()

        except httpx.HTTPStatusError as e:
            logger.warning(
                f"Paradex request {path} failed with status {e.response.status_code}"
            )
            raise MarketDataError(f"Request {path} failed: {e}") from e

        except httpx.HTTPError as e:
            logger.warning(f"Paradex request {path} failed: {e}")
            raise MarketDataError(f"Request {path} failed: {e}") from e

        except ValueError as e:
            raise MarketDataError(f"Invalid JSON from {path}: {e}") from e

        if not isinstance(data, dict):
            raise MarketDataError(f"Unexpected payload from {path}")

        return data
