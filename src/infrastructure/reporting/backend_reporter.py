import logging
from typing import Any, Dict, Optional

import httpx

from src.infrastructure.config.settings import Settings

logger = logging.getLogger(__name__)


class BackendReporter:
    """
    Envía eventos de trading y el balance del portfolio al backend externo.

    Best-effort: si no hay host configurado no hace nada, y cualquier error
    de red se loguea y se descarta. Nunca afecta el resultado de un trade.
    """

    TRADING_INFO_ENDPOINT = "/api/trading-information"
    KPI_ENDPOINT = "/api/kpi"

    def __init__(
        self,
        config: Settings,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.config = config
        self.base_url = config.backend_base_url
        self.runtime_agent_id = config.runtime_agent_id
        self.client = httpx.AsyncClient(
            timeout=config.backend_timeout,
            transport=transport,
        )

    @property
    def enabled(self) -> bool:
        return self.base_url is not None

    async def close(self) -> None:
        await self.client.aclose()

    async def send_trading_info(self, information: Dict[str, Any]) -> bool:
        payload = {
            "runtimeAgentId": self.runtime_agent_id,
            "information": information,
        }
        return await self._post(self.TRADING_INFO_ENDPOINT, payload)

    async def send_portfolio_balance(
        self,
        balance_in_usd: float,
        metadata: Dict[str, Any],
    ) -> bool:
        payload = {
            "runtimeAgentId": self.runtime_agent_id,
            "balanceInUSD": balance_in_usd,
            "metadata": metadata,
        }
        return await self._post(self.KPI_ENDPOINT, payload)

    async def _post(self, endpoint: str, payload: Dict[str, Any]) -> bool:
        if not self.enabled:
            logger.debug(f"Backend not configured, skipping {endpoint}")
            return False

        headers = {"Content-Type": "application/json"}
        if self.config.backend_api_key:
            headers["x-api-key"] = self.config.backend_api_key

        try:
            response = await self.client.post(
                f"{self.base_url}{endpoint}",
                json=payload,
                headers=headers,
            )
            response.raise_for_status()
            logger.info(f"📤 Sent payload to backend {endpoint}")
            return True

        except httpx.HTTPError as e:
            logger.warning(f"⚠️ Could not send payload to {endpoint}: {e}")
            return False
