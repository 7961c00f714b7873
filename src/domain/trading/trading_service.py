import asyncio
import logging
import time
from typing import Any, Dict, List, Optional

from sqlalchemy.exc import SQLAlchemyError

from src.commons.enums.trade_enums import TradeSideEnum
from src.commons.errors import (
    LeftCurveError,
    InsufficientBalanceError,
    PositionNotFoundError,
    TransactionFailureError,
    UnresolvedPriceError,
    UnsupportedTokenError,
)
from src.domain.portfolio.pnl_freshness import PnLFreshnessGate
from src.domain.prices.market_registry import MarketRegistry
from src.domain.prices.price_service import PriceService
from src.domain.trading.dtos.trade_dto import (
    ExecutedTradeDTO,
    TradeRecordDTO,
    TradeResultDTO,
)
from src.infrastructure.database.client import PostgresClient
from src.infrastructure.database.repositories.portfolio_repository import PortfolioRepository
from src.infrastructure.database.repositories.trade_repository import TradeRepository
from src.infrastructure.reporting.backend_reporter import BackendReporter


logger = logging.getLogger(__name__)

NO_TRADE_MESSAGE = (
    "You've decided not to trade at this time based on your analysis and trading philosophy."
)


class TradingService:
    """
    Simulador de trades contra el ledger del portfolio.

    Un trade convierte from_token -> USD -> to_token a precios frescos y
    aplica debit + credit + registro del trade en una única transacción.
    Un asyncio.Lock serializa los trades del proceso; el lock de fila en la
    DB cubre el resto.
    """

    def __init__(
        self,
        db_client: PostgresClient,
        price_service: PriceService,
        market_registry: MarketRegistry,
        pnl_gate: PnLFreshnessGate,
        reporter: BackendReporter,
        base_token: str = "USDC",
        trade_history_limit: int = 5,
    ):
        self.db_client = db_client
        self.price_service = price_service
        self.market_registry = market_registry
        self.pnl_gate = pnl_gate
        self.reporter = reporter
        self.base_token = base_token.upper()
        self.trade_history_limit = trade_history_limit
        self._lock = asyncio.Lock()

    def is_stable(self, symbol: str) -> bool:
        return self.price_service.is_stable(symbol)

    # ------------------------------------------------------------------
    # Trade
    # ------------------------------------------------------------------
    async def trade(
        self,
        from_token: str,
        to_token: str,
        from_amount: float,
        explanation: Optional[str] = None,
    ) -> TradeResultDTO:
        from_token = from_token.strip().upper()
        to_token = to_token.strip().upper()

        logger.info(f"🚀 Trade requested: {from_amount} {from_token} -> {to_token}")

        if from_amount is None or from_amount <= 0:
            return TradeResultDTO(
                success=False,
                message=f"Invalid amount {from_amount}: must be greater than 0",
            )

        pnl_recent = self.pnl_gate.is_recent()

        try:
            for symbol in (from_token, to_token):
                self._check_supported(symbol)

            await self._check_balance(from_token, from_amount)

            from_price = await self._resolve_price(from_token)
            to_price = await self._resolve_price(to_token)

        except LeftCurveError as e:
            logger.warning(f"⚠️ Trade rejected before touching the ledger: {e}")
            return TradeResultDTO(success=False, message=str(e), pnl_check_recent=pnl_recent)

        usd_amount = from_amount * from_price
        to_amount = usd_amount / to_price
        record = self._build_record(from_token, to_token, from_amount, to_amount, from_price, to_price)

        try:
            record = await self._apply(from_token, to_token, from_amount, to_amount, to_price, record)
        except LeftCurveError as e:
            logger.warning(f"⚠️ Trade rolled back: {e}")
            return TradeResultDTO(success=False, message=str(e), pnl_check_recent=pnl_recent)

        executed = ExecutedTradeDTO(
            from_token=from_token,
            to_token=to_token,
            from_amount=from_amount,
            usd_amount=usd_amount,
            to_amount=to_amount,
            from_price=from_price,
            to_price=to_price,
            explanation=explanation,
            record=record,
        )

        await self._notify_trade(executed)

        message = self._trade_message(executed)
        if not pnl_recent:
            message = f"{message}\n{self.pnl_gate.warning_message()}"

        logger.info(f"✅ {message}")
        return TradeResultDTO(
            success=True,
            message=message,
            trade=executed,
            explanation=explanation,
            pnl_check_recent=pnl_recent,
        )

    def _check_supported(self, symbol: str) -> None:
        if self.is_stable(symbol):
            return
        validation = self.market_registry.is_supported(symbol)
        if not validation.is_supported:
            raise UnsupportedTokenError(symbol, validation.message)

    async def _check_balance(self, symbol: str, amount: float) -> None:
        async with self.db_client.get_session() as session:
            repo = PortfolioRepository(session)
            position = await repo.get_position(symbol)

        if position is None:
            raise PositionNotFoundError(symbol)
        if position.balance < amount:
            raise InsufficientBalanceError(symbol, position.balance, amount)

    async def _resolve_price(self, symbol: str) -> float:
        if self.is_stable(symbol):
            return 1.0

        price = await self.price_service.get_price(symbol, force_fresh=True)
        if price is None or price <= 0:
            raise UnresolvedPriceError(symbol)
        return price

    async def _apply(
        self,
        from_token: str,
        to_token: str,
        from_amount: float,
        to_amount: float,
        to_price: float,
        record: TradeRecordDTO,
    ) -> TradeRecordDTO:
        """
        debit + credit + trade record, todo o nada.
        """
        async with self._lock:
            try:
                async with self.db_client.transaction() as session:
                    portfolio_repo = PortfolioRepository(session)
                    trade_repo = TradeRepository(session)

                    await portfolio_repo.debit(from_token, from_amount)
                    await portfolio_repo.credit(to_token, to_amount, to_price)
                    return await trade_repo.add(record, keep_latest=self.trade_history_limit)

            except SQLAlchemyError as e:
                raise TransactionFailureError(
                    f"Trade {from_token} -> {to_token} failed and was rolled back: {e}"
                ) from e

    def _build_record(
        self,
        from_token: str,
        to_token: str,
        from_amount: float,
        to_amount: float,
        from_price: float,
        to_price: float,
    ) -> TradeRecordDTO:
        trade_id = f"sim-{int(time.time() * 1000)}"

        if self.is_stable(to_token):
            return TradeRecordDTO(
                market=f"{from_token}-USD",
                side=TradeSideEnum.SELL,
                size=from_amount,
                price=from_price,
                trade_id=trade_id,
            )

        # Compra con stablecoin: un solo leg (no SWAP), registrado como BUY sobre TO-USD
        if self.is_stable(from_token):
            return TradeRecordDTO(
                market=f"{to_token}-USD",
                side=TradeSideEnum.BUY,
                size=to_amount,
                price=to_price,
                trade_id=trade_id,
            )

        return TradeRecordDTO(
            market=f"{from_token}/{to_token}",
            side=TradeSideEnum.SWAP,
            size=from_amount,
            price=from_price / to_price,
            trade_id=trade_id,
        )

    def _trade_message(self, trade: ExecutedTradeDTO) -> str:
        if self.is_stable(trade.to_token):
            return (
                f"Sold {trade.from_amount} {trade.from_token} => got "
                f"{trade.usd_amount:.4f} {trade.to_token}."
            )
        return (
            f"Traded {trade.from_amount} {trade.from_token} => got {trade.usd_amount:.4f} USD "
            f"=> bought {trade.to_amount:.6f} {trade.to_token} @ price {trade.to_price:.2f} USD"
        )

    async def _report(self, information: Dict[str, Any]) -> None:
        """
        Best-effort: el trade ya está confirmado en el ledger, ningún error
        del backend puede cambiar el resultado.
        """
        try:
            await self.reporter.send_trading_info(information)
        except Exception as e:
            logger.error(f"❌ Could not report {information.get('tradeType')} to backend: {e}")

    async def _notify_trade(self, trade: ExecutedTradeDTO) -> None:
        await self._report({
            "tradeId": str(int(time.time() * 1000)),
            "tradeType": "simulateTrade",
            "trade": {
                "fromToken": trade.from_token,
                "toToken": trade.to_token,
                "fromAmount": trade.from_amount,
                "toAmount": trade.to_amount,
                "price": trade.to_price,
                "explanation": trade.explanation or "No explanation provided",
            },
        })

    # ------------------------------------------------------------------
    # No trade
    # ------------------------------------------------------------------
    async def no_trade(self, explanation: str) -> TradeResultDTO:
        logger.info(f"🛑 Agent decided NOT to trade: {explanation}")

        pnl_recent = self.pnl_gate.is_recent()

        await self._report({
            "tradeId": str(int(time.time() * 1000)),
            "tradeType": "noTrade",
            "decision": {
                "action": "wait",
                "explanation": explanation or "No explanation provided",
            },
        })

        message = NO_TRADE_MESSAGE
        if not pnl_recent:
            message = f"{message}\n{self.pnl_gate.warning_message()}"

        return TradeResultDTO(
            success=True,
            message=message,
            explanation=explanation,
            pnl_check_recent=pnl_recent,
        )

    # ------------------------------------------------------------------
    # History
    # ------------------------------------------------------------------
    async def get_trade_history(self, limit: Optional[int] = None) -> List[TradeRecordDTO]:
        async with self.db_client.get_session() as session:
            repo = TradeRepository(session)
            return await repo.get_latest(limit or self.trade_history_limit)
