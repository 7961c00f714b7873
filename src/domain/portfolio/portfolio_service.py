from __future__ import annotations
import logging
from datetime import datetime, timezone
from typing import List, Optional, Tuple

from src.domain.portfolio.dtos.portfolio_dto import (
    PnLResultDTO,
    PortfolioPnLDTO,
    PortfolioResultDTO,
    PositionDTO,
    TokenPnLDTO,
)
from src.domain.portfolio.pnl_freshness import PnLFreshnessGate
from src.domain.portfolio.valuation import (
    pnl_percentage,
    portfolio_pnl_percentage,
    unrealized_pnl,
)
from src.domain.prices.price_service import PriceService
from src.infrastructure.database.client import PostgresClient
from src.infrastructure.database.repositories.portfolio_repository import (
    PortfolioRepository,
)
from src.infrastructure.reporting.backend_reporter import BackendReporter

logger = logging.getLogger(__name__)


class PortfolioService:
    def __init__(
        self,
        db_client: PostgresClient,
        price_service: PriceService,
        pnl_gate: PnLFreshnessGate,
        reporter: BackendReporter,
        base_token: str = "USDC",
        initial_base_balance: float = 1000.0,
    ):
        self.db_client = db_client
        self.price_service = price_service
        self.pnl_gate = pnl_gate
        self.reporter = reporter
        self.base_token = base_token.upper()
        self.initial_base_balance = initial_base_balance

    # ------------------------------------------------------------------
    # Positions
    # ------------------------------------------------------------------
    async def list_positions(self) -> List[PositionDTO]:
        async with self.db_client.get_session() as session:
            repo = PortfolioRepository(session)
            return await repo.list_positions()

    async def get_position(self, symbol: str) -> Optional[PositionDTO]:
        async with self.db_client.get_session() as session:
            repo = PortfolioRepository(session)
            return await repo.get_position(symbol.upper())

    def is_stable(self, symbol: str) -> bool:
        return self.price_service.is_stable(symbol)

    # ------------------------------------------------------------------
    # PnL
    # ------------------------------------------------------------------
    async def compute_pnl(self) -> PortfolioPnLDTO:
        """
        Recalcula el PnL no realizado de cada token con balance > 0.

        - Stablecoins: precio 1, PnL 0.
        - Resto: precio fresco (force_fresh). Si el precio no se resuelve se
          conservan los valores de PnL persistidos y el token queda marcado
          con price_resolved=False, sin romper el cálculo completo.
        - Los PnL recalculados se persisten en una sola transacción.
        """
        self.pnl_gate.record_check()

        positions = await self.list_positions()

        tokens: List[TokenPnLDTO] = []
        updates: List[Tuple[str, float, float]] = []

        for position in positions:
            if position.balance <= 0:
                continue

            symbol = position.token_symbol
            token_pnl, refreshed = await self._token_pnl(position)
            tokens.append(token_pnl)

            if refreshed:
                updates.append((symbol, token_pnl.unrealized_pnl, token_pnl.pnl_percentage))

        if updates:
            async with self.db_client.transaction() as session:
                repo = PortfolioRepository(session)
                for symbol, pnl, pct in updates:
                    await repo.update_pnl(symbol, pnl, pct)

        total_value = sum(t.value_usd for t in tokens)
        total_pnl = sum(t.unrealized_pnl for t in tokens)

        # Los tokens sin precio no entran en la asignación: su valor es un placeholder
        priced_value = sum(t.value_usd for t in tokens if t.price_resolved)
        for t in tokens:
            if t.price_resolved and priced_value > 0:
                t.allocation_pct = t.value_usd / priced_value * 100
            else:
                t.allocation_pct = 0.0

        tokens.sort(key=lambda t: t.value_usd, reverse=True)

        result = PortfolioPnLDTO(
            total_portfolio_value=total_value,
            total_pnl=total_pnl,
            portfolio_pnl_percentage=portfolio_pnl_percentage(total_value, total_pnl),
            tokens=tokens,
        )

        logger.info(
            f"💰 Total portfolio value: ${result.total_portfolio_value:.2f} | "
            f"💸 Total PnL: ${result.total_pnl:.2f} ({result.portfolio_pnl_percentage:.2f}%)"
        )
        return result

    async def _token_pnl(self, position: PositionDTO) -> Tuple[TokenPnLDTO, bool]:
        symbol = position.token_symbol

        if self.is_stable(symbol):
            return TokenPnLDTO(
                token=symbol,
                balance=position.balance,
                current_price=1.0,
                value_usd=position.balance,
                entry_price=position.entry_price,
                entry_timestamp=position.entry_timestamp,
            ), False

        current_price = await self.price_service.get_price(symbol, force_fresh=True)

        if current_price is None:
            logger.warning(f"Could not get a valid price for {symbol}, using last known PnL")
            return TokenPnLDTO(
                token=symbol,
                balance=position.balance,
                current_price=1.0,
                value_usd=position.balance,
                entry_price=position.entry_price,
                entry_timestamp=position.entry_timestamp,
                unrealized_pnl=position.unrealized_pnl,
                pnl_percentage=position.pnl_percentage,
                price_resolved=False,
            ), False

        token_pnl = TokenPnLDTO(
            token=symbol,
            balance=position.balance,
            current_price=current_price,
            value_usd=position.balance * current_price,
            entry_price=position.entry_price,
            entry_timestamp=position.entry_timestamp,
        )

        if position.entry_price is None:
            return token_pnl, False

        token_pnl.unrealized_pnl = unrealized_pnl(position.balance, current_price, position.entry_price)
        token_pnl.pnl_percentage = pnl_percentage(current_price, position.entry_price)
        return token_pnl, True

    async def get_pnl_report(self) -> PnLResultDTO:
        pnl = await self.compute_pnl()

        if not pnl.tokens:
            return PnLResultDTO(success=False, message="No tokens found in portfolio", pnl=pnl)

        return PnLResultDTO(success=True, message=self.summary_message(pnl), pnl=pnl)

    def summary_message(self, pnl: PortfolioPnLDTO) -> str:
        non_stable = [t for t in pnl.tokens if not self.is_stable(t.token)]

        if not non_stable:
            return f"Portfolio contains only {self.base_token} with no PnL to calculate"

        def signed(value: float) -> str:
            return f"{'+' if value > 0 else ''}${value:.2f}"

        token_summaries = [
            f"{t.token}: {t.pnl_percentage:.2f}% ({signed(t.unrealized_pnl)})"
            for t in non_stable
        ]
        return (
            f"Portfolio value: ${pnl.total_portfolio_value:.2f} | "
            f"Total PnL: {signed(pnl.total_pnl)} ({pnl.portfolio_pnl_percentage:.2f}%) | "
            + " | ".join(token_summaries)
        )

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------
    async def init_portfolio(self) -> PortfolioResultDTO:
        """
        Siembra la fila del stablecoin base si no existe. Idempotente.
        """
        async with self.db_client.transaction() as session:
            repo = PortfolioRepository(session)
            position, created = await repo.ensure_base(self.base_token, self.initial_base_balance)

        if created:
            logger.info(f"✅ Portfolio initialized with {position.balance} {self.base_token}")
            return PortfolioResultDTO(
                success=True,
                message=f"Portfolio initialized with {position.balance} {self.base_token}",
            )

        return PortfolioResultDTO(
            success=True,
            message=f"Portfolio already initialized ({position.balance} {self.base_token})",
        )

    async def reset_portfolio(
        self,
        keep_base: bool = False,
        base_amount: Optional[float] = None,
    ) -> PortfolioResultDTO:
        """
        Borra todas las posiciones y vuelve a sembrar solo el stablecoin base:
        - base_amount explícito si se pasa,
        - el balance actual del stablecoin si keep_base,
        - si no, el balance inicial configurado.
        """
        if base_amount is not None and base_amount < 0:
            raise ValueError("base_amount cannot be negative")

        async with self.db_client.transaction() as session:
            repo = PortfolioRepository(session)

            amount = self.initial_base_balance
            if base_amount is not None:
                amount = base_amount
            elif keep_base:
                current = await repo.get_position(self.base_token, for_update=True)
                if current is not None:
                    amount = current.balance

            await repo.reset(self.base_token, amount)

        logger.info(f"🔄 Portfolio reset with {amount} {self.base_token}")
        return PortfolioResultDTO(
            success=True,
            message=f"Portfolio reset. Only {self.base_token} remains with balance {amount}",
        )

    # ------------------------------------------------------------------
    # Reporting
    # ------------------------------------------------------------------
    async def send_portfolio_balance(self) -> PortfolioResultDTO:
        """
        Valoriza el portfolio (precios cacheados si están frescos) y manda el
        snapshot al backend. El envío es best-effort.
        """
        positions = await self.list_positions()

        total = 0.0
        snapshot = []
        for position in positions:
            if position.balance <= 0:
                continue

            if self.is_stable(position.token_symbol):
                price: Optional[float] = 1.0
            else:
                price = await self.price_service.get_price(position.token_symbol)

            value = position.balance * price if price is not None else 0.0
            total += value
            snapshot.append({
                "symbol": position.token_symbol,
                "balance": position.balance,
                "price": price,
                "valueUsd": value,
            })

        try:
            sent = await self.reporter.send_portfolio_balance(
                balance_in_usd=total,
                metadata={
                    "timestamp": datetime.now(timezone.utc).isoformat(),
                    "portfolio": snapshot,
                },
            )
        except Exception as e:
            logger.error(f"❌ Could not send portfolio balance to backend: {e}")
            sent = False

        message = f"Portfolio balance ${total:.2f}"
        return PortfolioResultDTO(
            success=sent,
            message=f"{message} sent to backend" if sent else f"{message} not sent to backend",
        )
