import logging
from typing import Dict, List, Optional

from src.commons.enums.trade_enums import RebalanceActionEnum
from src.commons.errors import InvalidAllocationError
from src.domain.portfolio.dtos.portfolio_dto import (
    AllocationDeviationDTO,
    AllocationInputDTO,
    AllocationReportDTO,
    AllocationResultDTO,
    AllocationTargetDTO,
    PortfolioPnLDTO,
)
from src.domain.portfolio.portfolio_service import PortfolioService
from src.infrastructure.database.client import PostgresClient
from src.infrastructure.database.repositories.allocation_repository import (
    AllocationRepository,
)

logger = logging.getLogger(__name__)

ALLOCATION_SUM_TOLERANCE = 0.01


def validate_allocations(allocations: List[AllocationInputDTO]) -> List[AllocationInputDTO]:
    """
    Normaliza símbolos y valida que los porcentajes sumen 100 (± 0.01).
    Lanza InvalidAllocationError si no.
    """
    if not allocations:
        raise InvalidAllocationError("Allocation list cannot be empty")

    normalized = [
        AllocationInputDTO(symbol=a.symbol.strip().upper(), percentage=a.percentage)
        for a in allocations
    ]

    symbols = [a.symbol for a in normalized]
    duplicates = sorted({s for s in symbols if symbols.count(s) > 1})
    if duplicates:
        raise InvalidAllocationError(
            f"Duplicated symbols in allocation: {', '.join(duplicates)}"
        )

    total = sum(a.percentage for a in normalized)
    if abs(total - 100) > ALLOCATION_SUM_TOLERANCE:
        raise InvalidAllocationError(
            f"Total allocation percentage must equal 100%. Current total: {total:.2f}%"
        )

    return normalized


class AllocationService:
    def __init__(
        self,
        db_client: PostgresClient,
        portfolio: PortfolioService,
        rebalance_threshold_pct: float = 5.0,
    ):
        self.db_client = db_client
        self.portfolio = portfolio
        self.rebalance_threshold_pct = rebalance_threshold_pct

    # ==========================
    #        TARGETS
    # ==========================

    async def set_targets(
        self,
        allocations: List[AllocationInputDTO],
        reasoning: Optional[str] = None,
    ) -> AllocationResultDTO:
        try:
            normalized = validate_allocations(allocations)
        except InvalidAllocationError as e:
            logger.warning(f"⚠️ Rejected allocation: {e}")
            return AllocationResultDTO(success=False, message=f"Error: {e}")

        async with self.db_client.transaction() as session:
            repo = AllocationRepository(session)
            saved = await repo.replace_targets(normalized, notes=reasoning)
            if reasoning:
                await repo.add_strategy_note(reasoning)

        summary = ", ".join(f"{a.symbol}: {a.percentage:.2f}%" for a in normalized)
        logger.info(f"🎯 Target allocation updated: {summary}")

        return AllocationResultDTO(
            success=True,
            message=f"Target allocation updated: {summary}",
            allocations=saved,
        )

    async def get_targets(self) -> List[AllocationTargetDTO]:
        async with self.db_client.get_session() as session:
            repo = AllocationRepository(session)
            return await repo.get_targets()

    # ==========================
    #       REBALANCING
    # ==========================

    async def compare(self, pnl: Optional[PortfolioPnLDTO] = None) -> AllocationReportDTO:
        """
        Compara la asignación actual (valores por token del PnL) contra los
        targets. deviation = actual - target; se marcan para rebalanceo las
        que superan el umbral (5% por defecto).

        Tokens sin precio resuelto no tienen asignación conocida. Si hay
        alguno en el portfolio, los porcentajes del resto están sesgados y no
        se sugiere ningún rebalanceo.
        """
        if pnl is None:
            pnl = await self.portfolio.compute_pnl()

        targets = await self.get_targets()
        target_by_symbol: Dict[str, float] = {t.symbol: t.percentage for t in targets}

        priced = [t for t in pnl.tokens if t.price_resolved]
        unpriced = [t.token for t in pnl.tokens if not t.price_resolved]

        current_by_symbol: Dict[str, float] = {t.token: t.allocation_pct for t in priced}

        entries: List[AllocationDeviationDTO] = []
        for symbol, current_pct in current_by_symbol.items():
            entries.append(self._deviation(symbol, current_pct, target_by_symbol.get(symbol)))

        for symbol in unpriced:
            entries.append(AllocationDeviationDTO(
                symbol=symbol,
                target_pct=target_by_symbol.get(symbol),
                suggestion=f"Price unavailable for {symbol}: current allocation unknown",
                price_resolved=False,
            ))

        # Targets sin posición actual (0% actual)
        for symbol, target_pct in target_by_symbol.items():
            if symbol not in current_by_symbol and symbol not in unpriced:
                entries.append(self._deviation(symbol, 0.0, target_pct))

        if unpriced:
            logger.warning(
                f"⚠️ No rebalancing suggested, unresolved prices for: {', '.join(unpriced)}"
            )
            for e in entries:
                if e.action is not None:
                    e.action = None
                    e.suggestion = None

        rebalancing = sorted(
            (e for e in entries if e.action is not None),
            key=lambda e: abs(e.deviation),
            reverse=True,
        )

        return AllocationReportDTO(
            total_value=sum(t.value_usd for t in priced),
            entries=entries,
            rebalancing=rebalancing,
            unpriced_tokens=unpriced,
        )

    def _deviation(
        self,
        symbol: str,
        current_pct: float,
        target_pct: Optional[float],
    ) -> AllocationDeviationDTO:
        if target_pct is None:
            return AllocationDeviationDTO(symbol=symbol, current_pct=current_pct)

        deviation = current_pct - target_pct
        action = None
        suggestion = None

        if deviation > self.rebalance_threshold_pct:
            action = RebalanceActionEnum.REDUCE
            suggestion = (
                f"REDUCE {symbol}: Currently {current_pct:.2f}%, target {target_pct:.2f}% "
                f"({deviation:.2f}% overweight)"
            )
        elif deviation < -self.rebalance_threshold_pct:
            action = RebalanceActionEnum.INCREASE
            suggestion = (
                f"INCREASE {symbol}: Currently {current_pct:.2f}%, target {target_pct:.2f}% "
                f"({abs(deviation):.2f}% underweight)"
            )

        return AllocationDeviationDTO(
            symbol=symbol,
            current_pct=current_pct,
            target_pct=target_pct,
            deviation=deviation,
            action=action,
            suggestion=suggestion,
        )
