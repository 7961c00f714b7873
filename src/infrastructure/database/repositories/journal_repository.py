import logging
from typing import List, Optional

from sqlalchemy import select, delete
from sqlalchemy.ext.asyncio import AsyncSession

from src.domain.journal.dtos.journal_dto import ExplanationDTO, StrategyTextDTO
from src.infrastructure.database.models.journal_models import (
    AgentExplanationModel,
    AgentStrategyModel,
)

logger = logging.getLogger(__name__)


class JournalRepository:
    """Repository for agent explanations and strategy text."""

    def __init__(self, session: AsyncSession) -> None:
        self.session = session

    async def add_explanation(
        self,
        explanation: ExplanationDTO,
        keep_latest: int = 3,
    ) -> ExplanationDTO:
        model = AgentExplanationModel(
            explanation=explanation.explanation,
            market=explanation.market,
            reason=explanation.reason,
            price=explanation.price,
            volume=explanation.volume,
            volatility=explanation.volatility,
            trend=explanation.trend,
            decision_type=explanation.decision_type,
        )
        self.session.add(model)
        await self.session.flush()

        await self._prune(AgentExplanationModel, keep_latest)
        return self._explanation_to_dto(model)

    async def get_explanations(self, limit: int = 3) -> List[ExplanationDTO]:
        stmt = (
            select(AgentExplanationModel)
            .order_by(AgentExplanationModel.timestamp.desc(), AgentExplanationModel.id.desc())
            .limit(limit)
        )
        res = await self.session.execute(stmt)
        return [self._explanation_to_dto(m) for m in res.scalars().all()]

    async def save_strategy(
        self,
        strategy_text: str,
        keep_latest: int = 1,
    ) -> StrategyTextDTO:
        model = AgentStrategyModel(strategy_text=strategy_text)
        self.session.add(model)
        await self.session.flush()

        await self._prune(AgentStrategyModel, keep_latest)
        return StrategyTextDTO(strategy_text=model.strategy_text, timestamp=model.timestamp)

    async def get_latest_strategy(self) -> Optional[StrategyTextDTO]:
        stmt = (
            select(AgentStrategyModel)
            .order_by(AgentStrategyModel.timestamp.desc(), AgentStrategyModel.id.desc())
            .limit(1)
        )
        res = await self.session.execute(stmt)
        model = res.scalar_one_or_none()
        if model is None:
            return None
        return StrategyTextDTO(strategy_text=model.strategy_text, timestamp=model.timestamp)

    # ------------------------
    # HELPERS
    # ------------------------

    async def _prune(self, model_cls, keep_latest: int) -> None:
        stale = (
            select(model_cls.id)
            .order_by(model_cls.timestamp.desc(), model_cls.id.desc())
            .offset(keep_latest)
        )
        res = await self.session.execute(stale)
        ids = list(res.scalars().all())
        if ids:
            await self.session.execute(delete(model_cls).where(model_cls.id.in_(ids)))
            logger.debug(f"Pruned {len(ids)} rows from {model_cls.__tablename__}")

    def _explanation_to_dto(self, model: AgentExplanationModel) -> ExplanationDTO:
        return ExplanationDTO(
            explanation=model.explanation,
            market=model.market,
            reason=model.reason,
            price=model.price,
            volume=model.volume,
            volatility=model.volatility,
            trend=model.trend,
            decision_type=model.decision_type,
            timestamp=model.timestamp,
        )
