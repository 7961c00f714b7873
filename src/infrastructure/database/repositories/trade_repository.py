import logging
from typing import List

from sqlalchemy import select, delete
from sqlalchemy.ext.asyncio import AsyncSession

from src.domain.trading.dtos.trade_dto import TradeRecordDTO
from src.infrastructure.database.models.trade_model import TradeModel

logger = logging.getLogger(__name__)


class TradeRepository:
    """
    Repository for the capped trade history.
    """

    def __init__(self, session: AsyncSession) -> None:
        self.session = session

    async def add(self, trade: TradeRecordDTO, keep_latest: int = 5) -> TradeRecordDTO:
        """
        Append a trade record and prune everything older than the
        `keep_latest` most recent records.

        Args:
            trade: Trade to append
            keep_latest: How many records survive the pruning

        Returns:
            The stored trade, with its DB id
        """
        model = TradeModel(
            market=trade.market,
            side=trade.side,
            size=trade.size,
            price=trade.price,
            order_type=trade.order_type,
            status=trade.status,
            trade_id=trade.trade_id,
            timestamp=trade.timestamp,
        )

        self.session.add(model)
        await self.session.flush()

        await self.prune(keep_latest)

        return self._model_to_dto(model)

    async def prune(self, keep_latest: int) -> None:
        stale_ids = (
            select(TradeModel.id)
            .order_by(TradeModel.timestamp.desc(), TradeModel.id.desc())
            .offset(keep_latest)
        )
        res = await self.session.execute(stale_ids)
        ids = list(res.scalars().all())

        if ids:
            await self.session.execute(
                delete(TradeModel).where(TradeModel.id.in_(ids))
            )
            logger.debug(
                f"Pruned {len(ids)} trades, keeping the latest {keep_latest}"
            )

    async def get_latest(self, limit: int = 5) -> List[TradeRecordDTO]:
        stmt = (
            select(TradeModel)
            .order_by(TradeModel.timestamp.desc(), TradeModel.id.desc())
            .limit(limit)
        )
        res = await self.session.execute(stmt)
        return [self._model_to_dto(m) for m in res.scalars().all()]

    def _model_to_dto(self, model: TradeModel) -> TradeRecordDTO:
        return TradeRecordDTO(
            id=model.id,
            market=model.market,
            side=model.side,
            size=model.size,
            price=model.price,
            order_type=model.order_type,
            status=model.status,
            trade_id=model.trade_id,
            timestamp=model.timestamp,
        )
