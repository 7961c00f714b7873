import logging
from typing import List, Optional

from sqlalchemy import select, delete
from sqlalchemy.ext.asyncio import AsyncSession

from src.domain.portfolio.dtos.portfolio_dto import (
    AllocationInputDTO,
    AllocationTargetDTO,
)
from src.infrastructure.database.models.allocation_target_model import (
    AllocationTargetModel,
    AllocationStrategyModel,
)

logger = logging.getLogger(__name__)


class AllocationRepository:
    def __init__(self, session: AsyncSession) -> None:
        self.session = session

    # ==========================
    #        QUERIES
    # ==========================

    async def get_targets(self) -> List[AllocationTargetDTO]:
        """
        Devuelve los targets vigentes, de mayor a menor porcentaje.
        """
        stmt = select(AllocationTargetModel).order_by(
            AllocationTargetModel.target_percentage.desc(),
            AllocationTargetModel.token_symbol,
        )
        result = await self.session.execute(stmt)
        return [self._model_to_dto(m) for m in result.scalars().all()]

    # ==========================
    #        COMMANDS
    # ==========================

    async def replace_targets(
        self,
        allocations: List[AllocationInputDTO],
        notes: Optional[str] = None,
    ) -> List[AllocationTargetDTO]:
        """
        Reemplaza el set completo de targets:

        - Borra todos los targets previos.
        - Inserta una fila por símbolo (notes = razonamiento).

        No hace commit; se llama dentro de PostgresClient.transaction().
        """
        await self.session.execute(delete(AllocationTargetModel))

        models: List[AllocationTargetModel] = []
        for allocation in allocations:
            model = AllocationTargetModel(
                token_symbol=allocation.symbol,
                target_percentage=float(allocation.percentage),
                notes=notes,
            )
            self.session.add(model)
            models.append(model)

        await self.session.flush()

        logger.info(f"💾 Saved {len(models)} allocation targets")
        return [self._model_to_dto(m) for m in models]

    async def add_strategy_note(self, explanation: str) -> None:
        self.session.add(AllocationStrategyModel(explanation=explanation))
        await self.session.flush()

    @staticmethod
    def _model_to_dto(model: AllocationTargetModel) -> AllocationTargetDTO:
        return AllocationTargetDTO(
            symbol=model.token_symbol,
            percentage=float(model.target_percentage),
            updated_at=model.updated_at,
            notes=model.notes,
        )
