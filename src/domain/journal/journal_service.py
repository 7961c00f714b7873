import logging
from typing import List, Optional

from src.domain.journal.dtos.journal_dto import (
    ExplanationDTO,
    ExplanationsResultDTO,
    StrategyTextDTO,
)
from src.infrastructure.database.client import PostgresClient
from src.infrastructure.database.repositories.journal_repository import JournalRepository

logger = logging.getLogger(__name__)


class JournalService:
    """
    Bitácora del agente: últimas explicaciones de decisiones y el texto de
    estrategia vigente. Ambas tablas se recortan en cada escritura.
    """

    def __init__(
        self,
        db_client: PostgresClient,
        explanations_keep: int = 3,
        strategies_keep: int = 1,
    ):
        self.db_client = db_client
        self.explanations_keep = explanations_keep
        self.strategies_keep = strategies_keep

    async def add_explanation(self, explanation: ExplanationDTO) -> ExplanationDTO:
        async with self.db_client.transaction() as session:
            repo = JournalRepository(session)
            saved = await repo.add_explanation(explanation, keep_latest=self.explanations_keep)

        logger.info(f"📝 Explanation saved ({saved.decision_type or 'decision'})")
        return saved

    async def get_explanations(self, limit: Optional[int] = None) -> ExplanationsResultDTO:
        async with self.db_client.get_session() as session:
            repo = JournalRepository(session)
            explanations: List[ExplanationDTO] = await repo.get_explanations(
                limit or self.explanations_keep
            )

        return ExplanationsResultDTO(success=True, explanations=explanations)

    async def set_strategy(self, strategy_text: str) -> StrategyTextDTO:
        async with self.db_client.transaction() as session:
            repo = JournalRepository(session)
            saved = await repo.save_strategy(strategy_text, keep_latest=self.strategies_keep)

        logger.info("📝 Trading strategy updated")
        return saved

    async def get_strategy(self) -> Optional[StrategyTextDTO]:
        async with self.db_client.get_session() as session:
            repo = JournalRepository(session)
            return await repo.get_latest_strategy()
