import pytest
from datetime import datetime, timezone
from unittest.mock import AsyncMock, MagicMock, patch

from src.domain.journal.dtos.journal_dto import ExplanationDTO, StrategyTextDTO
from src.domain.journal.journal_service import JournalService


@pytest.fixture
def mock_db_client():
    """Mock del cliente de base de datos."""
    client = MagicMock()
    session = AsyncMock()
    client.get_session.return_value.__aenter__.return_value = session
    client.get_session.return_value.__aexit__.return_value = None
    client.transaction.return_value.__aenter__.return_value = session
    client.transaction.return_value.__aexit__.return_value = None
    return client


@pytest.fixture
def journal_service(mock_db_client):
    return JournalService(db_client=mock_db_client, explanations_keep=3, strategies_keep=1)


# ==================== TESTS DE EXPLICACIONES ====================


@pytest.mark.asyncio
async def test_add_explanation_keeps_latest_three(journal_service, mock_db_client):
    explanation = ExplanationDTO(
        explanation="Bought ETH on breakout",
        market="ETH-USD",
        decision_type="trade",
    )

    with patch("src.domain.journal.journal_service.JournalRepository") as MockRepo:
        mock_repo = MockRepo.return_value
        mock_repo.add_explanation = AsyncMock(return_value=explanation)

        result = await journal_service.add_explanation(explanation)

        assert result == explanation
        mock_repo.add_explanation.assert_awaited_once_with(explanation, keep_latest=3)
        mock_db_client.transaction.assert_called_once()


@pytest.mark.asyncio
async def test_get_explanations_defaults_to_keep_limit(journal_service):
    stored = [
        ExplanationDTO(explanation=f"decision {i}", timestamp=datetime.now(timezone.utc))
        for i in range(3)
    ]

    with patch("src.domain.journal.journal_service.JournalRepository") as MockRepo:
        mock_repo = MockRepo.return_value
        mock_repo.get_explanations = AsyncMock(return_value=stored)

        result = await journal_service.get_explanations()

        assert result.success is True
        assert len(result.explanations) == 3
        mock_repo.get_explanations.assert_awaited_once_with(3)


# ==================== TESTS DE ESTRATEGIA ====================


@pytest.mark.asyncio
async def test_set_strategy_replaces_previous(journal_service):
    saved = StrategyTextDTO(strategy_text="Momentum on majors", timestamp=datetime.now(timezone.utc))

    with patch("src.domain.journal.journal_service.JournalRepository") as MockRepo:
        mock_repo = MockRepo.return_value
        mock_repo.save_strategy = AsyncMock(return_value=saved)

        result = await journal_service.set_strategy("Momentum on majors")

        assert result.strategy_text == "Momentum on majors"
        mock_repo.save_strategy.assert_awaited_once_with("Momentum on majors", keep_latest=1)


@pytest.mark.asyncio
async def test_get_strategy_when_empty(journal_service):
    with patch("src.domain.journal.journal_service.JournalRepository") as MockRepo:
        MockRepo.return_value.get_latest_strategy = AsyncMock(return_value=None)

        assert await journal_service.get_strategy() is None
