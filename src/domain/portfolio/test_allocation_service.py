import pytest
from unittest.mock import AsyncMock, MagicMock, patch

from src.commons.enums.trade_enums import RebalanceActionEnum
from src.commons.errors import InvalidAllocationError
from src.domain.portfolio.allocation_service import AllocationService, validate_allocations
from src.domain.portfolio.dtos.portfolio_dto import (
    AllocationInputDTO,
    AllocationTargetDTO,
    PortfolioPnLDTO,
    TokenPnLDTO,
)


class InMemoryAllocationRepository:
    """Repo fake que comparte estado entre sesiones."""

    targets = []
    notes = []

    def __init__(self, session):
        self.session = session

    async def replace_targets(self, allocations, notes=None):
        type(self).targets = [
            AllocationTargetDTO(symbol=a.symbol, percentage=a.percentage, notes=notes)
            for a in allocations
        ]
        return list(type(self).targets)

    async def add_strategy_note(self, explanation):
        type(self).notes.append(explanation)

    async def get_targets(self):
        return sorted(type(self).targets, key=lambda t: t.percentage, reverse=True)


@pytest.fixture(autouse=True)
def fake_repo():
    InMemoryAllocationRepository.targets = []
    InMemoryAllocationRepository.notes = []
    with patch(
        "src.domain.portfolio.allocation_service.AllocationRepository",
        InMemoryAllocationRepository,
    ):
        yield InMemoryAllocationRepository


@pytest.fixture
def mock_db_client():
    client = MagicMock()
    session = AsyncMock()
    client.get_session.return_value.__aenter__.return_value = session
    client.get_session.return_value.__aexit__.return_value = None
    client.transaction.return_value.__aenter__.return_value = session
    client.transaction.return_value.__aexit__.return_value = None
    return client


@pytest.fixture
def mock_portfolio():
    portfolio = MagicMock()
    portfolio.compute_pnl = AsyncMock()
    return portfolio


@pytest.fixture
def allocation_service(mock_db_client, mock_portfolio):
    return AllocationService(
        db_client=mock_db_client,
        portfolio=mock_portfolio,
        rebalance_threshold_pct=5.0,
    )


def alloc(symbol, pct):
    return AllocationInputDTO(symbol=symbol, percentage=pct)


def token(symbol, value, allocation_pct):
    return TokenPnLDTO(
        token=symbol,
        balance=value,
        current_price=1.0,
        value_usd=value,
        allocation_pct=allocation_pct,
    )


# ==================== TESTS DE VALIDACIÓN ====================


def test_validate_allocations_tolerance():
    assert validate_allocations([alloc("btc", 60.005), alloc("eth", 40)])[0].symbol == "BTC"

    with pytest.raises(InvalidAllocationError):
        validate_allocations([alloc("BTC", 60.02), alloc("ETH", 40)])

    with pytest.raises(InvalidAllocationError):
        validate_allocations([alloc("BTC", 50), alloc("ETH", 49.98)])


def test_validate_allocations_rejects_empty_and_duplicates():
    with pytest.raises(InvalidAllocationError):
        validate_allocations([])

    with pytest.raises(InvalidAllocationError):
        validate_allocations([alloc("ETH", 50), alloc("eth", 50)])


# ==================== TESTS DE TARGETS ====================


@pytest.mark.asyncio
async def test_set_and_get_targets(allocation_service, fake_repo):
    result = await allocation_service.set_targets(
        [alloc("BTC", 60), alloc("ETH", 40)],
        reasoning="Majors only",
    )

    assert result.success is True
    targets = await allocation_service.get_targets()
    assert [(t.symbol, t.percentage) for t in targets] == [("BTC", 60), ("ETH", 40)]
    assert sum(t.percentage for t in targets) == 100
    assert fake_repo.notes == ["Majors only"]


@pytest.mark.asyncio
async def test_invalid_sum_is_rejected_and_previous_targets_remain(allocation_service, mock_db_client):
    await allocation_service.set_targets([alloc("BTC", 60), alloc("ETH", 40)])
    transactions = mock_db_client.transaction.call_count

    result = await allocation_service.set_targets([alloc("BTC", 50), alloc("ETH", 40)])

    assert result.success is False
    assert "Current total: 90.00%" in result.message
    assert mock_db_client.transaction.call_count == transactions

    targets = await allocation_service.get_targets()
    assert [(t.symbol, t.percentage) for t in targets] == [("BTC", 60), ("ETH", 40)]


# ==================== TESTS DE REBALANCEO ====================


@pytest.mark.asyncio
async def test_compare_flags_over_and_under_weight(allocation_service):
    await allocation_service.set_targets([alloc("BTC", 50), alloc("ETH", 30), alloc("SOL", 20)])

    pnl = PortfolioPnLDTO(
        total_portfolio_value=1000.0,
        total_pnl=0.0,
        portfolio_pnl_percentage=0.0,
        tokens=[
            token("BTC", 700.0, 70.0),
            token("ETH", 280.0, 28.0),
            token("USDC", 20.0, 2.0),
        ],
    )

    report = await allocation_service.compare(pnl)

    assert report.needs_rebalancing is True
    actions = {e.symbol: e.action for e in report.rebalancing}
    assert actions == {
        "BTC": RebalanceActionEnum.REDUCE,
        "SOL": RebalanceActionEnum.INCREASE,
    }
    # ordenado por desvío absoluto
    assert [e.symbol for e in report.rebalancing] == ["BTC", "SOL"]
    assert report.rebalancing[0].suggestion == (
        "REDUCE BTC: Currently 70.00%, target 50.00% (20.00% overweight)"
    )
    assert report.rebalancing[1].suggestion == (
        "INCREASE SOL: Currently 0.00%, target 20.00% (20.00% underweight)"
    )

    usdc = next(e for e in report.entries if e.symbol == "USDC")
    assert usdc.target_pct is None
    assert usdc.action is None


@pytest.mark.asyncio
async def test_compare_computes_pnl_when_missing(allocation_service, mock_portfolio):
    mock_portfolio.compute_pnl = AsyncMock(return_value=PortfolioPnLDTO(
        total_portfolio_value=100.0,
        total_pnl=0.0,
        portfolio_pnl_percentage=0.0,
        tokens=[token("USDC", 100.0, 100.0)],
    ))

    report = await allocation_service.compare()

    mock_portfolio.compute_pnl.assert_awaited_once()
    assert report.needs_rebalancing is False


@pytest.mark.asyncio
async def test_compare_with_unresolved_price_suggests_nothing(allocation_service):
    await allocation_service.set_targets([alloc("USDC", 50), alloc("BTC", 50)])

    btc = TokenPnLDTO(
        token="BTC",
        balance=0.01,
        current_price=1.0,
        value_usd=0.01,
        allocation_pct=0.0,
        price_resolved=False,
    )
    pnl = PortfolioPnLDTO(
        total_portfolio_value=500.01,
        total_pnl=0.0,
        portfolio_pnl_percentage=0.0,
        tokens=[token("USDC", 500.0, 100.0), btc],
    )

    report = await allocation_service.compare(pnl)

    assert report.needs_rebalancing is False
    assert report.unpriced_tokens == ["BTC"]
    assert report.total_value == 500.0

    btc_entry = next(e for e in report.entries if e.symbol == "BTC")
    assert btc_entry.price_resolved is False
    assert btc_entry.current_pct is None
    assert btc_entry.target_pct == 50
    assert btc_entry.action is None
    assert "Price unavailable for BTC" in btc_entry.suggestion

    usdc_entry = next(e for e in report.entries if e.symbol == "USDC")
    assert usdc_entry.action is None
    assert usdc_entry.suggestion is None
