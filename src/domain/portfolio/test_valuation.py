import pytest

from src.domain.portfolio.valuation import (
    pnl_percentage,
    portfolio_pnl_percentage,
    unrealized_pnl,
    weighted_entry_price,
)


def test_weighted_entry_price_top_up():
    # 1 @ 2000 + 1 @ 3000 -> 2500
    assert weighted_entry_price(1.0, 2000.0, 1.0, 3000.0) == pytest.approx(2500.0)
    # 0.25 @ 2000 + 0.75 @ 4000 -> 3500
    assert weighted_entry_price(0.25, 2000.0, 0.75, 4000.0) == pytest.approx(3500.0)


def test_weighted_entry_price_from_empty_position():
    assert weighted_entry_price(0.0, 1800.0, 2.0, 2100.0) == 2100.0
    assert weighted_entry_price(3.0, None, 1.0, 50.0) == 50.0


def test_unrealized_pnl_and_percentage():
    assert unrealized_pnl(2.0, 150.0, 100.0) == pytest.approx(100.0)
    assert pnl_percentage(150.0, 100.0) == pytest.approx(50.0)
    assert pnl_percentage(150.0, 0.0) == 0.0


def test_portfolio_pnl_percentage_guard():
    assert portfolio_pnl_percentage(1200.0, 200.0) == pytest.approx(20.0)
    assert portfolio_pnl_percentage(100.0, 100.0) == 0.0
    assert portfolio_pnl_percentage(0.0, 0.0) == 0.0
