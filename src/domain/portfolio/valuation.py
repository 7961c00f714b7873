from __future__ import annotations
from typing import Optional


def weighted_entry_price(
    old_balance: float,
    old_entry_price: Optional[float],
    credited_amount: float,
    credited_price: float,
) -> float:
    """
    Precio de entrada promedio ponderado por volumen después de sumar
    `credited_amount` unidades a `credited_price`.

    Si no había balance (o no había entry price) el nuevo entry price es
    directamente el precio de compra.
    """
    new_balance = old_balance + credited_amount
    if old_balance <= 0 or old_entry_price is None or new_balance <= 0:
        return float(credited_price)

    return (
        old_balance * old_entry_price + credited_amount * credited_price
    ) / new_balance


def unrealized_pnl(balance: float, current_price: float, entry_price: float) -> float:
    return balance * (current_price - entry_price)


def pnl_percentage(current_price: float, entry_price: float) -> float:
    if entry_price <= 0:
        return 0.0
    return ((current_price / entry_price) - 1) * 100


def portfolio_pnl_percentage(total_value: float, total_pnl: float) -> float:
    """
    PnL total relativo al valor inicial implícito (total_value - total_pnl).
    Con valor inicial <= 0 devuelve 0%.
    """
    initial_value = total_value - total_pnl
    if initial_value <= 0:
        return 0.0
    return (total_pnl / initial_value) * 100
