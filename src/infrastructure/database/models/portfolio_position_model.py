"""
Portfolio Position Database Model

Una fila por token mantenido en el portfolio simulado.
"""

from sqlalchemy import Column, Integer, String, Numeric, DateTime, CheckConstraint

from src.infrastructure.database.models.base import BaseModel

# Numeric en DB, float en Python (asyncpg devolvería Decimal si no)
Amount = Numeric(36, 18, asdecimal=False)


class PortfolioPositionModel(BaseModel):
    """Portfolio position database model."""
    __tablename__ = "sak_table_portfolio"

    id = Column(Integer, primary_key=True, autoincrement=True)
    token_symbol = Column(String(50), nullable=False, unique=True, index=True)
    balance = Column(Amount, nullable=False, default=0.0)
    entry_price = Column(Amount, nullable=True)
    entry_timestamp = Column(DateTime(timezone=True), nullable=True)
    unrealized_pnl = Column(Amount, nullable=False, default=0.0)
    pnl_percentage = Column(Amount, nullable=False, default=0.0)

    __table_args__ = (
        CheckConstraint("balance >= 0", name="ck_portfolio_balance_non_negative"),
    )
