"""
Trade Database Model

Historial (acotado) de trades simulados.
"""

from sqlalchemy import Column, Integer, String, Numeric, DateTime, Enum as SQLEnum

from src.commons.enums.trade_enums import (
    TradeSideEnum,
    TradeOrderTypeEnum,
    TradeStatusEnum,
)
from src.infrastructure.database.models.base import BaseModel, utc_now


class TradeModel(BaseModel):
    """Trade database model."""

    __tablename__ = "paradex_trades"

    id = Column(Integer, primary_key=True, autoincrement=True)
    market = Column(String(100), nullable=False)
    side = Column(SQLEnum(TradeSideEnum), nullable=False)
    size = Column(Numeric(36, 18, asdecimal=False), nullable=False)
    price = Column(Numeric(36, 18, asdecimal=False), nullable=False)
    order_type = Column(
        SQLEnum(TradeOrderTypeEnum),
        nullable=False,
        default=TradeOrderTypeEnum.MARKET,
    )
    status = Column(
        SQLEnum(TradeStatusEnum),
        nullable=False,
        default=TradeStatusEnum.FILLED,
    )
    trade_id = Column(String(100), nullable=True)
    timestamp = Column(DateTime(timezone=True), nullable=False, default=utc_now, index=True)
