from datetime import datetime, timezone
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field

from src.commons.enums.trade_enums import (
    TradeSideEnum,
    TradeOrderTypeEnum,
    TradeStatusEnum,
)


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


class TradeRequestDTO(BaseModel):
    from_token: str = Field(..., min_length=1)
    to_token: str = Field(..., min_length=1)
    from_amount: float
    explanation: Optional[str] = None


class NoTradeRequestDTO(BaseModel):
    explanation: str = Field(..., min_length=1)


class TradeRecordDTO(BaseModel):
    """
    Trade record (append-only, capped history).
    """

    model_config = ConfigDict(from_attributes=True)

    id: Optional[int] = None
    market: str
    side: TradeSideEnum
    size: float = Field(..., ge=0.0)
    price: float
    order_type: TradeOrderTypeEnum = TradeOrderTypeEnum.MARKET
    status: TradeStatusEnum = TradeStatusEnum.FILLED
    trade_id: Optional[str] = None
    timestamp: datetime = Field(default_factory=_utc_now)


class ExecutedTradeDTO(BaseModel):
    from_token: str
    to_token: str
    from_amount: float
    usd_amount: float
    to_amount: float
    from_price: float
    to_price: float
    explanation: Optional[str] = None
    record: TradeRecordDTO


class TradeResultDTO(BaseModel):
    success: bool
    message: str
    trade: Optional[ExecutedTradeDTO] = None
    explanation: Optional[str] = None
    pnl_check_recent: Optional[bool] = None
