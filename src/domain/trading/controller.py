from typing import List, Optional

from fastapi import APIRouter, Depends, Query
from dependency_injector.wiring import inject, Provide

from src.domain.trading.dtos.trade_dto import (
    NoTradeRequestDTO,
    TradeRecordDTO,
    TradeRequestDTO,
    TradeResultDTO,
)
from src.domain.trading.trading_module import TradingModule
from src.domain.trading.trading_service import TradingService


router = APIRouter(prefix="/trading", tags=["trading"])


@router.post("/trade", summary="Simulate a trade between two tokens")
@inject
async def simulate_trade(
    body: TradeRequestDTO,
    service: TradingService = Depends(Provide[TradingModule.trading_service]),
) -> TradeResultDTO:
    return await service.trade(
        from_token=body.from_token,
        to_token=body.to_token,
        from_amount=body.from_amount,
        explanation=body.explanation,
    )


@router.post("/no-trade", summary="Record a conscious decision not to trade")
@inject
async def no_trade(
    body: NoTradeRequestDTO,
    service: TradingService = Depends(Provide[TradingModule.trading_service]),
) -> TradeResultDTO:
    return await service.no_trade(body.explanation)


@router.get("/history", summary="Latest simulated trades")
@inject
async def get_trade_history(
    limit: Optional[int] = Query(default=None, ge=1, le=100),
    service: TradingService = Depends(Provide[TradingModule.trading_service]),
) -> List[TradeRecordDTO]:
    return await service.get_trade_history(limit)
