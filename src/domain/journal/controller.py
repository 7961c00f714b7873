from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query
from dependency_injector.wiring import inject, Provide
from pydantic import BaseModel, Field

from src.domain.journal.dtos.journal_dto import (
    ExplanationDTO,
    ExplanationsResultDTO,
    StrategyTextDTO,
)
from src.domain.journal.journal_module import JournalModule
from src.domain.journal.journal_service import JournalService


router = APIRouter(prefix="/journal", tags=["journal"])


class SetStrategyRequest(BaseModel):
    strategy_text: str = Field(..., min_length=1)


@router.get("/explanations", summary="Latest agent decision explanations")
@inject
async def get_explanations(
    limit: Optional[int] = Query(default=None, ge=1, le=50),
    service: JournalService = Depends(Provide[JournalModule.journal_service]),
) -> ExplanationsResultDTO:
    return await service.get_explanations(limit)


@router.post("/explanations", summary="Record an agent decision explanation")
@inject
async def add_explanation(
    body: ExplanationDTO,
    service: JournalService = Depends(Provide[JournalModule.journal_service]),
) -> ExplanationDTO:
    return await service.add_explanation(body)


@router.get("/strategy", summary="Current trading strategy text")
@inject
async def get_strategy(
    service: JournalService = Depends(Provide[JournalModule.journal_service]),
) -> StrategyTextDTO:
    strategy = await service.get_strategy()
    if strategy is None:
        raise HTTPException(status_code=404, detail="No trading strategy found")
    return strategy


@router.put("/strategy", summary="Replace the trading strategy text")
@inject
async def set_strategy(
    body: SetStrategyRequest,
    service: JournalService = Depends(Provide[JournalModule.journal_service]),
) -> StrategyTextDTO:
    return await service.set_strategy(body.strategy_text)
