from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException
from dependency_injector.wiring import inject, Provide
from pydantic import BaseModel, Field

from src.domain.portfolio.allocation_service import AllocationService
from src.domain.portfolio.dtos.portfolio_dto import (
    AllocationInputDTO,
    AllocationReportDTO,
    AllocationResultDTO,
    AllocationTargetDTO,
    PnLResultDTO,
    PortfolioResultDTO,
    PositionDTO,
)
from src.domain.portfolio.portfolio_module import PortfolioModule
from src.domain.portfolio.portfolio_service import PortfolioService


router = APIRouter(prefix="/portfolio", tags=["portfolio"])


class ResetPortfolioRequest(BaseModel):
    keep_base: bool = False
    base_amount: Optional[float] = Field(default=None, ge=0)


class SetAllocationRequest(BaseModel):
    allocations: List[AllocationInputDTO]
    reasoning: Optional[str] = None


@router.get("", summary="List portfolio positions")
@inject
async def get_portfolio(
    service: PortfolioService = Depends(Provide[PortfolioModule.portfolio_service]),
) -> List[PositionDTO]:
    return await service.list_positions()


@router.get("/pnl", summary="Compute unrealized PnL for every position")
@inject
async def get_portfolio_pnl(
    service: PortfolioService = Depends(Provide[PortfolioModule.portfolio_service]),
) -> PnLResultDTO:
    return await service.get_pnl_report()


@router.post("/reset", summary="Reset the portfolio to the base stablecoin only")
@inject
async def reset_portfolio(
    body: ResetPortfolioRequest,
    service: PortfolioService = Depends(Provide[PortfolioModule.portfolio_service]),
) -> PortfolioResultDTO:
    try:
        return await service.reset_portfolio(keep_base=body.keep_base, base_amount=body.base_amount)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))


@router.post("/balance/report", summary="Send the portfolio balance to the backend")
@inject
async def send_portfolio_balance(
    service: PortfolioService = Depends(Provide[PortfolioModule.portfolio_service]),
) -> PortfolioResultDTO:
    return await service.send_portfolio_balance()


@router.get("/allocation", summary="Get target allocation")
@inject
async def get_target_allocation(
    service: AllocationService = Depends(Provide[PortfolioModule.allocation_service]),
) -> List[AllocationTargetDTO]:
    return await service.get_targets()


@router.put("/allocation", summary="Replace the target allocation")
@inject
async def set_target_allocation(
    body: SetAllocationRequest,
    service: AllocationService = Depends(Provide[PortfolioModule.allocation_service]),
) -> AllocationResultDTO:
    return await service.set_targets(body.allocations, reasoning=body.reasoning)


@router.get("/allocation/report", summary="Compare current vs target allocation")
@inject
async def get_allocation_report(
    service: AllocationService = Depends(Provide[PortfolioModule.allocation_service]),
) -> AllocationReportDTO:
    return await service.compare()
