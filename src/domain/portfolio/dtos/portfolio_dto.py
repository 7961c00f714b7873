from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field, computed_field

from src.commons.enums.trade_enums import RebalanceActionEnum


class PositionDTO(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    token_symbol: str
    balance: float = Field(..., ge=0.0)
    entry_price: Optional[float] = None
    entry_timestamp: Optional[datetime] = None
    unrealized_pnl: float = 0.0
    pnl_percentage: float = 0.0


class TokenPnLDTO(BaseModel):
    token: str
    balance: float
    current_price: float
    value_usd: float
    entry_price: Optional[float] = None
    entry_timestamp: Optional[datetime] = None
    unrealized_pnl: float = 0.0
    pnl_percentage: float = 0.0
    allocation_pct: float = 0.0
    price_resolved: bool = True


class PortfolioPnLDTO(BaseModel):
    total_portfolio_value: float
    total_pnl: float
    portfolio_pnl_percentage: float
    tokens: List[TokenPnLDTO] = Field(default_factory=list)


class PnLResultDTO(BaseModel):
    success: bool
    message: str
    pnl: Optional[PortfolioPnLDTO] = None


class AllocationInputDTO(BaseModel):
    symbol: str = Field(..., min_length=1)
    percentage: float = Field(..., ge=0.0, le=100.0)


class AllocationTargetDTO(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    symbol: str
    percentage: float
    updated_at: Optional[datetime] = None
    notes: Optional[str] = None


class AllocationResultDTO(BaseModel):
    success: bool
    message: str
    allocations: List[AllocationTargetDTO] = Field(default_factory=list)


class AllocationDeviationDTO(BaseModel):
    symbol: str
    current_pct: Optional[float] = None
    target_pct: Optional[float] = None
    deviation: Optional[float] = None
    action: Optional[RebalanceActionEnum] = None
    suggestion: Optional[str] = None
    price_resolved: bool = True


class AllocationReportDTO(BaseModel):
    total_value: float
    entries: List[AllocationDeviationDTO] = Field(default_factory=list)
    rebalancing: List[AllocationDeviationDTO] = Field(default_factory=list)
    unpriced_tokens: List[str] = Field(default_factory=list)

    @computed_field
    @property
    def needs_rebalancing(self) -> bool:
        return len(self.rebalancing) > 0


class PortfolioResultDTO(BaseModel):
    success: bool
    message: str
