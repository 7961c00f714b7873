from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field


class ExplanationDTO(BaseModel):
    """Explicación de una decisión del agente (trade o no-trade)."""

    model_config = ConfigDict(from_attributes=True)

    explanation: str = Field(..., min_length=1)
    market: Optional[str] = None
    reason: Optional[str] = None
    price: Optional[float] = None
    volume: Optional[float] = None
    volatility: Optional[float] = None
    trend: Optional[str] = None
    decision_type: Optional[str] = None
    timestamp: Optional[datetime] = None


class StrategyTextDTO(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    strategy_text: str = Field(..., min_length=1)
    timestamp: Optional[datetime] = None


class ExplanationsResultDTO(BaseModel):
    success: bool
    explanations: List[ExplanationDTO] = Field(default_factory=list)
