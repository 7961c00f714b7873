from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, Field, model_validator


class PriceRange(BaseModel):
    """Rango de precios plausible (USD) para un token conocido."""
    min: float = Field(..., gt=0)
    max: float = Field(..., gt=0)
    typical: float = Field(..., gt=0)

    @model_validator(mode="after")
    def check_bounds(self) -> "PriceRange":
        if self.min > self.max:
            raise ValueError("min price cannot be above max price")
        if not self.min <= self.typical <= self.max:
            raise ValueError("typical price must be inside [min, max]")
        return self


class BBODTO(BaseModel):
    """Best bid / offer tal como lo devuelve el venue (strings crudos)."""
    market: str
    bid: Optional[str] = None
    ask: Optional[str] = None


class CachedPrice(BaseModel):
    symbol: str
    price: float
    fetched_at: float  # epoch seconds, from the injected clock
    source: str


class PriceQuote(BaseModel):
    price: float
    source: str


class CacheStatusDTO(BaseModel):
    price: float
    age: str
    source: str
    fetched_at: datetime


class SupportedTokenDTO(BaseModel):
    symbol: str
    is_supported: bool
    message: str
    markets: List[str] = Field(default_factory=list)


class SupportedTokensDTO(BaseModel):
    success: bool
    source: str  # "api" | "fallback"
    tokens: List[str]
    tradable_tokens: List[str] = Field(default_factory=list)
    message: str
