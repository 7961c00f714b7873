from typing import Dict, Optional

from fastapi import APIRouter, Depends, HTTPException, Query
from dependency_injector.wiring import inject, Provide

from src.domain.prices.dtos.price_dto import CacheStatusDTO, SupportedTokensDTO
from src.domain.prices.market_registry import MarketRegistry
from src.domain.prices.price_service import PriceService
from src.domain.prices.prices_module import PricesModule


router = APIRouter(prefix="/prices", tags=["prices"])


@router.get("/cache", summary="Show the in-memory price cache")
@inject
async def get_price_cache(
    service: PriceService = Depends(Provide[PricesModule.price_service]),
) -> Dict[str, CacheStatusDTO]:
    return service.get_cache_status()


@router.delete("/cache", summary="Clear one or every cached price")
@inject
async def clear_price_cache(
    symbol: Optional[str] = Query(default=None),
    service: PriceService = Depends(Provide[PricesModule.price_service]),
) -> dict:
    service.clear_cache(symbol)
    return {"success": True, "cleared": symbol.upper() if symbol else "all"}


@router.get("/supported-tokens", summary="List tokens tradable on Paradex")
@inject
async def list_supported_tokens(
    registry: MarketRegistry = Depends(Provide[PricesModule.market_registry]),
) -> SupportedTokensDTO:
    return await registry.refresh()


@router.get("/{symbol}", summary="Resolve the USD price of a token")
@inject
async def get_price(
    symbol: str,
    force_fresh: bool = Query(default=False),
    service: PriceService = Depends(Provide[PricesModule.price_service]),
) -> dict:
    price = await service.get_price(symbol, force_fresh=force_fresh)
    if price is None:
        raise HTTPException(
            status_code=404,
            detail=f"Could not get a valid price for {symbol.upper()}",
        )
    return {"symbol": symbol.upper(), "price": price}
