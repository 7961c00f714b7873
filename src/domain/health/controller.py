from fastapi import APIRouter, Depends
from dependency_injector.wiring import inject, Provide
from src.domain.health.service import HealthService
from src.domain.health.module import HealthModule


router = APIRouter(prefix="/health", tags=["health"])


@router.get("", summary="Health check endpoint")
@inject
async def health_check(service: HealthService = Depends(Provide[HealthModule.service]),
                       ) -> dict:
    db_health = await service.check_database_health()
    market_health = await service.check_market_data_health()
    # Sin Paradex los precios caen a fallbacks: degradado, no caído
    if not db_health:
        status = "unhealthy"
    elif not market_health:
        status = "degraded"
    else:
        status = "healthy"
    return {"status": status, "database": db_health, "market_data": market_health}
