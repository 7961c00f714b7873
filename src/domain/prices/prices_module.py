from dependency_injector import containers, providers
from .market_registry import MarketRegistry
from .price_service import PriceService
from .jobs.refresh_markets_job import RefreshMarketsJob


class PricesModule(containers.DeclarativeContainer):
    wiring_config = containers.WiringConfiguration(modules=[".controller"])
    root = providers.DependenciesContainer()

    market_registry = providers.Singleton(
        MarketRegistry,
        gateway=root.market_gateway,
        validity_seconds=root.config.provided.markets_validity_seconds,
    )

    # Un solo cache de precios por proceso
    price_service = providers.Singleton(
        PriceService,
        gateway=root.market_gateway,
        market_registry=market_registry,
        price_ranges=root.config.provided.price_ranges,
        stable_tokens=root.config.provided.stable_tokens,
        ttl_seconds=root.config.provided.price_cache_ttl_seconds,
        retry_attempts=root.config.provided.price_retry_attempts,
        retry_delay_seconds=root.config.provided.price_retry_delay_seconds,
        ask_discount=root.config.provided.price_ask_discount,
        generic_max_price=root.config.provided.price_generic_max,
        high_value_token=root.config.provided.price_high_value_token,
    )

    refresh_markets_job = providers.Factory(
        RefreshMarketsJob,
        market_registry=market_registry,
    )
