from dependency_injector import containers, providers
from .trading_service import TradingService


class TradingModule(containers.DeclarativeContainer):
    wiring_config = containers.WiringConfiguration(modules=[".controller"])
    root = providers.DependenciesContainer()

    # Singleton: el asyncio.Lock que serializa los trades tiene que ser uno solo
    trading_service = providers.Singleton(
        TradingService,
        db_client=root.db_client,
        price_service=root.price_service,
        market_registry=root.market_registry,
        pnl_gate=root.pnl_gate,
        reporter=root.reporter,
        base_token=root.config.provided.base_token,
        trade_history_limit=root.config.provided.trade_history_limit,
    )
