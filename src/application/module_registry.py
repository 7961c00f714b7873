from fastapi import FastAPI
from dependency_injector import providers
from src.application.container import container as root_container


def register_modules(app: FastAPI):
    # Register Health Module
    from src.domain.health.module import HealthModule
    from src.domain.health.controller import router as health_router

    health_container = HealthModule(
        root=providers.DependenciesContainer(
            db_client=root_container.db_client,
            market_gateway=root_container.market_gateway,
        )
    )
    health_container.wire(modules=["src.domain.health.controller"])

    app.include_router(health_router)
    app.state.health_container = health_container

    # Register Prices Module
    from src.domain.prices.prices_module import PricesModule
    from src.domain.prices.controller import router as prices_router

    prices_module = PricesModule(
        root=providers.DependenciesContainer(
            config=root_container.config,
            market_gateway=root_container.market_gateway,
        ),
    )
    prices_module.wire(modules=["src.domain.prices.controller"])

    app.include_router(prices_router)
    app.state.prices_module = prices_module

    # Register Portfolio Module
    from src.domain.portfolio.portfolio_module import PortfolioModule
    from src.domain.portfolio.controller import router as portfolio_router

    portfolio_module = PortfolioModule(
        root=providers.DependenciesContainer(
            config=root_container.config,
            db_client=root_container.db_client,
            reporter=root_container.reporter,
            price_service=prices_module.price_service,
        ),
    )
    portfolio_module.wire(modules=["src.domain.portfolio.controller"])

    app.include_router(portfolio_router)
    app.state.portfolio_module = portfolio_module

    # Register Trading Module
    from src.domain.trading.trading_module import TradingModule
    from src.domain.trading.controller import router as trading_router

    trading_module = TradingModule(
        root=providers.DependenciesContainer(
            config=root_container.config,
            db_client=root_container.db_client,
            reporter=root_container.reporter,
            price_service=prices_module.price_service,
            market_registry=prices_module.market_registry,
            pnl_gate=portfolio_module.pnl_gate,
        ),
    )
    trading_module.wire(modules=["src.domain.trading.controller"])

    app.include_router(trading_router)
    app.state.trading_module = trading_module

    # Register Journal Module
    from src.domain.journal.journal_module import JournalModule
    from src.domain.journal.controller import router as journal_router

    journal_module = JournalModule(
        root=providers.DependenciesContainer(
            config=root_container.config,
            db_client=root_container.db_client,
        ),
    )
    journal_module.wire(modules=["src.domain.journal.controller"])

    app.include_router(journal_router)
    app.state.journal_module = journal_module
