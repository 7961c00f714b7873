from dependency_injector import containers, providers
from src.domain.portfolio.portfolio_service import PortfolioService
from src.domain.portfolio.allocation_service import AllocationService
from src.domain.portfolio.pnl_freshness import PnLFreshnessGate


class PortfolioModule(containers.DeclarativeContainer):
    wiring_config = containers.WiringConfiguration(modules=[".controller"])
    root = providers.DependenciesContainer()

    # Una sola marca de "último PnL" por proceso; trading la consulta
    pnl_gate = providers.Singleton(
        PnLFreshnessGate,
        window_seconds=root.config.provided.pnl_check_window_seconds,
    )

    portfolio_service = providers.Factory(
        PortfolioService,
        db_client=root.db_client,
        price_service=root.price_service,
        pnl_gate=pnl_gate,
        reporter=root.reporter,
        base_token=root.config.provided.base_token,
        initial_base_balance=root.config.provided.initial_base_balance,
    )

    allocation_service = providers.Factory(
        AllocationService,
        db_client=root.db_client,
        portfolio=portfolio_service,
        rebalance_threshold_pct=root.config.provided.rebalance_threshold_pct,
    )
