from dependency_injector import containers, providers
from src.infrastructure.database.client import PostgresClient
from src.infrastructure.config.settings import Settings
from src.infrastructure.market.paradex_client import ParadexClient
from src.infrastructure.reporting.backend_reporter import BackendReporter
from src.infrastructure.scheduler.scheduler import JobScheduler


class Container(containers.DeclarativeContainer):
    config = providers.Singleton(Settings)

    db_client = providers.Singleton(
        PostgresClient,
        db_url=config().async_database_url,
        pool_size=config().db_pool_size,
        max_overflow=config().db_max_overflow,
        pool_timeout=config().db_pool_timeout,
        pool_recycle=config().db_pool_recycle,
        echo=config().db_echo,
    )

    market_gateway = providers.Singleton(
        ParadexClient,
        config=config,
    )

    reporter = providers.Singleton(
        BackendReporter,
        config=config,
    )

    scheduler = providers.Singleton(
        JobScheduler,
        timezone=config().scheduler_timezone,
        enabled=config().scheduler_enabled,
    )


container = Container()
