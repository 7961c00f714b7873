from contextlib import asynccontextmanager
import logging
from fastapi import FastAPI
from src.application.container import container
from src.infrastructure.scheduler.scheduler import JobScheduler
from src.infrastructure.scheduler.cron_expression_enum import CronSchedule
from src.infrastructure.config.settings import settings
from src.domain.prices.prices_module import PricesModule, RefreshMarketsJob
from src.domain.portfolio.portfolio_module import PortfolioModule

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    logger.info("Starting application...")
    scheduler: JobScheduler = container.scheduler()

    try:
        # 1) Inicializar DB primero
        await container.db_client().init()
        logger.info("Database initialized successfully")

        # 2) Sembrar el stablecoin base si el portfolio está vacío
        portfolio_module: PortfolioModule = app.state.portfolio_module
        result = await portfolio_module.portfolio_service().init_portfolio()
        logger.info(result.message)

        # 3) Primer listado de mercados antes de aceptar requests
        prices_module: PricesModule = app.state.prices_module
        refresh_job: RefreshMarketsJob = prices_module.refresh_markets_job()
        await refresh_job.run()

        # 4) Arrancar scheduler
        await scheduler.start()
        logger.info("Scheduler started")

        # 5) Schedule RefreshMarketsJob
        scheduler.add_cron_job(
            refresh_job.run,
            CronSchedule.from_name(settings.markets_refresh_schedule),
            job_id="refresh_markets_job",
        )

        yield

    except Exception as e:
        logger.error(f"Error during startup: {str(e)}")
        raise

    finally:
        logger.info("Shutting down application...")

        try:
            await scheduler.shutdown()
            logger.info("Scheduler shut down successfully")
        except Exception as e:
            logger.error(f"Error shutting down scheduler: {e}")

        await container.market_gateway().close()
        await container.reporter().close()
        await container.db_client().close()
        logger.info("Application shut down successfully")
