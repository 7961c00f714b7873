import logging.config

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from src.application.lifecycle import lifespan
from src.application.module_registry import register_modules
from src.infrastructure.config.settings import settings


logging.config.dictConfig(settings.get_logging_config())


def create_app() -> FastAPI:
    app = FastAPI(
        title=settings.app_name,
        version=settings.app_version,
        debug=settings.debug,
        lifespan=lifespan,
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=[o.strip() for o in settings.cors_origins.split(",") if o.strip()],
        allow_credentials=settings.cors_allow_credentials,
        allow_methods=settings.cors_allow_methods,
        allow_headers=settings.cors_allow_headers,
    )

    register_modules(app)
    return app


app = create_app()
