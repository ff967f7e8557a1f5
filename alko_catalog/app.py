"""FastAPI app factory"""
from contextlib import asynccontextmanager
from typing import Callable, Optional

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from alko_catalog.api import catalog_router, health_router
from alko_catalog.core.config import settings
from alko_catalog.core.context import AppContext
from alko_catalog.core.exceptions import (
    BotChallengeDetected,
    CatalogException,
    CrawlerException,
    ValidationFailure,
)
from alko_catalog.core.logging import logger
from alko_catalog.scheduler.nightly_sync import NightlySyncScheduler
from alko_catalog.schemas.catalog_schema import ErrorResponse


def status_for(exc: CatalogException) -> int:
    if isinstance(exc, ValidationFailure):
        return 422
    if isinstance(exc, BotChallengeDetected):
        return 503
    if isinstance(exc, CrawlerException):
        return 502
    return 500


async def catalog_exception_handler(request: Request, exc: CatalogException) -> JSONResponse:
    status = status_for(exc)
    logger.error(f"[API] {request.method} {request.url.path} -> {status}: {exc}")
    body = ErrorResponse(error_code=exc.error_code, message=exc.message, details=exc.details)
    return JSONResponse(status_code=status, content=body.model_dump(by_alias=True))


def create_app(context_factory: Optional[Callable[[], AppContext]] = None) -> FastAPI:
    """
    Build the FastAPI app (factory pattern)

    Args:
        context_factory: builds the AppContext at startup; defaults to AppContext.create()

    Returns:
        FastAPI app
    """
    factory = context_factory or AppContext.create

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        logger.info("Starting application...")
        context = factory()
        app.state.context = context

        scheduler = None
        if context.settings.sync_scheduler_enabled:
            scheduler = NightlySyncScheduler(context.catalog, context.settings.sync_cron_schedule)
            scheduler.start()
        logger.info("Application started")
        yield
        logger.info("Shutting down application...")
        if scheduler is not None:
            scheduler.shutdown()
        await context.aclose()

    app = FastAPI(
        title=settings.api_title,
        description=settings.api_description,
        version=settings.api_version,
        lifespan=lifespan,
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    app.add_exception_handler(CatalogException, catalog_exception_handler)

    app.include_router(health_router)
    app.include_router(catalog_router)

    return app


# uvicorn alko_catalog.app:app
app = create_app()
