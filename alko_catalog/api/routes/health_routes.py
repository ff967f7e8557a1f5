"""Health check endpoints"""
from datetime import datetime

from fastapi import APIRouter, Depends

from alko_catalog import __version__
from alko_catalog.api.routes.dependencies import get_context
from alko_catalog.core.context import AppContext
from alko_catalog.core.logging import logger
from alko_catalog.schemas.catalog_schema import HealthResponse

router = APIRouter(tags=["health"])


@router.get("/health", response_model=HealthResponse)
async def health_check(context: AppContext = Depends(get_context)):
    """
    Health check

    - server up
    - database reachable
    """
    db_ok = False
    try:
        with context.engine.connect() as connection:
            connection.exec_driver_sql("SELECT 1")
            db_ok = True
    except Exception as e:
        logger.error(f"Database connection error: {e}")

    return HealthResponse(
        status="ok" if db_ok else "degraded",
        timestamp=datetime.now(),
        version=__version__,
    )


@router.get("/")
async def root():
    return {
        "service": "Alko catalog",
        "version": __version__,
        "docs": "/docs",
    }
