"""API routes package."""

from .catalog_routes import router as catalog_router
from .health_routes import router as health_router

__all__ = ["catalog_router", "health_router"]
