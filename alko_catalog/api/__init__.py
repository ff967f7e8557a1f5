"""API endpoints package - export only."""

from .routes import catalog_router, health_router

__all__ = ["catalog_router", "health_router"]
