"""Request-scoped access to the application context"""
from fastapi import Request

from alko_catalog.core.context import AppContext
from alko_catalog.services.impl.catalog_service import CatalogService


def get_context(request: Request) -> AppContext:
    return request.app.state.context


def get_catalog(request: Request) -> CatalogService:
    return get_context(request).catalog
