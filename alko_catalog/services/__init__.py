"""Catalog services - export only."""

from .impl import CacheService, CatalogService, DataBootstrapper, SearchService, SyncService

__all__ = ["CacheService", "CatalogService", "DataBootstrapper", "SearchService", "SyncService"]
