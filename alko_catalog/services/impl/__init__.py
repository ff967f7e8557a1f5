"""Services implementation package."""

from .bootstrap import BootstrapState, DataBootstrapper, export_seed_bundle
from .cache_service import CacheService, CacheTier
from .catalog_service import CatalogService
from .recommendation_service import RecommendationService, find_food_symbol
from .search_service import SearchService
from .sync_service import SyncService

__all__ = [
    "BootstrapState",
    "DataBootstrapper",
    "export_seed_bundle",
    "CacheService",
    "CacheTier",
    "CatalogService",
    "RecommendationService",
    "find_food_symbol",
    "SearchService",
    "SyncService",
]
