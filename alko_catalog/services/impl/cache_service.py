"""Fast-tier cache service - bounded LRU caches with per-entry TTL.

The durable tier is the availability / external rating tables; callers read
it through their repositories when the fast tier misses.
"""
import time
from typing import Any, Callable, Dict, Generic, Optional, TypeVar

from cachetools import TTLCache

from alko_catalog.core.config import Settings, settings as default_settings
from alko_catalog.core.logging import logger
from alko_catalog.core.exceptions import CacheException

V = TypeVar("V")


class CacheTier(Generic[V]):
    """One named TTLCache (LRU eviction once maxsize is reached)"""

    def __init__(self, name: str, maxsize: int, ttl_s: float, timer: Callable[[], float] = time.monotonic):
        if maxsize <= 0 or ttl_s <= 0:
            raise CacheException(
                f"Invalid cache tier '{name}'",
                error_code="CACHE_CONFIG_INVALID",
                details={"maxsize": maxsize, "ttl_s": ttl_s},
            )
        self.name = name
        self._cache: TTLCache = TTLCache(maxsize=maxsize, ttl=ttl_s, timer=timer)
        self.hits = 0
        self.misses = 0

    def get(self, key: str) -> Optional[V]:
        value = self._cache.get(key)
        if value is None:
            self.misses += 1
            logger.debug(f"[Cache] {self.name} miss: {key[:120]}")
            return None
        self.hits += 1
        logger.debug(f"[Cache] {self.name} hit: {key[:120]}")
        return value

    def set(self, key: str, value: V) -> None:
        self._cache[key] = value

    def delete(self, key: str) -> None:
        self._cache.pop(key, None)

    def clear(self) -> None:
        self._cache.clear()

    def __len__(self) -> int:
        return len(self._cache)

    def stats(self) -> Dict[str, Any]:
        return {
            "size": len(self._cache),
            "maxsize": self._cache.maxsize,
            "ttl_s": self._cache.ttl,
            "hits": self.hits,
            "misses": self.misses,
        }


class CacheService:
    """Fast tiers per use case: items, search pages, availability, external ratings"""

    def __init__(self, settings: Optional[Settings] = None, timer: Callable[[], float] = time.monotonic):
        settings = settings or default_settings
        self.items: CacheTier = CacheTier(
            "items", settings.cache_item_capacity, settings.cache_item_ttl_s, timer
        )
        self.searches: CacheTier = CacheTier(
            "searches", settings.cache_search_capacity, settings.cache_search_ttl_s, timer
        )
        self.availability: CacheTier = CacheTier(
            "availability", settings.cache_availability_capacity, settings.scrape_cache_ttl_ms / 1000.0, timer
        )
        self.ratings: CacheTier = CacheTier(
            "ratings", settings.cache_rating_capacity, settings.cache_rating_ttl_s, timer
        )

    def tiers(self) -> Dict[str, CacheTier]:
        return {
            "items": self.items,
            "searches": self.searches,
            "availability": self.availability,
            "ratings": self.ratings,
        }

    def clear_all(self) -> None:
        for tier in self.tiers().values():
            tier.clear()
        logger.info("[Cache] All tiers cleared")

    def stats(self) -> Dict[str, Dict[str, Any]]:
        return {name: tier.stats() for name, tier in self.tiers().items()}
