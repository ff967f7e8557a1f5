"""Catalog facade: the tool operations exposed over the API and CLI.

Every catalog operation first makes sure the store is populated (seed bundle
bootstrap). The external rating lookup does not touch the catalog.
"""
import re
from datetime import datetime
from typing import Callable, List, Optional

from sqlalchemy.orm import sessionmaker

from alko_catalog.core.database import session_scope
from alko_catalog.core.exceptions import CatalogException
from alko_catalog.core.logging import logger
from alko_catalog.crawlers.alko.scraper import AlkoScraper
from alko_catalog.crawlers.vivino.scraper import VivinoScraper
from alko_catalog.repositories.impl.item_repository import ItemRepository
from alko_catalog.repositories.impl.outlet_repository import OutletRepository
from alko_catalog.schemas.catalog_schema import (
    AvailabilityResult,
    CatalogItem,
    CatalogPage,
    Outlet,
    RatingResult,
    RecommendationRequest,
    RecommendationResult,
    SearchFilters,
    SearchOptions,
    StoreHours,
    StoreHoursResult,
    SyncResult,
    SyncStatusResponse,
)
from alko_catalog.services.impl.bootstrap import DataBootstrapper
from alko_catalog.services.impl.cache_service import CacheService
from alko_catalog.services.impl.recommendation_service import RecommendationService
from alko_catalog.services.impl.search_service import SearchService
from alko_catalog.services.impl.sync_service import SyncService
from alko_catalog.utils.cache_keys import canonical_key
from alko_catalog.utils.text import finnish_sort_key

CLOSED_MARKER = "SULJETTU"
_HOURS_RE = re.compile(r"(\d{1,2})-(\d{1,2})")
OUTLET_SCAN_LIMIT = 200


def is_open_now(hours: Optional[str], now: datetime) -> bool:
    """"9-21" against the current hour; SULJETTU or unparseable means closed"""
    if not hours or hours.strip().upper() == CLOSED_MARKER:
        return False
    match = _HOURS_RE.search(hours)
    if not match:
        return False
    opens, closes = int(match.group(1)), int(match.group(2))
    return opens <= now.hour < closes


def is_stale(outlet: Outlet, now: datetime) -> bool:
    """Hours are only valid on the calendar day they were captured"""
    return outlet.updated_at is None or outlet.updated_at.date() != now.date()


def filter_outlets_by_name(result: AvailabilityResult, city: Optional[str]) -> AvailabilityResult:
    if not city:
        return result
    needle = city.lower()
    return result.model_copy(update={
        "outlets": [r for r in result.outlets if needle in r.outlet_name.lower()]
    })


class CatalogService:
    def __init__(
        self,
        session_factory: sessionmaker,
        cache: CacheService,
        bootstrapper: DataBootstrapper,
        search_service: SearchService,
        sync_service: SyncService,
        recommendation_service: RecommendationService,
        scraper: Optional[AlkoScraper] = None,
        rating_scraper: Optional[VivinoScraper] = None,
        *,
        now: Callable[[], datetime] = datetime.now,
    ):
        self.session_factory = session_factory
        self.cache = cache
        self.bootstrapper = bootstrapper
        self.search_service = search_service
        self.sync_service = sync_service
        self.recommendation_service = recommendation_service
        self.scraper = scraper
        self.rating_scraper = rating_scraper
        self._now = now

    async def ensure_data(self) -> None:
        await self.bootstrapper.ensure_data()

    # --- search / items ---------------------------------------------------

    async def search_catalog(self, filters: SearchFilters, options: Optional[SearchOptions] = None) -> CatalogPage:
        await self.ensure_data()
        options = options or SearchOptions()

        key = canonical_key(filters, options)
        cached = self.cache.searches.get(key)
        if cached is not None:
            return cached.model_copy(update={"from_cache": True})

        page = self.search_service.search(filters, options)
        self.cache.searches.set(key, page)
        return page

    async def get_item(self, item_id: str, include_enrichment: bool = False) -> Optional[CatalogItem]:
        """
        Item by id (item cache first).

        With include_enrichment, the item page is scraped only when no
        enrichment field is populated yet; scrape or persist failures are
        logged and the base item is returned.
        """
        await self.ensure_data()
        logger.info(f"[Catalog] get_item {item_id} (enrichment={include_enrichment})")

        cached = self.cache.items.get(item_id)
        if cached is not None and (not include_enrichment or cached.has_enrichment()):
            return cached

        with session_scope(self.session_factory) as db:
            item = ItemRepository(db).get(item_id)
        if item is None:
            return None

        if include_enrichment and item.has_enrichment():
            logger.debug(f"[Catalog] {item_id} already enriched, skipping scrape")
        elif include_enrichment and self.scraper is not None:
            item = await self._enrich(item)

        self.cache.items.set(item_id, item)
        return item

    async def _enrich(self, item: CatalogItem) -> CatalogItem:
        try:
            data = await self.scraper.scrape_enrichment(item.id)
        except CatalogException as e:
            logger.warning(f"[Catalog] Enrichment scrape failed for {item.id}, returning base item: {e}")
            return item

        enriched = item.merge_enrichment(data)
        try:
            with session_scope(self.session_factory) as db:
                ItemRepository(db).update_enrichment(item.id, data, now=self._now())
            logger.info(f"[Catalog] Persisted enrichment for {item.id}")
        except CatalogException as e:
            logger.warning(f"[Catalog] Failed to persist enrichment for {item.id}: {e}")
        return enriched

    # --- availability -----------------------------------------------------

    async def get_or_scrape_availability(
        self,
        item_id: str,
        force_refresh: bool = False,
        city: Optional[str] = None,
    ) -> Optional[AvailabilityResult]:
        await self.ensure_data()
        logger.info(f"[Catalog] Availability for {item_id} (city={city}, force={force_refresh})")
        if self.scraper is None:
            return None

        with session_scope(self.session_factory) as db:
            item = ItemRepository(db).get(item_id)
        item_name = item.name if item else None

        if not force_refresh:
            cached = await self.scraper.get_cached_availability(item_id, item_name)
            if cached is not None:
                return filter_outlets_by_name(cached, city)

        if force_refresh:
            self.cache.availability.delete(item_id)
        try:
            result = await self.scraper.get_availability(item_id, item_name)
        except CatalogException as e:
            logger.error(f"[Catalog] Availability unavailable for {item_id}: {e}")
            return None
        return filter_outlets_by_name(result, city)

    # --- outlets ----------------------------------------------------------

    def _outlets(self, outlet_id: Optional[str], name: Optional[str], city: Optional[str]) -> List[Outlet]:
        with session_scope(self.session_factory) as db:
            repo = OutletRepository(db)
            if outlet_id:
                outlet = repo.get(outlet_id)
                outlets = [outlet] if outlet else []
            else:
                outlets = repo.list(city=city, limit=OUTLET_SCAN_LIMIT)
        if name:
            needle = name.lower()
            outlets = [o for o in outlets if needle in o.name.lower()]
        return outlets

    async def list_outlets(self, city: Optional[str] = None, limit: int = 50) -> List[Outlet]:
        await self.ensure_data()
        with session_scope(self.session_factory) as db:
            outlets = OutletRepository(db).list(city=city, limit=OUTLET_SCAN_LIMIT)
        outlets.sort(key=lambda o: finnish_sort_key(o.name))
        return outlets[:limit]

    async def get_store_hours(
        self,
        outlet_id: Optional[str] = None,
        name: Optional[str] = None,
        city: Optional[str] = None,
        open_now: bool = False,
        limit: int = 20,
    ) -> StoreHoursResult:
        await self.ensure_data()
        now = self._now()
        outlets = self._outlets(outlet_id, name, city)

        refreshed = False
        refresh_error = None
        if outlets and any(is_stale(o, now) for o in outlets):
            logger.info("[Catalog] Outlet hours are stale, refreshing from alko.fi")
            result = await self.sync_service.sync_outlets()
            if result.success:
                refreshed = True
                outlets = self._outlets(outlet_id, name, city)
            else:
                reason = result.errors[0] if result.errors else "Unknown error"
                refresh_error = f"Failed to refresh store data: {reason}. Opening hours may be outdated."
                logger.error(f"[Catalog] {refresh_error}")

        captured = [o.updated_at for o in outlets if o.updated_at is not None]
        data_as_of = min(captured).date().isoformat() if captured else None

        rows = []
        for outlet in outlets:
            stale = is_stale(outlet, now)
            rows.append(StoreHours(
                id=outlet.id,
                name=outlet.name,
                city=outlet.city,
                address=", ".join(part for part in (outlet.address, outlet.postal_code) if part),
                opening_hours_today=None if stale else outlet.opening_hours_today,
                opening_hours_tomorrow=None if stale else outlet.opening_hours_tomorrow,
                is_open_now=False if stale else is_open_now(outlet.opening_hours_today, now),
            ))
        if open_now:
            rows = [r for r in rows if r.is_open_now]

        return StoreHoursResult(
            outlets=rows[:limit],
            current_time=now.strftime("%H.%M"),
            data_as_of=data_as_of,
            refreshed=refreshed,
            refresh_error=refresh_error,
        )

    # --- recommendations / sync / ratings --------------------------------

    async def get_recommendations(self, request: RecommendationRequest) -> RecommendationResult:
        await self.ensure_data()
        return await self.recommendation_service.recommend(request)

    async def sync_items(self) -> SyncResult:
        # a seed load still in flight must land before fresh prices
        await self.ensure_data()
        result = await self.sync_service.sync_items()
        if result.success:
            self.cache.items.clear()
            self.cache.searches.clear()
        return result

    async def sync_outlets(self) -> SyncResult:
        await self.ensure_data()
        return await self.sync_service.sync_outlets()

    def get_sync_status(self) -> SyncStatusResponse:
        return self.sync_service.get_sync_status()

    async def get_external_rating(
        self,
        name: Optional[str] = None,
        producer: Optional[str] = None,
        url: Optional[str] = None,
    ) -> RatingResult:
        if self.rating_scraper is None:
            return RatingResult(found=False, error="Rating lookups are not enabled")
        if url:
            return await self.rating_scraper.get_rating_by_url(url)
        if not name:
            return RatingResult(found=False, error="Either name or url is required")
        return await self.rating_scraper.get_wine_rating(name, producer)
