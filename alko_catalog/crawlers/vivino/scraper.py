"""Vivino rating lookups.

Lookups never raise: every outcome is a RatingResult. Positive results go to
both cache tiers; misses and "not enough ratings" only to the fast tier.
"""

from __future__ import annotations

import asyncio
from datetime import datetime
from typing import TYPE_CHECKING, Callable, Optional

from sqlalchemy.orm import sessionmaker

from alko_catalog.core.config import Settings, settings as default_settings
from alko_catalog.core.database import session_scope
from alko_catalog.core.exceptions import BrowserException, CatalogException, NetworkFailure
from alko_catalog.core.logging import logger
from alko_catalog.crawlers.playwright.browser import BrowserSession
from alko_catalog.crawlers.vivino import parsing
from alko_catalog.repositories.impl.rating_repository import RatingRepository
from alko_catalog.schemas.catalog_schema import ExternalRating, RatingResult
from alko_catalog.utils.cache_keys import rating_key
from alko_catalog.utils.throttle import ExponentialBackoff, RateLimiter

if TYPE_CHECKING:
    from alko_catalog.services.impl.cache_service import CacheTier


class VivinoScraper:
    def __init__(
        self,
        session_factory: sessionmaker,
        rating_cache: "CacheTier",
        settings: Optional[Settings] = None,
        *,
        browser: Optional[BrowserSession] = None,
        rate_limiter: Optional[RateLimiter] = None,
        backoff: Optional[ExponentialBackoff] = None,
        now: Callable[[], datetime] = datetime.now,
    ) -> None:
        self.settings = settings or default_settings
        self.session_factory = session_factory
        self.cache = rating_cache
        self.browser = browser or BrowserSession(locale="en-US", name="VivinoScraper", settings=self.settings)
        self.rate_limiter = rate_limiter or RateLimiter(self.settings.vivino_rate_limit_ms / 1000.0)
        self.backoff = backoff or ExponentialBackoff()
        self._now = now
        self._lock = asyncio.Lock()
        self._closed = False

    # --- cache ------------------------------------------------------------

    def _cached(self, cache_key: str) -> Optional[RatingResult]:
        hit = self.cache.get(cache_key)
        if hit is not None:
            return hit.model_copy(update={"from_cache": True})

        try:
            with session_scope(self.session_factory) as db:
                stored = RatingRepository(db).get(cache_key)
        except CatalogException as e:
            logger.warning(f"[VivinoScraper] Durable rating cache read failed: {e}")
            return None
        if stored is None:
            return None

        result = RatingResult(found=True, rating=stored, from_cache=True)
        self.cache.set(cache_key, result)
        return result

    def _remember(self, cache_key: str, result: RatingResult) -> None:
        self.cache.set(cache_key, result)
        if not (result.found and result.rating):
            return
        try:
            with session_scope(self.session_factory) as db:
                RatingRepository(db).upsert(result.rating)
        except CatalogException as e:
            logger.warning(f"[VivinoScraper] Durable rating cache write failed: {e}")

    # --- lookups ----------------------------------------------------------

    async def get_wine_rating(self, name: str, producer: Optional[str] = None) -> RatingResult:
        cache_key = rating_key(name=name, producer=producer)
        cached = self._cached(cache_key)
        if cached is not None:
            return cached

        async with self._lock:
            try:
                page = await self._open_page()
                await self.rate_limiter.throttle_with_jitter()
                logger.info(f"[VivinoScraper] Searching Vivino for: {name}")

                html = await self._load(page, parsing.build_search_url(name, producer), settle_ms=3000)
                if parsing.is_verification_page(html):
                    logger.warning("[VivinoScraper] Human verification page on search")
                    return RatingResult(found=False, error=parsing.HUMAN_VERIFICATION_ERROR)

                href = parsing.find_first_wine_link(html)
                if not href:
                    logger.info(f"[VivinoScraper] No wine found on Vivino for: {name}")
                    result = RatingResult(found=False)
                    self.cache.set(cache_key, result)
                    return result

                wine_url = parsing.absolute_url(href)
                await self.rate_limiter.throttle_with_jitter()
                html = await self._load(page, wine_url, settle_ms=2000)
                return self._rating_from_page(cache_key, html, wine_url, fallback_name=name)
            except Exception as e:
                return await self._failed(name, e)

    async def get_rating_by_url(self, url: str) -> RatingResult:
        cache_key = rating_key(url=url)
        cached = self._cached(cache_key)
        if cached is not None:
            return cached

        async with self._lock:
            try:
                page = await self._open_page()
                await self.rate_limiter.throttle_with_jitter()
                logger.info(f"[VivinoScraper] Fetching Vivino rating from: {url}")

                html = await self._load(page, url, settle_ms=2000)
                if parsing.is_verification_page(html):
                    logger.warning("[VivinoScraper] Human verification page on wine page")
                    return RatingResult(found=False, error=parsing.HUMAN_VERIFICATION_ERROR)
                return self._rating_from_page(cache_key, html, url, fallback_name="Unknown")
            except Exception as e:
                return await self._failed(url, e)

    # --- helpers ----------------------------------------------------------

    async def _open_page(self):
        if self._closed:
            raise BrowserException("[VivinoScraper] scraper is closed")
        return await self.browser.start()

    async def _load(self, page, url: str, settle_ms: int) -> str:
        try:
            await page.goto(url, wait_until="domcontentloaded", timeout=self.settings.crawler_timeout_ms)
        except Exception as e:
            raise NetworkFailure(f"vivino {url}", f"{type(e).__name__}: {e}")
        await page.wait_for_timeout(settle_ms)
        return await page.content()

    def _rating_from_page(self, cache_key: str, html: str, wine_url: str, fallback_name: str) -> RatingResult:
        data = parsing.parse_wine_page(html)

        if not data.average_rating:
            error = parsing.NOT_ENOUGH_RATINGS_ERROR if data.not_enough_ratings else parsing.NO_RATING_DATA_ERROR
            logger.info(f"[VivinoScraper] No rating data for {fallback_name} (not_enough={data.not_enough_ratings})")
            result = RatingResult(found=False, error=error)
            self.cache.set(cache_key, result)
            return result

        value = parsing.parse_rating_value(data.average_rating)
        if value is None or not 0 <= value <= 5:
            logger.warning(f"[VivinoScraper] Could not parse rating: {data.average_rating}")
            return RatingResult(found=False, error=f"Could not parse rating value: {data.average_rating}")

        rating = ExternalRating(
            cache_key=cache_key,
            wine_name=data.wine_name or fallback_name,
            winery=data.winery,
            average_rating=value,
            ratings_count=parsing.parse_ratings_count(data.ratings_count),
            source_url=wine_url,
            fetched_at=self._now(),
        )
        result = RatingResult(found=True, rating=rating)
        self._remember(cache_key, result)
        self.backoff.reset()
        logger.info(f"[VivinoScraper] Rating for {rating.wine_name}: {value} ({rating.ratings_count} ratings)")
        return result

    async def _failed(self, what: str, error: Exception) -> RatingResult:
        logger.error(f"[VivinoScraper] Rating lookup failed for {what}: {type(error).__name__}: {error}")
        await self.backoff.wait()
        message = error.message if isinstance(error, CatalogException) else str(error)
        return RatingResult(found=False, error=message or "Unknown error occurred")

    async def close(self) -> None:
        async with self._lock:
            await self.browser.close()
            self._closed = True
            logger.info("[VivinoScraper] Browser closed")
