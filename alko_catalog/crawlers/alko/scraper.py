"""alko.fi scraper: one rate-limited, session-managed browser page.

State machine:
    UNINITIALIZED -> BROWSER_READY -> SESSION_ESTABLISHED -> {SCRAPING <-> IDLE} -> CLOSED

Every public operation holds one asyncio.Lock for its whole duration, so the
shared page is never driven by two coroutines at once. After more than three
consecutive failures the session is dropped and re-established on next use.
"""

from __future__ import annotations

import asyncio
from datetime import datetime
from enum import Enum
from typing import TYPE_CHECKING, Awaitable, Callable, List, Optional, TypeVar

from sqlalchemy.orm import sessionmaker

from alko_catalog.core.config import Settings, settings as default_settings
from alko_catalog.core.database import session_scope
from alko_catalog.core.exceptions import (
    BotChallengeDetected,
    BrowserException,
    CatalogException,
    NetworkFailure,
)
from alko_catalog.core.logging import logger
from alko_catalog.crawlers.alko import parsing
from alko_catalog.crawlers.playwright.browser import BrowserSession
from alko_catalog.repositories.impl.availability_repository import AvailabilityRepository
from alko_catalog.schemas.catalog_schema import AvailabilityResult, EnrichmentData, Outlet
from alko_catalog.utils.throttle import ExponentialBackoff, RateLimiter

if TYPE_CHECKING:
    from alko_catalog.services.impl.cache_service import CacheTier

T = TypeVar("T")

COOKIE_BUTTON_SELECTOR = (
    '#onetrust-accept-btn-handler, button:has-text("Hyväksy kaikki"), '
    'button[id*="cookie"], button[class*="cookie"]'
)
AVAILABILITY_LINK_SELECTOR = 'a:has-text("myymäläsaatavuus"), a:has-text("Saatavuus")'
AVAILABILITY_DROPDOWN_SELECTOR = (
    '.stock-availability .dropdown, .off-canvas-stock-availability .dropdown, '
    '[class*="is-dropdown-submenu-parent"]'
)
LOAD_MORE_SELECTOR = (
    'button:has-text("Näytä lisää"), button:has-text("Lataa lisää"), '
    'button[class*="loadMore"], a:has-text("Näytä kaikki")'
)

SESSION_RESET_THRESHOLD = 3
MAX_LOAD_MORE_ATTEMPTS = 10
MAX_FALLBACK_OUTLET_PAGES = 20


class ScraperState(str, Enum):
    UNINITIALIZED = "uninitialized"
    BROWSER_READY = "browser_ready"
    SESSION_ESTABLISHED = "session_established"
    SCRAPING = "scraping"
    IDLE = "idle"
    CLOSED = "closed"


class AlkoScraper:
    def __init__(
        self,
        session_factory: sessionmaker,
        availability_cache: "CacheTier",
        settings: Optional[Settings] = None,
        *,
        browser: Optional[BrowserSession] = None,
        rate_limiter: Optional[RateLimiter] = None,
        backoff: Optional[ExponentialBackoff] = None,
        now: Callable[[], datetime] = datetime.now,
    ) -> None:
        self.settings = settings or default_settings
        self.session_factory = session_factory
        self.cache = availability_cache
        self.browser = browser or BrowserSession(
            locale="fi-FI", timezone_id="Europe/Helsinki", name="AlkoScraper", settings=self.settings
        )
        self.rate_limiter = rate_limiter or RateLimiter(self.settings.scrape_rate_limit_ms / 1000.0)
        self.backoff = backoff or ExponentialBackoff()
        self.base_url = self.settings.alko_base_url.rstrip("/")
        self._now = now
        self._lock = asyncio.Lock()
        self.state = ScraperState.UNINITIALIZED

    @property
    def session_established(self) -> bool:
        return self.state in (ScraperState.SESSION_ESTABLISHED, ScraperState.SCRAPING, ScraperState.IDLE)

    # --- session ----------------------------------------------------------

    async def _ensure_session(self) -> None:
        if self.state == ScraperState.CLOSED:
            raise BrowserException("[AlkoScraper] scraper is closed")
        if not self.browser.is_open:
            await self.browser.start()
            self.state = ScraperState.BROWSER_READY
        if not self.session_established:
            await self._establish_session()

    async def _establish_session(self) -> None:
        page = self.browser.page
        logger.info("[AlkoScraper] Establishing session with alko.fi")
        try:
            await page.goto(
                f"{self.base_url}/",
                wait_until="domcontentloaded",
                timeout=self.settings.crawler_session_timeout_ms,
            )
        except Exception as e:
            raise NetworkFailure("establish session", f"{type(e).__name__}: {e}")

        # challenge scripts run right after DOMContentLoaded
        await page.wait_for_timeout(3000)
        await self._raise_if_challenge("site root")

        cookie_button = await page.query_selector(COOKIE_BUTTON_SELECTOR)
        if cookie_button is not None:
            logger.info("[AlkoScraper] Dismissing cookie consent")
            try:
                await cookie_button.click()
                await page.wait_for_timeout(1000)
            except Exception as e:
                logger.debug(f"[AlkoScraper] cookie banner click failed: {type(e).__name__}: {e}")

        self.state = ScraperState.SESSION_ESTABLISHED
        self.backoff.reset()
        logger.info("[AlkoScraper] Session established")

    def _invalidate_session(self) -> None:
        if self.state != ScraperState.CLOSED:
            self.state = ScraperState.BROWSER_READY if self.browser.is_open else ScraperState.UNINITIALIZED

    async def _raise_if_challenge(self, where: str) -> None:
        html = await self.browser.page.content()
        if parsing.is_challenge_page(html):
            logger.warning(f"[AlkoScraper] Bot challenge detected at {where}")
            raise BotChallengeDetected(where)

    async def _goto(self, url: str, where: str, settle_ms: int = 2000, timeout_ms: Optional[int] = None) -> None:
        page = self.browser.page
        try:
            await page.goto(url, wait_until="domcontentloaded", timeout=timeout_ms or self.settings.crawler_timeout_ms)
        except Exception as e:
            raise NetworkFailure(where, f"{type(e).__name__}: {e}")
        await page.wait_for_timeout(settle_ms)
        await self._raise_if_challenge(where)

    async def _run(self, label: str, operation: Callable[[], Awaitable[T]]) -> T:
        """Serialize, throttle and account one scraping operation"""
        async with self._lock:
            if self.state == ScraperState.CLOSED:
                raise BrowserException("[AlkoScraper] scraper is closed")
            # session setup navigates too
            await self.rate_limiter.throttle_with_jitter(self.settings.scrape_jitter_ms / 1000.0)
            try:
                await self._ensure_session()
                self.state = ScraperState.SCRAPING
                result = await operation()
            except BotChallengeDetected:
                self._invalidate_session()
                raise
            except Exception as e:
                logger.error(f"[AlkoScraper] {label} failed: {type(e).__name__}: {e}")
                await self.backoff.wait()
                if self.backoff.attempts > SESSION_RESET_THRESHOLD:
                    logger.warning("[AlkoScraper] Too many consecutive failures, dropping session")
                    self._invalidate_session()
                elif self.state == ScraperState.SCRAPING:
                    self.state = ScraperState.IDLE
                if isinstance(e, CatalogException):
                    raise
                raise NetworkFailure(label, f"{type(e).__name__}: {e}") from e
            self.backoff.reset()
            self.state = ScraperState.IDLE
            return result

    # --- availability -----------------------------------------------------

    async def get_availability(self, item_id: str, item_name: Optional[str] = None) -> AvailabilityResult:
        """Fast tier first, then scrape; on scrape failure fall back to the last persisted records"""
        cached = self.cache.get(item_id)
        if cached is not None:
            return cached.model_copy(update={"from_cache": True})

        try:
            return await self._run(
                f"availability {item_id}", lambda: self._scrape_availability(item_id, item_name)
            )
        except CatalogException as e:
            stale = self._load_persisted(item_id, item_name)
            if stale is not None:
                logger.warning(f"[AlkoScraper] Serving stale availability for {item_id}: {e}")
                return stale
            raise

    async def _scrape_availability(self, item_id: str, item_name: Optional[str]) -> AvailabilityResult:
        page = self.browser.page
        logger.info(f"[AlkoScraper] Scraping availability for item {item_id}")
        await self._goto(f"{self.base_url}/tuotteet/{item_id}", f"item {item_id}")

        link = await page.query_selector(AVAILABILITY_LINK_SELECTOR)
        if link is not None:
            try:
                await link.click()
                await page.wait_for_timeout(3000)
                dropdown = await page.query_selector(AVAILABILITY_DROPDOWN_SELECTOR)
                if dropdown is not None:
                    await dropdown.click()
                    await page.wait_for_timeout(2000)
            except Exception as e:
                logger.debug(f"[AlkoScraper] availability panel click failed: {type(e).__name__}: {e}")
        else:
            logger.info(f"[AlkoScraper] Availability link not found for {item_id}")

        rows = parsing.parse_availability(await page.content())
        checked_at = self._now()
        records = parsing.build_availability_records(item_id, rows, checked_at)

        result = AvailabilityResult(
            item_id=item_id,
            item_name=item_name or item_id,
            outlets=records,
            checked_at=checked_at,
            from_cache=False,
        )
        if records:
            with session_scope(self.session_factory) as db:
                AvailabilityRepository(db).upsert_many(records)
        self.cache.set(item_id, result)
        logger.info(f"[AlkoScraper] Found availability in {len(records)} outlets for {item_id}")
        return result

    def _load_persisted(self, item_id: str, item_name: Optional[str] = None) -> Optional[AvailabilityResult]:
        with session_scope(self.session_factory) as db:
            records = AvailabilityRepository(db).list_for_item(item_id)
        if not records:
            return None
        return AvailabilityResult(
            item_id=item_id,
            item_name=item_name or item_id,
            outlets=records,
            checked_at=max(r.checked_at for r in records),
            from_cache=True,
        )

    async def get_cached_availability(self, item_id: str, item_name: Optional[str] = None) -> Optional[AvailabilityResult]:
        """Fast tier, then durable tier; never scrapes"""
        cached = self.cache.get(item_id)
        if cached is not None:
            return cached.model_copy(update={"from_cache": True})
        result = self._load_persisted(item_id, item_name)
        if result is not None:
            self.cache.set(item_id, result)
        return result

    # --- enrichment -------------------------------------------------------

    async def scrape_enrichment(self, item_id: str) -> EnrichmentData:
        return await self._run(f"enrichment {item_id}", lambda: self._scrape_enrichment(item_id))

    async def _scrape_enrichment(self, item_id: str) -> EnrichmentData:
        page = self.browser.page
        logger.info(f"[AlkoScraper] Scraping item details for {item_id}")
        await self._goto(f"{self.base_url}/tuotteet/{item_id}", f"item {item_id}")
        data = parsing.parse_enrichment(await page.content(), await page.inner_text("body"))
        logger.info(
            f"[AlkoScraper] Item {item_id}: taste={bool(data.taste_profile)} tips={bool(data.usage_tips)} "
            f"pairings={len(data.food_pairings)} certificates={len(data.certificates)} smokiness={data.smokiness}"
        )
        return data

    # --- outlets ----------------------------------------------------------

    async def list_outlets(self) -> List[Outlet]:
        return await self._run("outlet listing", self._scrape_outlets)

    async def _scrape_outlets(self) -> List[Outlet]:
        page = self.browser.page
        logger.info("[AlkoScraper] Scraping outlet listing")
        await self._goto(
            f"{self.base_url}/myymalat-palvelut",
            "outlet listing",
            settle_ms=3000,
            timeout_ms=self.settings.crawler_session_timeout_ms,
        )

        previous = -1
        for _ in range(MAX_LOAD_MORE_ATTEMPTS):
            await page.evaluate("window.scrollTo(0, document.body.scrollHeight)")
            await page.wait_for_timeout(1500)
            button = await page.query_selector(LOAD_MORE_SELECTOR)
            if button is not None:
                try:
                    await button.click()
                    await page.wait_for_timeout(2000)
                except Exception as e:
                    logger.debug(f"[AlkoScraper] load-more click failed: {type(e).__name__}: {e}")
            count = await page.evaluate(parsing.LAZY_LOAD_COUNT_JS)
            if count == previous:
                break
            previous = count

        html = await page.content()
        outlets = parsing.parse_outlet_list(html, self._now())
        logger.info(f"[AlkoScraper] Found {len(outlets)} outlets on listing page")
        if outlets:
            return outlets

        links = parsing.extract_outlet_links(html)[:MAX_FALLBACK_OUTLET_PAGES]
        logger.info(f"[AlkoScraper] Listing empty, visiting {len(links)} outlet pages")
        for link in links:
            await self.rate_limiter.throttle_with_jitter(self.settings.scrape_jitter_ms / 1000.0)
            try:
                await self._goto(f"{self.base_url}{link}", f"outlet {link}")
                outlet = parsing.parse_outlet_page(
                    await page.content(), link, self._now(), await page.inner_text("body")
                )
            except BotChallengeDetected:
                raise
            except Exception as e:
                logger.error(f"[AlkoScraper] Failed to scrape outlet {link}: {type(e).__name__}: {e}")
                continue
            if outlet is not None:
                outlets.append(outlet)
        return outlets

    # --- food pairing search ---------------------------------------------

    async def search_by_tag(self, tag_id: str, limit: int = 20) -> List[str]:
        """Item ids listed by the site's search scoped to one food-pairing symbol"""
        return await self._run(f"tag search {tag_id}", lambda: self._search_by_tag(tag_id, limit))

    async def _search_by_tag(self, tag_id: str, limit: int) -> List[str]:
        logger.info(f"[AlkoScraper] Searching items by tag {tag_id}")
        await self._goto(parsing.build_tag_search_url(tag_id, limit), f"tag search {tag_id}", settle_ms=3000)
        ids = parsing.extract_item_ids(await self.browser.page.content())
        logger.info(f"[AlkoScraper] Found {len(ids)} items for tag {tag_id}")
        return ids

    # --- lifecycle --------------------------------------------------------

    async def close(self) -> None:
        async with self._lock:
            await self.browser.close()
            self.state = ScraperState.CLOSED
            logger.info("[AlkoScraper] Browser closed")
