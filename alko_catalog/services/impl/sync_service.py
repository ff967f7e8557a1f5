"""Sync pipeline: price list spreadsheet -> catalog items, store listing -> outlets.

Every run is recorded as a SyncRun (started -> completed | failed). Failures
are sealed into the run with the counters reached so far before the result is
returned to the caller.
"""
import asyncio
from datetime import datetime
from typing import Awaitable, Callable, List, Optional

from sqlalchemy.orm import sessionmaker

from alko_catalog.core.config import Settings, settings as default_settings
from alko_catalog.core.database import session_scope
from alko_catalog.core.exceptions import BotChallengeDetected, CatalogException, NetworkFailure
from alko_catalog.core.logging import logger
from alko_catalog.crawlers.alko.scraper import AlkoScraper
from alko_catalog.crawlers.http_client import SharedHttpClient
from alko_catalog.repositories.impl.item_repository import ItemRepository
from alko_catalog.repositories.impl.outlet_repository import OutletRepository
from alko_catalog.repositories.impl.sync_run_repository import SyncRunRepository
from alko_catalog.schemas.catalog_schema import SyncResult, SyncStatusResponse
from alko_catalog.utils.excel_parser import parse_price_list, validate_rows
from alko_catalog.utils.throttle import ExponentialBackoff, retry_with_backoff

SPREADSHEET_ACCEPT = (
    "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet,"
    "application/vnd.ms-excel,*/*"
)
OUTLET_LISTING_URL = "https://www.alko.fi/myymalat-palvelut"


class SyncService:
    def __init__(
        self,
        session_factory: sessionmaker,
        http_client: SharedHttpClient,
        scraper: Optional[AlkoScraper] = None,
        settings: Optional[Settings] = None,
        *,
        backoff: Optional[ExponentialBackoff] = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
        now: Callable[[], datetime] = datetime.now,
    ):
        self.settings = settings or default_settings
        self.session_factory = session_factory
        self.http_client = http_client
        self.scraper = scraper
        self.backoff = backoff or ExponentialBackoff()
        self._sleep = sleep
        self._now = now

    # --- download ---------------------------------------------------------

    async def _download_once(self) -> bytes:
        root = self.settings.alko_base_url.rstrip("/") + "/"
        await self.http_client.get(root)
        logger.info("[Sync] Established session with alko.fi")

        await self._sleep(1.0)

        url = self.settings.alko_price_list_url
        response = await self.http_client.get(
            url,
            headers={
                "Accept": SPREADSHEET_ACCEPT,
                "Referer": self.settings.alko_price_list_referer,
            },
        )
        if not response.ok:
            raise NetworkFailure("price list download", f"HTTP {response.status}")
        if "text/html" in response.content_type.lower():
            raise BotChallengeDetected("blocked download")

        logger.info(f"[Sync] Downloaded price list: {len(response.content)} bytes")
        return response.content

    async def download_snapshot(self) -> bytes:
        """Two-step download (site root for cookies, then the spreadsheet), retried with backoff"""
        logger.info("[Sync] Starting price list download")
        return await retry_with_backoff(
            self._download_once,
            self.backoff,
            retries=self.settings.sync_download_retries,
            label="price list download",
        )

    # --- items ------------------------------------------------------------

    async def sync_items(self) -> SyncResult:
        with session_scope(self.session_factory) as db:
            run_id = SyncRunRepository(db).create("item_sync", self.settings.alko_price_list_url)

        errors: List[str] = []
        processed = added = updated = 0
        try:
            data = await self.download_snapshot()

            parsed = parse_price_list(data)
            logger.info(f"[Sync] Parsed {len(parsed.rows)} rows ({parsed.skipped} skipped)")

            valid, invalid = validate_rows(parsed.rows)
            logger.info(f"[Sync] Valid items: {len(valid)}, invalid: {len(invalid)}")
            errors.extend(row.describe() for row in invalid)
            processed = len(valid)

            with session_scope(self.session_factory) as db:
                added, updated = ItemRepository(db).upsert_many(valid, now=self._now())
        except Exception as e:
            details = getattr(e, "details", None) or {}
            added = details.get("added", added)
            updated = details.get("updated", updated)
            message = e.message if isinstance(e, CatalogException) else f"{type(e).__name__}: {e}"
            logger.error(f"[Sync] Item sync failed: {message}")
            self._seal(run_id, "failed", processed, added, updated, errors + [message])
            return SyncResult(
                success=False,
                processed=processed,
                added=added,
                updated=updated,
                errors=[message],
                sync_run_id=run_id,
            )

        self._seal(run_id, "completed", processed, added, updated, errors)
        logger.info(f"[Sync] Item sync completed: {added} added, {updated} updated")
        return SyncResult(
            success=True,
            processed=processed,
            added=added,
            updated=updated,
            errors=errors,
            sync_run_id=run_id,
        )

    # --- outlets ----------------------------------------------------------

    async def sync_outlets(self) -> SyncResult:
        with session_scope(self.session_factory) as db:
            run_id = SyncRunRepository(db).create("outlet_sync", OUTLET_LISTING_URL)

        try:
            if self.scraper is None:
                raise CatalogException("No scraper configured for outlet sync", "SCRAPER_MISSING")
            logger.info("[Sync] Starting outlet sync via web scraping")
            outlets = await self.scraper.list_outlets()
            logger.info(f"[Sync] Scraped {len(outlets)} outlets")

            with session_scope(self.session_factory) as db:
                written = OutletRepository(db).upsert_many(outlets, now=self._now())
        except Exception as e:
            message = e.message if isinstance(e, CatalogException) else f"{type(e).__name__}: {e}"
            logger.error(f"[Sync] Outlet sync failed: {message}")
            self._seal(run_id, "failed", errors=[message])
            return SyncResult(success=False, errors=[message], sync_run_id=run_id)

        self._seal(run_id, "completed", written, written, 0, [])
        return SyncResult(success=True, processed=written, added=written, sync_run_id=run_id)

    # --- status -----------------------------------------------------------

    def get_sync_status(self) -> SyncStatusResponse:
        with session_scope(self.session_factory) as db:
            last = SyncRunRepository(db).latest()
            item_count = ItemRepository(db).count()
        if last is None:
            return SyncStatusResponse(item_count=item_count)
        return SyncStatusResponse(last_sync=last.started_at, last_status=last.status, item_count=item_count)

    def _seal(
        self,
        run_id: int,
        status: str,
        processed: int = 0,
        added: int = 0,
        updated: int = 0,
        errors: Optional[List[str]] = None,
    ) -> None:
        with session_scope(self.session_factory) as db:
            SyncRunRepository(db).seal(run_id, status, processed, added, updated, errors)
