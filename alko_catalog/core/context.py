"""Application context: built once at startup, closed at shutdown.

Owns the engine, session factory, cache tiers, HTTP client, scrapers and the
services wired on top of them. FastAPI keeps it on app.state; the CLI builds
its own.
"""
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from sqlalchemy.engine import Engine
from sqlalchemy.orm import sessionmaker

from alko_catalog.core.config import Settings, settings as default_settings
from alko_catalog.core.database import build_engine, build_session_factory, init_db
from alko_catalog.core.logging import logger
from alko_catalog.crawlers.alko.scraper import AlkoScraper
from alko_catalog.crawlers.http_client import SharedHttpClient
from alko_catalog.crawlers.vivino.scraper import VivinoScraper
from alko_catalog.services.impl.bootstrap import DataBootstrapper
from alko_catalog.services.impl.cache_service import CacheService
from alko_catalog.services.impl.catalog_service import CatalogService
from alko_catalog.services.impl.recommendation_service import RecommendationService
from alko_catalog.services.impl.search_service import SearchService
from alko_catalog.services.impl.sync_service import SyncService


@dataclass
class AppContext:
    settings: Settings
    engine: Engine
    session_factory: sessionmaker
    cache: CacheService
    http_client: SharedHttpClient
    scraper: AlkoScraper
    rating_scraper: Optional[VivinoScraper]
    bootstrapper: DataBootstrapper
    sync_service: SyncService
    search_service: SearchService
    catalog: CatalogService

    @classmethod
    def create(
        cls,
        settings: Optional[Settings] = None,
        *,
        engine: Optional[Engine] = None,
        http_client: Optional[SharedHttpClient] = None,
        alko_scraper: Optional[AlkoScraper] = None,
        rating_scraper: Optional[VivinoScraper] = None,
        seed_path: Optional[Path] = None,
    ) -> "AppContext":
        settings = settings or default_settings
        engine = engine or build_engine(settings.database_url)
        init_db(engine)
        session_factory = build_session_factory(engine)

        cache = CacheService(settings)
        http_client = http_client or SharedHttpClient(settings)
        scraper = alko_scraper or AlkoScraper(session_factory, cache.availability, settings)
        if rating_scraper is None and settings.rating_lookup_enabled:
            rating_scraper = VivinoScraper(session_factory, cache.ratings, settings)

        bootstrapper = DataBootstrapper(session_factory, settings, seed_path=seed_path)
        search_service = SearchService(session_factory, settings)
        sync_service = SyncService(session_factory, http_client, scraper, settings)
        recommendation_service = RecommendationService(session_factory, search_service, scraper)
        catalog = CatalogService(
            session_factory,
            cache,
            bootstrapper,
            search_service,
            sync_service,
            recommendation_service,
            scraper,
            rating_scraper,
        )
        logger.info("Application context created")
        return cls(
            settings=settings,
            engine=engine,
            session_factory=session_factory,
            cache=cache,
            http_client=http_client,
            scraper=scraper,
            rating_scraper=rating_scraper,
            bootstrapper=bootstrapper,
            sync_service=sync_service,
            search_service=search_service,
            catalog=catalog,
        )

    async def aclose(self) -> None:
        """Close browsers, the HTTP session and the engine; each step is independent"""
        closers = [("alko scraper", self.scraper.close), ("http client", self.http_client.close)]
        if self.rating_scraper is not None:
            closers.append(("rating scraper", self.rating_scraper.close))
        for name, closer in closers:
            try:
                await closer()
            except Exception as e:
                logger.warning(f"Failed to close {name}: {type(e).__name__}: {e}")
        self.engine.dispose()
        logger.info("Application context closed")
