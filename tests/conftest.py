"""Global test setup

- test environment variables
- in-memory SQLite store
- fake scrapers / fake Playwright page
"""

from __future__ import annotations

import os
import sys
from datetime import datetime
from pathlib import Path
from typing import Dict, List, Optional

import pytest

# project root on sys.path
project_root = Path(__file__).parent.parent
sys.path.insert(0, str(project_root))

os.environ.setdefault("ENVIRONMENT", "test")
os.environ.setdefault("LOG_LEVEL", "INFO")

from alko_catalog.core.config import Settings  # noqa: E402
from alko_catalog.core.database import build_engine, build_session_factory, init_db  # noqa: E402
from alko_catalog.core.exceptions import NetworkFailure  # noqa: E402
from alko_catalog.schemas.catalog_schema import (  # noqa: E402
    AvailabilityResult,
    CatalogItem,
    EnrichmentData,
    Outlet,
    RatingResult,
)
from alko_catalog.services.impl.cache_service import CacheService  # noqa: E402
from tests.fixtures.catalog import SAMPLE_ITEMS  # noqa: E402


@pytest.fixture
def test_settings(tmp_path) -> Settings:
    return Settings(
        database_url="sqlite:///:memory:",
        seed_data_path=str(tmp_path / "seed-data.json"),
        scrape_rate_limit_ms=1000,
        scrape_jitter_ms=1,
        rating_lookup_enabled=False,
    )


@pytest.fixture
def engine(test_settings):
    engine = build_engine(test_settings.database_url)
    init_db(engine)
    yield engine
    engine.dispose()


@pytest.fixture
def session_factory(engine):
    return build_session_factory(engine)


@pytest.fixture
def cache_service(test_settings) -> CacheService:
    return CacheService(test_settings)


@pytest.fixture
def sample_items() -> List[CatalogItem]:
    return [CatalogItem.model_validate(item) for item in SAMPLE_ITEMS]


class FakeAlkoScraper:
    """Stands in for AlkoScraper; records calls, never opens a browser"""

    def __init__(self):
        self.outlets: List[Outlet] = []
        self.enrichment = EnrichmentData()
        self.tag_results: Dict[str, List[str]] = {}
        self.availability: Dict[str, AvailabilityResult] = {}
        self.fail_with: Optional[Exception] = None
        self.calls: List[str] = []
        self.closed = False

    def _maybe_fail(self):
        if self.fail_with is not None:
            raise self.fail_with

    async def list_outlets(self) -> List[Outlet]:
        self.calls.append("list_outlets")
        self._maybe_fail()
        return list(self.outlets)

    async def scrape_enrichment(self, item_id: str) -> EnrichmentData:
        self.calls.append(f"scrape_enrichment:{item_id}")
        self._maybe_fail()
        return self.enrichment

    async def search_by_tag(self, tag_id: str, limit: int = 20) -> List[str]:
        self.calls.append(f"search_by_tag:{tag_id}")
        self._maybe_fail()
        return self.tag_results.get(tag_id, [])

    async def get_cached_availability(self, item_id: str, item_name: Optional[str] = None):
        self.calls.append(f"get_cached_availability:{item_id}")
        return None

    async def get_availability(self, item_id: str, item_name: Optional[str] = None) -> AvailabilityResult:
        self.calls.append(f"get_availability:{item_id}")
        self._maybe_fail()
        if item_id not in self.availability:
            raise NetworkFailure(f"availability {item_id}", "no data")
        return self.availability[item_id]

    async def close(self) -> None:
        self.closed = True


class FakeRatingScraper:
    def __init__(self):
        self.calls: List[tuple] = []

    async def get_wine_rating(self, name: str, producer: Optional[str] = None) -> RatingResult:
        self.calls.append(("name", name, producer))
        return RatingResult(found=False)

    async def get_rating_by_url(self, url: str) -> RatingResult:
        self.calls.append(("url", url))
        return RatingResult(found=False, error="not enough ratings")

    async def close(self) -> None:
        pass


@pytest.fixture
def fake_scraper() -> FakeAlkoScraper:
    return FakeAlkoScraper()


@pytest.fixture
def fake_rating_scraper() -> FakeRatingScraper:
    return FakeRatingScraper()


@pytest.fixture
def app_context(test_settings, engine, fake_scraper, fake_rating_scraper):
    from alko_catalog.core.context import AppContext

    return AppContext.create(
        test_settings,
        engine=engine,
        alko_scraper=fake_scraper,
        rating_scraper=fake_rating_scraper,
    )


@pytest.fixture
def fixed_now() -> datetime:
    return datetime(2026, 10, 14, 12, 30)
