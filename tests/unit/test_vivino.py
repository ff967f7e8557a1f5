"""Vivino parsing and rating lookups (fake browser)"""
import pytest

from alko_catalog.core.database import session_scope
from alko_catalog.crawlers.vivino import parsing
from alko_catalog.crawlers.vivino.scraper import VivinoScraper
from alko_catalog.repositories.impl.rating_repository import RatingRepository
from alko_catalog.utils.cache_keys import rating_key
from alko_catalog.utils.throttle import ExponentialBackoff, RateLimiter
from tests.fixtures.browser import FakeBrowser, FakeClock, FakePage

SEARCH_URL = parsing.build_search_url("Apothic Red", "E & J Gallo")
WINE_URL = "https://www.vivino.com/US/en/apothic-red/w/1138421"

SEARCH_HTML = """
<div class="wineCard">
  <a href="/US/en/apothic-red/w/1138421?year=2021">Apothic Red</a>
</div>
"""

WINE_HTML = """
<h1>Apothic Red 2021</h1>
<a class="winery">Apothic</a>
<div class="vivinoRating_averageValue__uDdPM">3,9</div>
<div class="vivinoRating_caption__xL84P">12,345 ratings</div>
"""

NOT_ENOUGH_HTML = """
<h1>Pieni Tila 2022</h1>
<div class="vivinoRating_caption__xL84P">Not enough ratings</div>
"""


class TestParsing:
    def test_search_url_puts_producer_first(self):
        assert SEARCH_URL == "https://www.vivino.com/search/wines?q=E%20%26%20J%20Gallo%20Apothic%20Red"
        assert parsing.build_search_url("Apothic Red").endswith("q=Apothic%20Red")

    def test_vintage_link_preferred(self):
        html = '<a href="/w/1">x</a><a data-testid="vintagePageLink" href="/w/2?year=2020">y</a>'

        assert parsing.find_first_wine_link(html) == "/w/2?year=2020"

    def test_wine_path_link(self):
        assert parsing.find_first_wine_link(SEARCH_HTML) == "/US/en/apothic-red/w/1138421?year=2021"

    def test_no_results(self):
        assert parsing.find_first_wine_link("<p>No results</p>") is None

    def test_wine_page_fields(self):
        data = parsing.parse_wine_page(WINE_HTML)

        assert data.wine_name == "Apothic Red 2021"
        assert data.winery == "Apothic"
        assert parsing.parse_rating_value(data.average_rating) == pytest.approx(3.9)
        assert parsing.parse_ratings_count(data.ratings_count) == 12345
        assert not data.not_enough_ratings

    def test_not_enough_ratings(self):
        data = parsing.parse_wine_page(NOT_ENOUGH_HTML)

        assert data.average_rating is None
        assert data.not_enough_ratings

    def test_value_helpers(self):
        assert parsing.parse_rating_value("n/a") is None
        assert parsing.parse_rating_value(None) is None
        assert parsing.parse_ratings_count("no ratings") == 0
        assert parsing.absolute_url("/w/1") == "https://www.vivino.com/w/1"
        assert parsing.absolute_url("https://example.com/w/1") == "https://example.com/w/1"

    def test_verification_page(self):
        assert parsing.is_verification_page("<p>Please confirm you are human</p>")
        assert not parsing.is_verification_page(WINE_HTML)


async def no_sleep(_seconds):
    return None


@pytest.fixture
def page():
    return FakePage({
        SEARCH_URL: SEARCH_HTML,
        "https://www.vivino.com/US/en/apothic-red/w/1138421?year=2021": WINE_HTML,
        WINE_URL: WINE_HTML,
    })


@pytest.fixture
def vivino(session_factory, cache_service, test_settings, page, fixed_now):
    clock = FakeClock()
    return VivinoScraper(
        session_factory,
        cache_service.ratings,
        test_settings,
        browser=FakeBrowser(page),
        rate_limiter=RateLimiter(1.0, clock=clock, sleep=clock.sleep),
        backoff=ExponentialBackoff(sleep=no_sleep),
        now=lambda: fixed_now,
    )


class TestVivinoScraper:
    @pytest.mark.asyncio
    async def test_search_then_wine_page(self, vivino, page, session_factory, fixed_now):
        result = await vivino.get_wine_rating("Apothic Red", "E & J Gallo")

        assert result.found is True
        assert result.rating.average_rating == pytest.approx(3.9)
        assert result.rating.ratings_count == 12345
        assert result.rating.fetched_at == fixed_now
        assert page.visited() == [SEARCH_URL, "https://www.vivino.com/US/en/apothic-red/w/1138421?year=2021"]
        with session_scope(session_factory) as db:
            stored = RatingRepository(db).get(rating_key("Apothic Red", "E & J Gallo"))
        assert stored.wine_name == "Apothic Red 2021"

    @pytest.mark.asyncio
    async def test_repeat_lookup_served_from_cache(self, vivino, page):
        await vivino.get_wine_rating("Apothic Red", "E & J Gallo")

        again = await vivino.get_wine_rating("apothic red", "e & j gallo")

        assert again.from_cache is True
        assert len(page.visited()) == 2

    @pytest.mark.asyncio
    async def test_durable_tier_survives_fast_tier_clear(self, vivino, page, cache_service):
        await vivino.get_wine_rating("Apothic Red", "E & J Gallo")
        cache_service.ratings.clear()

        again = await vivino.get_wine_rating("Apothic Red", "E & J Gallo")

        assert again.found and again.from_cache
        assert len(page.visited()) == 2

    @pytest.mark.asyncio
    async def test_no_search_results(self, vivino, page, session_factory):
        result = await vivino.get_wine_rating("Olematon Viini")

        assert result.found is False
        assert result.error is None
        with session_scope(session_factory) as db:
            assert RatingRepository(db).get(rating_key("Olematon Viini")) is None

    @pytest.mark.asyncio
    async def test_not_enough_ratings_cached_in_fast_tier_only(self, vivino, page, cache_service, session_factory):
        url = "https://www.vivino.com/w/999"
        page.routes[url] = NOT_ENOUGH_HTML

        result = await vivino.get_rating_by_url(url)

        assert result.error == parsing.NOT_ENOUGH_RATINGS_ERROR
        assert cache_service.ratings.get(rating_key(url=url)) is not None
        with session_scope(session_factory) as db:
            assert RatingRepository(db).get(rating_key(url=url)) is None

    @pytest.mark.asyncio
    async def test_verification_page_not_cached(self, vivino, page, cache_service):
        page.routes[SEARCH_URL] = "<p>Please confirm you are human</p>"

        result = await vivino.get_wine_rating("Apothic Red", "E & J Gallo")

        assert result.error == parsing.HUMAN_VERIFICATION_ERROR
        assert cache_service.ratings.get(rating_key("Apothic Red", "E & J Gallo")) is None

    @pytest.mark.asyncio
    async def test_out_of_range_rating(self, vivino, page):
        url = "https://www.vivino.com/w/7"
        page.routes[url] = '<div class="vivinoRating_averageValue__x">7.5</div>'

        result = await vivino.get_rating_by_url(url)

        assert result.found is False
        assert result.error == "Could not parse rating value: 7.5"

    @pytest.mark.asyncio
    async def test_navigation_failure_returns_error(self, vivino, page):
        page.failing.add(WINE_URL)

        result = await vivino.get_rating_by_url(WINE_URL)

        assert result.found is False
        assert "Network failure" in result.error
        assert vivino.backoff.attempts == 1

    @pytest.mark.asyncio
    async def test_closed_scraper(self, vivino):
        await vivino.close()

        result = await vivino.get_rating_by_url(WINE_URL)

        assert result.found is False
        assert "closed" in result.error
