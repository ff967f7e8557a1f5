"""AlkoScraper session handling against a fake browser page"""
import asyncio

import pytest

from alko_catalog.core.database import session_scope
from alko_catalog.core.exceptions import BotChallengeDetected, BrowserException, NetworkFailure
from alko_catalog.crawlers.alko.scraper import COOKIE_BUTTON_SELECTOR, AlkoScraper, ScraperState
from alko_catalog.repositories.impl.availability_repository import AvailabilityRepository
from alko_catalog.utils.throttle import ExponentialBackoff, RateLimiter
from tests.fixtures.browser import FakeBrowser, FakeClock, FakePage

BASE = "https://www.alko.fi"
ROOT = f"{BASE}/"
KOSSU = f"{BASE}/tuotteet/000706"
APOTHIC = f"{BASE}/tuotteet/319027"

STOCK_HTML = """
<ul>
  <li class="store-item stockInStore">
    <a data-url="/myymalat-palvelut/2102">
      <span class="store-in-stock">Alko Helsinki Kamppi</span>
      <span class="number-in-stock">11-15</span>
    </a>
  </li>
  <li class="store-item stockInStore">
    <a data-url="/myymalat-palvelut/2736">
      <span class="store-in-stock">Alko Tampere Koskikeskus</span>
      <span class="number-in-stock">2</span>
    </a>
  </li>
</ul>
"""

CHALLENGE_HTML = "<html><body>Request unsuccessful. Incapsula incident ID: 42</body></html>"


async def no_sleep(_seconds):
    return None


@pytest.fixture
def page():
    return FakePage({
        ROOT: "<html><body>Alko</body></html>",
        KOSSU: "<html><body><h1>Koskenkorva Viina</h1></body></html>",
        APOTHIC: "<html><body><h1>Apothic Red</h1></body></html>",
    })


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def scraper(session_factory, cache_service, test_settings, page, clock, fixed_now):
    return AlkoScraper(
        session_factory,
        cache_service.availability,
        test_settings,
        browser=FakeBrowser(page),
        rate_limiter=RateLimiter(1.0, clock=clock, sleep=clock.sleep),
        backoff=ExponentialBackoff(sleep=no_sleep),
        now=lambda: fixed_now,
    )


class TestSession:
    @pytest.mark.asyncio
    async def test_session_established_once(self, scraper, page):
        await scraper.scrape_enrichment("000706")
        await scraper.scrape_enrichment("319027")

        assert page.visited() == [ROOT, KOSSU, APOTHIC]
        assert scraper.state == ScraperState.IDLE

    @pytest.mark.asyncio
    async def test_cookie_banner_dismissed(self, scraper, page):
        button = page.add_element(COOKIE_BUTTON_SELECTOR)

        await scraper.scrape_enrichment("000706")

        assert button.clicks == 1

    @pytest.mark.asyncio
    async def test_challenge_on_site_root(self, scraper, page):
        page.routes[ROOT] = CHALLENGE_HTML

        with pytest.raises(BotChallengeDetected):
            await scraper.scrape_enrichment("000706")

        assert not scraper.session_established

    @pytest.mark.asyncio
    async def test_challenge_mid_operation_drops_session(self, scraper, page):
        await scraper.scrape_enrichment("000706")
        page.routes[APOTHIC] = CHALLENGE_HTML

        with pytest.raises(BotChallengeDetected):
            await scraper.scrape_enrichment("319027")

        assert scraper.state == ScraperState.BROWSER_READY

    @pytest.mark.asyncio
    async def test_repeated_failures_reset_session(self, scraper, page):
        page.failing.add(KOSSU)

        for expected in (ScraperState.IDLE, ScraperState.IDLE, ScraperState.IDLE, ScraperState.BROWSER_READY):
            with pytest.raises(NetworkFailure):
                await scraper.scrape_enrichment("000706")
            assert scraper.state == expected

        page.failing.clear()
        await scraper.scrape_enrichment("000706")

        assert page.visited().count(ROOT) == 2
        assert scraper.backoff.attempts == 0

    @pytest.mark.asyncio
    async def test_failing_site_root_is_throttled_and_backed_off(self, scraper, page, clock):
        """An unreachable entry page is paced and counted like any other failure"""
        delays = []

        async def record(seconds):
            delays.append(seconds)

        scraper.backoff = ExponentialBackoff(base_s=1.0, max_s=8.0, sleep=record)
        page.failing.add(ROOT)

        for _ in range(3):
            with pytest.raises(NetworkFailure):
                await scraper.scrape_enrichment("000706")

        assert page.visited() == [ROOT, ROOT, ROOT]
        assert len([s for s in clock.sleeps if s > 0.99]) == 2
        assert delays == [1.0, 2.0, 4.0]
        assert scraper.backoff.attempts == 3
        assert not scraper.session_established

        page.failing.clear()
        await scraper.scrape_enrichment("000706")

        assert page.visited() == [ROOT, ROOT, ROOT, ROOT, KOSSU]
        assert scraper.backoff.attempts == 0

    @pytest.mark.asyncio
    async def test_closed_scraper_refuses_work(self, scraper):
        await scraper.close()

        with pytest.raises(BrowserException):
            await scraper.scrape_enrichment("000706")
        assert scraper.state == ScraperState.CLOSED
        assert scraper.browser.closed


class TestSerialization:
    @pytest.mark.asyncio
    async def test_concurrent_operations_do_not_interleave(self, scraper, page, clock):
        await asyncio.gather(
            scraper.scrape_enrichment("000706"),
            scraper.scrape_enrichment("319027"),
        )

        item_urls = [url for _, url in page.events if url in (KOSSU, APOTHIC)]
        switches = sum(1 for a, b in zip(item_urls, item_urls[1:]) if a != b)
        assert switches == 1
        # the second operation waited out the 1s minimum interval
        assert any(s > 0.99 for s in clock.sleeps)


class TestAvailability:
    @pytest.mark.asyncio
    async def test_scrape_persists_and_caches(self, scraper, page, session_factory, cache_service):
        page.routes[KOSSU] = STOCK_HTML

        result = await scraper.get_availability("000706", "Koskenkorva Viina")

        assert result.from_cache is False
        assert [(r.outlet_id, r.status) for r in result.outlets] == [("2102", "in_stock"), ("2736", "low_stock")]
        with session_scope(session_factory) as db:
            assert len(AvailabilityRepository(db).list_for_item("000706")) == 2
        assert cache_service.availability.get("000706") is not None

    @pytest.mark.asyncio
    async def test_cached_result_skips_browser(self, scraper, page):
        page.routes[KOSSU] = STOCK_HTML
        await scraper.get_availability("000706")
        visits = len(page.visited())

        again = await scraper.get_availability("000706")

        assert again.from_cache is True
        assert len(page.visited()) == visits

    @pytest.mark.asyncio
    async def test_availability_panel_is_opened(self, scraper, page):
        from alko_catalog.crawlers.alko.scraper import AVAILABILITY_LINK_SELECTOR

        link = page.add_element(AVAILABILITY_LINK_SELECTOR, opens=STOCK_HTML)

        result = await scraper.get_availability("000706")

        assert link.clicks == 1
        assert len(result.outlets) == 2

    @pytest.mark.asyncio
    async def test_failure_falls_back_to_persisted_records(self, scraper, page, cache_service):
        page.routes[KOSSU] = STOCK_HTML
        await scraper.get_availability("000706")
        cache_service.availability.clear()
        page.failing.add(KOSSU)

        result = await scraper.get_availability("000706", "Koskenkorva Viina")

        assert result.from_cache is True
        assert len(result.outlets) == 2

    @pytest.mark.asyncio
    async def test_failure_without_history_raises(self, scraper, page):
        page.failing.add(KOSSU)

        with pytest.raises(NetworkFailure):
            await scraper.get_availability("000706")

    @pytest.mark.asyncio
    async def test_cached_availability_never_scrapes(self, scraper, page):
        assert await scraper.get_cached_availability("000706") is None
        assert page.visited() == []


class TestOutletsAndTags:
    @pytest.mark.asyncio
    async def test_outlet_listing(self, scraper, page):
        page.routes[f"{BASE}/myymalat-palvelut"] = """
        <div class="store-list-item">
          <a href="/myymalat-palvelut/2102">Alko Helsinki Kamppi</a>
          <p>Osoite: Urho Kekkosen katu 1, 00100 HELSINKI</p>
          <p>Auki tänään 9-21</p>
        </div>
        """

        outlets = await scraper.list_outlets()

        assert [o.id for o in outlets] == ["2102"]
        assert outlets[0].opening_hours_today == "9-21"

    @pytest.mark.asyncio
    async def test_outlet_pages_visited_when_listing_is_empty(self, scraper, page):
        page.routes[f"{BASE}/myymalat-palvelut"] = '<a href="/myymalat-palvelut/2102">Kamppi</a>'
        page.routes[f"{BASE}/myymalat-palvelut/2102"] = (
            "<html><body><h1>Alko Helsinki Kamppi</h1><p>+358 20 711 1234</p></body></html>"
        )

        outlets = await scraper.list_outlets()

        assert [o.name for o in outlets] == ["Alko Helsinki Kamppi"]
        assert outlets[0].phone == "+358 20 711 1234"

    @pytest.mark.asyncio
    async def test_search_by_tag(self, scraper, page):
        from alko_catalog.crawlers.alko.parsing import build_tag_search_url

        url = build_tag_search_url("foodSymbolId=foodSymbol_Nauta", 15)
        page.routes[url] = '<a href="/tuotteet/319027/apothic-red">x</a><a href="/tuotteet/000706">y</a>'

        ids = await scraper.search_by_tag("foodSymbolId=foodSymbol_Nauta", 15)

        assert ids == ["319027", "000706"]
