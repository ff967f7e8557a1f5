"""API integration tests: real app, in-memory store, fake scrapers"""
import json

import pytest
from fastapi.testclient import TestClient

from alko_catalog.app import create_app, status_for
from alko_catalog.core.exceptions import (
    BotChallengeDetected,
    CatalogException,
    NetworkFailure,
    ValidationFailure,
)
from tests.fixtures.catalog import SAMPLE_ITEMS

SEED_OUTLETS = [
    {
        "id": "2102",
        "name": "Alko Helsinki Kamppi",
        "city": "HELSINKI",
        "address": "Urho Kekkosen katu 1",
        "postalCode": "00100",
        "openingHoursToday": "9-21",
        "openingHoursTomorrow": "9-18",
    },
    {"id": "2736", "name": "Alko Tampere Koskikeskus", "city": "TAMPERE", "openingHoursToday": "10-20"},
]


@pytest.fixture
def client(app_context, test_settings):
    with open(test_settings.seed_data_path, "w", encoding="utf-8") as f:
        json.dump({"exportedAt": "2026-10-01T04:12:08", "version": 1, "items": SAMPLE_ITEMS, "outlets": SEED_OUTLETS}, f)

    app = create_app(context_factory=lambda: app_context)
    with TestClient(app) as test_client:
        yield test_client


class TestHealthAPI:
    def test_health_check(self, client):
        response = client.get("/health")

        assert response.status_code == 200
        data = response.json()
        assert data["status"] == "ok"
        assert data["version"] == "1.0.0"

    def test_root(self, client):
        assert client.get("/").json()["service"] == "Alko catalog"


class TestSearchAPI:
    def test_search_returns_camel_case(self, client):
        response = client.post("/api/v1/search", json={"filters": {"query": "Suomi Viina"}, "options": {"limit": 5}})

        assert response.status_code == 200
        data = response.json()
        assert [i["name"] for i in data["items"]] == ["Suomi Viina", "Koskenkorva Viina"]
        assert data["hasMore"] is False
        assert data["fromCache"] is False
        assert "alcoholPercentage" in data["items"][0]

    def test_search_accepts_camel_case_filters(self, client):
        response = client.post("/api/v1/search", json={
            "filters": {"type": "viskit", "minSmokiness": 3},
            "options": {"sortBy": "pricePerLiter"},
        })

        assert [i["id"] for i in response.json()["items"]] == ["465427"]

    def test_invalid_limit(self, client):
        response = client.post("/api/v1/search", json={"options": {"limit": 500}})

        assert response.status_code == 422

    def test_second_search_is_cached(self, client):
        body = {"filters": {"country": "Chile"}}
        client.post("/api/v1/search", json=body)

        assert client.post("/api/v1/search", json=body).json()["fromCache"] is True


class TestItemAPI:
    def test_get_item(self, client):
        response = client.get("/api/v1/items/000706")

        assert response.status_code == 200
        assert response.json()["name"] == "Koskenkorva Viina"

    def test_unknown_item(self, client):
        assert client.get("/api/v1/items/999999").status_code == 404

    def test_enrichment_requested(self, client, fake_scraper):
        response = client.get("/api/v1/items/319027", params={"includeEnrichment": "true"})

        assert response.status_code == 200
        assert fake_scraper.calls == ["scrape_enrichment:319027"]

    def test_availability_unavailable(self, client):
        assert client.get("/api/v1/items/000706/availability").status_code == 404


class TestOutletAPI:
    def test_outlets_by_city(self, client):
        response = client.get("/api/v1/outlets", params={"city": "HELSINKI"})

        assert [o["id"] for o in response.json()] == ["2102"]

    def test_store_hours(self, client, fake_scraper):
        response = client.get("/api/v1/outlets/hours", params={"name": "kamppi"})

        data = response.json()
        assert response.status_code == 200
        assert data["outlets"][0]["openingHoursToday"] == "9-21"
        assert data["outlets"][0]["address"] == "Urho Kekkosen katu 1, 00100"
        assert data["refreshed"] is False
        assert "currentTime" in data
        # seeded today, so no refresh
        assert fake_scraper.calls == []


class TestRecommendationAPI:
    def test_unknown_food_pairing(self, client):
        response = client.post("/api/v1/recommendations", json={"foodPairing": "xyz"})

        data = response.json()
        assert data["recommendations"] == []
        assert "Grilliruoka" in data["availableFoodSymbols"]

    def test_limit_bounds(self, client):
        assert client.post("/api/v1/recommendations", json={"limit": 50}).status_code == 422


class TestRatingAPI:
    def test_name_or_url_required(self, client):
        assert client.post("/api/v1/ratings", json={}).status_code == 422

    def test_url_must_be_http(self, client):
        assert client.post("/api/v1/ratings", json={"url": "ftp://vivino.com/w/1"}).status_code == 422

    def test_lookup_by_name(self, client, fake_rating_scraper):
        response = client.post("/api/v1/ratings", json={"name": "Apothic Red", "producer": "E & J Gallo"})

        assert response.status_code == 200
        assert response.json()["found"] is False
        assert fake_rating_scraper.calls == [("name", "Apothic Red", "E & J Gallo")]


class TestSyncAPI:
    def test_status_after_bootstrap(self, client):
        client.get("/api/v1/items/000706")

        data = client.get("/api/v1/sync/status").json()

        assert data["itemCount"] == len(SAMPLE_ITEMS)
        assert data["lastSync"] is None

    def test_outlet_sync_uses_scraper(self, client, fake_scraper):
        response = client.post("/api/v1/sync/outlets")

        assert response.json()["success"] is True
        assert fake_scraper.calls == ["list_outlets"]


class TestErrorHandling:
    def test_catalog_errors_become_error_responses(self, client, app_context):
        async def blocked(*args, **kwargs):
            raise BotChallengeDetected("site root")

        app_context.catalog.search_catalog = blocked

        response = client.post("/api/v1/search", json={})

        assert response.status_code == 503
        data = response.json()
        assert data["errorCode"] == "BOT_CHALLENGE"
        assert data["message"] == "Bot challenge detected at site root"

    def test_status_mapping(self):
        assert status_for(ValidationFailure("1", ["Missing item name"])) == 422
        assert status_for(NetworkFailure("download", "HTTP 500")) == 502
        assert status_for(CatalogException("boom")) == 500
