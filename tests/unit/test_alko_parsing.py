"""alko.fi page parsing (static HTML, no browser)"""
from datetime import datetime

from alko_catalog.crawlers.alko.parsing import (
    build_availability_records,
    build_tag_search_url,
    classify_stock,
    extract_item_ids,
    extract_outlet_links,
    is_challenge_page,
    outlet_id_from_link,
    parse_availability,
    parse_enrichment,
    parse_outlet_list,
    parse_outlet_page,
)

AVAILABILITY_HTML = """
<ul>
  <li class="store-item stockInStore">
    <a data-url="/myymalat-palvelut/2102">
      <span class="store-in-stock">Alko Helsinki Kamppi</span>
      <span class="number-in-stock">11-15</span>
    </a>
  </li>
  <li class="store-item stockInStore">
    <a href="/myymalat-palvelut/2736">
      <span class="option-text">Alko Tampere Koskikeskus</span>
      <span class="number-in-stock">3</span>
    </a>
  </li>
  <li class="store-item stockInStore">
    <span class="store-in-stock">Alko Espoo Iso Omena</span>
    <span class="number-in-stock">0</span>
  </li>
  <li class="store-item stockInStore">
    <a data-url="/myymalat-palvelut/2102">
      <span class="store-in-stock">Alko Helsinki Kamppi</span>
      <span class="number-in-stock">11-15</span>
    </a>
  </li>
  <li class="store-item">
    <span class="store-in-stock">Alko Ei varastossa</span>
  </li>
</ul>
"""

ENRICHMENT_HTML = """
<html><body>
  <div class="smokiness">
    <span class="smokiness-icon smokey"></span>
    <span class="smokiness-icon smokey"></span>
    <span class="smokiness-icon smokey"></span>
    <span class="smokiness-icon"></span>
    <span class="smokiness-label">selvästi savuinen</span>
  </div>
  <a class="pdp-symbol-link ecological certificate link-tooltip" aria-label="Luomu"></a>
  <a class="pdp-symbol-link" aria-label="Seurustelujuoma"></a>
  <a class="pdp-symbol-link" aria-label="Grilliruoka"></a>
  <a class="pdp-symbol-link" aria-label="Seurustelujuoma"></a>
</body></html>
"""

ENRICHMENT_TEXT = (
    "Laphroaig 10 Year Old\n"
    "Meripihkan värinen, voimakkaan savuinen, turpeinen ja jodinen maku.\n"
    "KÄYTTÖVINKIT\n"
    "Nautitaan sellaisenaan tai tilkan vettä kera.\n"
    "TARJOILU\n"
    "Huoneenlämpöisenä.\n"
    "Tuotteen mahdollisesti sisältämät allergeenit\n"
    "TUOTTAJAN ILMOITTAMAT AINESOSAT\n"
    "Ohramallas, vesi\n"
    "VALMISTAJA\n"
    "Laphroaig\n"
)

OUTLET_LIST_HTML = """
<div class="store-list-item">
  <a href="/myymalat-palvelut/2102?utm=list">Alko Helsinki Kamppi</a>
  <p>Osoite: Urho Kekkosen katu 1, 00100 HELSINKI</p>
  <p>Auki tänään 9-21</p>
  <p>Auki huomenna 9-18</p>
</div>
<div class="store-list-item">
  <a href="/myymalat-palvelut/2736">MYYMÄLÄ</a>
  <h3>Alko Tampere Koskikeskus</h3>
  <p>Osoite: Hatanpään valtatie 1, 33100 TAMPERE</p>
  <p>Auki tänään 10-20</p>
  <p>Auki huomenna SULJETTU</p>
</div>
<div class="store-list-item">
  <a href="/myymalat-palvelut/2102">Alko Helsinki Kamppi</a>
</div>
<div class="store-list-item"><p>Alko ilman linkkiä</p></div>
"""


class TestChallengeDetection:
    def test_incapsula_page(self):
        assert is_challenge_page("<html>Request unsuccessful. Incapsula incident ID: 123</html>")

    def test_regular_page_with_recaptcha_script(self):
        assert not is_challenge_page('<html><script src="https://www.google.com/recaptcha/api.js"></script></html>')

    def test_empty(self):
        assert not is_challenge_page("")


class TestAvailability:
    def test_rows_deduplicated_by_outlet_name(self):
        rows = parse_availability(AVAILABILITY_HTML)

        assert [r.outlet_name for r in rows] == [
            "Alko Helsinki Kamppi",
            "Alko Tampere Koskikeskus",
            "Alko Espoo Iso Omena",
        ]
        assert [r.quantity for r in rows] == [11, 3, 0]
        assert rows[0].outlet_link == "/myymalat-palvelut/2102"
        assert rows[1].outlet_link == "/myymalat-palvelut/2736"
        assert rows[2].outlet_link == ""

    def test_stock_classification(self):
        assert classify_stock(6) == "in_stock"
        assert classify_stock(5) == "low_stock"
        assert classify_stock(1) == "low_stock"
        assert classify_stock(0) == "out_of_stock"

    def test_outlet_id_falls_back_to_name(self):
        assert outlet_id_from_link("/myymalat-palvelut/2102", "Alko Kamppi") == "2102"
        assert outlet_id_from_link("", "Alko Espoo Iso Omena") == "Alko_Espoo_Iso_Omena"

    def test_records_carry_composite_ids(self):
        checked_at = datetime(2026, 10, 14, 12, 0)

        records = build_availability_records("000706", parse_availability(AVAILABILITY_HTML), checked_at)

        assert [r.id for r in records] == ["000706_2102", "000706_2736", "000706_Alko_Espoo_Iso_Omena"]
        assert [r.status for r in records] == ["in_stock", "low_stock", "out_of_stock"]
        assert all(r.checked_at == checked_at for r in records)


class TestEnrichment:
    def test_sections_from_rendered_text(self):
        data = parse_enrichment(ENRICHMENT_HTML, ENRICHMENT_TEXT)

        assert data.taste_profile.startswith("Meripihkan värinen")
        assert data.usage_tips == "Nautitaan sellaisenaan tai tilkan vettä kera."
        assert data.serving_suggestion == "Huoneenlämpöisenä."
        assert data.ingredients == "Ohramallas, vesi"

    def test_certificates_are_not_food_pairings(self):
        data = parse_enrichment(ENRICHMENT_HTML, ENRICHMENT_TEXT)

        assert data.certificates == ["Luomu"]
        assert data.food_pairings == ["Seurustelujuoma", "Grilliruoka"]

    def test_smokiness_counts_smokey_icons(self):
        data = parse_enrichment(ENRICHMENT_HTML, ENRICHMENT_TEXT)

        assert data.smokiness == 3
        assert data.smokiness_label == "selvästi savuinen"

    def test_page_without_sections(self):
        data = parse_enrichment("<html><body><p>Tuote</p></body></html>")

        assert data.is_empty()


class TestOutlets:
    def test_listing_page(self):
        now = datetime(2026, 10, 14, 8, 0)

        outlets = parse_outlet_list(OUTLET_LIST_HTML, now)

        assert [o.id for o in outlets] == ["2102", "2736"]
        kamppi, tampere = outlets
        assert kamppi.name == "Alko Helsinki Kamppi"
        assert kamppi.address == "Urho Kekkosen katu 1"
        assert kamppi.postal_code == "00100"
        assert kamppi.city == "HELSINKI"
        assert kamppi.store_link == "/myymalat-palvelut/2102"
        assert kamppi.opening_hours_today == "9-21"
        assert kamppi.opening_hours_tomorrow == "9-18"
        assert kamppi.updated_at == now
        assert tampere.name == "Alko Tampere Koskikeskus"
        assert tampere.opening_hours_tomorrow == "SULJETTU"

    def test_outlet_links_unique(self):
        html = """
        <a href="/myymalat-palvelut/2102?x=1">a</a>
        <a href="/fi/myymalat-palvelut/2102">b</a>
        <a href="/myymalat-palvelut/2736">c</a>
        <a href="/tuotteet/000706">d</a>
        """

        assert extract_outlet_links(html) == ["/myymalat-palvelut/2102", "/myymalat-palvelut/2736"]

    def test_outlet_page_picks_todays_hours(self):
        # 2026-10-14 is a Wednesday ("ke")
        now = datetime(2026, 10, 14, 8, 0)
        text = (
            "Alko Helsinki Kamppi\n"
            "Urho Kekkosen katu 1, 00100 HELSINKI\n"
            "+358 20 711 1234\n"
            "kamppi@alko.fi\n"
            "ti 13.10 9-21\n"
            "ke 14.10 9-20\n"
            "to 15.10 SULJETTU\n"
        )

        outlet = parse_outlet_page("<h1>Alko Helsinki Kamppi, Helsinki</h1>", "/myymalat-palvelut/2102", now, text)

        assert outlet.id == "2102"
        assert outlet.name == "Alko Helsinki Kamppi"
        assert outlet.address.endswith("Urho Kekkosen katu 1")
        assert outlet.postal_code == "00100"
        assert outlet.city == "HELSINKI"
        assert outlet.phone == "+358 20 711 1234"
        assert outlet.email == "kamppi@alko.fi"
        assert outlet.opening_hours_today == "9-20"

    def test_outlet_page_without_name(self):
        assert parse_outlet_page("<p>tyhjä</p>", "/myymalat-palvelut/2102", datetime(2026, 10, 14), "") is None


class TestTagSearch:
    def test_page_size_capped(self):
        url = build_tag_search_url("foodSymbolId=foodSymbol_Seurustelujuoma", 100)

        assert "PageSize=48" in url
        assert url.startswith("https://www.alko.fi/tuotteet/tuotelistaus?")

    def test_small_limit(self):
        assert "PageSize=5" in build_tag_search_url("foodSymbolId=foodSymbol_Grilliruoka", 5)

    def test_item_ids_in_page_order(self):
        html = """
        <a href="/tuotteet/000706/koskenkorva-viina">x</a>
        <a href="/tuotteet/000706">x</a>
        <a href="/tuotteet/319027/">y</a>
        <a href="/tuotteet/tuotelistaus">z</a>
        """

        assert extract_item_ids(html) == ["000706", "319027"]
