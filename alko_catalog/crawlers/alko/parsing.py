"""Pure parsing of alko.fi pages (selectolax).

No browser here: the scraper hands over page.content() and, where section
boundaries depend on rendered line breaks, the body's innerText.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from datetime import datetime
from typing import List, Optional
from urllib.parse import quote

from selectolax.parser import HTMLParser, Node

from alko_catalog.schemas.catalog_schema import (
    SMOKINESS_LABELS,
    AvailabilityRecord,
    EnrichmentData,
    Outlet,
)
from alko_catalog.utils.text import collapse_ws, first_int, truncate

ALKO_BASE_URL = "https://www.alko.fi"

# Incapsula / generic challenge pages. Kept narrow: regular pages load recaptcha scripts.
_CHALLENGE_KEYWORDS = (
    "_incapsula_resource",
    "incapsula incident",
    "request unsuccessful",
    "verify you are human",
    "confirm you are human",
)

_TASTE_RE = re.compile(
    r"^[^\n]*?((?:Punainen|Valkoinen|Rosee|Kullanvärinen|Meripihkan|Kirkas|Tumma|Vaalea|Vaaleanruskea"
    r"|Täyteläinen|Keskitäyteläinen|Kevyt|Kuiva|Makea|Puolimakea)[^\n]{10,200})",
    re.M,
)
_USAGE_RE = re.compile(r"KÄYTTÖVINKIT\s*(.*?)(?=TARJOILU|Tuotteen mahdollisesti|$)", re.I | re.S)
_SERVING_RE = re.compile(r"TARJOILU\s*(.*?)(?=Tuotteen mahdollisesti|Alko Oy|$)", re.I | re.S)
_INGREDIENTS_RE = re.compile(
    r"TUOTTAJAN ILMOITTAMAT AINESOSAT\n(.*?)(?=\n[A-ZÄÖÅÜ][A-ZÄÖÅÜ/\s]{2,}\n|$)", re.S
)

_OUTLET_ID_RE = re.compile(r"/myymalat-palvelut/(\d+)")
_LINK_ID_RE = re.compile(r"/(\d+)(?:[/?]|$)")
_ITEM_ID_RE = re.compile(r"/tuotteet/(\d{6})")
_GENERIC_LINK_TEXT_RE = re.compile(r"^(MYYMÄLÄ|NOUTOPISTE|NÄYTÄ|LISÄTIEDOT)", re.I)
_ALKO_NAME_RE = re.compile(r"Alko [^\n]+")
_LIST_ADDRESS_RE = re.compile(r"Osoite:\s*([^,]+),\s*(\d{5})\s+([A-ZÄÖÅ][A-ZÄÖÅ-]*)", re.I)
_HOURS_TODAY_RE = re.compile(r"Auki tänään[:\s]*([\d-]+|SULJETTU)", re.I)
_HOURS_TOMORROW_RE = re.compile(r"Auki huomenna[:\s]*([\d-]+|SULJETTU)", re.I)
_PAGE_ADDRESS_RE = re.compile(r"([A-Za-zÄÖÅäöå\s]+\s+\d+[A-Za-z]?),\s*(\d{5})\s+([A-ZÄÖÅ]+)")
_PHONE_RE = re.compile(r"\+358\s*\d+\s*\d+\s*\d+")
_EMAIL_RE = re.compile(r"[a-z]+@alko\.fi", re.I)

# datetime.weekday(): Monday == 0
_DAY_ABBR = ("ma", "ti", "ke", "to", "pe", "la", "su")

LAZY_LOAD_COUNT_JS = (
    "document.querySelectorAll('[class*=\"store\"], [class*=\"Store\"], [data-testid*=\"store\"], "
    ".store-item, .store-card, a[href*=\"/myymalat-palvelut/\"]').length"
)


def is_challenge_page(html: str) -> bool:
    if not html:
        return False
    lowered = html.lower()
    return any(k in lowered for k in _CHALLENGE_KEYWORDS)


def body_text(html: str) -> str:
    """Rough innerText stand-in for when the rendered text is not available"""
    tree = HTMLParser(html)
    for node in tree.css("script, style, noscript"):
        node.decompose()
    if tree.body is None:
        return ""
    return tree.body.text(separator="\n")


def _classes(node: Node) -> set[str]:
    return set((node.attributes.get("class") or "").split())


def _text(node: Optional[Node]) -> str:
    if node is None:
        return ""
    return collapse_ws(node.text(separator=" "))


# --- availability ----------------------------------------------------------

@dataclass
class ScrapedStock:
    outlet_name: str
    outlet_link: str
    quantity: int
    last_updated: str = ""


def classify_stock(quantity: int) -> str:
    if quantity > 5:
        return "in_stock"
    if quantity > 0:
        return "low_stock"
    return "out_of_stock"


def outlet_id_from_link(link: str, outlet_name: str) -> str:
    match = _LINK_ID_RE.search(link or "")
    if match:
        return match.group(1)
    return re.sub(r"\s", "_", outlet_name)


def parse_availability(html: str) -> List[ScrapedStock]:
    """li.store-item.stockInStore rows; quantity is the lower bound of ranges like "11-15"."""
    tree = HTMLParser(html)
    seen: set[str] = set()
    rows: List[ScrapedStock] = []

    for item in tree.css("li.store-item.stockInStore"):
        name = _text(item.css_first("span.store-in-stock, span.option-text"))
        if not name or name in seen:
            continue
        seen.add(name)

        quantity = first_int(_text(item.css_first("span.number-in-stock")) or "0")
        link_node = item.css_first("a")
        link = ""
        if link_node is not None:
            link = link_node.attributes.get("data-url") or link_node.attributes.get("href") or ""

        rows.append(ScrapedStock(outlet_name=name, outlet_link=link, quantity=quantity))

    return rows


def build_availability_records(item_id: str, rows: List[ScrapedStock], checked_at: datetime) -> List[AvailabilityRecord]:
    records = []
    for row in rows:
        outlet_id = outlet_id_from_link(row.outlet_link, row.outlet_name)
        records.append(AvailabilityRecord(
            id=f"{item_id}_{outlet_id}",
            item_id=item_id,
            outlet_id=outlet_id,
            outlet_name=row.outlet_name,
            outlet_link=row.outlet_link,
            quantity=row.quantity,
            status=classify_stock(row.quantity),
            last_updated=row.last_updated,
            checked_at=checked_at,
        ))
    return records


# --- enrichment ------------------------------------------------------------

def parse_enrichment(html: str, text: Optional[str] = None) -> EnrichmentData:
    """Free-text sections from the rendered text, tags and smokiness from markup.

    Pairing and certificate tags come from disjoint marker classes: a
    pdp-symbol-link that is also an ecological certificate is a certificate only.
    """
    tree = HTMLParser(html)
    text = text if text is not None else body_text(html)
    data = EnrichmentData()

    match = _TASTE_RE.search(text)
    if match:
        data.taste_profile = match.group(1).strip()

    match = _USAGE_RE.search(text)
    if match:
        data.usage_tips = truncate(match.group(1), 500)

    match = _SERVING_RE.search(text)
    if match:
        data.serving_suggestion = truncate(match.group(1), 500)

    match = _INGREDIENTS_RE.search(text)
    if match:
        data.ingredients = truncate(match.group(1), 1000)

    smokiness = tree.css_first(".smokiness")
    if smokiness is not None:
        label = _text(smokiness.css_first(".smokiness-label"))
        data.smokiness = min(4, len(smokiness.css(".smokiness-icon.smokey")))
        data.smokiness_label = label or SMOKINESS_LABELS[data.smokiness]

    for node in tree.css(".ecological.certificate.link-tooltip[aria-label]"):
        label = (node.attributes.get("aria-label") or "").strip()
        if label and label not in data.certificates:
            data.certificates.append(label)

    for node in tree.css("a.pdp-symbol-link[aria-label]"):
        if {"ecological", "certificate"} <= _classes(node):
            continue
        label = (node.attributes.get("aria-label") or "").strip()
        if label and label not in data.food_pairings:
            data.food_pairings.append(label)

    return data


# --- outlets ---------------------------------------------------------------

def _split_address(street: str, postal_code: str, city: str) -> tuple[str, str, str]:
    return collapse_ws(street), postal_code or "", collapse_ws(city)


def parse_outlet_list(html: str, now: datetime) -> List[Outlet]:
    """div.store-list-item entries of the store listing page, deduplicated by id"""
    tree = HTMLParser(html)
    seen: set[str] = set()
    outlets: List[Outlet] = []

    for item in tree.css("div.store-list-item"):
        links = item.css('a[href*="/myymalat-palvelut/"]')
        if not links:
            continue
        link = (links[0].attributes.get("href") or "").split("?")[0]
        match = _OUTLET_ID_RE.search(link)
        if not match:
            continue
        outlet_id = match.group(1)
        if outlet_id in seen:
            continue

        name = ""
        for node in links:
            label = _text(node)
            if label and not _GENERIC_LINK_TEXT_RE.match(label) and label.startswith("Alko"):
                name = label
                break

        item_text = item.text(separator="\n")
        if not name:
            alko_match = _ALKO_NAME_RE.search(item_text)
            if alko_match:
                name = collapse_ws(alko_match.group(0))
        if not name:
            continue

        flat = collapse_ws(item_text)
        street = postal_code = city = ""
        address_match = _LIST_ADDRESS_RE.search(flat)
        if address_match:
            street, postal_code, city = _split_address(*address_match.groups())

        today = _HOURS_TODAY_RE.search(flat)
        tomorrow = _HOURS_TOMORROW_RE.search(flat)

        seen.add(outlet_id)
        outlets.append(Outlet(
            id=outlet_id,
            name=name,
            city=city,
            address=street,
            postal_code=postal_code,
            store_link=link,
            opening_hours_today=today.group(1).strip() if today else None,
            opening_hours_tomorrow=tomorrow.group(1).strip() if tomorrow else None,
            updated_at=now,
        ))

    return outlets


def extract_outlet_links(html: str) -> List[str]:
    """Unique "/myymalat-palvelut/<id>" paths on a page"""
    tree = HTMLParser(html)
    seen: set[str] = set()
    links: List[str] = []
    for node in tree.css('a[href*="/myymalat-palvelut/"]'):
        match = _OUTLET_ID_RE.search(node.attributes.get("href") or "")
        if match and match.group(1) not in seen:
            seen.add(match.group(1))
            links.append(f"/myymalat-palvelut/{match.group(1)}")
    return links


def parse_outlet_page(html: str, link: str, now: datetime, text: Optional[str] = None) -> Optional[Outlet]:
    """Single outlet page: name, address, phone, email and today's hours from the weekly schedule"""
    id_match = _OUTLET_ID_RE.search(link)
    if not id_match:
        return None

    tree = HTMLParser(html)
    name = _text(tree.css_first('h1, [class*="storeName"], [class*="store-name"]')).split(",")[0].strip()
    if not name:
        return None

    text = text if text is not None else body_text(html)

    street = postal_code = city = ""
    address_match = _PAGE_ADDRESS_RE.search(text)
    if address_match:
        street, postal_code, city = _split_address(*address_match.groups())

    phone_match = _PHONE_RE.search(text)
    email_match = _EMAIL_RE.search(text)

    day = f"{_DAY_ABBR[now.weekday()]}\\s+{now.day:02d}\\.{now.month:02d}"
    hours_match = re.search(rf"{day}\s+(\d+-\d+|SULJETTU)", text, re.I)

    return Outlet(
        id=id_match.group(1),
        name=name,
        city=city,
        address=street,
        postal_code=postal_code,
        store_link=link,
        phone=collapse_ws(phone_match.group(0)) if phone_match else None,
        email=email_match.group(0) if email_match else None,
        opening_hours_today=hours_match.group(1) if hours_match else None,
        opening_hours_tomorrow=None,
        updated_at=now,
    )


# --- tag search ------------------------------------------------------------

# the site serves at most 48 items per listing page
MAX_PAGE_SIZE = 48


def build_tag_search_url(tag_id: str, limit: int) -> str:
    params = quote(f"@QueryTerm=*&{tag_id}&OnlineFlag=1", safe="")
    page_size = max(1, min(limit, MAX_PAGE_SIZE))
    return f"{ALKO_BASE_URL}/tuotteet/tuotelistaus?SearchTerm=*&PageSize={page_size}&SearchParameter={params}"


def extract_item_ids(html: str) -> List[str]:
    tree = HTMLParser(html)
    seen: set[str] = set()
    ids: List[str] = []
    for node in tree.css('a[href*="/tuotteet/"]'):
        match = _ITEM_ID_RE.search(node.attributes.get("href") or "")
        if match and match.group(1) not in seen:
            seen.add(match.group(1))
            ids.append(match.group(1))
    return ids
