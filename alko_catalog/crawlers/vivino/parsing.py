"""Vivino search and wine page parsing (selectolax)."""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Optional
from urllib.parse import quote

from selectolax.parser import HTMLParser

from alko_catalog.utils.text import collapse_ws

VIVINO_BASE_URL = "https://www.vivino.com"

HUMAN_VERIFICATION_ERROR = "Vivino requires human verification. Please try again later."
NOT_ENOUGH_RATINGS_ERROR = "Wine found on Vivino but does not have enough ratings yet"
NO_RATING_DATA_ERROR = "Wine page found but rating data could not be extracted"

_WINE_PATH_RE = re.compile(r"/w/\d+")
_COUNT_RE = re.compile(r"[\d,]+")
_CHALLENGE_MARKERS = ("confirm you are human", "captcha")


@dataclass
class WinePageRating:
    wine_name: Optional[str] = None
    winery: Optional[str] = None
    average_rating: Optional[str] = None
    ratings_count: Optional[str] = None

    @property
    def not_enough_ratings(self) -> bool:
        return "not enough" in (self.ratings_count or "").lower()


def is_verification_page(html: str) -> bool:
    lowered = (html or "").lower()
    return any(m in lowered for m in _CHALLENGE_MARKERS)


def build_search_url(name: str, producer: Optional[str] = None) -> str:
    query = f"{producer} {name}" if producer else name
    return f"{VIVINO_BASE_URL}/search/wines?q={quote(query)}"


def absolute_url(href: str) -> str:
    return href if href.startswith("http") else f"{VIVINO_BASE_URL}{href}"


def find_first_wine_link(html: str) -> Optional[str]:
    tree = HTMLParser(html)

    node = tree.css_first('a[data-testid="vintagePageLink"]')
    if node is not None and node.attributes.get("href"):
        return node.attributes["href"]

    for link in tree.css('a[href*="/w/"]'):
        href = link.attributes.get("href") or ""
        if _WINE_PATH_RE.search(href):
            return href

    card = tree.css_first('[class*="wineCard__cardLink"]')
    if card is not None and card.attributes.get("href"):
        return card.attributes["href"]
    return None


def _first_text(tree: HTMLParser, selector: str) -> Optional[str]:
    node = tree.css_first(selector)
    if node is None:
        return None
    return collapse_ws(node.text(separator=" ")) or None


def parse_wine_page(html: str) -> WinePageRating:
    tree = HTMLParser(html)
    return WinePageRating(
        wine_name=_first_text(tree, 'h1, [class*="wineName"]'),
        winery=_first_text(tree, '[class*="winery"], [data-testid="winery"]'),
        average_rating=_first_text(tree, '[class*="vivinoRating_averageValue"], [class*="averageValue"]'),
        ratings_count=_first_text(tree, '[class*="vivinoRating_caption"], [class*="ratingCount"]'),
    )


def parse_rating_value(text: Optional[str]) -> Optional[float]:
    """"4.3" -> 4.3; anything unparseable -> None"""
    if not text:
        return None
    try:
        return float(text.strip().replace(",", "."))
    except ValueError:
        return None


def parse_ratings_count(text: Optional[str]) -> int:
    """"1,234 ratings" -> 1234"""
    if not text:
        return 0
    match = _COUNT_RE.search(text)
    if not match:
        return 0
    digits = match.group(0).replace(",", "")
    return int(digits) if digits else 0
