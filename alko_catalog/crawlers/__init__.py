"""Crawlers for alko.fi (Playwright + curl_cffi) and Vivino ratings."""

from .alko.scraper import AlkoScraper, ScraperState
from .http_client import HttpResponse, SharedHttpClient
from .vivino.scraper import VivinoScraper

__all__ = [
    "AlkoScraper",
    "ScraperState",
    "HttpResponse",
    "SharedHttpClient",
    "VivinoScraper",
]
