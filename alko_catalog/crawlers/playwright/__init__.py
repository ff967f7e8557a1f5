"""Playwright module for the catalog scrapers."""

from .browser import BrowserSession, build_launch_args
from .pages import configure_page

__all__ = ["BrowserSession", "build_launch_args", "configure_page"]
