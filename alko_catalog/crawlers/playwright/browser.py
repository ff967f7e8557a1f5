"""Playwright browser session with basic anti-automation countermeasures.

Each scraper owns one BrowserSession (browser + context + single page).
Launch is retried with a bounded wait, like any other flaky network step.
"""

from __future__ import annotations

import asyncio
import platform
from typing import Optional

from playwright.async_api import async_playwright, Browser, BrowserContext, Page, Playwright

from alko_catalog.core.config import Settings, settings as default_settings
from alko_catalog.core.logging import logger
from alko_catalog.core.exceptions import BrowserException
from alko_catalog.crawlers.playwright.pages import configure_page


# masks navigator.webdriver and fakes the chrome runtime object headless Chromium lacks
STEALTH_SCRIPT = """
Object.defineProperty(navigator, 'webdriver', {
  get: () => undefined,
});
window.chrome = { runtime: {} };
"""


def build_launch_args() -> list[str]:
    args: list[str] = [
        "--disable-blink-features=AutomationControlled",
        "--disable-features=IsolateOrigins,site-per-process",
        "--disable-dev-shm-usage",
        "--disable-gpu",
        "--disable-background-networking",
        "--disable-default-apps",
        "--disable-extensions",
        "--disable-sync",
        "--disable-translate",
        "--metrics-recording-only",
        "--no-first-run",
        "--safebrowsing-disable-auto-update",
    ]

    if platform.system().lower() == "linux":
        args.extend(["--no-sandbox", "--disable-setuid-sandbox"])

    deduped: list[str] = []
    seen: set[str] = set()
    for a in args:
        if a not in seen:
            seen.add(a)
            deduped.append(a)
    return deduped


class BrowserSession:
    """One Chromium instance with a fingerprinted context and a single page"""

    def __init__(
        self,
        *,
        locale: str,
        timezone_id: Optional[str] = None,
        name: str = "Playwright",
        settings: Optional[Settings] = None,
    ) -> None:
        self.settings = settings or default_settings
        self.locale = locale
        self.timezone_id = timezone_id
        self.name = name
        self._playwright: Optional[Playwright] = None
        self._browser: Optional[Browser] = None
        self._context: Optional[BrowserContext] = None
        self._page: Optional[Page] = None

    @property
    def is_open(self) -> bool:
        try:
            return self._browser is not None and self._browser.is_connected() and self._page is not None
        except Exception:
            return False

    @property
    def page(self) -> Page:
        if self._page is None:
            raise BrowserException(f"[{self.name}] page requested before start()")
        return self._page

    async def start(self) -> Page:
        """Launch browser/context/page if needed and return the page"""
        if self.is_open:
            return self._page  # type: ignore[return-value]

        await self.close()

        retries = max(1, self.settings.crawler_max_retries)
        last_err: Optional[Exception] = None
        for attempt in range(1, retries + 1):
            try:
                logger.info(f"[{self.name}] Launching browser (attempt {attempt}/{retries})...")
                pw = await asyncio.wait_for(async_playwright().start(), timeout=20.0)
                self._playwright = pw

                browser = await asyncio.wait_for(
                    pw.chromium.launch(
                        headless=self.settings.crawler_headless,
                        args=build_launch_args(),
                        timeout=self.settings.crawler_timeout_ms,
                    ),
                    timeout=25.0,
                )
                self._browser = browser

                context_kwargs = {
                    "user_agent": self.settings.crawler_user_agent,
                    "viewport": {"width": 1920, "height": 1080},
                    "locale": self.locale,
                }
                if self.timezone_id:
                    context_kwargs["timezone_id"] = self.timezone_id
                self._context = await browser.new_context(**context_kwargs)

                page = await self._context.new_page()
                await page.add_init_script(STEALTH_SCRIPT)
                await configure_page(page, self.settings)
                self._page = page

                logger.info(f"[{self.name}] Browser launched")
                return page
            except Exception as e:
                last_err = e
                logger.error(f"[{self.name}] Failed to launch browser (attempt {attempt}/{retries}): {type(e).__name__}: {e}")
                await self.close()
                wait_time = min(2.0 * attempt, 10.0)
                logger.info(f"[{self.name}] Waiting {wait_time:.1f}s before retry...")
                await asyncio.sleep(wait_time)

        raise BrowserException(f"[{self.name}] Browser launch failed after retries: {last_err}")

    async def close(self) -> None:
        """Tear everything down; safe to call repeatedly"""
        for closer in (
            self._context.close if self._context is not None else None,
            self._browser.close if self._browser is not None else None,
            self._playwright.stop if self._playwright is not None else None,
        ):
            if closer is None:
                continue
            try:
                await closer()
            except Exception as e:
                logger.debug(f"[{self.name}] close step failed: {type(e).__name__}: {e}")
        self._page = None
        self._context = None
        self._browser = None
        self._playwright = None
