"""Page setup: default timeout and resource blocking."""

from __future__ import annotations

from playwright.async_api import Page

from alko_catalog.core.config import Settings

BLOCKED_RESOURCE_TYPES = {"image", "media", "font"}
BLOCKED_EXTENSIONS = (".png", ".jpg", ".jpeg", ".gif", ".webp", ".woff", ".woff2", ".ttf", ".mp4")


async def configure_page(page: Page, settings: Settings) -> Page:
    page.set_default_timeout(settings.crawler_timeout_ms)

    if not settings.crawler_block_resources:
        return page

    # stylesheets are not blocked
    async def _route_handler(route, request):
        url = (request.url or "").lower().split("?", 1)[0]
        if request.resource_type in BLOCKED_RESOURCE_TYPES or url.endswith(BLOCKED_EXTENSIONS):
            await route.abort()
            return
        await route.continue_()

    await page.route("**/*", _route_handler)
    return page
