"""Shared HTTP client (curl_cffi)

- One AsyncSession per process, impersonating a desktop Chrome TLS fingerprint,
  so the price list download survives the site's bot filter.
- Cookies set by a first request are kept by the session and sent on later ones.
- close() on shutdown.
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass, field
from typing import Dict, Optional

from curl_cffi.requests import AsyncSession

from alko_catalog.core.config import Settings, settings as default_settings
from alko_catalog.core.exceptions import NetworkFailure
from alko_catalog.core.logging import logger, sanitize_for_log


@dataclass
class HttpResponse:
    status: int
    content: bytes
    headers: Dict[str, str] = field(default_factory=dict)

    @property
    def ok(self) -> bool:
        return 200 <= self.status < 300

    @property
    def content_type(self) -> str:
        return self.headers.get("content-type", "")


class SharedHttpClient:
    def __init__(self, settings: Optional[Settings] = None) -> None:
        self.settings = settings or default_settings
        self._lock = asyncio.Lock()
        self._session: Optional[AsyncSession] = None

    async def _ensure_session(self) -> AsyncSession:
        async with self._lock:
            if self._session is not None:
                return self._session
            self._session = AsyncSession(
                impersonate=self.settings.crawler_http_impersonate,
                headers=self.default_headers(),
                allow_redirects=True,
                trust_env=False,
            )
            return self._session

    def default_headers(self) -> Dict[str, str]:
        return {
            "User-Agent": self.settings.crawler_user_agent,
            "Accept": "text/html,application/xhtml+xml,application/xml;q=0.9,*/*;q=0.8",
            "Accept-Language": "fi-FI,fi;q=0.9,en;q=0.8",
        }

    async def get(
        self,
        url: str,
        *,
        timeout_s: Optional[float] = None,
        headers: Optional[Dict[str, str]] = None,
    ) -> HttpResponse:
        """GET url; transport errors become NetworkFailure"""
        sess = await self._ensure_session()
        try:
            resp = await sess.get(
                url,
                headers=headers,
                timeout=timeout_s or self.settings.crawler_http_timeout_s,
                allow_redirects=True,
            )
        except Exception as e:
            logger.info(f"[HTTP_CLIENT] GET failed: {type(e).__name__}: {repr(e)}")
            raise NetworkFailure(f"GET {sanitize_for_log(url)}", f"{type(e).__name__}: {e}")

        status = getattr(resp, "status_code", 0) or 0
        content = getattr(resp, "content", b"") or b""
        resp_headers = {str(k).lower(): str(v) for k, v in (getattr(resp, "headers", None) or {}).items()}
        return HttpResponse(status=status, content=content, headers=resp_headers)

    async def close(self) -> None:
        async with self._lock:
            if self._session is None:
                return
            try:
                await self._session.close()
            except Exception as e:
                logger.debug(f"[HTTP_CLIENT] close failed: {type(e).__name__}: {e}")
            self._session = None
