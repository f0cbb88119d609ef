"""
hCaptcha accessibility cookie provider.

Signing up at the hCaptcha accessibility page yields a link that, when
visited, sets a cookie letting the holder skip most hCaptcha challenges.
The cookies are fetched once and reused until the earliest one expires.
"""

from __future__ import annotations

import logging
import time
from collections.abc import Callable

import httpx

from ..exceptions import UpstreamUnavailable
from .cookie_store import Cookie

logger = logging.getLogger(__name__)

HCAPTCHA_DOMAIN_MARKER = "hcaptcha"


class HcaptchaCookieProvider:
    def __init__(
        self,
        accessibility_url: str | None,
        transport: httpx.AsyncBaseTransport | None = None,
        timeout: float = 30.0,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self.accessibility_url = accessibility_url
        self.timeout = timeout
        self._transport = transport
        self._clock = clock
        self._cached: list[Cookie] | None = None
        self._cached_until: float = 0.0

    async def fetch(self) -> list[Cookie]:
        if not self.accessibility_url:
            logger.warning("[BYPASS] hcaptchaAccessibilityUrl not configured, captchas are more likely to appear")
            return []

        if self._cached is not None and self._clock() < self._cached_until:
            logger.debug(f"[BYPASS] Reusing {len(self._cached)} cached hCaptcha cookies")
            return list(self._cached)

        cookies = await self._fetch_remote()
        expiries = [c.expires for c in cookies if c.expires is not None]
        if expiries:
            self._cached = cookies
            self._cached_until = min(expiries)
        else:
            self._cached = None
            self._cached_until = 0.0
        return list(cookies)

    async def _fetch_remote(self) -> list[Cookie]:
        logger.debug("[BYPASS] Fetching hCaptcha accessibility cookies")
        try:
            async with httpx.AsyncClient(
                timeout=self.timeout,
                follow_redirects=True,
                transport=self._transport,
            ) as client:
                response = await client.get(self.accessibility_url)
                response.raise_for_status()
                jar = list(client.cookies.jar)
        except httpx.HTTPStatusError as e:
            raise UpstreamUnavailable(
                "hCaptcha accessibility URL returned an error",
                service="hcaptcha",
                status_code=e.response.status_code,
                cause=e,
            ) from e
        except httpx.HTTPError as e:
            raise UpstreamUnavailable("hCaptcha accessibility URL unreachable", service="hcaptcha", cause=e) from e

        cookies = [
            Cookie(
                name=c.name,
                value=c.value or "",
                domain=c.domain,
                path=c.path or "/",
                expires=float(c.expires) if c.expires is not None else None,
                http_only=c.has_nonstandard_attr("HttpOnly"),
                secure=bool(c.secure),
                same_site="None",
            )
            for c in jar
            if HCAPTCHA_DOMAIN_MARKER in c.domain
        ]
        if not cookies:
            logger.warning("[BYPASS] hCaptcha accessibility URL did not set any cookies, the link may have expired")
        else:
            logger.info(f"[BYPASS] Got {len(cookies)} hCaptcha cookies")
        return cookies


__all__ = ["HcaptchaCookieProvider"]
