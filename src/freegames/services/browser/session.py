"""
Browser automation sessions.

``AutomationSession`` is the capability the handoff core needs from a
browser; ``NodriverSession`` is the concrete implementation on top of
nodriver (undetected Chrome over CDP).

Usage:
    factory = NodriverSessionFactory(portal_server)
    session = await factory.open()
    await session.set_cookies(cookies)
    await session.goto("https://store.epicgames.com")
    url = await session.expose_portal()
    await session.wait_for_human_signal("#complete")
    await session.close()
"""

from __future__ import annotations

import asyncio
import logging
from pathlib import Path
from typing import TYPE_CHECKING, Any, Protocol, runtime_checkable

from ...core.config import settings
from ..exceptions import SessionClosedError
from ..handoff.cookie_store import Cookie

if TYPE_CHECKING:
    from .portal import PortalServer

logger = logging.getLogger(__name__)

SIGNAL_POLL_SECONDS = 2.0


@runtime_checkable
class AutomationSession(Protocol):
    async def get_cookies(self) -> list[Cookie]: ...

    async def set_cookies(self, cookies: list[Cookie]) -> None: ...

    async def goto(self, url: str) -> None: ...

    async def expose_portal(self) -> str:
        """Make the live view reachable and return its URL."""
        ...

    async def close_portal(self) -> None: ...

    async def wait_for_human_signal(self, selector: str) -> None:
        """Return once ``selector`` is present. Raises ``SessionClosedError`` if the session closes first."""
        ...

    async def capture_diagnostic(self, path: Path) -> None: ...

    async def close(self) -> None: ...


class SessionFactory(Protocol):
    async def open(self) -> AutomationSession: ...


def _to_cookie_param(cookie: Cookie) -> Any:
    from nodriver import cdp

    return cdp.network.CookieParam(
        name=cookie.name,
        value=cookie.value,
        domain=cookie.domain,
        path=cookie.path,
        secure=cookie.secure,
        http_only=cookie.http_only,
        same_site=cdp.network.CookieSameSite(cookie.same_site) if cookie.same_site else None,
        expires=cdp.network.TimeSinceEpoch(cookie.expires) if cookie.expires is not None else None,
    )


def _from_cdp_cookie(cookie: Any) -> Cookie:
    same_site = cookie.same_site.value if cookie.same_site is not None else None
    return Cookie(
        name=cookie.name,
        value=cookie.value,
        domain=cookie.domain,
        path=cookie.path,
        # session cookies come back with expires=-1
        expires=cookie.expires if cookie.expires and cookie.expires > 0 else None,
        http_only=cookie.http_only,
        secure=cookie.secure,
        same_site=same_site,
    )


class NodriverSession:
    def __init__(self, browser: Any, portal: PortalServer | None = None, label: str | None = None) -> None:
        self._browser = browser
        self._portal = portal
        self.label = label
        self._portal_token: str | None = None
        self._closed = asyncio.Event()

    @property
    def tab(self) -> Any:
        return self._browser.main_tab

    @property
    def is_closed(self) -> bool:
        return self._closed.is_set()

    def _ensure_open(self) -> None:
        if self._closed.is_set():
            raise SessionClosedError("Browser session is closed")

    async def get_cookies(self) -> list[Cookie]:
        self._ensure_open()
        cdp_cookies = await self._browser.cookies.get_all(requests_cookie_format=False)
        return [_from_cdp_cookie(c) for c in cdp_cookies]

    async def set_cookies(self, cookies: list[Cookie]) -> None:
        self._ensure_open()
        if not cookies:
            return
        await self._browser.cookies.set_all([_to_cookie_param(c) for c in cookies])
        logger.debug(f"[SESSION] Seeded {len(cookies)} cookies")

    async def goto(self, url: str) -> None:
        self._ensure_open()
        logger.debug(f"[SESSION] Navigating to: {url}")
        await asyncio.wait_for(self.tab.get(url), timeout=settings.BROWSER_NAVIGATION_TIMEOUT)

    async def expose_portal(self) -> str:
        self._ensure_open()
        if self._portal is None:
            raise SessionClosedError("No portal server attached to this session")
        await self._portal.start()
        if self._portal_token is None:
            self._portal_token = self._portal.register(self.tab, label=self.label)
        return self._portal.url_for(self._portal_token)

    async def close_portal(self) -> None:
        if self._portal is not None and self._portal_token is not None:
            self._portal.unregister(self._portal_token)
            self._portal_token = None

    async def _poll_selector(self, selector: str) -> None:
        # nodriver has no event for a selector appearing; each select() call blocks up to its timeout
        while True:
            try:
                await self.tab.select(selector, timeout=SIGNAL_POLL_SECONDS)
                return
            except asyncio.TimeoutError:
                continue

    async def wait_for_human_signal(self, selector: str) -> None:
        self._ensure_open()
        signal = asyncio.ensure_future(self._poll_selector(selector))
        closed = asyncio.ensure_future(self._closed.wait())
        try:
            done, _ = await asyncio.wait({signal, closed}, return_when=asyncio.FIRST_COMPLETED)
        finally:
            for task in (signal, closed):
                if not task.done():
                    task.cancel()

        if signal in done:
            signal.result()
            logger.debug(f"[SESSION] Signal element present: {selector}")
            return
        raise SessionClosedError("Browser session closed while waiting for verification", {"selector": selector})

    async def capture_diagnostic(self, path: Path) -> None:
        self._ensure_open()
        await self.tab.save_screenshot(str(path), format="png")

    async def close(self) -> None:
        if self._closed.is_set():
            return
        self._closed.set()
        await self.close_portal()
        try:
            self._browser.stop()
            logger.debug("[SESSION] Browser stopped")
        except Exception as e:
            logger.warning(f"[SESSION] Error stopping browser: {e}")


class NodriverSessionFactory:
    def __init__(self, portal: PortalServer | None = None) -> None:
        self._portal = portal

    async def open(self) -> NodriverSession:
        import nodriver as uc

        browser = await uc.start(
            headless=settings.BROWSER_HEADLESS,
            browser_executable_path=settings.BROWSER_EXECUTABLE_PATH,
            browser_args=list(settings.BROWSER_ARGS) or None,
        )
        # main_tab is only populated after the first navigation
        await browser.get("about:blank")
        logger.debug("[SESSION] Browser started")
        return NodriverSession(browser, portal=self._portal)


__all__ = [
    "AutomationSession",
    "NodriverSession",
    "NodriverSessionFactory",
    "SessionFactory",
]
