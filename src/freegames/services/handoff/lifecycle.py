"""
Automation session lifecycle.

Opens a browser session seeded with the account's stored cookies plus the
verification bypass cookies, and guarantees that on every exit path the
jar is read back and persisted and the browser is released.

States: Closed -> Opening -> Ready -> (InUse <-> AwaitingVerification) -> Closing -> Closed

Usage:
    lifecycle = SessionLifecycle(cookie_store, bypass, session_factory, config_dir="config")

    async with lifecycle.session("a@example.com") as session:
        await session.goto(...)

    result = await lifecycle.run_with_session("a@example.com", claim_games)
"""

from __future__ import annotations

import logging
from collections.abc import AsyncIterator, Awaitable, Callable
from contextlib import asynccontextmanager
from datetime import UTC, datetime
from pathlib import Path
from typing import TYPE_CHECKING, TypeVar

from ..exceptions import SessionIOError
from .cookie_store import CookieStore, merge_cookies

if TYPE_CHECKING:
    from ..browser.session import AutomationSession, SessionFactory
    from .bypass import HcaptchaCookieProvider

logger = logging.getLogger(__name__)

T = TypeVar("T")


class SessionLifecycle:
    def __init__(
        self,
        cookie_store: CookieStore,
        bypass_provider: HcaptchaCookieProvider,
        session_factory: SessionFactory,
        config_dir: str | Path,
    ) -> None:
        self.cookie_store = cookie_store
        self.bypass_provider = bypass_provider
        self.session_factory = session_factory
        self.config_dir = Path(config_dir)

    async def open(self, account: str) -> AutomationSession:
        """Open a seeded session. Nothing is left running if any step fails."""
        logger.debug(f"[SESSION] Opening session for {account}")
        bypass_cookies = await self.bypass_provider.fetch()
        stored_cookies = await self.cookie_store.load(account)

        session = await self.session_factory.open()
        try:
            await session.set_cookies(merge_cookies(stored_cookies, bypass_cookies))
        except Exception as e:
            try:
                await self.on_error(e, session, account)
            finally:
                await session.close()

        logger.info(
            f"[SESSION] Session ready for {account} "
            f"({len(stored_cookies)} stored + {len(bypass_cookies)} bypass cookies)"
        )
        return session

    async def close(
        self,
        session: AutomationSession,
        account: str,
        original_error: BaseException | None = None,
    ) -> None:
        """Persist the jar and release the browser.

        A persistence failure raises ``SessionIOError`` on a clean exit. When
        ``original_error`` is in flight it is logged and attached to that error
        as a note instead, so it is never what the caller sees.
        """
        try:
            cookies = await session.get_cookies()
            await self.cookie_store.save(account, cookies)
            logger.debug(f"[SESSION] Persisted {len(cookies)} cookies for {account}")
        except Exception as e:
            io_error = e if isinstance(e, SessionIOError) else SessionIOError(
                f"Could not persist cookies for {account}", account=account, operation="teardown", cause=e
            )
            if original_error is None:
                if io_error is e:
                    raise
                raise io_error from e
            logger.error(
                f"[SESSION] Cookie persistence failed during error teardown: {io_error}",
                extra={"account": account},
            )
            original_error.add_note(f"Additionally, session teardown failed: {io_error}")
        finally:
            await session.close()

    async def on_error(self, err: BaseException, session: AutomationSession, account: str) -> None:
        """Capture a screenshot for ``err``, then re-raise it unchanged."""
        error_file = self.config_dir / f"error-{datetime.now(UTC).strftime('%Y-%m-%dT%H-%M-%S.%fZ')}.png"
        try:
            self.config_dir.mkdir(parents=True, exist_ok=True)
            await session.capture_diagnostic(error_file)
            logger.error(
                f"[SESSION] Encountered an error during browser automation. Saved a screenshot for debugging "
                f"purposes to: {error_file}",
                extra={"account": account, "error_file": str(error_file)},
            )
        except Exception as capture_error:
            logger.error(
                f"[SESSION] Encountered an error during browser automation; screenshot capture also failed: "
                f"{capture_error}",
                extra={"account": account},
            )
        raise err

    @asynccontextmanager
    async def session(self, account: str) -> AsyncIterator[AutomationSession]:
        session = await self.open(account)
        try:
            yield session
        except Exception as e:
            try:
                await self.on_error(e, session, account)
            finally:
                await self.close(session, account, original_error=e)
        except BaseException as e:
            await self.close(session, account, original_error=e)
            raise
        else:
            await self.close(session, account)

    async def run_with_session(self, account: str, fn: Callable[[AutomationSession], Awaitable[T]]) -> T:
        async with self.session(account) as session:
            return await fn(session)


__all__ = ["SessionLifecycle"]
