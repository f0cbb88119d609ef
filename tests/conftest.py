import asyncio
from pathlib import Path
from typing import Any
from unittest.mock import AsyncMock

import pytest
from faker import Faker

from src.freegames.core.config import AppConfig, ConfigLoader
from src.freegames.services.exceptions import SessionClosedError
from src.freegames.services.handoff.cookie_store import Cookie

fake = Faker()


class FakeSession:
    """In-memory AutomationSession for driving the handoff core without a browser."""

    def __init__(self, jar: list[Cookie] | None = None, portal_url: str = "http://localhost:3000/portal/abc") -> None:
        self.jar = list(jar or [])
        self.portal_url = portal_url
        self.portal_open = False
        self.portal_close_count = 0
        self.closed = False
        self.close_count = 0
        self.visited: list[str] = []
        self.waited_for: list[str] = []
        self.diagnostics: list[Path] = []
        self.signal = asyncio.Event()
        self._closed = asyncio.Event()
        self.on_signal = None
        self.fail_get_cookies: Exception | None = None
        self.fail_set_cookies: Exception | None = None
        self.fail_capture: Exception | None = None

    async def get_cookies(self) -> list[Cookie]:
        if self.fail_get_cookies:
            raise self.fail_get_cookies
        return list(self.jar)

    async def set_cookies(self, cookies: list[Cookie]) -> None:
        if self.fail_set_cookies:
            raise self.fail_set_cookies
        self.jar.extend(cookies)

    async def goto(self, url: str) -> None:
        self.visited.append(url)

    async def expose_portal(self) -> str:
        self.portal_open = True
        return self.portal_url

    async def close_portal(self) -> None:
        self.portal_open = False
        self.portal_close_count += 1

    async def wait_for_human_signal(self, selector: str) -> None:
        self.waited_for.append(selector)
        signal = asyncio.ensure_future(self.signal.wait())
        closed = asyncio.ensure_future(self._closed.wait())
        try:
            done, _ = await asyncio.wait({signal, closed}, return_when=asyncio.FIRST_COMPLETED)
        finally:
            for task in (signal, closed):
                if not task.done():
                    task.cancel()
        if signal in done:
            if self.on_signal:
                self.on_signal()
            return
        raise SessionClosedError("Browser session closed while waiting for verification")

    async def capture_diagnostic(self, path: Path) -> None:
        if self.fail_capture:
            raise self.fail_capture
        path.write_bytes(b"\x89PNG fake")
        self.diagnostics.append(path)

    async def close(self) -> None:
        self.closed = True
        self.close_count += 1
        self._closed.set()


class FakeSessionFactory:
    def __init__(self, session: FakeSession | None = None) -> None:
        self.session = session
        self.opened: list[FakeSession] = []

    async def open(self) -> FakeSession:
        session = self.session or FakeSession()
        self.opened.append(session)
        return session


class FakeClock:
    def __init__(self, now: float = 1000.0) -> None:
        self.now = now

    def __call__(self) -> float:
        return self.now


@pytest.fixture
def email() -> str:
    return fake.unique.email()


@pytest.fixture
def mock_redis():
    """Mock Redis client."""
    redis = AsyncMock()
    redis.get.return_value = None
    redis.set.return_value = True
    redis.publish.return_value = 1
    return redis


@pytest.fixture
def fake_session() -> FakeSession:
    return FakeSession()


@pytest.fixture
def session_factory(fake_session: FakeSession) -> FakeSessionFactory:
    return FakeSessionFactory(fake_session)


@pytest.fixture
def fake_clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def make_config():
    def _make(**data: Any) -> AppConfig:
        return ConfigLoader.from_dict(data)

    return _make


@pytest.fixture(autouse=True)
def _clear_config_cache():
    ConfigLoader.clear_cache()
    yield
    ConfigLoader.clear_cache()


@pytest.fixture
def make_session():
    """FakeSession class, for tests that need more than one session."""
    return FakeSession
