"""
Unit Tests for SessionLifecycle

Tests for:
- open: bypass + stored cookies seeded, failures leave nothing running
- close: jar persisted on every exit path
- on_error: diagnostic screenshot, original error re-raised
"""

from unittest.mock import AsyncMock

import pytest

from src.freegames.services.exceptions import SessionIOError, UpstreamUnavailable, VerificationTimeout
from src.freegames.services.handoff.cookie_store import Cookie, FileCookieStore
from src.freegames.services.handoff.lifecycle import SessionLifecycle

SID = Cookie(name="sid", value="xyz", domain="epicgames.com")
VERIFIED = Cookie(name="verified", value="1", domain="epicgames.com")
HC = Cookie(name="hc_accessibility", value="token", domain=".hcaptcha.com")


@pytest.fixture
def cookie_store(tmp_path):
    return FileCookieStore(tmp_path)


@pytest.fixture
def bypass_provider():
    provider = AsyncMock()
    provider.fetch.return_value = []
    return provider


@pytest.fixture
def lifecycle(cookie_store, bypass_provider, session_factory, tmp_path):
    return SessionLifecycle(cookie_store, bypass_provider, session_factory, config_dir=tmp_path)


# ============================================================================
# open Tests
# ============================================================================


class TestOpen:
    """Tests for SessionLifecycle.open."""

    @pytest.mark.asyncio
    async def test_seeds_stored_then_bypass_cookies(self, lifecycle, cookie_store, bypass_provider, fake_session):
        await cookie_store.save("a@example.com", [SID])
        bypass_provider.fetch.return_value = [HC]

        session = await lifecycle.open("a@example.com")

        assert session is fake_session
        assert fake_session.jar == [SID, HC]

    @pytest.mark.asyncio
    async def test_bypass_unavailable_aborts_before_browser(self, lifecycle, bypass_provider, session_factory):
        bypass_provider.fetch.side_effect = UpstreamUnavailable("down", service="hcaptcha")

        with pytest.raises(UpstreamUnavailable):
            await lifecycle.open("a@example.com")

        assert session_factory.opened == []

    @pytest.mark.asyncio
    async def test_seed_failure_closes_session(self, lifecycle, fake_session, tmp_path):
        fake_session.fail_set_cookies = RuntimeError("cdp error")

        with pytest.raises(RuntimeError, match="cdp error"):
            await lifecycle.open("a@example.com")

        assert fake_session.closed
        assert len(fake_session.diagnostics) == 1


# ============================================================================
# Scoped session Tests
# ============================================================================


class TestScopedSession:
    """Tests for session() / run_with_session."""

    @pytest.mark.asyncio
    async def test_teardown_persists_cookies_added_during_run(self, lifecycle, cookie_store):
        await cookie_store.save("a@example.com", [SID])

        async def script(session):
            await session.set_cookies([VERIFIED])
            return "claimed"

        result = await lifecycle.run_with_session("a@example.com", script)

        assert result == "claimed"
        assert await cookie_store.load("a@example.com") == [SID, VERIFIED]

    @pytest.mark.asyncio
    async def test_bypass_cookie_seeded_and_persisted_with_new_cookies(
        self, lifecycle, cookie_store, bypass_provider, fake_session
    ):
        bypass_provider.fetch.return_value = [SID]
        seeded = []

        async def script(session):
            seeded.extend(await session.get_cookies())
            await session.set_cookies([VERIFIED])

        assert await cookie_store.load("a@example.com") == []

        await lifecycle.run_with_session("a@example.com", script)

        assert seeded == [SID]
        assert await cookie_store.load("a@example.com") == [SID, VERIFIED]
        assert fake_session.closed

    @pytest.mark.asyncio
    async def test_session_closed_after_success(self, lifecycle, fake_session):
        async with lifecycle.session("a@example.com"):
            assert not fake_session.closed

        assert fake_session.close_count == 1

    @pytest.mark.asyncio
    async def test_error_path_persists_and_captures(self, lifecycle, cookie_store, fake_session, tmp_path):
        async def script(session):
            await session.set_cookies([VERIFIED])
            raise VerificationTimeout("a@example.com", "LOGIN", 1)

        with pytest.raises(VerificationTimeout):
            await lifecycle.run_with_session("a@example.com", script)

        assert await cookie_store.load("a@example.com") == [VERIFIED]
        (screenshot,) = fake_session.diagnostics
        assert screenshot.parent == tmp_path
        assert screenshot.name.startswith("error-")
        assert screenshot.suffix == ".png"
        assert fake_session.closed

    @pytest.mark.asyncio
    async def test_persist_failure_noted_on_original_error(self, lifecycle, fake_session):
        fake_session.fail_get_cookies = RuntimeError("target closed")

        async def script(session):
            raise ValueError("script broke")

        with pytest.raises(ValueError, match="script broke") as exc_info:
            await lifecycle.run_with_session("a@example.com", script)

        assert any("session teardown failed" in note for note in exc_info.value.__notes__)
        assert fake_session.closed

    @pytest.mark.asyncio
    async def test_persist_failure_on_clean_exit_raises(self, lifecycle, fake_session):
        fake_session.fail_get_cookies = RuntimeError("target closed")

        with pytest.raises(SessionIOError) as exc_info:
            async with lifecycle.session("a@example.com"):
                pass

        assert exc_info.value.account == "a@example.com"
        assert fake_session.closed

    @pytest.mark.asyncio
    async def test_capture_failure_does_not_mask_error(self, lifecycle, fake_session, caplog):
        fake_session.fail_capture = RuntimeError("no screenshot")

        with pytest.raises(KeyError):
            async with lifecycle.session("a@example.com"):
                raise KeyError("boom")

        assert "screenshot capture also failed" in caplog.text
        assert fake_session.closed


# ============================================================================
# on_error Tests
# ============================================================================


class TestOnError:
    """Tests for SessionLifecycle.on_error."""

    @pytest.mark.asyncio
    async def test_reraises_unchanged(self, lifecycle, fake_session, caplog):
        err = RuntimeError("original")

        with pytest.raises(RuntimeError) as exc_info:
            await lifecycle.on_error(err, fake_session, "a@example.com")

        assert exc_info.value is err
        (record,) = [r for r in caplog.records if getattr(r, "error_file", None)]
        assert record.account == "a@example.com"
        assert record.error_file == str(fake_session.diagnostics[0])
