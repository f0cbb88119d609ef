"""Unit Tests for AccountRunner isolation."""

import asyncio
from unittest.mock import AsyncMock, patch

import pytest

from src.freegames.schemas.notification import NotificationReason
from src.freegames.services.exceptions import VerificationTimeout
from src.freegames.services.handoff.cookie_store import Cookie, FileCookieStore
from src.freegames.services.handoff.lifecycle import SessionLifecycle
from src.freegames.services.handoff.runner import AccountRunner


class PerAccountFactory:
    """Hands out a fresh FakeSession per open()."""

    def __init__(self, session_cls):
        self.session_cls = session_cls
        self.opened = []

    async def open(self):
        session = self.session_cls()
        self.opened.append(session)
        return session


@pytest.fixture
def per_account_factory(make_session):
    return PerAccountFactory(make_session)


@pytest.fixture
def runner(per_account_factory, tmp_path):
    bypass = AsyncMock()
    bypass.fetch.return_value = []
    lifecycle = SessionLifecycle(FileCookieStore(tmp_path), bypass, per_account_factory, config_dir=tmp_path)
    return AccountRunner(lifecycle)


class TestAccountRunner:
    """Tests for AccountRunner.run_all."""

    @pytest.mark.asyncio
    async def test_all_accounts_succeed(self, runner):
        async def script(session, account):
            return f"claimed for {account}"

        summary = await runner.run_all(["a@example.com", "b@example.com"], script)

        assert [r.account for r in summary.succeeded] == ["a@example.com", "b@example.com"]
        assert summary.get("b@example.com").result == "claimed for b@example.com"
        assert summary.failed == []

    @pytest.mark.asyncio
    async def test_one_timeout_does_not_affect_other(self, runner, per_account_factory):
        async def script(session, account):
            if account == "a@example.com":
                raise VerificationTimeout(account, NotificationReason.LOGIN.value, 1)
            await asyncio.sleep(0.05)
            await session.set_cookies([Cookie(name="verified", value="1", domain="epicgames.com")])
            return "ok"

        with patch("src.freegames.services.handoff.runner.log_version_on_error") as log_version:
            summary = await runner.run_all(["a@example.com", "b@example.com"], script)

        failed = summary.get("a@example.com")
        assert failed.success is False
        assert isinstance(failed.error, VerificationTimeout)
        assert summary.get("b@example.com").result == "ok"
        assert all(session.closed for session in per_account_factory.opened)
        log_version.assert_called_once()

    @pytest.mark.asyncio
    async def test_cookies_saved_per_account(self, runner, tmp_path):
        async def script(session, account):
            await session.set_cookies([Cookie(name="sid", value=account, domain="epicgames.com")])

        await runner.run_all(["a@example.com", "b@example.com"], script)

        store = FileCookieStore(tmp_path)
        assert [c.value for c in await store.load("a@example.com")] == ["a@example.com"]
        assert [c.value for c in await store.load("b@example.com")] == ["b@example.com"]

    @pytest.mark.asyncio
    async def test_failure_logged_with_account(self, runner, caplog):
        async def script(session, account):
            raise RuntimeError("claim page changed")

        with patch("src.freegames.services.handoff.runner.log_version_on_error"):
            await runner.run_all(["a@example.com"], script)

        records = [r for r in caplog.records if r.name.endswith("runner") and r.levelname == "ERROR"]
        assert records[0].account == "a@example.com"
        assert "claim page changed" in records[0].getMessage()
