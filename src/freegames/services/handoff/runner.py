"""Runs one automation script per account, concurrently and in isolation."""

from __future__ import annotations

import asyncio
import logging
import time
from collections.abc import Awaitable, Callable, Sequence
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any

from ...core.version import log_version_on_error

if TYPE_CHECKING:
    from ..browser.session import AutomationSession
    from .lifecycle import SessionLifecycle

logger = logging.getLogger(__name__)

AccountScript = Callable[["AutomationSession", str], Awaitable[Any]]


@dataclass
class AccountRunResult:
    account: str
    success: bool
    result: Any = None
    error: BaseException | None = None
    duration_seconds: float = 0.0


@dataclass
class RunSummary:
    results: list[AccountRunResult] = field(default_factory=list)

    @property
    def succeeded(self) -> list[AccountRunResult]:
        return [r for r in self.results if r.success]

    @property
    def failed(self) -> list[AccountRunResult]:
        return [r for r in self.results if not r.success]

    def get(self, account: str) -> AccountRunResult | None:
        return next((r for r in self.results if r.account == account), None)


class AccountRunner:
    """One task per account. A failing account never cancels the others.

    Usage:
        runner = AccountRunner(lifecycle)
        summary = await runner.run_all(["a@example.com", "b@example.com"], claim_free_games)
    """

    def __init__(self, lifecycle: SessionLifecycle) -> None:
        self.lifecycle = lifecycle

    async def _run_one(self, account: str, script: AccountScript) -> AccountRunResult:
        start_time = time.monotonic()
        logger.info(f"[RUNNER] Starting run for {account}")
        result = await self.lifecycle.run_with_session(account, lambda session: script(session, account))
        return AccountRunResult(
            account=account,
            success=True,
            result=result,
            duration_seconds=time.monotonic() - start_time,
        )

    async def run_all(self, accounts: Sequence[str], script: AccountScript) -> RunSummary:
        results = await asyncio.gather(
            *(self._run_one(account, script) for account in accounts),
            return_exceptions=True,
        )

        summary = RunSummary()
        for account, result in zip(accounts, results, strict=True):
            if isinstance(result, asyncio.CancelledError):
                raise result
            if isinstance(result, BaseException):
                logger.error(
                    f"[RUNNER] Run failed for {account}: {result}",
                    extra={"account": account, "reason": getattr(result, "reason", None)},
                )
                summary.results.append(AccountRunResult(account=account, success=False, error=result))
            else:
                summary.results.append(result)

        if summary.failed:
            log_version_on_error()
        logger.info(f"[RUNNER] Finished: {len(summary.succeeded)} succeeded, {len(summary.failed)} failed")
        return summary


__all__ = ["AccountRunResult", "AccountRunner", "AccountScript", "RunSummary"]
