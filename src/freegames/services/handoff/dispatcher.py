"""
Notification fan-out.

Resolves which notifiers apply to an account, sends to all of them
concurrently and waits for every one to finish before reporting. A single
failing backend never prevents the others from being tried; only a dispatch
where every backend failed is treated as fatal by the caller.
"""

from __future__ import annotations

import asyncio
import logging
import time
from collections.abc import Callable, Sequence
from dataclasses import dataclass, field
from enum import Enum
from typing import TYPE_CHECKING, Any

from ...schemas.notification import NotificationReason, NotifierConfig
from ..exceptions import NotificationDispatchError
from ..notifiers import NotifierService, create_notifier

if TYPE_CHECKING:
    from ...core.config import AppConfig

logger = logging.getLogger(__name__)


class DispatchStatus(str, Enum):
    NO_NOTIFIERS = "no_notifiers"
    ALL_SUCCEEDED = "all_succeeded"
    PARTIAL_FAILURE = "partial_failure"
    ALL_FAILED = "all_failed"


@dataclass
class NotifierResult:
    notifier: str
    success: bool
    error: BaseException | None = None
    status_code: int | None = None
    elapsed_ms: float = 0.0


@dataclass
class DispatchOutcome:
    account: str
    reason: str
    results: list[NotifierResult] = field(default_factory=list)

    @property
    def succeeded(self) -> list[NotifierResult]:
        return [r for r in self.results if r.success]

    @property
    def failed(self) -> list[NotifierResult]:
        return [r for r in self.results if not r.success]

    @property
    def status(self) -> DispatchStatus:
        if not self.results:
            return DispatchStatus.NO_NOTIFIERS
        if not self.failed:
            return DispatchStatus.ALL_SUCCEEDED
        if not self.succeeded:
            return DispatchStatus.ALL_FAILED
        return DispatchStatus.PARTIAL_FAILURE

    def raise_for_status(self) -> None:
        if self.status == DispatchStatus.ALL_FAILED:
            raise NotificationDispatchError(self)

    def to_dict(self) -> dict[str, Any]:
        return {
            "account": self.account,
            "reason": self.reason,
            "status": self.status.value,
            "succeeded": [r.notifier for r in self.succeeded],
            "failed": {r.notifier: str(r.error) for r in self.failed},
        }


NotifierFactory = Callable[[Any], NotifierService]


class NotificationDispatcher:
    """Sends a notification to every notifier configured for an account.

    Usage:
        dispatcher = NotificationDispatcher(config)
        outcome = await dispatcher.dispatch(url, "a@example.com", NotificationReason.LOGIN)
        outcome.raise_for_status()
    """

    def __init__(self, config: AppConfig, notifier_factory: NotifierFactory = create_notifier) -> None:
        self.config = config
        self._notifier_factory = notifier_factory

    def resolve_notifiers(self, account: str) -> Sequence[NotifierConfig]:
        """Account-level notifiers override the global list when non-empty."""
        account_config = self.config.get_account(account)
        if account_config and account_config.notifiers:
            return account_config.notifiers
        return self.config.notifiers

    async def dispatch(self, url: str, account: str, reason: NotificationReason) -> DispatchOutcome:
        outcome = DispatchOutcome(account=account, reason=reason.value)
        notifier_configs = self.resolve_notifiers(account)

        if not notifier_configs:
            logger.warning(
                "[DISPATCH] No notifiers configured. Open the portal URL from the logs to proceed",
                extra={"account": account, "reason": reason.value},
            )
            return outcome

        # All notifiers are built before any is sent, so a bad config aborts cleanly
        notifiers = [self._notifier_factory(notifier_config) for notifier_config in notifier_configs]

        logger.info(f"[DISPATCH] Sending {reason.value} notification for {account} via {len(notifiers)} notifier(s)")
        outcome.results = list(
            await asyncio.gather(*(self._send_one(notifier, url, account, reason) for notifier in notifiers))
        )

        for result in outcome.failed:
            logger.warning(
                f"[DISPATCH] {result.notifier} notification failed: {result.error}",
                extra={"account": account, "reason": reason.value, "notifier": result.notifier},
            )

        logger.info(
            f"[DISPATCH] {account}: {len(outcome.succeeded)}/{len(outcome.results)} notifier(s) succeeded "
            f"({outcome.status.value})"
        )
        return outcome

    @staticmethod
    async def _send_one(
        notifier: NotifierService,
        url: str,
        account: str,
        reason: NotificationReason,
    ) -> NotifierResult:
        start_time = time.monotonic()
        try:
            await notifier.send_notification(url, account, reason)
        except Exception as e:
            return NotifierResult(
                notifier=notifier.kind,
                success=False,
                error=e,
                status_code=getattr(e, "status_code", None),
                elapsed_ms=(time.monotonic() - start_time) * 1000,
            )
        return NotifierResult(
            notifier=notifier.kind,
            success=True,
            elapsed_ms=(time.monotonic() - start_time) * 1000,
        )


__all__ = [
    "DispatchOutcome",
    "DispatchStatus",
    "NotificationDispatcher",
    "NotifierResult",
]
