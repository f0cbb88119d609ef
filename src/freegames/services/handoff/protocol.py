"""
Verification handoff protocol.

When automation hits a challenge it cannot pass, the live browser view is
exposed (optionally through a public tunnel), every configured notifier is
told where to find it, and the account's task blocks until the human makes
the signal element appear or the deadline passes.

States:
    PENDING -> PORTAL_EXPOSED -> NOTIFIED -> RESOLVED | TIMED_OUT | CANCELLED

Events (Redis pub/sub, optional):
    {"type": "handoff_state_changed", "payload": {...}, "timestamp": "..."}
"""

from __future__ import annotations

import asyncio
import logging
import time
from collections.abc import Callable, Sequence
from dataclasses import dataclass, field
from enum import Enum
from typing import TYPE_CHECKING, Any

from ...schemas.notification import HandoffEvent, HandoffEventType, NotificationReason
from ..exceptions import SessionClosedError, VerificationTimeout
from .dispatcher import DispatchOutcome, NotificationDispatcher

if TYPE_CHECKING:
    from redis.asyncio import Redis

    from ...core.config import AppConfig
    from ..browser.session import AutomationSession, SessionFactory
    from .tunnel import LocaltunnelClient

logger = logging.getLogger(__name__)

NOTIFIER_TEST_COMPLETE_SELECTOR = "#complete"


class HandoffState(str, Enum):
    PENDING = "pending"
    PORTAL_EXPOSED = "portal_exposed"
    NOTIFIED = "notified"
    RESOLVED = "resolved"
    TIMED_OUT = "timed_out"
    CANCELLED = "cancelled"

    @property
    def is_terminal(self) -> bool:
        return self in (HandoffState.RESOLVED, HandoffState.TIMED_OUT, HandoffState.CANCELLED)


@dataclass
class HandoffRecord:
    account: str
    reason: NotificationReason
    state: HandoffState = HandoffState.PENDING
    portal_url: str | None = None
    outcome: DispatchOutcome | None = None
    started_at: float = 0.0
    deadline: float = 0.0
    history: list[HandoffState] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {
            "account": self.account,
            "reason": self.reason.value,
            "state": self.state.value,
            "portal_url": self.portal_url,
            "dispatch": self.outcome.to_dict() if self.outcome else None,
        }


class VerificationHandoff:
    """Hands a live session to a human and waits for them to finish."""

    def __init__(
        self,
        config: AppConfig,
        dispatcher: NotificationDispatcher,
        tunnel: LocaltunnelClient | None = None,
        redis_client: Redis | None = None,
        events_channel: str = "freegames:handoff:events",
        clock: Callable[[], float] = time.monotonic,
        timeout_seconds: float | None = None,
    ) -> None:
        self.config = config
        self.dispatcher = dispatcher
        self.tunnel = tunnel
        self._redis = redis_client
        self.events_channel = events_channel
        self._clock = clock
        self.timeout_seconds = (
            timeout_seconds if timeout_seconds is not None else config.notification_timeout_seconds
        )

    async def _publish_event(self, event_type: HandoffEventType, payload: dict[str, Any]) -> None:
        if self._redis is None:
            return
        try:
            event = HandoffEvent(type=event_type, payload=payload)
            await self._redis.publish(self.events_channel, event.model_dump_json())
        except Exception as e:
            logger.debug(f"[HANDOFF] Failed to publish event: {e}")

    async def _transition(self, record: HandoffRecord, state: HandoffState) -> None:
        if record.state.is_terminal:
            raise RuntimeError(f"Handoff for {record.account} already finished ({record.state.value})")
        record.state = state
        record.history.append(state)
        logger.debug(f"[HANDOFF] {record.account}: {state.value}")
        await self._publish_event(HandoffEventType.STATE_CHANGED, record.to_dict())

    async def _public_url(self, session: AutomationSession) -> str:
        url = await session.expose_portal()
        if self.config.web_portal_config.localtunnel:
            if self.tunnel is None:
                from .tunnel import LocaltunnelClient

                self.tunnel = LocaltunnelClient(self.config.web_portal_config.localtunnel_host)
            url = await self.tunnel.expose(url)
        return url

    async def request_verification_handoff(
        self,
        session: AutomationSession,
        account: str,
        reason: NotificationReason,
        signal_selector: str,
    ) -> HandoffRecord:
        """Block until the human makes ``signal_selector`` appear.

        Raises:
            TunnelUnavailable: the public tunnel could not be opened
            NotificationDispatchError: every notifier failed
            VerificationTimeout: the deadline passed first
            SessionClosedError: the session was torn down while waiting
        """
        record = HandoffRecord(account=account, reason=reason)
        record.history.append(HandoffState.PENDING)

        try:
            record.portal_url = await self._public_url(session)
            await self._transition(record, HandoffState.PORTAL_EXPOSED)
            logger.info(
                f"[HANDOFF] Go to this URL to do something: {record.portal_url}",
                extra={"account": account, "reason": reason.value},
            )

            record.outcome = await self.dispatcher.dispatch(record.portal_url, account, reason)
            await self._publish_event(HandoffEventType.DISPATCHED, record.outcome.to_dict())
            record.outcome.raise_for_status()
            await self._transition(record, HandoffState.NOTIFIED)
            # Deadline counts from NOTIFIED
            record.started_at = self._clock()
            record.deadline = record.started_at + self.timeout_seconds

            await self._await_signal(session, record, signal_selector)
            await self._transition(record, HandoffState.RESOLVED)
            logger.info(f"[HANDOFF] Verification completed for {account}")
            return record
        finally:
            await session.close_portal()

    async def _await_signal(self, session: AutomationSession, record: HandoffRecord, selector: str) -> None:
        remaining = record.deadline - self._clock()
        try:
            if remaining <= 0:
                raise asyncio.TimeoutError
            await asyncio.wait_for(session.wait_for_human_signal(selector), timeout=remaining)
            # The deadline itself is already too late
            if self._clock() >= record.deadline:
                raise asyncio.TimeoutError
        except asyncio.TimeoutError:
            await self._transition(record, HandoffState.TIMED_OUT)
            logger.error(
                f"[HANDOFF] Timed out waiting for {record.account} to complete {record.reason.value}",
                extra={"account": record.account, "reason": record.reason.value},
            )
            raise VerificationTimeout(record.account, record.reason.value, self.timeout_seconds) from None
        except SessionClosedError:
            await self._transition(record, HandoffState.CANCELLED)
            logger.warning(f"[HANDOFF] Session closed while waiting for {record.account}")
            raise

    async def notify_test_all(
        self,
        session_factory: SessionFactory,
        test_page_url: str,
        accounts: Sequence[str] | None = None,
    ) -> bool:
        """Send a TEST notification for every account and wait for the test page to be completed.

        Returns True when the human clicked through the test page in time.
        A timeout is only logged.
        """
        accounts = list(accounts if accounts is not None else (a.email for a in self.config.accounts))
        session = await session_factory.open()
        try:
            await session.goto(test_page_url)
            url = await self._public_url(session)
            logger.info(f"[HANDOFF] Notifier test portal: {url}")

            outcomes = await asyncio.gather(
                *(self.dispatcher.dispatch(url, account, NotificationReason.TEST) for account in accounts),
                return_exceptions=True,
            )
            for account, outcome in zip(accounts, outcomes, strict=True):
                if isinstance(outcome, BaseException):
                    logger.error(f"[HANDOFF] Test notification for {account} failed: {outcome}", extra={"account": account})
                elif outcome.failed:
                    logger.warning(
                        f"[HANDOFF] Test notification for {account}: {outcome.status.value}",
                        extra={"account": account},
                    )

            logger.info("[HANDOFF] Test notification sent. Waiting for test page interaction...")
            try:
                await asyncio.wait_for(
                    session.wait_for_human_signal(NOTIFIER_TEST_COMPLETE_SELECTOR),
                    timeout=self.timeout_seconds,
                )
            except asyncio.TimeoutError:
                logger.warning(
                    "[HANDOFF] Test notification timed out. Continuing with normal operation, but you may not "
                    "receive notifications when a captcha appears."
                )
                return False
            logger.info("[HANDOFF] Notifier test complete")
            return True
        finally:
            await session.close_portal()
            await session.close()


__all__ = [
    "HandoffRecord",
    "HandoffState",
    "NOTIFIER_TEST_COMPLETE_SELECTOR",
    "VerificationHandoff",
]
