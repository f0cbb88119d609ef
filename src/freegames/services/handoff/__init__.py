"""
Verification handoff.

Cookie persistence, bypass cookies, notification fan-out, the session
lifecycle and the human handoff itself.

Usage:
    from src.freegames.services.handoff import SessionLifecycle, VerificationHandoff

    async with lifecycle.session(email) as session:
        ...
        await handoff.request_verification_handoff(session, email, NotificationReason.LOGIN, "#signed-in")
"""

from .bypass import HcaptchaCookieProvider
from .cookie_store import Cookie, CookieStore, FileCookieStore, RedisCookieStore, merge_cookies
from .dispatcher import DispatchOutcome, DispatchStatus, NotificationDispatcher, NotifierResult
from .lifecycle import SessionLifecycle
from .protocol import HandoffRecord, HandoffState, VerificationHandoff
from .runner import AccountRunner, AccountRunResult, RunSummary
from .tunnel import LocaltunnelClient

__all__ = [
    "AccountRunResult",
    "AccountRunner",
    "Cookie",
    "CookieStore",
    "DispatchOutcome",
    "DispatchStatus",
    "FileCookieStore",
    "HandoffRecord",
    "HandoffState",
    "HcaptchaCookieProvider",
    "LocaltunnelClient",
    "NotificationDispatcher",
    "NotifierResult",
    "RedisCookieStore",
    "RunSummary",
    "SessionLifecycle",
    "VerificationHandoff",
    "merge_cookies",
]
