"""
Exception hierarchy for the verification handoff and notification fan-out.

Every error carries a human readable message plus a ``details`` dict that
ends up in logs, so a failure can be traced back to an account, a notifier
or a file without re-raising with extra context.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from .handoff.dispatcher import DispatchOutcome


class HandoffException(Exception):
    """Base exception for all handoff errors."""

    def __init__(self, message: str, details: dict | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def __str__(self) -> str:
        if self.details:
            return f"{self.message} | Details: {self.details}"
        return self.message


class ConfigurationError(HandoffException):
    """Configuration could not be loaded or is invalid."""


class UnknownNotifierKind(ConfigurationError):
    """A notifier config carries a type with no registered backend."""

    def __init__(self, kind: str) -> None:
        super().__init__(f"Unexpected notifier config: {kind}", {"kind": kind})
        self.kind = kind


class UpstreamUnavailable(HandoffException):
    """A remote dependency (bypass cookie source, tunnel server) cannot be reached."""

    def __init__(
        self,
        message: str,
        service: str | None = None,
        status_code: int | None = None,
        cause: BaseException | None = None,
    ) -> None:
        super().__init__(
            message,
            {
                "service": service,
                "status_code": status_code,
                "cause": repr(cause) if cause else None,
            },
        )
        self.service = service
        self.status_code = status_code
        self.cause = cause


class TunnelUnavailable(UpstreamUnavailable):
    """The public tunnel could not be opened."""

    def __init__(self, message: str, status_code: int | None = None, cause: BaseException | None = None) -> None:
        super().__init__(message, service="tunnel", status_code=status_code, cause=cause)


class NotifierDeliveryError(HandoffException):
    """A single notifier backend failed to deliver."""

    def __init__(
        self,
        message: str,
        notifier: str,
        status_code: int | None = None,
        cause: BaseException | None = None,
    ) -> None:
        super().__init__(
            message,
            {
                "notifier": notifier,
                "status_code": status_code,
                "cause": repr(cause) if cause else None,
            },
        )
        self.notifier = notifier
        self.status_code = status_code
        self.cause = cause


class NotificationDispatchError(HandoffException):
    """Every configured notifier failed, so nobody was told."""

    def __init__(self, outcome: DispatchOutcome) -> None:
        failed = [r.notifier for r in outcome.failed]
        super().__init__(
            f"All {len(failed)} notifier(s) failed for {outcome.account}",
            {
                "account": outcome.account,
                "reason": outcome.reason,
                "failed": failed,
            },
        )
        self.outcome = outcome


class VerificationTimeout(HandoffException):
    """The human did not complete the verification before the deadline."""

    def __init__(self, account: str, reason: str, timeout_seconds: float) -> None:
        super().__init__(
            f"Timed out after {timeout_seconds:.0f}s waiting for {account} to complete verification",
            {
                "account": account,
                "reason": reason,
                "timeout_seconds": timeout_seconds,
            },
        )
        self.account = account
        self.reason = reason
        self.timeout_seconds = timeout_seconds


class SessionIOError(HandoffException):
    """Reading or persisting session cookies failed."""

    def __init__(
        self,
        message: str,
        account: str | None = None,
        operation: str | None = None,
        cause: BaseException | None = None,
    ) -> None:
        super().__init__(
            message,
            {
                "account": account,
                "operation": operation,
                "cause": repr(cause) if cause else None,
            },
        )
        self.account = account
        self.operation = operation
        self.cause = cause


class SessionClosedError(HandoffException):
    """The browser session was closed while something was waiting on it."""


__all__ = [
    "ConfigurationError",
    "HandoffException",
    "NotificationDispatchError",
    "NotifierDeliveryError",
    "SessionClosedError",
    "SessionIOError",
    "TunnelUnavailable",
    "UnknownNotifierKind",
    "UpstreamUnavailable",
    "VerificationTimeout",
]
