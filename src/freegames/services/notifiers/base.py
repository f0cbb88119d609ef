"""Base class for notification backends."""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from typing import Any, ClassVar, Generic, TypeVar

import httpx

from ...schemas.notification import NotificationReason
from ..exceptions import NotifierDeliveryError

logger = logging.getLogger(__name__)

ConfigT = TypeVar("ConfigT")

DEFAULT_TIMEOUT = 30.0


class NotifierService(ABC, Generic[ConfigT]):
    """Sends one "please open this URL" message through a single channel.

    Implementations must not retry and must not keep state between calls:
    every send opens its own HTTP client.
    """

    kind: ClassVar[str]

    def __init__(
        self,
        config: ConfigT,
        transport: httpx.AsyncBaseTransport | None = None,
        timeout: float = DEFAULT_TIMEOUT,
    ) -> None:
        self.config = config
        self._transport = transport
        self.timeout = timeout

    @abstractmethod
    async def send_notification(self, url: str, account: str, reason: NotificationReason) -> None:
        """Deliver the notification or raise ``NotifierDeliveryError``."""

    def _client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(timeout=self.timeout, transport=self._transport)

    async def _post(self, url: str, **kwargs: Any) -> httpx.Response:
        """POST and convert any transport or HTTP status failure into ``NotifierDeliveryError``."""
        try:
            async with self._client() as client:
                response = await client.post(url, **kwargs)
                response.raise_for_status()
                return response
        except httpx.HTTPStatusError as e:
            logger.error(f"[NOTIFY] {self.kind} returned HTTP {e.response.status_code}: {e.response.text[:200]}")
            raise NotifierDeliveryError(
                f"{self.kind} notification rejected",
                notifier=self.kind,
                status_code=e.response.status_code,
                cause=e,
            ) from e
        except httpx.HTTPError as e:
            logger.error(f"[NOTIFY] Error sending {self.kind} message: {e}")
            raise NotifierDeliveryError(f"{self.kind} notification failed", notifier=self.kind, cause=e) from e


def default_message(url: str, account: str, reason: NotificationReason) -> str:
    return f"epicgames-freegames-node needs an action performed. Reason: {reason.value}. Account: {account}. Open {url}"


__all__ = ["NotifierService", "default_message"]
