import logging

from ...schemas.notification import AppriseConfig, NotificationReason
from .base import NotifierService, default_message

logger = logging.getLogger(__name__)


class AppriseNotifier(NotifierService[AppriseConfig]):
    """Posts to an Apprise API server, which relays to the configured ``urls``."""

    kind = "apprise"

    async def send_notification(self, url: str, account: str, reason: NotificationReason) -> None:
        logger.debug(f"[NOTIFY] Sending apprise notification for {account}")
        await self._post(
            f"{self.config.api_url.rstrip('/')}/notify",
            json={
                "urls": self.config.urls,
                "title": "epicgames-freegames needs an action performed",
                "body": default_message(url, account, reason),
                "format": "text",
                "type": "info",
            },
        )
