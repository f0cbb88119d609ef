import logging

from ...schemas.notification import NotificationReason, WeixinConfig
from .base import NotifierService

logger = logging.getLogger(__name__)


class WeixinNotifier(NotifierService[WeixinConfig]):
    """Generic HTTP gateway: URL, reason and account go in the query, details in the body."""

    kind = "weixin"

    async def send_notification(self, url: str, account: str, reason: NotificationReason) -> None:
        logger.debug(f"[NOTIFY] Sending weixin notification for {account}")
        await self._post(
            self.config.api_url,
            params={"url": url, "title": reason.value, "description": account},
            json={
                "urls": self.config.urls,
                "title": "epicgames-freegames needs an action performed",
                "body": f"reason: {reason.value}, account: {account}, url: {url}",
                "format": "text",
                "type": "info",
            },
        )
