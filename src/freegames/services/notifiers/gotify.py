import logging

from ...schemas.notification import GotifyConfig, NotificationReason
from .base import NotifierService

logger = logging.getLogger(__name__)


class GotifyNotifier(NotifierService[GotifyConfig]):
    kind = "gotify"

    async def send_notification(self, url: str, account: str, reason: NotificationReason) -> None:
        logger.debug(f"[NOTIFY] Sending gotify notification for {account}")
        await self._post(
            f"{self.config.api_url.rstrip('/')}/message",
            params={"token": self.config.token},
            json={
                "title": "epicgames-freegames needs an action performed",
                "message": f"**Reason:** {reason.value}\n\n**Account:** {account}\n\n[Click to proceed]({url})",
                "priority": self.config.priority,
                "extras": {
                    "client::display": {"contentType": "text/markdown"},
                    "client::notification": {"click": {"url": url}},
                },
            },
        )
