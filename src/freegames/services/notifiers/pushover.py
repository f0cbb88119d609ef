import logging

from ...schemas.notification import NotificationReason, PushoverConfig
from .base import NotifierService

logger = logging.getLogger(__name__)

PUSHOVER_API_URL = "https://api.pushover.net/1/messages.json"


class PushoverNotifier(NotifierService[PushoverConfig]):
    kind = "pushover"

    async def send_notification(self, url: str, account: str, reason: NotificationReason) -> None:
        logger.debug(f"[NOTIFY] Sending pushover notification for {account}")
        await self._post(
            PUSHOVER_API_URL,
            data={
                "token": self.config.token,
                "user": self.config.user_key,
                "title": "epicgames-freegames needs an action performed",
                "message": f"Reason: {reason.value}\nAccount: {account}",
                "url": url,
                "url_title": "Click to proceed",
            },
        )
