import html
import logging

from ...schemas.notification import NotificationReason, TelegramConfig
from .base import NotifierService

logger = logging.getLogger(__name__)


class TelegramNotifier(NotifierService[TelegramConfig]):
    kind = "telegram"

    async def send_notification(self, url: str, account: str, reason: NotificationReason) -> None:
        logger.debug(f"[NOTIFY] Sending telegram notification for {account}")
        text = (
            f"<b>epicgames-freegames</b> needs an action performed.\n"
            f"<b>Reason:</b> {html.escape(reason.value)}\n"
            f"<b>Account:</b> {html.escape(account)}\n"
            f'<a href="{html.escape(url, quote=True)}">Open the portal</a>'
        )
        await self._post(
            f"{self.config.api_url.rstrip('/')}/bot{self.config.token}/sendMessage",
            json={
                "chat_id": self.config.chat_id,
                "text": text,
                "parse_mode": "HTML",
                "disable_web_page_preview": True,
            },
        )
