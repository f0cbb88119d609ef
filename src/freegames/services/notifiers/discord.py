import logging

from ...schemas.notification import DiscordConfig, NotificationReason
from .base import NotifierService

logger = logging.getLogger(__name__)


class DiscordNotifier(NotifierService[DiscordConfig]):
    kind = "discord"

    def _mentions(self) -> str:
        users = [f"<@{user_id}>" for user_id in self.config.mentioned_users]
        roles = [f"<@&{role_id}>" for role_id in self.config.mentioned_roles]
        return " ".join(users + roles)

    async def send_notification(self, url: str, account: str, reason: NotificationReason) -> None:
        logger.debug(f"[NOTIFY] Sending discord notification for {account}")
        payload = {
            "content": self._mentions() or None,
            "embeds": [
                {
                    "title": "Click to proceed",
                    "url": url,
                    "fields": [
                        {"name": "Reason", "value": reason.value, "inline": True},
                        {"name": "Account", "value": account, "inline": True},
                    ],
                }
            ],
            "allowed_mentions": {
                "users": self.config.mentioned_users,
                "roles": self.config.mentioned_roles,
            },
        }
        await self._post(self.config.webhook_url, json=payload)
