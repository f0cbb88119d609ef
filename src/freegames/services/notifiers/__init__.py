"""
Notification backends.

Each backend implements ``send_notification(url, account, reason)``. Backends
are looked up by the ``type`` tag of their config.

Usage:
    notifier = create_notifier(DiscordConfig(webhook_url="https://..."))
    await notifier.send_notification(url, "a@example.com", NotificationReason.LOGIN)
"""

import httpx

from ...schemas.notification import NotificationType
from ..exceptions import UnknownNotifierKind
from .apprise import AppriseNotifier
from .base import NotifierService
from .discord import DiscordNotifier
from .gotify import GotifyNotifier
from .local import LocalNotifier
from .pushover import PushoverNotifier
from .smtp import EmailNotifier
from .telegram import TelegramNotifier
from .weixin import WeixinNotifier

NOTIFIER_REGISTRY: dict[str, type[NotifierService]] = {
    NotificationType.DISCORD.value: DiscordNotifier,
    NotificationType.TELEGRAM.value: TelegramNotifier,
    NotificationType.PUSHOVER.value: PushoverNotifier,
    NotificationType.EMAIL.value: EmailNotifier,
    NotificationType.LOCAL.value: LocalNotifier,
    NotificationType.APPRISE.value: AppriseNotifier,
    NotificationType.WEIXIN.value: WeixinNotifier,
    NotificationType.GOTIFY.value: GotifyNotifier,
}


def create_notifier(config, transport: httpx.AsyncBaseTransport | None = None) -> NotifierService:
    kind = getattr(config, "type", None)
    notifier_cls = NOTIFIER_REGISTRY.get(str(kind))
    if notifier_cls is None:
        raise UnknownNotifierKind(str(kind))
    return notifier_cls(config, transport=transport)


__all__ = [
    "NOTIFIER_REGISTRY",
    "AppriseNotifier",
    "DiscordNotifier",
    "EmailNotifier",
    "GotifyNotifier",
    "LocalNotifier",
    "NotifierService",
    "PushoverNotifier",
    "TelegramNotifier",
    "WeixinNotifier",
    "create_notifier",
]
