import asyncio
import logging
import webbrowser

from ...schemas.notification import LocalConfig, NotificationReason
from ..exceptions import NotifierDeliveryError
from .base import NotifierService

logger = logging.getLogger(__name__)


class LocalNotifier(NotifierService[LocalConfig]):
    """Opens the portal in the default browser of the machine running the claimer."""

    kind = "local"

    async def send_notification(self, url: str, account: str, reason: NotificationReason) -> None:
        logger.debug(f"[NOTIFY] Opening portal locally for {account}")
        loop = asyncio.get_running_loop()
        try:
            opened = await loop.run_in_executor(None, webbrowser.open, url)
        except webbrowser.Error as e:
            raise NotifierDeliveryError("local browser could not be opened", notifier=self.kind, cause=e) from e
        if not opened:
            raise NotifierDeliveryError("no local browser available", notifier=self.kind)
