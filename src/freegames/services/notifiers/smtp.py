import asyncio
import logging
import smtplib
import ssl
from email.message import EmailMessage
from email.utils import formataddr

from ...schemas.notification import EmailConfig, NotificationReason
from ..exceptions import NotifierDeliveryError
from .base import NotifierService

logger = logging.getLogger(__name__)


class EmailNotifier(NotifierService[EmailConfig]):
    """SMTP delivery. smtplib is blocking, so the send runs in the default executor."""

    kind = "email"

    def _build_message(self, url: str, account: str, reason: NotificationReason) -> EmailMessage:
        msg = EmailMessage()
        msg["Subject"] = f"Epic Games free games needs an action performed ({reason.value})"
        msg["From"] = formataddr((self.config.email_sender_name, self.config.email_sender_address))
        msg["To"] = self.config.email_recipient_address
        msg.set_content(
            f"epicgames-freegames needs an action performed.\n\n"
            f"Reason: {reason.value}\nAccount: {account}\n\nOpen {url} to proceed."
        )
        msg.add_alternative(
            f"<p><b>epicgames-freegames</b> needs an action performed.</p>"
            f"<p>Reason: {reason.value}<br>Account: {account}</p>"
            f'<p><a href="{url}">{url}</a></p>',
            subtype="html",
        )
        return msg

    def _send_sync(self, msg: EmailMessage) -> None:
        if self.config.secure:
            smtp: smtplib.SMTP = smtplib.SMTP_SSL(
                self.config.smtp_host,
                self.config.smtp_port,
                timeout=self.timeout,
                context=ssl.create_default_context(),
            )
        else:
            smtp = smtplib.SMTP(self.config.smtp_host, self.config.smtp_port, timeout=self.timeout)

        with smtp:
            if not self.config.secure:
                smtp.ehlo()
                if smtp.has_extn("starttls"):
                    smtp.starttls(context=ssl.create_default_context())
                    smtp.ehlo()
            if self.config.auth:
                smtp.login(self.config.auth.user, self.config.auth.password)
            smtp.send_message(msg)

    async def send_notification(self, url: str, account: str, reason: NotificationReason) -> None:
        logger.debug(f"[NOTIFY] Sending email notification for {account}")
        msg = self._build_message(url, account, reason)
        loop = asyncio.get_running_loop()
        try:
            await loop.run_in_executor(None, self._send_sync, msg)
        except (smtplib.SMTPException, OSError) as e:
            logger.error(f"[NOTIFY] Error sending email: {e}")
            raise NotifierDeliveryError("email notification failed", notifier=self.kind, cause=e) from e
