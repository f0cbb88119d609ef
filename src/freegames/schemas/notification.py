"""Notification schemas.

Notifier configs are a closed set of variants tagged by ``type``; pydantic
picks the variant at load time, so an invalid or incomplete notifier entry
fails config validation instead of failing at send time.

Config example:
    {"type": "discord", "webhookUrl": "https://discord.com/api/webhooks/...", "mentionedUsers": ["914360712086843432"]}
    {"type": "telegram", "token": "644739147:AAGMPo-Jz3mKRnHRTnrPEDi7jUF1vqNOD5k", "chatId": "-987654321"}
"""

from datetime import UTC, datetime
from enum import Enum
from typing import Annotated, Any, Literal

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

# ============================================================================
# Enums
# ============================================================================


class NotificationReason(str, Enum):
    """Why a human is being asked to open the portal."""

    TEST = "TEST"
    LOGIN = "LOGIN"
    PURCHASE = "PURCHASE"
    CREATE_ACCOUNT = "CREATE_ACCOUNT"
    PURCHASE_ERROR = "PURCHASE ERROR"
    CAPTCHA_UNRESPONSIVE = "CAPTCHA UNRESPONSIVE"
    PRIVACY_POLICY_ACCEPTANCE = "PRIVACY POLICY ACCEPTANCE"


class NotificationType(str, Enum):
    DISCORD = "discord"
    TELEGRAM = "telegram"
    PUSHOVER = "pushover"
    EMAIL = "email"
    LOCAL = "local"
    APPRISE = "apprise"
    WEIXIN = "weixin"
    GOTIFY = "gotify"


# ============================================================================
# Notifier configs
# ============================================================================


class _NotifierConfigBase(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, frozen=True)


class DiscordConfig(_NotifierConfigBase):
    type: Literal["discord"] = "discord"
    webhook_url: str
    mentioned_users: list[str] = Field(default_factory=list)
    mentioned_roles: list[str] = Field(default_factory=list)


class TelegramConfig(_NotifierConfigBase):
    type: Literal["telegram"] = "telegram"
    token: str
    chat_id: str
    api_url: str = "https://api.telegram.org"


class PushoverConfig(_NotifierConfigBase):
    type: Literal["pushover"] = "pushover"
    token: str
    user_key: str


class EmailAuthConfig(_NotifierConfigBase):
    user: str
    password: str = Field(alias="pass")


class EmailConfig(_NotifierConfigBase):
    type: Literal["email"] = "email"
    smtp_host: str
    smtp_port: int
    email_sender_address: str
    email_sender_name: str = "Epic Games Captchas"
    email_recipient_address: str
    # True: implicit TLS (port 465). False: plain, upgraded with STARTTLS when offered.
    secure: bool = False
    auth: EmailAuthConfig | None = None


class LocalConfig(_NotifierConfigBase):
    type: Literal["local"] = "local"


class AppriseConfig(_NotifierConfigBase):
    type: Literal["apprise"] = "apprise"
    api_url: str
    urls: str


class WeixinConfig(_NotifierConfigBase):
    type: Literal["weixin"] = "weixin"
    api_url: str
    urls: str | None = None


class GotifyConfig(_NotifierConfigBase):
    type: Literal["gotify"] = "gotify"
    api_url: str
    token: str
    priority: int = 7


NotifierConfig = Annotated[
    DiscordConfig
    | TelegramConfig
    | PushoverConfig
    | EmailConfig
    | LocalConfig
    | AppriseConfig
    | WeixinConfig
    | GotifyConfig,
    Field(discriminator="type"),
]


# ============================================================================
# Handoff events (Redis pub/sub)
# ============================================================================


class HandoffEventType(str, Enum):
    STATE_CHANGED = "handoff_state_changed"
    DISPATCHED = "handoff_dispatched"


class HandoffEvent(BaseModel):
    """Message published on the handoff events channel."""

    type: HandoffEventType
    payload: dict[str, Any] = Field(default_factory=dict)
    timestamp: datetime = Field(default_factory=lambda: datetime.now(UTC))


__all__ = [
    "AppriseConfig",
    "DiscordConfig",
    "EmailAuthConfig",
    "EmailConfig",
    "GotifyConfig",
    "HandoffEvent",
    "HandoffEventType",
    "LocalConfig",
    "NotificationReason",
    "NotificationType",
    "NotifierConfig",
    "PushoverConfig",
    "TelegramConfig",
    "WeixinConfig",
]
