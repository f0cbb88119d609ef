import json
import logging
import os
from enum import Enum
from pathlib import Path
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, ValidationError, computed_field
from pydantic.alias_generators import to_camel
from pydantic_settings import BaseSettings, SettingsConfigDict

from ..schemas.notification import NotifierConfig
from ..services.exceptions import ConfigurationError

logger = logging.getLogger(__name__)


class AppSettings(BaseSettings):
    APP_NAME: str = "epicgames-freegames"
    APP_DESCRIPTION: str | None = "Free games claimer with human verification handoff"
    APP_VERSION: str | None = None


class ConfigFileSettings(BaseSettings):
    CONFIG_DIR: str = "config"
    CONFIG_FILE_NAME: str = "config"


class LoggingSettings(BaseSettings):
    LOG_LEVEL: str = "INFO"


class CookieStoreOption(str, Enum):
    FILE = "file"
    REDIS = "redis"


class RedisSettings(BaseSettings):
    """Redis is optional.

    Redis Keys:
    - freegames:cookies:{email} => Persisted cookie jar per account

    Pub/Sub:
    - freegames:handoff:events => Handoff state transitions
    """

    REDIS_ENABLED: bool = False
    REDIS_HOST: str = "localhost"
    REDIS_PORT: int = 6379
    REDIS_DB: int = 0

    # ============================================
    # Cookie persistence backend
    # ============================================
    COOKIE_STORE_BACKEND: CookieStoreOption = CookieStoreOption.FILE
    COOKIE_KEY_PREFIX: str = "freegames:cookies"

    # ============================================
    # Pub/Sub Channel
    # ============================================
    HANDOFF_EVENTS_CHANNEL: str = "freegames:handoff:events"

    @computed_field  # type: ignore[prop-decorator]
    @property
    def REDIS_URL(self) -> str:
        return f"redis://{self.REDIS_HOST}:{self.REDIS_PORT}/{self.REDIS_DB}"


class PortalSettings(BaseSettings):
    # ============================================
    # Local portal server (uvicorn)
    # ============================================
    PORTAL_HOST: str = "0.0.0.0"
    PORTAL_PORT: int = 3000

    # ============================================
    # Streaming
    # ============================================
    PORTAL_STREAM_FPS: int = 5
    PORTAL_JPEG_QUALITY: int = 70
    PORTAL_FRAME_BUFFER_SIZE: int = 3


class BrowserSettings(BaseSettings):
    # Headless=False needs a display (XVFB in Docker)
    BROWSER_HEADLESS: bool = True
    BROWSER_EXECUTABLE_PATH: str | None = None
    BROWSER_ARGS: list[str] = ["--disable-dev-shm-usage"]
    BROWSER_NAVIGATION_TIMEOUT: int = 30


class VersionSettings(BaseSettings):
    COMMIT_SHA: str | None = None
    BRANCH: str | None = None
    DISTRO: str | None = None


class Settings(
    AppSettings,
    ConfigFileSettings,
    LoggingSettings,
    RedisSettings,
    PortalSettings,
    BrowserSettings,
    VersionSettings,
):
    model_config = SettingsConfigDict(
        env_file=os.path.join(os.path.dirname(os.path.realpath(__file__)), "..", "..", "..", ".env"),
        env_file_encoding="utf-8",
        case_sensitive=True,
        extra="ignore",
    )


settings = Settings()


# ============================================
# Application config (config/<name>.json)
# ============================================


class _CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class WebPortalConfig(_CamelModel):
    """Where the human reaches the exposed browser."""

    # Public base URL of the portal server, e.g. https://claimer.example.com
    base_url: str = f"http://localhost:{settings.PORTAL_PORT}"
    # Exchange the portal URL for a public localtunnel URL
    localtunnel: bool = False
    localtunnel_host: str = "https://localtunnel.me"


class AccountConfig(_CamelModel):
    email: str
    password: str | None = None
    totp: str | None = None
    notifiers: list[NotifierConfig] | None = None


class AppConfig(_CamelModel):
    accounts: list[AccountConfig] = Field(default_factory=list)
    notifiers: list[NotifierConfig] = Field(default_factory=list)
    web_portal_config: WebPortalConfig = Field(default_factory=WebPortalConfig)
    hcaptcha_accessibility_url: str | None = None
    notification_timeout_hours: float = 24
    test_notifiers: bool = False
    skip_version_check: bool = False

    @property
    def notification_timeout_seconds(self) -> float:
        return self.notification_timeout_hours * 3600

    def get_account(self, email: str) -> AccountConfig | None:
        return next((a for a in self.accounts if a.email == email), None)


class ConfigLoader:
    """Loads ``AppConfig`` from JSON.

    Usage:
        config = ConfigLoader.from_file("config/config.json")
        config = ConfigLoader.from_dict({"notifiers": [...]})
        config = ConfigLoader.from_default_file()
    """

    _cached_config: AppConfig | None = None

    @classmethod
    def from_file(cls, path: str | Path) -> AppConfig:
        path = Path(path)

        if not path.exists():
            raise ConfigurationError(f"Configuration file not found: {path}", {"path": str(path)})

        try:
            with open(path, encoding="utf-8") as f:
                data = json.load(f)
        except json.JSONDecodeError as e:
            raise ConfigurationError(f"Invalid JSON in configuration file: {e}", {"path": str(path)}) from e

        logger.info(f"Loaded configuration from {path}")
        return cls.from_dict(data)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> AppConfig:
        # Keys starting with _ are comments
        clean_data = {k: v for k, v in data.items() if not k.startswith("_")}

        try:
            config = AppConfig.model_validate(clean_data)
        except ValidationError as e:
            logger.error(f"Validation error(s): {e.error_count()}")
            raise ConfigurationError("Invalid config", {"errors": e.errors(include_url=False)}) from e

        logger.debug(f"Parsed configuration: accounts={len(config.accounts)}, notifiers={len(config.notifiers)}")
        return config

    @classmethod
    def default(cls) -> AppConfig:
        return AppConfig()

    @classmethod
    def default_path(cls) -> Path:
        return Path(settings.CONFIG_DIR) / f"{Path(settings.CONFIG_FILE_NAME).stem}.json"

    @classmethod
    def from_default_file(cls) -> AppConfig:
        """Load ``<CONFIG_DIR>/<CONFIG_FILE_NAME>.json``, writing a default one when missing."""
        if cls._cached_config is not None:
            return cls._cached_config

        path = cls.default_path()
        if path.exists():
            cls._cached_config = cls.from_file(path)
            return cls._cached_config

        logger.warning(f"No config file detected at {path}")
        config = cls.default()
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            path.write_text(json.dumps(config.model_dump(mode="json", by_alias=True), indent=2), encoding="utf-8")
            logger.info(f"Wrote new default config file to {path}")
        except OSError as e:
            logger.debug(f"Could not write default config: {e}")
            logger.info("Creating a new config file is not permitted. Continuing...")

        cls._cached_config = config
        return cls._cached_config

    @classmethod
    def clear_cache(cls) -> None:
        cls._cached_config = None


__all__ = [
    "AccountConfig",
    "AppConfig",
    "ConfigLoader",
    "CookieStoreOption",
    "Settings",
    "WebPortalConfig",
    "settings",
]
