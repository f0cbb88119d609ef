"""
Command line entry point.

Usage:
    python -m src.freegames                   # version check, notifier test if testNotifiers is set
    python -m src.freegames --test-notifiers  # send a TEST notification for every account
    python -m src.freegames --config config/other.json
"""

import argparse
import asyncio
import logging
import sys

import uvloop

from .core.config import AppConfig, ConfigLoader, CookieStoreOption, settings
from .core.logger import setup_logging
from .core.version import check_for_update, log_version_on_error
from .services.browser import NodriverSessionFactory, get_portal_server
from .services.exceptions import HandoffException
from .services.handoff import (
    FileCookieStore,
    HcaptchaCookieProvider,
    LocaltunnelClient,
    NotificationDispatcher,
    RedisCookieStore,
    SessionLifecycle,
    VerificationHandoff,
)

logger = logging.getLogger(__name__)


def _redis_client():
    if not settings.REDIS_ENABLED:
        return None
    from redis.asyncio import Redis

    return Redis.from_url(settings.REDIS_URL, decode_responses=True)


def build_components(config: AppConfig) -> dict:
    """Wire the handoff services from config and environment settings."""
    redis_client = _redis_client()
    if settings.COOKIE_STORE_BACKEND == CookieStoreOption.REDIS and redis_client is not None:
        cookie_store = RedisCookieStore(redis_client, prefix=settings.COOKIE_KEY_PREFIX)
    else:
        cookie_store = FileCookieStore(settings.CONFIG_DIR)

    portal = get_portal_server(config.web_portal_config.base_url)
    session_factory = NodriverSessionFactory(portal)
    tunnel = (
        LocaltunnelClient(config.web_portal_config.localtunnel_host)
        if config.web_portal_config.localtunnel
        else None
    )
    dispatcher = NotificationDispatcher(config)

    return {
        "redis": redis_client,
        "portal": portal,
        "tunnel": tunnel,
        "session_factory": session_factory,
        "lifecycle": SessionLifecycle(
            cookie_store,
            HcaptchaCookieProvider(config.hcaptcha_accessibility_url),
            session_factory,
            settings.CONFIG_DIR,
        ),
        "handoff": VerificationHandoff(
            config,
            dispatcher,
            tunnel=tunnel,
            redis_client=redis_client,
            events_channel=settings.HANDOFF_EVENTS_CHANNEL,
        ),
    }


async def run(args: argparse.Namespace) -> int:
    config = ConfigLoader.from_file(args.config) if args.config else ConfigLoader.from_default_file()
    await check_for_update(config.skip_version_check)

    components = build_components(config)
    try:
        if args.test_notifiers or config.test_notifiers:
            handoff: VerificationHandoff = components["handoff"]
            await handoff.notify_test_all(components["session_factory"], components["portal"].notifier_test_url)
        else:
            logger.info("Nothing to do: notifier test disabled (set testNotifiers or pass --test-notifiers)")
    finally:
        if components["tunnel"] is not None:
            await components["tunnel"].close()
        await components["portal"].stop()
        if components["redis"] is not None:
            await components["redis"].aclose()
    return 0


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(prog="freegames-handoff", description=__doc__.split("\n\n")[0].strip())
    parser.add_argument("--config", help="Path to a JSON config file (default: $CONFIG_DIR/$CONFIG_FILE_NAME.json)")
    parser.add_argument("--test-notifiers", action="store_true", help="Send a TEST notification for every account")
    parser.add_argument("--log-level", default=None, help="Override LOG_LEVEL")
    args = parser.parse_args(argv)

    setup_logging(args.log_level)
    asyncio.set_event_loop_policy(uvloop.EventLoopPolicy())

    try:
        return asyncio.run(run(args))
    except HandoffException as e:
        logger.error(f"Fatal: {e}")
        log_version_on_error()
        return 1


if __name__ == "__main__":
    sys.exit(main())
