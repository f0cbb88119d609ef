import logging

from .config import settings

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"

# Libraries that log every request at INFO
NOISY_LOGGERS = ("httpx", "httpcore", "uvicorn.access", "websockets", "nodriver", "uc")


def setup_logging(level: str | int | None = None) -> None:
    level = level or settings.LOG_LEVEL
    if isinstance(level, str):
        level = logging.getLevelName(level.upper())

    logging.basicConfig(level=level, format=LOG_FORMAT)

    for name in NOISY_LOGGERS:
        logging.getLogger(name).setLevel(max(level, logging.WARNING))
