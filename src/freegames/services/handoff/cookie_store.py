"""
Per-account cookie persistence.

Cookies loaded here seed a new browser session; the full jar is read back and
saved again when the session is torn down, so a login survives between runs.

Backends:
- FileCookieStore: ``<config_dir>/<email>-cookies.json`` (default)
- RedisCookieStore: ``<prefix>:<email>`` in Redis

Usage:
    store = FileCookieStore("config")
    cookies = await store.load("a@example.com")
    await store.save("a@example.com", cookies)
"""

from __future__ import annotations

import asyncio
import json
import logging
import os
import tempfile
from abc import ABC, abstractmethod
from dataclasses import dataclass
from pathlib import Path
from typing import TYPE_CHECKING, Any

from ..exceptions import SessionIOError

if TYPE_CHECKING:
    from redis.asyncio import Redis

logger = logging.getLogger(__name__)


@dataclass
class Cookie:
    """Represents a browser cookie."""

    name: str
    value: str
    domain: str
    path: str = "/"
    expires: float | None = None
    http_only: bool = False
    secure: bool = False
    same_site: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "name": self.name,
            "value": self.value,
            "domain": self.domain,
            "path": self.path,
            "expires": self.expires,
            "httpOnly": self.http_only,
            "secure": self.secure,
            "sameSite": self.same_site,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Cookie:
        expires = data.get("expires")
        # CDP reports session cookies with expires=-1
        if expires is not None and expires < 0:
            expires = None
        return cls(
            name=data.get("name", ""),
            value=data.get("value", ""),
            domain=data.get("domain", ""),
            path=data.get("path", "/"),
            expires=expires,
            http_only=data.get("httpOnly", False),
            secure=data.get("secure", False),
            same_site=data.get("sameSite"),
        )


def merge_cookies(stored: list[Cookie], bypass: list[Cookie]) -> list[Cookie]:
    """Stored cookies first, bypass cookies appended. No dedup."""
    return [*stored, *bypass]


class CookieStore(ABC):
    """Persists one cookie jar per account identity."""

    @abstractmethod
    async def load(self, account: str) -> list[Cookie]:
        """Return the stored jar, or an empty list when nothing is stored."""

    @abstractmethod
    async def save(self, account: str, cookies: list[Cookie]) -> None:
        """Replace the stored jar for ``account``."""


def _encode(cookies: list[Cookie]) -> str:
    return json.dumps([c.to_dict() for c in cookies], indent=2)


def _decode(raw: str | bytes, account: str) -> list[Cookie]:
    try:
        data = json.loads(raw)
    except json.JSONDecodeError as e:
        raise SessionIOError(f"Stored cookies for {account} are corrupt", account=account, operation="load", cause=e) from e

    if not isinstance(data, list):
        raise SessionIOError(f"Stored cookies for {account} are not a list", account=account, operation="load")
    return [Cookie.from_dict(item) for item in data]


class FileCookieStore(CookieStore):
    """One JSON file per account under the config directory."""

    def __init__(self, config_dir: str | Path) -> None:
        self.config_dir = Path(config_dir)

    def path_for(self, account: str) -> Path:
        return self.config_dir / f"{account}-cookies.json"

    async def load(self, account: str) -> list[Cookie]:
        path = self.path_for(account)
        loop = asyncio.get_running_loop()

        def _read() -> str | None:
            if not path.exists():
                return None
            return path.read_text(encoding="utf-8")

        try:
            raw = await loop.run_in_executor(None, _read)
        except OSError as e:
            raise SessionIOError(f"Could not read {path}", account=account, operation="load", cause=e) from e

        if raw is None:
            logger.debug(f"[COOKIES] No stored cookies for {account}")
            return []

        cookies = _decode(raw, account)
        logger.debug(f"[COOKIES] Loaded {len(cookies)} cookies for {account}")
        return cookies

    async def save(self, account: str, cookies: list[Cookie]) -> None:
        path = self.path_for(account)
        payload = _encode(cookies)
        loop = asyncio.get_running_loop()

        def _write() -> None:
            path.parent.mkdir(parents=True, exist_ok=True)
            fd, tmp_path = tempfile.mkstemp(dir=path.parent, prefix=f".{path.name}.", suffix=".tmp")
            try:
                with os.fdopen(fd, "w", encoding="utf-8") as f:
                    f.write(payload)
                os.replace(tmp_path, path)
            except BaseException:
                if os.path.exists(tmp_path):
                    os.unlink(tmp_path)
                raise

        try:
            await loop.run_in_executor(None, _write)
        except OSError as e:
            raise SessionIOError(f"Could not write {path}", account=account, operation="save", cause=e) from e

        logger.debug(f"[COOKIES] Saved {len(cookies)} cookies for {account}")


class RedisCookieStore(CookieStore):
    """One Redis string per account, no TTL."""

    def __init__(self, redis_client: Redis, prefix: str = "freegames:cookies") -> None:
        self._redis = redis_client
        self.prefix = prefix

    def _get_cache_key(self, account: str) -> str:
        return f"{self.prefix}:{account}"

    async def load(self, account: str) -> list[Cookie]:
        try:
            raw = await self._redis.get(self._get_cache_key(account))
        except Exception as e:
            raise SessionIOError(f"Redis read failed for {account}", account=account, operation="load", cause=e) from e

        if raw is None:
            logger.debug(f"[COOKIES] No stored cookies for {account}")
            return []

        cookies = _decode(raw, account)
        logger.debug(f"[COOKIES] Loaded {len(cookies)} cookies for {account} from Redis")
        return cookies

    async def save(self, account: str, cookies: list[Cookie]) -> None:
        try:
            await self._redis.set(self._get_cache_key(account), _encode(cookies))
        except Exception as e:
            raise SessionIOError(f"Redis write failed for {account}", account=account, operation="save", cause=e) from e

        logger.debug(f"[COOKIES] Saved {len(cookies)} cookies for {account} to Redis")


__all__ = [
    "Cookie",
    "CookieStore",
    "FileCookieStore",
    "RedisCookieStore",
    "merge_cookies",
]
