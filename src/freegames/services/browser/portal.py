"""
In-process portal server.

A small FastAPI app served by uvicorn on a background task. Each exposed
session is registered under a random token; the human opens
``<baseUrl>/portal/<token>`` to see and drive that session's tab.
"""

from __future__ import annotations

import asyncio
import logging
import uuid
from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import Any

from ...core.config import settings

logger = logging.getLogger(__name__)


@dataclass
class PortalTarget:
    token: str
    tab: Any
    label: str | None = None
    created_at: datetime = field(default_factory=lambda: datetime.now(UTC))


class PortalServer:
    def __init__(
        self,
        base_url: str,
        host: str = settings.PORTAL_HOST,
        port: int = settings.PORTAL_PORT,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self.host = host
        self.port = port
        self._targets: dict[str, PortalTarget] = {}
        self._server: Any = None
        self._serve_task: asyncio.Task | None = None
        self._start_lock = asyncio.Lock()

    # ============================================
    # Target registry
    # ============================================

    def register(self, tab: Any, label: str | None = None) -> str:
        token = uuid.uuid4().hex
        self._targets[token] = PortalTarget(token=token, tab=tab, label=label)
        logger.debug(f"[PORTAL] Registered portal {token}")
        return token

    def unregister(self, token: str) -> None:
        if self._targets.pop(token, None) is not None:
            logger.debug(f"[PORTAL] Unregistered portal {token}")

    def get(self, token: str) -> PortalTarget | None:
        return self._targets.get(token)

    def url_for(self, token: str) -> str:
        return f"{self.base_url}/portal/{token}"

    @property
    def notifier_test_url(self) -> str:
        """Address the browser itself uses to load the notifier test page."""
        return f"http://localhost:{self.port}/notifier-test"

    # ============================================
    # Server lifecycle
    # ============================================

    @property
    def is_running(self) -> bool:
        return self._serve_task is not None and not self._serve_task.done()

    async def start(self) -> None:
        async with self._start_lock:
            if self.is_running:
                return

            import uvicorn

            from ...api.portal import create_app

            config = uvicorn.Config(
                create_app(self),
                host=self.host,
                port=self.port,
                log_level="warning",
                lifespan="off",
            )
            self._server = uvicorn.Server(config)
            self._serve_task = asyncio.create_task(self._server.serve())
            while not self._server.started:
                if self._serve_task.done():
                    # serve() returned or raised before binding, e.g. port in use
                    self._serve_task.result()
                    raise OSError(f"Portal server failed to start on {self.host}:{self.port}")
                await asyncio.sleep(0.05)
            logger.info(f"[PORTAL] Listening on {self.host}:{self.port} (public base {self.base_url})")

    async def stop(self) -> None:
        if self._server is not None and self.is_running:
            self._server.should_exit = True
            await self._serve_task
            logger.info("[PORTAL] Server stopped")
        self._server = None
        self._serve_task = None


_portal_server: PortalServer | None = None


def get_portal_server(base_url: str | None = None) -> PortalServer:
    global _portal_server
    if _portal_server is None:
        _portal_server = PortalServer(base_url or f"http://localhost:{settings.PORTAL_PORT}")
    return _portal_server


__all__ = ["PortalServer", "PortalTarget", "get_portal_server"]
