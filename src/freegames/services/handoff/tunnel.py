"""
Localtunnel client.

Asks a localtunnel server for a public subdomain, then keeps a pool of TCP
relay connections between the port the server assigned and the local
portal. The server multiplexes incoming public requests over that pool.

Usage:
    tunnel = LocaltunnelClient()
    public_url = await tunnel.expose("http://localhost:3000/portal/abc")
    ...
    await tunnel.close()
"""

from __future__ import annotations

import asyncio
import contextlib
import logging
from urllib.parse import urlsplit, urlunsplit

import httpx

from ..exceptions import TunnelUnavailable

logger = logging.getLogger(__name__)

DEFAULT_HOST = "https://localtunnel.me"
RECONNECT_DELAY_SECONDS = 1.0
PIPE_CHUNK_SIZE = 64 * 1024


async def _pipe(reader: asyncio.StreamReader, writer: asyncio.StreamWriter) -> None:
    try:
        while chunk := await reader.read(PIPE_CHUNK_SIZE):
            writer.write(chunk)
            await writer.drain()
    except (ConnectionError, asyncio.IncompleteReadError):
        pass
    finally:
        with contextlib.suppress(Exception):
            writer.close()


class LocaltunnelClient:
    def __init__(
        self,
        host: str = DEFAULT_HOST,
        transport: httpx.AsyncBaseTransport | None = None,
        timeout: float = 30.0,
    ) -> None:
        self.host = host.rstrip("/")
        self.timeout = timeout
        self._transport = transport
        self._relays: list[asyncio.Task] = []
        self._tunnels: dict[tuple[str, int], str] = {}

    async def _request_tunnel(self) -> dict:
        try:
            async with httpx.AsyncClient(timeout=self.timeout, transport=self._transport) as client:
                response = await client.get(f"{self.host}/", params={"new": ""})
                response.raise_for_status()
                info = response.json()
        except httpx.HTTPStatusError as e:
            raise TunnelUnavailable(
                "Localtunnel server refused to open a tunnel", status_code=e.response.status_code, cause=e
            ) from e
        except (httpx.HTTPError, ValueError) as e:
            raise TunnelUnavailable("Localtunnel server unreachable", cause=e) from e

        if not {"port", "url"} <= info.keys():
            raise TunnelUnavailable(f"Unexpected localtunnel response: {info}")
        return info

    async def expose(self, local_url: str) -> str:
        """Return ``local_url`` rewritten onto a public tunnel host."""
        parts = urlsplit(local_url)
        local_host = parts.hostname or "localhost"
        local_port = parts.port or (443 if parts.scheme == "https" else 80)

        public_base = self._tunnels.get((local_host, local_port))
        if public_base is None:
            info = await self._request_tunnel()
            remote_host = urlsplit(self.host).hostname
            remote_port = int(info["port"])
            max_conn = int(info.get("max_conn_count") or 1)
            public_base = info["url"].rstrip("/")

            for _ in range(max_conn):
                self._relays.append(
                    asyncio.create_task(self._relay_loop(remote_host, remote_port, local_host, local_port))
                )
            self._tunnels[(local_host, local_port)] = public_base
            logger.info(f"[TUNNEL] Opened {public_base} -> {local_host}:{local_port} ({max_conn} connections)")

        public = urlsplit(public_base)
        return urlunsplit((public.scheme, public.netloc, parts.path, parts.query, parts.fragment))

    async def _relay_once(self, remote_host: str, remote_port: int, local_host: str, local_port: int) -> bool:
        """Carry one public request over one relay connection. Returns False if nothing arrived."""
        remote_reader, remote_writer = await asyncio.open_connection(remote_host, remote_port)
        local_writer = None
        try:
            # The server only sends once a public request arrives
            first_chunk = await remote_reader.read(PIPE_CHUNK_SIZE)
            if not first_chunk:
                return False

            local_reader, local_writer = await asyncio.open_connection(local_host, local_port)
            local_writer.write(first_chunk)
            await local_writer.drain()
            await asyncio.gather(
                _pipe(remote_reader, local_writer),
                _pipe(local_reader, remote_writer),
            )
            return True
        finally:
            for writer in (remote_writer, local_writer):
                if writer is not None:
                    with contextlib.suppress(Exception):
                        writer.close()

    async def _relay_loop(self, remote_host: str, remote_port: int, local_host: str, local_port: int) -> None:
        while True:
            try:
                if await self._relay_once(remote_host, remote_port, local_host, local_port):
                    continue
            except (OSError, asyncio.IncompleteReadError) as e:
                logger.warning(
                    f"[TUNNEL] Relay {remote_host}:{remote_port} -> {local_host}:{local_port} failed: {e}"
                )
            await asyncio.sleep(RECONNECT_DELAY_SECONDS)

    async def close(self) -> None:
        for task in self._relays:
            task.cancel()
        for task in self._relays:
            with contextlib.suppress(asyncio.CancelledError):
                await task
        if self._tunnels:
            logger.info(f"[TUNNEL] Closed {len(self._tunnels)} tunnel(s)")
        self._relays.clear()
        self._tunnels.clear()


__all__ = ["LocaltunnelClient"]
