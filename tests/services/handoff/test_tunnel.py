"""Unit Tests for the localtunnel client."""

import asyncio
import contextlib
from unittest.mock import AsyncMock, MagicMock

import httpx
import pytest

from src.freegames.services.exceptions import TunnelUnavailable
from src.freegames.services.handoff import tunnel as tunnel_module
from src.freegames.services.handoff.tunnel import LocaltunnelClient

TUNNEL_INFO = {
    "id": "quiet-fox",
    "port": 41234,
    "max_conn_count": 3,
    "url": "https://quiet-fox.loca.lt",
}


def tunnel_transport(calls, status_code=200, body=TUNNEL_INFO):
    def handler(request: httpx.Request) -> httpx.Response:
        calls.append(request)
        return httpx.Response(status_code, json=body)

    return httpx.MockTransport(handler)


@pytest.fixture
def calls():
    return []


@pytest.fixture
def client(calls, monkeypatch):
    tunnel = LocaltunnelClient("https://localtunnel.me", transport=tunnel_transport(calls))
    monkeypatch.setattr(tunnel, "_relay_loop", AsyncMock())
    return tunnel


class TestLocaltunnelClient:
    """Tests for LocaltunnelClient.expose and close."""

    @pytest.mark.asyncio
    async def test_expose_rewrites_host_keeps_path(self, client, calls):
        url = await client.expose("http://localhost:3000/portal/abc123")

        assert url == "https://quiet-fox.loca.lt/portal/abc123"
        assert calls[0].url.params["new"] == ""
        await client.close()

    @pytest.mark.asyncio
    async def test_opens_max_conn_relays(self, client):
        await client.expose("http://localhost:3000/portal/abc123")

        assert client._relay_loop.call_count == 3
        client._relay_loop.assert_called_with("localtunnel.me", 41234, "localhost", 3000)
        await client.close()

    @pytest.mark.asyncio
    async def test_reuses_tunnel_for_same_port(self, client, calls):
        first = await client.expose("http://localhost:3000/portal/one")
        second = await client.expose("http://localhost:3000/portal/two")

        assert len(calls) == 1
        assert first.endswith("/portal/one")
        assert second.endswith("/portal/two")
        await client.close()

    @pytest.mark.asyncio
    async def test_close_forgets_tunnels(self, client, calls):
        await client.expose("http://localhost:3000/portal/one")
        await client.close()
        await client.expose("http://localhost:3000/portal/one")

        assert len(calls) == 2
        await client.close()

    @pytest.mark.asyncio
    async def test_server_error_raises(self):
        tunnel = LocaltunnelClient(transport=tunnel_transport([], status_code=503, body={"message": "busy"}))

        with pytest.raises(TunnelUnavailable) as exc_info:
            await tunnel.expose("http://localhost:3000/portal/abc")

        assert exc_info.value.status_code == 503
        assert exc_info.value.service == "tunnel"

    @pytest.mark.asyncio
    async def test_unreachable_raises(self):
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("no route", request=request)

        tunnel = LocaltunnelClient(transport=httpx.MockTransport(handler))

        with pytest.raises(TunnelUnavailable):
            await tunnel.expose("http://localhost:3000/portal/abc")

    @pytest.mark.asyncio
    async def test_unexpected_payload_raises(self):
        tunnel = LocaltunnelClient(transport=tunnel_transport([], body={"error": "nope"}))

        with pytest.raises(TunnelUnavailable):
            await tunnel.expose("http://localhost:3000/portal/abc")


# ============================================================================
# Relay Tests
# ============================================================================


class TestRelayLoop:
    """Tests for the relay connections between the tunnel server and the portal."""

    @pytest.fixture(autouse=True)
    def fast_reconnect(self, monkeypatch):
        monkeypatch.setattr(tunnel_module, "RECONNECT_DELAY_SECONDS", 0.01)

    @pytest.mark.asyncio
    async def test_reconnects_after_connection_reset(self, monkeypatch):
        reader = MagicMock()
        reader.read = AsyncMock(side_effect=ConnectionResetError("peer reset"))
        writer = MagicMock()
        open_connection = AsyncMock(return_value=(reader, writer))
        monkeypatch.setattr(tunnel_module.asyncio, "open_connection", open_connection)

        task = asyncio.create_task(LocaltunnelClient()._relay_loop("localtunnel.me", 41234, "localhost", 3000))
        await asyncio.sleep(0.1)

        assert not task.done()
        assert open_connection.await_count >= 2
        assert writer.close.called

        task.cancel()
        with contextlib.suppress(asyncio.CancelledError):
            await task

    @pytest.mark.asyncio
    async def test_retries_when_local_portal_down(self, monkeypatch):
        reader = MagicMock()
        reader.read = AsyncMock(return_value=b"GET /portal/abc HTTP/1.1\r\n\r\n")
        remote_writer = MagicMock()

        async def open_connection(host, port):
            if port == 3000:
                raise ConnectionRefusedError("portal not listening")
            return reader, remote_writer

        monkeypatch.setattr(tunnel_module.asyncio, "open_connection", open_connection)

        task = asyncio.create_task(LocaltunnelClient()._relay_loop("localtunnel.me", 41234, "localhost", 3000))
        await asyncio.sleep(0.1)

        assert not task.done()
        assert remote_writer.close.call_count >= 2

        task.cancel()
        with contextlib.suppress(asyncio.CancelledError):
            await task

    @pytest.mark.asyncio
    async def test_carries_request_and_response(self):
        received: asyncio.Queue[bytes] = asyncio.Queue()
        served = False

        async def tunnel_server(reader, writer):
            nonlocal served
            if served:
                writer.close()
                return
            served = True
            writer.write(b"GET /portal/abc HTTP/1.1\r\n\r\n")
            await writer.drain()
            await received.put(await reader.read(1024))
            writer.close()

        async def portal(reader, writer):
            request = await reader.read(1024)
            assert request.startswith(b"GET /portal/abc")
            writer.write(b"HTTP/1.1 200 OK\r\nContent-Length: 2\r\n\r\nok")
            await writer.drain()
            writer.close()

        remote = await asyncio.start_server(tunnel_server, "127.0.0.1", 0)
        local = await asyncio.start_server(portal, "127.0.0.1", 0)
        remote_port = remote.sockets[0].getsockname()[1]
        local_port = local.sockets[0].getsockname()[1]

        task = asyncio.create_task(LocaltunnelClient()._relay_loop("127.0.0.1", remote_port, "127.0.0.1", local_port))
        try:
            response = await asyncio.wait_for(received.get(), timeout=2)
            assert response.startswith(b"HTTP/1.1 200 OK")
            assert response.endswith(b"ok")
        finally:
            task.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await task
            remote.close()
            local.close()
