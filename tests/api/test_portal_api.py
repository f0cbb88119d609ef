"""
Integration tests for the portal endpoints.

The portal registry is real; tabs are mocks.
"""

from unittest.mock import MagicMock

import pytest
from fastapi.testclient import TestClient
from starlette.websockets import WebSocketDisconnect

from src.freegames.api import create_app
from src.freegames.services.browser.portal import PortalServer


@pytest.fixture
def portal() -> PortalServer:
    return PortalServer("http://localhost:3000")


@pytest.fixture
def client(portal: PortalServer) -> TestClient:
    """Create test client."""
    return TestClient(create_app(portal))


class TestPortalPage:
    """Tests for GET /portal/{token}."""

    def test_known_token(self, client: TestClient, portal: PortalServer) -> None:
        token = portal.register(MagicMock())

        response = client.get(f"/portal/{token}")

        assert response.status_code == 200
        assert "<canvas" in response.text

    def test_unknown_token(self, client: TestClient) -> None:
        response = client.get("/portal/does-not-exist")

        assert response.status_code == 404

    def test_unregistered_token(self, client: TestClient, portal: PortalServer) -> None:
        token = portal.register(MagicMock())
        portal.unregister(token)

        assert client.get(f"/portal/{token}").status_code == 404


class TestNotifierTestPage:
    """Tests for GET /notifier-test."""

    def test_page_adds_complete_marker(self, client: TestClient) -> None:
        response = client.get("/notifier-test")

        assert response.status_code == 200
        assert "done.id = 'complete'" in response.text


class TestPortalWebSocket:
    """Tests for WS /portal/{token}/ws."""

    def test_unknown_token_closed(self, client: TestClient) -> None:
        with pytest.raises(WebSocketDisconnect) as exc_info:
            with client.websocket_connect("/portal/does-not-exist/ws"):
                pass

        assert exc_info.value.code == 4404
