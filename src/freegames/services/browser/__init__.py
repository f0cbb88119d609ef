"""
Browser sessions and the portal that exposes them to a human.

Usage:
    portal = get_portal_server(config.web_portal_config.base_url)
    factory = NodriverSessionFactory(portal)
"""

from .portal import PortalServer, PortalTarget, get_portal_server
from .session import AutomationSession, NodriverSession, NodriverSessionFactory, SessionFactory
from .streaming import BrowserStreamer, RemoteController, StreamStats

__all__ = [
    "AutomationSession",
    "BrowserStreamer",
    "NodriverSession",
    "NodriverSessionFactory",
    "PortalServer",
    "PortalTarget",
    "RemoteController",
    "SessionFactory",
    "StreamStats",
    "get_portal_server",
]
