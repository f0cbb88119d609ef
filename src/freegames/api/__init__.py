from .portal import create_app
from .portal import router as portal_router

__all__ = ["create_app", "portal_router"]
