"""API endpoint modules."""

from .proxy import router as proxy_router
from .system import router as system_router

__all__ = [
    "proxy_router",
    "system_router",
]
