"""HTTP API for the App Proxy."""

from .endpoints import proxy_router, system_router

__all__ = [
    "proxy_router",
    "system_router",
]
