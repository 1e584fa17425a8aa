"""API routers."""
from .monitors import router as monitors_router
from .stream import router as stream_router

__all__ = ["monitors_router", "stream_router"]
