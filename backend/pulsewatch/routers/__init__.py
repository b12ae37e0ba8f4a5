"""API routers."""
from .monitors import router as monitors_router
from .settings import router as settings_router
from .status import router as status_router

__all__ = ["monitors_router", "settings_router", "status_router"]
