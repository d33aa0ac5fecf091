"""API routers."""
from .sites import router as sites_router
from .monitor import router as monitor_router
from .incidents import router as incidents_router
from .status import router as status_router

__all__ = ["sites_router", "monitor_router", "incidents_router", "status_router"]
