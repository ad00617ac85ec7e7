"""API routes package."""

from server.routes.transfer_routes import router as transfer_router
from server.routes.download_routes import router as download_router
from server.routes.storage_routes import router as storage_router

__all__ = ["transfer_router", "download_router", "storage_router"]
