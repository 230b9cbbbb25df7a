"""API route modules."""

from routes.certificates_routes import router as certificates_router
from routes.health_routes import router as health_router
from routes.pages_routes import router as pages_router
from routes.storage_routes import router as storage_router

__all__ = [
    "certificates_router",
    "health_router",
    "pages_router",
    "storage_router",
]
