"""API Routers package."""

from tables_app.routers import health as health_router
from tables_app.routers import tables as tables_router

__all__ = ["health_router", "tables_router"]
