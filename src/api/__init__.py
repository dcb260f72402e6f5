"""API module exports."""

from src.api.clients import router as clients_router
from src.api.deps import get_current_user, get_db, get_redis
from src.api.health import router as health_router
from src.api.permissions import router as permissions_router
from src.api.tax_filings import router as tax_filings_router
from src.api.users import router as users_router

__all__ = [
    "clients_router",
    "get_current_user",
    "get_db",
    "get_redis",
    "health_router",
    "permissions_router",
    "tax_filings_router",
    "users_router",
]
