"""HTTP endpoints."""

from .auth import router as auth_router
from .health import router as health_router
from .ledger_query import router as ledger_router

__all__ = ["auth_router", "health_router", "ledger_router"]
