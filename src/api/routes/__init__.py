"""
API Routes

Modular route definitions for the PMF Scout API.
"""
from src.api.routes.analyses import router as analyses_router
from src.api.routes.health import router as health_router
from src.api.routes.metrics import router as metrics_router

__all__ = [
    "analyses_router",
    "health_router",
    "metrics_router",
]
