"""
API V1 Endpoints

FastAPI routers for all API endpoints.
"""

from .health import router as health_router
from .runtimes import router as runtimes_router
from .models import router as models_router
from .chat import router as chat_router
from .context import router as context_router
from .metrics import router as metrics_router

__all__ = [
    "health_router",
    "runtimes_router",
    "models_router",
    "chat_router",
    "context_router",
    "metrics_router",
]
