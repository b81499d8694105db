"""
API V1 Router

Aggregates all v1 endpoint routers into a single versioned API.

@.architecture
Incoming: app.py, api/v1/endpoints/*.py --- {app.include_router() call, 6 endpoint router instances}
Processing: api_v1_router.include_router() for 6 endpoints --- {1 job: router_aggregation}
Outgoing: app.py, api/v1/endpoints/*.py --- {APIRouter with /v1 prefix, HTTP request routing to endpoints}
"""

from fastapi import APIRouter

from .endpoints import (
    health_router,
    runtimes_router,
    models_router,
    chat_router,
    context_router,
    metrics_router,
)

# Create v1 router
api_v1_router = APIRouter(prefix="/v1")

# Health
api_v1_router.include_router(health_router)

# Runtimes (/runtimes prefix)
api_v1_router.include_router(runtimes_router)

# Models
api_v1_router.include_router(models_router)

# Chat (/chat prefix)
api_v1_router.include_router(chat_router)

# Editor context (/context prefix)
api_v1_router.include_router(context_router)

# Prometheus metrics
api_v1_router.include_router(metrics_router)
