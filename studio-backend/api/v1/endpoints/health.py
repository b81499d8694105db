"""
Health Check Endpoints

Liveness and engine health checks.

@.architecture
Incoming: api/v1/router.py, Frontend (HTTP GET), Load Balancers --- {HTTP requests to /v1/health, /v1/health/detailed}
Processing: health_check(), detailed_health_check() --- {2 jobs: liveness, engine_health_reporting}
Outgoing: api/dependencies.py, core/runtime/engine.py, Frontend (HTTP) --- {StudioEngine.get_health_status(), SimpleHealthResponse, HealthCheckResponse}
"""

import time

from fastapi import APIRouter, Depends, Response, status

from api.dependencies import get_settings, peek_studio_engine, setup_request_context
from api.v1.schemas.common import HealthStatus
from api.v1.schemas.health import HealthCheckResponse, SimpleHealthResponse
from config.settings import Settings
from monitoring import get_logger

logger = get_logger(__name__)
router = APIRouter(tags=["health"])

# Track startup time
START_TIME = time.time()


# =============================================================================
# Simple Health Check
# =============================================================================

@router.get(
    "/health",
    response_model=SimpleHealthResponse,
    summary="Simple health check",
    description="Quick health check endpoint for load balancers and monitoring"
)
async def health_check(settings: Settings = Depends(get_settings)) -> SimpleHealthResponse:
    """Returns basic status and uptime. Does not touch the engine."""
    return SimpleHealthResponse(
        status="ok",
        timestamp=time.time(),
        uptime_seconds=time.time() - START_TIME,
        version=settings.app_version,
    )


# =============================================================================
# Engine Health Check
# =============================================================================

@router.get(
    "/health/detailed",
    response_model=HealthCheckResponse,
    summary="Detailed health check",
    description="Engine, runtime, AI and context state"
)
async def detailed_health_check(
    response: Response,
    _context: dict = Depends(setup_request_context)
) -> HealthCheckResponse:
    """
    Engine health.

    Answers 503 with status "unhealthy" while the engine is starting or
    after it has stopped.
    """
    engine = peek_studio_engine()

    if engine is None:
        logger.warning("Health check before engine startup")
        response.status_code = status.HTTP_503_SERVICE_UNAVAILABLE
        return HealthCheckResponse(
            status=HealthStatus.UNHEALTHY,
            timestamp=time.time(),
            uptime_seconds=time.time() - START_TIME,
            engine={"initialized": False, "startup_complete": False},
            runtimes={},
        )

    health = engine.get_health_status()
    ready = engine.is_ready()
    if not ready:
        response.status_code = status.HTTP_503_SERVICE_UNAVAILABLE

    return HealthCheckResponse(
        status=HealthStatus.HEALTHY if ready else HealthStatus.UNHEALTHY,
        timestamp=time.time(),
        uptime_seconds=time.time() - START_TIME,
        **health,
    )
