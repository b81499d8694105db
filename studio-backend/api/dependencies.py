"""
API Dependencies

FastAPI dependency injection functions for:
- Settings management
- Studio engine access (registry, manager, orchestrator, context)
- Entitlement header parsing
- Request context setup

@.architecture
Incoming: app.py (lifespan), api/v1/endpoints/*.py --- {set_studio_engine calls, Depends() injections from endpoints}
Processing: get_settings(), peek_studio_engine(), get_studio_engine(), get_registry(), get_orchestrator(), get_entitlement(), setup_request_context() --- {4 jobs: dependency_injection, entitlement_parsing, context_setup, readiness_gating}
Outgoing: api/v1/endpoints/*.py, app.py --- {Settings instance, StudioEngine instance, RuntimeRegistry, AIOrchestrator, ConversationContext, Tier, request context dict}
"""

from typing import Optional
import uuid

from fastapi import Depends, Header, HTTPException, Request

from config.settings import Settings, get_settings as load_settings
from core.ai.orchestrator import AIOrchestrator
from core.context.state import ConversationContext
from core.runtime.descriptors import Tier
from core.runtime.engine import StudioEngine
from core.runtime.registry import RuntimeRegistry
from monitoring import get_logger, set_request_context

logger = get_logger(__name__)


# =============================================================================
# Settings Dependencies
# =============================================================================

def get_settings() -> Settings:
    """
    Get application settings.

    Returns:
        Settings: Application configuration (cached by config.settings)
    """
    return load_settings()


# =============================================================================
# Studio Engine Dependencies
# =============================================================================

_studio_engine: Optional[StudioEngine] = None


def set_studio_engine(engine: Optional[StudioEngine]) -> None:
    """Set (or clear) the global studio engine instance."""
    global _studio_engine
    _studio_engine = engine


def peek_studio_engine() -> Optional[StudioEngine]:
    """Engine instance without the readiness check (health endpoints)."""
    return _studio_engine


def get_studio_engine() -> StudioEngine:
    """
    Get the studio engine instance.

    Raises:
        HTTPException: If the engine is not initialized
    """
    if _studio_engine is None or not _studio_engine.is_ready():
        logger.error("Studio engine not initialized")
        raise HTTPException(
            status_code=503,
            detail="Studio engine not initialized. Server is starting up."
        )
    return _studio_engine


def get_registry(engine: StudioEngine = Depends(get_studio_engine)) -> RuntimeRegistry:
    return engine.registry


def get_orchestrator(engine: StudioEngine = Depends(get_studio_engine)) -> AIOrchestrator:
    return engine.orchestrator


def get_context(engine: StudioEngine = Depends(get_studio_engine)) -> ConversationContext:
    return engine.context


# =============================================================================
# Entitlement
# =============================================================================

def get_entitlement(
    x_entitlement: Optional[str] = Header(None),
    settings: Settings = Depends(get_settings),
) -> Tier:
    """
    Caller's tier from the X-Entitlement header.

    Falls back to the configured default entitlement.

    Raises:
        HTTPException: 400 for an unknown tier name
    """
    value = (x_entitlement or settings.runtimes.default_entitlement).strip().lower()
    try:
        return Tier(value)
    except ValueError:
        raise HTTPException(
            status_code=400,
            detail=f"Unknown entitlement '{value}'. Expected one of: {[t.value for t in Tier]}"
        )


# =============================================================================
# Request Context Dependencies
# =============================================================================

async def setup_request_context(
    request: Request,
    x_request_id: Optional[str] = Header(None),
    x_session_id: Optional[str] = Header(None)
) -> dict:
    """
    Setup request context for logging.

    Args:
        request: FastAPI request object
        x_request_id: Optional request ID from header
        x_session_id: Optional session ID from header

    Returns:
        dict: Request context information
    """
    request_id = x_request_id or str(uuid.uuid4())

    set_request_context(request_id=request_id, session_id=x_session_id)

    request.state.request_id = request_id
    request.state.session_id = x_session_id

    return {
        "request_id": request_id,
        "session_id": x_session_id,
        "method": request.method,
        "path": request.url.path
    }
