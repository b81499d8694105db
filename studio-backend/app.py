"""
FastAPI Application Factory

Creates and configures the FastAPI application with:
- API versioning
- Middleware (CORS, error handling)
- Lifecycle management (studio engine startup/shutdown)

@.architecture
Incoming: main.py, config/settings.py, api/v1/router.py, api/middleware/*.py --- {Settings object, APIRouter instances, middleware constructors}
Processing: create_app(), lifespan(), root() --- {5 jobs: application_creation, logging_configuration, middleware_registration, routing_registration, lifecycle_management}
Outgoing: main.py, core/runtime/engine.py, api/dependencies.py, Frontend (HTTP) --- {FastAPI application instance, StudioEngine start/stop, HTTP responses}
"""

from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from api.dependencies import get_settings as settings_dependency, set_studio_engine
from api.middleware import create_error_handler_middleware
from api.v1.router import api_v1_router
from config.settings import Settings, get_settings
from core.runtime.engine import StudioEngine
from monitoring import configure_from_preset, get_logger

logger = get_logger(__name__)

PRESETS = {
    "production": "production",
    "test": "testing",
    "development": "development",
}


def create_app(settings: Optional[Settings] = None) -> FastAPI:
    """
    Create and configure FastAPI application.

    Args:
        settings: Settings to use (loaded from studio.toml and env when None)

    Returns:
        FastAPI: Configured application instance
    """
    settings = settings or get_settings()

    # Explicit monitoring settings override the preset defaults
    configure_from_preset(
        PRESETS[settings.environment],
        level=settings.monitoring.log_level,
        format_type=settings.monitoring.log_format,
    )

    logger.info(f"Creating Polyglot Studio backend (environment: {settings.environment})")

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        logger.info("=== Application Startup ===")
        engine = StudioEngine(settings=settings)
        try:
            await engine.start()
            set_studio_engine(engine)
            logger.info("Studio engine initialized")
        except Exception as e:
            # Endpoints answer 503 until a restart
            logger.error(f"Failed to initialize studio engine: {e}")
        logger.info("=== Startup Complete ===")

        yield

        logger.info("=== Application Shutdown ===")
        set_studio_engine(None)
        try:
            await engine.stop()
            logger.info("Studio engine stopped")
        except Exception as e:
            logger.error(f"Error stopping studio engine: {e}")
        logger.info("=== Shutdown Complete ===")

    app = FastAPI(
        title=settings.app_name,
        version=settings.app_version,
        description="Polyglot Studio backend: runtimes, local AI models and editor context",
        docs_url="/docs",
        redoc_url="/redoc",
        openapi_url="/openapi.json",
        redirect_slashes=False,
        lifespan=lifespan,
    )

    # ==========================================================================
    # Middleware Configuration
    # ==========================================================================

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.security.allowed_origins,
        allow_credentials=settings.security.cors_allow_credentials,
        allow_methods=settings.security.cors_allow_methods,
        allow_headers=settings.security.cors_allow_headers,
    )

    middleware_class, middleware_kwargs = create_error_handler_middleware(
        development=settings.environment == "development"
    )
    app.add_middleware(middleware_class, **middleware_kwargs)

    # ==========================================================================
    # API Routers
    # ==========================================================================

    app.include_router(api_v1_router)

    # Endpoints see the settings this app was built with
    app.dependency_overrides[settings_dependency] = lambda: settings

    @app.get("/")
    async def root():
        """Root endpoint."""
        return JSONResponse({
            "status": "ok",
            "message": "Polyglot Studio Backend API",
            "version": settings.app_version,
            "environment": settings.environment,
            "docs": "/docs"
        })

    return app
