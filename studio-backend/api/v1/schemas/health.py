"""
Health Check Schemas

Pydantic models for health check endpoints.

@.architecture
Incoming: api/v1/endpoints/health.py, core/runtime/engine.py --- {engine health status dict}
Processing: Pydantic validation and serialization --- {2 jobs: data_validation, serialization}
Outgoing: api/v1/endpoints/health.py --- {SimpleHealthResponse, HealthCheckResponse validated models}
"""

from typing import Any, Dict, Optional

from pydantic import BaseModel

from .common import HealthStatus


class SimpleHealthResponse(BaseModel):
    """Quick liveness answer."""
    status: str = "ok"
    timestamp: float
    uptime_seconds: float
    version: str


class HealthCheckResponse(BaseModel):
    """Engine health with per-module detail."""
    status: HealthStatus
    timestamp: float
    uptime_seconds: float
    engine: Dict[str, Any]
    runtimes: Dict[str, Dict[str, Any]]
    current_language: Optional[str] = None
    ai: Optional[Dict[str, Any]] = None
    context: Optional[Dict[str, Any]] = None

    class Config:
        json_schema_extra = {
            "example": {
                "status": "healthy",
                "timestamp": 1730721600.0,
                "uptime_seconds": 3600,
                "engine": {"initialized": True, "startup_complete": True},
                "runtimes": {"python": {"state": "loaded", "version": "3.12.4"}},
                "current_language": "python",
                "ai": {"is_loaded": False, "is_loading": False, "current_model": None},
                "context": {"language": "python", "code_length": 0},
            }
        }
