"""
Common Schemas

Shared Pydantic models used across API endpoints.

@.architecture
Incoming: api/v1/endpoints/*.py --- {status data, error data}
Processing: Pydantic validation and serialization --- {2 jobs: data_validation, serialization}
Outgoing: api/v1/endpoints/*.py --- {SuccessResponse, ErrorBody, ErrorResponse, HealthStatus validated models}
"""

from enum import Enum
from typing import Any, Dict, Optional

from pydantic import BaseModel


# =============================================================================
# Response Models
# =============================================================================

class SuccessResponse(BaseModel):
    """Generic success response."""
    success: bool = True
    message: Optional[str] = None
    data: Optional[Dict[str, Any]] = None


class ErrorBody(BaseModel):
    """Body produced by the error handler middleware."""
    code: int
    message: str
    type: str
    hint: Optional[str] = None


class ErrorResponse(BaseModel):
    """Error response model."""
    error: ErrorBody


# =============================================================================
# Status Models
# =============================================================================

class HealthStatus(str, Enum):
    """Health status levels."""
    HEALTHY = "healthy"
    DEGRADED = "degraded"
    UNHEALTHY = "unhealthy"
