"""
Model Schemas

Pydantic models for AI model management endpoints.

@.architecture
Incoming: api/v1/endpoints/models.py, core/ai/orchestrator.py --- {ModelInfo dataclasses, orchestrator status dict, JSON request payloads}
Processing: Pydantic validation and serialization --- {2 jobs: data_validation, serialization}
Outgoing: api/v1/endpoints/models.py --- {ModelSchema, ModelsListResponse, ModelStatusResponse, LoadModelRequest validated models}
"""

from typing import List, Optional

from pydantic import BaseModel, Field


# =============================================================================
# Model Information Models
# =============================================================================

class ModelSchema(BaseModel):
    """One selectable model."""
    id: str
    name: str
    size: str = ""
    category: str = ""
    description: str = ""
    backend_id: str
    supports_multimodal: bool = False


class ModelsListResponse(BaseModel):
    """Response for models list endpoint."""
    models: List[ModelSchema]
    count: int = Field(default=0)

    class Config:
        json_schema_extra = {
            "example": {
                "models": [
                    {
                        "id": "gemma-3n-E2B-it",
                        "name": "Gemma 3n E2B (Multimodal)",
                        "size": "2.8GB",
                        "category": "large",
                        "description": "Vision and text model",
                        "backend_id": "multimodal",
                        "supports_multimodal": True,
                    }
                ],
                "count": 1,
            }
        }


class ModelStatusResponse(BaseModel):
    """Orchestrator state."""
    is_loaded: bool
    is_loading: bool
    current_model: Optional[str] = None
    backend_id: Optional[str] = None
    supports_multimodal: bool = False
    model: Optional[ModelSchema] = None


# =============================================================================
# Request Models
# =============================================================================

class LoadModelRequest(BaseModel):
    """Model to make active."""
    model_id: str = Field(..., min_length=1, max_length=200)
