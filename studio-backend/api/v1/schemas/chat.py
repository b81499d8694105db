"""
Chat Schemas

Pydantic models for the streaming chat endpoint.

@.architecture
Incoming: api/v1/endpoints/chat.py --- {JSON request payloads}
Processing: Pydantic validation, to_flags() --- {2 jobs: data_validation, flag_mapping}
Outgoing: api/v1/endpoints/chat.py --- {ChatRequest, ContextFlagsSchema validated models, ContextFlags}
"""

from typing import Any, Dict, List, Literal, Optional

from pydantic import BaseModel, Field, model_validator

from core.context.assembler import ContextFlags


class ContextFlagsSchema(BaseModel):
    """Which editor context goes into the prompt. Unset fields use the configured defaults."""
    include_current_file: Optional[bool] = None
    include_selection: Optional[bool] = None
    include_errors: Optional[bool] = None
    include_open_files: Optional[bool] = None

    def to_flags(self, defaults: ContextFlags) -> ContextFlags:
        values = {
            name: getattr(defaults, name) if value is None else value
            for name, value in self.model_dump().items()
        }
        return ContextFlags(**values)


class ChatRequest(BaseModel):
    """
    One assistant request.

    `template` selects a canned prompt instead of the free-form context build;
    `explain`, `review` and `fix` need `code`, `fix` also needs `error`.
    """
    message: str = Field(default="", max_length=100_000)
    template: Optional[Literal["quick", "explain", "generate", "fix", "review"]] = None
    code: Optional[str] = None
    error: Optional[str] = None
    language: Optional[str] = None
    flags: ContextFlagsSchema = Field(default_factory=ContextFlagsSchema)
    images: List[str] = Field(default_factory=list, description="data: URLs or bare base64 strings")
    options: Dict[str, Any] = Field(default_factory=dict)

    @model_validator(mode="after")
    def check_template_inputs(self) -> "ChatRequest":
        if self.template in ("explain", "review", "fix") and not self.code:
            raise ValueError(f"Template '{self.template}' requires 'code'")
        if self.template == "fix" and not self.error:
            raise ValueError("Template 'fix' requires 'error'")
        if self.template in (None, "quick", "generate") and not self.message.strip():
            raise ValueError("'message' must not be empty")
        return self

    class Config:
        json_schema_extra = {
            "example": {
                "message": "Why does this loop never end?",
                "flags": {"include_open_files": True},
                "options": {"temperature": 0.2},
            }
        }
