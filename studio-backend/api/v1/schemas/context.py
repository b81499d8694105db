"""
Context Schemas

Pydantic models for editor-state updates.

@.architecture
Incoming: api/v1/endpoints/context.py --- {JSON request payloads}
Processing: Pydantic validation and serialization --- {2 jobs: data_validation, serialization}
Outgoing: api/v1/endpoints/context.py --- {ContextUpdate, ErrorReport, ContextSummaryResponse validated models}
"""

from typing import List, Optional

from pydantic import BaseModel, Field


class FileSchema(BaseModel):
    name: str = Field(..., min_length=1)
    path: str = ""


class CursorSchema(BaseModel):
    line: int = Field(default=0, ge=0)
    column: int = Field(default=0, ge=0)


class ContextUpdate(BaseModel):
    """
    Partial editor state. Only fields that are present are applied.

    A `current_file` without `code` clears the current code, the same as
    opening an empty file.
    """
    current_file: Optional[FileSchema] = None
    code: Optional[str] = None
    language: Optional[str] = None
    selection: Optional[str] = None
    cursor: Optional[CursorSchema] = None
    open_files: Optional[List[FileSchema]] = None


class ErrorReport(BaseModel):
    """One error to remember for the assistant."""
    kind: str = Field(default="Error", min_length=1)
    message: str = Field(..., min_length=1)
    line: Optional[int] = Field(default=None, ge=0)


class ContextSummaryResponse(BaseModel):
    current_file: Optional[str] = None
    language: Optional[str] = None
    code_length: int = 0
    has_selection: bool = False
    cursor_position: CursorSchema = Field(default_factory=CursorSchema)
    open_files_count: int = 0
    recent_errors_count: int = 0
