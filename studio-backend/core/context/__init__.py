"""Editor context tracking and AI message assembly."""

from .assembler import DEFAULT_SYSTEM_PROMPT, TRUNCATION_MARKER, ContextAssembler, ContextFlags
from .state import (
    ConversationContext,
    CursorPosition,
    EditorSurface,
    ErrorEntry,
    FileRef,
)

__all__ = [
    "ContextAssembler",
    "ContextFlags",
    "ConversationContext",
    "CursorPosition",
    "DEFAULT_SYSTEM_PROMPT",
    "EditorSurface",
    "ErrorEntry",
    "FileRef",
    "TRUNCATION_MARKER",
]
