"""
Conversation Context State

Live editor state the assistant sees: current file and code, selection,
cursor, recent errors and open files. Mutated by editor events, read by the
context assembler.

@.architecture
Incoming: api/v1/endpoints/context.py, core/runtime/engine.py --- {editor content/cursor/selection events, ErrorEntry, OpenFile}
Processing: on_content_change(), on_cursor_change(), on_selection_change(), add_recent_error(), add_open_file(), summary() --- {3 jobs: state_tracking, error_bounding, open_file_dedup}
Outgoing: core/context/assembler.py, api/v1/endpoints/context.py --- {ConversationContext snapshot, Dict summary}
"""

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Protocol

MAX_RECENT_ERRORS = 5


class EditorSurface(Protocol):
    """Editor widget calls the backend can push."""

    def set_value(self, code: str) -> None: ...

    def set_language(self, language_id: str) -> None: ...

    def set_theme(self, theme: str) -> None: ...


@dataclass(frozen=True)
class FileRef:
    name: str
    path: str = ""


@dataclass(frozen=True)
class CursorPosition:
    line: int = 0
    column: int = 0


@dataclass(frozen=True)
class ErrorEntry:
    kind: str
    message: str
    line: Optional[int] = None

    def format(self) -> str:
        location = f" (line {self.line})" if self.line is not None else ""
        return f"{self.kind}: {self.message}{location}"


@dataclass
class ConversationContext:
    """Editor state for one studio session."""

    current_file: Optional[FileRef] = None
    current_language: Optional[str] = None
    current_code: str = ""
    selection: str = ""
    cursor_position: CursorPosition = field(default_factory=CursorPosition)
    recent_errors: List[ErrorEntry] = field(default_factory=list)
    open_files: List[FileRef] = field(default_factory=list)
    max_errors: int = MAX_RECENT_ERRORS

    # ============================================================================
    # EDITOR EVENTS
    # ============================================================================

    def on_content_change(self, code: str, language_id: Optional[str] = None) -> None:
        self.current_code = code
        if language_id:
            self.current_language = language_id

    def on_cursor_change(self, line: int, column: int) -> None:
        self.cursor_position = CursorPosition(line=line, column=column)

    def on_selection_change(self, text: str) -> None:
        self.selection = text or ""

    def set_current_file(self, file: Optional[FileRef], content: Optional[str] = None) -> None:
        self.current_file = file
        self.current_code = content or ""

    # ============================================================================
    # ERRORS AND OPEN FILES
    # ============================================================================

    def add_recent_error(self, error: ErrorEntry) -> None:
        """Newest first; the oldest entry is dropped past the limit."""
        self.recent_errors.insert(0, error)
        del self.recent_errors[self.max_errors:]

    def clear_recent_errors(self) -> None:
        self.recent_errors.clear()

    def add_open_file(self, file: FileRef) -> None:
        key = file.path or file.name
        if not any((f.path or f.name) == key for f in self.open_files):
            self.open_files.append(file)

    def remove_open_file(self, path: str) -> None:
        self.open_files = [f for f in self.open_files if (f.path or f.name) != path]

    def summary(self) -> Dict[str, Any]:
        return {
            "current_file": self.current_file.name if self.current_file else None,
            "language": self.current_language,
            "code_length": len(self.current_code),
            "has_selection": bool(self.selection),
            "cursor_position": {"line": self.cursor_position.line, "column": self.cursor_position.column},
            "open_files_count": len(self.open_files),
            "recent_errors_count": len(self.recent_errors),
        }
