"""
Context Assembler

Builds the bounded, deterministic message list sent to the AI orchestrator:
a fixed system prompt, one optional system message with editor context, and
the user's message last.

@.architecture
Incoming: api/v1/endpoints/chat.py, core/runtime/engine.py --- {str user message, ConversationContext, ContextFlags}
Processing: build(), quick(), explain(), generate(), fix(), review(), _context_parts() --- {3 jobs: context_selection, code_truncation, template_rendering}
Outgoing: core/ai/orchestrator.py --- {List[Dict[str, str]] role/content messages}
"""

from dataclasses import dataclass
from typing import Dict, List, Optional

from core.context.state import ConversationContext

DEFAULT_SYSTEM_PROMPT = """You are an AI coding assistant built into Polyglot Studio, a browser-based development environment that runs code in many languages and databases.

Your role:
- Help developers write, understand, debug, and improve code
- Give clear, concise explanations
- Suggest improvements and optimizations
- Help fix bugs and errors
- Answer programming questions

Guidelines:
- Keep responses focused and practical
- Use code examples when helpful
- Refer to the current file and language
- Be specific about line numbers when discussing code
- Respect the developer's approach when suggesting changes

The studio runs code locally in sandboxed runtimes. You have no access to external APIs or the file system."""

TRUNCATION_MARKER = "... (truncated)"

Message = Dict[str, str]


@dataclass(frozen=True)
class ContextFlags:
    """Which editor context goes into build()."""
    include_current_file: bool = True
    include_selection: bool = True
    include_errors: bool = True
    include_open_files: bool = False


class ContextAssembler:
    """Renders ConversationContext into chat messages."""

    def __init__(
        self,
        context: ConversationContext,
        system_prompt: Optional[str] = None,
        max_code_lines: int = 500,
    ):
        self.context = context
        self.system_prompt = system_prompt or DEFAULT_SYSTEM_PROMPT
        self.max_code_lines = max_code_lines

    def build(self, user_message: str, flags: Optional[ContextFlags] = None) -> List[Message]:
        """
        Messages for a free-form question.

        Same context and flags always produce the same list.
        """
        flags = flags or ContextFlags()
        messages = [self._system()]

        context_text = "\n".join(self._context_parts(flags))
        if context_text:
            messages.append({"role": "system", "content": context_text})

        messages.append({"role": "user", "content": user_message})
        return messages

    def _context_parts(self, flags: ContextFlags) -> List[str]:
        ctx = self.context
        fence = ctx.current_language or ""
        parts: List[str] = []

        if flags.include_current_file and ctx.current_file is not None:
            parts.append(f"Current file: {ctx.current_file.name} ({ctx.current_language or 'unknown'})")
            if ctx.current_code:
                parts.append(f"\nCurrent code:\n```{fence}\n{self._truncate(ctx.current_code)}\n```")

        if flags.include_selection and ctx.selection:
            parts.append(f"\nSelected code:\n```{fence}\n{ctx.selection}\n```")
            parts.append(
                f"Cursor position: Line {ctx.cursor_position.line}, Column {ctx.cursor_position.column}"
            )

        if flags.include_errors and ctx.recent_errors:
            errors = "\n".join(f"- {error.format()}" for error in ctx.recent_errors[:ctx.max_errors])
            parts.append(f"\nRecent errors:\n{errors}")

        if flags.include_open_files and ctx.open_files:
            files = "\n".join(f"- {f.name}" for f in ctx.open_files)
            parts.append(f"\nOpen files:\n{files}")

        return parts

    def _truncate(self, code: str) -> str:
        lines = code.split("\n")
        if len(lines) <= self.max_code_lines:
            return code
        return "\n".join(lines[:self.max_code_lines]) + "\n" + TRUNCATION_MARKER

    def _system(self) -> Message:
        return {"role": "system", "content": self.system_prompt}

    def _single(self, prompt: str) -> List[Message]:
        return [self._system(), {"role": "user", "content": prompt}]

    # ============================================================================
    # TASK TEMPLATES
    # ============================================================================

    def quick(self, user_message: str) -> List[Message]:
        """System prompt and the message, no editor context."""
        return self._single(user_message)

    def explain(self, code: str, language: Optional[str] = None) -> List[Message]:
        return self._single(
            f"Explain this {language or 'code'} clearly and concisely:\n\n"
            f"```{language or ''}\n{code}\n```\n\n"
            "Provide:\n1. What the code does\n2. Key concepts used\n3. Any important details or gotchas"
        )

    def generate(self, description: str, language: Optional[str] = None) -> List[Message]:
        return self._single(
            f"Generate {language or 'code'} for the following:\n\n{description}\n\n"
            f"Provide clean, well-commented code following best practices for {language or 'this language'}."
        )

    def fix(self, code: str, error: str, language: Optional[str] = None) -> List[Message]:
        return self._single(
            f"This {language or 'code'} has an error:\n\nError: {error}\n\n"
            f"Code:\n```{language or ''}\n{code}\n```\n\n"
            "Please:\n1. Explain what's causing the error\n2. Provide the corrected code\n3. Explain the fix"
        )

    def review(self, code: str, language: Optional[str] = None) -> List[Message]:
        return self._single(
            f"Review this {language or 'code'} and suggest improvements:\n\n"
            f"```{language or ''}\n{code}\n```\n\n"
            "Focus on:\n1. Code quality and best practices\n2. Potential bugs or issues\n"
            "3. Performance optimizations\n4. Readability improvements"
        )
