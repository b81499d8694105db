"""
SQLite Runtime Adapter

In-memory SQLite database that lives for the lifetime of the runtime. A cell
may hold several statements; the rows of the last statement that returns any
are reported.

@.architecture
Incoming: core/runtime/registry.py --- {RuntimeDescriptor, str SQL}
Processing: _load_engine(), _run(), _interrupt(), _split_statements(), _format_table() --- {4 jobs: connection_lifecycle, statement_splitting, result_formatting, interruption}
Outgoing: core/runtime/base.py --- {Tuple[str table, Dict columns/rows], ExecutionError}
"""

from typing import Any, Dict, List, Optional, Tuple
import asyncio
import sqlite3
import threading

from core.errors import ExecutionError
from core.runtime.base import BaseRuntime


class SQLiteRuntime(BaseRuntime):
    """SQLite adapter using the standard library driver"""

    version = sqlite3.sqlite_version

    def __init__(self, descriptor, execution_timeout: Optional[float] = None):
        super().__init__(descriptor, execution_timeout)
        self._connection: Optional[sqlite3.Connection] = None
        self._interrupted = threading.Event()

    async def _load_engine(self) -> None:
        # Statements run on a worker thread; BaseRuntime serialises them.
        self._connection = sqlite3.connect(":memory:", check_same_thread=False)

    async def _run(self, code: str, options: Dict[str, Any]) -> Tuple[str, Any]:
        self._interrupted.clear()
        return await asyncio.to_thread(self._execute_script, code, self._connection)

    def _release_engine(self) -> None:
        if self._connection is not None:
            self._connection.close()
            self._connection = None

    def _interrupt(self, run: asyncio.Task) -> None:
        # Aborts the running statement; the script stops before the next one.
        self._interrupted.set()
        if self._connection is not None:
            self._connection.interrupt()

    async def _reset_engine(self) -> None:
        # The abandoned script still holds the old connection and closes it
        # when it finishes.
        await self._load_engine()

    def _execute_script(self, code: str, connection: sqlite3.Connection) -> Tuple[str, Any]:
        try:
            return self._execute_statements(code, connection)
        finally:
            if connection is not self._connection:
                connection.close()

    def _execute_statements(self, code: str, connection: sqlite3.Connection) -> Tuple[str, Any]:
        statements = _split_statements(code)
        if not statements:
            return "", None

        lines: List[str] = []
        result = None
        for index, statement in enumerate(statements, start=1):
            if self._interrupted.is_set():
                raise ExecutionError(
                    "Execution interrupted",
                    kind="TimeoutError",
                    line=index,
                    output="\n".join(lines),
                    runtime_id=self.id,
                )
            try:
                cursor = connection.execute(statement)
                rows = cursor.fetchall()
            except sqlite3.Error as e:
                raise ExecutionError(
                    str(e),
                    kind=type(e).__name__,
                    line=index,
                    output="\n".join(lines),
                    runtime_id=self.id,
                )

            if cursor.description:
                columns = [column[0] for column in cursor.description]
                result = {"columns": columns, "rows": [list(row) for row in rows]}
                lines.append(_format_table(columns, rows))
            elif cursor.rowcount >= 0:
                lines.append(f"Query OK, {cursor.rowcount} row(s) affected")

        connection.commit()
        return "\n".join(lines), result


def _split_statements(code: str) -> List[str]:
    """Split SQL into complete statements, respecting quoted semicolons."""
    statements = []
    buffer = ""
    for part in code.split(";"):
        buffer = f"{buffer};{part}" if buffer else part
        if sqlite3.complete_statement(buffer + ";"):
            if buffer.strip():
                statements.append(buffer.strip())
            buffer = ""
    if buffer.strip():
        statements.append(buffer.strip())
    return statements


def _format_table(columns: List[str], rows: List[tuple]) -> str:
    cells = [[("NULL" if value is None else str(value)) for value in row] for row in rows]
    widths = [len(name) for name in columns]
    for row in cells:
        for i, value in enumerate(row):
            widths[i] = max(widths[i], len(value))

    def render(values):
        return "| " + " | ".join(v.ljust(widths[i]) for i, v in enumerate(values)) + " |"

    separator = "+-" + "-+-".join("-" * w for w in widths) + "-+"
    out = [separator, render(columns), separator]
    out.extend(render(row) for row in cells)
    out.append(separator)
    out.append(f"{len(rows)} row(s)")
    return "\n".join(out)
