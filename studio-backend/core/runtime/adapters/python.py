"""
Python Runtime Adapter

In-process Python evaluator with a persistent namespace. The last expression
of a cell is evaluated and returned, REPL style. print() inside user code is
captured per call.

Cells run on a worker thread. A cell that overruns the execution timeout is
interrupted by raising CellInterrupted inside that thread; a cell that
swallows the interrupt keeps its old namespace while the runtime moves on to
a fresh one.

@.architecture
Incoming: core/runtime/registry.py --- {RuntimeDescriptor, str code}
Processing: _load_engine(), _run(), _execute_cell(), _interrupt() --- {4 jobs: namespace_management, output_capture, error_location, cell_interruption}
Outgoing: core/runtime/base.py --- {Tuple[str output, Any return_value], ExecutionError}
"""

from typing import Any, Dict, Optional, Tuple
import ast
import asyncio
import builtins
import ctypes
import io
import platform
import sys
import threading
import traceback

from core.errors import ExecutionError
from core.runtime.base import BaseRuntime

FILENAME = "<studio>"


class CellInterrupted(BaseException):
    """Raised inside a cell's thread when its call has timed out."""


class PythonRuntime(BaseRuntime):
    """Python adapter backed by the host interpreter"""

    version = platform.python_version()

    def __init__(self, descriptor, execution_timeout: Optional[float] = None):
        super().__init__(descriptor, execution_timeout)
        self._namespace: Optional[Dict[str, Any]] = None
        # Output buffer of the cell running on the current thread
        self._cell = threading.local()
        self._worker_lock = threading.Lock()
        self._worker: Optional[int] = None

    async def _load_engine(self) -> None:
        self._namespace = {
            "__name__": "__studio__",
            "__builtins__": builtins,
            "print": self._print,
        }

    async def _run(self, code: str, options: Dict[str, Any]) -> Tuple[str, Any]:
        if options.get("reset"):
            await self._load_engine()
        return await asyncio.to_thread(self._execute_cell, code, self._namespace)

    def _release_engine(self) -> None:
        self._namespace = None

    def _interrupt(self, run: asyncio.Task) -> None:
        with self._worker_lock:
            if self._worker is None:
                return
            ctypes.pythonapi.PyThreadState_SetAsyncExc(
                ctypes.c_ulong(self._worker), ctypes.py_object(CellInterrupted)
            )

    def _print(self, *args, **kwargs):
        # An explicit file= (e.g. sys.stderr) is honoured
        kwargs.setdefault("file", getattr(self._cell, "buffer", None) or sys.stdout)
        print(*args, **kwargs)

    def _execute_cell(self, code: str, namespace: Dict[str, Any]) -> Tuple[str, Any]:
        buffer = io.StringIO()
        self._cell.buffer = buffer
        with self._worker_lock:
            self._worker = threading.get_ident()

        try:
            value = self._evaluate(code, namespace, buffer)
            return buffer.getvalue(), value
        except CellInterrupted:
            raise ExecutionError(
                "Execution interrupted", kind="TimeoutError", output=buffer.getvalue(), runtime_id=self.id
            )
        finally:
            with self._worker_lock:
                self._worker = None
            self._cell.buffer = None

    def _evaluate(self, code: str, namespace: Dict[str, Any], buffer: io.StringIO) -> Any:
        try:
            tree = ast.parse(code, filename=FILENAME, mode="exec")
        except SyntaxError as e:
            raise ExecutionError(e.msg, kind="SyntaxError", line=e.lineno, runtime_id=self.id)

        tail = None
        if tree.body and isinstance(tree.body[-1], ast.Expr):
            tail = ast.Expression(body=tree.body.pop().value)

        try:
            exec(compile(tree, FILENAME, "exec"), namespace)
            return eval(compile(tail, FILENAME, "eval"), namespace) if tail is not None else None
        except Exception as e:
            raise ExecutionError(
                str(e),
                kind=type(e).__name__,
                line=_user_line(e),
                output=buffer.getvalue(),
                runtime_id=self.id,
            )


def _user_line(error: BaseException) -> Optional[int]:
    """Innermost traceback line that belongs to the user's cell."""
    line = None
    for frame in traceback.extract_tb(error.__traceback__):
        if frame.filename == FILENAME:
            line = frame.lineno
    return line
