"""
Runtime Contract

Abstract lifecycle and callback fan-out shared by every execution engine
adapter. Subclasses wrap one interpreter and only implement the engine hooks;
state transitions, single-flight loading, error capture and subscriber
dispatch live here.

@.architecture
Incoming: core/runtime/registry.py, core/runtime/manager.py, core/runtime/adapters/*.py --- {load/execute/dispose calls, subscriber callables}
Processing: load(), execute(), dispose(), subscribe_output(), subscribe_error(), log() --- {5 jobs: state_machine, single_flight_loading, error_capture, callback_fanout, timing}
Outgoing: core/runtime/registry.py, core/runtime/manager.py, api/v1/endpoints/runtimes.py --- {ExecutionResult, RuntimeState, str version}
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable, Dict, List, Optional, Tuple
import asyncio
import logging
import time

from core.errors import (
    ExecutionError,
    LoadError,
    NotLoadedError,
    RuntimeDisposedError,
)
from core.runtime.descriptors import RuntimeDescriptor

logger = logging.getLogger(__name__)

OutputCallback = Callable[[str], Any]
ErrorCallback = Callable[[str], Any]
Unsubscribe = Callable[[], None]

# Log kinds routed to error subscribers; everything else goes to output.
ERROR_KINDS = frozenset({"stderr", "error"})


class RuntimeState(str, Enum):
    """Runtime lifecycle states"""
    UNLOADED = "unloaded"
    LOADING = "loading"
    LOADED = "loaded"
    DISPOSED = "disposed"


@dataclass(frozen=True)
class ErrorInfo:
    """Structured description of a user-code failure"""
    kind: str
    message: str
    line: Optional[int] = None

    def to_dict(self) -> Dict[str, Any]:
        return {"kind": self.kind, "message": self.message, "line": self.line}


@dataclass(frozen=True)
class ExecutionResult:
    """Outcome of one execute() call"""
    success: bool
    output: str = ""
    return_value: Any = None
    error: Optional[ErrorInfo] = None
    execution_time_ms: float = 0.0


class BaseRuntime(ABC):
    """
    Abstract base for all runtime adapters.

    Lifecycle: UNLOADED -> LOADING -> LOADED, once per instance. A failed
    load goes back to UNLOADED so it can be retried. DISPOSED is terminal.
    """

    # Reported by get_version(); adapters override once the engine is known.
    version: str = "unknown"

    # Seconds a timed-out call gets to stop after _interrupt() before the
    # engine is reset under it.
    interrupt_grace: float = 2.0

    def __init__(self, descriptor: RuntimeDescriptor, execution_timeout: Optional[float] = None):
        """
        Initialize runtime adapter.

        Args:
            descriptor: Static metadata for this engine
            execution_timeout: Seconds before execute() gives up, None for no limit
        """
        self.descriptor = descriptor
        self.execution_timeout = execution_timeout
        self._state = RuntimeState.UNLOADED
        self._load_future: Optional[asyncio.Future] = None
        self._exec_lock: Optional[asyncio.Lock] = None
        self._output_subscribers: List[OutputCallback] = []
        self._error_subscribers: List[ErrorCallback] = []
        self.logger = logging.getLogger(f"runtime.{descriptor.id}")

    # ============================================================================
    # ENGINE HOOKS
    # ============================================================================

    @abstractmethod
    async def _load_engine(self) -> None:
        """Bring the engine up. Raising here fails the load."""

    @abstractmethod
    async def _run(self, code: str, options: Dict[str, Any]) -> Tuple[str, Any]:
        """
        Run code on the loaded engine.

        Returns:
            (captured output, return value)

        Raises:
            ExecutionError: user code failed
        """

    def _release_engine(self) -> None:
        """Free engine resources. Called once from dispose()."""

    def _interrupt(self, run: asyncio.Task) -> None:
        """
        Ask a timed-out call to stop.

        The default cancels the task. Adapters that run code on a worker
        thread override this, since cancelling the task leaves the thread
        running.
        """
        run.cancel()

    async def _reset_engine(self) -> None:
        """Replace an engine that is still busy with an abandoned call."""
        self._release_quietly()
        await self._load_engine()

    # ============================================================================
    # IDENTITY
    # ============================================================================

    @property
    def id(self) -> str:
        return self.descriptor.id

    @property
    def name(self) -> str:
        return self.descriptor.display_name

    def get_version(self) -> str:
        return self.version

    def get_state(self) -> RuntimeState:
        return self._state

    def is_loaded(self) -> bool:
        return self._state is RuntimeState.LOADED

    def is_loading(self) -> bool:
        return self._state is RuntimeState.LOADING

    # ============================================================================
    # LIFECYCLE
    # ============================================================================

    async def load(self) -> None:
        """
        Load the engine.

        No-op once loaded. Concurrent callers share the in-flight load, so the
        engine is brought up at most once.

        Raises:
            RuntimeDisposedError: runtime was disposed
            LoadError: engine failed to come up; state is back to UNLOADED
        """
        if self._state is RuntimeState.DISPOSED:
            raise RuntimeDisposedError(f"Runtime '{self.id}' has been disposed", runtime_id=self.id)
        if self._state is RuntimeState.LOADED:
            return
        if self._load_future is not None:
            await asyncio.shield(self._load_future)
            return

        future = asyncio.get_running_loop().create_future()
        self._load_future = future
        self._state = RuntimeState.LOADING
        started = time.perf_counter()
        self.logger.info(f"Loading runtime: {self.id}")

        try:
            await self._load_engine()
        except asyncio.CancelledError:
            if self._state is not RuntimeState.DISPOSED:
                self._state = RuntimeState.UNLOADED
            future.cancel()
            raise
        except Exception as e:
            error = e if isinstance(e, LoadError) else LoadError(
                f"Failed to load runtime '{self.id}': {e}", runtime_id=self.id
            )
            if self._state is not RuntimeState.DISPOSED:
                self._state = RuntimeState.UNLOADED
            self.logger.error(f"Runtime load failed: {self.id}: {e}")
            future.set_exception(error)
            # Retrieved here so a load with no concurrent waiters does not warn.
            future.exception()
            raise error from e
        finally:
            self._load_future = None

        if self._state is RuntimeState.DISPOSED:
            # dispose() ran while the engine was coming up
            self._release_quietly()
            error = RuntimeDisposedError(
                f"Runtime '{self.id}' was disposed while loading", runtime_id=self.id
            )
            future.set_exception(error)
            future.exception()
            raise error

        self._state = RuntimeState.LOADED
        future.set_result(None)
        elapsed = (time.perf_counter() - started) * 1000
        self.logger.info(f"Runtime loaded: {self.id} v{self.get_version()} ({elapsed:.1f}ms)")
        self.log(f"{self.name} {self.get_version()} ready", "info")

    async def execute(self, code: str, options: Optional[Dict[str, Any]] = None) -> ExecutionResult:
        """
        Execute code on the loaded engine.

        Errors raised by the user's code are captured into the result, never
        raised. Calls on one runtime run one at a time.

        Args:
            code: Source text
            options: Adapter-specific options

        Returns:
            ExecutionResult for this call

        Raises:
            RuntimeDisposedError: runtime was disposed
            NotLoadedError: load() has not completed
        """
        if self._state is RuntimeState.DISPOSED:
            raise RuntimeDisposedError(f"Runtime '{self.id}' has been disposed", runtime_id=self.id)
        if self._state is not RuntimeState.LOADED:
            raise NotLoadedError(f"Runtime '{self.id}' is not loaded", runtime_id=self.id)

        if self._exec_lock is None:
            self._exec_lock = asyncio.Lock()

        async with self._exec_lock:
            started = time.perf_counter()
            run = asyncio.ensure_future(self._run(code, options or {}))
            try:
                if self.execution_timeout:
                    output, return_value = await asyncio.wait_for(
                        asyncio.shield(run), timeout=self.execution_timeout
                    )
                else:
                    output, return_value = await run
            except asyncio.CancelledError:
                run.cancel()
                raise
            except asyncio.TimeoutError:
                # The lock stays held until the call has stopped or the engine
                # has been replaced, so no two calls share engine state.
                await self._stop_run(run)
                return self._failure(
                    ErrorInfo("TimeoutError", f"Execution exceeded {self.execution_timeout}s"),
                    "",
                    started,
                )
            except ExecutionError as e:
                return self._failure(ErrorInfo(e.kind, e.message, e.line), e.output, started)
            except Exception as e:
                return self._failure(ErrorInfo(type(e).__name__, str(e)), "", started)

        elapsed = (time.perf_counter() - started) * 1000
        if output:
            self.log(output, "stdout")
        return ExecutionResult(
            success=True,
            output=output,
            return_value=return_value,
            execution_time_ms=elapsed,
        )

    async def _stop_run(self, run: asyncio.Task) -> None:
        self._interrupt(run)
        await asyncio.wait({run}, timeout=self.interrupt_grace)
        if run.done():
            _discard_outcome(run)
            return

        self.logger.warning(
            f"Execution on {self.id} ignored interrupt for {self.interrupt_grace}s; resetting engine"
        )
        run.add_done_callback(_discard_outcome)
        await self._reset_engine()

    def _failure(self, info: ErrorInfo, output: str, started: float) -> ExecutionResult:
        elapsed = (time.perf_counter() - started) * 1000
        if output:
            self.log(output, "stdout")
        location = f" (line {info.line})" if info.line is not None else ""
        self.log(f"{info.kind}: {info.message}{location}", "error")
        return ExecutionResult(
            success=False,
            output=output,
            error=info,
            execution_time_ms=elapsed,
        )

    def dispose(self) -> None:
        """Release the engine and drop all subscribers. Idempotent and terminal."""
        if self._state is RuntimeState.DISPOSED:
            return

        was_loaded = self._state is RuntimeState.LOADED
        self._state = RuntimeState.DISPOSED
        self._output_subscribers.clear()
        self._error_subscribers.clear()

        if was_loaded:
            self._release_engine()
        self.logger.info(f"Runtime disposed: {self.id}")

    def _release_quietly(self) -> None:
        try:
            self._release_engine()
        except Exception as e:
            self.logger.warning(f"Engine release failed for {self.id}: {e}")

    # ============================================================================
    # CALLBACK FAN-OUT
    # ============================================================================

    def subscribe_output(self, callback: OutputCallback) -> Unsubscribe:
        """Register an output subscriber. Returns a callable that removes it."""
        return self._subscribe(self._output_subscribers, callback)

    def subscribe_error(self, callback: ErrorCallback) -> Unsubscribe:
        """Register an error subscriber. Returns a callable that removes it."""
        return self._subscribe(self._error_subscribers, callback)

    def _subscribe(self, subscribers: List[Callable[[str], Any]], callback) -> Unsubscribe:
        if self._state is RuntimeState.DISPOSED:
            raise RuntimeDisposedError(f"Runtime '{self.id}' has been disposed", runtime_id=self.id)
        subscribers.append(callback)

        def unsubscribe() -> None:
            if callback in subscribers:
                subscribers.remove(callback)

        return unsubscribe

    def log(self, text: str, kind: str = "stdout") -> None:
        """
        Route text to subscribers.

        ``stderr`` and ``error`` go to error subscribers, every other kind
        (stdout, info, success) to output subscribers. Subscribers run in
        registration order; one that raises is logged and skipped.
        """
        subscribers = self._error_subscribers if kind in ERROR_KINDS else self._output_subscribers
        for callback in list(subscribers):
            try:
                callback(text)
            except Exception as e:
                self.logger.warning(f"Subscriber failed on {self.id} ({kind}): {e}")


def _discard_outcome(run: asyncio.Future) -> None:
    # The caller already got a timeout result; only mark the outcome as seen.
    if not run.cancelled():
        run.exception()
