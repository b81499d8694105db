"""
Runtime Manager

Session view over the runtime registry: tracks the current language, routes
code to it and fans every runtime's output into one pair of subscriber lists.

@.architecture
Incoming: core/runtime/engine.py, api/v1/endpoints/runtimes.py --- {str language id, str code, output/error callbacks}
Processing: init(), switch_language(), execute_code(), on_output(), on_error(), available_languages(), dispose() --- {4 jobs: language_switching, execution_routing, output_fan_in, editor_sync}
Outgoing: core/runtime/registry.py, core/context/state.py EditorSurface --- {BaseRuntime, ExecutionResult, set_language calls}
"""

from typing import Any, Callable, Dict, List, Optional, Union
import logging

from core.errors import NotLoadedError
from core.runtime.base import BaseRuntime, ExecutionResult, Unsubscribe
from core.runtime.descriptors import RuntimeDescriptor, Tier
from core.runtime.registry import RuntimeRegistry

logger = logging.getLogger(__name__)


class RuntimeManager:
    """Tracks the active runtime for one studio session."""

    def __init__(
        self,
        registry: RuntimeRegistry,
        default_language: str = "python",
        entitlement: Union[Tier, str, None] = None,
        editor: Optional[Any] = None,
    ):
        """
        Initialize manager.

        Args:
            registry: Registry that owns the runtime instances
            default_language: Runtime acquired by init()
            entitlement: Tier used for every acquire (registry default when None)
            editor: Optional EditorSurface told about language switches
        """
        self.registry = registry
        self.default_language = default_language
        self.entitlement = registry.default_entitlement if entitlement is None else Tier(entitlement)
        self.editor = editor

        self.current_language: Optional[str] = None
        self.current_runtime: Optional[BaseRuntime] = None

        self._output_callbacks: List[Callable[[str], Any]] = []
        self._error_callbacks: List[Callable[[str], Any]] = []
        self._runtime_subscriptions: Dict[str, List[Unsubscribe]] = {}
        self._attached: Dict[str, BaseRuntime] = {}

    async def init(self) -> BaseRuntime:
        """Acquire and select the default language."""
        logger.info(f"Initialising runtime manager with {self.default_language}")
        return await self.switch_language(self.default_language)

    def bind_editor(self, editor: Any) -> None:
        self.editor = editor
        if editor is not None and self.current_language:
            editor.set_language(self.current_language)

    async def switch_language(
        self,
        language_id: str,
        entitlement: Union[Tier, str, None] = None,
    ) -> BaseRuntime:
        """
        Load a runtime and make it current.

        Args:
            language_id: Runtime id
            entitlement: Tier for this switch (session entitlement when None)

        Raises:
            UnknownRuntimeError, UnavailableError, EntitlementError, LoadError
        """
        runtime = await self.registry.acquire(
            language_id, self.entitlement if entitlement is None else entitlement
        )

        if self._attached.get(language_id) is not runtime:
            self._attach(runtime)

        previous = self.current_language
        self.current_language = language_id
        self.current_runtime = runtime

        if self.editor is not None:
            self.editor.set_language(language_id)

        if previous != language_id:
            logger.info(f"Switched language: {previous} -> {language_id}")
        return runtime

    async def execute_code(self, code: str, options: Optional[Dict[str, Any]] = None) -> ExecutionResult:
        """
        Run code on the current runtime.

        Raises:
            NotLoadedError: no runtime is current
        """
        if self.current_runtime is None:
            raise NotLoadedError("No runtime loaded")
        return await self.current_runtime.execute(code, options)

    # ============================================================================
    # OUTPUT FAN-IN
    # ============================================================================

    def on_output(self, callback: Callable[[str], Any]) -> Unsubscribe:
        return self._add(self._output_callbacks, callback)

    def on_error(self, callback: Callable[[str], Any]) -> Unsubscribe:
        return self._add(self._error_callbacks, callback)

    def _add(self, callbacks: List[Callable[[str], Any]], callback) -> Unsubscribe:
        callbacks.append(callback)

        def unsubscribe() -> None:
            if callback in callbacks:
                callbacks.remove(callback)

        return unsubscribe

    def _attach(self, runtime: BaseRuntime) -> None:
        for unsubscribe in self._runtime_subscriptions.pop(runtime.id, []):
            unsubscribe()
        self._runtime_subscriptions[runtime.id] = [
            runtime.subscribe_output(lambda text: self._dispatch(self._output_callbacks, text)),
            runtime.subscribe_error(lambda text: self._dispatch(self._error_callbacks, text)),
        ]
        self._attached[runtime.id] = runtime

    def _dispatch(self, callbacks: List[Callable[[str], Any]], text: str) -> None:
        for callback in list(callbacks):
            try:
                callback(text)
            except Exception as e:
                logger.warning(f"Manager subscriber failed: {e}")

    # ============================================================================
    # QUERIES
    # ============================================================================

    def available_languages(self) -> List[RuntimeDescriptor]:
        """Implemented runtimes covered by this session's entitlement."""
        return [
            descriptor for descriptor in self.registry.by_status("implemented")
            if self.entitlement.covers(descriptor.tier)
        ]

    def is_language_available(self, language_id: str) -> bool:
        return any(d.id == language_id for d in self.available_languages())

    def detach(self, language_id: str) -> None:
        """Drop subscriptions to one runtime, clearing the selection if it was current."""
        for unsubscribe in self._runtime_subscriptions.pop(language_id, []):
            unsubscribe()
        self._attached.pop(language_id, None)
        if self.current_language == language_id:
            self.current_runtime = None
            self.current_language = None

    def dispose(self) -> None:
        """Detach from every runtime and drop subscribers. Runtimes stay with the registry."""
        for unsubscribes in self._runtime_subscriptions.values():
            for unsubscribe in unsubscribes:
                unsubscribe()
        self._runtime_subscriptions.clear()
        self._attached.clear()
        self._output_callbacks.clear()
        self._error_callbacks.clear()
        self.current_runtime = None
        self.current_language = None
        logger.info("Runtime manager disposed")
