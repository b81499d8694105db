"""
Studio Engine - Main orchestrator for the studio backend

@.architecture
Incoming: app.py (lifespan), api/dependencies.py --- {Settings object, optional descriptor table / adapter factories / generation backends}
Processing: start(), stop(), _initialize_all_modules(), _cleanup_all_modules(), release_runtime(), get_health_status(), is_ready() --- {5 jobs: dependency_injection, initialization, lifecycle_management, cleanup, health_monitoring}
Outgoing: core/runtime/registry.py, core/runtime/manager.py, core/ai/orchestrator.py, core/context/*.py, api/v1/endpoints/*.py --- {RuntimeRegistry, RuntimeManager, AIOrchestrator, ConversationContext, ContextAssembler}

Owns one runtime registry, one runtime manager, one AI orchestrator and one
conversation context for the process. Modules come up in dependency order and
are torn down in reverse.
"""

import logging
from typing import Any, Dict, Mapping, Optional, Sequence

from core.ai.backends import (
    ChatCompletionBackend,
    GenerationBackend,
    GenerationOptions,
    HTTPTimeouts,
    ModelSpec,
    MultimodalBackend,
)
from core.ai.orchestrator import AIOrchestrator
from core.context.assembler import ContextAssembler, ContextFlags
from core.context.state import ConversationContext
from core.runtime.descriptors import RuntimeDescriptor
from core.runtime.manager import RuntimeManager
from core.runtime.registry import (
    RuntimeFactory,
    RuntimeRegistry,
    init_runtime_registry,
    teardown_runtime_registry,
)

logger = logging.getLogger(__name__)


class StudioEngine:
    """
    Main engine that wires the orchestration modules together.

    Architecture:
    - RuntimeRegistry: one adapter instance per runtime id
    - RuntimeManager: current language and output fan-in
    - AIOrchestrator: chat-completion and multimodal backends
    - ConversationContext / ContextAssembler: editor state for the assistant
    """

    def __init__(
        self,
        settings: Any,
        descriptors: Optional[Mapping[str, RuntimeDescriptor]] = None,
        factories: Optional[Mapping[str, RuntimeFactory]] = None,
        backends: Optional[Sequence[GenerationBackend]] = None,
    ):
        """
        Initialize engine with settings.

        Args:
            settings: Settings object from config/settings.py
            descriptors: Override the descriptor table
            factories: Override the adapter factories
            backends: Override the generation backends
        """
        self.settings = settings
        self._descriptors = descriptors
        self._factories = factories
        self._backends = backends

        self.registry: Optional[RuntimeRegistry] = None
        self.runtime_manager: Optional[RuntimeManager] = None
        self.orchestrator: Optional[AIOrchestrator] = None
        self.context: Optional[ConversationContext] = None
        self.assembler: Optional[ContextAssembler] = None

        self._initialized = False
        self._startup_complete = False

    # ============================================================================
    # LIFECYCLE MANAGEMENT
    # ============================================================================

    async def start(self) -> None:
        """Initialize every module and select the default language."""
        try:
            logger.info("[Studio] Initializing studio engine...")

            success = await self._initialize_all_modules()
            if not success:
                raise RuntimeError("Failed to initialize studio modules")

            await self.runtime_manager.init()

            self._startup_complete = True
            logger.info("[Studio] Studio engine startup complete")

        except Exception as e:
            logger.error(f"[Studio] Startup failed: {e}", exc_info=True)
            await self._cleanup_all_modules()
            raise

    async def _initialize_all_modules(self) -> bool:
        """
        Initialize all modules in dependency order.

        Returns:
            True if all modules initialized successfully
        """
        if self._initialized:
            return True

        try:
            logger.info("Initializing studio modules...")

            self._init_registry()
            self._init_runtime_manager()
            self._init_orchestrator()
            self._init_context()

            self._initialized = True
            logger.info("All studio modules initialized")
            return True

        except Exception as e:
            logger.error(f"Failed to initialize studio modules: {e}")
            await self._cleanup_all_modules()
            return False

    def _init_registry(self) -> None:
        runtimes = self.settings.runtimes
        self.registry = init_runtime_registry(
            descriptors=self._descriptors,
            factories=self._factories,
            default_entitlement=runtimes.default_entitlement,
            execution_timeout=runtimes.execution_timeout,
        )
        logger.debug("Runtime registry initialized")

    def _init_runtime_manager(self) -> None:
        if not self.registry:
            raise RuntimeError("Runtime registry required for runtime manager")
        self.runtime_manager = RuntimeManager(
            self.registry,
            default_language=self.settings.runtimes.default_language,
        )
        logger.debug("Runtime manager initialized")

    def _init_orchestrator(self) -> None:
        generation = self.settings.generation
        defaults = GenerationOptions(
            temperature=generation.temperature,
            max_tokens=generation.max_tokens,
            top_p=generation.top_p,
            seed=generation.seed,
            frequency_penalty=generation.frequency_penalty,
            presence_penalty=generation.presence_penalty,
            stop_sequences=list(generation.stop_sequences),
        )
        backends = self._backends if self._backends is not None else self._build_backends()
        self.orchestrator = AIOrchestrator(backends, defaults)
        logger.debug("AI orchestrator initialized")

    def _build_backends(self) -> Sequence[GenerationBackend]:
        ai = self.settings.ai
        timeouts = HTTPTimeouts(connect=ai.connect_timeout, read=ai.read_timeout)
        return [
            MultimodalBackend(
                ai.multimodal_base_url,
                [ModelSpec(**m.model_dump()) for m in ai.multimodal_models],
                timeouts=timeouts,
            ),
            ChatCompletionBackend(
                ai.chat_base_url,
                [ModelSpec(**m.model_dump()) for m in ai.chat_models],
                timeouts=timeouts,
            ),
        ]

    def _init_context(self) -> None:
        ctx = self.settings.context
        self.context = ConversationContext(max_errors=ctx.max_recent_errors)
        self.assembler = ContextAssembler(
            self.context,
            system_prompt=self.settings.generation.system_prompt or None,
            max_code_lines=ctx.max_code_lines,
        )
        logger.debug("Conversation context initialized")

    async def stop(self) -> None:
        """Shutdown engine and cleanup all resources."""
        logger.info("[Studio] Shutting down studio engine...")
        await self._cleanup_all_modules()
        self._startup_complete = False
        logger.info("[Studio] Studio engine shutdown complete")

    async def _cleanup_all_modules(self) -> None:
        """Cleanup all modules in reverse initialization order."""
        logger.info("Cleaning up studio modules...")

        if self.orchestrator is not None:
            try:
                await self.orchestrator.close()
                logger.debug("Cleaned up orchestrator")
            except Exception as e:
                logger.warning(f"Error cleaning up orchestrator: {e}")

        if self.runtime_manager is not None:
            try:
                self.runtime_manager.dispose()
                logger.debug("Cleaned up runtime manager")
            except Exception as e:
                logger.warning(f"Error cleaning up runtime manager: {e}")

        if self.registry is not None:
            failed = teardown_runtime_registry()
            if failed:
                logger.warning(f"Runtimes failed to dispose: {failed}")

        self.assembler = None
        self.context = None
        self.orchestrator = None
        self.runtime_manager = None
        self.registry = None

        self._initialized = False
        logger.info("Studio modules cleanup complete")

    # ============================================================================
    # OPERATIONS
    # ============================================================================

    def release_runtime(self, runtime_id: str) -> bool:
        """Release one runtime, detaching it from the manager if it is current."""
        if self.runtime_manager is not None:
            self.runtime_manager.detach(runtime_id)
        return self.registry.release(runtime_id)

    def default_flags(self) -> ContextFlags:
        ctx = self.settings.context
        return ContextFlags(
            include_current_file=ctx.include_current_file,
            include_selection=ctx.include_selection,
            include_errors=ctx.include_errors,
            include_open_files=ctx.include_open_files,
        )

    # ============================================================================
    # HEALTH AND STATUS
    # ============================================================================

    def get_health_status(self) -> Dict[str, Any]:
        """
        Get health status of the engine and all modules.

        Returns:
            Dict with health status information
        """
        runtimes = {}
        if self.registry is not None:
            for runtime_id in self.registry.cached_ids():
                runtime = self.registry.peek(runtime_id)
                runtimes[runtime_id] = {
                    "state": runtime.get_state().value,
                    "version": runtime.get_version(),
                }

        return {
            "engine": {
                "initialized": self._initialized,
                "startup_complete": self._startup_complete,
            },
            "runtimes": runtimes,
            "current_language": self.runtime_manager.current_language if self.runtime_manager else None,
            "ai": self.orchestrator.get_health_status() if self.orchestrator else None,
            "context": self.context.summary() if self.context else None,
        }

    def is_ready(self) -> bool:
        """
        Check if the engine is fully ready for operations.

        Returns:
            True if started and all modules are present
        """
        if not self._startup_complete:
            return False

        return all(
            module is not None
            for module in [self.registry, self.runtime_manager, self.orchestrator, self.context]
        )
