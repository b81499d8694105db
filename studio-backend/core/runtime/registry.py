"""
Runtime Registry

Creates, caches and tears down runtime adapter instances. One instance per
descriptor id; construction is lazy and does not load the engine. Tier and
availability gating happen before anything is constructed.

@.architecture
Incoming: core/runtime/engine.py, core/runtime/manager.py, api/v1/endpoints/runtimes.py --- {str runtime_id, Tier entitlement}
Processing: get(), acquire(), release(), release_all(), describe(), by_status(), by_tier(), stats() --- {5 jobs: gating, lazy_construction, instance_caching, teardown, catalog_queries}
Outgoing: core/runtime/manager.py, api/v1/endpoints/runtimes.py --- {BaseRuntime instances, RuntimeDescriptor, List[str] failed ids}
"""

from typing import Callable, Dict, List, Mapping, Optional, Union
import logging

from core.errors import (
    EntitlementError,
    UnavailableError,
    UnknownRuntimeError,
)
from core.runtime import descriptors as table_queries
from core.runtime.base import BaseRuntime, RuntimeState
from core.runtime.descriptors import (
    DESCRIPTORS,
    RuntimeDescriptor,
    Status,
    Tier,
)

logger = logging.getLogger(__name__)

RuntimeFactory = Callable[..., BaseRuntime]


class RuntimeRegistry:
    """
    Registry and factory for runtime adapters.

    Holds at most one live instance per descriptor id. The descriptor table
    and the adapter factories are fixed when the registry is built.
    """

    def __init__(
        self,
        descriptors: Optional[Mapping[str, RuntimeDescriptor]] = None,
        factories: Optional[Mapping[str, RuntimeFactory]] = None,
        default_entitlement: Union[Tier, str] = Tier.FREE,
        execution_timeout: Optional[float] = None,
    ):
        """
        Initialize registry.

        Args:
            descriptors: id -> descriptor table (defaults to the built-in table)
            factories: id -> adapter class (defaults to the shipped adapters)
            default_entitlement: Tier used when get() is called without one
            execution_timeout: Passed to every adapter constructed here

        Raises:
            ValueError: an implemented descriptor has no factory, or a factory
                names an id missing from the table
        """
        if factories is None:
            from core.runtime.adapters import ADAPTERS
            factories = ADAPTERS

        self._descriptors: Mapping[str, RuntimeDescriptor] = (
            DESCRIPTORS if descriptors is None else descriptors
        )
        self._factories: Dict[str, RuntimeFactory] = dict(factories)
        self.default_entitlement = Tier(default_entitlement)
        self.execution_timeout = execution_timeout
        self._instances: Dict[str, BaseRuntime] = {}

        unknown = sorted(set(self._factories) - set(self._descriptors))
        if unknown:
            raise ValueError(f"Adapters registered for unknown runtime ids: {unknown}")
        missing = sorted(
            d.id for d in self._descriptors.values()
            if d.status is Status.IMPLEMENTED and d.id not in self._factories
        )
        if missing:
            raise ValueError(f"Implemented runtimes without an adapter: {missing}")

    # ============================================================================
    # INSTANCE ACCESS
    # ============================================================================

    def get(self, runtime_id: str, entitlement: Union[Tier, str, None] = None) -> BaseRuntime:
        """
        Get or create the runtime for an id. Does not load it.

        Args:
            runtime_id: Descriptor id
            entitlement: Caller's tier (registry default when None)

        Returns:
            The cached instance, or a freshly constructed one

        Raises:
            UnknownRuntimeError: no descriptor for this id
            UnavailableError: descriptor is not implemented
            EntitlementError: descriptor tier exceeds the entitlement
        """
        descriptor = self.describe(runtime_id)
        if descriptor.status is not Status.IMPLEMENTED:
            raise UnavailableError(
                f"Runtime '{runtime_id}' is {descriptor.status.value}, not implemented",
                runtime_id=runtime_id,
            )

        tier = self.default_entitlement if entitlement is None else Tier(entitlement)
        if not tier.covers(descriptor.tier):
            raise EntitlementError(
                f"Runtime '{runtime_id}' requires the {descriptor.tier.value} tier",
                runtime_id=runtime_id,
            )

        instance = self._instances.get(runtime_id)
        if instance is not None and instance.get_state() is not RuntimeState.DISPOSED:
            return instance
        if instance is not None:
            logger.info(f"Replacing disposed runtime: {runtime_id}")

        instance = self._factories[runtime_id](descriptor, execution_timeout=self.execution_timeout)
        self._instances[runtime_id] = instance
        logger.info(f"Created runtime: {runtime_id}")
        return instance

    async def acquire(self, runtime_id: str, entitlement: Union[Tier, str, None] = None) -> BaseRuntime:
        """Get the runtime and make sure it is loaded (single-flight)."""
        runtime = self.get(runtime_id, entitlement)
        await runtime.load()
        return runtime

    def release(self, runtime_id: str) -> bool:
        """
        Dispose and forget one instance; the next get() builds a fresh one.

        Returns:
            True if an instance was cached for this id
        """
        instance = self._instances.pop(runtime_id, None)
        if instance is None:
            return False
        instance.dispose()
        logger.info(f"Released runtime: {runtime_id}")
        return True

    def release_all(self) -> List[str]:
        """
        Dispose every cached instance.

        Failures are logged and the sweep continues.

        Returns:
            Ids whose dispose() raised
        """
        failed: List[str] = []
        for runtime_id, instance in list(self._instances.items()):
            try:
                instance.dispose()
                logger.info(f"Disposed runtime: {runtime_id}")
            except Exception as e:
                logger.error(f"Failed to dispose {runtime_id}: {e}")
                failed.append(runtime_id)

        self._instances.clear()
        return failed

    def cached_ids(self) -> List[str]:
        return list(self._instances)

    def peek(self, runtime_id: str) -> Optional[BaseRuntime]:
        """Cached instance for an id without constructing one."""
        return self._instances.get(runtime_id)

    # ============================================================================
    # DESCRIPTOR QUERIES
    # ============================================================================

    def describe(self, runtime_id: str) -> RuntimeDescriptor:
        descriptor = self._descriptors.get(runtime_id)
        if descriptor is None:
            raise UnknownRuntimeError(f"Unknown runtime: {runtime_id}", runtime_id=runtime_id)
        return descriptor

    def list_descriptors(self) -> List[RuntimeDescriptor]:
        return list(self._descriptors.values())

    def by_status(self, status: Union[Status, str]) -> List[RuntimeDescriptor]:
        return table_queries.by_status(self._descriptors, Status(status))

    def by_tier(self, tier: Union[Tier, str]) -> List[RuntimeDescriptor]:
        return table_queries.by_tier(self._descriptors, Tier(tier))

    def languages(self) -> List[RuntimeDescriptor]:
        return table_queries.languages(self._descriptors)

    def databases(self) -> List[RuntimeDescriptor]:
        return table_queries.databases(self._descriptors)

    def stats(self) -> Dict[str, int]:
        return table_queries.stats(self._descriptors)


# ============================================================================
# PROCESS-WIDE REGISTRY
# ============================================================================

_registry: Optional[RuntimeRegistry] = None


def init_runtime_registry(**kwargs) -> RuntimeRegistry:
    """
    Create the process-wide registry.

    Args:
        **kwargs: Forwarded to RuntimeRegistry

    Raises:
        RuntimeError: a registry is already initialised
    """
    global _registry
    if _registry is not None:
        raise RuntimeError("Runtime registry already initialised")
    _registry = RuntimeRegistry(**kwargs)
    return _registry


def get_runtime_registry() -> RuntimeRegistry:
    """Process-wide registry. Raises RuntimeError before init."""
    if _registry is None:
        raise RuntimeError("Runtime registry not initialised")
    return _registry


def teardown_runtime_registry() -> List[str]:
    """Dispose every runtime and drop the process-wide registry."""
    global _registry
    if _registry is None:
        return []
    failed = _registry.release_all()
    _registry = None
    return failed
