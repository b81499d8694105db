"""
Runtime System for the Studio Backend

Lifecycle management for the heterogeneous execution engines the studio can
run code on, plus the engine that wires the whole backend together.

Core Modules:
- descriptors.py: Static descriptor table and table queries
- base.py: Runtime contract (state machine, single-flight load, fan-out)
- adapters/: Engine adapters (python, sqlite, json, yaml)
- registry.py: Instance cache with tier/availability gating
- manager.py: Current-language session view over the registry
- engine.py: Top-level orchestrator (start/stop/health)
"""

from .base import BaseRuntime, ErrorInfo, ExecutionResult, RuntimeState
from .descriptors import DESCRIPTORS, Category, RuntimeDescriptor, Status, Tier
from .registry import (
    RuntimeRegistry,
    get_runtime_registry,
    init_runtime_registry,
    teardown_runtime_registry,
)
from .manager import RuntimeManager
from .engine import StudioEngine

__all__ = [
    "BaseRuntime",
    "Category",
    "DESCRIPTORS",
    "ErrorInfo",
    "ExecutionResult",
    "RuntimeDescriptor",
    "RuntimeManager",
    "RuntimeRegistry",
    "RuntimeState",
    "Status",
    "StudioEngine",
    "Tier",
    "get_runtime_registry",
    "init_runtime_registry",
    "teardown_runtime_registry",
]

__version__ = "1.0.0"
