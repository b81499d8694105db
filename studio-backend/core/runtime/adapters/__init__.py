"""
Runtime adapters shipped with the studio.

ADAPTERS maps descriptor ids to the adapter class the registry constructs.
"""

from typing import Dict, Type

from core.runtime.base import BaseRuntime
from .json_runtime import JSONRuntime
from .python import PythonRuntime
from .sqlite import SQLiteRuntime
from .yaml_runtime import YAMLRuntime

ADAPTERS: Dict[str, Type[BaseRuntime]] = {
    "python": PythonRuntime,
    "json": JSONRuntime,
    "yaml": YAMLRuntime,
    "sqlite": SQLiteRuntime,
}

__all__ = [
    "ADAPTERS",
    "JSONRuntime",
    "PythonRuntime",
    "SQLiteRuntime",
    "YAMLRuntime",
]
