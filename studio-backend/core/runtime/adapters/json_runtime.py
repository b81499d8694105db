"""
JSON Runtime Adapter

Validates a JSON document and pretty-prints it.

@.architecture
Incoming: core/runtime/registry.py --- {RuntimeDescriptor, str document}
Processing: _run() --- {2 jobs: validation, formatting}
Outgoing: core/runtime/base.py --- {Tuple[str pretty JSON, Any parsed value], ExecutionError}
"""

from typing import Any, Dict, Tuple
import json

from core.errors import ExecutionError
from core.runtime.base import BaseRuntime


class JSONRuntime(BaseRuntime):
    """JSON validator and formatter"""

    version = json.__version__

    async def _load_engine(self) -> None:
        return None

    async def _run(self, code: str, options: Dict[str, Any]) -> Tuple[str, Any]:
        try:
            value = json.loads(code)
        except json.JSONDecodeError as e:
            raise ExecutionError(e.msg, kind="JSONDecodeError", line=e.lineno, runtime_id=self.id)

        indent = options.get("indent", 2)
        return json.dumps(value, indent=indent, ensure_ascii=False), value
