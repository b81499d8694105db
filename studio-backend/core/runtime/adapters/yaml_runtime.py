"""
YAML Runtime Adapter

Parses YAML with PyYAML's safe loader and reports the document as JSON.
Multi-document streams return a list of documents.

@.architecture
Incoming: core/runtime/registry.py --- {RuntimeDescriptor, str document}
Processing: _load_engine(), _run() --- {3 jobs: lazy_import, validation, json_rendering}
Outgoing: core/runtime/base.py --- {Tuple[str JSON text, Any parsed value], ExecutionError}
"""

from typing import Any, Dict, Tuple
import importlib
import json

from core.errors import ExecutionError
from core.runtime.base import BaseRuntime


class YAMLRuntime(BaseRuntime):
    """YAML validator backed by PyYAML"""

    def __init__(self, descriptor, execution_timeout=None):
        super().__init__(descriptor, execution_timeout)
        self._yaml = None

    async def _load_engine(self) -> None:
        self._yaml = importlib.import_module("yaml")
        self.version = self._yaml.__version__

    async def _run(self, code: str, options: Dict[str, Any]) -> Tuple[str, Any]:
        yaml = self._yaml
        try:
            documents = list(yaml.safe_load_all(code))
        except yaml.YAMLError as e:
            mark = getattr(e, "problem_mark", None)
            problem = getattr(e, "problem", None) or str(e)
            raise ExecutionError(
                problem,
                kind=type(e).__name__,
                line=mark.line + 1 if mark is not None else None,
                runtime_id=self.id,
            )

        value = documents[0] if len(documents) == 1 else documents
        if not documents:
            value = None
        return json.dumps(value, indent=2, default=str, ensure_ascii=False), value

    def _release_engine(self) -> None:
        self._yaml = None
