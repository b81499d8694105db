"""
Utilities Package

- config: studio.toml loading and model catalog extraction
"""

from .config import (
    load_config,
    get_fallback_config,
    get_model_catalog,
)

__all__ = [
    'load_config',
    'get_fallback_config',
    'get_model_catalog',
]
