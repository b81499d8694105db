"""
Simple config loader for backend components.
Reads the studio TOML config, falling back to built-in values.

@.architecture
Incoming: config/studio.toml, config/settings.py --- {TOML file, load_config calls}
Processing: load_config(), get_fallback_config(), get_model_catalog() --- {3 jobs: config_loading, fallback_generation, catalog_extraction}
Outgoing: config/settings.py --- {Dict[str, Any] config data, List[Dict] model catalogs}
"""

import logging
import os
from pathlib import Path
from typing import Any, Dict, List, Optional

import toml

logger = logging.getLogger(__name__)

DEFAULT_CONFIG_FILE = Path(__file__).parent.parent / "config" / "studio.toml"


def load_config(path: Optional[Path] = None) -> Dict[str, Any]:
    """
    Load configuration from the studio TOML file.

    The file can be moved with STUDIO_CONFIG_FILE. A missing or unreadable
    file yields the fallback config.
    """
    config_file = Path(path or os.getenv("STUDIO_CONFIG_FILE") or DEFAULT_CONFIG_FILE)
    try:
        with open(config_file, "r") as f:
            return toml.load(f)
    except (OSError, toml.TomlDecodeError) as e:
        logger.warning(f"Failed to load studio config {config_file}: {e}")
        return get_fallback_config()


def get_fallback_config() -> Dict[str, Any]:
    """Fallback configuration if the TOML file can't be loaded."""
    return {
        "runtimes": {
            "default_language": "python",
            "default_entitlement": "free",
        },
        "ai": {
            "chat_base_url": "http://localhost:1234/v1",
            "multimodal_base_url": "http://localhost:8080",
        },
    }


def get_model_catalog(config: Dict[str, Any], backend: str) -> List[Dict[str, Any]]:
    """
    Model entries for one backend from ``[[ai.models.<backend>]]`` tables.

    Args:
        config: Loaded TOML config
        backend: ``chat`` or ``multimodal``
    """
    entries = config.get("ai", {}).get("models", {}).get(backend, [])
    return [entry for entry in entries if isinstance(entry, dict) and entry.get("id")]
