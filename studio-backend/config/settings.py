"""
Settings Management

Pydantic-based settings schema with environment variable support.
Loads the studio TOML config and provides type-safe access.

@.architecture
Incoming: utils/config.py, Environment variables, studio.toml, api/dependencies.py --- {Dict from load_toml_config, str from os.getenv, TOML config dict, get_settings calls}
Processing: get_settings(), reload_settings(), Settings.__init__(), field_validator() --- {4 jobs: configuration_loading, environment_variable_merging, schema_validation, caching}
Outgoing: api/dependencies.py, app.py, main.py, core/runtime/engine.py --- {Settings Pydantic model with typed config sections}
"""

import os
from functools import lru_cache
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field, field_validator

from utils.config import get_model_catalog, load_config as load_toml_config

TIERS = ["free", "pro", "enterprise"]


# =============================================================================
# Settings Schemas
# =============================================================================

class RuntimeSettings(BaseModel):
    """Runtime registry settings."""
    default_language: str = "python"
    default_entitlement: str = "free"
    execution_timeout: Optional[float] = 30.0

    @field_validator("default_entitlement")
    @classmethod
    def validate_entitlement(cls, v: str) -> str:
        v = v.lower()
        if v not in TIERS:
            raise ValueError(f"Entitlement must be one of {TIERS}")
        return v


class ModelEntry(BaseModel):
    """One model catalog entry."""
    id: str
    name: str = ""
    size: str = ""
    category: str = ""
    description: str = ""


class AISettings(BaseModel):
    """Inference server settings."""
    chat_base_url: str = "http://localhost:1234/v1"
    multimodal_base_url: str = "http://localhost:8080"
    connect_timeout: float = 5.0
    read_timeout: float = 120.0
    chat_models: List[ModelEntry] = Field(default_factory=list)
    multimodal_models: List[ModelEntry] = Field(default_factory=list)


class GenerationSettings(BaseModel):
    """Sampling defaults merged under per-request options."""
    temperature: float = Field(default=0.7, ge=0.0, le=2.0)
    max_tokens: int = Field(default=1000, gt=0)
    top_p: float = Field(default=0.9, ge=0.0, le=1.0)
    seed: int = 0
    frequency_penalty: float = 0.0
    presence_penalty: float = 0.0
    stop_sequences: List[str] = Field(default_factory=list)
    system_prompt: str = ""


class ContextSettings(BaseModel):
    """Assistant context limits and default include flags."""
    max_code_lines: int = Field(default=500, gt=0)
    max_recent_errors: int = Field(default=5, gt=0)
    include_current_file: bool = True
    include_selection: bool = True
    include_errors: bool = True
    include_open_files: bool = False


class SecuritySettings(BaseModel):
    """Security configuration."""
    bind_host: str = "127.0.0.1"
    bind_port: int = 8765
    allowed_origins: List[str] = Field(
        default_factory=lambda: [
            "http://localhost",
            "http://127.0.0.1",
            "http://localhost:3000",
            "http://127.0.0.1:3000",
            "http://localhost:5173",
        ]
    )
    cors_allow_credentials: bool = True
    cors_allow_methods: List[str] = Field(default_factory=lambda: ["*"])
    cors_allow_headers: List[str] = Field(default_factory=lambda: ["*"])


class MonitoringSettings(BaseModel):
    """Monitoring and logging configuration."""
    log_level: str = "INFO"
    log_format: str = "json"  # json|text
    metrics_enabled: bool = True

    @field_validator("log_format")
    @classmethod
    def validate_format(cls, v: str) -> str:
        if v not in ("json", "text"):
            raise ValueError("log_format must be 'json' or 'text'")
        return v


class Settings(BaseModel):
    """
    Main application settings.

    Loads configuration from:
    1. TOML config file (studio.toml)
    2. Environment variables
    3. Defaults defined in schemas

    Priority: Environment variables > TOML config > Defaults
    """

    app_name: str = "Polyglot Studio Backend"
    app_version: str = "1.0.0"
    environment: str = "development"  # development|production|test

    runtimes: RuntimeSettings = Field(default_factory=RuntimeSettings)
    ai: AISettings = Field(default_factory=AISettings)
    generation: GenerationSettings = Field(default_factory=GenerationSettings)
    context: ContextSettings = Field(default_factory=ContextSettings)
    security: SecuritySettings = Field(default_factory=SecuritySettings)
    monitoring: MonitoringSettings = Field(default_factory=MonitoringSettings)

    @property
    def base_url(self) -> str:
        return f"http://{self.security.bind_host}:{self.security.bind_port}"

    @field_validator("environment")
    @classmethod
    def validate_environment(cls, v: str) -> str:
        """Validate environment value."""
        allowed = ["development", "production", "test"]
        if v not in allowed:
            raise ValueError(f"Environment must be one of {allowed}")
        return v


# =============================================================================
# Settings Loader
# =============================================================================

# env var -> (section, key); None section means top level
ENV_OVERRIDES = {
    "STUDIO_ENVIRONMENT": (None, "environment"),
    "STUDIO_ENTITLEMENT": ("runtimes", "default_entitlement"),
    "STUDIO_DEFAULT_LANGUAGE": ("runtimes", "default_language"),
    "AI_CHAT_BASE_URL": ("ai", "chat_base_url"),
    "AI_MULTIMODAL_BASE_URL": ("ai", "multimodal_base_url"),
    "SECURITY_BIND_HOST": ("security", "bind_host"),
    "SECURITY_BIND_PORT": ("security", "bind_port"),
    "MONITORING_LOG_LEVEL": ("monitoring", "log_level"),
    "MONITORING_LOG_FORMAT": ("monitoring", "log_format"),
}


def build_settings(toml_config: Dict[str, Any], environ: Optional[Dict[str, str]] = None) -> Settings:
    """
    Merge TOML config and environment variables into Settings.

    Args:
        toml_config: Parsed studio.toml
        environ: Environment mapping (os.environ when None)
    """
    environ = os.environ if environ is None else environ
    settings_dict: Dict[str, Any] = {}

    if "environment" in toml_config:
        settings_dict["environment"] = toml_config["environment"]

    for section in ("runtimes", "generation", "context", "security", "monitoring"):
        if isinstance(toml_config.get(section), dict):
            settings_dict[section] = dict(toml_config[section])

    ai = {k: v for k, v in toml_config.get("ai", {}).items() if k != "models"}
    ai["chat_models"] = get_model_catalog(toml_config, "chat")
    ai["multimodal_models"] = get_model_catalog(toml_config, "multimodal")
    settings_dict["ai"] = ai

    for var, (section, key) in ENV_OVERRIDES.items():
        value = environ.get(var)
        if not value:
            continue
        if section is None:
            settings_dict[key] = value
        else:
            settings_dict.setdefault(section, {})[key] = value

    return Settings(**settings_dict)


@lru_cache()
def get_settings() -> Settings:
    """
    Load and return application settings (cached).

    Returns:
        Settings: Complete application settings
    """
    return build_settings(load_toml_config())


def reload_settings() -> Settings:
    """
    Reload settings (clears cache).

    Returns:
        Settings: Reloaded application settings
    """
    get_settings.cache_clear()
    return get_settings()

