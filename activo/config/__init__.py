"""
Activo Configuration

Pydantic settings models and the layered JSON/environment loader.
"""

from .loader import (
    ConfigError,
    get_settings,
    global_config_path,
    load_settings,
    project_config_path,
    save_settings,
)
from .schemas import (
    AgentSettings,
    AppSettings,
    OllamaSettings,
    SessionSettings,
    StandardsSettings,
)

__all__ = [
    "AppSettings",
    "OllamaSettings",
    "AgentSettings",
    "SessionSettings",
    "StandardsSettings",
    "ConfigError",
    "load_settings",
    "save_settings",
    "get_settings",
    "global_config_path",
    "project_config_path",
]
