"""
Settings loader.

Settings are merged in this order, later sources winning:

    defaults ◄── ~/.activo/config.json ◄── <project>/.activo/config.json ◄── ACTIVO_* env

A config file that cannot be read or is not a JSON object is logged and
skipped. Values that fail validation raise ConfigError.

Usage:
    settings = load_settings()                    # cwd and home directory
    settings = load_settings(project_dir=tmp_path, home_dir=tmp_path / "home")
"""

from __future__ import annotations

import json
import logging
import os
from functools import lru_cache
from pathlib import Path
from typing import Any, Mapping

from pydantic import ValidationError
from pydantic.alias_generators import to_camel

from .schemas import AppSettings

logger = logging.getLogger(__name__)

CONFIG_DIR_NAME = ".activo"
CONFIG_FILE_NAME = "config.json"

# Environment variable -> path into the settings document (camelCase keys)
ENV_OVERRIDES: dict[str, tuple[str, ...]] = {
    "ACTIVO_OLLAMA_BASE_URL": ("ollama", "baseUrl"),
    "ACTIVO_OLLAMA_MODEL": ("ollama", "model"),
    "ACTIVO_OLLAMA_CONTEXT_LENGTH": ("ollama", "contextLength"),
    "ACTIVO_MAX_ITERATIONS": ("agent", "maxIterations"),
    "ACTIVO_LOG_LEVEL": ("logLevel",),
}


class ConfigError(Exception):
    """Raised when merged settings fail validation."""

    pass


def global_config_path(home_dir: Path | str | None = None) -> Path:
    home = Path(home_dir) if home_dir is not None else Path.home()
    return home / CONFIG_DIR_NAME / CONFIG_FILE_NAME


def project_config_path(project_dir: Path | str | None = None) -> Path:
    project = Path(project_dir) if project_dir is not None else Path.cwd()
    return project / CONFIG_DIR_NAME / CONFIG_FILE_NAME


def _camelize(data: Mapping[str, Any]) -> dict[str, Any]:
    """Normalize snake_case keys to the camelCase used in config files."""
    result: dict[str, Any] = {}
    for key, value in data.items():
        name = to_camel(key) if "_" in key else key
        result[name] = _camelize(value) if isinstance(value, Mapping) else value
    return result


def _deep_merge(base: dict[str, Any], override: Mapping[str, Any]) -> dict[str, Any]:
    merged = dict(base)
    for key, value in override.items():
        if isinstance(value, Mapping) and isinstance(merged.get(key), dict):
            merged[key] = _deep_merge(merged[key], value)
        else:
            merged[key] = value
    return merged


def read_config_file(path: Path) -> dict[str, Any]:
    """Read one config file. Missing or unreadable files yield {}."""
    if not path.is_file():
        return {}
    try:
        data = json.loads(path.read_text(encoding="utf-8"))
    except (OSError, json.JSONDecodeError) as e:
        logger.warning(f"[config] Ignoring unreadable config {path}: {e}")
        return {}
    if not isinstance(data, dict):
        logger.warning(f"[config] Ignoring config {path}: expected a JSON object")
        return {}
    logger.debug(f"[config] Loaded {path}")
    return _camelize(data)


def _env_overrides(environ: Mapping[str, str]) -> dict[str, Any]:
    overrides: dict[str, Any] = {}
    for variable, path in ENV_OVERRIDES.items():
        value = environ.get(variable)
        if value is None or value == "":
            continue
        target = overrides
        for key in path[:-1]:
            target = target.setdefault(key, {})
        target[path[-1]] = value
    return overrides


def load_settings(
    project_dir: Path | str | None = None,
    home_dir: Path | str | None = None,
    environ: Mapping[str, str] | None = None,
) -> AppSettings:
    """
    Load merged settings.

    Args:
        project_dir: Project root (default: current directory)
        home_dir: Home directory holding the global config (default: ~)
        environ: Environment mapping (default: os.environ)

    Raises:
        ConfigError: If a merged value is invalid
    """
    merged: dict[str, Any] = {}
    merged = _deep_merge(merged, read_config_file(global_config_path(home_dir)))
    merged = _deep_merge(merged, read_config_file(project_config_path(project_dir)))
    merged = _deep_merge(merged, _env_overrides(os.environ if environ is None else environ))

    try:
        return AppSettings.model_validate(merged)
    except ValidationError as e:
        raise ConfigError(f"Invalid configuration: {e}") from e


def save_settings(settings: AppSettings, home_dir: Path | str | None = None) -> Path:
    """Write settings to the global config file and return its path."""
    path = global_config_path(home_dir)
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(
        json.dumps(settings.model_dump(mode="json", by_alias=True), indent=2),
        encoding="utf-8",
    )
    logger.info(f"[config] Saved settings to {path}")
    return path


@lru_cache()
def get_settings(project_dir: str = ".") -> AppSettings:
    """
    Settings for the CLI process, per project directory.

    Uses lru_cache for singleton pattern. Library code takes settings as
    an argument instead.
    """
    return load_settings(project_dir=project_dir)
