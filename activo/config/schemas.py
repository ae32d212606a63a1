"""
Configuration Schemas for Activo.

Pydantic models for the settings stored in `~/.activo/config.json` and
`<project>/.activo/config.json`.

The JSON files use camelCase keys (`baseUrl`, `contextLength`, ...);
snake_case field names are accepted as well.
"""

from __future__ import annotations

import logging

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel

_LOG_LEVELS = ("CRITICAL", "ERROR", "WARNING", "INFO", "DEBUG")


class _SettingsModel(BaseModel):
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        extra="ignore",
    )


class OllamaSettings(_SettingsModel):
    """Connection and request settings for the local Ollama server."""

    base_url: str = Field("http://localhost:11434", description="Ollama server URL")
    model: str = Field("mistral:latest", min_length=1, description="Chat model name")
    context_length: int = Field(4096, gt=0, description="Context window sent as num_ctx")
    keep_alive: int = Field(1800, ge=0, description="Seconds the model stays loaded")
    timeout: float = Field(300.0, gt=0, description="HTTP timeout in seconds")

    @field_validator("base_url")
    @classmethod
    def _strip_trailing_slash(cls, value: str) -> str:
        return value.rstrip("/")


class AgentSettings(_SettingsModel):
    """Agent loop behaviour."""

    max_iterations: int = Field(10, ge=1, description="Completion requests per turn")
    prefer_streaming: bool = Field(True, description="Stream tool-free responses")
    channel_size: int = Field(32, ge=1, description="Event channel capacity")


class SessionSettings(_SettingsModel):
    """Where conversations are saved and how many are kept."""

    directory: str = Field(".activo/conversations", description="Relative to the project")
    keep_count: int = Field(10, ge=1, description="Sessions kept by cleanup")
    recent_count: int = Field(5, ge=0, description="Messages carried into the next session")


class StandardsSettings(_SettingsModel):
    directory: str = Field(".activo/standards", description="Coding standards directory")


class AppSettings(_SettingsModel):
    """
    Application settings.

    Example:
        settings = load_settings()
        gateway = OllamaGateway.from_settings(settings.ollama)
    """

    ollama: OllamaSettings = Field(default_factory=OllamaSettings)
    agent: AgentSettings = Field(default_factory=AgentSettings)
    session: SessionSettings = Field(default_factory=SessionSettings)
    standards: StandardsSettings = Field(default_factory=StandardsSettings)
    log_level: str = Field("WARNING", description="Root log level for the CLI")

    @field_validator("log_level")
    @classmethod
    def _check_log_level(cls, value: str) -> str:
        level = value.upper()
        if level not in _LOG_LEVELS:
            raise ValueError(f"log_level must be one of {', '.join(_LOG_LEVELS)}")
        return level

    @property
    def log_level_number(self) -> int:
        return logging.getLevelName(self.log_level)
