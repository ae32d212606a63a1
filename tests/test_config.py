"""
Tests for settings schemas and the layered loader.
"""

import json
import logging

import pytest

from activo.config.loader import (
    ConfigError,
    global_config_path,
    load_settings,
    project_config_path,
    save_settings,
)
from activo.config.schemas import AppSettings, OllamaSettings


@pytest.fixture
def dirs(tmp_path):
    home = tmp_path / "home"
    project = tmp_path / "project"
    home.mkdir()
    project.mkdir()
    return home, project


def write_config(path, data):
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(json.dumps(data) if not isinstance(data, str) else data)


class TestSchemas:
    """Tests for the settings models."""

    def test_defaults(self):
        settings = AppSettings()

        assert settings.ollama.base_url == "http://localhost:11434"
        assert settings.ollama.model == "mistral:latest"
        assert settings.ollama.context_length == 4096
        assert settings.ollama.keep_alive == 1800
        assert settings.agent.max_iterations == 10
        assert settings.session.directory == ".activo/conversations"
        assert settings.standards.directory == ".activo/standards"
        assert settings.log_level_number == logging.WARNING

    def test_camel_case_and_snake_case(self):
        assert OllamaSettings(baseUrl="http://gpu:11434/").base_url == "http://gpu:11434"
        assert OllamaSettings(context_length=8192).context_length == 8192

    def test_log_level_normalized(self):
        assert AppSettings(logLevel="debug").log_level == "DEBUG"


class TestLoadSettings:
    """Tests for load_settings."""

    def test_no_files(self, dirs):
        home, project = dirs

        settings = load_settings(project_dir=project, home_dir=home, environ={})

        assert settings == AppSettings()

    def test_project_overrides_global(self, dirs):
        home, project = dirs
        write_config(
            global_config_path(home),
            {"ollama": {"model": "llama3:8b", "contextLength": 8192}},
        )
        write_config(project_config_path(project), {"ollama": {"model": "qwen2.5-coder:7b"}})

        settings = load_settings(project_dir=project, home_dir=home, environ={})

        assert settings.ollama.model == "qwen2.5-coder:7b"
        assert settings.ollama.context_length == 8192

    def test_environment_wins(self, dirs):
        home, project = dirs
        write_config(project_config_path(project), {"agent": {"maxIterations": 5}})
        environ = {
            "ACTIVO_MAX_ITERATIONS": "20",
            "ACTIVO_OLLAMA_BASE_URL": "http://remote:11434",
            "ACTIVO_LOG_LEVEL": "info",
        }

        settings = load_settings(project_dir=project, home_dir=home, environ=environ)

        assert settings.agent.max_iterations == 20
        assert settings.ollama.base_url == "http://remote:11434"
        assert settings.log_level == "INFO"

    def test_snake_case_file_keys(self, dirs):
        home, project = dirs
        write_config(project_config_path(project), {"session": {"keep_count": 3}})

        settings = load_settings(project_dir=project, home_dir=home, environ={})

        assert settings.session.keep_count == 3

    def test_unreadable_file_skipped(self, dirs):
        home, project = dirs
        write_config(global_config_path(home), "{broken")
        write_config(project_config_path(project), "[1, 2]")

        settings = load_settings(project_dir=project, home_dir=home, environ={})

        assert settings == AppSettings()

    def test_invalid_value(self, dirs):
        home, project = dirs
        write_config(project_config_path(project), {"agent": {"maxIterations": 0}})

        with pytest.raises(ConfigError):
            load_settings(project_dir=project, home_dir=home, environ={})

    def test_invalid_environment_value(self, dirs):
        home, project = dirs

        with pytest.raises(ConfigError):
            load_settings(
                project_dir=project,
                home_dir=home,
                environ={"ACTIVO_OLLAMA_CONTEXT_LENGTH": "lots"},
            )


class TestSaveSettings:
    """Tests for save_settings."""

    def test_writes_camel_case(self, dirs):
        home, project = dirs
        settings = AppSettings(ollama=OllamaSettings(model="codellama:13b"))

        path = save_settings(settings, home_dir=home)

        data = json.loads(path.read_text())
        assert data["ollama"]["model"] == "codellama:13b"
        assert "contextLength" in data["ollama"]
        assert "logLevel" in data

        reloaded = load_settings(project_dir=project, home_dir=home, environ={})
        assert reloaded == settings
