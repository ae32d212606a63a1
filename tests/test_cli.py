"""
Tests for the headless CLI.
"""

from unittest.mock import AsyncMock

import pytest

from activo import cli
from activo.agent.events import CapabilityDoneEvent, CapabilityStartEvent, ThinkingEvent
from activo.config import AppSettings, get_settings
from activo.providers.llm import Message, OllamaGateway
from activo.session import Session, SessionStore
from activo.tools.base import ToolResult


@pytest.fixture(autouse=True)
def isolated_env(tmp_path, monkeypatch):
    """Keep the user's real config and environment out of CLI tests."""
    monkeypatch.setenv("HOME", str(tmp_path / "home"))
    for variable in ("ACTIVO_OLLAMA_BASE_URL", "ACTIVO_OLLAMA_MODEL", "ACTIVO_LOG_LEVEL"):
        monkeypatch.delenv(variable, raising=False)
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()


class TestParser:
    """Tests for argument parsing."""

    def test_flags(self):
        args = cli.build_parser().parse_args(
            ["-p", "Find TODOs", "--model", "codellama:13b", "--no-stream", "--max-iterations", "3"]
        )

        assert args.prompt == "Find TODOs"
        assert args.model == "codellama:13b"
        assert args.no_stream is True
        assert args.max_iterations == 3
        assert args.project_dir == "."

    def test_defaults(self):
        args = cli.build_parser().parse_args([])

        assert args.prompt is None
        assert args.list_sessions is False
        assert args.verbose is False


class TestMain:
    """Tests for main()."""

    def test_prompt_required(self, tmp_path, capsys):
        exit_code = cli.main(["--project-dir", str(tmp_path)])

        assert exit_code == 1
        assert "Prompt is required" in capsys.readouterr().err

    def test_invalid_config(self, tmp_path, capsys):
        config = tmp_path / ".activo" / "config.json"
        config.parent.mkdir()
        config.write_text('{"ollama": {"contextLength": -1}}')

        exit_code = cli.main(["-p", "hi", "--project-dir", str(tmp_path)])

        assert exit_code == 1
        assert "Invalid configuration" in capsys.readouterr().err

    def test_list_sessions_empty(self, tmp_path, capsys):
        exit_code = cli.main(["--list-sessions", "--project-dir", str(tmp_path)])

        assert exit_code == 0
        assert "No saved sessions" in capsys.readouterr().out


class TestRunHeadless:
    """Tests for run_headless()."""

    @pytest.mark.asyncio
    async def test_ollama_unreachable(self, tmp_path, monkeypatch, capsys):
        monkeypatch.setattr(OllamaGateway, "is_connected", AsyncMock(return_value=False))
        args = cli.build_parser().parse_args(["-p", "hi", "--project-dir", str(tmp_path)])

        exit_code = await cli.run_headless("hi", AppSettings(), args)

        assert exit_code == 1
        assert "Cannot connect to Ollama" in capsys.readouterr().err

    @pytest.mark.asyncio
    async def test_answer_printed_and_saved(self, tmp_path, monkeypatch, capsys):
        monkeypatch.setattr(OllamaGateway, "is_connected", AsyncMock(return_value=True))
        monkeypatch.setattr(
            OllamaGateway, "complete", AsyncMock(return_value=Message.assistant("All good"))
        )
        args = cli.build_parser().parse_args(["-p", "hi", "--project-dir", str(tmp_path)])
        settings = AppSettings()

        exit_code = await cli.run_headless("Check src/", settings, args)

        assert exit_code == 0
        assert capsys.readouterr().out.strip() == "All good"
        saved = SessionStore(tmp_path / settings.session.directory).load_latest()
        assert [m.content for m in saved.messages] == ["Check src/", "All good"]

    @pytest.mark.asyncio
    async def test_previous_session_messages_sent_as_history(self, tmp_path, monkeypatch):
        complete = AsyncMock(return_value=Message.assistant("Still good"))
        monkeypatch.setattr(OllamaGateway, "is_connected", AsyncMock(return_value=True))
        monkeypatch.setattr(OllamaGateway, "complete", complete)
        settings = AppSettings()
        store = SessionStore(tmp_path / settings.session.directory)
        previous = Session(id="session_1000_aaaaaa")
        previous.messages.extend([Message.user("Check src/"), Message.assistant("All good")])
        store.save(previous)
        args = cli.build_parser().parse_args(["-p", "again", "--project-dir", str(tmp_path)])

        exit_code = await cli.run_headless("And now?", settings, args)

        assert exit_code == 0
        sent = complete.call_args.args[0]
        assert [m.content for m in sent[1:]] == ["Check src/", "All good", "And now?"]
        saved = store.load_latest()
        assert saved.id != previous.id
        assert [m.content for m in saved.messages] == ["And now?", "Still good"]

    @pytest.mark.asyncio
    async def test_standards_directory_from_settings(self, tmp_path, monkeypatch):
        complete = AsyncMock(return_value=Message.assistant("Done"))
        monkeypatch.setattr(OllamaGateway, "is_connected", AsyncMock(return_value=True))
        monkeypatch.setattr(OllamaGateway, "complete", complete)
        settings = AppSettings.model_validate({"standards": {"directory": "rules"}})
        args = cli.build_parser().parse_args(["-p", "hi", "--project-dir", str(tmp_path)])

        await cli.run_headless("hi", settings, args)

        offered = {tool.name: tool for tool in complete.call_args.args[1]}
        assert "check_code_quality" in offered
        result = await offered["list_standards"].execute({})
        assert result.content.startswith("No standards directory found")
        (tmp_path / "rules").mkdir()
        (tmp_path / "rules" / "style.md").write_text("## STY-1: Four spaces\n")
        result = await offered["list_standards"].execute({})
        assert result.content.endswith("Total: 1 files, 1 rules")


class TestPrintEvent:
    """Tests for progress output."""

    def test_capability_progress(self, capsys):
        cli.print_event(CapabilityStartEvent(name="read_file", arguments={}, call_id="tc_1"))
        cli.print_event(
            CapabilityDoneEvent(name="read_file", result=ToolResult.ok("x"), call_id="tc_1")
        )
        cli.print_event(
            CapabilityDoneEvent(
                name="read_file",
                result=ToolResult.fail("File not found: a.py"),
                call_id="tc_2",
            )
        )
        cli.print_event(ThinkingEvent(iteration=1))

        assert capsys.readouterr().err.splitlines() == [
            "[Tool] read_file: running",
            "[Tool] read_file: success",
            "[Tool] read_file: error (File not found: a.py)",
        ]
