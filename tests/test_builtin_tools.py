"""
Tests for the built-in file, search and command capabilities.

All tests run in a temporary project directory (see the project_dir
fixture), going through the ToolExecutor as the agent loop would.
"""

import sys

import pytest

from activo.providers.llm.base import ToolCall
from activo.tools.executor import ToolExecutor
from activo.tools.registry import create_default_registry


@pytest.fixture
def executor():
    return ToolExecutor(create_default_registry())


async def call(executor, name, **arguments):
    return await executor.execute(ToolCall(name=name, arguments=arguments))


class TestReadFile:
    """Tests for read_file."""

    @pytest.mark.asyncio
    async def test_reads_file(self, executor, project_dir):
        result = await call(executor, "read_file", filepath="README.md")

        assert result.success is True
        assert result.content == "# Demo\n"

    @pytest.mark.asyncio
    async def test_missing_file(self, executor, project_dir):
        result = await call(executor, "read_file", filepath="missing.txt")

        assert result.success is False
        assert result.error == "File not found: missing.txt"
        assert result.as_message_content() == "Error: File not found: missing.txt"

    @pytest.mark.asyncio
    async def test_directory(self, executor, project_dir):
        result = await call(executor, "read_file", filepath="src")

        assert result.success is False
        assert result.error == "Path is a directory"

    @pytest.mark.asyncio
    async def test_missing_argument(self, executor, project_dir):
        result = await call(executor, "read_file")

        assert result.success is False
        assert "Invalid arguments for read_file" in result.error


class TestWriteFile:
    """Tests for write_file."""

    @pytest.mark.asyncio
    async def test_writes_and_creates_directories(self, executor, project_dir):
        result = await call(
            executor, "write_file", filepath="docs/report.md", content="# Report\n"
        )

        assert result.success is True
        assert (project_dir / "docs" / "report.md").read_text() == "# Report\n"


class TestListDirectory:
    """Tests for list_directory."""

    @pytest.mark.asyncio
    async def test_lists_entries(self, executor, project_dir):
        result = await call(executor, "list_directory", path="src")

        assert result.success is True
        assert result.content.splitlines() == ["[FILE] app.py", "[FILE] util.ts"]

    @pytest.mark.asyncio
    async def test_marks_directories(self, executor, project_dir):
        result = await call(executor, "list_directory", path=".")

        assert "[DIR] src" in result.content
        assert "[FILE] README.md" in result.content

    @pytest.mark.asyncio
    async def test_missing_directory(self, executor, project_dir):
        result = await call(executor, "list_directory", path="nowhere")

        assert result.success is False
        assert result.error == "Directory not found: nowhere"


class TestGrepSearch:
    """Tests for grep_search."""

    @pytest.mark.asyncio
    async def test_finds_matches_with_line_numbers(self, executor, project_dir):
        result = await call(executor, "grep_search", pattern="TODO", path="src")

        assert result.success is True
        lines = result.content.splitlines()
        assert "src/app.py:2:# TODO: remove" in lines
        assert any(line.startswith("src/util.ts:1:") for line in lines)

    @pytest.mark.asyncio
    async def test_skips_node_modules(self, executor, project_dir):
        result = await call(executor, "grep_search", pattern="TODO")

        assert "vendored" not in result.content

    @pytest.mark.asyncio
    async def test_file_pattern_filter(self, executor, project_dir):
        result = await call(executor, "grep_search", pattern="TODO", filePattern="*.py")

        assert "app.py" in result.content
        assert "util.ts" not in result.content

    @pytest.mark.asyncio
    async def test_no_matches(self, executor, project_dir):
        result = await call(executor, "grep_search", pattern="FIXME")

        assert result.success is True
        assert result.content == "No matches found"

    @pytest.mark.asyncio
    async def test_invalid_pattern(self, executor, project_dir):
        result = await call(executor, "grep_search", pattern="(unclosed")

        assert result.success is False
        assert result.error.startswith("Invalid pattern")

    @pytest.mark.asyncio
    async def test_limits_results(self, executor, project_dir):
        (project_dir / "big.txt").write_text("match\n" * 80)

        result = await call(executor, "grep_search", pattern="match", path="big.txt")

        assert len(result.content.splitlines()) == 50


class TestGlobSearch:
    """Tests for glob_search."""

    @pytest.mark.asyncio
    async def test_finds_files(self, executor, project_dir):
        result = await call(executor, "glob_search", pattern="**/*.py")

        assert result.success is True
        assert result.content.splitlines() == ["src/app.py"]

    @pytest.mark.asyncio
    async def test_no_files(self, executor, project_dir):
        result = await call(executor, "glob_search", pattern="**/*.java")

        assert result.content == "No files found"


@pytest.mark.skipif(sys.platform == "win32", reason="POSIX shell commands")
class TestRunCommand:
    """Tests for run_command."""

    @pytest.mark.asyncio
    async def test_returns_stdout(self, executor, project_dir):
        result = await call(executor, "run_command", command="echo hello")

        assert result.success is True
        assert result.content.strip() == "hello"

    @pytest.mark.asyncio
    async def test_nonzero_exit_is_failure(self, executor, project_dir):
        result = await call(executor, "run_command", command="echo broken >&2; exit 3")

        assert result.success is False
        assert result.error == "broken"

    @pytest.mark.asyncio
    async def test_blocked_command(self, executor, project_dir):
        result = await call(executor, "run_command", command="rm -rf / --no-preserve-root")

        assert result.success is False
        assert result.error == "Command blocked for safety"
