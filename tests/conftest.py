"""
Pytest configuration and fixtures for Activo tests.
"""

import sys
from pathlib import Path

import pytest

# Add the repository root to path for imports
# This allows `from activo.agent import ...` to work
repo_root = Path(__file__).parent.parent
if str(repo_root) not in sys.path:
    sys.path.insert(0, str(repo_root))

from activo.tools.base import Tool, ToolResult  # noqa: E402
from activo.tools.registry import ToolRegistry  # noqa: E402


class MockTool(Tool):
    """Mock capability that records its calls."""

    def __init__(self, name: str = "mock_tool", result: ToolResult | None = None):
        self._name = name
        self._result = result or ToolResult.ok("Mock result")
        self.calls: list[dict] = []

    @property
    def name(self) -> str:
        return self._name

    @property
    def description(self) -> str:
        return "A mock tool for testing"

    @property
    def input_schema(self) -> dict:
        return {
            "type": "object",
            "properties": {
                "input": {"type": "string", "description": "Test input"},
            },
            "required": ["input"],
        }

    async def execute(self, arguments: dict) -> ToolResult:
        self.calls.append(arguments)
        return self._result


@pytest.fixture
def mock_tool():
    """Create a mock tool."""
    return MockTool()


@pytest.fixture
def tool_registry(mock_tool):
    """Create a registry with the mock tool."""
    return ToolRegistry([mock_tool])


@pytest.fixture
def project_dir(tmp_path, monkeypatch):
    """Temporary working directory with a small source tree."""
    (tmp_path / "src").mkdir()
    (tmp_path / "src" / "app.py").write_text("import os\n# TODO: remove\nprint('hi')\n")
    (tmp_path / "src" / "util.ts").write_text("export const x = 1; // TODO\n")
    (tmp_path / "node_modules").mkdir()
    (tmp_path / "node_modules" / "dep.py").write_text("# TODO: vendored\n")
    (tmp_path / "README.md").write_text("# Demo\n")
    monkeypatch.chdir(tmp_path)
    return tmp_path
