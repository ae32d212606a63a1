"""
Development standards capabilities.

Standards are markdown rule files kept in the project's standards
directory (`.activo/standards` by default), one `## <PREFIX>-<n>: Title`
heading per rule:

    ## NAME-001: Class names use PascalCase
    - Severity: warning
    - Rule: ...

list_standards reports what is loaded. check_code_quality sends a file
together with the rules to the model and returns its review, so it needs
a gateway; the rule files themselves are written by hand or by an import
step outside this package.

Usage:
    tools = create_standards_tools(gateway, directory=".activo/standards")
    registry.register_all(tools)
"""

from __future__ import annotations

import asyncio
import logging
import re
from pathlib import Path
from typing import TYPE_CHECKING, Any

from activo.providers.llm.base import GatewayError, Message
from activo.utils.cancellation import OperationCancelledError

from .base import Tool, ToolResult

if TYPE_CHECKING:
    from activo.providers.llm.base import ModelGateway

logger = logging.getLogger(__name__)

DEFAULT_STANDARDS_DIR = ".activo/standards"
INDEX_FILE_NAME = "_index.md"
RULE_HEADING = re.compile(r"^## [A-Z]+-\d+", re.MULTILINE)

MAX_STANDARDS_CHARS = 4000
MAX_CODE_CHARS = 8000

_LANGUAGES = {".ts": "typescript", ".js": "javascript", ".java": "java", ".py": "python"}


def _rule_files(directory: Path) -> list[Path]:
    return sorted(
        p for p in directory.glob("*.md") if p.is_file() and p.name != INDEX_FILE_NAME
    )


def count_rules(text: str) -> int:
    """Number of `## XXX-n` rule headings in a standards file."""
    return len(RULE_HEADING.findall(text))


def build_review_prompt(code: str, filepath: str, standards: str) -> str:
    """Prompt asking the model to review `code` against `standards`."""
    language = _LANGUAGES.get(Path(filepath).suffix, "text")

    prompt = "You are a code quality expert. Review the code below.\n\n"
    if standards:
        prompt += f"[Development standards]\n{standards[:MAX_STANDARDS_CHARS]}\n\n"
    prompt += f"[Code under review]\nFile: {filepath}\n```{language}\n{code[:MAX_CODE_CHARS]}\n```\n\n"
    prompt += "[Requested review]\n"
    prompt += "1. Rule violations (if any)\n"
    prompt += "2. Suggested improvements\n"
    prompt += "3. Overall code quality assessment\n"
    return prompt


class ListStandardsTool(Tool):
    """Lists the standards files and how many rules each holds."""

    def __init__(self, directory: Path | str = DEFAULT_STANDARDS_DIR):
        self._directory = str(directory)

    @property
    def name(self) -> str:
        return "list_standards"

    @property
    def description(self) -> str:
        return "List all loaded development standards and rules."

    @property
    def input_schema(self) -> dict[str, Any]:
        return {
            "type": "object",
            "properties": {
                "directory": {
                    "type": "string",
                    "description": f"Standards directory (default: {self._directory})",
                },
            },
        }

    async def execute(self, arguments: dict[str, Any]) -> ToolResult:
        raw = arguments.get("directory") or self._directory
        directory = Path(raw).expanduser()

        if not directory.is_dir():
            return ToolResult.ok("No standards directory found. Import a standards document first.")

        def scan() -> list[tuple[str, int]]:
            return [
                (path.name, count_rules(path.read_text(encoding="utf-8", errors="replace")))
                for path in _rule_files(directory)
            ]

        try:
            counts = await asyncio.to_thread(scan)
        except OSError as e:
            return ToolResult.fail(str(e))

        if not counts:
            return ToolResult.ok("No standard files found.")

        lines = [f"{name}: {rules} rules" for name, rules in counts]
        total = sum(rules for _, rules in counts)
        return ToolResult.ok(
            f"Standards Directory: {raw}\n\n"
            + "\n".join(lines)
            + f"\n\nTotal: {len(counts)} files, {total} rules"
        )


class CheckCodeQualityTool(Tool):
    """Asks the model to review one file against the loaded standards."""

    def __init__(
        self,
        gateway: "ModelGateway",
        directory: Path | str = DEFAULT_STANDARDS_DIR,
    ):
        self._gateway = gateway
        self._directory = str(directory)

    @property
    def name(self) -> str:
        return "check_code_quality"

    @property
    def description(self) -> str:
        return "Check code against loaded development standards."

    @property
    def input_schema(self) -> dict[str, Any]:
        return {
            "type": "object",
            "required": ["filepath"],
            "properties": {
                "filepath": {"type": "string", "description": "File to check"},
                "standardsDir": {
                    "type": "string",
                    "description": f"Standards directory (default: {self._directory})",
                },
            },
        }

    async def execute(self, arguments: dict[str, Any]) -> ToolResult:
        filepath = arguments["filepath"]
        path = Path(filepath).expanduser()
        standards_dir = Path(arguments.get("standardsDir") or self._directory).expanduser()

        if not path.exists():
            return ToolResult.fail(f"Path not found: {filepath}")
        if path.is_dir():
            return ToolResult.fail("Directory check not yet supported. Specify a file.")

        def load() -> tuple[str, str]:
            code = path.read_text(encoding="utf-8", errors="replace")
            standards = ""
            if standards_dir.is_dir():
                standards = "".join(
                    p.read_text(encoding="utf-8", errors="replace") + "\n\n"
                    for p in _rule_files(standards_dir)
                )
            return code, standards

        try:
            code, standards = await asyncio.to_thread(load)
        except OSError as e:
            return ToolResult.fail(str(e))

        if not standards:
            logger.info(f"[standards] No standards in {standards_dir}, reviewing without rules")

        prompt = build_review_prompt(code, filepath, standards)
        try:
            reply = await self._gateway.complete([Message.user(prompt)])
        except (GatewayError, OperationCancelledError) as e:
            logger.warning(f"[standards] Review request failed: {e}")
            return ToolResult.fail(str(e))

        return ToolResult.ok(reply.content)


def create_standards_tools(
    gateway: "ModelGateway | None" = None,
    directory: Path | str = DEFAULT_STANDARDS_DIR,
) -> list[Tool]:
    """
    Build the standards capability group.

    check_code_quality is only included when a gateway is supplied.
    """
    tools: list[Tool] = [ListStandardsTool(directory)]
    if gateway is not None:
        tools.append(CheckCodeQualityTool(gateway, directory))
    return tools
