"""
Built-in capabilities: file access, search and shell commands.

These are the tools every session gets. Analyzer modules contribute their
own tool groups through ToolRegistry.register_all().

Blocking filesystem work runs in a worker thread so the event loop stays
responsive. run_command carries its own wall-clock timeout; the agent's
cancellation token does not kill a command that has already started.
"""

from __future__ import annotations

import asyncio
import fnmatch
import logging
import os
import re
from pathlib import Path
from typing import Any

from .base import ToolResult, capability

logger = logging.getLogger(__name__)

IGNORED_DIRS = frozenset({"node_modules", ".git"})
MAX_GREP_MATCHES = 50
MAX_GLOB_RESULTS = 100
COMMAND_TIMEOUT_SECONDS = 30.0
BLOCKED_COMMANDS = ("rm -rf /", "mkfs", "dd if=", "> /dev/")


def _resolve(path: str) -> Path:
    return Path(path).expanduser().resolve()


# =============================================================================
# File Tools
# =============================================================================


@capability(
    name="read_file",
    description="Read the contents of a file. Use this to view source code or any text file.",
    parameters={
        "type": "object",
        "required": ["filepath"],
        "properties": {
            "filepath": {
                "type": "string",
                "description": "Path to the file (relative or absolute)",
            },
        },
    },
)
async def read_file(arguments: dict[str, Any]) -> ToolResult:
    filepath = arguments["filepath"]
    path = _resolve(filepath)

    if not path.exists():
        return ToolResult.fail(f"File not found: {filepath}")
    if path.is_dir():
        return ToolResult.fail("Path is a directory")

    try:
        content = await asyncio.to_thread(path.read_text, encoding="utf-8")
    except UnicodeDecodeError:
        return ToolResult.fail(f"File is not valid UTF-8 text: {filepath}")
    except OSError as e:
        return ToolResult.fail(str(e))
    return ToolResult.ok(content)


@capability(
    name="write_file",
    description="Write content to a file. Creates directories if needed.",
    parameters={
        "type": "object",
        "required": ["filepath", "content"],
        "properties": {
            "filepath": {"type": "string", "description": "Path to write the file"},
            "content": {"type": "string", "description": "Content to write"},
        },
    },
)
async def write_file(arguments: dict[str, Any]) -> ToolResult:
    path = _resolve(arguments["filepath"])

    def write() -> None:
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(arguments["content"], encoding="utf-8")

    try:
        await asyncio.to_thread(write)
    except OSError as e:
        return ToolResult.fail(str(e))
    return ToolResult.ok(f"Written to {path}")


@capability(
    name="list_directory",
    description="List files and directories in a path.",
    parameters={
        "type": "object",
        "required": ["path"],
        "properties": {
            "path": {"type": "string", "description": "Directory path to list"},
        },
    },
)
async def list_directory(arguments: dict[str, Any]) -> ToolResult:
    raw_path = arguments.get("path") or "."
    path = _resolve(raw_path)

    if not path.is_dir():
        return ToolResult.fail(f"Directory not found: {raw_path}")

    def scan() -> list[str]:
        entries = sorted(path.iterdir(), key=lambda p: p.name)
        return [f"{'[DIR]' if e.is_dir() else '[FILE]'} {e.name}" for e in entries]

    try:
        lines = await asyncio.to_thread(scan)
    except OSError as e:
        return ToolResult.fail(str(e))
    return ToolResult.ok("\n".join(lines))


# =============================================================================
# Search Tools
# =============================================================================


def _walk_files(root: Path, file_pattern: str | None):
    if root.is_file():
        yield root
        return
    for dirpath, dirnames, filenames in os.walk(root):
        dirnames[:] = sorted(d for d in dirnames if d not in IGNORED_DIRS)
        for filename in sorted(filenames):
            if file_pattern and not fnmatch.fnmatch(filename, file_pattern):
                continue
            yield Path(dirpath) / filename


def _grep(regex: re.Pattern, root: Path, display_root: str, file_pattern: str | None) -> list[str]:
    matches: list[str] = []
    single_file = root.is_file()
    for file_path in _walk_files(root, file_pattern):
        if single_file:
            shown = display_root
        else:
            shown = os.path.join(display_root, os.path.relpath(file_path, root))
        try:
            with file_path.open(encoding="utf-8", errors="ignore") as handle:
                for lineno, line in enumerate(handle, start=1):
                    if regex.search(line):
                        matches.append(f"{shown}:{lineno}:{line.rstrip()}")
                        if len(matches) >= MAX_GREP_MATCHES:
                            return matches
        except OSError:
            continue
    return matches


@capability(
    name="grep_search",
    description="Search for a pattern in files using regex.",
    parameters={
        "type": "object",
        "required": ["pattern"],
        "properties": {
            "pattern": {"type": "string", "description": "Search pattern (regex)"},
            "path": {
                "type": "string",
                "description": "Directory or file to search (default: current)",
            },
            "filePattern": {
                "type": "string",
                "description": "File pattern filter (e.g., *.ts)",
            },
        },
    },
)
async def grep_search(arguments: dict[str, Any]) -> ToolResult:
    search_path = arguments.get("path") or "."
    try:
        regex = re.compile(arguments["pattern"])
    except re.error as e:
        return ToolResult.fail(f"Invalid pattern: {e}")

    root = _resolve(search_path)
    if not root.exists():
        return ToolResult.fail(f"Path not found: {search_path}")

    matches = await asyncio.to_thread(
        _grep, regex, root, search_path, arguments.get("filePattern")
    )
    if not matches:
        return ToolResult.ok("No matches found")
    return ToolResult.ok("\n".join(matches))


@capability(
    name="glob_search",
    description="Find files matching a glob pattern.",
    parameters={
        "type": "object",
        "required": ["pattern"],
        "properties": {
            "pattern": {"type": "string", "description": "Glob pattern (e.g., **/*.ts)"},
            "path": {"type": "string", "description": "Base directory (default: current)"},
        },
    },
)
async def glob_search(arguments: dict[str, Any]) -> ToolResult:
    base = arguments.get("path") or "."
    base_path = Path(base).expanduser()
    if not base_path.is_dir():
        return ToolResult.fail(f"Directory not found: {base}")

    def find() -> list[str]:
        found = []
        for match in sorted(base_path.glob(arguments["pattern"])):
            if IGNORED_DIRS.intersection(match.parts):
                continue
            found.append(str(match))
            if len(found) >= MAX_GLOB_RESULTS:
                break
        return found

    try:
        files = await asyncio.to_thread(find)
    except (OSError, ValueError) as e:
        return ToolResult.fail(str(e))
    if not files:
        return ToolResult.ok("No files found")
    return ToolResult.ok("\n".join(files))


# =============================================================================
# Command Tool
# =============================================================================


@capability(
    name="run_command",
    description="Execute a shell command. Be careful with destructive commands.",
    parameters={
        "type": "object",
        "required": ["command"],
        "properties": {
            "command": {"type": "string", "description": "Command to execute"},
        },
    },
)
async def run_command(arguments: dict[str, Any]) -> ToolResult:
    command = arguments["command"]
    if any(blocked in command for blocked in BLOCKED_COMMANDS):
        logger.warning(f"[run_command] Blocked command: {command}")
        return ToolResult.fail("Command blocked for safety")

    process = await asyncio.create_subprocess_shell(
        command,
        stdout=asyncio.subprocess.PIPE,
        stderr=asyncio.subprocess.PIPE,
    )
    try:
        stdout, stderr = await asyncio.wait_for(
            process.communicate(), timeout=COMMAND_TIMEOUT_SECONDS
        )
    except asyncio.TimeoutError:
        process.kill()
        await process.wait()
        return ToolResult.fail(f"Command timed out after {COMMAND_TIMEOUT_SECONDS:.0f}s")

    out = stdout.decode("utf-8", errors="replace")
    err = stderr.decode("utf-8", errors="replace")
    if process.returncode != 0:
        message = err.strip() or out.strip() or f"Command exited with status {process.returncode}"
        return ToolResult.fail(message)
    return ToolResult.ok(out)


BUILTIN_TOOLS = (
    read_file,
    write_file,
    list_directory,
    grep_search,
    glob_search,
    run_command,
)
