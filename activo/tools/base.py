"""
Capability Base Classes.

This module defines the core abstractions for agent capabilities:
- Tool: Base class for all capabilities
- FunctionTool: A capability backed by a plain async handler
- ToolResult: Uniform result from capability execution
- capability: Decorator that turns a handler into a FunctionTool

Contract:
    Every capability exposes a name, a description shown to the model,
    a JSON Schema describing its arguments, and an async execute()
    returning a ToolResult. Failures are reported IN the result;
    the executor converts anything that escapes into a failed result.

Usage:
    @capability(
        name="read_file",
        description="Read the contents of a file.",
        parameters={
            "type": "object",
            "required": ["filepath"],
            "properties": {
                "filepath": {"type": "string", "description": "Path to the file"},
            },
        },
    )
    async def read_file(arguments: dict) -> ToolResult:
        ...

    result = await read_file.execute({"filepath": "README.md"})
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable

ToolHandler = Callable[[dict[str, Any]], Awaitable["ToolResult"]]


@dataclass(frozen=True, slots=True)
class ToolResult:
    """
    Result from capability execution.

    Invariant:
        success=False implies content is empty and error is set.
        This is the only failure representation that crosses the
        executor boundary.

    Example:
        ToolResult.ok("3 files found")
        ToolResult.fail("File not found: missing.txt")
    """

    success: bool
    content: str = ""
    error: str | None = None

    def __post_init__(self) -> None:
        if not self.success:
            if self.content:
                raise ValueError("Failed ToolResult must not carry content")
            if not self.error:
                raise ValueError("Failed ToolResult must carry an error message")

    @classmethod
    def ok(cls, content: str) -> ToolResult:
        """Create a successful result."""
        return cls(success=True, content=content)

    @classmethod
    def fail(cls, error: str) -> ToolResult:
        """Create a failed result."""
        return cls(success=False, content="", error=error or "Unknown error")

    def as_message_content(self) -> str:
        """Text appended to the conversation as a tool-role message."""
        if self.success:
            return self.content
        return f"Error: {self.error}"

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for serialization."""
        result: dict[str, Any] = {"success": self.success, "content": self.content}
        if self.error is not None:
            result["error"] = self.error
        return result

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> ToolResult:
        """Create ToolResult from dict."""
        return cls(
            success=bool(data.get("success")),
            content=data.get("content", ""),
            error=data.get("error"),
        )


class Tool(ABC):
    """
    Base class for all capabilities.

    Contract:
        - name: Unique identifier (snake_case)
        - description: Clear description so the model can pick the tool
        - input_schema: JSON Schema for arguments ("type": "object")
        - execute: Async method that performs the action

    Tools do NOT know they are called by an agent. They are
    independent, testable units.
    """

    @property
    @abstractmethod
    def name(self) -> str:
        """Unique identifier for the tool."""
        ...

    @property
    @abstractmethod
    def description(self) -> str:
        """
        Human-readable description of what the tool does.

        This is shown to the model to aid tool selection.
        """
        ...

    @property
    @abstractmethod
    def input_schema(self) -> dict[str, Any]:
        """
        JSON Schema defining expected input arguments.

        Must be an object schema with:
        - type: "object"
        - properties: dict of parameter definitions
        - required: optional list of required parameter names
        """
        ...

    @abstractmethod
    async def execute(self, arguments: dict[str, Any]) -> ToolResult:
        """
        Execute the tool with the given arguments.

        Report expected failures with ToolResult.fail(); unexpected
        exceptions are caught by the executor.
        """
        ...

    def to_llm_schema(self) -> dict[str, Any]:
        """Convert to the function-calling format sent to the model."""
        return {
            "type": "function",
            "function": {
                "name": self.name,
                "description": self.description,
                "parameters": self.input_schema,
            },
        }

    def __repr__(self) -> str:
        return f"<Tool {self.name}>"


@dataclass(frozen=True, eq=False)
class FunctionTool(Tool):
    """A capability defined by a registration record and an async handler."""

    tool_name: str
    tool_description: str
    parameters: dict[str, Any] = field(
        default_factory=lambda: {"type": "object", "properties": {}}
    )
    handler: ToolHandler | None = None

    @property
    def name(self) -> str:
        return self.tool_name

    @property
    def description(self) -> str:
        return self.tool_description

    @property
    def input_schema(self) -> dict[str, Any]:
        return self.parameters

    async def execute(self, arguments: dict[str, Any]) -> ToolResult:
        if self.handler is None:
            raise NotImplementedError(f"Tool '{self.tool_name}' has no handler")
        return await self.handler(arguments)

    def __repr__(self) -> str:
        return f"<FunctionTool {self.tool_name}>"


def capability(
    *,
    name: str,
    description: str,
    parameters: dict[str, Any] | None = None,
) -> Callable[[ToolHandler], FunctionTool]:
    """Decorator that registers an async handler as a FunctionTool."""

    def decorator(handler: ToolHandler) -> FunctionTool:
        return FunctionTool(
            tool_name=name,
            tool_description=description,
            parameters=parameters or {"type": "object", "properties": {}},
            handler=handler,
        )

    return decorator
