"""
Activo Tools (capabilities).

Capabilities are the "hands" of the agent: named, schema-described async
handlers the model can request. Analyzer modules, file access and search
all plug in through the same contract.

Usage:
    # Define a capability
    @capability(
        name="count_lines",
        description="Count the lines of a file",
        parameters={
            "type": "object",
            "required": ["filepath"],
            "properties": {"filepath": {"type": "string"}},
        },
    )
    async def count_lines(arguments: dict) -> ToolResult:
        text = Path(arguments["filepath"]).read_text()
        return ToolResult.ok(str(len(text.splitlines())))

    # Register and run
    registry = create_default_registry()
    registry.register(count_lines)

    executor = ToolExecutor(registry)
    result = await executor.execute(ToolCall(name="count_lines", arguments={...}))
"""

from .base import FunctionTool, Tool, ToolHandler, ToolResult, capability
from .builtin import BUILTIN_TOOLS
from .executor import ToolExecutor
from .registry import ToolRegistry, ToolRegistryError, create_default_registry
from .standards import DEFAULT_STANDARDS_DIR, create_standards_tools
from .validation import ArgumentValidationError, build_arguments_model, validate_arguments

__all__ = [
    # Base
    "Tool",
    "ToolResult",
    "ToolHandler",
    "FunctionTool",
    "capability",
    # Registry
    "ToolRegistry",
    "ToolRegistryError",
    "create_default_registry",
    "BUILTIN_TOOLS",
    # Standards
    "create_standards_tools",
    "DEFAULT_STANDARDS_DIR",
    # Execution
    "ToolExecutor",
    "ArgumentValidationError",
    "build_arguments_model",
    "validate_arguments",
]
