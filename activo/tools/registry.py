"""
Capability Registry.

The registry is the flat, deduplicated set of capabilities offered to the
model:
- Registration with validation
- Lookup by name through a dict index (O(1))
- Aggregation of capability groups from several modules
- Schema export and token cost estimate for the model request

Capabilities are registered once at startup and are not mutated while an
agent loop is running.

Usage:
    registry = ToolRegistry()
    registry.register_all(BUILTIN_TOOLS)
    registry.register_all(analyzer_tools)

    tool = registry.get("read_file")
    schemas = registry.to_llm_schemas()
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import TYPE_CHECKING, Any, Iterable

if TYPE_CHECKING:
    from activo.providers.llm.base import ModelGateway

    from .base import Tool

logger = logging.getLogger(__name__)


class ToolRegistryError(Exception):
    """Error in tool registry operations."""

    pass


class ToolRegistry:
    """
    Registry of capabilities available to the agent.

    Example:
        registry = ToolRegistry()
        registry.register(read_file)

        tool = registry.get("read_file")
        result = await tool.execute({"filepath": "README.md"})
    """

    def __init__(self, tools: Iterable[Tool] | None = None) -> None:
        self._tools: dict[str, Tool] = {}
        if tools is not None:
            self.register_all(tools)

    def register(self, tool: Tool) -> None:
        """
        Register a tool.

        Raises:
            ToolRegistryError: If the name is taken or the tool is invalid
        """
        self._validate_tool(tool)

        if tool.name in self._tools:
            raise ToolRegistryError(
                f"Tool '{tool.name}' already registered. Use a unique name or unregister first."
            )

        self._tools[tool.name] = tool
        logger.debug(f"[tool_registry] Registered tool: {tool.name}")

    def register_all(self, tools: Iterable[Tool]) -> int:
        """
        Register a group of tools, skipping names already present.

        The first registration of a name wins; later duplicates are
        logged and ignored.

        Returns:
            Number of tools actually registered
        """
        added = 0
        for tool in tools:
            if tool.name in self._tools:
                logger.warning(f"[tool_registry] Skipping duplicate tool: {tool.name}")
                continue
            self.register(tool)
            added += 1
        return added

    def unregister(self, name: str) -> bool:
        """Unregister a tool by name. Returns False if it was not registered."""
        if name in self._tools:
            del self._tools[name]
            logger.debug(f"[tool_registry] Unregistered tool: {name}")
            return True
        return False

    def get(self, name: str) -> Tool | None:
        """Get a tool by name, or None if not found."""
        return self._tools.get(name)

    def get_required(self, name: str) -> Tool:
        """
        Get a tool by name, raising if not found.

        Raises:
            ToolRegistryError: If tool not found
        """
        tool = self._tools.get(name)
        if tool is None:
            available = list(self._tools.keys())
            raise ToolRegistryError(f"Tool '{name}' not found. Available tools: {available}")
        return tool

    def list_tools(self) -> list[Tool]:
        """List all registered tools in registration order."""
        return list(self._tools.values())

    def list_names(self) -> list[str]:
        """List all registered tool names."""
        return list(self._tools.keys())

    def to_llm_schemas(self) -> list[dict[str, Any]]:
        """Get all tool schemas in function-calling format."""
        return [tool.to_llm_schema() for tool in self._tools.values()]

    def estimate_tokens(self) -> int:
        """Estimated context cost of offering every registered tool."""
        from activo.agent.context import estimate_tool_tokens

        return estimate_tool_tokens(self._tools.values())

    def _validate_tool(self, tool: Tool) -> None:
        """
        Validate tool has required properties.

        Raises:
            ToolRegistryError: If tool is invalid
        """
        if not tool.name or not isinstance(tool.name, str):
            raise ToolRegistryError(f"Tool must have a valid name: {tool}")

        if not tool.description or not isinstance(tool.description, str):
            raise ToolRegistryError(f"Tool '{tool.name}' must have a description")

        schema = tool.input_schema
        if not isinstance(schema, dict):
            raise ToolRegistryError(f"Tool '{tool.name}' input_schema must be a dict")

        if schema.get("type") != "object":
            raise ToolRegistryError(f"Tool '{tool.name}' input_schema must have type: 'object'")

        if "properties" not in schema:
            raise ToolRegistryError(f"Tool '{tool.name}' input_schema must have 'properties'")

    def __len__(self) -> int:
        return len(self._tools)

    def __contains__(self, name: str) -> bool:
        return name in self._tools

    def __iter__(self):
        return iter(self._tools.values())

    def __repr__(self) -> str:
        return f"<ToolRegistry tools={list(self._tools.keys())}>"


# =============================================================================
# Factory Functions
# =============================================================================


def create_default_registry(
    gateway: "ModelGateway | None" = None,
    *,
    standards_directory: Path | str | None = None,
) -> ToolRegistry:
    """
    Create a registry with the built-in tools and the standards group.

    Args:
        gateway: Gateway used by check_code_quality; without one that
                 capability is left out
        standards_directory: Where the standards rule files live

    Analyzer modules add their own groups with register_all().
    """
    from .builtin import BUILTIN_TOOLS
    from .standards import DEFAULT_STANDARDS_DIR, create_standards_tools

    registry = ToolRegistry(BUILTIN_TOOLS)
    registry.register_all(
        create_standards_tools(gateway, standards_directory or DEFAULT_STANDARDS_DIR)
    )
    return registry
