"""
Capability Executor.

The executor is the failure-containment boundary between the agent loop
and capability handlers:

    ToolCall ──► lookup ──► validate arguments ──► handler ──► ToolResult
                   │               │                  │
                   ▼               ▼                  ▼
           Unknown capability  Invalid arguments   exception → fail()

Whatever happens, execute() returns a ToolResult. Only cancellation of
the calling task propagates; a CancelledError a handler raises on its own
(for example from an inner task it awaited) is a capability failure.
"""

from __future__ import annotations

import asyncio
import logging
import time
from typing import TYPE_CHECKING, Any

from pydantic import BaseModel

from .base import ToolResult
from .validation import ArgumentValidationError, build_arguments_model, validate_arguments

if TYPE_CHECKING:
    from activo.providers.llm.base import ToolCall
    from .base import Tool
    from .registry import ToolRegistry

logger = logging.getLogger(__name__)


class ToolExecutor:
    """
    Looks up and runs capability calls.

    Argument models are built lazily per tool object and cached; a tool
    re-registered under the same name gets a fresh model.

    Example:
        executor = ToolExecutor(registry)
        result = await executor.execute(ToolCall(name="read_file", arguments={...}))
        if not result.success:
            print(result.error)
    """

    def __init__(self, tools: "ToolRegistry"):
        self._tools = tools
        self._models: dict[str, tuple["Tool", type[BaseModel] | None]] = {}

    @property
    def tools(self) -> "ToolRegistry":
        return self._tools

    def _arguments_model(self, tool: "Tool") -> type[BaseModel] | None:
        cached = self._models.get(tool.name)
        if cached is not None and cached[0] is tool:
            return cached[1]

        try:
            model = build_arguments_model(tool.name, tool.input_schema)
        except Exception as e:
            # Schema we cannot model: dispatch without validation.
            logger.warning(f"[tool_executor] Cannot build argument model for {tool.name}: {e}")
            model = None
        self._models[tool.name] = (tool, model)
        return model

    async def execute(self, call: "ToolCall") -> ToolResult:
        """
        Execute one capability call.

        Returns:
            ToolResult. Never raises for capability failures.
        """
        tool = self._tools.get(call.name)

        if tool is None:
            logger.error(f"[tool_executor] Unknown capability: {call.name}")
            return ToolResult.fail(f"Unknown capability: {call.name}")

        arguments: Any = call.arguments
        model = self._arguments_model(tool)
        if model is not None:
            try:
                arguments = validate_arguments(tool.name, model, call.arguments)
            except ArgumentValidationError as e:
                logger.warning(f"[tool_executor] {e}")
                return ToolResult.fail(str(e))

        start = time.time()
        try:
            result = await tool.execute(arguments)
        except asyncio.CancelledError:
            task = asyncio.current_task()
            if task is not None and task.cancelling():
                raise
            logger.error(f"[tool_executor] {call.name} raised CancelledError without cancellation")
            return ToolResult.fail(f"Capability {call.name} was cancelled")
        except Exception as e:
            duration = (time.time() - start) * 1000
            logger.error(
                f"[tool_executor] {call.name} raised after {duration:.0f}ms: {e}",
                exc_info=True,
            )
            return ToolResult.fail(str(e) or type(e).__name__)

        duration = (time.time() - start) * 1000

        if not isinstance(result, ToolResult):
            logger.error(
                f"[tool_executor] {call.name} returned {type(result).__name__}, not ToolResult"
            )
            return ToolResult.fail(f"Capability {call.name} returned an invalid result")

        if result.success:
            logger.info(f"[tool_executor] {call.name} succeeded in {duration:.0f}ms")
        else:
            logger.info(f"[tool_executor] {call.name} failed in {duration:.0f}ms: {result.error}")

        return result
