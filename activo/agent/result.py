"""
Agent Turn Result.

This module defines the result returned by AgentLoop.run(). It carries the
final answer, every capability call that completed, and the buffer
snapshot, so a caller can persist the exchange or render it.

Usage:
    result = await agent.run("What does src/app.py do?", buffer)

    if result.success:
        print(result.content)
    elif result.error_type == "cancelled":
        print("Cancelled")
    else:
        print(f"Failed: {result.error_message}")
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from activo.providers.llm.base import Message
    from activo.tools.base import ToolResult
    from .events import AgentEvent


def _utc_now() -> datetime:
    return datetime.now(UTC)


@dataclass(frozen=True, slots=True)
class ToolCallRecord:
    """A capability call that ran to completion during the turn."""

    name: str
    arguments: dict[str, Any]
    result: "ToolResult"
    call_id: str = ""

    def to_dict(self) -> dict[str, Any]:
        return {
            "name": self.name,
            "arguments": self.arguments,
            "result": self.result.to_dict(),
            "call_id": self.call_id,
        }


@dataclass(frozen=True, slots=True)
class AgentResult:
    """
    Result of one agent invocation.

    `content` is the text of the latest assistant message. It is also set
    on failure, in which case it holds whatever the model had produced
    before the turn stopped (possibly empty).

    error_type is "" on success, otherwise one of:
    "max_iterations", "cancelled", "gateway", "unexpected".
    """

    success: bool
    content: str = ""
    tool_calls: tuple[ToolCallRecord, ...] = ()
    iterations: int = 0
    messages: tuple["Message", ...] = ()
    events: tuple["AgentEvent", ...] = ()

    started_at: datetime = field(default_factory=_utc_now)
    completed_at: datetime = field(default_factory=_utc_now)

    error_message: str = ""
    error_type: str = ""

    @property
    def duration_ms(self) -> float:
        """Total execution time in milliseconds."""
        return (self.completed_at - self.started_at).total_seconds() * 1000

    @property
    def cancelled(self) -> bool:
        return self.error_type == "cancelled"

    @property
    def tools_called(self) -> tuple[str, ...]:
        return tuple(record.name for record in self.tool_calls)

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for logging or persistence."""
        return {
            "success": self.success,
            "content": self.content,
            "iterations": self.iterations,
            "tool_calls": [record.to_dict() for record in self.tool_calls],
            "duration_ms": self.duration_ms,
            "started_at": self.started_at.isoformat(),
            "completed_at": self.completed_at.isoformat(),
            "error_message": self.error_message,
            "error_type": self.error_type,
            "message_count": len(self.messages),
            "event_types": [e.event_type for e in self.events],
        }


# =============================================================================
# Factory Functions
# =============================================================================


def success_result(
    content: str,
    *,
    tool_calls: tuple[ToolCallRecord, ...] = (),
    iterations: int = 0,
    messages: tuple["Message", ...] = (),
    events: tuple["AgentEvent", ...] = (),
    started_at: datetime | None = None,
) -> AgentResult:
    """Create a result for a turn that ended with a final answer."""
    return AgentResult(
        success=True,
        content=content,
        tool_calls=tool_calls,
        iterations=iterations,
        messages=messages,
        events=events,
        started_at=started_at or _utc_now(),
        completed_at=_utc_now(),
    )


def max_iterations_result(
    content: str,
    *,
    max_iterations: int,
    tool_calls: tuple[ToolCallRecord, ...] = (),
    messages: tuple["Message", ...] = (),
    events: tuple["AgentEvent", ...] = (),
    started_at: datetime | None = None,
) -> AgentResult:
    """Create a result for a turn stopped by the iteration cap."""
    return AgentResult(
        success=False,
        content=content,
        tool_calls=tool_calls,
        iterations=max_iterations,
        messages=messages,
        events=events,
        started_at=started_at or _utc_now(),
        completed_at=_utc_now(),
        error_message="Maximum iterations reached",
        error_type="max_iterations",
    )


def cancelled_result(
    content: str = "",
    *,
    tool_calls: tuple[ToolCallRecord, ...] = (),
    iterations: int = 0,
    messages: tuple["Message", ...] = (),
    events: tuple["AgentEvent", ...] = (),
    started_at: datetime | None = None,
) -> AgentResult:
    """Create a result for a turn stopped by the caller's token."""
    return AgentResult(
        success=False,
        content=content,
        tool_calls=tool_calls,
        iterations=iterations,
        messages=messages,
        events=events,
        started_at=started_at or _utc_now(),
        completed_at=_utc_now(),
        error_message="Operation cancelled",
        error_type="cancelled",
    )


def error_result(
    message: str,
    *,
    error_type: str = "unexpected",
    content: str = "",
    tool_calls: tuple[ToolCallRecord, ...] = (),
    iterations: int = 0,
    messages: tuple["Message", ...] = (),
    events: tuple["AgentEvent", ...] = (),
    started_at: datetime | None = None,
) -> AgentResult:
    """Create a result for a turn that failed (gateway or unexpected error)."""
    return AgentResult(
        success=False,
        content=content,
        tool_calls=tool_calls,
        iterations=iterations,
        messages=messages,
        events=events,
        started_at=started_at or _utc_now(),
        completed_at=_utc_now(),
        error_message=message,
        error_type=error_type,
    )
