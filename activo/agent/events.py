"""
Agent Events.

Events are what the consumer sees of one agent invocation, in order:
- ThinkingEvent: a completion request is about to be issued
- ContentEvent: a fragment of assistant text
- CapabilityStartEvent: a requested call is about to run
- CapabilityDoneEvent: a call finished, with its result
- DoneEvent: the turn ended with a final answer
- ErrorEvent: the turn ended abnormally (gateway failure, iteration cap,
  cancellation)

Every invocation ends with exactly one DoneEvent or ErrorEvent.

Usage:
    async for event in agent.stream("Analyze src/"):
        if isinstance(event, ContentEvent):
            print(event.content, end="")
        elif isinstance(event, CapabilityStartEvent):
            print(f"-> {event.name}")
        elif isinstance(event, ErrorEvent):
            print(f"Failed: {event.message}")
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import Any, Union
from uuid import UUID, uuid4

from activo.tools.base import ToolResult


def _utc_now() -> datetime:
    return datetime.now(UTC)


@dataclass(frozen=True, kw_only=True, slots=True)
class Event:
    """Base class for agent events: unique id and creation time."""

    id: UUID = field(default_factory=uuid4)
    created_at: datetime = field(default_factory=_utc_now)

    @property
    def event_type(self) -> str:
        return self.__class__.__name__

    @property
    def is_terminal(self) -> bool:
        return False

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": str(self.id),
            "type": self.event_type,
            "created_at": self.created_at.isoformat(),
        }


@dataclass(frozen=True, kw_only=True, slots=True)
class ThinkingEvent(Event):
    """Emitted at the start of every iteration."""

    iteration: int = 0

    @property
    def event_type(self) -> str:
        return "thinking"

    def to_dict(self) -> dict[str, Any]:
        return {**Event.to_dict(self), "iteration": self.iteration}


@dataclass(frozen=True, kw_only=True, slots=True)
class ContentEvent(Event):
    """A text fragment from the model, forwarded as it arrives."""

    content: str

    @property
    def event_type(self) -> str:
        return "content"

    def to_dict(self) -> dict[str, Any]:
        return {**Event.to_dict(self), "content": self.content}


@dataclass(frozen=True, kw_only=True, slots=True)
class CapabilityStartEvent(Event):
    """
    A capability call is about to execute.

    Emitted before the cancellation check that precedes execution, so a
    consumer that cancels on seeing it prevents the call from running.
    """

    name: str
    arguments: dict[str, Any] = field(default_factory=dict)
    call_id: str = ""

    @property
    def event_type(self) -> str:
        return "capability_start"

    def to_dict(self) -> dict[str, Any]:
        return {
            **Event.to_dict(self),
            "name": self.name,
            "arguments": self.arguments,
            "call_id": self.call_id,
        }


@dataclass(frozen=True, kw_only=True, slots=True)
class CapabilityDoneEvent(Event):
    """A capability call finished; `result` may be a failure."""

    name: str
    result: ToolResult
    call_id: str = ""

    @property
    def event_type(self) -> str:
        return "capability_done"

    def to_dict(self) -> dict[str, Any]:
        return {
            **Event.to_dict(self),
            "name": self.name,
            "result": self.result.to_dict(),
            "call_id": self.call_id,
        }


@dataclass(frozen=True, kw_only=True, slots=True)
class DoneEvent(Event):
    """The turn ended with a final answer."""

    content: str = ""

    @property
    def event_type(self) -> str:
        return "done"

    @property
    def is_terminal(self) -> bool:
        return True

    def to_dict(self) -> dict[str, Any]:
        return {**Event.to_dict(self), "content": self.content}


@dataclass(frozen=True, kw_only=True, slots=True)
class ErrorEvent(Event):
    """
    The turn ended abnormally.

    error_type is one of "max_iterations", "cancelled", "gateway" or
    "unexpected".
    """

    message: str
    error_type: str = "unexpected"

    @property
    def event_type(self) -> str:
        return "error"

    @property
    def is_terminal(self) -> bool:
        return True

    def to_dict(self) -> dict[str, Any]:
        return {
            **Event.to_dict(self),
            "message": self.message,
            "error_type": self.error_type,
        }


AgentEvent = Union[
    ThinkingEvent,
    ContentEvent,
    CapabilityStartEvent,
    CapabilityDoneEvent,
    DoneEvent,
    ErrorEvent,
]
