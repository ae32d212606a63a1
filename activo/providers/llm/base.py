"""
Model Gateway Protocol for Activo.

Defines the conversation message types and the interface for completion
endpoints that support tool calling.
"""
from __future__ import annotations

import secrets
import time
from dataclasses import dataclass, field
from enum import Enum
from typing import TYPE_CHECKING, Any, Dict, List, Optional, Protocol, Sequence, runtime_checkable

if TYPE_CHECKING:
    from activo.tools.base import Tool
    from activo.utils.cancellation import CancellationToken
    from activo.utils.channel import Channel


class MessageRole(str, Enum):
    """Role of a message in the conversation."""

    SYSTEM = "system"
    USER = "user"
    ASSISTANT = "assistant"
    TOOL = "tool"


def generate_call_id() -> str:
    """Opaque id used to correlate a tool call with its result."""
    return f"tc_{int(time.time() * 1000)}_{secrets.token_hex(4)}"


@dataclass(frozen=True, slots=True)
class ToolCall:
    """
    A structured request from the model to run a capability.

    Attributes:
        id: Unique id, generated when the response is parsed
        name: Capability name
        arguments: Argument mapping as sent by the model
    """

    name: str
    arguments: Dict[str, Any] = field(default_factory=dict)
    id: str = field(default_factory=generate_call_id)

    def to_dict(self) -> Dict[str, Any]:
        return {"id": self.id, "name": self.name, "arguments": self.arguments}

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ToolCall":
        return cls(
            id=data.get("id") or generate_call_id(),
            name=data["name"],
            arguments=data.get("arguments") or {},
        )


@dataclass(frozen=True, slots=True)
class Message:
    """
    A message in the model conversation.

    Attributes:
        role: Role of the message sender
        content: Text content of the message
        tool_calls: Calls requested by an assistant message, in order
        tool_call_id: For tool messages, the id of the call answered
    """

    role: MessageRole
    content: str = ""
    tool_calls: tuple[ToolCall, ...] = ()
    tool_call_id: Optional[str] = None

    def __post_init__(self) -> None:
        if not isinstance(self.role, MessageRole):
            object.__setattr__(self, "role", MessageRole(self.role))
        if not isinstance(self.tool_calls, tuple):
            object.__setattr__(self, "tool_calls", tuple(self.tool_calls))

    @property
    def has_tool_calls(self) -> bool:
        return bool(self.tool_calls)

    def to_wire(self) -> Dict[str, Any]:
        """Shape sent to the completion endpoint (role and content only)."""
        return {"role": self.role.value, "content": self.content}

    def to_dict(self) -> Dict[str, Any]:
        result: Dict[str, Any] = {"role": self.role.value, "content": self.content}
        if self.tool_calls:
            result["tool_calls"] = [call.to_dict() for call in self.tool_calls]
        if self.tool_call_id:
            result["tool_call_id"] = self.tool_call_id
        return result

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Message":
        return cls(
            role=MessageRole(data["role"]),
            content=data.get("content", ""),
            tool_calls=tuple(ToolCall.from_dict(c) for c in data.get("tool_calls", [])),
            tool_call_id=data.get("tool_call_id"),
        )

    @classmethod
    def system(cls, content: str) -> "Message":
        """Create a system message."""
        return cls(role=MessageRole.SYSTEM, content=content)

    @classmethod
    def user(cls, content: str) -> "Message":
        """Create a user message."""
        return cls(role=MessageRole.USER, content=content)

    @classmethod
    def assistant(cls, content: str, tool_calls: Sequence[ToolCall] = ()) -> "Message":
        """Create an assistant message."""
        return cls(role=MessageRole.ASSISTANT, content=content, tool_calls=tuple(tool_calls))

    @classmethod
    def tool(cls, content: str, tool_call_id: str) -> "Message":
        """Create a tool-result message."""
        return cls(role=MessageRole.TOOL, content=content, tool_call_id=tool_call_id)


class StreamEventType(str, Enum):
    """Kind of low-level event produced by a gateway stream."""

    CONTENT = "content"
    TOOL_CALL = "tool_call"
    DONE = "done"
    ERROR = "error"


@dataclass(frozen=True, slots=True)
class StreamEvent:
    """Low-level event from one completion round trip."""

    type: StreamEventType
    content: str = ""
    tool_call: Optional[ToolCall] = None
    error: Optional[str] = None

    @classmethod
    def content_chunk(cls, content: str) -> "StreamEvent":
        return cls(type=StreamEventType.CONTENT, content=content)

    @classmethod
    def call(cls, tool_call: ToolCall) -> "StreamEvent":
        return cls(type=StreamEventType.TOOL_CALL, tool_call=tool_call)

    @classmethod
    def done(cls) -> "StreamEvent":
        return cls(type=StreamEventType.DONE)

    @classmethod
    def failure(cls, error: str) -> "StreamEvent":
        return cls(type=StreamEventType.ERROR, error=error)


# =============================================================================
# Exceptions
# =============================================================================


class GatewayError(Exception):
    """Base exception for completion endpoint errors."""

    def __init__(
        self,
        message: str,
        *,
        status_code: int | None = None,
        response_body: str | None = None,
    ):
        super().__init__(message)
        self.status_code = status_code
        self.response_body = response_body


class GatewayConnectionError(GatewayError):
    """Raised when the endpoint cannot be reached."""

    pass


class GatewayResponseError(GatewayError):
    """Raised when the endpoint answers with a non-success status."""

    pass


class MalformedResponseError(GatewayError):
    """Raised when a single-shot response body cannot be decoded."""

    pass


# =============================================================================
# Protocol
# =============================================================================


@runtime_checkable
class ModelGateway(Protocol):
    """
    Protocol for completion endpoints with tool calling.

    Implementations must provide:
    - complete(): one blocking round trip returning the assistant message
    - stream(): a channel of StreamEvents for one round trip. When tools
      are supplied, the request is always sent non-streaming.
    - context_length: context window size used for pruning
    """

    @property
    def name(self) -> str:
        """Gateway name for logging and configuration."""
        ...

    @property
    def context_length(self) -> int:
        """Maximum combined token budget per request."""
        ...

    async def complete(
        self,
        messages: List[Message],
        tools: Optional[Sequence["Tool"]] = None,
        cancel: Optional["CancellationToken"] = None,
    ) -> Message:
        """
        Run a single-shot completion.

        Raises:
            GatewayError: On transport, status or decoding failures
            OperationCancelledError: If `cancel` fires while waiting
        """
        ...

    def stream(
        self,
        messages: List[Message],
        tools: Optional[Sequence["Tool"]] = None,
        cancel: Optional["CancellationToken"] = None,
    ) -> "Channel[StreamEvent]":
        """Start a round trip and return the channel of its events."""
        ...
