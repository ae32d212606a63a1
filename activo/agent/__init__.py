"""
Activo Agent Layer.

The agent layer drives one conversation turn:
- AgentLoop: bounded Thinking/Executing loop over a model gateway
- ConversationBuffer: append-only history owned by one turn at a time
- Context pruning: keeps each request inside the model's context window
- Agent events: the ordered stream a consumer renders

Architecture:
    ┌──────────────────────────────────────────────────────┐
    │                     AgentLoop                         │
    │                                                       │
    │   user message + ConversationBuffer                   │
    │                        │                              │
    │   prune ──► ModelGateway.stream() ──► StreamEvents    │
    │                        │                              │
    │              ┌─────────┴─────────┐                    │
    │              ▼                   ▼                    │
    │        tool calls            no calls                 │
    │              │                   │                    │
    │     ToolExecutor (in order)   [Done]                  │
    │              │                                        │
    │        tool messages                                  │
    │              │                                        │
    │         [Loop back]                                   │
    └──────────────────────────────────────────────────────┘

Usage:
    from activo.agent import AgentLoop, ConversationBuffer
    from activo.providers import OllamaGateway
    from activo.tools import create_default_registry

    async with OllamaGateway(model="mistral:latest") as gateway:
        agent = AgentLoop(gateway, create_default_registry(gateway))
        buffer = ConversationBuffer()

        async with agent.stream("Check src/ for TODOs", buffer) as events:
            async for event in events:
                print(event.event_type)
"""

from .context import (
    RESPONSE_RESERVE,
    SAFETY_BUFFER,
    estimate_tokens,
    estimate_tool_tokens,
    prune_messages,
)
from .conversation import BufferBusyError, ConversationBuffer
from .events import (
    AgentEvent,
    CapabilityDoneEvent,
    CapabilityStartEvent,
    ContentEvent,
    DoneEvent,
    ErrorEvent,
    Event,
    ThinkingEvent,
)
from .loop import AgentLoop, create_agent
from .prompts import BASE_SYSTEM_PROMPT, build_system_prompt
from .result import (
    AgentResult,
    ToolCallRecord,
    cancelled_result,
    error_result,
    max_iterations_result,
    success_result,
)

__all__ = [
    # Loop
    "AgentLoop",
    "create_agent",
    # Conversation
    "ConversationBuffer",
    "BufferBusyError",
    # Context
    "estimate_tokens",
    "estimate_tool_tokens",
    "prune_messages",
    "RESPONSE_RESERVE",
    "SAFETY_BUFFER",
    # Events
    "AgentEvent",
    "Event",
    "ThinkingEvent",
    "ContentEvent",
    "CapabilityStartEvent",
    "CapabilityDoneEvent",
    "DoneEvent",
    "ErrorEvent",
    # Prompts
    "BASE_SYSTEM_PROMPT",
    "build_system_prompt",
    # Result
    "AgentResult",
    "ToolCallRecord",
    "success_result",
    "max_iterations_result",
    "cancelled_result",
    "error_result",
]
