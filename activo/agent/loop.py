"""
Agent Loop (bounded iteration engine).

The AgentLoop turns one user message into zero or more model round trips:

    Thinking ──► completion ──► no calls ──────────────► Done
       ▲                         │
       │                         ▼
       └──────────────── Executing (calls in emitted order)

    Cap reached ──► error("Maximum iterations reached")
    Token fired ──► error("Operation cancelled")

Every invocation produces an ordered stream of AgentEvents ending with
exactly one DoneEvent or ErrorEvent. Nothing raised below the loop (gateway
failures, capability errors, bugs) escapes it: each is turned into a
terminal event, and the conversation buffer stays usable for the next turn.

The token is checked at the start of each iteration, after every streamed
event, before a capability runs and after it returns. A capability already
running when the token fires is allowed to finish; its result is discarded.

Usage:
    agent = AgentLoop(gateway, registry, max_iterations=10)
    buffer = ConversationBuffer()
    token = CancellationToken()

    # Event stream
    async with agent.stream("Find TODOs in src/", buffer, token) as events:
        async for event in events:
            ...

    # Or just the result
    result = await agent.run("Find TODOs in src/", buffer, token)
"""

from __future__ import annotations

import asyncio
import inspect
import logging
from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import TYPE_CHECKING, Any, Callable, Sequence
from uuid import uuid4

from activo.providers.llm.base import GatewayError, Message, StreamEventType
from activo.tools.executor import ToolExecutor
from activo.utils.cancellation import CancellationToken, OperationCancelledError
from activo.utils.channel import Channel

from .context import estimate_tool_tokens, prune_messages
from .conversation import ConversationBuffer
from .events import (
    AgentEvent,
    CapabilityDoneEvent,
    CapabilityStartEvent,
    ContentEvent,
    DoneEvent,
    ErrorEvent,
    ThinkingEvent,
)
from .prompts import build_system_prompt
from .result import (
    AgentResult,
    ToolCallRecord,
    cancelled_result,
    error_result,
    max_iterations_result,
    success_result,
)

if TYPE_CHECKING:
    from activo.providers.llm.base import ModelGateway, ToolCall
    from activo.tools.base import Tool
    from activo.tools.registry import ToolRegistry

logger = logging.getLogger(__name__)

DEFAULT_MAX_ITERATIONS = 10

EventCallback = Callable[[AgentEvent], Any]


@dataclass
class _Turn:
    """Mutable state of one invocation, owned by its producer task."""

    buffer: ConversationBuffer
    cancel: CancellationToken
    owner: str
    content: str = ""
    iterations: int = 0
    records: list[ToolCallRecord] = field(default_factory=list)
    events: list[AgentEvent] = field(default_factory=list)
    terminal: DoneEvent | ErrorEvent | None = None
    started_at: datetime = field(default_factory=lambda: datetime.now(UTC))


class AgentLoop:
    """
    Runs agent turns with bounded iteration.

    Invariants:
    - At most max_iterations completion requests per turn
    - Capability calls run one at a time, in the order the model emitted them
    - Tool results are appended to the buffer in that same order
    - Exactly one terminal event per turn

    Example:
        agent = AgentLoop(gateway, create_default_registry(gateway))

        result = await agent.run("Summarize README.md")
        if result.success:
            print(result.content)
        else:
            print(f"{result.error_type}: {result.error_message}")
    """

    def __init__(
        self,
        gateway: "ModelGateway",
        tools: "ToolRegistry",
        *,
        max_iterations: int = DEFAULT_MAX_ITERATIONS,
        channel_size: int = 32,
    ):
        """
        Initialize the loop.

        Args:
            gateway: Completion endpoint client, owned by the caller
            tools: Capabilities offered to the model
            max_iterations: Maximum completion requests per turn
            channel_size: Capacity of the event channel
        """
        if max_iterations < 1:
            raise ValueError("max_iterations must be at least 1")
        self._gateway = gateway
        self._tools = tools
        self._executor = ToolExecutor(tools)
        self._max_iterations = max_iterations
        self._channel_size = channel_size

    @property
    def gateway(self) -> "ModelGateway":
        return self._gateway

    @property
    def tools(self) -> "ToolRegistry":
        return self._tools

    @property
    def max_iterations(self) -> int:
        return self._max_iterations

    # =========================================================================
    # Public API
    # =========================================================================

    def stream(
        self,
        user_message: str,
        history: ConversationBuffer | Sequence[Message] | None = None,
        cancel: CancellationToken | None = None,
        *,
        context_summary: str | None = None,
    ) -> Channel[AgentEvent]:
        """
        Start a turn and return its event channel.

        Args:
            user_message: The new user request
            history: Buffer to run against (appended to in place), or
                     prior messages to seed a fresh buffer
            cancel: Token the caller may fire at any time
            context_summary: Summary of a previous session for the system prompt

        Raises:
            BufferBusyError: If another turn is active on the same buffer
        """
        channel, _ = self._start(user_message, history, cancel, context_summary)
        return channel

    async def run(
        self,
        user_message: str,
        history: ConversationBuffer | Sequence[Message] | None = None,
        cancel: CancellationToken | None = None,
        *,
        context_summary: str | None = None,
        on_event: EventCallback | None = None,
    ) -> AgentResult:
        """
        Run a turn to completion.

        Args:
            on_event: Optional callback (plain or async) invoked with each event

        Returns:
            AgentResult describing how the turn ended

        Raises:
            BufferBusyError: If another turn is active on the same buffer
        """
        channel, turn = self._start(user_message, history, cancel, context_summary)

        async with channel:
            async for event in channel:
                if on_event is not None:
                    outcome = on_event(event)
                    if inspect.isawaitable(outcome):
                        await outcome

        return self._build_result(turn)

    # =========================================================================
    # Turn Execution
    # =========================================================================

    def _start(
        self,
        user_message: str,
        history: ConversationBuffer | Sequence[Message] | None,
        cancel: CancellationToken | None,
        context_summary: str | None,
    ) -> tuple[Channel[AgentEvent], _Turn]:
        if isinstance(history, ConversationBuffer):
            buffer = history
        else:
            buffer = ConversationBuffer(history)

        owner = f"agent_loop_{uuid4().hex[:8]}"
        buffer.acquire(owner)

        turn = _Turn(buffer=buffer, cancel=cancel or CancellationToken(), owner=owner)
        system_prompt = build_system_prompt(context_summary)

        async def produce(channel: Channel[AgentEvent]) -> None:
            await self._drive(channel, turn, user_message, system_prompt)

        try:
            channel: Channel[AgentEvent] = Channel.start(
                produce,
                maxsize=self._channel_size,
                acknowledge=True,
                name=owner,
            )
        except Exception:
            buffer.release(owner)
            raise

        # Covers a producer cancelled before it ever ran
        channel.producer.add_done_callback(lambda _task: buffer.release(owner))
        return channel, turn

    async def _drive(
        self,
        channel: Channel[AgentEvent],
        turn: _Turn,
        user_message: str,
        system_prompt: str,
    ) -> None:
        logger.info(
            f"[agent_loop] Starting turn {turn.owner}. "
            f"Message: {user_message[:50]}... "
            f"Max iterations: {self._max_iterations}"
        )

        try:
            terminal = await self._run_turn(channel, turn, user_message, system_prompt)

        except asyncio.CancelledError:
            task = asyncio.current_task()
            if task is not None and task.cancelling():
                logger.info(f"[agent_loop] Turn {turn.owner} abandoned by consumer")
                raise
            logger.error(f"[agent_loop] Stray CancelledError in turn {turn.owner}")
            terminal = ErrorEvent(message="Operation interrupted", error_type="unexpected")

        except OperationCancelledError:
            logger.info(f"[agent_loop] Turn {turn.owner} cancelled")
            terminal = ErrorEvent(message="Operation cancelled", error_type="cancelled")

        except GatewayError as e:
            logger.error(f"[agent_loop] Model request failed: {e}")
            terminal = ErrorEvent(message=str(e), error_type="gateway")

        except Exception as e:
            logger.error(f"[agent_loop] Unexpected error: {e}", exc_info=True)
            terminal = ErrorEvent(message=str(e) or type(e).__name__, error_type="unexpected")

        turn.terminal = terminal
        # The consumer may start the next turn as soon as it sees the terminal event
        turn.buffer.release(turn.owner)
        await self._emit(channel, turn, terminal)

    async def _run_turn(
        self,
        channel: Channel[AgentEvent],
        turn: _Turn,
        user_message: str,
        system_prompt: str,
    ) -> DoneEvent | ErrorEvent:
        turn.buffer.append(Message.user(user_message))
        system = Message.system(system_prompt)
        tools = self._tools.list_tools()
        tool_tokens = estimate_tool_tokens(tools)

        while turn.iterations < self._max_iterations:
            turn.cancel.raise_if_cancelled()
            turn.iterations += 1

            logger.info(f"[agent_loop] Iteration {turn.iterations}/{self._max_iterations}")
            await self._emit(channel, turn, ThinkingEvent(iteration=turn.iterations))
            turn.cancel.raise_if_cancelled()

            messages = prune_messages(
                [system, *turn.buffer.messages],
                self._gateway.context_length,
                tool_tokens,
            )
            content, calls = await self._complete(channel, turn, messages, tools)

            turn.content = content
            turn.buffer.append(Message.assistant(content, calls))

            if not calls:
                logger.info(f"[agent_loop] Final answer after {turn.iterations} iteration(s)")
                return DoneEvent(content=content)

            for call in calls:
                await self._execute_call(channel, turn, call)

        logger.warning(f"[agent_loop] Max iterations ({self._max_iterations}) reached")
        return ErrorEvent(message="Maximum iterations reached", error_type="max_iterations")

    async def _complete(
        self,
        channel: Channel[AgentEvent],
        turn: _Turn,
        messages: list[Message],
        tools: Sequence["Tool"],
    ) -> tuple[str, list["ToolCall"]]:
        """One round trip: forward content, collect calls."""
        parts: list[str] = []
        calls: list["ToolCall"] = []

        async with self._gateway.stream(messages, tools, turn.cancel) as events:
            async for event in events:
                if event.type == StreamEventType.CONTENT:
                    if event.content:
                        parts.append(event.content)
                        await self._emit(channel, turn, ContentEvent(content=event.content))
                elif event.type == StreamEventType.TOOL_CALL and event.tool_call is not None:
                    calls.append(event.tool_call)
                elif event.type == StreamEventType.ERROR:
                    raise GatewayError(event.error or "Model request failed")
                elif event.type == StreamEventType.DONE:
                    break
                turn.cancel.raise_if_cancelled()

        # A cancelled gateway stream ends without DONE
        turn.cancel.raise_if_cancelled()
        return "".join(parts), calls

    async def _execute_call(
        self,
        channel: Channel[AgentEvent],
        turn: _Turn,
        call: "ToolCall",
    ) -> None:
        turn.cancel.raise_if_cancelled()
        await self._emit(
            channel,
            turn,
            CapabilityStartEvent(name=call.name, arguments=dict(call.arguments), call_id=call.id),
        )
        turn.cancel.raise_if_cancelled()

        logger.info(f"[agent_loop] Executing capability: {call.name}")
        result = await self._executor.execute(call)

        if turn.cancel.cancelled:
            logger.info(f"[agent_loop] Discarding result of {call.name} after cancellation")
            raise OperationCancelledError()

        turn.records.append(
            ToolCallRecord(
                name=call.name,
                arguments=dict(call.arguments),
                result=result,
                call_id=call.id,
            )
        )
        await self._emit(
            channel,
            turn,
            CapabilityDoneEvent(name=call.name, result=result, call_id=call.id),
        )
        turn.buffer.append(Message.tool(result.as_message_content(), call.id))

    @staticmethod
    async def _emit(channel: Channel[AgentEvent], turn: _Turn, event: AgentEvent) -> None:
        turn.events.append(event)
        await channel.send(event)

    def _build_result(self, turn: _Turn) -> AgentResult:
        common = {
            "tool_calls": tuple(turn.records),
            "messages": turn.buffer.messages,
            "events": tuple(turn.events),
            "started_at": turn.started_at,
        }
        terminal = turn.terminal

        if isinstance(terminal, DoneEvent):
            return success_result(terminal.content, iterations=turn.iterations, **common)

        if terminal is None:
            return error_result(
                "Agent turn ended without a result",
                content=turn.content,
                iterations=turn.iterations,
                **common,
            )

        if terminal.error_type == "max_iterations":
            return max_iterations_result(
                turn.content,
                max_iterations=self._max_iterations,
                **common,
            )
        if terminal.error_type == "cancelled":
            return cancelled_result(turn.content, iterations=turn.iterations, **common)

        return error_result(
            terminal.message,
            error_type=terminal.error_type,
            content=turn.content,
            iterations=turn.iterations,
            **common,
        )

    def __repr__(self) -> str:
        return (
            f"<AgentLoop gateway={self._gateway.name} tools={len(self._tools)} "
            f"max_iterations={self._max_iterations}>"
        )


# =============================================================================
# Factory Functions
# =============================================================================


def create_agent(
    gateway: "ModelGateway",
    tools: "ToolRegistry | None" = None,
    *,
    max_iterations: int = DEFAULT_MAX_ITERATIONS,
    channel_size: int = 32,
) -> AgentLoop:
    """
    Create an agent loop, with the built-in capabilities by default.

    Example:
        async with OllamaGateway(model="mistral:latest") as gateway:
            agent = create_agent(gateway)
            result = await agent.run("List the files in this project")
    """
    if tools is None:
        from activo.tools.registry import create_default_registry

        tools = create_default_registry(gateway)

    return AgentLoop(
        gateway,
        tools,
        max_iterations=max_iterations,
        channel_size=channel_size,
    )
