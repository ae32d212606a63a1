"""
Conversation Buffer.

The buffer is the ordered, append-only history of one conversation
(user, assistant and tool messages; the system prompt is not stored).
An agent loop takes exclusive ownership of the buffer for the duration of
a turn. A second loop that tries to run against the same buffer while a
turn is active gets BufferBusyError instead of interleaving its messages.

Usage:
    buffer = ConversationBuffer()
    result = await agent.run("List the files in src/", buffer)
    result = await agent.run("Now read the largest one", buffer)

    session.messages = buffer.to_list()
"""

from __future__ import annotations

import logging
from typing import Any, Iterable, Iterator

from activo.providers.llm.base import Message, MessageRole

logger = logging.getLogger(__name__)


class BufferBusyError(Exception):
    """Raised when a buffer is already owned by an active agent turn."""

    def __init__(self, message: str = "Conversation buffer is in use by another agent turn"):
        super().__init__(message)


class ConversationBuffer:
    """
    Append-only message history with an exclusive ownership guard.

    Messages are never removed or rewritten. Pruning for the context
    window works on a copy at request time.
    """

    def __init__(self, messages: Iterable[Message] | None = None) -> None:
        self._messages: list[Message] = list(messages or ())
        self._owner: str | None = None

    @property
    def messages(self) -> tuple[Message, ...]:
        return tuple(self._messages)

    @property
    def busy(self) -> bool:
        return self._owner is not None

    def append(self, message: Message) -> None:
        self._messages.append(message)

    def extend(self, messages: Iterable[Message]) -> None:
        self._messages.extend(messages)

    def acquire(self, owner: str) -> None:
        """
        Take exclusive ownership.

        Raises:
            BufferBusyError: If another owner holds the buffer
        """
        if self._owner is not None:
            raise BufferBusyError()
        self._owner = owner
        logger.debug(f"[conversation] Buffer acquired by {owner}")

    def release(self, owner: str) -> None:
        """Give up ownership. A release by a non-owner is ignored."""
        if self._owner == owner:
            self._owner = None
            logger.debug(f"[conversation] Buffer released by {owner}")

    def user_requests(self) -> list[str]:
        """Content of every user message, oldest first."""
        return [m.content for m in self._messages if m.role == MessageRole.USER]

    def to_list(self) -> list[dict[str, Any]]:
        return [m.to_dict() for m in self._messages]

    @classmethod
    def from_list(cls, data: Iterable[dict[str, Any]]) -> "ConversationBuffer":
        return cls(Message.from_dict(item) for item in data)

    def __len__(self) -> int:
        return len(self._messages)

    def __iter__(self) -> Iterator[Message]:
        return iter(tuple(self._messages))

    def __repr__(self) -> str:
        return f"<ConversationBuffer messages={len(self._messages)} busy={self.busy}>"
