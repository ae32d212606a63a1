"""
Context window budgeting.

Before each completion request the conversation is pruned so that the
messages plus the capability descriptors fit the model's context window,
leaving room for the response.

Token counts are estimates (about three characters per token), not
tokenizer output. The rules:

- The first message (system prompt) and the last message are always kept.
- If those two alone do not fit, the system prompt is truncated and
  nothing else is sent.
- Otherwise history is filled in newest first until the budget runs out.

Usage:
    tool_tokens = estimate_tool_tokens(registry.list_tools())
    pruned = prune_messages(messages, gateway.context_length, tool_tokens)
"""

from __future__ import annotations

import logging
import math
from dataclasses import replace
from typing import TYPE_CHECKING, Iterable, Sequence

if TYPE_CHECKING:
    from activo.providers.llm.base import Message
    from activo.tools.base import Tool

logger = logging.getLogger(__name__)

CHARS_PER_TOKEN = 3
RESPONSE_RESERVE = 1000
SAFETY_BUFFER = 200
MESSAGE_OVERHEAD = 4
TOOL_OVERHEAD = 20
PARAMETER_OVERHEAD = 10
MIN_SYSTEM_CHARS = 200


def estimate_tokens(text: str | None) -> int:
    """Estimate the token count of a text: ceil(len / 3)."""
    if not text:
        return 0
    return math.ceil(len(text) / CHARS_PER_TOKEN)


def estimate_tool_tokens(tools: Iterable["Tool"]) -> int:
    """Estimate what the capability descriptors cost in the request."""
    total = 0
    for tool in tools:
        total += estimate_tokens(tool.name) + estimate_tokens(tool.description) + TOOL_OVERHEAD
        properties = tool.input_schema.get("properties") or {}
        for key, spec in properties.items():
            description = spec.get("description", "") if isinstance(spec, dict) else ""
            total += estimate_tokens(key) + estimate_tokens(description) + PARAMETER_OVERHEAD
    return total


def available_budget(max_context_tokens: int, tool_tokens: int = 0) -> int:
    """Tokens left for messages once tools and the response reserve are paid for."""
    return max_context_tokens - tool_tokens - RESPONSE_RESERVE - SAFETY_BUFFER


def prune_messages(
    messages: Sequence["Message"],
    max_context_tokens: int,
    tool_tokens: int = 0,
) -> list["Message"]:
    """
    Select the messages to send for one request.

    Args:
        messages: Full conversation, system prompt first
        max_context_tokens: Context window of the model
        tool_tokens: Estimated cost of the capability descriptors

    Returns:
        A new list. Input messages are never modified; a truncated system
        prompt is a new message.
    """
    if len(messages) <= 2:
        return list(messages)

    budget = available_budget(max_context_tokens, tool_tokens)
    system = messages[0]
    last = messages[-1]

    system_tokens = estimate_tokens(system.content)
    last_tokens = estimate_tokens(last.content)

    if system_tokens + last_tokens > budget:
        max_chars = max(MIN_SYSTEM_CHARS, (budget - last_tokens) * CHARS_PER_TOKEN)
        logger.warning(
            f"[context] System prompt and last message exceed budget ({budget} tokens), "
            f"truncating system prompt to {max_chars} chars"
        )
        truncated = replace(system, content=system.content[:max_chars])
        return [truncated, last]

    used = system_tokens + last_tokens
    kept: list["Message"] = []
    for message in reversed(messages[1:-1]):
        cost = estimate_tokens(message.content) + MESSAGE_OVERHEAD
        if used + cost > budget:
            break
        kept.append(message)
        used += cost

    dropped = len(messages) - 2 - len(kept)
    if dropped:
        logger.debug(f"[context] Pruned {dropped} messages, ~{used}/{budget} tokens")

    return [system, *reversed(kept), last]
