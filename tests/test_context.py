"""
Tests for context window budgeting.
"""

from activo.agent.context import (
    MESSAGE_OVERHEAD,
    available_budget,
    estimate_tokens,
    estimate_tool_tokens,
    prune_messages,
)
from activo.providers.llm.base import Message
from conftest import MockTool


def _cost(messages):
    return sum(estimate_tokens(m.content) for m in messages) + MESSAGE_OVERHEAD * (
        len(messages) - 2
    )


class TestEstimates:
    """Tests for token estimates."""

    def test_empty_text_is_free(self):
        assert estimate_tokens("") == 0
        assert estimate_tokens(None) == 0

    def test_three_chars_per_token_rounded_up(self):
        assert estimate_tokens("abc") == 1
        assert estimate_tokens("abcd") == 2
        assert estimate_tokens("x" * 300) == 100

    def test_tool_tokens(self):
        assert estimate_tool_tokens([MockTool()]) == 47
        assert estimate_tool_tokens([]) == 0

    def test_budget(self):
        assert available_budget(4096, 96) == 2800


class TestPruneMessages:
    """Tests for prune_messages."""

    def test_short_lists_unchanged(self):
        system = Message.system("x" * 10_000)
        user = Message.user("y" * 10_000)

        assert prune_messages([], 100) == []
        assert prune_messages([system], 100) == [system]
        assert prune_messages([system, user], 100) == [system, user]

    def test_everything_fits(self):
        messages = [
            Message.system("You are helpful."),
            Message.user("hi"),
            Message.assistant("hello"),
            Message.user("list files"),
        ]
        assert prune_messages(messages, 4096) == messages

    def test_system_truncated_when_first_and_last_do_not_fit(self):
        system = Message.system("s" * 5000)
        user = Message.user("u" * 40)
        messages = [system, Message.assistant("a" * 10), user]

        result = prune_messages(messages, 100, 0)

        assert len(result) == 2
        assert result[0].role == system.role
        assert len(result[0].content) == 200
        assert result[1] is user
        # Input is never modified
        assert len(system.content) == 5000

    def test_keeps_newest_history(self):
        system = Message.system("You are helpful.")
        history = [Message.user(f"{i}" * 300) for i in range(8)]
        last = Message.user("z" * 30)
        messages = [system, *history, last]

        result = prune_messages(messages, 2000, 0)

        assert result[0] is system
        assert result[-1] is last
        assert result[1:-1] == history[1:]
        assert _cost(result) <= available_budget(2000, 0)

    def test_tool_tokens_reduce_budget(self):
        system = Message.system("You are helpful.")
        history = [Message.user("h" * 300) for _ in range(8)]
        last = Message.user("z" * 30)
        messages = [system, *history, last]

        without_tools = prune_messages(messages, 2000, 0)
        with_tools = prune_messages(messages, 2000, 300)

        assert len(with_tools) < len(without_tools)
        assert _cost(with_tools) <= available_budget(2000, 300)

    def test_first_and_last_always_kept(self):
        system = Message.system("sys")
        last = Message.user("question")
        for history_size in range(0, 12):
            history = [Message.assistant("a" * 900) for _ in range(history_size)]
            result = prune_messages([system, *history, last], 1700)

            assert result[0] is system
            assert result[-1] is last
            assert _cost(result) <= available_budget(1700)

    def test_chronological_order_preserved(self):
        system = Message.system("sys")
        history = [Message.user(f"message {i}") for i in range(5)]
        last = Message.user("now")

        result = prune_messages([system, *history, last], 4096)

        assert [m.content for m in result[1:-1]] == [m.content for m in history]
