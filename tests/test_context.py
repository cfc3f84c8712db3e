"""Tests for the bounded conversation history."""

import pytest

from conductor.agent.context import (
    MAX_TURNS,
    ConversationContext,
)
from conductor.core.schema import ConversationTurn


def _turn(i: int) -> ConversationTurn:
    return ConversationTurn(role="user" if i % 2 == 0 else "assistant", content=f"turn {i}")


def test_history_never_exceeds_limit_and_drops_oldest_first() -> None:
    context = ConversationContext()
    for i in range(25):
        context.append(_turn(i))
        assert len(context.get_history()) <= MAX_TURNS
    assert [t.content for t in context.get_history()] == [f"turn {i}" for i in range(15, 25)]


def test_newest_turn_is_always_kept() -> None:
    context = ConversationContext(max_turns=1)
    context.append(_turn(0))
    context.append(_turn(1))
    assert context.get_history() == [_turn(1)]


def test_get_history_returns_a_copy() -> None:
    context = ConversationContext()
    context.append(_turn(0))
    context.get_history().clear()
    assert len(context) == 1


def test_clear_forgets_everything() -> None:
    context = ConversationContext()
    for i in range(3):
        context.append(_turn(i))
    context.clear()
    assert context.get_history() == []


def test_limit_must_be_positive() -> None:
    with pytest.raises(ValueError):
        ConversationContext(max_turns=0)
