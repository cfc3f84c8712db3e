"""Bounded conversation history."""

from typing import List

from conductor.core.schema import ConversationTurn

MAX_TURNS = 10


class ConversationContext:
    """
    Ordered user/assistant turns, capped at *max_turns*.

    Appending past the cap drops the oldest turns first; the newest turn is always kept.
    """

    def __init__(self, max_turns: int = MAX_TURNS) -> None:
        if max_turns < 1:
            raise ValueError("max_turns must be at least 1")
        self._max_turns = max_turns
        self._turns: List[ConversationTurn] = []

    @property
    def max_turns(self) -> int:
        return self._max_turns

    def append(self, turn: ConversationTurn) -> None:
        self._turns.append(turn)
        overflow = len(self._turns) - self._max_turns
        if overflow > 0:
            del self._turns[:overflow]

    def get_history(self) -> List[ConversationTurn]:
        """Return a copy of the history, oldest first."""
        return list(self._turns)

    def clear(self) -> None:
        self._turns.clear()

    def __len__(self) -> int:
        return len(self._turns)
