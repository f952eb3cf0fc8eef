from collections import deque
from dataclasses import dataclass
from enum import Enum

DEFAULT_HISTORY_LIMIT = 10


class Role(str, Enum):
    USER = "user"
    ASSISTANT = "assistant"


@dataclass(frozen=True)
class ConversationTurn:
    role: Role
    text: str

    def as_message(self) -> dict:
        return {"role": self.role.value, "content": self.text}


class ConversationWindow:
    """Most recent turns of the single relayed conversation, oldest first.

    Not thread-safe on its own; RelaySession serializes access.
    """

    def __init__(self, limit: int = DEFAULT_HISTORY_LIMIT):
        if limit < 1:
            raise ValueError("history limit must be positive")
        self.limit = limit
        self._turns: deque[ConversationTurn] = deque(maxlen=limit)

    def append(self, role: Role | str, text: str) -> None:
        self._turns.append(ConversationTurn(role=Role(role), text=text))

    def snapshot(self) -> tuple[ConversationTurn, ...]:
        return tuple(self._turns)

    def clear(self) -> None:
        self._turns.clear()

    def __len__(self) -> int:
        return len(self._turns)
