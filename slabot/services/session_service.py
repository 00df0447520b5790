"""In-process conversation sessions keyed by (bot, LINE user).

Sessions are volatile: a restart drops every history and last response.
"""

import asyncio
from collections import deque
from dataclasses import dataclass, field
from typing import Deque, Optional

DEFAULT_MAX_TURNS = 20

SessionKey = tuple[str, str]


@dataclass
class Turn:
    role: str
    content: str

    def to_message(self) -> dict:
        return {"role": self.role, "content": self.content}


@dataclass
class Session:
    max_turns: int = DEFAULT_MAX_TURNS
    turns: Deque[Turn] = field(default_factory=deque)

    def __post_init__(self) -> None:
        self.turns = deque(self.turns, maxlen=self.max_turns)

    def append(self, role: str, content: str) -> None:
        # deque(maxlen) drops from the left, so the front stays the oldest turn
        self.turns.append(Turn(role=role, content=content))

    def clear(self) -> None:
        self.turns.clear()

    def to_messages(self) -> list[dict]:
        return [turn.to_message() for turn in self.turns]

    def __len__(self) -> int:
        return len(self.turns)


class SessionStore:
    """Owns per-(bot, user) sessions, last replies and turn locks."""

    def __init__(self, max_turns: int = DEFAULT_MAX_TURNS):
        self.max_turns = max_turns
        self._sessions: dict[SessionKey, Session] = {}
        self._last_responses: dict[SessionKey, str] = {}
        self._locks: dict[SessionKey, asyncio.Lock] = {}

    @staticmethod
    def key(bot_id: str, user_id: str) -> SessionKey:
        return (bot_id, user_id)

    def get(self, bot_id: str, user_id: str) -> Session:
        """Return the session, creating an empty one on first use."""
        key = self.key(bot_id, user_id)
        session = self._sessions.get(key)
        if session is None:
            session = Session(max_turns=self.max_turns)
            self._sessions[key] = session
        return session

    def reset(self, bot_id: str, user_id: str) -> None:
        self.get(bot_id, user_id).clear()

    def lock(self, bot_id: str, user_id: str) -> asyncio.Lock:
        """Per-key lock serializing turns of the same user."""
        key = self.key(bot_id, user_id)
        lock = self._locks.get(key)
        if lock is None:
            lock = asyncio.Lock()
            self._locks[key] = lock
        return lock

    def set_last_response(self, bot_id: str, user_id: str, text: str) -> None:
        self._last_responses[self.key(bot_id, user_id)] = text

    def get_last_response(self, bot_id: str, user_id: str) -> Optional[str]:
        return self._last_responses.get(self.key(bot_id, user_id))
