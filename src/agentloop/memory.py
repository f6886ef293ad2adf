"""
Memory collaborators consumed by the agent loop.

The agent only needs two calls: recall context relevant to a query, and
persist a finished turn. `ConversationMemory` is an in-process backend
keeping a sliding window of turns per session.
"""

from __future__ import annotations

import re
from typing import Any, Dict, List, Optional, Protocol, Set, runtime_checkable

from .types import Message, Role

_WORD_RE = re.compile(r"\w+")


@runtime_checkable
class MemoryBackend(Protocol):
    """Narrow interface to whatever stores conversation turns."""

    async def recall(self, session_id: str, query: str) -> Optional[str]:
        """Return a context block relevant to `query`, or None."""
        ...

    async def persist_turn(self, session_id: str, role: str, text: str) -> None:
        """Record one conversational turn."""
        ...


def _keywords(text: str) -> Set[str]:
    return {word for word in _WORD_RE.findall(text.lower()) if len(word) > 2}


class ConversationMemory:
    """
    In-process memory with a sliding window per session.

    Example:
        >>> memory = ConversationMemory(max_messages=10)
        >>> agent = Agent(providers=[provider], memory=memory)
        >>> await agent.process("s1", "My name is Ada")
        >>> memory.history("s1")
        [Message(role=<Role.USER: 'user'>, ...), Message(role=<Role.ASSISTANT: ...>, ...)]
    """

    def __init__(self, max_messages: int = 20, max_recalled: int = 5):
        """
        Args:
            max_messages: Messages retained per session. When exceeded, the
                oldest are dropped. Default is 20.
            max_recalled: Maximum number of past turns in a recalled context block.
        """
        if max_messages < 1:
            raise ValueError("max_messages must be at least 1")
        if max_recalled < 1:
            raise ValueError("max_recalled must be at least 1")

        self.max_messages = max_messages
        self.max_recalled = max_recalled
        self._sessions: Dict[str, List[Message]] = {}

    async def persist_turn(self, session_id: str, role: str, text: str) -> None:
        messages = self._sessions.setdefault(session_id, [])
        messages.append(Message(role=Role(role), content=text))
        if len(messages) > self.max_messages:
            del messages[: len(messages) - self.max_messages]

    async def recall(self, session_id: str, query: str) -> Optional[str]:
        """
        Return past turns of the session sharing words with `query`.

        Turns are ranked by the number of shared keywords (ties keep the most
        recent first) and rendered oldest-first as a context block.
        """
        query_words = _keywords(query)
        if not query_words:
            return None

        scored = []
        for position, message in enumerate(self._sessions.get(session_id, [])):
            overlap = len(query_words & _keywords(message.text()))
            if overlap:
                scored.append((overlap, position, message))
        if not scored:
            return None

        best = sorted(scored, key=lambda item: (-item[0], -item[1]))[: self.max_recalled]
        lines = [
            f"- {message.role.value}: {message.text()}"
            for _, _, message in sorted(best, key=lambda item: item[1])
        ]
        return "Relevant context from earlier in this conversation:\n" + "\n".join(lines)

    def history(self, session_id: str) -> List[Message]:
        """Stored messages of a session in chronological order."""
        return list(self._sessions.get(session_id, []))

    def clear(self, session_id: Optional[str] = None) -> None:
        """Forget one session, or every session when `session_id` is None."""
        if session_id is None:
            self._sessions.clear()
        else:
            self._sessions.pop(session_id, None)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "max_messages": self.max_messages,
            "sessions": {
                session_id: [msg.to_dict() for msg in messages]
                for session_id, messages in self._sessions.items()
            },
        }

    def __len__(self) -> int:
        """Number of sessions with stored messages."""
        return len(self._sessions)

    def __bool__(self) -> bool:
        """Always truthy so an empty memory is still treated as configured."""
        return True

    def __repr__(self) -> str:
        return (
            f"ConversationMemory(max_messages={self.max_messages}, "
            f"sessions={len(self._sessions)})"
        )


__all__ = ["MemoryBackend", "ConversationMemory"]
