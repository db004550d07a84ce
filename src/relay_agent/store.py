"""Conversation store contract and an in-memory implementation.

Durability lives outside the core: a SQLite or full-text-search backend
implements :class:`ConversationStore` and is handed to the agent. The
:class:`InMemoryStore` here is for tests and lightweight embedding.
"""

from __future__ import annotations

import re
from collections import defaultdict
from typing import Protocol, runtime_checkable

from relay_llm.types import Message

_WORD_RE = re.compile(r"\w+")


@runtime_checkable
class ConversationStore(Protocol):
    """Protocol for history persistence and long-term knowledge search.

    Implementations must be safe for concurrent calls from multiple sessions.
    """

    async def get_history(self, session_key: str, limit: int) -> list[Message]:
        """Return up to *limit* most recent messages, oldest first."""
        ...

    async def save_turn(self, session_key: str, user_text: str, assistant_text: str) -> None:
        """Persist one user message and the assistant's final answer."""
        ...

    async def search_knowledge(self, query: str, limit: int) -> str | None:
        """Return a pre-formatted context block relevant to *query*, or None."""
        ...


def format_knowledge(results: list[tuple[str, str]]) -> str:
    """Render (source, content) pairs as a context block for the system prompt."""
    parts = ["## Relevant Context\n"]
    for index, (source, content) in enumerate(results, start=1):
        parts.append(f"### Source {index}: {source}\n{content}\n")
    return "\n".join(parts)


class InMemoryStore:
    """Non-durable store keeping history and facts in dictionaries."""

    def __init__(self) -> None:
        self._history: dict[str, list[Message]] = defaultdict(list)
        self._facts: dict[str, str] = {}

    async def get_history(self, session_key: str, limit: int) -> list[Message]:
        messages = self._history.get(session_key, [])
        if limit <= 0:
            return []
        return list(messages[-limit:])

    async def save_turn(self, session_key: str, user_text: str, assistant_text: str) -> None:
        history = self._history[session_key]
        history.append(Message.user(user_text))
        history.append(Message.assistant(assistant_text))

    async def save_message(self, session_key: str, message: Message) -> None:
        self._history[session_key].append(message)

    async def clear_history(self, session_key: str) -> None:
        self._history.pop(session_key, None)

    async def save_fact(self, key: str, value: str) -> None:
        self._facts[key] = value

    async def get_fact(self, key: str) -> str | None:
        return self._facts.get(key)

    async def search_facts(self, query: str, limit: int) -> list[tuple[str, str]]:
        """Facts whose key or value contains *query* (case-insensitive)."""
        needle = query.lower()
        matches = [
            (k, v) for k, v in self._facts.items() if needle in k.lower() or needle in v.lower()
        ]
        return matches[:limit]

    async def search_knowledge(self, query: str, limit: int) -> str | None:
        """Rank facts by how many query words they mention."""
        words = {w for w in _WORD_RE.findall(query.lower()) if len(w) > 2}
        if not words or limit <= 0:
            return None

        scored: list[tuple[int, str, str]] = []
        for key, value in self._facts.items():
            haystack = f"{key} {value}".lower()
            score = sum(1 for w in words if w in haystack)
            if score:
                scored.append((score, key, value))
        if not scored:
            return None

        scored.sort(key=lambda item: item[0], reverse=True)
        return format_knowledge([(key, value) for _, key, value in scored[:limit]])

    def session_keys(self) -> list[str]:
        return list(self._history)
