"""Conversation context assembly.

History is kept within a character budget that stands in for a token
budget; the heuristic is approximate on purpose. The newest messages are
always kept over older ones:

1. Walk history newest-first, summing content lengths.
2. Stop at the first message that would cross the budget; that message and
   everything older is dropped and replaced by one system note.
3. Restore chronological order.
"""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass, field

from relay_llm.types import Message, Role

TRUNCATION_NOTE = "[Note: older history truncated to fit the context window]"


@dataclass(frozen=True)
class HistoryWindow:
    """Result of fitting history into the character budget."""

    messages: list[Message] = field(default_factory=list)
    truncated: bool = False
    kept_chars: int = 0


def fit_history(history: Sequence[Message], max_chars: int = 30_000) -> HistoryWindow:
    """Keep the most recent messages whose combined content fits *max_chars*.

    When anything is dropped, a system-role :data:`TRUNCATION_NOTE` is placed
    first in the returned window. Tool results whose assistant request fell
    outside the window are dropped too, so the window never references a
    tool call it does not contain.
    """
    kept: list[Message] = []
    kept_chars = 0
    truncated = False

    for message in reversed(history):
        length = message.content_length
        if kept_chars + length > max_chars:
            truncated = True
            break
        kept.append(message)
        kept_chars += length

    kept.reverse()

    requested: set[str] = set()
    window: list[Message] = []
    for message in kept:
        if message.role == Role.ASSISTANT and message.tool_calls:
            requested.update(call.id for call in message.tool_calls)
        elif message.role == Role.TOOL and message.tool_call_id not in requested:
            kept_chars -= message.content_length
            continue
        window.append(message)

    if truncated:
        window.insert(0, Message.system(TRUNCATION_NOTE))

    return HistoryWindow(messages=window, truncated=truncated, kept_chars=kept_chars)


def build_system_prompt(system_prompt: str, knowledge: str | None = None) -> str:
    """Append a long-term knowledge block to the base system prompt."""
    if not knowledge:
        return system_prompt
    return f"{system_prompt}\n\n{knowledge}" if system_prompt else knowledge
