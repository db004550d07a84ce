"""Shared fakes for the agent and provider tests.

A scripted provider, a recording store, and small response builders so
every test file can import them from one place.
"""

from __future__ import annotations

from collections.abc import Sequence

from relay_agent.bus import Subscription
from relay_agent.events import SystemEvent
from relay_agent.store import InMemoryStore
from relay_llm.provider import Provider
from relay_llm.types import (
    ConversationRequest,
    ConversationResponse,
    ToolInvocationRequest,
    Usage,
)

# ------------------------------------------------------------------ #
# Response builders
# ------------------------------------------------------------------ #


def final(text: str | None) -> ConversationResponse:
    """A text-only response (the loop's exit condition)."""
    return ConversationResponse(
        content=text,
        model="scripted-1",
        usage=Usage(prompt_tokens=10, completion_tokens=5),
        finish_reason="stop",
    )


def calls(*specs: tuple[str, str, str], content: str | None = None) -> ConversationResponse:
    """A response requesting tools; each entry is (id, capability, arguments_json)."""
    return ConversationResponse(
        content=content,
        tool_calls=[
            ToolInvocationRequest(id=call_id, capability_name=name, arguments_json=args)
            for call_id, name, args in specs
        ],
        model="scripted-1",
        finish_reason="tool_calls",
    )


# ------------------------------------------------------------------ #
# Fakes
# ------------------------------------------------------------------ #


class ScriptedProvider(Provider):
    """Replays a script of responses or exceptions, recording every request.

    When the script runs out, ``repeat`` (if set) is returned forever.
    """

    def __init__(
        self,
        script: Sequence[ConversationResponse | Exception] = (),
        *,
        repeat: ConversationResponse | None = None,
    ) -> None:
        self._script = list(script)
        self._repeat = repeat
        self.requests: list[ConversationRequest] = []

    @property
    def name(self) -> str:
        return "scripted"

    @property
    def default_model(self) -> str:
        return "scripted-1"

    async def chat(self, request: ConversationRequest) -> ConversationResponse:
        self.requests.append(request)
        if self._script:
            item = self._script.pop(0)
        elif self._repeat is not None:
            item = self._repeat
        else:
            raise AssertionError("ScriptedProvider script exhausted")
        if isinstance(item, Exception):
            raise item
        return item


class RecordingStore(InMemoryStore):
    """InMemoryStore that records every save_turn call."""

    def __init__(self) -> None:
        super().__init__()
        self.saved_turns: list[tuple[str, str, str]] = []

    async def save_turn(self, session_key: str, user_text: str, assistant_text: str) -> None:
        self.saved_turns.append((session_key, user_text, assistant_text))
        await super().save_turn(session_key, user_text, assistant_text)


def drain(subscription: Subscription[SystemEvent]) -> list[SystemEvent]:
    """Collect every event currently buffered for *subscription*."""
    events: list[SystemEvent] = []
    while (event := subscription.recv_nowait()) is not None:
        events.append(event)
    return events
