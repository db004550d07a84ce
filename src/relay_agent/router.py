"""Multi-agent routing.

Dispatches a message to one of several specialised agents by keyword
scoring. Each agent can carry its own capabilities, prompt and model.
"""

from __future__ import annotations

import logging
from collections.abc import Sequence
from dataclasses import dataclass, field

from relay_agent.agent import Agent
from relay_agent.bus import EventBus
from relay_agent.errors import RelayError

logger = logging.getLogger(__name__)


@dataclass
class AgentSlot:
    """A named agent plus the keywords that route to it."""

    name: str
    description: str
    agent: Agent
    keywords: list[str] = field(default_factory=list)

    def score(self, message: str) -> int:
        """Number of keywords present in *message* (case-insensitive)."""
        text = message.lower()
        return sum(1 for keyword in self.keywords if keyword.lower() in text)


class AgentRouter:
    """Routes each message to the agent with the most keyword hits.

    Ties go to the earliest registered agent. With no hits the default agent
    is used, falling back to the first registered one.
    """

    def __init__(self) -> None:
        self._slots: list[AgentSlot] = []
        self._default: str | None = None

    def register(
        self,
        name: str,
        description: str,
        agent: Agent,
        keywords: Sequence[str] = (),
    ) -> None:
        self._slots.append(
            AgentSlot(name=name, description=description, agent=agent, keywords=list(keywords))
        )

    def set_default(self, name: str) -> None:
        self._default = name

    def get(self, name: str) -> AgentSlot | None:
        return next((slot for slot in self._slots if slot.name == name), None)

    def agents(self) -> list[tuple[str, str]]:
        return [(slot.name, slot.description) for slot in self._slots]

    def __len__(self) -> int:
        return len(self._slots)

    def route(self, message: str) -> AgentSlot:
        """Pick the slot for *message*.

        Raises:
            RelayError: If no agents are registered.
        """
        if not self._slots:
            raise RelayError("No agents registered in router")

        best: AgentSlot | None = None
        best_score = 0
        for slot in self._slots:
            score = slot.score(message)
            if score > best_score:
                best, best_score = slot, score
        if best is not None:
            return best

        if self._default is not None:
            default = self.get(self._default)
            if default is not None:
                return default
        return self._slots[0]

    async def process(
        self,
        message: str,
        session_key: str,
        media: Sequence[str] | None = None,
        *,
        bus: EventBus | None = None,
    ) -> tuple[str, str]:
        """Route and process *message*. Returns ``(agent_name, answer)``."""
        slot = self.route(message)
        logger.info("Routing to agent: %s - %s", slot.name, slot.description)
        answer = await slot.agent.process(message, session_key, media, bus=bus)
        return slot.name, answer
