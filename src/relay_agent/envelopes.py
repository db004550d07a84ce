"""Messages exchanged between front ends and the agent over the bus."""

from __future__ import annotations

import uuid
from datetime import UTC, datetime
from enum import StrEnum
from typing import Any

from pydantic import BaseModel, Field


class Channel(StrEnum):
    """Front end a message came from or goes to."""

    CLI = "cli"
    TELEGRAM = "telegram"
    DISCORD = "discord"
    WHATSAPP = "whatsapp"
    SLACK = "slack"
    HTTP = "http"
    SYSTEM = "system"


class InboundMessage(BaseModel):
    """A message flowing into the agent from any channel."""

    id: str = Field(default_factory=lambda: str(uuid.uuid4()))
    channel: Channel
    sender_id: str
    chat_id: str = ""
    content: str
    timestamp: datetime = Field(default_factory=lambda: datetime.now(UTC))
    media: list[str] = Field(default_factory=list)
    metadata: dict[str, Any] = Field(default_factory=dict)

    def model_post_init(self, __context: Any) -> None:
        # Direct messages: the chat is the sender.
        if not self.chat_id:
            self.chat_id = self.sender_id

    @property
    def session_key(self) -> str:
        """Unique session key for this conversation."""
        return f"{self.channel}:{self.chat_id}"


class OutboundMessage(BaseModel):
    """A message flowing out from the agent to a channel."""

    channel: Channel
    chat_id: str
    content: str
    media: list[str] = Field(default_factory=list)
    metadata: dict[str, Any] = Field(default_factory=dict)
