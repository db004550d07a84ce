"""Conversation data model shared by providers and the agent loop.

All types use Pydantic v2 for validation and serialization. Role-specific
fields are enforced at construction time so an invalid message never
reaches a provider.
"""

from __future__ import annotations

from collections.abc import Sequence
from enum import StrEnum
from typing import Any, Self

from pydantic import BaseModel, ConfigDict, Field, computed_field, model_validator


class Role(StrEnum):
    """Message roles."""

    SYSTEM = "system"
    USER = "user"
    ASSISTANT = "assistant"
    TOOL = "tool"


class ToolInvocationRequest(BaseModel):
    """A model's request to invoke one capability.

    ``arguments_json`` stays an opaque string; the capability parses it.
    """

    model_config = ConfigDict(frozen=True)

    id: str = Field(min_length=1)
    capability_name: str = Field(min_length=1)
    arguments_json: str = "{}"


class CapabilityDescriptor(BaseModel):
    """Name, description and parameter schema advertised to the model."""

    model_config = ConfigDict(frozen=True)

    name: str
    description: str
    parameters: dict[str, Any] = Field(default_factory=dict)

    def to_function_schema(self) -> dict[str, Any]:
        """Render in the OpenAI function-calling shape."""
        return {
            "type": "function",
            "function": {
                "name": self.name,
                "description": self.description,
                "parameters": self.parameters,
            },
        }


class Message(BaseModel):
    """One turn in a conversation."""

    role: Role
    content: str | None = None
    tool_calls: list[ToolInvocationRequest] | None = None
    tool_call_id: str | None = None
    name: str | None = None
    media: list[str] = Field(default_factory=list)

    @model_validator(mode="after")
    def _validate_role_fields(self) -> Self:
        """Enforce which optional fields each role may carry."""
        if self.tool_calls and self.role != Role.ASSISTANT:
            raise ValueError("tool_calls are only valid on assistant messages")
        match self.role:
            case Role.TOOL:
                if not self.tool_call_id:
                    raise ValueError("TOOL message requires a non-empty 'tool_call_id'")
            case _:
                if self.tool_call_id is not None or self.name is not None:
                    raise ValueError("tool_call_id and name are only valid on tool messages")
        if self.media and self.role != Role.USER:
            raise ValueError("media references are only valid on user messages")
        return self

    @classmethod
    def system(cls, text: str) -> Message:
        return cls(role=Role.SYSTEM, content=text)

    @classmethod
    def user(cls, text: str, media: Sequence[str] | None = None) -> Message:
        return cls(role=Role.USER, content=text, media=list(media or []))

    @classmethod
    def assistant(cls, text: str) -> Message:
        return cls(role=Role.ASSISTANT, content=text)

    @classmethod
    def assistant_with_tools(
        cls, text: str | None, tool_calls: Sequence[ToolInvocationRequest]
    ) -> Message:
        return cls(role=Role.ASSISTANT, content=text, tool_calls=list(tool_calls))

    @classmethod
    def tool_result(cls, tool_call_id: str, name: str, output: str) -> Message:
        return cls(role=Role.TOOL, content=output, tool_call_id=tool_call_id, name=name)

    @property
    def content_length(self) -> int:
        return len(self.content) if self.content else 0


def conversation_is_consistent(messages: Sequence[Message]) -> bool:
    """Check that every tool result answers a prior assistant request."""
    requested: set[str] = set()
    for message in messages:
        if message.role == Role.ASSISTANT and message.tool_calls:
            requested.update(call.id for call in message.tool_calls)
        elif message.role == Role.TOOL and message.tool_call_id not in requested:
            return False
    return True


class Usage(BaseModel):
    """Token usage counters reported by a provider."""

    prompt_tokens: int = 0
    completion_tokens: int = 0

    @computed_field  # type: ignore[prop-decorator]
    @property
    def total_tokens(self) -> int:
        return self.prompt_tokens + self.completion_tokens

    def __add__(self, other: Usage) -> Usage:
        return Usage(
            prompt_tokens=self.prompt_tokens + other.prompt_tokens,
            completion_tokens=self.completion_tokens + other.completion_tokens,
        )


class ConversationRequest(BaseModel):
    """Everything a provider needs for one chat call."""

    messages: list[Message] = Field(default_factory=list)
    tools: list[CapabilityDescriptor] = Field(default_factory=list)
    model: str | None = None
    max_tokens: int = 4096
    temperature: float = 0.7


class ConversationResponse(BaseModel):
    """A provider's answer: text, tool invocation requests, or both."""

    content: str | None = None
    tool_calls: list[ToolInvocationRequest] = Field(default_factory=list)
    model: str = ""
    usage: Usage = Field(default_factory=Usage)
    finish_reason: str = "stop"

    @property
    def has_tool_calls(self) -> bool:
        return bool(self.tool_calls)
