"""Provider contract.

Any chat backend (OpenAI-compatible HTTP APIs, local model servers, test
doubles) that satisfies :class:`Provider` is interchangeable.
"""

from __future__ import annotations

from typing import Protocol, runtime_checkable

from relay_llm.types import ConversationRequest, ConversationResponse


@runtime_checkable
class Provider(Protocol):
    """Protocol every LLM provider implements.

    Subclass it explicitly to inherit the default :meth:`list_models`.
    """

    @property
    def name(self) -> str:
        """Provider identifier (e.g. 'openai', 'ollama')."""
        ...

    @property
    def default_model(self) -> str:
        """Model used when a request carries no override."""
        ...

    async def chat(self, request: ConversationRequest) -> ConversationResponse:
        """Send the conversation and available tools, return the answer.

        Raises on failure; the retry engine classifies the error.
        """
        ...

    async def list_models(self) -> list[str]:
        """Models this provider can serve."""
        return [self.default_model]
