"""Middleware chain for providers.

Middleware intercepts conversation requests and responses, enabling
cross-cutting concerns like logging and token accounting without touching
the agent loop or the provider itself.

The chain executes in order for requests (outer to inner) and in reverse
order for responses (inner to outer)::

    provider = apply_middleware(provider, [
        LoggingMiddleware(),
        TokenCountingMiddleware(),
    ])
    response = await provider.chat(request)
"""

from __future__ import annotations

import logging
import time
from collections.abc import Sequence
from dataclasses import dataclass, field
from typing import Protocol

from relay_llm.provider import Provider
from relay_llm.types import ConversationRequest, ConversationResponse, Usage

logger = logging.getLogger(__name__)


class Middleware(Protocol):
    """Protocol for provider request/response interceptors."""

    async def before_request(self, request: ConversationRequest) -> ConversationRequest:
        """Transform or inspect the request. Raise to abort the call."""
        ...

    async def after_response(
        self, request: ConversationRequest, response: ConversationResponse
    ) -> ConversationResponse:
        """Transform or inspect the response."""
        ...


class LoggingMiddleware:
    """Logs every provider call at INFO level.

    Logs model, message and tool counts on the way in; finish reason,
    token usage and latency on the way out.
    """

    def __init__(self, logger_name: str = "relay_llm") -> None:
        self._logger = logging.getLogger(logger_name)
        # Per-request timing keyed by id(request) -- concurrency safe
        self._timings: dict[int, float] = {}

    async def before_request(self, request: ConversationRequest) -> ConversationRequest:
        self._logger.info(
            "LLM request: model=%s messages=%d tools=%d",
            request.model or "default",
            len(request.messages),
            len(request.tools),
        )
        self._timings[id(request)] = time.monotonic()
        return request

    async def after_response(
        self, request: ConversationRequest, response: ConversationResponse
    ) -> ConversationResponse:
        start = self._timings.pop(id(request), time.monotonic())
        self._logger.info(
            "LLM response: model=%s finish=%s tool_calls=%d tokens=%d duration=%.1fs",
            response.model,
            response.finish_reason,
            len(response.tool_calls),
            response.usage.total_tokens,
            time.monotonic() - start,
        )
        return response


@dataclass
class TokenCountingMiddleware:
    """Tracks cumulative token usage across all provider calls."""

    total_usage: Usage = field(default_factory=Usage)
    call_count: int = 0

    async def before_request(self, request: ConversationRequest) -> ConversationRequest:
        return request

    async def after_response(
        self, request: ConversationRequest, response: ConversationResponse
    ) -> ConversationResponse:
        self.total_usage = self.total_usage + response.usage
        self.call_count += 1
        return response


class MiddlewareProvider(Provider):
    """Wraps a provider with a middleware chain.

    Intercepts chat() calls; name and model metadata pass through.
    """

    def __init__(self, provider: Provider, middleware: Sequence[Middleware]) -> None:
        self._provider = provider
        self._middleware = list(middleware)

    @property
    def name(self) -> str:
        return self._provider.name

    @property
    def default_model(self) -> str:
        return self._provider.default_model

    async def chat(self, request: ConversationRequest) -> ConversationResponse:
        req = request
        for mw in self._middleware:
            req = await mw.before_request(req)

        resp = await self._provider.chat(req)

        for mw in reversed(self._middleware):
            resp = await mw.after_response(req, resp)
        return resp

    async def list_models(self) -> list[str]:
        list_models = getattr(self._provider, "list_models", None)
        if list_models is None:
            return [self.default_model]
        return await list_models()


def apply_middleware(provider: Provider, middleware: Sequence[Middleware]) -> MiddlewareProvider:
    """Wrap *provider* with a middleware chain."""
    return MiddlewareProvider(provider, middleware)
