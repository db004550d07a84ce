"""Agent loop -- the reason-then-act controller.

One call to :meth:`Agent.process` is one bounded run of the state machine:

1. **Assemble** -- system prompt (plus recalled knowledge), a
   budget-limited slice of stored history, and the new user message.
2. **Iterate** -- ask the provider (with retry/backoff) for the next step.
3. **Branch** -- no tool calls means a final answer; otherwise run every
   requested capability concurrently, append the results in request order,
   and go back to 2.
4. **Finalize** -- persist the turn and return the answer.

The loop has two exits (final answer, :class:`MaxIterationsExceeded`) and
one continuation edge (tool results appended). Capability failures and
timeouts never leave the loop; they become tool-result text the model can
react to.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Iterable, Sequence
from dataclasses import dataclass, field
from typing import Any

from relay_agent.bus import EventBus
from relay_agent.capability import Capability
from relay_agent.context import build_system_prompt, fit_history
from relay_agent.errors import CapabilityError, MaxIterationsExceeded, StoreError
from relay_agent.events import EventType, SystemEvent
from relay_agent.registry import CapabilityRegistry
from relay_agent.store import ConversationStore
from relay_llm.provider import Provider
from relay_llm.retry import RetryPolicy, retry_with_policy
from relay_llm.types import (
    ConversationRequest,
    ConversationResponse,
    Message,
    ToolInvocationRequest,
)

logger = logging.getLogger(__name__)

DEFAULT_SYSTEM_PROMPT = """You are a capable, helpful AI assistant.

## Principles
- Be accurate and concise
- Think step by step for complex problems
- Say so when you don't know something

## Tools
You can call tools. Use them whenever they help answer the question or
complete the task: understand the request, plan, act with tools, check the
results, then report back clearly. Independent lookups can be requested
together in one step."""


@dataclass(frozen=True)
class AgentConfig:
    """Immutable per-agent configuration."""

    max_iterations: int = 20
    system_prompt: str = DEFAULT_SYSTEM_PROMPT
    model: str | None = None  # None = provider default
    max_tokens: int = 4096
    temperature: float = 0.7

    # Hard ceiling per capability invocation, in seconds
    tool_timeout: float = 60.0

    # Context assembly
    history_limit: int = 50
    knowledge_limit: int = 3
    history_char_budget: int = 30_000

    retry_policy: RetryPolicy = field(default_factory=RetryPolicy)


def _discard_outcome(task: asyncio.Task[Any]) -> None:
    # Abandoned tasks may still fail; retrieve so asyncio doesn't warn.
    if not task.cancelled():
        task.exception()


class Agent:
    """The orchestrator tying provider, capabilities, store and events together.

    An Agent holds no per-call state and may serve concurrent ``process``
    calls for different sessions.

    Usage::

        bus = EventBus()
        agent = Agent(provider=provider, store=store, bus=bus)
        agent.registry.register(HELLO)
        answer = await agent.process("What is 2+2?", "cli:local")
    """

    def __init__(
        self,
        *,
        provider: Provider,
        store: ConversationStore,
        config: AgentConfig | None = None,
        registry: CapabilityRegistry | None = None,
        capabilities: Iterable[Capability] | None = None,
        bus: EventBus | None = None,
    ) -> None:
        self._provider = provider
        self._store = store
        self._config = config or AgentConfig()
        self._registry = registry if registry is not None else CapabilityRegistry()
        if capabilities:
            self._registry.register_many(capabilities)
        self._bus = bus

    @property
    def config(self) -> AgentConfig:
        return self._config

    @property
    def registry(self) -> CapabilityRegistry:
        return self._registry

    @property
    def provider(self) -> Provider:
        return self._provider

    # ------------------------------------------------------------------ #
    # Public API
    # ------------------------------------------------------------------ #

    async def process(
        self,
        user_message: str,
        session_key: str,
        media: Sequence[str] | None = None,
        *,
        bus: EventBus | None = None,
    ) -> str:
        """Run the loop for one user message and return the final answer.

        Args:
            user_message: The user's input text.
            session_key: Opaque key of the conversation.
            media: Optional media references attached to the user message.
            bus: Event bus for this call; defaults to the agent's bus.
                Without any bus no events are published.

        Raises:
            MaxIterationsExceeded: No final answer within ``max_iterations``.
            StoreError: The conversation store failed.
            Exception: The provider's last error once retries are spent.
        """
        bus = bus if bus is not None else self._bus
        messages = await self._assemble(user_message, session_key, media, bus)

        limit = self._config.max_iterations
        iteration = 0
        while True:
            iteration += 1
            if iteration > limit:
                raise MaxIterationsExceeded(limit)

            logger.info("Agent loop iteration %d/%d (session=%s)", iteration, limit, session_key)
            self._emit(bus, session_key, EventType.AGENT_THINK, iteration=iteration)

            request = ConversationRequest(
                messages=list(messages),
                tools=self._registry.descriptors(),
                model=self._config.model,
                max_tokens=self._config.max_tokens,
                temperature=self._config.temperature,
            )
            response = await self._call_provider(request, session_key, bus)

            logger.debug(
                "LLM response: finish_reason=%s, tool_calls=%d, tokens=%d",
                response.finish_reason,
                len(response.tool_calls),
                response.usage.total_tokens,
            )

            if not response.has_tool_calls:
                answer = response.content or ""
                break

            calls = list(response.tool_calls)
            messages.append(Message.assistant_with_tools(response.content, calls))
            for call in calls:
                self._emit(
                    bus,
                    session_key,
                    EventType.TOOL_USE,
                    capability=call.capability_name,
                    arguments=call.arguments_json,
                )

            results = await self._dispatch_all(calls, session_key, bus)

            for call, result in zip(calls, results, strict=True):
                messages.append(Message.tool_result(call.id, call.capability_name, result))
                self._emit(
                    bus,
                    session_key,
                    EventType.TOOL_RESULT,
                    capability=call.capability_name,
                    result_length=len(result),
                )

        try:
            await self._store.save_turn(session_key, user_message, answer)
        except Exception as exc:
            raise StoreError(f"Failed to save turn for {session_key!r}: {exc}") from exc

        logger.info(
            "Agent completed in %d iteration(s), response: %d chars", iteration, len(answer)
        )
        return answer

    # ------------------------------------------------------------------ #
    # Assembly
    # ------------------------------------------------------------------ #

    async def _assemble(
        self,
        user_message: str,
        session_key: str,
        media: Sequence[str] | None,
        bus: EventBus | None,
    ) -> list[Message]:
        """Build the initial message list for one run."""
        try:
            history = await self._store.get_history(session_key, self._config.history_limit)
            knowledge = await self._store.search_knowledge(
                user_message, self._config.knowledge_limit
            )
        except Exception as exc:
            raise StoreError(f"Failed to load context for {session_key!r}: {exc}") from exc

        if knowledge:
            self._emit(bus, session_key, EventType.RAG_INJECT, length=len(knowledge))

        window = fit_history(history, self._config.history_char_budget)
        if window.truncated:
            logger.info(
                "History truncated for %s (kept %d chars)", session_key, window.kept_chars
            )
            self._emit(bus, session_key, EventType.MEMORY_TRUNCATE, kept_chars=window.kept_chars)

        messages = [Message.system(build_system_prompt(self._config.system_prompt, knowledge))]
        messages.extend(window.messages)
        messages.append(Message.user(user_message, media))
        return messages

    # ------------------------------------------------------------------ #
    # Provider call with retry/backoff
    # ------------------------------------------------------------------ #

    async def _call_provider(
        self, request: ConversationRequest, session_key: str, bus: EventBus | None
    ) -> ConversationResponse:
        async def _do_chat() -> ConversationResponse:
            return await self._provider.chat(request)

        def _on_retry(attempt: int, error: Exception, delay: float, is_rate_limit: bool) -> None:
            self._emit(
                bus,
                session_key,
                EventType.LLM_RETRY,
                attempt=attempt,
                is_rate_limit=is_rate_limit,
                wait_ms=int(delay * 1000),
            )

        return await retry_with_policy(_do_chat, self._config.retry_policy, on_retry=_on_retry)

    # ------------------------------------------------------------------ #
    # Concurrent capability dispatch
    # ------------------------------------------------------------------ #

    async def _dispatch_all(
        self, calls: list[ToolInvocationRequest], session_key: str, bus: EventBus | None
    ) -> list[str]:
        """Run every call concurrently; results come back in request order."""
        return list(
            await asyncio.gather(*(self._dispatch_one(call, session_key, bus) for call in calls))
        )

    async def _dispatch_one(
        self, call: ToolInvocationRequest, session_key: str, bus: EventBus | None
    ) -> str:
        """Run one call under the timeout; always returns result text."""
        name = call.capability_name
        timeout = self._config.tool_timeout
        task = asyncio.ensure_future(self._registry.execute(name, call.arguments_json))

        try:
            done, _pending = await asyncio.wait({task}, timeout=timeout)
        except asyncio.CancelledError:
            task.cancel()
            raise

        if task not in done:
            # Stop waiting; the capability need not cooperate with cancellation.
            task.cancel()
            task.add_done_callback(_discard_outcome)
            logger.warning("Tool %s timed out after %.0fs", name, timeout)
            self._emit(bus, session_key, EventType.TOOL_TIMEOUT, capability=name)
            return f"Error: tool '{name}' timed out after {timeout:g}s"

        try:
            return task.result()
        except CapabilityError as exc:
            return f"Error: {exc}"

    # ------------------------------------------------------------------ #
    # Events
    # ------------------------------------------------------------------ #

    @staticmethod
    def _emit(bus: EventBus | None, session_key: str, event_type: EventType, **data: Any) -> None:
        if bus is not None:
            bus.publish_system(SystemEvent(run_id=session_key, event_type=event_type, data=data))
