"""System events broadcast while the agent works.

Events are ephemeral: published on the bus, never persisted. The
vocabulary is closed and each type has stable ``data`` field names:

=================  ========================================
event type         data fields
=================  ========================================
agent_think        iteration
tool_use           capability, arguments
tool_result        capability, result_length
tool_timeout       capability
llm_retry          attempt, is_rate_limit, wait_ms
rag_inject         length
memory_truncate    kept_chars
=================  ========================================
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import StrEnum
from typing import Any


class EventType(StrEnum):
    """Closed set of system event types."""

    AGENT_THINK = "agent_think"
    TOOL_USE = "tool_use"
    TOOL_RESULT = "tool_result"
    TOOL_TIMEOUT = "tool_timeout"
    LLM_RETRY = "llm_retry"
    RAG_INJECT = "rag_inject"
    MEMORY_TRUNCATE = "memory_truncate"


@dataclass(frozen=True)
class SystemEvent:
    """A single progress event, keyed by the session it belongs to."""

    run_id: str
    event_type: EventType
    data: dict[str, Any] = field(default_factory=dict)

    @property
    def description(self) -> str:
        """Human-readable one-line status for spinners and status messages."""
        data = self.data
        match self.event_type:
            case EventType.AGENT_THINK:
                return f"Thinking (step {data.get('iteration', '?')})..."
            case EventType.TOOL_USE:
                return f"Using tool {data.get('capability', '?')}..."
            case EventType.TOOL_RESULT:
                return (
                    f"Tool {data.get('capability', '?')} returned "
                    f"{data.get('result_length', 0)} chars"
                )
            case EventType.TOOL_TIMEOUT:
                return f"Tool {data.get('capability', '?')} timed out"
            case EventType.LLM_RETRY:
                reason = "rate limited" if data.get("is_rate_limit") else "provider error"
                wait_s = data.get("wait_ms", 0) / 1000
                return (
                    f"LLM {reason}, retrying in {wait_s:.0f}s "
                    f"(attempt {data.get('attempt', '?')})"
                )
            case EventType.RAG_INJECT:
                return f"Recalled {data.get('length', 0)} chars of long-term knowledge"
            case EventType.MEMORY_TRUNCATE:
                return f"Trimmed older history (kept {data.get('kept_chars', 0)} chars)"
        return str(self.event_type)
