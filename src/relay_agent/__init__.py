"""Relay agent core.

A reason-then-act loop pairing an LLM provider with named capabilities,
plus the event bus front ends use to feed it and observe it.
"""

from relay_agent.agent import DEFAULT_SYSTEM_PROMPT, Agent, AgentConfig
from relay_agent.bus import Broadcast, EventBus, Subscription
from relay_agent.capability import Capability, FunctionCapability, validate_arguments
from relay_agent.context import TRUNCATION_NOTE, HistoryWindow, fit_history
from relay_agent.dispatcher import Dispatcher
from relay_agent.envelopes import Channel, InboundMessage, OutboundMessage
from relay_agent.errors import (
    CapabilityError,
    CapabilityExecutionFailed,
    CapabilityNotFound,
    MaxIterationsExceeded,
    RelayError,
    StoreError,
)
from relay_agent.events import EventType, SystemEvent
from relay_agent.registry import CapabilityRegistry
from relay_agent.router import AgentRouter, AgentSlot
from relay_agent.store import ConversationStore, InMemoryStore

__all__ = [
    # Agent
    "Agent",
    "AgentConfig",
    "DEFAULT_SYSTEM_PROMPT",
    "AgentRouter",
    "AgentSlot",
    "Dispatcher",
    # Capabilities
    "Capability",
    "FunctionCapability",
    "CapabilityRegistry",
    "validate_arguments",
    # Events and bus
    "EventBus",
    "Broadcast",
    "Subscription",
    "EventType",
    "SystemEvent",
    "Channel",
    "InboundMessage",
    "OutboundMessage",
    # Context and storage
    "ConversationStore",
    "InMemoryStore",
    "HistoryWindow",
    "TRUNCATION_NOTE",
    "fit_history",
    # Errors
    "RelayError",
    "MaxIterationsExceeded",
    "CapabilityError",
    "CapabilityNotFound",
    "CapabilityExecutionFailed",
    "StoreError",
]
