"""Capability registry.

Holds named capabilities, produces the descriptors sent to the provider
every iteration, and dispatches one capability by name. Failures always
surface in one shape, :class:`CapabilityError`, however many capability
kinds are registered.

The registry is mutated at startup and read concurrently afterwards.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable

from relay_agent.capability import Capability, describe
from relay_agent.errors import CapabilityExecutionFailed, CapabilityNotFound
from relay_llm.types import CapabilityDescriptor

logger = logging.getLogger(__name__)


class CapabilityRegistry:
    """Name-keyed lookup table of capabilities."""

    def __init__(self, capabilities: Iterable[Capability] | None = None) -> None:
        self._capabilities: dict[str, Capability] = {}
        if capabilities:
            self.register_many(capabilities)

    def register(self, capability: Capability) -> None:
        """Register a capability. Overwrites silently if the name exists."""
        self._capabilities[capability.name] = capability
        logger.debug("Registered capability: %s", capability.name)

    def register_many(self, capabilities: Iterable[Capability]) -> None:
        for capability in capabilities:
            self.register(capability)

    def unregister(self, name: str) -> None:
        """Remove a capability by name. No-op if not found."""
        self._capabilities.pop(name, None)

    def get(self, name: str) -> Capability | None:
        return self._capabilities.get(name)

    def has(self, name: str) -> bool:
        return name in self._capabilities

    def names(self) -> list[str]:
        return list(self._capabilities)

    def __len__(self) -> int:
        return len(self._capabilities)

    def __contains__(self, name: object) -> bool:
        return name in self._capabilities

    def descriptors(self) -> list[CapabilityDescriptor]:
        """Descriptors for every capability, in registration order."""
        return [describe(c) for c in self._capabilities.values()]

    async def execute(self, name: str, arguments_json: str) -> str:
        """Run the capability registered under *name*.

        Raises:
            CapabilityNotFound: If *name* is not registered.
            CapabilityExecutionFailed: If the capability raised or returned
                something other than a string.
        """
        capability = self._capabilities.get(name)
        if capability is None:
            raise CapabilityNotFound(name)

        logger.info("Executing capability: %s with args: %s", name, arguments_json)
        try:
            result = await capability.execute(arguments_json)
        except Exception as exc:
            logger.warning("Capability %s failed: %s", name, exc)
            raise CapabilityExecutionFailed(name, str(exc)) from exc

        if not isinstance(result, str):
            kind = type(result).__name__
            logger.warning("Capability %s returned %s, expected str", name, kind)
            raise CapabilityExecutionFailed(name, f"returned {kind}, expected str")

        logger.debug("Capability %s completed (%d chars)", name, len(result))
        return result
