"""Error hierarchy for the agent core.

Terminal errors (:class:`MaxIterationsExceeded`, :class:`StoreError`, and
provider errors re-raised after retries) end a ``process`` call.
Capability errors are recovered inside the loop and fed back to the model
as tool-result text.
"""

from __future__ import annotations


class RelayError(Exception):
    """Base error for the agent core."""


class MaxIterationsExceeded(RelayError):
    """The loop hit its iteration ceiling without a final answer."""

    def __init__(self, limit: int) -> None:
        super().__init__(f"Max iterations reached ({limit})")
        self.limit = limit


class CapabilityError(RelayError):
    """Base for registry dispatch failures."""

    def __init__(self, message: str, *, name: str) -> None:
        super().__init__(message)
        self.name = name


class CapabilityNotFound(CapabilityError):
    """No capability is registered under the requested name."""

    def __init__(self, name: str) -> None:
        super().__init__(f"Tool not found: {name}", name=name)


class CapabilityExecutionFailed(CapabilityError):
    """A capability raised while executing; wraps the original error."""

    def __init__(self, name: str, message: str) -> None:
        super().__init__(f"Tool execution error: {name} - {message}", name=name)
        self.message = message


class StoreError(RelayError):
    """The conversation store failed during assembly or persistence."""
