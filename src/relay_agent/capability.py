"""Capability contract and a function-backed implementation.

A capability is a named, schema-described unit of work the model may ask
for: a shell command, a file read, a web call. Capabilities are siblings
behind one small interface; the agent never specializes one from another.
"""

from __future__ import annotations

import json
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from typing import Any, Protocol, runtime_checkable

from relay_llm.types import CapabilityDescriptor

# Maps JSON Schema type names to Python types for top-level checking.
_JSON_TYPE_MAP: dict[str, tuple[type, ...]] = {
    "string": (str,),
    "integer": (int,),
    "number": (int, float),
    "boolean": (bool,),
    "array": (list,),
    "object": (dict,),
}


@runtime_checkable
class Capability(Protocol):
    """Protocol every capability implements."""

    @property
    def name(self) -> str: ...

    @property
    def description(self) -> str: ...

    @property
    def parameters(self) -> dict[str, Any]:
        """JSON Schema describing the accepted arguments."""
        ...

    async def execute(self, arguments_json: str) -> str:
        """Run with the raw JSON arguments the model produced.

        Raise to signal failure; the registry wraps the error.
        """
        ...


def describe(capability: Capability) -> CapabilityDescriptor:
    """Build the descriptor advertised to the model for *capability*."""
    return CapabilityDescriptor(
        name=capability.name,
        description=capability.description,
        parameters=capability.parameters,
    )


def validate_arguments(arguments: dict[str, Any], schema: dict[str, Any]) -> str | None:
    """Validate *arguments* against a JSON-Schema-style *schema*.

    Performs two top-level checks:
    1. All ``required`` fields are present.
    2. Provided values match the declared ``type`` (top-level only).

    Returns ``None`` when valid, or an error message string when not.
    """
    properties: dict[str, Any] = schema.get("properties", {})
    required: list[str] = schema.get("required", [])

    missing = [f for f in required if f not in arguments]
    if missing:
        return f"Missing required argument(s): {', '.join(missing)}"

    for key, value in arguments.items():
        prop_schema = properties.get(key)
        if prop_schema is None:
            continue  # extra keys are tolerated
        expected_type_name = prop_schema.get("type")
        expected_types = _JSON_TYPE_MAP.get(expected_type_name or "")
        if expected_types is None:
            continue
        # isinstance(True, int) is True; JSON keeps booleans distinct.
        if expected_type_name in ("integer", "number") and isinstance(value, bool):
            return f"Argument '{key}' has type bool, expected {expected_type_name}"
        if not isinstance(value, expected_types):
            actual = type(value).__name__
            return f"Argument '{key}' has type {actual}, expected {expected_type_name}"

    return None


def parse_arguments(arguments_json: str) -> dict[str, Any]:
    """Parse the model's argument string; blank input means no arguments."""
    if not arguments_json or not arguments_json.strip():
        return {}
    try:
        arguments = json.loads(arguments_json)
    except json.JSONDecodeError as exc:
        raise ValueError(f"Arguments are not valid JSON: {exc.msg}") from exc
    if not isinstance(arguments, dict):
        raise ValueError(f"Arguments must be a JSON object, got {type(arguments).__name__}")
    return arguments


CapabilityHandler = Callable[..., Awaitable[str]]


@dataclass(frozen=True)
class FunctionCapability:
    """A capability backed by an async function taking keyword arguments.

    Usage::

        async def hello(name: str) -> str:
            return f"Hello, {name}!"

        HELLO = FunctionCapability(
            name="hello",
            description="Say hello to someone",
            parameters={
                "type": "object",
                "properties": {"name": {"type": "string"}},
                "required": ["name"],
            },
            handler=hello,
        )
    """

    name: str
    description: str
    handler: CapabilityHandler
    parameters: dict[str, Any] = field(default_factory=lambda: {"type": "object"})

    async def execute(self, arguments_json: str) -> str:
        arguments = parse_arguments(arguments_json)
        error = validate_arguments(arguments, self.parameters)
        if error:
            raise ValueError(error)
        return str(await self.handler(**arguments))
