"""Tests for capabilities and the capability registry."""

from __future__ import annotations

import pytest

from relay_agent.capability import (
    Capability,
    FunctionCapability,
    describe,
    parse_arguments,
    validate_arguments,
)
from relay_agent.errors import CapabilityExecutionFailed, CapabilityNotFound
from relay_agent.registry import CapabilityRegistry


async def _greet(name: str, excited: bool = False) -> str:
    return f"Hello, {name}{'!' if excited else '.'}"


GREET = FunctionCapability(
    name="greet",
    description="Greet someone",
    parameters={
        "type": "object",
        "properties": {"name": {"type": "string"}, "excited": {"type": "boolean"}},
        "required": ["name"],
    },
    handler=_greet,
)


class _ShellLike:
    """A hand-written capability, independent of FunctionCapability."""

    name = "shell"
    description = "Run a command"
    parameters = {"type": "object", "properties": {"command": {"type": "string"}}}

    async def execute(self, arguments_json: str) -> str:
        return f"ran {parse_arguments(arguments_json).get('command', '')}"


# ================================================================== #
# Argument handling
# ================================================================== #


class TestArguments:
    def test_blank_arguments(self):
        assert parse_arguments("") == {}
        assert parse_arguments("   ") == {}

    def test_invalid_json(self):
        with pytest.raises(ValueError, match="not valid JSON"):
            parse_arguments("{oops")

    def test_non_object(self):
        with pytest.raises(ValueError, match="JSON object"):
            parse_arguments("[1, 2]")

    def test_validate_missing_required(self):
        assert validate_arguments({}, GREET.parameters) == "Missing required argument(s): name"

    def test_validate_wrong_type(self):
        error = validate_arguments({"name": 3}, GREET.parameters)
        assert error == "Argument 'name' has type int, expected string"

    def test_validate_bool_is_not_a_number(self):
        schema = {"type": "object", "properties": {"n": {"type": "integer"}}}
        assert validate_arguments({"n": True}, schema) is not None
        assert validate_arguments({"n": 2}, schema) is None

    def test_extra_keys_tolerated(self):
        assert validate_arguments({"name": "x", "other": 1}, GREET.parameters) is None


class TestFunctionCapability:
    @pytest.mark.asyncio
    async def test_execute(self):
        assert await GREET.execute('{"name": "Ada", "excited": true}') == "Hello, Ada!"

    @pytest.mark.asyncio
    async def test_execute_rejects_invalid_arguments(self):
        with pytest.raises(ValueError, match="Missing required"):
            await GREET.execute("{}")

    @pytest.mark.asyncio
    async def test_non_string_result_is_stringified(self):
        async def count() -> int:
            return 3

        capability = FunctionCapability(name="count", description="Count", handler=count)
        assert await capability.execute("") == "3"

    def test_satisfies_protocol(self):
        assert isinstance(GREET, Capability)
        assert isinstance(_ShellLike(), Capability)

    def test_describe(self):
        descriptor = describe(GREET)
        assert descriptor.name == "greet"
        assert descriptor.parameters["required"] == ["name"]


# ================================================================== #
# Registry
# ================================================================== #


class TestRegistry:
    def test_register_and_lookup(self):
        registry = CapabilityRegistry([GREET, _ShellLike()])
        assert len(registry) == 2
        assert "greet" in registry
        assert registry.has("shell")
        assert registry.get("greet") is GREET
        assert registry.get("missing") is None
        assert registry.names() == ["greet", "shell"]

    def test_descriptors_in_registration_order(self):
        registry = CapabilityRegistry()
        registry.register(_ShellLike())
        registry.register(GREET)
        assert [d.name for d in registry.descriptors()] == ["shell", "greet"]

    def test_reregister_overwrites(self):
        registry = CapabilityRegistry([GREET])
        replacement = FunctionCapability(name="greet", description="v2", handler=_greet)
        registry.register(replacement)
        assert len(registry) == 1
        assert registry.descriptors()[0].description == "v2"

    def test_unregister(self):
        registry = CapabilityRegistry([GREET])
        registry.unregister("greet")
        registry.unregister("greet")
        assert len(registry) == 0

    def test_empty_registry_has_no_descriptors(self):
        assert CapabilityRegistry().descriptors() == []

    @pytest.mark.asyncio
    async def test_execute_dispatches_by_name(self):
        registry = CapabilityRegistry([GREET, _ShellLike()])
        assert await registry.execute("greet", '{"name": "Bo"}') == "Hello, Bo."
        assert await registry.execute("shell", '{"command": "ls"}') == "ran ls"

    @pytest.mark.asyncio
    async def test_execute_unknown(self):
        with pytest.raises(CapabilityNotFound) as excinfo:
            await CapabilityRegistry().execute("nope", "{}")
        assert str(excinfo.value) == "Tool not found: nope"
        assert excinfo.value.name == "nope"

    @pytest.mark.asyncio
    async def test_execute_wraps_failures(self):
        async def broken() -> str:
            raise OSError("disk full")

        registry = CapabilityRegistry(
            [FunctionCapability(name="broken", description="x", handler=broken)]
        )
        with pytest.raises(CapabilityExecutionFailed) as excinfo:
            await registry.execute("broken", "{}")
        assert str(excinfo.value) == "Tool execution error: broken - disk full"
        assert isinstance(excinfo.value.__cause__, OSError)

    @pytest.mark.asyncio
    async def test_execute_rejects_non_string_result(self):
        class _Silent:
            name = "silent"
            description = "Returns nothing"
            parameters: dict = {"type": "object"}

            async def execute(self, arguments_json: str) -> str:
                return None  # type: ignore[return-value]

        registry = CapabilityRegistry([_Silent()])
        with pytest.raises(CapabilityExecutionFailed) as excinfo:
            await registry.execute("silent", "{}")
        assert str(excinfo.value) == (
            "Tool execution error: silent - returned NoneType, expected str"
        )
