"""Shared fixtures for the agent and provider tests."""

from __future__ import annotations

import pytest

from relay_agent.bus import EventBus
from tests.helpers import RecordingStore


@pytest.fixture
def store() -> RecordingStore:
    return RecordingStore()


@pytest.fixture
def bus() -> EventBus:
    return EventBus()
