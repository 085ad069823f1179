"""Pytest configuration and shared fixtures."""
import pytest

from boris_chat.backend import OllamaClient
from boris_chat.sequencer import EventSequencer
from boris_chat.tool_registry import ToolRegistry
from helpers import BASE_URL, ScriptedBackend


@pytest.fixture
def make_client():
    """Return a factory for clients wired to a scripted backend."""

    def _make(backend: ScriptedBackend) -> OllamaClient:
        return OllamaClient(BASE_URL + "/", transport=backend.transport())

    return _make


@pytest.fixture
def make_sequencer(make_client):
    """Return a factory for sequencers without a system prompt."""

    def _make(backend: ScriptedBackend, registry: ToolRegistry = None, **kwargs) -> EventSequencer:
        kwargs.setdefault("system_prompt", None)
        return EventSequencer(make_client(backend), registry or ToolRegistry(), **kwargs)

    return _make
