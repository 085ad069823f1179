"""
Boris Chat - a streaming chat server for locally hosted language models.

This package bridges the newline-delimited JSON stream of a local model
server to the UI message stream protocol, including reasoning traces and
server-side tool calls.
"""

__version__ = "0.1.0"

from .backend import BackendError, OllamaClient
from .conversation import Conversation
from .sequencer import EventSequencer, Turn
from .stream_decoder import StreamDecoder
from .tool_registry import ToolRegistry, callable_to_tool_schema

__all__ = [
    "BackendError",
    "Conversation",
    "EventSequencer",
    "OllamaClient",
    "StreamDecoder",
    "ToolRegistry",
    "Turn",
    "callable_to_tool_schema",
]
