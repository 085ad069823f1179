"""
UI message stream events sent from the server to the browser.

Each event is serialised as one server-sent event line ``data: {json}``, with
camelCase keys and unset fields omitted. The stream ends with ``data: [DONE]``.
"""

from typing import Any, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel

SSE_DONE = "data: [DONE]\n\n"

STREAM_HEADERS = {
    "x-vercel-ai-ui-message-stream": "v1",
    "Cache-Control": "no-cache",
    "Connection": "keep-alive",
    "X-Accel-Buffering": "no",
}

FinishReason = Literal["stop", "length", "tool-calls", "error", "unknown"]


class _Event(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, frozen=True)


class StartEvent(_Event):
    type: Literal["start"] = "start"
    message_id: str


class StartStepEvent(_Event):
    type: Literal["start-step"] = "start-step"


class FinishStepEvent(_Event):
    type: Literal["finish-step"] = "finish-step"


class TextStartEvent(_Event):
    type: Literal["text-start"] = "text-start"
    id: str


class TextDeltaEvent(_Event):
    type: Literal["text-delta"] = "text-delta"
    id: str
    delta: str


class TextEndEvent(_Event):
    type: Literal["text-end"] = "text-end"
    id: str


class ReasoningStartEvent(_Event):
    type: Literal["reasoning-start"] = "reasoning-start"
    id: str


class ReasoningDeltaEvent(_Event):
    type: Literal["reasoning-delta"] = "reasoning-delta"
    id: str
    delta: str


class ReasoningEndEvent(_Event):
    type: Literal["reasoning-end"] = "reasoning-end"
    id: str


class SourceUrlEvent(_Event):
    type: Literal["source-url"] = "source-url"
    source_id: str
    url: str


class ToolInputStartEvent(_Event):
    type: Literal["tool-input-start"] = "tool-input-start"
    tool_call_id: str
    tool_name: str


class ToolInputAvailableEvent(_Event):
    type: Literal["tool-input-available"] = "tool-input-available"
    tool_call_id: str
    tool_name: str
    input: Any = None


class ToolOutputAvailableEvent(_Event):
    type: Literal["tool-output-available"] = "tool-output-available"
    tool_call_id: str
    output: Any = None


class ToolOutputErrorEvent(_Event):
    type: Literal["tool-output-error"] = "tool-output-error"
    tool_call_id: str
    error_text: str


class ErrorEvent(_Event):
    type: Literal["error"] = "error"
    error_text: str


class FinishEvent(_Event):
    type: Literal["finish"] = "finish"
    finish_reason: Optional[FinishReason] = None


UIEvent = Union[
    StartEvent,
    StartStepEvent,
    FinishStepEvent,
    TextStartEvent,
    TextDeltaEvent,
    TextEndEvent,
    ReasoningStartEvent,
    ReasoningDeltaEvent,
    ReasoningEndEvent,
    SourceUrlEvent,
    ToolInputStartEvent,
    ToolInputAvailableEvent,
    ToolOutputAvailableEvent,
    ToolOutputErrorEvent,
    ErrorEvent,
    FinishEvent,
]


def to_payload(event: _Event) -> dict:
    return event.model_dump(by_alias=True, exclude_none=True)


def encode_sse(event: _Event) -> str:
    return f"data: {event.model_dump_json(by_alias=True, exclude_none=True)}\n\n"
