import logging
from typing import Dict, List, Optional

from .events import (
    ErrorEvent,
    FinishEvent,
    ReasoningDeltaEvent,
    ReasoningEndEvent,
    ReasoningStartEvent,
    SourceUrlEvent,
    StartEvent,
    TextDeltaEvent,
    TextEndEvent,
    TextStartEvent,
    ToolInputAvailableEvent,
    ToolInputStartEvent,
    ToolOutputAvailableEvent,
    ToolOutputErrorEvent,
    UIEvent,
)
from .models import (
    ChatMessage,
    ReasoningPart,
    Role,
    SourceUrlPart,
    TextPart,
    ToolPart,
    ToolState,
)

logger = logging.getLogger(__name__)


class ConversationError(RuntimeError):
    """An event does not fit the current conversation state."""


class Conversation:
    """Ordered chat history, built up from user input and streamed UI events.

    Only the active turn writes to the trailing assistant message. Once a
    ``finish`` event arrives that message is frozen; ``regenerate`` is the one
    way to replace it.
    """

    def __init__(self, messages: Optional[List[ChatMessage]] = None):
        self.messages: List[ChatMessage] = list(messages or [])
        self._active: Optional[ChatMessage] = None
        self._segments: Dict[str, object] = {}
        self._tools: Dict[str, ToolPart] = {}
        self.error: Optional[str] = None

    def add_user_message(self, text: str) -> ChatMessage:
        part = TextPart(id="text-0", content=text, streaming=False)
        message = ChatMessage(role=Role.USER, parts=[part])
        self.error = None
        self.messages.append(message)
        return message

    @property
    def streaming(self) -> bool:
        return self._active is not None

    def outbound(self) -> List[dict]:
        """History as ``{role, content}`` pairs for the next request."""
        return [m.to_outbound() for m in self.messages]

    def regenerate(self) -> List[dict]:
        """Drop the trailing assistant message and return the history to resend."""
        if self.messages and self.messages[-1].role == Role.ASSISTANT:
            self.messages.pop()
        self._active = None
        self.error = None
        self._segments.clear()
        self._tools.clear()
        return self.outbound()

    def _require_active(self, event: UIEvent) -> ChatMessage:
        if self._active is None:
            raise ConversationError(f"'{event.type}' received outside of an assistant turn")
        return self._active

    def _segment(self, event: UIEvent, part_type: type):
        part = self._segments.get(event.id)
        if not isinstance(part, part_type):
            raise ConversationError(f"Unknown {part_type.__name__} segment '{event.id}'")
        return part

    def _tool(self, tool_call_id: str) -> ToolPart:
        try:
            return self._tools[tool_call_id]
        except KeyError:
            raise ConversationError(f"Unknown tool call '{tool_call_id}'") from None

    def apply(self, event: UIEvent) -> None:
        """Fold one UI event into the conversation."""
        if isinstance(event, StartEvent):
            self._active = ChatMessage(id=event.message_id, role=Role.ASSISTANT)
            self._segments.clear()
            self._tools.clear()
            self.messages.append(self._active)
            return

        message = self._require_active(event)

        if isinstance(event, (TextStartEvent, ReasoningStartEvent)):
            part_type = TextPart if isinstance(event, TextStartEvent) else ReasoningPart
            part = part_type(id=event.id)
            self._segments[event.id] = part
            message.parts.append(part)
        elif isinstance(event, TextDeltaEvent):
            self._segment(event, TextPart).content += event.delta
        elif isinstance(event, ReasoningDeltaEvent):
            self._segment(event, ReasoningPart).content += event.delta
        elif isinstance(event, TextEndEvent):
            self._segment(event, TextPart).streaming = False
        elif isinstance(event, ReasoningEndEvent):
            self._segment(event, ReasoningPart).streaming = False
        elif isinstance(event, SourceUrlEvent):
            message.parts.append(SourceUrlPart(url=event.url))
        elif isinstance(event, ToolInputStartEvent):
            part = ToolPart(tool_call_id=event.tool_call_id, tool_type=event.tool_name)
            self._tools[event.tool_call_id] = part
            message.parts.append(part)
        elif isinstance(event, ToolInputAvailableEvent):
            part = self._tool(event.tool_call_id)
            part.state = part.state.advance(ToolState.INPUT_AVAILABLE)
            part.input = event.input
        elif isinstance(event, ToolOutputAvailableEvent):
            part = self._tool(event.tool_call_id)
            part.state = part.state.advance(ToolState.OUTPUT_AVAILABLE)
            part.output = event.output
        elif isinstance(event, ToolOutputErrorEvent):
            part = self._tool(event.tool_call_id)
            part.state = part.state.advance(ToolState.OUTPUT_ERROR)
            part.error_text = event.error_text
        elif isinstance(event, ErrorEvent):
            self.error = event.error_text
        elif isinstance(event, FinishEvent):
            for part in message.parts:
                if isinstance(part, (TextPart, ReasoningPart)):
                    part.streaming = False
            self._active = None
        else:
            # start-step and finish-step carry nothing to store
            logger.debug(f"Ignoring event {event.type}")
