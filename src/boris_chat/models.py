from enum import Enum
from typing import Annotated, Any, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field

from .utils import generate_id


class Role(str, Enum):
    USER = "user"
    ASSISTANT = "assistant"
    SYSTEM = "system"


class InvalidToolTransition(ValueError):
    """Raised when a tool invocation is moved outside its lifecycle."""


class ToolState(str, Enum):
    """Lifecycle of a single tool invocation.

    input-streaming -> input-available -> output-available
                                       -> output-error

    Arguments that fail validation still pass through input-available (they
    are complete, just unusable) and end in output-error without dispatch.
    """

    INPUT_STREAMING = "input-streaming"
    INPUT_AVAILABLE = "input-available"
    OUTPUT_AVAILABLE = "output-available"
    OUTPUT_ERROR = "output-error"

    @property
    def is_terminal(self) -> bool:
        return self in (ToolState.OUTPUT_AVAILABLE, ToolState.OUTPUT_ERROR)

    def advance(self, next_state: "ToolState") -> "ToolState":
        if next_state not in _TRANSITIONS[self]:
            raise InvalidToolTransition(f"{self.value} -> {ToolState(next_state).value}")
        return ToolState(next_state)


_TRANSITIONS = {
    ToolState.INPUT_STREAMING: {ToolState.INPUT_AVAILABLE},
    ToolState.INPUT_AVAILABLE: {ToolState.OUTPUT_AVAILABLE, ToolState.OUTPUT_ERROR},
    ToolState.OUTPUT_AVAILABLE: set(),
    ToolState.OUTPUT_ERROR: set(),
}


def tool_default_open(state: ToolState) -> bool:
    """Tool cards start expanded once the invocation has finished."""
    return ToolState(state).is_terminal


class TextPart(BaseModel):
    type: Literal["text"] = "text"
    id: str
    content: str = ""
    streaming: bool = True


class ReasoningPart(BaseModel):
    type: Literal["reasoning"] = "reasoning"
    id: str
    content: str = ""
    streaming: bool = True


class SourceUrlPart(BaseModel):
    type: Literal["source-url"] = "source-url"
    url: str


class ToolPart(BaseModel):
    type: Literal["tool-call"] = "tool-call"
    tool_call_id: str
    tool_type: str
    state: ToolState = ToolState.INPUT_STREAMING
    input: Any = None
    output: Any = None
    error_text: Optional[str] = None


MessagePart = Annotated[
    Union[TextPart, ReasoningPart, SourceUrlPart, ToolPart],
    Field(discriminator="type"),
]


class ChatMessage(BaseModel):
    """One turn in a conversation."""

    id: str = Field(default_factory=lambda: generate_id("msg"))
    role: Role = Field(frozen=True)
    parts: list[MessagePart] = Field(default_factory=list)

    def text(self) -> str:
        return "".join(p.content for p in self.parts if isinstance(p, TextPart))

    def to_outbound(self) -> dict:
        """Reduce to the ``{role, content}`` pair sent to the backend."""
        return {"role": self.role.value, "content": self.text()}


def display_parts(message: ChatMessage) -> list:
    """Parts in rendering order: reasoning first, everything else as it arrived."""
    reasoning = [p for p in message.parts if isinstance(p, ReasoningPart)]
    rest = [p for p in message.parts if not isinstance(p, ReasoningPart)]
    return reasoning + rest


class IncomingPart(BaseModel):
    model_config = ConfigDict(extra="allow")

    type: str
    text: Optional[str] = None


class IncomingMessage(BaseModel):
    """A message as posted by the browser.

    Accepts plain ``{role, content}`` pairs as well as UI messages whose text
    lives in ``parts``.
    """

    model_config = ConfigDict(extra="allow")

    role: Role
    content: Optional[str] = None
    parts: Optional[list[IncomingPart]] = None

    def to_outbound(self) -> dict:
        if self.content is not None:
            content = self.content
        else:
            content = "".join(
                p.text or "" for p in (self.parts or []) if p.type == "text"
            )
        return {"role": self.role.value, "content": content}


class ChatRequest(BaseModel):
    messages: list[IncomingMessage]
    model: Optional[str] = None
    think: Optional[bool] = None
