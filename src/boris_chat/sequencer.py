"""
Event sequencer: turns backend stream chunks into UI message stream events and
runs the multi-step tool loop.
"""

import asyncio
import json
import logging
from contextlib import AsyncExitStack
from typing import Any, AsyncIterator, Dict, List, Mapping, Optional, Sequence

from .backend import BackendError, OllamaClient, build_request
from .config import MAX_STEPS, MODEL_CONFIGS, MODELS, SYSTEM_PROMPT, ModelInfo, ModelOptions
from .config import get_model_options, model_supports_tools
from .events import (
    ErrorEvent,
    FinishEvent,
    FinishStepEvent,
    ReasoningDeltaEvent,
    ReasoningEndEvent,
    ReasoningStartEvent,
    StartEvent,
    StartStepEvent,
    TextDeltaEvent,
    TextEndEvent,
    TextStartEvent,
    ToolInputAvailableEvent,
    ToolInputStartEvent,
    ToolOutputAvailableEvent,
    ToolOutputErrorEvent,
    UIEvent,
)
from .stream_decoder import (
    ContentDelta,
    Done,
    ReasoningDelta,
    StreamChunk,
    StreamDecoder,
    StreamError,
    ToolCallRequest,
)
from .tool_registry import ToolArgumentError, ToolNotFoundError, ToolRegistry
from .utils import generate_id

logger = logging.getLogger(__name__)


class TurnLoggerAdapter(logging.LoggerAdapter):
    """Logger adapter that automatically injects the turn's message id into structured logs."""

    def __init__(self, logger, message_id):
        self.message_id = message_id
        super().__init__(logger, {})

    def process(self, msg, kwargs):
        if "extra" in kwargs and "structured" in kwargs["extra"]:
            kwargs["extra"]["structured"]["message_id"] = self.message_id
        return msg, kwargs

    def log_item(self, item_type: str, extra: dict, level: int = logging.INFO):
        structured = {"log_type": item_type, **extra}
        self.log(
            level,
            f"{item_type.replace('_', ' ').title()} received",
            extra={"structured": structured},
        )


class _ToolInvocation:
    """One tool call of a step, from request to outcome."""

    def __init__(self, tool_call_id: str, name: str, arguments: Dict[str, Any]):
        self.tool_call_id = tool_call_id
        self.name = name
        self.arguments = arguments
        self.task: Optional[asyncio.Task] = None
        self.output: Any = None
        self.error: Optional[str] = None

    def context_content(self) -> str:
        if self.error is not None:
            return f"Error: {self.error}"
        if isinstance(self.output, str):
            return self.output
        return json.dumps(self.output, default=str)


class _Step:
    """Segment and tool bookkeeping for one generation pass."""

    def __init__(self, registry: ToolRegistry, log: TurnLoggerAdapter):
        self.registry = registry
        self.log = log
        self.text_id: Optional[str] = None
        self.reasoning_id: Optional[str] = None
        self.text_parts: List[str] = []
        self.invocations: List[_ToolInvocation] = []
        self.done_reason: Optional[str] = None
        self.error: Optional[str] = None

    def handle(self, chunk: StreamChunk) -> List[UIEvent]:
        if isinstance(chunk, ReasoningDelta):
            events = []
            if self.reasoning_id is None:
                self.reasoning_id = generate_id("rsn")
                events.append(ReasoningStartEvent(id=self.reasoning_id))
            events.append(ReasoningDeltaEvent(id=self.reasoning_id, delta=chunk.text))
            return events

        if isinstance(chunk, ContentDelta):
            events = []
            if self.text_id is None:
                self.text_id = generate_id("txt")
                events.append(TextStartEvent(id=self.text_id))
            self.text_parts.append(chunk.text)
            events.append(TextDeltaEvent(id=self.text_id, delta=chunk.text))
            return events

        if isinstance(chunk, ToolCallRequest):
            # Text emission is suspended while a tool runs; later text opens a new segment
            return self.close_segments() + self._dispatch(chunk)

        if isinstance(chunk, Done):
            self.done_reason = chunk.reason or "stop"
        elif isinstance(chunk, StreamError):
            self.error = chunk.message
            self.log.log_item("backend_error", {"content": chunk.message}, logging.ERROR)
        return []

    def close_segments(self) -> List[UIEvent]:
        events = []
        if self.reasoning_id is not None:
            events.append(ReasoningEndEvent(id=self.reasoning_id))
            self.reasoning_id = None
        if self.text_id is not None:
            events.append(TextEndEvent(id=self.text_id))
            self.text_id = None
        return events

    def _dispatch(self, request: ToolCallRequest) -> List[UIEvent]:
        invocation = _ToolInvocation(generate_id("call"), request.name, request.arguments)
        self.invocations.append(invocation)
        self.log.log_item(
            "tool_call",
            {
                "tool_name": request.name,
                "arguments": request.arguments,
                "call_id": invocation.tool_call_id,
            },
        )

        try:
            self.registry.validate_arguments(request.name, request.arguments)
        except (ToolNotFoundError, ToolArgumentError) as e:
            invocation.error = str(e)
        else:
            invocation.task = asyncio.create_task(self._execute(invocation))

        return [
            ToolInputStartEvent(tool_call_id=invocation.tool_call_id, tool_name=request.name),
            ToolInputAvailableEvent(
                tool_call_id=invocation.tool_call_id,
                tool_name=request.name,
                input=request.arguments,
            ),
        ]

    async def _execute(self, invocation: _ToolInvocation) -> None:
        try:
            result = await self.registry.execute_tool(invocation.name, invocation.arguments)
        except Exception as e:
            invocation.error = str(e) or type(e).__name__
            return
        invocation.output = result if result is not None else "Tool executed successfully"

    async def join(self) -> List[UIEvent]:
        """Wait for every dispatched tool and report outcomes in call order."""
        tasks = [i.task for i in self.invocations if i.task is not None]
        if tasks:
            await asyncio.gather(*tasks)

        events: List[UIEvent] = []
        for invocation in self.invocations:
            if invocation.error is not None:
                self.log.log_item(
                    "tool_error",
                    {"tool_name": invocation.name, "error": invocation.error},
                    logging.WARNING,
                )
                events.append(
                    ToolOutputErrorEvent(
                        tool_call_id=invocation.tool_call_id, error_text=invocation.error
                    )
                )
            else:
                self.log.log_item(
                    "tool_result", {"tool_name": invocation.name, "result": invocation.output}
                )
                events.append(
                    ToolOutputAvailableEvent(
                        tool_call_id=invocation.tool_call_id, output=invocation.output
                    )
                )
        return events

    def cancel(self) -> None:
        for invocation in self.invocations:
            if invocation.task is not None and not invocation.task.done():
                invocation.task.cancel()

    def context_messages(self) -> List[Dict[str, Any]]:
        """Assistant tool request plus one tool message per invocation, in call order."""
        messages: List[Dict[str, Any]] = [
            {
                "role": "assistant",
                "content": "".join(self.text_parts),
                "tool_calls": [
                    {"function": {"name": i.name, "arguments": i.arguments}}
                    for i in self.invocations
                ],
            }
        ]
        for invocation in self.invocations:
            messages.append(
                {
                    "role": "tool",
                    "tool_name": invocation.name,
                    "content": invocation.context_content(),
                }
            )
        return messages


def _finish_reason(done_reason: Optional[str]) -> str:
    return "length" if done_reason == "length" else "stop"


class Turn:
    """A single streamed assistant turn.

    Iterate with ``async for`` to receive ``UIEvent`` values. The first
    backend request is already open when a ``Turn`` is handed out; call
    ``aclose()`` to abort, which closes the upstream connection and cancels
    running tools.
    """

    def __init__(
        self,
        sequencer: "EventSequencer",
        stack: AsyncExitStack,
        blocks: AsyncIterator[bytes],
        context: List[Dict[str, Any]],
        model: str,
        think: Optional[bool],
    ):
        self.sequencer = sequencer
        self.message_id = generate_id("msg")
        self.context = context
        self.model = model
        self.think = think
        self.steps = 0
        self.finish_reason: Optional[str] = None
        self.log = TurnLoggerAdapter(logger, self.message_id)
        self._stack = stack
        self._blocks = blocks
        self._step: Optional[_Step] = None
        self._events = self._run()

    def __aiter__(self) -> AsyncIterator[UIEvent]:
        return self._events

    async def aclose(self) -> None:
        await self._events.aclose()
        await self._release()

    async def _release(self) -> None:
        if self._step is not None:
            self._step.cancel()
        await self._stack.aclose()

    async def _next_step(self) -> None:
        self._stack = AsyncExitStack()
        self._blocks = await self.sequencer.open_stream(
            self._stack, self.context, self.model, self.think
        )

    async def _run(self) -> AsyncIterator[UIEvent]:
        max_steps = self.sequencer.max_steps
        try:
            yield StartEvent(message_id=self.message_id)

            while True:
                self.steps += 1
                step = self._step = _Step(self.sequencer.registry, self.log)
                self.log.log_item("step_start", {"step": self.steps, "model": self.model})
                yield StartStepEvent()

                decoder = StreamDecoder(self._blocks)
                try:
                    async for chunk in decoder:
                        for event in step.handle(chunk):
                            yield event
                except BackendError as e:
                    step.error = e.message
                    self.log.log_item("backend_error", {"content": e.message}, logging.ERROR)
                finally:
                    await decoder.aclose()
                    await self._stack.aclose()

                for event in step.close_segments():
                    yield event
                for event in await step.join():
                    yield event

                if decoder.truncated and step.error is None:
                    self.log.log_item("stream_truncated", {"step": self.steps}, logging.WARNING)

                if step.error is not None:
                    yield ErrorEvent(error_text=step.error)
                    yield FinishStepEvent()
                    self.finish_reason = "error"
                    break

                yield FinishStepEvent()
                self.log.log_item(
                    "step_finish",
                    {"step": self.steps, "tool_calls": len(step.invocations)},
                )

                if not step.invocations:
                    self.finish_reason = (
                        "unknown" if decoder.truncated else _finish_reason(step.done_reason)
                    )
                    break

                self.context.extend(step.context_messages())

                if self.steps >= max_steps:
                    self.log.info(f"Step limit of {max_steps} reached, ending turn")
                    self.finish_reason = "tool-calls"
                    break

                try:
                    await self._next_step()
                except BackendError as e:
                    yield ErrorEvent(error_text=e.message)
                    self.finish_reason = "error"
                    break

            yield FinishEvent(finish_reason=self.finish_reason)
        finally:
            await self._release()


class EventSequencer:
    """Drives the backend stream and the tool loop for chat turns.

    Args:
        client: Backend client
        registry: Tools the model may call
        model_configs: Read-only model id -> sampling options table
        models: Model catalogue, consulted for tool support
        system_prompt: Prepended to every request as a system message
        max_steps: Upper bound on generation passes per turn
    """

    def __init__(
        self,
        client: OllamaClient,
        registry: Optional[ToolRegistry] = None,
        model_configs: Mapping[str, ModelOptions] = MODEL_CONFIGS,
        models: Sequence[ModelInfo] = MODELS,
        system_prompt: Optional[str] = SYSTEM_PROMPT,
        max_steps: int = MAX_STEPS,
    ):
        self.client = client
        self.registry = registry or ToolRegistry()
        self.model_configs = model_configs
        self.models = models
        self.system_prompt = system_prompt
        self.max_steps = max_steps

    def request_body(
        self, context: List[Dict[str, Any]], model: str, think: Optional[bool]
    ) -> Dict[str, Any]:
        tools = None
        if len(self.registry) and model_supports_tools(model, self.models):
            tools = self.registry.get_schemas()
        return build_request(
            context,
            model,
            options=get_model_options(model, self.model_configs),
            think=think,
            tools=tools,
        )

    async def open_stream(
        self,
        stack: AsyncExitStack,
        context: List[Dict[str, Any]],
        model: str,
        think: Optional[bool],
    ) -> AsyncIterator[bytes]:
        body = self.request_body(context, model, think)
        return await stack.enter_async_context(self.client.stream_chat(body))

    async def stream(
        self, messages: List[Dict[str, Any]], model: str, think: Optional[bool] = None
    ) -> Turn:
        """Start a turn for the given history.

        Args:
            messages: Conversation history as ``{role, content}`` pairs
            model: Backend model identifier
            think: Requests the model's reasoning trace when set

        Returns:
            A ``Turn`` yielding UI events

        Raises:
            BackendError: When the first request fails; no events exist yet
        """
        context: List[Dict[str, Any]] = []
        if self.system_prompt:
            context.append({"role": "system", "content": self.system_prompt})
        context.extend(messages)

        if messages:
            logger.info(
                "User message received",
                extra={
                    "structured": {"log_type": "user_input", "content": messages[-1].get("content")}
                },
            )

        stack = AsyncExitStack()
        blocks = await self.open_stream(stack, context, model, think)
        return Turn(self, stack, blocks, context, model, think)
