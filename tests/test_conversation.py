"""Tests for folding UI events into the conversation history."""
import pytest

from boris_chat.conversation import Conversation, ConversationError
from boris_chat.events import (
    FinishEvent,
    SourceUrlEvent,
    StartEvent,
    TextDeltaEvent,
    TextStartEvent,
    ToolInputAvailableEvent,
    ToolInputStartEvent,
    ToolOutputAvailableEvent,
)
from boris_chat.models import Role, TextPart, ToolPart, ToolState, display_parts
from boris_chat.plugins.calculator_plugin import CalculatorPlugin
from boris_chat.tool_registry import ToolRegistry
from helpers import DONE, ScriptedBackend, collect, content, ndjson, thinking, tool_calls


async def run_turn(conversation, sequencer, model="m"):
    turn = await sequencer.stream(conversation.outbound(), model)
    for event in await collect(turn):
        conversation.apply(event)
    return turn


class TestConversation:
    """Tests for Conversation.apply and friends."""

    @pytest.mark.asyncio
    async def test_text_turn(self, make_sequencer):
        conversation = Conversation()
        conversation.add_user_message("Hi Boris")
        backend = ScriptedBackend([ndjson(content("Hel"), content("lo"), DONE)])

        turn = await run_turn(conversation, make_sequencer(backend))

        assert backend.requests[0]["messages"] == [{"role": "user", "content": "Hi Boris"}]
        user, assistant = conversation.messages
        assert user.role is Role.USER
        assert assistant.id == turn.message_id
        assert assistant.text() == "Hello"
        assert not assistant.parts[0].streaming
        assert not conversation.streaming
        assert conversation.outbound()[-1] == {"role": "assistant", "content": "Hello"}

    @pytest.mark.asyncio
    async def test_tool_and_reasoning_turn(self, make_sequencer):
        conversation = Conversation()
        conversation.add_user_message("What is 2 + 3?")
        backend = ScriptedBackend(
            [
                ndjson(
                    thinking("Use the calculator."),
                    tool_calls(("calculator", {"a": 2, "b": 3, "operation": "add"})),
                    DONE,
                )
            ],
            [ndjson(content("It is 5."), DONE)],
        )
        registry = ToolRegistry.from_plugins([CalculatorPlugin()])

        await run_turn(conversation, make_sequencer(backend, registry))

        assistant = conversation.messages[-1]
        assert [p.type for p in assistant.parts] == ["reasoning", "tool-call", "text"]
        assert assistant.parts[0].content == "Use the calculator."
        assert assistant.parts[2].content == "It is 5."
        tool = assistant.parts[1]
        assert tool.state is ToolState.OUTPUT_AVAILABLE
        assert tool.input == {"a": 2, "b": 3, "operation": "add"}
        assert tool.output["result"] == 5
        assert [p.type for p in display_parts(assistant)] == ["reasoning", "tool-call", "text"]
        assert assistant.text() == "It is 5."

    @pytest.mark.asyncio
    async def test_error_is_recorded(self, make_sequencer):
        conversation = Conversation()
        conversation.add_user_message("hello")
        backend = ScriptedBackend([ndjson(content("par"), {"error": "model crashed"})])

        await run_turn(conversation, make_sequencer(backend))

        assert conversation.error == "model crashed"
        assert conversation.messages[-1].text() == "par"
        assert not conversation.streaming

    @pytest.mark.asyncio
    async def test_regenerate_replaces_last_answer(self, make_sequencer):
        conversation = Conversation()
        conversation.add_user_message("Tell me a joke")
        backend = ScriptedBackend(
            [ndjson(content("First try"), DONE)],
            [ndjson(content("Second try"), DONE)],
        )
        sequencer = make_sequencer(backend)
        await run_turn(conversation, sequencer)

        history = conversation.regenerate()
        assert history == [{"role": "user", "content": "Tell me a joke"}]

        turn = await sequencer.stream(history, "m")
        for event in await collect(turn):
            conversation.apply(event)

        assert len(conversation.messages) == 2
        assert conversation.messages[-1].text() == "Second try"
        assert backend.requests[1]["messages"] == history

    def test_regenerate_without_answer_keeps_history(self):
        conversation = Conversation()
        conversation.add_user_message("hi")
        assert conversation.regenerate() == [{"role": "user", "content": "hi"}]

    def test_source_url_part(self):
        conversation = Conversation()
        conversation.apply(StartEvent(message_id="msg_1"))
        conversation.apply(SourceUrlEvent(source_id="s1", url="https://ollama.com"))
        conversation.apply(FinishEvent(finish_reason="stop"))

        assert conversation.messages[0].parts[0].url == "https://ollama.com"

    def test_finish_stops_open_segments(self):
        conversation = Conversation()
        conversation.apply(StartEvent(message_id="msg_1"))
        conversation.apply(TextStartEvent(id="t1"))
        conversation.apply(TextDeltaEvent(id="t1", delta="cut short"))
        assert conversation.streaming

        conversation.apply(FinishEvent(finish_reason="unknown"))

        part = conversation.messages[0].parts[0]
        assert isinstance(part, TextPart)
        assert part.content == "cut short"
        assert not part.streaming
        assert not conversation.streaming

    def test_events_outside_turn_are_rejected(self):
        with pytest.raises(ConversationError):
            Conversation().apply(TextStartEvent(id="t1"))

    def test_unknown_segment_is_rejected(self):
        conversation = Conversation()
        conversation.apply(StartEvent(message_id="msg_1"))
        with pytest.raises(ConversationError, match="Unknown TextPart segment"):
            conversation.apply(TextDeltaEvent(id="nope", delta="x"))

    def test_tool_output_requires_available_input(self):
        conversation = Conversation()
        conversation.apply(StartEvent(message_id="msg_1"))
        conversation.apply(ToolInputStartEvent(tool_call_id="c1", tool_name="weather"))

        with pytest.raises(ValueError):
            conversation.apply(ToolOutputAvailableEvent(tool_call_id="c1", output={}))

        conversation.apply(
            ToolInputAvailableEvent(tool_call_id="c1", tool_name="weather", input={"location": "Oslo"})
        )
        conversation.apply(ToolOutputAvailableEvent(tool_call_id="c1", output={"temperature": 70}))
        part = conversation.messages[0].parts[0]
        assert isinstance(part, ToolPart)
        assert part.state is ToolState.OUTPUT_AVAILABLE