"""Unit tests for the tool registry and the bundled tool plugins."""
import random
import re

import pytest

from boris_chat.plugins.calculator_plugin import CalculatorPlugin
from boris_chat.plugins.weather_plugin import WeatherPlugin
from boris_chat.tool_registry import (
    ToolArgumentError,
    ToolNotFoundError,
    ToolRegistry,
    callable_to_tool_schema,
)


@pytest.fixture
def registry():
    return ToolRegistry.from_plugins([WeatherPlugin(delay=0), CalculatorPlugin()])


class TestSchemaGeneration:
    """Tests for callable_to_tool_schema."""

    def test_weather_schema(self):
        schema = callable_to_tool_schema(WeatherPlugin().weather, "weather")

        assert schema["type"] == "function"
        function = schema["function"]
        assert function["name"] == "weather"
        assert function["description"].startswith("Get the current weather")
        assert function["parameters"] == {
            "type": "object",
            "properties": {
                "location": {
                    "type": "string",
                    "description": "The city and state, e.g. San Francisco, CA",
                }
            },
            "required": ["location"],
        }

    def test_literal_becomes_enum(self):
        schema = callable_to_tool_schema(CalculatorPlugin().calculator, "calculator")
        properties = schema["function"]["parameters"]["properties"]

        assert properties["a"]["type"] == "number"
        assert properties["operation"] == {
            "type": "string",
            "enum": ["add", "subtract", "multiply", "divide"],
            "description": "The mathematical operation to perform",
        }

    def test_defaults_are_optional(self):
        def greet(name: str, loud: bool = False):
            pass

        schema = callable_to_tool_schema(greet, "greet")
        parameters = schema["function"]["parameters"]

        assert parameters["required"] == ["name"]
        assert parameters["properties"]["loud"]["type"] == "boolean"
        assert parameters["properties"]["loud"]["description"] == "The loud parameter"
        assert schema["function"]["description"] == "Execute greet"


class TestToolRegistry:
    """Tests for ToolRegistry."""

    def test_from_plugins(self, registry):
        assert registry.get_tool_names() == ["weather", "calculator"]
        assert len(registry) == 2
        assert registry.descriptions["weather"]["workingDescription"] == "Checking the weather..."

    def test_validate_accepts_valid_arguments(self, registry):
        args = {"a": 2, "b": 0.5, "operation": "multiply"}
        assert registry.validate_arguments("calculator", args) == args

    @pytest.mark.parametrize(
        "args, message",
        [
            ({"a": 1, "operation": "add"}, "Missing required argument(s): b"),
            ({"a": 1, "b": 2, "operation": "add", "c": 3}, "Unknown argument(s): c"),
            ({"a": "1", "b": 2, "operation": "add"}, "Argument 'a' must be of type number"),
            ({"a": True, "b": 2, "operation": "add"}, "Argument 'a' must be of type number"),
            ({"a": 1, "b": 2, "operation": "power"}, "Argument 'operation' must be one of"),
        ],
    )
    def test_validate_rejects(self, registry, args, message):
        with pytest.raises(ToolArgumentError, match=re.escape(message)):
            registry.validate_arguments("calculator", args)

    def test_validate_unknown_tool(self, registry):
        with pytest.raises(ToolNotFoundError) as exc:
            registry.validate_arguments("search", {})
        assert str(exc.value) == "Tool 'search' not found"

    @pytest.mark.asyncio
    async def test_execute_sync_tool(self, registry):
        result = await registry.execute_tool("calculator", {"a": 6, "b": 3, "operation": "divide"})
        assert result == {"a": 6, "b": 3, "operation": "divide", "result": 2}

    @pytest.mark.asyncio
    async def test_execute_async_tool(self):
        registry = ToolRegistry.from_plugins([WeatherPlugin(delay=0, rng=random.Random(7))])

        result = await registry.execute_tool("weather", {"location": "Oslo"})

        assert result["location"] == "Oslo"
        assert 62 <= result["temperature"] <= 82
        assert result["conditions"] in ("sunny", "partly cloudy", "cloudy", "rainy")
        assert 40 <= result["humidity"] < 80
        assert 5 <= result["windSpeed"] < 20
        assert result["unit"] == "fahrenheit"

    @pytest.mark.asyncio
    async def test_execute_unknown_tool(self, registry):
        with pytest.raises(ToolNotFoundError):
            await registry.execute_tool("search", {})

    def test_describe(self, registry):
        weather, calculator = registry.describe()

        assert weather["name"] == "weather"
        assert weather["description"].startswith("Get the current weather")
        assert weather["workingDescription"] == "Checking the weather..."
        assert calculator["completedDescription"] == "Calculation completed"
        assert calculator["errorDescription"] == "Calculation failed"

    def test_describe_without_ui_texts(self):
        registry = ToolRegistry()

        def ping():
            """Answer with pong."""

        registry.register_callable(ping)

        assert registry.describe() == [{"name": "ping", "description": "Answer with pong."}]


class TestCalculatorPlugin:
    """Tests for the calculator tool."""

    @pytest.mark.parametrize(
        "operation, expected",
        [("add", 7), ("subtract", 3), ("multiply", 10), ("divide", 2.5)],
    )
    def test_operations(self, operation, expected):
        assert CalculatorPlugin().calculator(5, 2, operation)["result"] == expected

    def test_divide_by_zero_is_reported_in_output(self):
        result = CalculatorPlugin().calculator(1, 0, "divide")
        assert result["error"] == "Cannot divide by zero"
        assert "result" not in result
