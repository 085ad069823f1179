"""
Simple tool registry for automatic schema generation, argument validation and
tool execution.

Maps method callables to the function-tool schema understood by the chat
backend.
"""

import inspect
import logging
from typing import Any, Callable, Dict, List, Literal, Optional, get_args, get_origin, get_type_hints

logger = logging.getLogger(__name__)


class ToolArgumentError(ValueError):
    """Tool arguments do not match the tool's schema."""


class ToolNotFoundError(KeyError):
    """The model asked for a tool that is not registered."""

    def __str__(self):
        return self.args[0] if self.args else "Tool not found"


_JSON_TYPES = {str: "string", int: "integer", float: "number", bool: "boolean"}


def _json_schema_for(param_type: Any) -> Dict[str, Any]:
    if get_origin(param_type) is Literal:
        choices = list(get_args(param_type))
        base = _JSON_TYPES.get(type(choices[0]), "string") if choices else "string"
        return {"type": base, "enum": choices}
    return {"type": _JSON_TYPES.get(param_type, "string")}


def _parse_param_docs(doc: str) -> Dict[str, str]:
    """Pull ``name: description`` lines out of a docstring's Args section."""
    descriptions = {}
    in_args = False
    for line in doc.splitlines():
        stripped = line.strip()
        if stripped in ("Args:", "Parameters:"):
            in_args = True
            continue
        if in_args:
            if not stripped or stripped.endswith(":") and " " not in stripped:
                if descriptions:
                    break
                continue
            name, sep, text = stripped.partition(":")
            if sep and name.isidentifier():
                descriptions[name] = text.strip()
    return descriptions


def callable_to_tool_schema(
    callable_func: Callable, name: str, description: Optional[str] = None
) -> Dict[str, Any]:
    """
    Convert a Python callable (function or method) to the backend's tool schema.

    Args:
        callable_func: The callable to convert
        name: Tool name
        description: Optional description

    Returns:
        Tool schema dictionary
    """
    sig = inspect.signature(callable_func)
    type_hints = get_type_hints(callable_func)
    doc = inspect.getdoc(callable_func) or ""
    param_docs = _parse_param_docs(doc)

    if description is None:
        summary = doc.split("\n\n")[0].strip()
        description = summary or f"Execute {name}"

    parameters: Dict[str, Any] = {"type": "object", "properties": {}, "required": []}

    for param_name, param in sig.parameters.items():
        if param_name == "self":
            continue

        param_schema = _json_schema_for(type_hints.get(param_name, str))
        param_schema["description"] = param_docs.get(param_name, f"The {param_name} parameter")
        parameters["properties"][param_name] = param_schema

        if param.default is inspect.Parameter.empty:
            parameters["required"].append(param_name)

    return {
        "type": "function",
        "function": {"name": name, "description": description, "parameters": parameters},
    }


def _matches_type(value: Any, json_type: str) -> bool:
    # bool is an int subclass; never accept it for numeric parameters
    if json_type == "string":
        return isinstance(value, str)
    if json_type == "boolean":
        return isinstance(value, bool)
    if json_type == "integer":
        return isinstance(value, int) and not isinstance(value, bool)
    if json_type == "number":
        return isinstance(value, (int, float)) and not isinstance(value, bool)
    return True


class ToolRegistry:
    """Registry for managing tools and their schemas."""

    def __init__(self):
        self.tools: Dict[str, Callable] = {}  # name -> callable
        self.schemas: List[Dict[str, Any]] = []
        self.descriptions: Dict[str, Dict[str, str]] = {}  # name -> UI state texts

    @classmethod
    def from_plugins(cls, plugins: list) -> "ToolRegistry":
        """Build a registry from every plugin exposing ``hook_provide_tools``."""
        registry = cls()
        for plugin in plugins:
            if hasattr(plugin, "hook_provide_tools"):
                for method in plugin.hook_provide_tools():
                    registry.register_callable(method)
            if hasattr(plugin, "hook_provide_tool_descriptions"):
                registry.descriptions.update(plugin.hook_provide_tool_descriptions())
        return registry

    def register_callable(
        self,
        callable_func: Callable,
        name: Optional[str] = None,
        description: Optional[str] = None,
    ) -> None:
        """
        Register a callable (function or method) and auto-generate its tool schema.

        Args:
            callable_func: The callable to register
            name: Optional name override (defaults to callable name)
            description: Optional description
        """
        tool_name = name or callable_func.__name__
        schema = callable_to_tool_schema(callable_func, tool_name, description)

        self.tools[tool_name] = callable_func
        self.schemas.append(schema)

    def get_schemas(self) -> List[Dict[str, Any]]:
        """Get all tool schemas for the backend."""
        return self.schemas

    def get_tool_names(self) -> List[str]:
        """Get list of registered tool names."""
        return list(self.tools.keys())

    def describe(self) -> List[Dict[str, Any]]:
        """Name, summary and UI state texts of every tool, in registration order."""
        entries = []
        for schema in self.schemas:
            function = schema["function"]
            entry = {"name": function["name"], "description": function["description"]}
            entry.update(self.descriptions.get(function["name"], {}))
            entries.append(entry)
        return entries

    def _parameters(self, name: str) -> Dict[str, Any]:
        for schema in self.schemas:
            if schema["function"]["name"] == name:
                return schema["function"]["parameters"]
        raise ToolNotFoundError(f"Tool '{name}' not found")

    def validate_arguments(self, name: str, args: Dict[str, Any]) -> Dict[str, Any]:
        """
        Check arguments against the tool's schema.

        Integers are accepted for ``number`` parameters; nothing is coerced.

        Raises:
            ToolNotFoundError: If the tool is not registered
            ToolArgumentError: On missing, unknown or mistyped arguments
        """
        parameters = self._parameters(name)
        properties = parameters["properties"]

        if not isinstance(args, dict):
            raise ToolArgumentError(f"Arguments for '{name}' must be an object")

        missing = [key for key in parameters["required"] if key not in args]
        if missing:
            raise ToolArgumentError(f"Missing required argument(s): {', '.join(missing)}")

        unknown = [key for key in args if key not in properties]
        if unknown:
            raise ToolArgumentError(f"Unknown argument(s): {', '.join(unknown)}")

        for key, value in args.items():
            prop = properties[key]
            if not _matches_type(value, prop["type"]):
                raise ToolArgumentError(f"Argument '{key}' must be of type {prop['type']}")
            if "enum" in prop and value not in prop["enum"]:
                choices = ", ".join(str(c) for c in prop["enum"])
                raise ToolArgumentError(f"Argument '{key}' must be one of: {choices}")

        return args

    async def execute_tool(self, name: str, args: Dict[str, Any]) -> Any:
        """
        Execute a registered tool by name.

        Args:
            name: Tool name
            args: Tool arguments

        Returns:
            Tool execution result

        Raises:
            ToolNotFoundError: If tool is not registered
        """
        if name not in self.tools:
            raise ToolNotFoundError(f"Tool '{name}' not found")

        callable_func = self.tools[name]

        # Execute the callable (handle both sync and async)
        if inspect.iscoroutinefunction(callable_func):
            return await callable_func(**args)
        else:
            return callable_func(**args)

    def __len__(self) -> int:
        """Get number of registered tools."""
        return len(self.tools)
