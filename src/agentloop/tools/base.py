"""
Tool contract, tool outputs, and the function-backed tool implementation.
"""

from __future__ import annotations

import asyncio
import contextvars
import difflib
import functools
import inspect
import logging
from dataclasses import dataclass
from typing import (
    Any,
    Callable,
    Dict,
    List,
    Optional,
    Protocol,
    Union,
    runtime_checkable,
)

from ..exceptions import ToolExecutionError, ToolValidationError
from ..types import ToolDefinition

logger = logging.getLogger(__name__)

JsonSchema = Dict[str, Any]
ParameterValue = Union[str, int, float, bool, dict, list]
ParamMetadata = Dict[str, Any]


@dataclass
class ToolOutput:
    """
    Result of one tool invocation.

    `is_error` marks a failure the tool reports itself; the agent still feeds
    it back to the model as a regular tool result.
    """

    content: str
    is_error: bool = False

    @classmethod
    def success(cls, content: str) -> "ToolOutput":
        return cls(content=content, is_error=False)

    @classmethod
    def error(cls, content: str) -> "ToolOutput":
        return cls(content=content, is_error=True)

    def to_dict(self) -> Dict[str, Any]:
        return {"content": self.content, "is_error": self.is_error}


@runtime_checkable
class Tool(Protocol):
    """
    Capability interface the agent dispatches tool-use blocks to.

    Implementations must not raise for failures they can describe; those
    belong in an error `ToolOutput`.
    """

    name: str
    description: str

    def input_schema(self) -> JsonSchema:
        """JSON Schema object describing the tool input."""
        ...

    async def execute(self, params: Dict[str, Any]) -> ToolOutput:
        ...


def tool_definition(tool: Tool) -> ToolDefinition:
    """Describe a tool the way providers advertise it to the model."""
    return ToolDefinition(
        name=tool.name, description=tool.description, input_schema=tool.input_schema()
    )


def _python_type_to_json(param_type: type) -> str:
    type_map = {
        str: "string",
        int: "integer",
        float: "number",
        bool: "boolean",
        list: "array",
        dict: "object",
    }
    return type_map.get(param_type, "string")


@dataclass
class ToolParameter:
    """
    Schema definition for a single tool parameter.

    Attributes:
        name: Parameter name (should match the function parameter name).
        param_type: Python type (str, int, float, bool, list, dict).
        description: Human-readable description shown to the model.
        required: Whether this parameter must be provided (default: True).
        enum: Optional list of allowed string values.

    Example:
        >>> param = ToolParameter(
        ...     name="cmd",
        ...     param_type=str,
        ...     description="Shell command to run",
        ... )
    """

    name: str
    param_type: type
    description: str
    required: bool = True
    enum: Optional[List[str]] = None

    def to_schema(self) -> JsonSchema:
        schema: JsonSchema = {
            "type": _python_type_to_json(self.param_type),
            "description": self.description,
        }
        if self.enum:
            schema["enum"] = self.enum
        return schema


class FunctionTool:
    """
    Tool backed by a plain Python callable.

    Sync callables run in a thread executor so they never block the event
    loop; async callables are awaited. An optional `timeout` bounds each
    call, and expiry becomes an error output instead of an exception.

    Attributes:
        name: Unique identifier for the tool.
        description: What the tool does (shown to the model).
        parameters: ToolParameter objects defining expected inputs.
        function: The underlying callable.
        timeout: Seconds before a call is abandoned, or None for no limit.
        is_async: Whether the underlying function is a coroutine function.
    """

    def __init__(
        self,
        name: str,
        description: str,
        parameters: List[ToolParameter],
        function: Callable[..., Any],
        *,
        timeout: Optional[float] = None,
    ):
        """
        Initialize a new FunctionTool.

        Raises:
            ToolValidationError: If the tool definition is invalid.
        """
        self.name = name
        self.description = description
        self.parameters = parameters
        self.function = function
        self.timeout = timeout
        self.is_async = inspect.iscoroutinefunction(function)

        self._validate_tool_definition()

    def _validate_tool_definition(self) -> None:
        if not self.name or not self.name.strip():
            raise ToolValidationError(
                tool_name="<unnamed>",
                param_name="name",
                issue="Tool name cannot be empty",
                suggestion="Provide a descriptive name for the tool",
            )

        if not self.description or not self.description.strip():
            raise ToolValidationError(
                tool_name=self.name,
                param_name="description",
                issue="Tool description cannot be empty",
                suggestion="Provide a clear description explaining what the tool does",
            )

        param_names = [p.name for p in self.parameters]
        duplicates = sorted({n for n in param_names if param_names.count(n) > 1})
        if duplicates:
            raise ToolValidationError(
                tool_name=self.name,
                param_name=", ".join(duplicates),
                issue="Duplicate parameter name(s)",
                suggestion="Each parameter must have a unique name",
            )

        supported_types = {str, int, float, bool, list, dict}
        for param in self.parameters:
            if param.param_type not in supported_types:
                type_list = ", ".join(sorted(t.__name__ for t in supported_types))
                raise ToolValidationError(
                    tool_name=self.name,
                    param_name=param.name,
                    issue=f"Unsupported parameter type: {param.param_type}",
                    suggestion=f"Use one of: {type_list}",
                )

        try:
            func_params = inspect.signature(self.function).parameters
        except (ValueError, TypeError):
            # Builtins and some C callables have no inspectable signature
            return

        accepts_kwargs = any(
            p.kind == inspect.Parameter.VAR_KEYWORD for p in func_params.values()
        )
        for param in self.parameters:
            if param.name not in func_params and not accepts_kwargs:
                available = ", ".join(func_params) or "none"
                raise ToolValidationError(
                    tool_name=self.name,
                    param_name=param.name,
                    issue=f"Parameter '{param.name}' not found in function signature",
                    suggestion=f"Available function parameters: {available}",
                )

    def input_schema(self) -> JsonSchema:
        return {
            "type": "object",
            "properties": {param.name: param.to_schema() for param in self.parameters},
            "required": [param.name for param in self.parameters if param.required],
        }

    def definition(self) -> ToolDefinition:
        return tool_definition(self)

    def _validate_single(self, param: ToolParameter, value: Any) -> Optional[str]:
        if value is None:
            return f"Parameter '{param.name}' is None"

        if param.param_type is float:
            if isinstance(value, bool) or not isinstance(value, (float, int)):
                return f"Parameter '{param.name}' must be a number"
            return None

        if param.param_type is int and isinstance(value, bool):
            return f"Parameter '{param.name}' must be of type int, got bool"

        if not isinstance(value, param.param_type):
            return (
                f"Parameter '{param.name}' must be of type {param.param_type.__name__}, "
                f"got {type(value).__name__}"
            )
        if param.enum and value not in param.enum:
            return f"Parameter '{param.name}' must be one of {param.enum}, got {value!r}"
        return None

    def validate(self, params: Dict[str, Any]) -> None:
        """
        Validate an input dictionary against this tool's parameters.

        Raises:
            ToolValidationError: With a close-match suggestion for misspelled
                names, or a conversion hint for mistyped values.
        """
        expected_params = {p.name for p in self.parameters}
        extra_params = set(params) - expected_params

        if extra_params:
            suggestions = []
            for extra in sorted(extra_params):
                matches = difflib.get_close_matches(extra, expected_params, n=1, cutoff=0.6)
                if matches:
                    suggestions.append(f"'{extra}' -> Did you mean '{matches[0]}'?")
                else:
                    suggestions.append(f"'{extra}' is not a valid parameter")

            expected_list = ", ".join(f"'{p}'" for p in sorted(expected_params))
            raise ToolValidationError(
                tool_name=self.name,
                param_name=", ".join(sorted(extra_params)),
                issue="Unexpected parameter(s)",
                suggestion=f"{'; '.join(suggestions)}\nExpected parameters: {expected_list}",
            )

        for param in self.parameters:
            if param.name not in params:
                if param.required:
                    required = ", ".join(f"'{p.name}'" for p in self.parameters if p.required)
                    raise ToolValidationError(
                        tool_name=self.name,
                        param_name=param.name,
                        issue="Missing required parameter",
                        suggestion=f"Required parameters: {required}",
                    )
                continue

            value = params[param.name]
            error = self._validate_single(param, value)
            if error:
                type_hint = ""
                if param.param_type is str and not isinstance(value, str):
                    type_hint = f"Try: {param.name}=str({value!r})"
                elif param.param_type is int and isinstance(value, str):
                    type_hint = f"Try: {param.name}=int('{value}')"
                elif param.param_type is float and isinstance(value, str):
                    type_hint = f"Try: {param.name}=float({value!r})"

                raise ToolValidationError(
                    tool_name=self.name,
                    param_name=param.name,
                    issue=error,
                    suggestion=type_hint or f"Expected type: {param.param_type.__name__}",
                )

    async def execute(self, params: Dict[str, Any]) -> ToolOutput:
        """
        Validate `params`, then run the callable.

        Returns:
            The callable's `ToolOutput` as-is, any other return value
            stringified into a success output, or an error output on timeout.

        Raises:
            ToolValidationError: If `params` do not match the parameters.
            ToolExecutionError: If the callable raises.
        """
        self.validate(params)

        try:
            if self.timeout is None:
                result = await self._call(params)
            else:
                result = await asyncio.wait_for(self._call(params), timeout=self.timeout)
        except asyncio.TimeoutError:
            logger.warning("Tool %r timed out after %ss", self.name, self.timeout)
            return ToolOutput.error(f"Tool '{self.name}' timed out after {self.timeout}s")
        except Exception as exc:
            raise ToolExecutionError(tool_name=self.name, error=exc, params=params) from exc

        if isinstance(result, ToolOutput):
            return result
        return ToolOutput.success("" if result is None else str(result))

    async def _call(self, params: Dict[str, Any]) -> Any:
        if self.is_async:
            return await self.function(**params)

        loop = asyncio.get_running_loop()
        context = contextvars.copy_context()
        func_with_args = functools.partial(self.function, **params)
        return await loop.run_in_executor(None, context.run, func_with_args)


__all__ = [
    "Tool",
    "ToolOutput",
    "ToolParameter",
    "FunctionTool",
    "ParamMetadata",
    "tool_definition",
]
