"""
Decorators for tool definition.
"""

from __future__ import annotations

import inspect
from typing import Any, Callable, Dict, List, Optional, Union, get_args, get_origin, get_type_hints

from .base import FunctionTool, ParamMetadata, ToolParameter


def _unwrap_type(type_hint: Any) -> Any:
    """Unwrap Optional[T] to T, and List[int] style generics to their origin."""
    origin = get_origin(type_hint)
    if origin is Union:
        non_none_args = [a for a in get_args(type_hint) if a is not type(None)]
        if len(non_none_args) == 1:
            return _unwrap_type(non_none_args[0])
        return type_hint
    if origin in (list, dict):
        return origin
    return type_hint


def _infer_parameters_from_callable(
    func: Callable[..., Any], param_metadata: Optional[Dict[str, ParamMetadata]] = None
) -> List[ToolParameter]:
    """
    Inspect a function signature to create ToolParameter objects.

    Missing type hints default to `str`; parameters with a default value are
    optional. `*args`/`**kwargs` are skipped.
    """
    type_hints = get_type_hints(func)
    param_metadata = param_metadata or {}
    parameters = []

    for name, param in inspect.signature(func).parameters.items():
        if name in ("self", "cls"):
            continue
        if param.kind in (inspect.Parameter.VAR_POSITIONAL, inspect.Parameter.VAR_KEYWORD):
            continue

        meta = param_metadata.get(name, {})
        parameters.append(
            ToolParameter(
                name=name,
                param_type=_unwrap_type(type_hints.get(name, str)),
                description=meta.get("description", f"Parameter {name}"),
                required=param.default is inspect.Parameter.empty,
                enum=meta.get("enum"),
            )
        )

    return parameters


def tool(
    *,
    name: Optional[str] = None,
    description: Optional[str] = None,
    param_metadata: Optional[Dict[str, ParamMetadata]] = None,
    timeout: Optional[float] = None,
) -> Callable[[Callable[..., Any]], FunctionTool]:
    """
    Decorator to convert a function into a FunctionTool.

    Args:
        name: Optional custom name (defaults to the function name).
        description: Optional description (defaults to the docstring).
        param_metadata: Parameter name -> {"description": ..., "enum": [...]}.
        timeout: Optional per-call timeout in seconds.

    Example:
        >>> @tool(description="Add two numbers")
        ... def add(a: int, b: int) -> int:
        ...     return a + b
        >>> add.name
        'add'
    """

    def decorator(func: Callable[..., Any]) -> FunctionTool:
        tool_name = name or func.__name__
        return FunctionTool(
            name=tool_name,
            description=description or inspect.getdoc(func) or f"Tool {tool_name}",
            parameters=_infer_parameters_from_callable(func, param_metadata),
            function=func,
            timeout=timeout,
        )

    return decorator


__all__ = ["tool"]
