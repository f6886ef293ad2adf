"""
Registry for managing and discovering tools.
"""

from __future__ import annotations

import logging
from typing import Any, Callable, Dict, List, Optional

from ..types import ToolDefinition
from .base import FunctionTool, ParamMetadata, Tool, tool_definition
from .decorators import tool

logger = logging.getLogger(__name__)


class ToolRegistry:
    """
    Collection of tools keyed by exact name.

    Tools can be registered directly or through the `tool` decorator method.
    """

    def __init__(self) -> None:
        self._tools: Dict[str, Tool] = {}

    def register(self, tool_instance: Tool) -> None:
        """Register a tool, replacing any previous tool with the same name."""
        if tool_instance.name in self._tools:
            logger.warning("Replacing already registered tool %r", tool_instance.name)
        self._tools[tool_instance.name] = tool_instance

    def get(self, name: str) -> Optional[Tool]:
        return self._tools.get(name)

    def list_tools(self) -> List[Tool]:
        return list(self._tools.values())

    def definitions(self) -> List[ToolDefinition]:
        """Definitions to advertise to the model, in registration order."""
        return [tool_definition(t) for t in self._tools.values()]

    def __len__(self) -> int:
        return len(self._tools)

    def __contains__(self, name: object) -> bool:
        return name in self._tools

    def tool(
        self,
        *,
        name: Optional[str] = None,
        description: Optional[str] = None,
        param_metadata: Optional[Dict[str, ParamMetadata]] = None,
        timeout: Optional[float] = None,
    ) -> Callable[[Callable[..., Any]], FunctionTool]:
        """
        Decorator to register a function as a tool in this registry.

        Returns:
            Decorator that returns the registered FunctionTool.
        """

        def decorator(func: Callable[..., Any]) -> FunctionTool:
            tool_instance = tool(
                name=name,
                description=description,
                param_metadata=param_metadata,
                timeout=timeout,
            )(func)
            self.register(tool_instance)
            return tool_instance

        return decorator


__all__ = ["ToolRegistry"]
