"""
Tools package exports.
"""

from .base import FunctionTool, ParamMetadata, Tool, ToolOutput, ToolParameter, tool_definition
from .decorators import tool
from .registry import ToolRegistry

__all__ = [
    "Tool",
    "ToolOutput",
    "ToolParameter",
    "FunctionTool",
    "ToolRegistry",
    "tool",
    "tool_definition",
    "ParamMetadata",
]
