"""
Tools package exports.
"""

from .base import Tool, ToolParameter
from .decorators import ParamMetadata, tool
from .executor import FunctionToolExecutor, ToolExecutor, invoke_tool
from .registry import ToolRegistry

__all__ = [
    "Tool",
    "ToolParameter",
    "ToolRegistry",
    "ToolExecutor",
    "FunctionToolExecutor",
    "invoke_tool",
    "tool",
    "ParamMetadata",
]
