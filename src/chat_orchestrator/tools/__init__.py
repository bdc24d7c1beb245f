"""
Tools module: descriptors, registry and the invocation gate.
"""

from .base import Tool, ToolResult
from .gate import ToolGate
from .registry import ToolRegistry, sanitize_tool_name

__all__ = [
    "Tool",
    "ToolResult",
    "ToolGate",
    "ToolRegistry",
    "sanitize_tool_name",
]
