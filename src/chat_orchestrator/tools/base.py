"""
Tool descriptors and results.
"""

import json
from dataclasses import dataclass, field
from typing import Any, Callable, Coroutine


@dataclass
class ToolResult:
    """Result from a tool execution."""

    success: bool
    output: str = ""
    data: Any = None
    error: str | None = None

    def to_text(self) -> str:
        """Render the result as the text returned to the model."""
        if not self.success:
            return (
                f"Error calling tool: {self.error}. Please check your tool call "
                "for correctness and retry the function call."
            )
        if self.output:
            return self.output
        if self.data is not None:
            return json.dumps(self.data, indent=1, default=str)
        return ""


def _empty_object_schema() -> dict[str, Any]:
    return {"type": "object", "properties": {}, "required": []}


@dataclass
class Tool:
    """
    A callable exposed to the model.

    ``parameters`` is the JSON Schema of the keyword arguments ``handler``
    accepts. ``required_context_handlers`` names context handlers whose output
    must be part of the request whenever this tool is enabled.
    """

    name: str
    description: str
    handler: Callable[..., Coroutine[Any, Any, ToolResult]]
    parameters: dict[str, Any] = field(default_factory=_empty_object_schema)
    required_context_handlers: list[str] = field(default_factory=list)

    async def execute(self, **kwargs: Any) -> ToolResult:
        return await self.handler(**kwargs)
