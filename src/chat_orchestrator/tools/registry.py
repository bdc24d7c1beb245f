"""
Tool registry for managing available tools.

Tools are keyed by a qualified unique name (``package/tool`` when added via
``add_tools``). Wildcard names are shell-style patterns that are expanded to
concrete registered names at the moment they are applied.
"""

import fnmatch
import json
import re
from typing import Any, Iterable

import structlog

from ..errors import DuplicateToolError, UnknownToolError
from ..llm.base import ToolDefinition
from .base import Tool, ToolResult
from .gate import ToolGate

logger = structlog.get_logger()


_WIRE_UNSAFE = re.compile(r"[^a-zA-Z0-9_-]")


def sanitize_tool_name(name: str) -> str:
    """Map a qualified tool name onto the character set model APIs accept."""
    return _WIRE_UNSAFE.sub("_", name)


def is_wildcard(name: str) -> bool:
    return any(ch in name for ch in "*?[")


class ToolRegistry:
    """Registry for managing tools."""

    def __init__(self):
        self._tools: dict[str, Tool] = {}

    def register(self, tool: Tool, name: str | None = None) -> None:
        """Register a tool under ``name`` (defaults to the tool's own name).

        Raises:
            DuplicateToolError: if the name is already taken.
        """
        name = name or tool.name
        if name in self._tools:
            raise DuplicateToolError(name)
        self._tools[name] = tool
        logger.info("Tool registered", tool_name=name)

    def add_tools(self, package_name: str, tools: Iterable[Tool]) -> list[str]:
        """Register tools under ``package_name/tool_name``."""
        names = []
        for tool in tools:
            full_name = f"{package_name}/{tool.name}"
            self.register(tool, name=full_name)
            names.append(full_name)
        return names

    def unregister(self, name: str) -> None:
        """Unregister a tool."""
        if name in self._tools:
            del self._tools[name]
            logger.info("Tool unregistered", tool_name=name)

    def get(self, name: str) -> Tool | None:
        """Get a tool by name."""
        return self._tools.get(name)

    def require(self, name: str) -> Tool:
        """Get a tool by name, raising if it is not registered."""
        tool = self._tools.get(name)
        if tool is None:
            raise UnknownToolError(name)
        return tool

    def list_tools(self) -> list[str]:
        """List all registered tool names."""
        return list(self._tools.keys())

    def get_names_like(self, pattern: str) -> list[str]:
        """Names matching an exact name or a wildcard pattern, in registration order."""
        if not is_wildcard(pattern):
            return [pattern] if pattern in self._tools else []
        return [name for name in self._tools if fnmatch.fnmatchcase(name, pattern)]

    def ensure_names_like(self, pattern: str) -> list[str]:
        """Like ``get_names_like`` but raises when nothing matches."""
        names = self.get_names_like(pattern)
        if not names:
            raise UnknownToolError(pattern)
        return names

    def expand(self, names: Iterable[str]) -> list[str]:
        """Expand names and patterns to a deduplicated list of concrete names."""
        resolved: dict[str, None] = {}
        for name in names:
            for match in self.ensure_names_like(name):
                resolved[match] = None
        return list(resolved)

    def required_context_handlers(self, names: Iterable[str]) -> list[str]:
        """Union of the context handlers required by the given tools, first-seen order."""
        handlers: dict[str, None] = {}
        for name in names:
            for handler in self.require(name).required_context_handlers:
                handlers[handler] = None
        return list(handlers)

    def get_definitions(
        self,
        names: Iterable[str],
        gate: ToolGate | None = None,
    ) -> dict[str, ToolDefinition]:
        """Build wire definitions for the given tools, keyed by sanitized name.

        Each definition's ``execute`` runs the tool through ``gate``.
        """
        gate = gate or ToolGate(parallel=True)
        definitions = {}
        for name in names:
            tool = self.require(name)
            wire_name = sanitize_tool_name(name)
            definitions[wire_name] = ToolDefinition(
                name=wire_name,
                description=tool.description,
                parameters=tool.parameters,
                execute=self._bind(name, gate),
            )
        return definitions

    def _bind(self, name: str, gate: ToolGate):
        async def execute(arguments: dict[str, Any]) -> str:
            return await gate.run_tool_maybe_in_parallel(
                lambda: self.invoke(name, arguments)
            )

        return execute

    async def execute(self, name: str, arguments: dict[str, Any]) -> ToolResult:
        """Execute a tool by name. Failures are returned, never raised."""
        tool = self.get(name)
        if tool is None:
            return ToolResult(
                success=False,
                output="",
                error=f"Tool '{name}' not found",
            )

        try:
            logger.info("Executing tool", tool_name=name, arguments=arguments)
            result = await tool.execute(**arguments)
            logger.info("Tool executed", tool_name=name, success=result.success)
            return result
        except Exception as e:
            logger.error("Tool execution error", tool_name=name, arguments=arguments, error=str(e))
            return ToolResult(
                success=False,
                output="",
                error=str(e),
            )

    async def invoke(self, name: str, arguments: dict[str, Any]) -> str:
        """Execute a tool and render its result as text for the model."""
        result = await self.execute(name, arguments)
        text = result.to_text()
        logger.debug(
            "Tool call",
            tool_name=name,
            request=json.dumps(arguments, indent=2, default=str),
            response=text,
        )
        return text
