"""
Per-agent conversation state.

Holds the immutable initial chat config, the mutable current config, the
append/truncate-only turn history, and the agent's tool invocation gate.
All mutation goes through the methods below; none of them suspend.
"""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Awaitable, Callable, Iterable, TypeVar

import structlog
from pydantic import TypeAdapter, ValidationError

from ..config import ChatConfig, TemplatePrompt, resolve_chat_config
from ..llm.base import ChatResponse, StoredRequest
from ..tools.gate import ToolGate

logger = structlog.get_logger()

T = TypeVar("T")

RESET_SETTINGS = "settings"
RESET_CHAT = "chat"


def _now() -> datetime:
    return datetime.now(timezone.utc)


@dataclass(frozen=True)
class ConversationTurn:
    """One committed request/response exchange."""

    request: StoredRequest
    response: ChatResponse
    stop_reason: str = "finished"
    created_at: datetime = field(default_factory=_now)
    updated_at: datetime = field(default_factory=_now)


_TURNS = TypeAdapter(list[ConversationTurn])


class ChatServiceState:
    """Conversation state owned by exactly one agent."""

    name = "ChatServiceState"

    def __init__(self, initial_config: ChatConfig, parallel_tools: bool = False):
        self.initial_config = initial_config.model_copy(deep=True)
        self.current_config = initial_config.model_copy(deep=True)
        self.messages: list[ConversationTurn] = []
        self.tool_gate = ToolGate(parallel=parallel_tools)

    @property
    def parallel_tools(self) -> bool:
        return self.tool_gate.parallel

    @parallel_tools.setter
    def parallel_tools(self, value: bool) -> None:
        self.tool_gate.parallel = value

    async def run_tool_maybe_in_parallel(self, fn: Callable[[], Awaitable[T]]) -> T:
        return await self.tool_gate.run_tool_maybe_in_parallel(fn)

    # Config

    def get_config(self) -> ChatConfig:
        return self.current_config

    def update_config(self, partial: dict[str, Any] | ChatConfig) -> ChatConfig:
        """Shallow-merge ``partial`` into the current config."""
        self.current_config = resolve_chat_config(self.current_config, partial)
        return self.current_config

    # History

    def get_messages(self) -> list[ConversationTurn]:
        return list(self.messages)

    @property
    def last_message(self) -> ConversationTurn | None:
        return self.messages[-1] if self.messages else None

    def push_turn(self, turn: ConversationTurn) -> None:
        self.messages = [*self.messages, turn]

    def pop_last_turn(self) -> ConversationTurn | None:
        """Remove the most recent turn (undo). No-op on empty history."""
        if not self.messages:
            return None
        turn = self.messages[-1]
        self.messages = self.messages[:-1]
        return turn

    def clear_messages(self) -> None:
        self.messages = []

    # Enabled tools (callers pass concrete, already-expanded names)

    def get_enabled_tools(self) -> list[str]:
        return list(self.current_config.enabled_tools)

    def set_enabled_tools(self, names: Iterable[str]) -> list[str]:
        self.current_config = self.current_config.model_copy(
            update={"enabled_tools": list(dict.fromkeys(names))}
        )
        return self.get_enabled_tools()

    def enable_tools(self, names: Iterable[str]) -> list[str]:
        return self.set_enabled_tools([*self.current_config.enabled_tools, *names])

    def disable_tools(self, names: Iterable[str]) -> list[str]:
        removed = set(names)
        return self.set_enabled_tools(
            name for name in self.current_config.enabled_tools if name not in removed
        )

    # Lifecycle

    def transfer_state_from_parent(self, parent: "ChatServiceState") -> None:
        """A child agent inherits the parent's model when it has none of its own."""
        if self.current_config.model is None and parent.current_config.model is not None:
            self.current_config = self.current_config.model_copy(
                update={"model": parent.current_config.model}
            )

    def reset(self, what: Iterable[str]) -> None:
        what = set(what)
        if RESET_SETTINGS in what:
            self.current_config = self.initial_config.model_copy(deep=True)
        if RESET_CHAT in what:
            self.messages = []

    def serialize(self) -> dict[str, Any]:
        """Snapshot as JSON-compatible data: ``{current_config, messages}``.

        A template system prompt cannot be serialized; it is omitted and
        restored from the initial config on deserialize.
        """
        exclude = {"system_prompt"} if isinstance(self.current_config.system_prompt, TemplatePrompt) else None
        return {
            "current_config": self.current_config.model_dump(mode="json", exclude=exclude),
            "messages": _TURNS.dump_python(self.messages, mode="json"),
        }

    def deserialize(self, data: Any) -> None:
        """Restore a snapshot; a missing or corrupt blob falls back to the initial state."""
        if not isinstance(data, dict):
            data = {}

        config = self.initial_config.model_copy(deep=True)
        if data.get("current_config"):
            try:
                config = ChatConfig.model_validate({**dict(self.initial_config), **data["current_config"]})
            except (TypeError, ValidationError) as e:
                logger.warning("Discarding unreadable chat config snapshot", error=str(e))

        messages: list[ConversationTurn] = []
        if data.get("messages"):
            try:
                messages = _TURNS.validate_python(data["messages"])
            except ValidationError as e:
                logger.warning("Discarding unreadable chat history snapshot", error=str(e))

        self.current_config = config
        self.messages = messages

    def show(self) -> list[str]:
        config = self.current_config
        lines = [
            f"Messages: {len(self.messages)}",
            f"Enabled Tools: {', '.join(config.enabled_tools) or 'None'}",
        ]
        if config.temperature is not None:
            lines.append(f"Temperature: {config.temperature}")
        if config.max_tokens is not None:
            lines.append(f"Max Tokens: {config.max_tokens}")
        return lines
