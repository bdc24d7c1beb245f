"""
ChatService: the facade presentation layers talk to.

Owns the tool registry, the context handler registry and the model registry,
attaches per-agent state, and exposes config, history and tool-selection
operations plus ``submit_turn`` and ``compact``.
"""

from typing import Any, Iterable, Mapping

import structlog

from ..config import PREFERENCE_FIELDS, ChatConfig, Settings, get_settings, resolve_chat_config
from ..llm.base import ChatRequest, ChatResponse
from ..llm.registry import ModelRegistry
from ..tools.base import Tool
from ..tools.registry import ToolRegistry
from .analytics import format_chat_analytics
from .chat import run_chat
from .compaction import compact_context
from .context import ContextHandler, ContextHandlerRegistry, build_chat_messages
from .core import Agent
from .handlers import DEFAULT_CONTEXT_HANDLERS
from .state import RESET_CHAT, RESET_SETTINGS, ChatServiceState, ConversationTurn

logger = structlog.get_logger()


class ChatService:
    """Manages chat configuration, history and execution for attached agents."""

    name = "ChatService"

    def __init__(
        self,
        model_registry: ModelRegistry,
        settings: Settings | None = None,
        tools: ToolRegistry | None = None,
        context_handlers: ContextHandlerRegistry | None = None,
    ):
        self.settings = settings or get_settings()
        self.model = self.settings.default_model
        self.model_registry = model_registry
        self.tools = tools or ToolRegistry()

        if context_handlers is None:
            context_handlers = ContextHandlerRegistry()
            context_handlers.register_all(DEFAULT_CONTEXT_HANDLERS)
        self.context_handlers = context_handlers

    # Registries

    def register_tool(self, name: str, tool: Tool) -> None:
        self.tools.register(tool, name=name)

    def add_tools(self, package_name: str, tools: Iterable[Tool]) -> list[str]:
        return self.tools.add_tools(package_name, tools)

    def require_tool(self, name: str) -> Tool:
        return self.tools.require(name)

    def get_available_tool_names(self) -> list[str]:
        return self.tools.list_tools()

    def get_tool_names_like(self, pattern: str) -> list[str]:
        return self.tools.get_names_like(pattern)

    def ensure_tool_names_like(self, pattern: str) -> list[str]:
        return self.tools.ensure_names_like(pattern)

    def register_context_handler(self, name: str, handler: ContextHandler) -> None:
        self.context_handlers.register(name, handler)

    def register_context_handlers(self, handlers: Mapping[str, ContextHandler]) -> None:
        self.context_handlers.register_all(handlers)

    def get_context_handler(self, name: str) -> ContextHandler | None:
        return self.context_handlers.get(name)

    def require_context_handler(self, name: str) -> ContextHandler:
        return self.context_handlers.require(name)

    # Agent lifecycle

    def attach(
        self,
        agent: Agent,
        config: ChatConfig | dict[str, Any] | None = None,
        parallel_tools: bool = False,
    ) -> ChatServiceState:
        """Create the agent's chat state from service defaults plus ``config``.

        Enabled tool names may be wildcards; they are expanded here so the
        state only ever holds concrete names.
        """
        chat_config = resolve_chat_config(self.settings.agent_defaults, config)
        chat_config = chat_config.model_copy(
            update={"enabled_tools": self.tools.expand(chat_config.enabled_tools)}
        )

        state = ChatServiceState(chat_config, parallel_tools=parallel_tools)
        agent.chat_service = self
        agent.chat_state = state

        if agent.parent is not None and agent.parent.is_attached:
            state.transfer_state_from_parent(agent.parent.chat_state)

        logger.info(
            "Agent attached",
            agent=agent.name,
            model=self.get_model(agent),
            enabled_tools=state.get_enabled_tools(),
        )
        return state

    # Config

    def get_chat_config(self, agent: Agent) -> ChatConfig:
        return agent.chat_state.get_config()

    def update_chat_config(self, partial: ChatConfig | dict[str, Any], agent: Agent) -> ChatConfig:
        return agent.chat_state.update_config(self._with_concrete_tools(partial))

    def reset_config(self, agent: Agent) -> ChatConfig:
        agent.chat_state.reset([RESET_SETTINGS])
        return agent.chat_state.get_config()

    def get_model(self, agent: Agent) -> str:
        return agent.chat_state.get_config().model or self.model

    def set_model(self, model: str, agent: Agent) -> None:
        self.update_chat_config({"model": model}, agent)

    def get_chat_preferences(self, agent: Agent) -> dict[str, Any]:
        return preferences_of(agent.chat_state.get_config())

    def compaction_threshold(self, config: ChatConfig) -> float:
        if config.compaction_threshold is not None:
            return config.compaction_threshold
        return self.settings.compaction_threshold

    # History

    def get_chat_messages(self, agent: Agent) -> list[ConversationTurn]:
        return agent.chat_state.get_messages()

    def get_last_message(self, agent: Agent) -> ConversationTurn | None:
        return agent.chat_state.last_message

    def push_chat_message(self, turn: ConversationTurn, agent: Agent) -> None:
        agent.chat_state.push_turn(turn)

    def pop_message(self, agent: Agent) -> ConversationTurn | None:
        return agent.chat_state.pop_last_turn()

    def clear_chat_messages(self, agent: Agent) -> None:
        agent.chat_state.reset([RESET_CHAT])

    # Enabled tools

    def get_enabled_tools(self, agent: Agent) -> list[str]:
        return agent.chat_state.get_enabled_tools()

    def set_enabled_tools(self, names: Iterable[str], agent: Agent) -> list[str]:
        return agent.chat_state.set_enabled_tools(self.tools.expand(names))

    def enable_tools(self, names: Iterable[str], agent: Agent) -> list[str]:
        return agent.chat_state.enable_tools(self.tools.expand(names))

    def disable_tools(self, names: Iterable[str], agent: Agent) -> list[str]:
        return agent.chat_state.disable_tools(self.tools.expand(names))

    def _with_concrete_tools(
        self, layer: ChatConfig | dict[str, Any] | None
    ) -> ChatConfig | dict[str, Any] | None:
        """Expand wildcard ``enabled_tools`` in a config layer before it is merged."""
        if isinstance(layer, ChatConfig):
            layer = {name: getattr(layer, name) for name in layer.model_fields_set}
        if not layer or not isinstance(layer.get("enabled_tools"), (list, tuple)):
            return layer
        return {**layer, "enabled_tools": self.tools.expand(layer["enabled_tools"])}

    # Requests

    async def build_chat_messages(self, input: str, config: ChatConfig, agent: Agent):
        return await build_chat_messages(input, config, agent, self.context_handlers)

    async def build_request(
        self,
        input: str,
        config: ChatConfig,
        agent: Agent,
        include_tools: bool = True,
    ) -> ChatRequest:
        """Assemble messages and attach generation params and enabled tools."""
        messages = await self.build_chat_messages(input, config, agent)
        request = ChatRequest(messages=messages, **preferences_of(config))
        if include_tools:
            request.tools = self.tools.get_definitions(
                config.enabled_tools, gate=agent.chat_state.tool_gate
            )
        return request

    # Execution

    async def submit_turn(
        self,
        input: str,
        agent: Agent,
        overrides: ChatConfig | dict[str, Any] | None = None,
    ) -> tuple[str, ChatResponse]:
        """Run one user turn. ``overrides`` apply to this turn only."""
        config = resolve_chat_config(
            agent.chat_state.get_config(), self._with_concrete_tools(overrides)
        )
        output, response = await run_chat(input, config, agent)
        for line in format_chat_analytics(response):
            agent.info_line(line)
        return output, response

    async def compact(self, agent: Agent, focus: str | None = None) -> ConversationTurn | None:
        return await compact_context(agent, focus)


def preferences_of(config: ChatConfig) -> dict[str, Any]:
    return {name: getattr(config, name) for name in PREFERENCE_FIELDS}
