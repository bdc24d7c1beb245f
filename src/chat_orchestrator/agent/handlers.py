"""
Standard context handlers.

Each handler is an async generator taking (input, config, source, agent) and
yielding role-tagged messages.
"""

from typing import TYPE_CHECKING, Any, AsyncIterator, Literal

from pydantic import BaseModel, Field, ValidationError

from ..config import ChatConfig, ContextSource
from ..errors import ConfigurationError
from ..llm.base import ChatMessage

if TYPE_CHECKING:
    from .core import Agent

REMOVED_PLACEHOLDER = "... this content was removed to shorten the chat context ..."


class PriorMessagesParams(BaseModel):
    max_messages: int = Field(default=1000, ge=4)


class ToolCallParams(BaseModel):
    role: Literal["system", "user"]
    header: str
    tool_name: str
    tool_input: dict[str, Any] = Field(default_factory=dict)


def _parse_params(model: type[BaseModel], source: ContextSource) -> Any:
    try:
        return model.model_validate(source.params)
    except ValidationError as e:
        raise ConfigurationError(f"Invalid params for context source '{source.type}': {e}") from e


def collapse_middle(messages: list[ChatMessage], max_messages: int) -> list[ChatMessage]:
    """Replace the middle of an over-long history with a single placeholder.

    At least two messages are kept at each end.
    """
    total = len(messages)
    if total <= max_messages:
        return messages

    to_remove = total - max_messages
    start = max(2, int(total / 2 - to_remove / 2))
    end = min(total - 2, start + to_remove)

    return [
        *messages[:start],
        ChatMessage(role="user", content=REMOVED_PLACEHOLDER),
        *messages[end:],
    ]


async def system_message(
    input: str, config: ChatConfig, source: ContextSource, agent: "Agent"
) -> AsyncIterator[ChatMessage]:
    """The configured system prompt, rendered now if it is a template."""
    yield ChatMessage(role="system", content=config.system_prompt.render(agent))


async def tool_context(
    input: str, config: ChatConfig, source: ContextSource, agent: "Agent"
) -> AsyncIterator[ChatMessage]:
    """Context required by the enabled tools; each handler runs once even if shared."""
    service = agent.chat_service
    for name in service.tools.required_context_handlers(config.enabled_tools):
        handler = service.context_handlers.require(name)
        async for item in handler(input, config, ContextSource(type=name), agent):
            yield item


async def prior_messages(
    input: str, config: ChatConfig, source: ContextSource, agent: "Agent"
) -> AsyncIterator[ChatMessage]:
    """Replay the previous turn's request and response messages."""
    params = _parse_params(PriorMessagesParams, source)
    last = agent.chat_state.last_message
    if last is None:
        return

    messages = [*last.request.messages, *last.response.messages]
    for message in collapse_middle(messages, params.max_messages):
        yield message


async def current_message(
    input: str, config: ChatConfig, source: ContextSource, agent: "Agent"
) -> AsyncIterator[ChatMessage]:
    yield ChatMessage(role="user", content=input)


async def tool_call(
    input: str, config: ChatConfig, source: ContextSource, agent: "Agent"
) -> AsyncIterator[ChatMessage]:
    """Run a tool at assembly time and inject its result under a header."""
    params = _parse_params(ToolCallParams, source)
    tools = agent.chat_service.tools
    tools.require(params.tool_name)

    result = await tools.execute(params.tool_name, params.tool_input)
    yield ChatMessage(
        role=params.role,
        content=f"{params.header}\n\n{result.to_text()}".strip(),
    )


DEFAULT_CONTEXT_HANDLERS = {
    "system-message": system_message,
    "tool-context": tool_context,
    "prior-messages": prior_messages,
    "current-message": current_message,
    "tool-call": tool_call,
}
