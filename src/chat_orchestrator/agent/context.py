"""
Context assembly pipeline.

A request's message list is built from scratch every turn by walking the
configured context sources in order and draining each source's handler.
The first turn of a conversation uses the "initial" source list; every later
turn uses "follow_up".
"""

from typing import TYPE_CHECKING, AsyncIterator, Callable, Mapping

import structlog

from ..config import ChatConfig, ContextSource
from ..errors import DuplicateContextHandlerError, UnknownContextHandlerError
from ..llm.base import ChatMessage

if TYPE_CHECKING:
    from .core import Agent

logger = structlog.get_logger()

ContextHandler = Callable[[str, ChatConfig, ContextSource, "Agent"], AsyncIterator[ChatMessage]]


class ContextHandlerRegistry:
    """Named context handlers that context sources resolve against."""

    def __init__(self):
        self._handlers: dict[str, ContextHandler] = {}

    def register(self, name: str, handler: ContextHandler) -> None:
        if name in self._handlers:
            raise DuplicateContextHandlerError(name)
        self._handlers[name] = handler
        logger.debug("Context handler registered", handler=name)

    def register_all(self, handlers: Mapping[str, ContextHandler]) -> None:
        for name, handler in handlers.items():
            self.register(name, handler)

    def get(self, name: str) -> ContextHandler | None:
        return self._handlers.get(name)

    def require(self, name: str) -> ContextHandler:
        handler = self._handlers.get(name)
        if handler is None:
            raise UnknownContextHandlerError(name)
        return handler

    def list_handlers(self) -> list[str]:
        return list(self._handlers.keys())


def select_sources(config: ChatConfig, agent: "Agent") -> list[ContextSource]:
    """Pick the initial sources on the first turn, follow-up sources afterwards."""
    if agent.chat_state.last_message is None:
        return config.context.initial
    return config.context.follow_up


async def build_chat_messages(
    input: str,
    config: ChatConfig,
    agent: "Agent",
    handlers: ContextHandlerRegistry,
) -> list[ChatMessage]:
    """Assemble the ordered message list for one request."""
    sources = select_sources(config, agent)
    # Resolve every source up front so an unknown type fails before any handler runs
    resolved = [(source, handlers.require(source.type)) for source in sources]

    messages: list[ChatMessage] = []
    for source, handler in resolved:
        async for item in handler(input, config, source, agent):
            messages.append(item)

    logger.debug(
        "Chat messages assembled",
        agent=agent.name,
        sources=[source.type for source in sources],
        message_count=len(messages),
    )
    return messages
