"""
Agent host for the chat orchestrator.

An Agent is the unit that owns one conversation. It carries:
1. The per-agent ChatServiceState (created when a ChatService attaches)
2. Headless vs interactive mode, and human confirmation prompts with timeouts
3. A busy indicator for presentation layers
4. Lifecycle hooks such as "after_chat_completion"
"""

import asyncio
import inspect
from contextlib import asynccontextmanager
from typing import TYPE_CHECKING, Any, AsyncIterator, Awaitable, Callable

import structlog

from .state import ChatServiceState

if TYPE_CHECKING:
    from .service import ChatService

logger = structlog.get_logger()

AFTER_CHAT_COMPLETION = "after_chat_completion"

ConfirmCallback = Callable[[str, bool], Awaitable[bool]]
Hook = Callable[..., Any]


class Agent:
    """A conversational agent attached to a ChatService."""

    def __init__(
        self,
        name: str = "agent",
        headless: bool = False,
        confirm: ConfirmCallback | None = None,
        parent: "Agent | None" = None,
    ):
        self.name = name
        self.headless = headless
        self.confirm = confirm
        self.parent = parent
        self.busy_with: str | None = None
        self.output: list[tuple[str, str]] = []
        self.chat_service: "ChatService | None" = None
        self._chat_state: ChatServiceState | None = None
        self._hooks: dict[str, list[Hook]] = {}
        self.log = logger.bind(agent=name)

    @property
    def chat_state(self) -> ChatServiceState:
        if self._chat_state is None:
            raise RuntimeError(f"Agent '{self.name}' is not attached to a ChatService")
        return self._chat_state

    @chat_state.setter
    def chat_state(self, state: ChatServiceState) -> None:
        self._chat_state = state

    @property
    def is_attached(self) -> bool:
        return self._chat_state is not None

    # Output

    def info_line(self, message: str) -> None:
        self.output.append(("info", message))
        self.log.info(message)

    def error_line(self, message: str) -> None:
        self.output.append(("error", message))
        self.log.error(message)

    # Busy indicator

    def set_busy_with(self, message: str | None) -> None:
        self.busy_with = message

    @asynccontextmanager
    async def busy_while(self, message: str) -> AsyncIterator[None]:
        previous = self.busy_with
        self.set_busy_with(message)
        try:
            yield
        finally:
            self.set_busy_with(previous)

    # Human interaction

    async def ask_for_confirmation(self, message: str, default: bool, timeout: float) -> bool:
        """Ask the human a yes/no question.

        Headless agents, agents without a confirm callback, and prompts that
        time out all resolve to ``default``.
        """
        if self.headless or self.confirm is None:
            return default
        try:
            return bool(await asyncio.wait_for(self.confirm(message, default), timeout=timeout))
        except asyncio.TimeoutError:
            self.log.info("Confirmation timed out, using default", prompt=message, default=default)
            return default

    # Lifecycle hooks

    def add_hook(self, name: str, hook: Hook) -> None:
        self._hooks.setdefault(name, []).append(hook)

    async def execute_hooks(self, name: str, *args: Any) -> None:
        """Run every hook registered under ``name``; hook failures are logged only."""
        for hook in self._hooks.get(name, []):
            try:
                result = hook(self, *args)
                if inspect.isawaitable(result):
                    await result
            except Exception as e:
                self.log.warning("Lifecycle hook failed", hook=name, error=str(e))
