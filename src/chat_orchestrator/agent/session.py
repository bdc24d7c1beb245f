"""
Session management for agents.

Owns agents by id and serializes turns per agent: a turn for an agent never
starts while another turn for the same agent is in flight. Snapshots are
plain data handed to (and received from) an external storage mechanism.
"""

import asyncio
from typing import Any

import structlog

from ..config import ChatConfig
from ..llm.base import ChatResponse
from .core import Agent, ConfirmCallback
from .service import ChatService

logger = structlog.get_logger()


class SessionManager:
    """Manages chat agents for a ChatService."""

    def __init__(self, service: ChatService):
        self.service = service
        self._agents: dict[str, Agent] = {}
        self._locks: dict[str, asyncio.Lock] = {}

    def create_agent(
        self,
        agent_id: str,
        config: ChatConfig | dict[str, Any] | None = None,
        headless: bool = False,
        confirm: ConfirmCallback | None = None,
        parent_id: str | None = None,
        parallel_tools: bool = False,
    ) -> Agent:
        """Create and attach an agent. A child inherits its parent's model."""
        if agent_id in self._agents:
            raise ValueError(f"Agent '{agent_id}' already exists")

        parent = self.require_agent(parent_id) if parent_id else None
        agent = Agent(name=agent_id, headless=headless, confirm=confirm, parent=parent)
        self.service.attach(agent, config, parallel_tools=parallel_tools)

        self._agents[agent_id] = agent
        self._locks[agent_id] = asyncio.Lock()
        logger.info("Created agent", agent_id=agent_id, parent_id=parent_id)
        return agent

    def get_agent(self, agent_id: str) -> Agent | None:
        return self._agents.get(agent_id)

    def require_agent(self, agent_id: str) -> Agent:
        agent = self._agents.get(agent_id)
        if agent is None:
            raise KeyError(f"Agent '{agent_id}' not found")
        return agent

    def list_agents(self) -> list[str]:
        return list(self._agents.keys())

    def is_busy(self, agent_id: str) -> bool:
        self.require_agent(agent_id)
        return self._locks[agent_id].locked()

    async def submit(
        self,
        agent_id: str,
        content: str,
        overrides: ChatConfig | dict[str, Any] | None = None,
    ) -> tuple[str, ChatResponse]:
        """Submit a turn, waiting for any in-flight turn of the same agent."""
        agent = self.require_agent(agent_id)
        async with self._locks[agent_id]:
            return await self.service.submit_turn(content, agent, overrides)

    async def compact(self, agent_id: str, focus: str | None = None) -> None:
        agent = self.require_agent(agent_id)
        async with self._locks[agent_id]:
            await self.service.compact(agent, focus)

    def snapshot(self, agent_id: str) -> dict[str, Any]:
        return self.require_agent(agent_id).chat_state.serialize()

    def restore(self, agent_id: str, data: Any) -> None:
        self.require_agent(agent_id).chat_state.deserialize(data)
        logger.info("Restored agent state", agent_id=agent_id)

    def remove_agent(self, agent_id: str) -> None:
        """Forget an agent."""
        if agent_id in self._agents:
            del self._agents[agent_id]
            del self._locks[agent_id]
            logger.info("Removed agent", agent_id=agent_id)
