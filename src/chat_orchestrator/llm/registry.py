"""
Model registry contract and client acquisition with exponential backoff.
"""

import asyncio
import fnmatch
from abc import ABC, abstractmethod

import structlog

from ..errors import NoClientAvailableError
from .base import ChatClient

logger = structlog.get_logger()

AUTO_MODEL = "auto"


class ModelRegistry(ABC):
    """Resolves a model name or pattern to a live client.

    Whether a model is online, offline or cold is opaque to the orchestrator;
    a registry simply returns None when nothing suitable is reachable.
    """

    @abstractmethod
    async def get_client(self, model: str) -> ChatClient | None:
        """Get a live client for a model name or pattern, or None."""
        pass


class StaticModelRegistry(ModelRegistry):
    """In-process registry over a fixed set of clients."""

    def __init__(self, default_models: list[str] | None = None):
        self.default_models = list(default_models or [])
        self._clients: dict[str, ChatClient] = {}
        self._online: set[str] = set()

    def add_client(self, client: ChatClient, online: bool = True) -> None:
        """Add a client, keyed by its model id."""
        self._clients[client.model_id] = client
        self.set_online(client.model_id, online)
        logger.info("Model client registered", model=client.model_id, online=online)

    def set_online(self, model_id: str, online: bool) -> None:
        if online:
            self._online.add(model_id)
        else:
            self._online.discard(model_id)

    def list_models(self) -> list[str]:
        return list(self._clients.keys())

    def _first_online(self, pattern: str) -> ChatClient | None:
        for model_id, client in self._clients.items():
            if model_id in self._online and fnmatch.fnmatchcase(model_id, pattern):
                return client
        return None

    async def get_client(self, model: str) -> ChatClient | None:
        if model == AUTO_MODEL:
            for pattern in self.default_models or ["*"]:
                client = self._first_online(pattern)
                if client is not None:
                    return client
            return None
        return self._first_online(model)


async def acquire_client(
    registry: ModelRegistry,
    model: str,
    times: int = 5,
    interval: float = 1.0,
    multiplier: float = 2.0,
) -> ChatClient:
    """Get a live client, retrying with exponential backoff.

    Connection and timeout errors raised by the registry count as failed
    attempts; anything else propagates.

    Raises:
        NoClientAvailableError: if no client was obtained after ``times`` attempts.
    """
    delay = interval
    for attempt in range(1, times + 1):
        try:
            client = await registry.get_client(model)
        except (ConnectionError, TimeoutError) as e:
            logger.warning("Model registry unreachable", model=model, attempt=attempt, error=str(e))
            client = None

        if client is not None:
            return client

        if attempt < times:
            logger.info("No online client yet, backing off", model=model, attempt=attempt, delay=delay)
            await asyncio.sleep(delay)
            delay *= multiplier

    raise NoClientAvailableError(model, times)
