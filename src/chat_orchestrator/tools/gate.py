"""
Tool invocation gate.

By default tool calls run one at a time in submission order, no matter how
many concurrent model steps request them. In parallel mode they run
immediately without queueing.
"""

import asyncio
from typing import Awaitable, Callable, TypeVar

T = TypeVar("T")


class ToolGate:
    """Serializes tool invocations for one agent."""

    def __init__(self, parallel: bool = False):
        self.parallel = parallel
        # asyncio.Lock wakes waiters in FIFO order
        self._lock = asyncio.Lock()

    @property
    def busy(self) -> bool:
        return self._lock.locked()

    async def run_tool_maybe_in_parallel(self, fn: Callable[[], Awaitable[T]]) -> T:
        """Run ``fn`` now (parallel mode) or after every earlier submission."""
        if self.parallel:
            return await fn()
        async with self._lock:
            return await fn()
