"""
Agent module - conversation orchestration.

Includes:
- Agent: host for one conversation (headless mode, confirmations, hooks)
- ChatServiceState: per-agent config, turn history and tool gate
- ChatService: registries plus the config/history/tool API
- run_chat: the bounded request/response loop
- compact_context: history compaction
- SessionManager: agents by id with per-agent turn serialization
"""

from .chat import StopReason, run_chat
from .compaction import compact_context
from .context import ContextHandlerRegistry, build_chat_messages
from .core import AFTER_CHAT_COMPLETION, Agent
from .handlers import DEFAULT_CONTEXT_HANDLERS
from .service import ChatService
from .session import SessionManager
from .state import ChatServiceState, ConversationTurn

__all__ = [
    "AFTER_CHAT_COMPLETION",
    "Agent",
    "ChatService",
    "ChatServiceState",
    "ContextHandlerRegistry",
    "ConversationTurn",
    "DEFAULT_CONTEXT_HANDLERS",
    "SessionManager",
    "StopReason",
    "build_chat_messages",
    "compact_context",
    "run_chat",
]
