"""
LLM module: the contract consumed from the model-serving collaborator.
"""

from .base import (
    ChatClient,
    ChatMessage,
    ChatRequest,
    ChatResponse,
    Cost,
    ModelSpec,
    StepResult,
    StopPredicate,
    StoredRequest,
    Timing,
    ToolCall,
    ToolDefinition,
    Usage,
)
from .registry import AUTO_MODEL, ModelRegistry, StaticModelRegistry, acquire_client

__all__ = [
    "ChatClient",
    "ChatMessage",
    "ChatRequest",
    "ChatResponse",
    "Cost",
    "ModelSpec",
    "StepResult",
    "StopPredicate",
    "StoredRequest",
    "Timing",
    "ToolCall",
    "ToolDefinition",
    "Usage",
    "AUTO_MODEL",
    "ModelRegistry",
    "StaticModelRegistry",
    "acquire_client",
]
