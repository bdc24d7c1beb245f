"""
Base classes for the model-serving collaborator.

The orchestrator never performs inference itself. It hands a ChatRequest to a
ChatClient obtained from a ModelRegistry and receives the output text plus a
ChatResponse carrying per-step and total usage, cost and timing.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, Literal


@dataclass
class ToolCall:
    """A tool call made by the model."""

    id: str
    name: str
    arguments: dict[str, Any]


@dataclass
class ChatMessage:
    """A role-tagged message in a request or response."""

    role: Literal["user", "assistant", "system", "tool"]
    content: str
    tool_calls: list[ToolCall] | None = None
    tool_call_id: str | None = None
    name: str | None = None


@dataclass
class ToolDefinition:
    """A tool exposed to the model under a wire-safe name."""

    name: str
    description: str
    parameters: dict[str, Any]
    execute: Callable[[dict[str, Any]], Awaitable[str]] | None = None


@dataclass
class Usage:
    """Token usage reported by the model client."""

    input_tokens: int = 0
    output_tokens: int = 0
    cached_input_tokens: int = 0
    reasoning_tokens: int = 0

    @property
    def total_tokens(self) -> int:
        return self.input_tokens + self.output_tokens


@dataclass
class Cost:
    """Cost in dollars reported by the model client, when known."""

    input: float | None = None
    cached_input: float | None = None
    output: float | None = None
    reasoning: float | None = None
    total: float | None = None


@dataclass
class Timing:
    """Wall-clock timing reported by the model client."""

    elapsed_ms: float = 0.0
    tokens_per_sec: float | None = None


@dataclass
class StepResult:
    """One model step (a generation plus any tool calls it triggered)."""

    usage: Usage = field(default_factory=Usage)
    text: str = ""
    tool_calls: list[ToolCall] = field(default_factory=list)


@dataclass
class StoredRequest:
    """The persisted part of a request: messages and generation params only."""

    messages: list[ChatMessage] = field(default_factory=list)
    temperature: float | None = None
    top_p: float | None = None
    top_k: int | None = None
    stop_sequences: list[str] | None = None
    presence_penalty: float | None = None
    frequency_penalty: float | None = None
    max_tokens: int | None = None


@dataclass
class ChatRequest(StoredRequest):
    """A request sent to the model client."""

    tools: dict[str, ToolDefinition] = field(default_factory=dict)

    def to_stored(self) -> StoredRequest:
        """Drop tool definitions, keeping only messages and generation params."""
        return StoredRequest(
            messages=list(self.messages),
            temperature=self.temperature,
            top_p=self.top_p,
            top_k=self.top_k,
            stop_sequences=self.stop_sequences,
            presence_penalty=self.presence_penalty,
            frequency_penalty=self.frequency_penalty,
            max_tokens=self.max_tokens,
        )


@dataclass
class ChatResponse:
    """Response from the model client for a complete multi-step call."""

    text: str = ""
    messages: list[ChatMessage] = field(default_factory=list)
    steps: list[StepResult] = field(default_factory=list)
    usage: Usage = field(default_factory=Usage)
    cost: Cost = field(default_factory=Cost)
    timing: Timing = field(default_factory=Timing)
    model: str = ""
    finish_reason: str | None = None


@dataclass
class ModelSpec:
    """Static facts about a model."""

    model_id: str
    context_length: int
    features: dict[str, Any] = field(default_factory=dict)


StopPredicate = Callable[[list[StepResult]], Awaitable[bool]]


class ChatClient(ABC):
    """A live connection to one model."""

    @property
    @abstractmethod
    def model_id(self) -> str:
        """Get the concrete model id."""
        pass

    @abstractmethod
    def get_model_spec(self) -> ModelSpec:
        """Get the model's context length and feature flags."""
        pass

    @abstractmethod
    async def stream_chat(
        self,
        request: ChatRequest,
        stop_when: StopPredicate | None = None,
    ) -> tuple[str, ChatResponse]:
        """Run a multi-step chat, calling ``stop_when(steps)`` after each step."""
        pass
