"""Pytest configuration and fixtures for chat orchestrator tests."""

import pytest

from chat_orchestrator.agent.core import Agent
from chat_orchestrator.agent.service import ChatService
from chat_orchestrator.agent.state import ConversationTurn
from chat_orchestrator.config import Settings
from chat_orchestrator.llm.base import (
    ChatClient,
    ChatMessage,
    ChatRequest,
    ChatResponse,
    ModelSpec,
    StepResult,
    StoredRequest,
    Timing,
    ToolCall,
    Usage,
)
from chat_orchestrator.llm.registry import StaticModelRegistry


def step(
    text: str = "",
    input_tokens: int = 5,
    output_tokens: int = 5,
    tool_calls: list[ToolCall] | None = None,
) -> StepResult:
    """Build a scripted model step."""
    return StepResult(
        usage=Usage(input_tokens=input_tokens, output_tokens=output_tokens),
        text=text,
        tool_calls=tool_calls or [],
    )


def make_turn(user: str, reply: str, system: str = "You are a helpful assistant.") -> ConversationTurn:
    return ConversationTurn(
        request=StoredRequest(
            messages=[
                ChatMessage(role="system", content=system),
                ChatMessage(role="user", content=user),
            ]
        ),
        response=ChatResponse(
            text=reply,
            messages=[ChatMessage(role="assistant", content=reply)],
        ),
    )


class FakeClient(ChatClient):
    """Scripted model client.

    Each call to ``stream_chat`` consumes the next script (the last script is
    reused once the others are used up). Tool calls in a step are executed
    through the request's tool definitions, like a real client would.
    """

    def __init__(
        self,
        model_id: str = "fake-model",
        context_length: int = 1000,
        scripts: list[list[StepResult]] | None = None,
        error: Exception | None = None,
    ):
        self._model_id = model_id
        self.context_length = context_length
        self.scripts = list(scripts or [[step("Hello! How can I help you?")]])
        self.error = error
        self.requests: list[ChatRequest] = []
        self.step_counts: list[int] = []

    @property
    def model_id(self) -> str:
        return self._model_id

    def get_model_spec(self) -> ModelSpec:
        return ModelSpec(model_id=self._model_id, context_length=self.context_length)

    async def stream_chat(self, request, stop_when=None):
        self.requests.append(request)
        if self.error is not None:
            raise self.error

        script = self.scripts.pop(0) if len(self.scripts) > 1 else self.scripts[0]
        steps: list[StepResult] = []
        messages: list[ChatMessage] = []

        for planned in script:
            steps.append(planned)
            messages.append(
                ChatMessage(role="assistant", content=planned.text, tool_calls=planned.tool_calls or None)
            )
            for call in planned.tool_calls:
                result = await request.tools[call.name].execute(call.arguments)
                messages.append(
                    ChatMessage(role="tool", content=result, tool_call_id=call.id, name=call.name)
                )
            if stop_when is not None and await stop_when(list(steps)):
                break

        self.step_counts.append(len(steps))
        usage = Usage(
            input_tokens=sum(s.usage.input_tokens for s in steps),
            output_tokens=sum(s.usage.output_tokens for s in steps),
        )
        text = steps[-1].text if steps else ""
        return text, ChatResponse(
            text=text,
            messages=messages,
            steps=steps,
            usage=usage,
            timing=Timing(elapsed_ms=1200, tokens_per_sec=50.0),
            model=self._model_id,
        )


@pytest.fixture
def settings() -> Settings:
    return Settings(client_retry_times=2, client_retry_interval=0.0)


@pytest.fixture
def client() -> FakeClient:
    return FakeClient()


@pytest.fixture
def model_registry(client) -> StaticModelRegistry:
    registry = StaticModelRegistry()
    registry.add_client(client)
    return registry


@pytest.fixture
def service(model_registry, settings) -> ChatService:
    return ChatService(model_registry, settings=settings)


@pytest.fixture
def agent(service) -> Agent:
    agent = Agent(name="test-agent", headless=True)
    service.attach(agent)
    return agent
