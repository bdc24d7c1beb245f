"""
Tests for the context assembly pipeline and standard handlers.
"""

import pytest

from chat_orchestrator.agent.context import ContextHandlerRegistry
from chat_orchestrator.agent.handlers import REMOVED_PLACEHOLDER, collapse_middle
from chat_orchestrator.errors import (
    ConfigurationError,
    DuplicateContextHandlerError,
    UnknownContextHandlerError,
)
from chat_orchestrator.llm.base import ChatMessage
from chat_orchestrator.tools.base import Tool, ToolResult

from conftest import make_turn


def roles_and_content(messages):
    return [(m.role, m.content) for m in messages]


def notes_tool(name: str, handlers: list[str]) -> Tool:
    async def handler(**kwargs) -> ToolResult:
        return ToolResult(success=True, output="")

    return Tool(
        name=name,
        description=name,
        handler=handler,
        required_context_handlers=handlers,
    )


@pytest.mark.asyncio
async def test_first_turn_no_tools(service, agent):
    """Empty history and no tools: system prompt then the input, nothing else."""
    config = service.get_chat_config(agent)
    messages = await service.build_chat_messages("hello", config, agent)

    assert roles_and_content(messages) == [
        ("system", "You are a helpful assistant."),
        ("user", "hello"),
    ]


@pytest.mark.asyncio
async def test_initial_sources_used_in_declared_order(service, agent):
    service.update_chat_config(
        {
            "system_prompt": "Be brief.",
            "context": {
                "initial": [{"type": "current-message"}, {"type": "system-message"}],
                "follow_up": [{"type": "current-message"}],
            },
        },
        agent,
    )
    config = service.get_chat_config(agent)

    messages = await service.build_chat_messages("hi", config, agent)
    assert roles_and_content(messages) == [("user", "hi"), ("system", "Be brief.")]


@pytest.mark.asyncio
async def test_follow_up_replays_prior_turn(service, agent):
    agent.chat_state.push_turn(make_turn("first question", "first answer"))
    config = service.get_chat_config(agent)

    messages = await service.build_chat_messages("second question", config, agent)

    assert roles_and_content(messages) == [
        ("system", "You are a helpful assistant."),
        ("user", "first question"),
        ("assistant", "first answer"),
        ("user", "second question"),
    ]


@pytest.mark.asyncio
async def test_follow_up_replays_only_last_turn(service, agent):
    agent.chat_state.push_turn(make_turn("old", "older answer"))
    agent.chat_state.push_turn(make_turn("new", "newer answer"))
    config = service.get_chat_config(agent)

    messages = await service.build_chat_messages("next", config, agent)
    contents = [m.content for m in messages]

    assert "old" not in contents
    assert contents[-3:] == ["new", "newer answer", "next"]


@pytest.mark.asyncio
async def test_unknown_source_type_fails_before_any_handler_runs(service, agent):
    calls = []

    async def spy(input, config, source, agent):
        calls.append(source.type)
        yield ChatMessage(role="user", content="spy")

    service.register_context_handler("spy", spy)
    service.update_chat_config(
        {"context": {"initial": [{"type": "spy"}, {"type": "no-such-handler"}]}},
        agent,
    )

    with pytest.raises(UnknownContextHandlerError, match="no-such-handler"):
        await service.build_chat_messages("hi", service.get_chat_config(agent), agent)
    assert calls == []


@pytest.mark.asyncio
async def test_template_system_prompt_rendered_with_agent(service, agent):
    service.update_chat_config({"system_prompt": lambda a: f"You are {a.name}."}, agent)

    messages = await service.build_chat_messages("hi", service.get_chat_config(agent), agent)
    assert messages[0].content == "You are test-agent."


@pytest.mark.asyncio
async def test_tool_context_dedups_shared_handlers(service, agent):
    calls = []

    async def notes(input, config, source, agent):
        calls.append(source.type)
        yield ChatMessage(role="user", content="Project notes")

    service.register_context_handler("notes", notes)
    service.add_tools("pkg", [notes_tool("a", ["notes"]), notes_tool("b", ["notes"])])
    service.set_enabled_tools(["pkg/*"], agent)

    messages = await service.build_chat_messages("hi", service.get_chat_config(agent), agent)

    assert calls == ["notes"]
    assert roles_and_content(messages) == [
        ("system", "You are a helpful assistant."),
        ("user", "Project notes"),
        ("user", "hi"),
    ]


@pytest.mark.asyncio
async def test_source_params_reach_handler(service, agent):
    seen = {}

    async def custom(input, config, source, agent):
        seen.update(source.params)
        yield ChatMessage(role="user", content=f"limit={source.params['limit']}")

    service.register_context_handlers({"custom": custom})
    service.update_chat_config(
        {"context": {"initial": [{"type": "custom", "limit": 3}]}},
        agent,
    )

    messages = await service.build_chat_messages("hi", service.get_chat_config(agent), agent)
    assert seen == {"limit": 3}
    assert messages[0].content == "limit=3"


@pytest.mark.asyncio
async def test_tool_call_handler_injects_result(service, agent):
    async def weather(city: str) -> ToolResult:
        return ToolResult(success=True, output=f"Sunny in {city}")

    service.add_tools(
        "weather",
        [Tool(name="today", description="Weather", handler=weather)],
    )
    service.update_chat_config(
        {
            "context": {
                "initial": [
                    {
                        "type": "tool-call",
                        "role": "system",
                        "header": "## Weather",
                        "tool_name": "weather/today",
                        "tool_input": {"city": "Oslo"},
                    },
                    {"type": "current-message"},
                ]
            }
        },
        agent,
    )

    messages = await service.build_chat_messages("hi", service.get_chat_config(agent), agent)
    assert roles_and_content(messages) == [
        ("system", "## Weather\n\nSunny in Oslo"),
        ("user", "hi"),
    ]


@pytest.mark.asyncio
async def test_prior_messages_rejects_tiny_max(service, agent):
    agent.chat_state.push_turn(make_turn("a", "b"))
    service.update_chat_config(
        {"context": {"follow_up": [{"type": "prior-messages", "max_messages": 2}]}},
        agent,
    )

    with pytest.raises(ConfigurationError, match="prior-messages"):
        await service.build_chat_messages("hi", service.get_chat_config(agent), agent)


def test_collapse_middle_keeps_prefix_and_suffix():
    messages = [ChatMessage(role="user", content=str(i)) for i in range(10)]

    collapsed = collapse_middle(messages, 4)

    assert [m.content for m in collapsed] == ["0", "1", REMOVED_PLACEHOLDER, "8", "9"]


def test_collapse_middle_under_limit_untouched():
    messages = [ChatMessage(role="user", content=str(i)) for i in range(4)]
    assert collapse_middle(messages, 4) == messages


def test_handler_registry_duplicate_and_unknown():
    registry = ContextHandlerRegistry()

    async def handler(input, config, source, agent):
        yield ChatMessage(role="user", content=input)

    registry.register("h", handler)
    assert registry.list_handlers() == ["h"]

    with pytest.raises(DuplicateContextHandlerError):
        registry.register("h", handler)
    with pytest.raises(UnknownContextHandlerError, match="missing"):
        registry.require("missing")
    assert registry.get("missing") is None
