"""
Conversation Compaction - replace the whole history with one summary turn.

The prior conversation is replayed through the normal context pipeline
together with a summarization instruction and no tools. After the model
answers, history is cleared and a single turn is committed whose request
keeps only the system message(s); the summary lives in the response and is
what later turns replay.
"""

from typing import TYPE_CHECKING

import structlog

from ..config import LiteralPrompt
from ..errors import CompactionError
from ..llm.base import StepResult
from ..llm.registry import acquire_client
from .state import ConversationTurn

if TYPE_CHECKING:
    from .core import Agent

logger = structlog.get_logger()

SUMMARY_SYSTEM_PROMPT = (
    "You are a helpful assistant that creates comprehensive summaries of conversations."
)
DEFAULT_FOCUS = "all important details, context, and what was being worked on"


def summary_instruction(focus: str | None = None) -> str:
    return (
        "Please provide a detailed summary of the prior conversation, "
        f"focusing on {focus or DEFAULT_FOCUS}"
    )


async def _single_step(steps: list[StepResult]) -> bool:
    return True


async def compact_context(agent: "Agent", focus: str | None = None) -> ConversationTurn | None:
    """Compact the agent's history into one summarizing turn.

    Returns the new turn, or None when there was no history to compact.
    """
    service = agent.chat_service
    settings = service.settings
    state = agent.chat_state

    original_count = len(state.messages)
    if original_count == 0:
        return None

    config = state.get_config().model_copy(
        update={
            "system_prompt": LiteralPrompt(SUMMARY_SYSTEM_PROMPT),
            "enabled_tools": [],
        }
    )
    request = await service.build_request(
        summary_instruction(focus), config, agent, include_tools=False
    )

    model = config.model or service.model
    client = await acquire_client(
        service.model_registry,
        model,
        times=settings.client_retry_times,
        interval=settings.client_retry_interval,
        multiplier=settings.client_retry_multiplier,
    )

    async with agent.busy_while("Waiting for response from AI..."):
        try:
            _, response = await client.stream_chat(request, _single_step)
        except Exception as e:
            agent.error_line(f"Compaction failed: {e}. Prior chat history was not lost.")
            raise CompactionError(client.model_id, e) from e

    stored = request.to_stored()
    stored.messages = [message for message in stored.messages if message.role == "system"]

    turn = ConversationTurn(request=stored, response=response)
    state.clear_messages()
    state.push_turn(turn)

    logger.info(
        "Compaction complete",
        agent=agent.name,
        original=original_count,
        total_tokens=response.usage.total_tokens,
    )
    agent.info_line("Context compacted successfully")
    return turn
