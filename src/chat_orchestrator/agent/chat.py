"""
Chat orchestration loop.

One call to ``run_chat`` is one logical turn:

    acquire client -> assemble request -> stream (with step bounding)
    -> commit turn -> after-completion hooks -> compaction check

A failure while streaming aborts the turn before anything is committed.
When compaction runs because a step hit the long-context threshold, the
same task continues in a fresh turn with the remaining step budget.
"""

from enum import Enum
from typing import TYPE_CHECKING

import structlog

from ..config import ChatConfig
from ..errors import ChatTurnError, CompactionError
from ..llm.base import ChatResponse, ModelSpec, StepResult, Usage
from ..llm.registry import acquire_client
from .compaction import compact_context
from .core import AFTER_CHAT_COMPLETION
from .state import ConversationTurn

if TYPE_CHECKING:
    from .core import Agent

logger = structlog.get_logger()

CONTINUE_INPUT = "Continue"


class StopReason(str, Enum):
    """Why the multi-step model call ended."""

    FINISHED = "finished"
    LONG_CONTEXT = "longContext"
    MAX_STEPS = "maxSteps"


def is_long_context(usage: Usage, spec: ModelSpec, threshold: float) -> bool:
    """True when usage has reached ``threshold`` of the model's context window."""
    return usage.total_tokens >= spec.context_length * threshold


async def run_chat(input: str, config: ChatConfig, agent: "Agent") -> tuple[str, ChatResponse]:
    """Run one logical chat turn and return the output text and full response."""
    service = agent.chat_service
    settings = service.settings
    model = config.model or service.model

    async with agent.busy_while("Waiting for an online model to respond..."):
        client = await acquire_client(
            service.model_registry,
            model,
            times=settings.client_retry_times,
            interval=settings.client_retry_interval,
            multiplier=settings.client_retry_multiplier,
        )

    agent.info_line(f"[run_chat] Using model {client.model_id}")

    request = await service.build_request(input, config, agent)
    spec = client.get_model_spec()
    threshold = service.compaction_threshold(config)

    step_count = 0
    stop_reason = StopReason.FINISHED

    async def stop_when(steps: list[StepResult]) -> bool:
        nonlocal step_count, stop_reason
        step_count = len(steps)

        if steps and is_long_context(steps[-1].usage, spec, threshold):
            stop_reason = StopReason.LONG_CONTEXT
            return True

        if step_count > config.max_steps:
            if agent.headless:
                stop_reason = StopReason.MAX_STEPS
                return True

            keep_going = await agent.ask_for_confirmation(
                f"The agent has completed {step_count} steps, which is longer than your "
                f"configured limit of {config.max_steps}. Would you like to continue?",
                default=False,
                timeout=settings.max_steps_confirm_timeout,
            )
            if not keep_going:
                stop_reason = StopReason.MAX_STEPS
                return True

        return False

    agent.set_busy_with("Sending request to AI...")
    try:
        try:
            output, response = await client.stream_chat(request, stop_when)
        except Exception as e:
            agent.error_line(f"Chat request failed: {e}. Prior chat history was not lost.")
            raise ChatTurnError(client.model_id, e) from e

        agent.chat_state.push_turn(
            ConversationTurn(
                request=request.to_stored(),
                response=response,
                stop_reason=stop_reason.value,
            )
        )
        logger.info(
            "Chat turn committed",
            agent=agent.name,
            model=client.model_id,
            steps=step_count,
            stop_reason=stop_reason.value,
            total_tokens=response.usage.total_tokens,
        )

        final_output = output or ""
        await agent.execute_hooks(AFTER_CHAT_COMPLETION, final_output, response)

        if is_long_context(response.usage, spec, threshold):
            compact = config.auto_compact or agent.headless or await agent.ask_for_confirmation(
                "Context is getting long. Would you like to compact it to save tokens?",
                default=True,
                timeout=settings.compact_confirm_timeout,
            )
            if compact:
                agent.info_line("Context is getting long. Compacting context...")
                agent.set_busy_with("Compacting context...")
                try:
                    await compact_context(agent)
                except CompactionError as e:
                    # The turn is already committed; its output still belongs to the caller
                    agent.error_line(f"{e} The completed turn was saved.")
                    return final_output, response

                if stop_reason is StopReason.LONG_CONTEXT:
                    remaining_steps = config.max_steps - step_count
                    if remaining_steps > 0:
                        agent.info_line(
                            "Context compacted, and agent still has work to do. Continuing work..."
                        )
                        return await run_chat(
                            CONTINUE_INPUT,
                            config.model_copy(update={"max_steps": remaining_steps}),
                            agent,
                        )

        return final_output, response
    finally:
        agent.set_busy_with(None)
