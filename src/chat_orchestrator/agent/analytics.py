"""
Human-readable usage, cost and timing lines for a completed chat.
"""

from ..llm.base import ChatResponse


def _dollars(value: float | None) -> str:
    return f"${value:.4f}" if value is not None else "unknown"


def format_chat_analytics(response: ChatResponse, label: str = "Chat Complete") -> list[str]:
    """Summarize a response. The cost line is omitted when total cost is unknown."""
    usage = response.usage
    lines = [
        f"[{label}] "
        f"Input Tokens: {usage.input_tokens}"
        f"{f' (+{usage.cached_input_tokens} cached)' if usage.cached_input_tokens else ''}, "
        f"Output: {usage.output_tokens}"
        f"{f' (+{usage.reasoning_tokens} reasoning)' if usage.reasoning_tokens else ''}, "
        f"Total: {usage.total_tokens}"
    ]

    cost = response.cost
    if cost.total is not None:
        lines.append(
            f"[{label}] "
            f"Input Cost: {_dollars(cost.input)}"
            f"{f' (+{_dollars(cost.cached_input)} cached)' if cost.cached_input else ''}, "
            f"Output: {_dollars(cost.output)}"
            f"{f' (+{_dollars(cost.reasoning)} reasoning)' if cost.reasoning else ''}, "
            f"Total: {_dollars(cost.total)}"
        )

    timing = response.timing
    seconds = timing.elapsed_ms / 1000
    tps = f"{timing.tokens_per_sec:.2f}" if timing.tokens_per_sec else "N/A"
    lines.append(f"[{label}] Time: {seconds:.2f}s, Throughput: {tps} tokens/sec")
    return lines
