"""
Configuration management for the chat orchestrator.

Uses pydantic-settings for service-level settings read from the environment
and pydantic models for the per-agent chat configuration.

Merge order for a turn (later wins, shallow):
    service agent_defaults < agent override < per-turn override
"""

import logging
from dataclasses import dataclass
from functools import lru_cache
from typing import Any, Callable, Union

import structlog
from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from .errors import ConfigurationError

DEFAULT_SYSTEM_PROMPT = "You are a helpful assistant."

# Fraction of the model context window that counts as "long context"
DEFAULT_COMPACTION_THRESHOLD = 0.9


@dataclass(frozen=True)
class LiteralPrompt:
    """A system prompt given as fixed text."""

    text: str

    def render(self, agent: Any) -> str:
        return self.text


@dataclass(frozen=True)
class TemplatePrompt:
    """A system prompt produced by calling ``template(agent)`` at request time."""

    template: Callable[[Any], str]

    def render(self, agent: Any) -> str:
        return self.template(agent)


SystemPrompt = Union[LiteralPrompt, TemplatePrompt]


class ContextSource(BaseModel):
    """Declarative reference to a context handler plus its free-form params."""

    model_config = ConfigDict(extra="allow")

    type: str

    @property
    def params(self) -> dict[str, Any]:
        return dict(self.model_extra or {})


def _default_initial_sources() -> list[ContextSource]:
    return [
        ContextSource(type="system-message"),
        ContextSource(type="tool-context"),
        ContextSource(type="prior-messages"),
        ContextSource(type="current-message"),
    ]


def _default_follow_up_sources() -> list[ContextSource]:
    return [
        ContextSource(type="prior-messages"),
        ContextSource(type="current-message"),
    ]


class ContextConfig(BaseModel):
    """Context source lists for the first turn and for follow-up turns."""

    model_config = ConfigDict(extra="forbid")

    initial: list[ContextSource] = Field(default_factory=_default_initial_sources)
    follow_up: list[ContextSource] = Field(default_factory=_default_follow_up_sources)


class ChatConfig(BaseModel):
    """Chat configuration for a single agent."""

    model_config = ConfigDict(extra="forbid")

    model: str | None = None
    system_prompt: SystemPrompt = LiteralPrompt(DEFAULT_SYSTEM_PROMPT)
    max_steps: int = Field(default=30, ge=0)
    auto_compact: bool = True
    enabled_tools: list[str] = Field(default_factory=list)
    context: ContextConfig = Field(default_factory=ContextConfig)
    compaction_threshold: float | None = Field(default=None, gt=0, le=1)

    # Generation preferences passed through to the model client
    temperature: float | None = None
    top_p: float | None = None
    top_k: int | None = None
    stop_sequences: list[str] | None = None
    presence_penalty: float | None = None
    frequency_penalty: float | None = None
    max_tokens: int | None = None

    @field_validator("system_prompt", mode="before")
    @classmethod
    def coerce_system_prompt(cls, v: Any) -> Any:
        if isinstance(v, (LiteralPrompt, TemplatePrompt, dict)):
            return v
        if isinstance(v, str):
            return LiteralPrompt(v)
        if callable(v):
            return TemplatePrompt(v)
        return v


PREFERENCE_FIELDS = (
    "temperature",
    "top_p",
    "top_k",
    "stop_sequences",
    "presence_penalty",
    "frequency_penalty",
    "max_tokens",
)


class Settings(BaseSettings):
    """Service-wide settings for the chat orchestrator."""

    model_config = SettingsConfigDict(
        env_prefix="CHAT_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        env_nested_delimiter="__",
    )

    log_level: str = "INFO"

    # Models
    default_model: str = Field(default="auto", description="Model used when an agent sets none")
    default_models: list[str] = Field(
        default_factory=list,
        description="Model names or patterns tried, in order, when the model is 'auto'",
    )

    # Long context and compaction
    compaction_threshold: float = Field(default=DEFAULT_COMPACTION_THRESHOLD, gt=0, le=1)

    # Client acquisition backoff
    client_retry_times: int = Field(default=5, ge=1)
    client_retry_interval: float = Field(default=1.0, ge=0)
    client_retry_multiplier: float = Field(default=2.0, ge=1)

    # Human confirmation timeouts (seconds)
    max_steps_confirm_timeout: float = 60
    compact_confirm_timeout: float = 30

    agent_defaults: ChatConfig = Field(default_factory=ChatConfig)


def _explicit_fields(override: "ChatConfig | dict[str, Any] | None") -> dict[str, Any]:
    if override is None:
        return {}
    if isinstance(override, dict):
        override = ChatConfig.model_validate(override)
    return {name: getattr(override, name) for name in override.model_fields_set}


def resolve_chat_config(
    defaults: ChatConfig,
    *overrides: "ChatConfig | dict[str, Any] | None",
) -> ChatConfig:
    """Merge config layers in order; only fields explicitly set in a layer override.

    Raises:
        ConfigurationError: if any layer contains an unknown or invalid key.
    """
    try:
        merged = dict(defaults)
        for override in overrides:
            merged.update(_explicit_fields(override))
        return ChatConfig.model_validate(merged)
    except ValidationError as e:
        raise ConfigurationError(f"Invalid chat configuration: {e}") from e


def configure_logging(level: str = "INFO") -> None:
    """Configure structlog for console output."""
    logging.basicConfig(format="%(message)s", level=level.upper())
    structlog.configure(
        processors=[
            structlog.stdlib.add_log_level,
            structlog.stdlib.PositionalArgumentsFormatter(),
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            structlog.dev.ConsoleRenderer(colors=True),
        ],
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
