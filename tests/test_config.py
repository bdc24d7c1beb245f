"""
Tests for configuration module.
"""

import os
from unittest.mock import patch

import pytest

from chat_orchestrator.config import (
    ChatConfig,
    ContextSource,
    LiteralPrompt,
    Settings,
    TemplatePrompt,
    resolve_chat_config,
)
from chat_orchestrator.errors import ConfigurationError


def test_settings_default_values():
    """Test that settings have sensible defaults."""
    with patch.dict(os.environ, {}, clear=True):
        settings = Settings()

        assert settings.default_model == "auto"
        assert settings.compaction_threshold == 0.9
        assert settings.client_retry_times == 5
        assert settings.client_retry_interval == 1.0
        assert settings.client_retry_multiplier == 2.0
        assert settings.max_steps_confirm_timeout == 60
        assert settings.compact_confirm_timeout == 30
        assert settings.agent_defaults.max_steps == 30
        assert settings.agent_defaults.auto_compact is True


def test_settings_from_env():
    """Test loading settings from environment variables."""
    env = {
        "CHAT_DEFAULT_MODEL": "claude-*",
        "CHAT_COMPACTION_THRESHOLD": "0.75",
        "CHAT_AGENT_DEFAULTS__MAX_STEPS": "12",
        "CHAT_DEFAULT_MODELS": '["fast-*", "smart-*"]',
    }

    with patch.dict(os.environ, env, clear=True):
        settings = Settings()

        assert settings.default_model == "claude-*"
        assert settings.compaction_threshold == 0.75
        assert settings.agent_defaults.max_steps == 12
        assert settings.default_models == ["fast-*", "smart-*"]


def test_chat_config_defaults():
    config = ChatConfig()

    assert config.model is None
    assert config.max_steps == 30
    assert config.auto_compact is True
    assert config.enabled_tools == []
    assert [s.type for s in config.context.initial] == [
        "system-message",
        "tool-context",
        "prior-messages",
        "current-message",
    ]
    assert [s.type for s in config.context.follow_up] == ["prior-messages", "current-message"]


def test_system_prompt_coercion():
    assert ChatConfig(system_prompt="Be nice.").system_prompt == LiteralPrompt("Be nice.")

    config = ChatConfig(system_prompt=lambda agent: "generated")
    assert isinstance(config.system_prompt, TemplatePrompt)
    assert config.system_prompt.render(None) == "generated"


def test_context_source_params():
    source = ContextSource(type="prior-messages", max_messages=20)
    assert source.type == "prior-messages"
    assert source.params == {"max_messages": 20}


def test_resolve_merge_order():
    defaults = ChatConfig(max_steps=30, temperature=0.5, model="base")
    agent_layer = {"max_steps": 10, "model": "agent-model"}
    turn_layer = {"model": "turn-model"}

    resolved = resolve_chat_config(defaults, agent_layer, turn_layer)

    assert resolved.model == "turn-model"
    assert resolved.max_steps == 10
    assert resolved.temperature == 0.5


def test_resolve_ignores_unset_fields_of_model_layers():
    defaults = ChatConfig(max_steps=7)
    resolved = resolve_chat_config(defaults, ChatConfig(temperature=0.1), None)

    assert resolved.max_steps == 7
    assert resolved.temperature == 0.1


def test_resolve_unknown_key_names_it():
    with pytest.raises(ConfigurationError, match="maxSteps"):
        resolve_chat_config(ChatConfig(), {"maxSteps": 3})


def test_invalid_threshold_rejected():
    with pytest.raises(ConfigurationError, match="compaction_threshold"):
        resolve_chat_config(ChatConfig(), {"compaction_threshold": 1.5})
