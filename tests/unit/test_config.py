"""Unit tests for configuration."""

import pytest

from triage_orchestrator.core.config import (
    EngineConfig,
    LLMConfig,
    OrchestratorConfig,
    SessionConfig,
)


def test_llm_config_defaults() -> None:
    """Test LLM config default values."""
    config = LLMConfig(openai_api_key="test-key")

    assert config.provider == "openai"
    assert config.openai_model == "gpt-4o-mini"
    assert config.openai_temperature == 0.1
    assert config.max_tokens == 800
    assert config.llama_n_ctx == 4096


def test_engine_config_defaults() -> None:
    """Test engine config default values."""
    config = EngineConfig()

    assert config.planner == "oracle"
    assert config.planner_timeout_seconds == 30.0
    assert config.replan_each_wave is False
    assert config.body_max_attempts == 2
    assert config.body_base_delay_seconds == 1.0


def test_session_config_retention() -> None:
    """Test session retention conversion."""
    assert SessionConfig().retention_seconds == 24 * 3600
    assert SessionConfig(retention_hours=0.5).retention_seconds == 1800


def test_engine_config_from_environment(monkeypatch: pytest.MonkeyPatch) -> None:
    """Test env prefixes for nested sections."""
    monkeypatch.setenv("ORCHESTRATOR_ENGINE_PLANNER", "dependency")
    monkeypatch.setenv("ORCHESTRATOR_ENGINE_REPLAN_EACH_WAVE", "true")
    monkeypatch.setenv("ORCHESTRATOR_LLM_OPENAI_MODEL", "local-model")

    config = OrchestratorConfig()

    assert config.engine.planner == "dependency"
    assert config.engine.replan_each_wave is True
    assert config.llm.openai_model == "local-model"


def test_invalid_planner_is_rejected() -> None:
    with pytest.raises(ValueError):
        EngineConfig(planner="random")


def test_orchestrator_config_composition() -> None:
    """Test orchestrator config with nested configs."""
    config = OrchestratorConfig(
        log_level="DEBUG",
        debug=True,
    )

    assert config.log_level == "DEBUG"
    assert config.debug is True
    assert config.json_logs is True
    assert isinstance(config.llm, LLMConfig)
    assert isinstance(config.engine, EngineConfig)
    assert isinstance(config.session, SessionConfig)
