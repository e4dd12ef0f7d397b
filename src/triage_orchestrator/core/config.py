"""Core configuration for the orchestrator.

Values come from the environment and an optional `.env` file. Nested sections
use their own prefixes, e.g. ``ORCHESTRATOR_LLM_OPENAI_MODEL`` or
``ORCHESTRATOR_ENGINE_PLANNER``.
"""

from pathlib import Path
from typing import Literal

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

from triage_orchestrator.logging import configure_logging


class LLMConfig(BaseSettings):
    """Configuration for the reasoning service."""

    provider: Literal["openai", "llama"] = Field(
        default="openai",
        description="Reasoning backend: a hosted OpenAI-compatible API or local llama.cpp",
    )

    # Hosted (OpenAI-compatible) backend
    openai_api_key: str | None = Field(
        default=None,
        description="API key for the OpenAI-compatible endpoint",
    )
    openai_base_url: str | None = Field(
        default=None,
        description="Override the API base URL (OpenAI-compatible gateways)",
    )
    openai_model: str = Field(
        default="gpt-4o-mini",
        description="Default model for task bodies and planning",
    )
    openai_temperature: float = Field(
        default=0.1,
        ge=0.0,
        le=2.0,
        description="Sampling temperature; triage decisions want it low",
    )
    max_tokens: int = Field(
        default=800,
        gt=0,
        description="Default completion budget per call",
    )
    request_timeout_seconds: float = Field(
        default=60.0,
        gt=0,
        description="HTTP timeout for a single provider request",
    )

    # Local backend
    llama_model_path: Path | None = Field(
        default=None,
        description="GGUF model file loaded by the local provider",
    )
    llama_n_ctx: int = Field(
        default=4096,
        gt=0,
        description="Context window of the local model; planning prompts list every task",
    )
    llama_n_threads: int | None = Field(
        default=None,
        description="CPU threads for local inference (unset lets llama.cpp decide)",
    )

    model_config = SettingsConfigDict(
        env_prefix="ORCHESTRATOR_LLM_",
        env_file=".env",
        extra="ignore",
    )


class EngineConfig(BaseSettings):
    """Configuration for planning and task execution."""

    planner: Literal["oracle", "static", "dependency"] = Field(
        default="oracle",
        description=(
            "Planning strategy. 'oracle' asks the LLM and falls back to the default plan; "
            "'dependency' layers tasks by declared inputs/outputs; 'static' always uses "
            "the default plan."
        ),
    )
    planner_timeout_seconds: float = Field(
        default=30.0,
        gt=0,
        description="How long to wait for the planning oracle before falling back",
    )
    replan_each_wave: bool = Field(
        default=False,
        description="Re-plan the remaining tasks before every wave (default: plan once)",
    )
    body_max_attempts: int = Field(
        default=2,
        ge=1,
        le=10,
        description="Attempts per reasoning call inside LLM-backed task bodies",
    )
    body_base_delay_seconds: float = Field(
        default=1.0,
        ge=0.0,
        description="Backoff unit: attempt i waits base * 2**i before retrying",
    )

    model_config = SettingsConfigDict(
        env_prefix="ORCHESTRATOR_ENGINE_",
        env_file=".env",
        extra="ignore",
    )


class SessionConfig(BaseSettings):
    """Configuration for run-session retention."""

    retention_hours: float = Field(
        default=24.0,
        gt=0,
        description="Sessions older than this are evicted from the store",
    )

    model_config = SettingsConfigDict(
        env_prefix="ORCHESTRATOR_SESSION_",
        env_file=".env",
        extra="ignore",
    )

    @property
    def retention_seconds(self) -> float:
        return self.retention_hours * 3600


class OrchestratorConfig(BaseSettings):
    """Top-level settings; nested sections read their own prefixes."""

    log_level: str = Field(
        default="INFO",
        description="Root log level (DEBUG, INFO, WARNING, ...)",
    )
    json_logs: bool = Field(
        default=True,
        description="Emit structured JSON logs (plain text when false)",
    )
    debug: bool = Field(
        default=False,
        description="Force DEBUG logging regardless of log_level",
    )
    definition_path: Path | None = Field(
        default=None,
        description="Pipeline definition JSON (tasks + default plan)",
    )

    llm: LLMConfig = Field(
        default_factory=LLMConfig,
        description="Reasoning-service settings (ORCHESTRATOR_LLM_*)",
    )
    engine: EngineConfig = Field(
        default_factory=EngineConfig,
        description="Planner and body settings (ORCHESTRATOR_ENGINE_*)",
    )
    session: SessionConfig = Field(
        default_factory=SessionConfig,
        description="Session retention (ORCHESTRATOR_SESSION_*)",
    )

    model_config = SettingsConfigDict(
        env_prefix="ORCHESTRATOR_",
        env_file=".env",
        extra="ignore",
    )

    def setup_logging(self) -> None:
        """Install the root log handler for applications embedding the engine."""
        level = "DEBUG" if self.debug else self.log_level
        configure_logging(level, json_output=self.json_logs)
