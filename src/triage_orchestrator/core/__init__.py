"""Core package initialization."""

from triage_orchestrator.core.config import (
    EngineConfig,
    LLMConfig,
    OrchestratorConfig,
    SessionConfig,
)

__all__ = [
    "EngineConfig",
    "LLMConfig",
    "OrchestratorConfig",
    "SessionConfig",
]
