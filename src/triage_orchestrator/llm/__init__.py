"""Reasoning-service providers."""

from triage_orchestrator.llm.factory import LLMFactory
from triage_orchestrator.llm.parsing import parse_json_reply
from triage_orchestrator.llm.provider import LLMProvider

__all__ = [
    "LLMFactory",
    "LLMProvider",
    "parse_json_reply",
]
