"""Triage Orchestrator.

Runs declared tasks in dependency-ordered waves:
- tasks declare inputs, outputs, an optional run condition, a timeout and fallbacks
- a planner (reasoning oracle, dependency layering, or a static order) groups them into waves
- each wave runs concurrently against a frozen snapshot of the shared context
"""

__version__ = "0.1.0"

from triage_orchestrator.core.config import OrchestratorConfig

__all__ = ["__version__", "OrchestratorConfig"]
