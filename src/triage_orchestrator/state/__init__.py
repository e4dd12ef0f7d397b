"""Run-session storage."""

from triage_orchestrator.state.sessions import InMemorySessionStore, SessionStore

__all__ = ["InMemorySessionStore", "SessionStore"]
