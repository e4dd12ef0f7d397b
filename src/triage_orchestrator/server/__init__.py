"""FastAPI server adapter for triage-orchestrator.

Design intent:
- Keep orchestration logic in `triage_orchestrator.engine.*`
- Keep server-specific concerns (routing, CORS, request validation) here
"""

from __future__ import annotations

__all__ = ["create_app"]

from triage_orchestrator.server.app import create_app
