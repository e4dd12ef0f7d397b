"""Pydantic models for the REST server."""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, Field

from triage_orchestrator.engine.results import RunProgress, RunSession, TaskResult


class ExecuteRequest(BaseModel):
    session_id: str = Field(min_length=1)
    input_context: dict[str, Any]
    metadata: dict[str, Any] = Field(default_factory=dict)


class RunSummary(BaseModel):
    total: int
    completed: int
    failed: int
    skipped: int


class ExecuteResponse(BaseModel):
    success: bool
    session: RunSession
    summary: RunSummary


class StatusResponse(BaseModel):
    session_id: str
    status: str
    progress: RunProgress
    error: str | None = None


class ResultsResponse(BaseModel):
    session_id: str
    status: str
    outputs: dict[str, Any]
    task_results: list[TaskResult]
    plan: list[list[str]]
    plan_source: str | None = None
