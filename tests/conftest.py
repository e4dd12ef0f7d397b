"""Test configuration and fixtures."""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any

import pytest

from triage_orchestrator.core.config import (
    EngineConfig,
    LLMConfig,
    OrchestratorConfig,
    SessionConfig,
)
from triage_orchestrator.state.sessions import InMemorySessionStore

@pytest.fixture
def store() -> InMemorySessionStore:
    """Provide an empty in-memory session store."""
    return InMemorySessionStore()


@pytest.fixture
def llm_config() -> LLMConfig:
    """Provide a test LLM configuration."""
    return LLMConfig(
        provider="openai",
        openai_api_key="test-key",
        openai_model="gpt-4o-mini",
    )


@pytest.fixture
def orchestrator_config(llm_config: LLMConfig) -> OrchestratorConfig:
    """Provide a test orchestrator configuration using the default plan."""
    return OrchestratorConfig(
        log_level="DEBUG",
        debug=True,
        json_logs=False,
        llm=llm_config,
        engine=EngineConfig(planner="static", body_base_delay_seconds=0.0),
        session=SessionConfig(retention_hours=1),
    )


@pytest.fixture
def pipeline_document() -> dict[str, Any]:
    """A three-wave pipeline made of local tasks."""
    return {
        "tasks": [
            {"id": "assess", "inputs": ["complaint"], "outputs": ["flowchart"]},
            {"id": "score", "inputs": ["pain"], "outputs": ["score"]},
            {
                "id": "classify",
                "inputs": ["flowchart", "score"],
                "outputs": ["color"],
                "fallback": {"on_error": "manual_triage"},
            },
            {
                "id": "alert",
                "inputs": ["color"],
                "outputs": ["alerted"],
                "condition": "color IN ['red', 'orange']",
            },
        ],
        "default_plan": [["assess", "score"], ["classify"], ["alert"]],
    }


@pytest.fixture
def pipeline_file(tmp_path: Path, pipeline_document: dict[str, Any]) -> Path:
    """Write the test pipeline to disk."""
    path = tmp_path / "pipeline.json"
    path.write_text(json.dumps(pipeline_document), encoding="utf-8")
    return path


@pytest.fixture
def pipeline_bodies() -> dict[str, Any]:
    """Bodies for the test pipeline: chest pain with severe pain is orange."""

    async def assess(context):
        return {"flowchart": "chest_pain" if "chest" in context.get("complaint") else "unwell"}

    def score(context):
        return {"score": int(context.get("pain")) * 10}

    async def classify(context):
        color = "orange" if context.get("score") >= 70 else "green"
        return {"color": color}

    async def alert(context):
        return {"alerted": True}

    return {"assess": assess, "score": score, "classify": classify, "alert": alert}
