"""Unit tests for task declarations and pipeline definitions."""

from __future__ import annotations

import json
from pathlib import Path

import pytest

from triage_orchestrator.engine.declarations import TaskDeclaration, parse_timeout
from triage_orchestrator.engine.definition import PipelineDefinition, load_definition
from triage_orchestrator.engine.errors import DeclarationError


@pytest.mark.parametrize(
    ("value", "seconds"),
    [(None, None), ("500ms", 0.5), ("30s", 30.0), ("5m", 300.0), ("1h", 3600.0), (2, 2.0)],
)
def test_parse_timeout(value, seconds) -> None:
    assert parse_timeout(value) == seconds


@pytest.mark.parametrize("value", ["5 minutes", "0s", "-1s", 0, -3, True, "m"])
def test_parse_timeout_rejects_bad_values(value) -> None:
    with pytest.raises(DeclarationError):
        parse_timeout(value)


def test_from_json_reads_original_field_names() -> None:
    declaration = TaskDeclaration.from_json(
        {
            "task_id": "record_classification",
            "type": "api_call",
            "priority": "high",
            "execution": {
                "timeout": "30s",
                "max_retries": 3,
                "sync": True,
                "endpoint": "https://records.example/api",
                "method": "post",
            },
            "inputs": ["patient_id"],
            "outputs": ["record_id"],
            "condition": "final_priority_color != 'blue'",
            "fallback": {"on_timeout": "retry_later", "on_error": "log_to_backup_system"},
        }
    )

    assert declaration.id == "record_classification"
    assert declaration.kind == "api_call"
    assert declaration.execution.timeout_seconds == 30.0
    assert declaration.execution.max_retries == 3
    assert declaration.execution.synchronous is True
    assert declaration.execution.method == "POST"
    assert declaration.inputs == ("patient_id",)
    assert declaration.fallback is not None
    assert declaration.fallback.on_timeout == "retry_later"
    assert declaration.has_valid_condition
    assert declaration.condition is not None
    assert declaration.condition.evaluate({"final_priority_color": "red"})


@pytest.mark.parametrize(
    "obj",
    [
        {},
        {"id": ""},
        {"id": "a", "inputs": "x"},
        {"id": "a", "type": "shell"},
        {"id": "a", "priority": "urgent"},
        {"id": "a", "execution": {"timeout": "soon"}},
        {"id": "a", "execution": {"max_retries": -1}},
        {"id": "a", "execution": {"method": "PATCH"}},
        {"id": "a", "fallback": "manual"},
    ],
)
def test_from_json_rejects_malformed(obj) -> None:
    with pytest.raises(DeclarationError):
        TaskDeclaration.from_json(obj)


def test_malformed_condition_is_kept_but_flagged() -> None:
    declaration = TaskDeclaration.create("a", condition="color ~= 'red'")

    assert not declaration.has_valid_condition
    assert declaration.condition_source == "color ~= 'red'"


def test_json_round_trip_preserves_declaration() -> None:
    declaration = TaskDeclaration.create(
        "a",
        inputs=["x"],
        outputs=["y"],
        condition="x == 1",
        timeout="2m",
        on_error="manual",
        kind="llm_reasoning",
        prompt_template="Use {x}",
    )

    restored = TaskDeclaration.from_json(declaration.to_json())

    assert restored.id == declaration.id
    assert restored.inputs == declaration.inputs
    assert restored.condition_source == "x == 1"
    assert restored.execution.timeout_seconds == 120.0
    assert restored.fallback == declaration.fallback
    assert restored.prompt_template == "Use {x}"


def test_load_definition(pipeline_file: Path) -> None:
    definition = load_definition(pipeline_file)

    assert definition.task_ids == ["assess", "score", "classify", "alert"]
    assert definition.default_plan == (("assess", "score"), ("classify",), ("alert",))
    assert definition.get("alert") is not None
    assert definition.get("missing") is None


def test_definition_rejects_duplicate_ids() -> None:
    with pytest.raises(DeclarationError, match="Duplicate task id"):
        PipelineDefinition.from_json(
            {"tasks": [{"id": "a"}, {"id": "a"}], "default_plan": [["a"]]}
        )


def test_definition_requires_plan_shape() -> None:
    with pytest.raises(DeclarationError):
        PipelineDefinition.from_json({"tasks": [{"id": "a"}], "default_plan": ["a"]})


def test_invalid_json_file(tmp_path: Path) -> None:
    path = tmp_path / "broken.json"
    path.write_text("{not json", encoding="utf-8")

    with pytest.raises(DeclarationError, match="invalid JSON"):
        load_definition(path)


def test_example_definition_loads() -> None:
    path = Path(__file__).resolve().parents[2] / "examples" / "triage_pipeline.json"
    definition = load_definition(path)

    assert len(definition.declarations) == 12
    assert sorted(definition.task_ids) == sorted(
        task_id for wave in definition.default_plan for task_id in wave
    )
    assert all(d.has_valid_condition for d in definition.declarations)
    json.dumps(definition.to_json())
