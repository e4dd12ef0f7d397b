"""Unit tests for single-task execution."""

from __future__ import annotations

import asyncio
import time
from typing import Any

import pytest

from triage_orchestrator.engine.context import ContextSnapshot, ExecutionContext, TaskContext
from triage_orchestrator.engine.declarations import TaskDeclaration
from triage_orchestrator.engine.results import TaskStatus
from triage_orchestrator.engine.runner import TaskRunner


def _snapshot(data: dict[str, Any]) -> ContextSnapshot:
    return ExecutionContext(data).snapshot()


async def _never_called(context: TaskContext) -> dict[str, Any]:
    raise AssertionError("body must not run")


@pytest.mark.asyncio
async def test_false_condition_skips_without_running_body() -> None:
    declaration = TaskDeclaration.create(
        "activate_priority_flow_stroke",
        inputs=["patient_id"],
        condition="selected_flowchart == 'stroke'",
    )

    result = await TaskRunner().run(
        declaration, _never_called, _snapshot({"selected_flowchart": "chest_pain"})
    )

    assert result.status == TaskStatus.SKIPPED
    assert result.outputs == {}
    assert result.error is None
    assert result.execution_time_ms == 0


@pytest.mark.asyncio
async def test_malformed_condition_skips() -> None:
    declaration = TaskDeclaration.create("a", condition="a b c")

    result = await TaskRunner().run(declaration, _never_called, _snapshot({"a": 1}))

    assert result.status == TaskStatus.SKIPPED


@pytest.mark.asyncio
async def test_missing_inputs_fail_regardless_of_body() -> None:
    declaration = TaskDeclaration.create(
        "classify", inputs=["score", "flowchart", "pain"], on_error="manual_triage"
    )

    result = await TaskRunner().run(
        declaration, _never_called, _snapshot({"score": 3, "flowchart": None})
    )

    assert result.status == TaskStatus.FAILED
    assert result.error == "missing inputs: [flowchart, pain]"
    assert result.fallback_triggered is None


@pytest.mark.asyncio
async def test_async_body_completes_with_outputs() -> None:
    seen: dict[str, Any] = {}

    async def body(context: TaskContext) -> dict[str, Any]:
        seen["task_id"] = context.task_id
        seen["session_id"] = context.session_id
        return {"doubled": context.get("value") * 2}

    declaration = TaskDeclaration.create("double", inputs=["value"], outputs=["doubled"])

    result = await TaskRunner().run(declaration, body, _snapshot({"value": 21}), session_id="s1")

    assert result.status == TaskStatus.COMPLETED
    assert result.outputs == {"doubled": 42}
    assert result.execution_time_ms >= 0
    assert seen == {"task_id": "double", "session_id": "s1"}


@pytest.mark.asyncio
async def test_sync_body_runs_off_the_event_loop() -> None:
    def body(context: TaskContext) -> dict[str, Any]:
        time.sleep(0.01)
        return {"ok": True}

    result = await TaskRunner().run(TaskDeclaration.create("sync"), body, _snapshot({}))

    assert result.status == TaskStatus.COMPLETED
    assert result.outputs == {"ok": True}


@pytest.mark.asyncio
async def test_callable_object_with_async_call() -> None:
    class Body:
        async def __call__(self, context: TaskContext) -> dict[str, Any]:
            await asyncio.sleep(0)
            return {"ok": True}

    result = await TaskRunner().run(TaskDeclaration.create("obj"), Body(), _snapshot({}))

    assert result.status == TaskStatus.COMPLETED
    assert result.outputs == {"ok": True}


@pytest.mark.asyncio
async def test_timeout_with_fallback_completes() -> None:
    async def slow(context: TaskContext) -> dict[str, Any]:
        await asyncio.sleep(0.05)
        return {"late": True}

    declaration = TaskDeclaration.create("slow", timeout="10ms", on_timeout="escalate_to_nurse")

    result = await TaskRunner().run(declaration, slow, _snapshot({}))

    assert result.status == TaskStatus.COMPLETED
    assert result.fallback_triggered == "on_timeout"
    assert result.outputs == {"fallback_action": "escalate_to_nurse"}


@pytest.mark.asyncio
async def test_timeout_without_fallback_fails() -> None:
    async def slow(context: TaskContext) -> dict[str, Any]:
        await asyncio.sleep(0.05)
        return {"late": True}

    declaration = TaskDeclaration.create("slow", timeout="10ms")

    result = await TaskRunner().run(declaration, slow, _snapshot({}))

    assert result.status == TaskStatus.FAILED
    assert result.error == "Task timeout after 10ms"
    assert result.fallback_triggered is None


@pytest.mark.asyncio
async def test_timeout_falls_through_to_on_error() -> None:
    async def slow(context: TaskContext) -> dict[str, Any]:
        await asyncio.sleep(0.05)
        return {}

    declaration = TaskDeclaration.create("slow", timeout="10ms", on_error="manual_triage")

    result = await TaskRunner().run(declaration, slow, _snapshot({}))

    assert result.status == TaskStatus.COMPLETED
    assert result.fallback_triggered == "on_error"
    assert result.outputs == {"fallback_action": "manual_triage"}


@pytest.mark.asyncio
async def test_error_with_on_error_fallback() -> None:
    async def broken(context: TaskContext) -> dict[str, Any]:
        raise RuntimeError("model unavailable")

    declaration = TaskDeclaration.create(
        "flowchart_selection", on_timeout="escalate", on_error="default_to_unwell_adult"
    )

    result = await TaskRunner().run(declaration, broken, _snapshot({}))

    assert result.status == TaskStatus.COMPLETED
    assert result.fallback_triggered == "on_error"
    assert result.outputs == {"fallback_action": "default_to_unwell_adult"}


@pytest.mark.asyncio
async def test_error_without_fallback_fails_with_message() -> None:
    def broken(context: TaskContext) -> dict[str, Any]:
        raise RuntimeError("model unavailable")

    result = await TaskRunner().run(TaskDeclaration.create("a"), broken, _snapshot({}))

    assert result.status == TaskStatus.FAILED
    assert result.error == "model unavailable"


@pytest.mark.asyncio
async def test_non_mapping_output_is_a_body_error() -> None:
    async def wrong(context: TaskContext) -> Any:
        return ["not", "a", "mapping"]

    result = await TaskRunner().run(TaskDeclaration.create("a"), wrong, _snapshot({}))

    assert result.status == TaskStatus.FAILED
    assert "expected a mapping" in (result.error or "")


@pytest.mark.asyncio
async def test_body_raised_timeout_is_a_body_error() -> None:
    async def upstream_timeout(context: TaskContext) -> dict[str, Any]:
        raise TimeoutError("upstream socket timed out")

    declaration = TaskDeclaration.create(
        "queue_management", timeout="5s", on_timeout="retry_later", on_error="manual_review"
    )

    result = await TaskRunner().run(declaration, upstream_timeout, _snapshot({}))

    assert result.status == TaskStatus.COMPLETED
    assert result.fallback_triggered == "on_error"
    assert result.outputs == {"fallback_action": "manual_review"}


@pytest.mark.asyncio
async def test_body_raised_timeout_without_on_error_fails() -> None:
    def upstream_timeout(context: TaskContext) -> dict[str, Any]:
        raise TimeoutError("upstream socket timed out")

    declaration = TaskDeclaration.create(
        "queue_management", timeout="5s", on_timeout="retry_later"
    )

    result = await TaskRunner().run(declaration, upstream_timeout, _snapshot({}))

    assert result.status == TaskStatus.FAILED
    assert result.fallback_triggered is None
    assert result.error == "upstream socket timed out"
