"""Pipeline definitions: task declarations plus the default wave order.

On disk a definition is a JSON document::

    {
      "tasks": [{"id": "a", "outputs": ["x"]}, {"id": "b", "inputs": ["x"]}],
      "default_plan": [["a"], ["b"]]
    }
"""

from __future__ import annotations

import json
from dataclasses import dataclass
from pathlib import Path

from triage_orchestrator.engine.declarations import TaskDeclaration
from triage_orchestrator.engine.errors import DeclarationError


@dataclass(frozen=True, slots=True)
class PipelineDefinition:
    declarations: tuple[TaskDeclaration, ...]
    default_plan: tuple[tuple[str, ...], ...]

    @property
    def task_ids(self) -> list[str]:
        return [d.id for d in self.declarations]

    def get(self, task_id: str) -> TaskDeclaration | None:
        for declaration in self.declarations:
            if declaration.id == task_id:
                return declaration
        return None

    @staticmethod
    def from_json(obj: object) -> PipelineDefinition:
        if not isinstance(obj, dict):
            raise DeclarationError("Pipeline definition must be an object")

        tasks_raw = obj.get("tasks")
        if not isinstance(tasks_raw, list) or not tasks_raw:
            raise DeclarationError("Pipeline definition requires a non-empty 'tasks' list")
        declarations = tuple(TaskDeclaration.from_json(t) for t in tasks_raw)

        seen: set[str] = set()
        for declaration in declarations:
            if declaration.id in seen:
                raise DeclarationError(f"Duplicate task id: {declaration.id}")
            seen.add(declaration.id)

        plan_raw = obj.get("default_plan")
        if not isinstance(plan_raw, list) or not all(
            isinstance(wave, list) and all(isinstance(t, str) for t in wave) for wave in plan_raw
        ):
            raise DeclarationError("'default_plan' must be a list of lists of task ids")

        return PipelineDefinition(
            declarations=declarations,
            default_plan=tuple(tuple(wave) for wave in plan_raw),
        )

    def to_json(self) -> dict[str, object]:
        return {
            "tasks": [d.to_json() for d in self.declarations],
            "default_plan": [list(wave) for wave in self.default_plan],
        }


def load_definition(path: Path) -> PipelineDefinition:
    """Read a pipeline definition from a JSON file.

    Raises:
        DeclarationError: If the file is not valid JSON or is malformed.
    """

    try:
        raw = json.loads(path.read_text(encoding="utf-8"))
    except json.JSONDecodeError as e:
        raise DeclarationError(f"{path}: invalid JSON: {e}") from e
    return PipelineDefinition.from_json(raw)
